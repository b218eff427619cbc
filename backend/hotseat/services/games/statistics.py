"""Lifetime counters: rooms created and players who took part."""

from datetime import datetime
from functools import partial
from typing import Any, Dict

from hotseat import db
from hotseat.models import GameStatistics


def _row_id() -> int:
    stats = GameStatistics.query.order_by(GameStatistics.id).first()
    if stats is None:
        stats = GameStatistics(rooms_created=0, players_participated=0)
        db.session.add(stats)
        db.session.commit()
    return stats.id


def _bump(row_id: int, rooms: int, players: int) -> None:
    GameStatistics.query.filter_by(id=row_id).update({
        GameStatistics.rooms_created: GameStatistics.rooms_created + rooms,
        GameStatistics.players_participated: GameStatistics.players_participated + players,
        GameStatistics.last_updated: datetime.utcnow(),
    }, synchronize_session=False)
    db.session.commit()


def record(rooms: int = 0, players: int = 0):
    """Add to the counters and commit; return the undo for a saga step."""
    row_id = _row_id()
    _bump(row_id, rooms, players)
    return partial(_bump, row_id, -rooms, -players)


def get_statistics() -> Dict[str, Any]:
    stats = GameStatistics.query.order_by(GameStatistics.id).first()
    if stats is None:
        return {'rooms_created': 0, 'players_participated': 0, 'last_updated': None}
    return stats.to_dict()
