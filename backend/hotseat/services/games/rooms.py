"""Room lifecycle: create, join, leave and expire."""

from datetime import datetime
from functools import partial
from typing import Any, Dict, Optional

from flask import current_app

from hotseat import db
from hotseat.errors import NotFoundError, ValidationError
from hotseat.models import (
    Answer, DeciderHistory, Player, Room, Round, Scenario, Turn, Vote,
)
from . import state_machine as sm
from . import statistics
from .notifications import publish, publish_state
from .saga import Saga
from .scheduler import schedule_answer_scoring
from .snapshots import current_round, get_or_404, latest_turn, load_turn, room_snapshot
from .transitions import add_transition_steps


def _clean_nickname(nickname: Optional[str]) -> str:
    nickname = (nickname or '').strip()
    if not nickname:
        raise ValidationError('Nickname is required')
    if len(nickname) > 64:
        raise ValidationError('Nickname is too long')
    return nickname


def _bounded_int(value, default: int, low: int, high: int, label: str) -> int:
    if value is None:
        return default
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{label} must be a number')
    if value < low or value > high:
        raise ValidationError(f'{label} must be between {low} and {high}')
    return value


def _delete(model, row_id) -> None:
    model.query.filter_by(id=row_id).delete()
    db.session.commit()


def create_room(nickname: str, total_rounds=None, time_limit=None) -> Dict[str, Any]:
    """Create a waiting room and its host player."""
    nickname = _clean_nickname(nickname)
    config = current_app.config
    total_rounds = _bounded_int(total_rounds, int(config.get('DEFAULT_TOTAL_ROUNDS', 3)), 1,
                                int(config.get('MAX_TOTAL_ROUNDS', 10)), 'Total rounds')
    time_limit = _bounded_int(time_limit, int(config.get('DEFAULT_TIME_LIMIT_SEC', 60)), 10, 600, 'Time limit')

    rows: Dict[str, Any] = {}

    def _create_room():
        room = Room(total_rounds=total_rounds, time_limit=time_limit, status='waiting',
                    ttl_hours=int(config.get('ROOM_TTL_HOURS', 6)))
        db.session.add(room)
        db.session.commit()
        rows['room'] = room
        return partial(_delete, Room, room.id)

    def _create_host():
        host = Player(room_id=rows['room'].id, nickname=nickname, is_host=True)
        db.session.add(host)
        db.session.commit()
        rows['host'] = host
        return partial(_delete, Player, host.id)

    def _assign_host():
        rows['room'].host_id = rows['host'].id
        db.session.add(rows['room'])
        db.session.commit()

    saga = Saga('create room', rollback=db.session.rollback, logger=current_app.logger)
    saga.step('create room', _create_room)
    saga.step('create host player', _create_host)
    saga.step('assign host', _assign_host)
    saga.step('record statistics', partial(statistics.record, rooms=1, players=1))

    room, host = rows['room'], rows['host']
    current_app.logger.info(f"[room-create] room={room.id} code={room.room_code} host={host.id}")
    return {'room': room.to_dict(), 'player': host.to_dict()}


def join_room(room_code: str, nickname: str) -> Dict[str, Any]:
    nickname = _clean_nickname(nickname)
    room_code = (room_code or '').strip().upper()
    if not room_code:
        raise ValidationError('Room code is required')
    room = Room.query.filter_by(room_code=room_code).first()
    if room is None:
        raise NotFoundError('Room not found')
    if room.status != 'waiting':
        raise ValidationError('Game has already started')
    if Player.query.filter_by(room_id=room.id, nickname=nickname).first():
        raise ValidationError('Nickname is already taken in this room')

    rows: Dict[str, Any] = {}

    def _create_player():
        player = Player(room_id=room.id, nickname=nickname)
        db.session.add(player)
        db.session.commit()
        rows['player'] = player
        return partial(_delete, Player, player.id)

    saga = Saga('join room', rollback=db.session.rollback, logger=current_app.logger)
    saga.step('create player', _create_player)
    saga.step('record statistics', partial(statistics.record, players=1))

    player = rows['player']
    current_app.logger.info(f"[room-join] room={room.id} player={player.id}")
    publish(room.room_code, 'player_joined', {'player': player.to_dict()})
    publish_state(room.room_code)
    return {'room': room.to_dict(), 'player': player.to_dict()}


def get_room(room_id) -> Dict[str, Any]:
    room = get_or_404(Room, room_id, 'Room')
    players = Player.query.filter_by(room_id=room.id).order_by(Player.id).all()
    return {'room': room.to_dict(), 'players': [p.to_dict() for p in players]}


def _remove_player_rows(player: Player) -> None:
    """Delete the player and every row that points at it."""
    answer_ids = [a.id for a in Answer.query.filter_by(player_id=player.id).all()]
    if answer_ids:
        Vote.query.filter(Vote.answer_id.in_(answer_ids)).delete(synchronize_session=False)
    Vote.query.filter_by(voter_id=player.id).delete(synchronize_session=False)
    Answer.query.filter_by(player_id=player.id).delete(synchronize_session=False)
    DeciderHistory.query.filter_by(player_id=player.id).delete(synchronize_session=False)
    Turn.query.filter_by(decider_id=player.id).update({'decider_id': None}, synchronize_session=False)
    Room.query.filter_by(host_id=player.id).update({'host_id': None}, synchronize_session=False)
    db.session.delete(player)
    db.session.commit()


def delete_player(player_id) -> Dict[str, Any]:
    player = get_or_404(Player, player_id, 'Player')
    room = get_or_404(Room, player.room_id, 'Room')
    rnd = current_round(room)
    turn = latest_turn(rnd)
    info = {
        'playerId': player.id,
        'playerName': player.nickname,
        'wasHost': bool(player.is_host),
        'wasDecider': bool(turn is not None and turn.decider_id == player.id and turn.status != 'completed'),
    }

    transition = sm.decide_departure(room_snapshot(room, rnd, turn), player.id)
    saga = Saga('delete player', rollback=db.session.rollback, logger=current_app.logger)
    add_transition_steps(saga, transition, {})
    saga.step('remove player', partial(_remove_player_rows, player))
    info['gameCompleted'] = transition.game_over
    current_app.logger.info(
        f"[player-delete] room={room.id} player={info['playerId']} host={info['wasHost']} "
        f"decider={info['wasDecider']} game_over={transition.game_over}"
    )

    code = room.room_code
    if Player.query.filter_by(room_id=room.id).count() == 0:
        purge_room(room)
        publish(code, 'player_deleted', info)
        return info

    publish(code, 'player_deleted', info)
    if transition.game_over:
        publish(code, 'game_completed', {'room_id': room.id, 'reason': transition.reason})
    publish_state(code)
    if turn is not None:
        _score_if_ready(turn.id)
    return info


def _score_if_ready(turn_id) -> None:
    """A departure can bring the answer count down to the floor."""
    turn, _, room, snapshot = load_turn(turn_id)
    if room.status != 'in_progress' or turn.status != 'answering':
        return
    if sm.answers_ready(snapshot):
        schedule_answer_scoring(current_app._get_current_object(), turn.id)


def purge_room(room: Room) -> None:
    """Delete a room with all of its rows."""
    code = room.room_code
    round_ids = [r.id for r in Round.query.filter_by(room_id=room.id).all()]
    turn_ids = [t.id for t in Turn.query.filter(Turn.round_id.in_(round_ids)).all()] if round_ids else []
    room.host_id = None
    db.session.add(room)
    if turn_ids:
        Turn.query.filter(Turn.id.in_(turn_ids)).update({'scenario_id': None, 'decider_id': None},
                                                        synchronize_session=False)
        answer_ids = [a.id for a in Answer.query.filter(Answer.turn_id.in_(turn_ids)).all()]
        if answer_ids:
            Vote.query.filter(Vote.answer_id.in_(answer_ids)).delete(synchronize_session=False)
        Answer.query.filter(Answer.turn_id.in_(turn_ids)).delete(synchronize_session=False)
        Scenario.query.filter(Scenario.turn_id.in_(turn_ids)).delete(synchronize_session=False)
        Turn.query.filter(Turn.id.in_(turn_ids)).delete(synchronize_session=False)
    if round_ids:
        DeciderHistory.query.filter(DeciderHistory.round_id.in_(round_ids)).delete(synchronize_session=False)
        Round.query.filter(Round.id.in_(round_ids)).delete(synchronize_session=False)
    Player.query.filter_by(room_id=room.id).delete(synchronize_session=False)
    db.session.delete(room)
    db.session.commit()
    current_app.logger.info(f"[room-purge] code={code}")


def cleanup_expired_rooms(now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    expired = Room.query.filter(Room.expires_at.isnot(None), Room.expires_at < now).all()
    for room in expired:
        purge_room(room)
    return len(expired)
