"""Read side: load fresh rows and turn them into state-machine views.

Every operation calls these immediately before deciding; nothing read
here is cached between requests.
"""

from typing import Optional, Tuple

from hotseat.errors import NotFoundError
from hotseat.models import Answer, DeciderHistory, Player, Room, Round, Turn
from .state_machine import AnswerView, PlayerView, RoomView, RoundView, Snapshot, TurnView


def get_or_404(model, row_id, label: str):
    row = model.query.get(row_id) if row_id is not None else None
    if row is None:
        raise NotFoundError(f'{label} not found')
    return row


def room_view(room: Room) -> RoomView:
    return RoomView(
        id=room.id,
        status=room.status,
        total_rounds=room.total_rounds,
        current_round=room.current_round,
        current_turn=room.current_turn,
        host_id=room.host_id,
    )


def round_view(rnd: Round) -> RoundView:
    return RoundView(id=rnd.id, round_number=rnd.round_number, is_complete=bool(rnd.is_complete),
                     current_turn=rnd.current_turn or 1)


def turn_view(turn: Turn) -> TurnView:
    return TurnView(
        id=turn.id,
        round_id=turn.round_id,
        turn_number=turn.turn_number,
        decider_id=turn.decider_id,
        status=turn.status,
        category=turn.category,
        scenario_id=turn.scenario_id,
    )


def player_views(room_id: int) -> Tuple[PlayerView, ...]:
    players = Player.query.filter_by(room_id=room_id).order_by(Player.id).all()
    return tuple(PlayerView(id=p.id, is_host=bool(p.is_host), has_been_decider=bool(p.has_been_decider))
                 for p in players)


def room_snapshot(room: Room, rnd: Optional[Round] = None, turn: Optional[Turn] = None) -> Snapshot:
    history = ()
    answers = ()
    if rnd is not None:
        history = tuple(h.player_id for h in DeciderHistory.query.filter_by(round_id=rnd.id).all())
    if turn is not None:
        answers = tuple(AnswerView(id=a.id, player_id=a.player_id, ai_score=a.ai_score)
                        for a in Answer.query.filter_by(turn_id=turn.id).all())
    return Snapshot(
        room=room_view(room),
        players=player_views(room.id),
        round=round_view(rnd) if rnd is not None else None,
        turn=turn_view(turn) if turn is not None else None,
        decider_history=history,
        answers=answers,
    )


def load_turn(turn_id) -> Tuple[Turn, Round, Room, Snapshot]:
    turn = get_or_404(Turn, turn_id, 'Turn')
    rnd = get_or_404(Round, turn.round_id, 'Round')
    room = get_or_404(Room, rnd.room_id, 'Room')
    return turn, rnd, room, room_snapshot(room, rnd, turn)


def current_round(room: Room) -> Optional[Round]:
    if not room.current_round:
        return None
    return Round.query.filter_by(room_id=room.id, round_number=room.current_round).first()


def latest_turn(rnd: Optional[Round]) -> Optional[Turn]:
    if rnd is None:
        return None
    return Turn.query.filter_by(round_id=rnd.id).order_by(Turn.turn_number.desc()).first()
