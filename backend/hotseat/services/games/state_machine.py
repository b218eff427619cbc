"""Turn/round progression decisions.

Every function here takes a ``Snapshot`` of persisted rows and returns a
``Transition``: what kind of change is due and the ordered row mutations
that realize it. Nothing in this module touches the database, Flask or
the clock. Randomness comes only from the ``chooser`` argument.

Per turn the status only moves forward::

    selecting_category -> selecting_scenario -> answering -> voting -> completed

"Not ready yet" is reported as a ``BLOCKED`` transition with a reason.
Only a structurally broken snapshot raises ``InvariantViolation``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from hotseat.errors import InvariantViolation

TURN_FLOW = ('selecting_category', 'selecting_scenario', 'answering', 'voting', 'completed')

# Transition kinds
BLOCKED = 'blocked'
UNCHANGED = 'unchanged'
GAME_STARTED = 'game_started'
CATEGORY_SELECTED = 'category_selected'
SCENARIO_SELECTED = 'scenario_selected'
VOTING_OPENED = 'voting_opened'
VOTE_CAST = 'vote_cast'
TURN_COMPLETED = 'turn_completed'
NEXT_TURN = 'next_turn'
NEXT_ROUND = 'next_round'
GAME_COMPLETED = 'game_completed'
PLAYER_LEFT = 'player_left'


@dataclass(frozen=True)
class RoomView:
    id: int
    status: str
    total_rounds: int
    current_round: Optional[int] = None
    current_turn: Optional[int] = None
    host_id: Optional[int] = None


@dataclass(frozen=True)
class RoundView:
    id: int
    round_number: int
    is_complete: bool = False
    current_turn: int = 1


@dataclass(frozen=True)
class TurnView:
    id: int
    round_id: int
    turn_number: int
    decider_id: Optional[int]
    status: str
    category: Optional[str] = None
    scenario_id: Optional[int] = None


@dataclass(frozen=True)
class PlayerView:
    id: int
    is_host: bool = False
    has_been_decider: bool = False


@dataclass(frozen=True)
class AnswerView:
    id: int
    player_id: int
    ai_score: Optional[int] = None


@dataclass(frozen=True)
class Snapshot:
    room: Optional[RoomView]
    players: Tuple[PlayerView, ...] = ()
    round: Optional[RoundView] = None
    turn: Optional[TurnView] = None
    # Player ids already recorded as decider in ``round``
    decider_history: Tuple[int, ...] = ()
    answers: Tuple[AnswerView, ...] = ()

    @property
    def player_ids(self) -> List[int]:
        return sorted(p.id for p in self.players)


@dataclass(frozen=True)
class Ref:
    """Placeholder for the id of a row inserted earlier in the same transition."""
    alias: str


@dataclass(frozen=True)
class Mutation:
    op: str  # insert | update | increment
    table: str
    values: Dict[str, Any]
    key: Any = None  # primary key, Ref, or tuple of primary keys
    alias: Optional[str] = None
    step: str = ''
    # False for monotonic flags that must never be flipped back
    reversible: bool = True


@dataclass
class Transition:
    kind: str
    mutations: List[Mutation] = field(default_factory=list)
    reason: Optional[str] = None
    decider_id: Optional[int] = None
    game_over: bool = False

    @property
    def accepted(self) -> bool:
        return self.kind != BLOCKED

    @property
    def changed(self) -> bool:
        return bool(self.mutations)


def insert(table, alias=None, step='', **values) -> Mutation:
    return Mutation('insert', table, values, alias=alias, step=step or f'create {table}')


def update(table, key, step='', reversible=True, **values) -> Mutation:
    return Mutation('update', table, values, key=key, step=step or f'update {table}', reversible=reversible)


def increment(table, key, step='', **deltas) -> Mutation:
    return Mutation('increment', table, deltas, key=key, step=step or f'update {table}')


def blocked(reason: str) -> Transition:
    return Transition(BLOCKED, reason=reason)


def unchanged(reason: str, game_over: bool = False) -> Transition:
    return Transition(UNCHANGED, reason=reason, game_over=game_over)


def next_status(status: str) -> Optional[str]:
    """Return the only status a turn may move to from ``status``."""
    idx = TURN_FLOW.index(status)
    return TURN_FLOW[idx + 1] if idx + 1 < len(TURN_FLOW) else None


def has_reached(status: str, target: str) -> bool:
    return TURN_FLOW.index(status) >= TURN_FLOW.index(target)


def _require_room(snapshot: Snapshot) -> RoomView:
    if snapshot.room is None:
        raise InvariantViolation('Snapshot is missing its room')
    return snapshot.room


def _require_turn(snapshot: Snapshot) -> Tuple[RoomView, RoundView, TurnView]:
    room = _require_room(snapshot)
    if snapshot.round is None or snapshot.turn is None:
        raise InvariantViolation(f'Snapshot for room {room.id} is missing its round or turn')
    if snapshot.turn.round_id != snapshot.round.id:
        raise InvariantViolation(
            f'Turn {snapshot.turn.id} belongs to round {snapshot.turn.round_id}, not {snapshot.round.id}'
        )
    if snapshot.turn.status not in TURN_FLOW:
        raise InvariantViolation(f'Turn {snapshot.turn.id} has unknown status {snapshot.turn.status!r}')
    return room, snapshot.round, snapshot.turn


def expected_answer_count(player_ids: Iterable[int], decider_id: Optional[int], answered_ids: Iterable[int]) -> int:
    """Minimum number of answers before scoring may begin.

    The decider is not required to answer. If they did answer, everyone is
    expected; if they left the room, every remaining player is.
    """
    players = set(player_ids)
    answered = set(answered_ids)
    if decider_id in answered or decider_id not in players:
        return len(players)
    return len(players) - 1


def answers_ready(snapshot: Snapshot) -> bool:
    """Floor check: at least the expected number of current players answered."""
    _, _, turn = _require_turn(snapshot)
    players = set(snapshot.player_ids)
    answered = {a.player_id for a in snapshot.answers if a.player_id in players}
    if not answered:
        return False
    return len(answered) >= expected_answer_count(players, turn.decider_id, answered)


def decide_start(snapshot: Snapshot, chooser, min_players: int = 2) -> Transition:
    room = _require_room(snapshot)
    if room.status == 'in_progress':
        return unchanged('already_started')
    if room.status != 'waiting':
        return blocked('game_not_waiting')
    player_ids = snapshot.player_ids
    if len(player_ids) < min_players:
        return blocked('not_enough_players')

    decider_id = chooser.choose(player_ids)
    mutations = [
        update('room', room.id, step='update room status',
               status='in_progress', current_round=1, current_turn=1, round_voting_phase=False),
        insert('round', alias='round', step='create round',
               room_id=room.id, round_number=1, status='selecting_category',
               is_complete=False, current_turn=1),
        insert('turn', alias='turn', step='create turn',
               round_id=Ref('round'), turn_number=1, decider_id=decider_id, status='selecting_category'),
        insert('decider_history', step='add decider history',
               round_id=Ref('round'), player_id=decider_id, turn_number=1),
        update('player', decider_id, step='mark decider', has_been_decider=True),
    ]
    return Transition(GAME_STARTED, mutations, decider_id=decider_id)


def decide_category(snapshot: Snapshot, category: str) -> Transition:
    room, rnd, turn = _require_turn(snapshot)
    if room.status != 'in_progress':
        return blocked('game_not_in_progress')
    if turn.status == 'selecting_category' or (turn.status == 'selecting_scenario' and not turn.category):
        return Transition(CATEGORY_SELECTED, [
            update('turn', turn.id, step='update category', category=category, status='selecting_scenario'),
            update('round', rnd.id, step='update round status', status='selecting_scenario'),
        ])
    if turn.status == 'selecting_scenario':
        return unchanged('category_already_selected')
    return blocked('turn_not_selecting_category')


def decide_scenario(snapshot: Snapshot, scenario_id: Optional[int] = None,
                    custom_text: Optional[str] = None, context: Optional[str] = None) -> Transition:
    room, rnd, turn = _require_turn(snapshot)
    if room.status != 'in_progress':
        return blocked('game_not_in_progress')
    if turn.status != 'selecting_scenario' or not turn.category:
        return blocked('turn_not_selecting_scenario')

    mutations = []
    if custom_text:
        mutations.append(insert('scenario', alias='scenario', step='create custom scenario',
                                turn_id=turn.id, scenario_text=custom_text, is_custom=True))
        target = Ref('scenario')
    elif scenario_id is not None:
        target = scenario_id
    else:
        return blocked('no_scenario_chosen')

    mutations += [
        update('turn', turn.id, step='update scenario', scenario_id=target, context=context, status='answering'),
        update('round', rnd.id, step='update round status', status='answering'),
    ]
    return Transition(SCENARIO_SELECTED, mutations)


def decide_voting(snapshot: Snapshot) -> Transition:
    """answering -> voting, once the floor is met and every answer is scored."""
    room, rnd, turn = _require_turn(snapshot)
    if has_reached(turn.status, 'voting'):
        return unchanged('voting_already_open')
    if room.status != 'in_progress':
        return blocked('game_not_in_progress')
    if turn.status != 'answering':
        return blocked('turn_not_answering')
    if not answers_ready(snapshot):
        return blocked('waiting_for_answers')
    players = set(snapshot.player_ids)
    if any(a.ai_score is None for a in snapshot.answers if a.player_id in players):
        return blocked('answers_not_scored')
    return Transition(VOTING_OPENED, [
        update('turn', turn.id, step='open voting', status='voting'),
        update('round', rnd.id, step='update round status', status='voting'),
        update('room', room.id, step='update room voting phase', round_voting_phase=True),
    ])


def decide_vote(snapshot: Snapshot, answer: AnswerView, voter_id: int) -> Transition:
    room, _, turn = _require_turn(snapshot)
    if room.status != 'in_progress':
        return blocked('game_not_in_progress')
    if turn.status != 'voting':
        return blocked('voting_not_open')
    mutations = [
        insert('vote', alias='vote', step='record vote', answer_id=answer.id, voter_id=voter_id),
        increment('answer', answer.id, step='count vote', vote_points=1),
    ]
    if answer.player_id in snapshot.player_ids:
        mutations.append(increment('player', answer.player_id, step='award vote point', total_points=1))
    return Transition(VOTE_CAST, mutations)


def decide_finish_voting(snapshot: Snapshot) -> Transition:
    """voting -> completed, crediting each scored answer's author once."""
    room, rnd, turn = _require_turn(snapshot)
    if turn.status == 'completed':
        return unchanged('turn_already_completed')
    if room.status != 'in_progress':
        return blocked('game_not_in_progress')
    if turn.status != 'voting':
        return blocked('turn_not_voting')

    mutations = [
        update('turn', turn.id, step='complete turn', status='completed'),
        update('round', rnd.id, step='update round status', status='completed'),
    ]
    players = set(snapshot.player_ids)
    for answer in sorted(snapshot.answers, key=lambda a: a.id):
        if answer.ai_score and answer.player_id in players:
            mutations.append(increment('player', answer.player_id, step='award answer points',
                                       total_points=answer.ai_score))
    mutations.append(update('room', room.id, step='update room voting phase', round_voting_phase=False))
    return Transition(TURN_COMPLETED, mutations)


def decide_advance(snapshot: Snapshot, chooser) -> Transition:
    """Pick the next decider, start the next round, or end the game."""
    room, rnd, turn = _require_turn(snapshot)
    if room.status == 'completed':
        return unchanged('game_completed', game_over=True)
    if room.status != 'in_progress':
        return blocked('game_not_in_progress')
    if turn.status != 'completed':
        return blocked('turn_not_completed')
    if rnd.round_number < (room.current_round or 0) or turn.turn_number < rnd.current_turn:
        return unchanged('already_advanced')

    player_ids = snapshot.player_ids
    if len(player_ids) <= 1:
        return complete_game(room, rnd, reason='not_enough_players')
    if rnd.is_complete:
        return advance_round(snapshot, chooser)

    decided = set(snapshot.decider_history)
    eligible = [pid for pid in player_ids if pid not in decided]
    if not eligible:
        return advance_round(snapshot, chooser)

    decider_id = chooser.choose(eligible)
    number = rnd.current_turn + 1
    mutations = [
        insert('turn', alias='turn', step='create turn',
               round_id=rnd.id, turn_number=number, decider_id=decider_id, status='selecting_category'),
        insert('decider_history', step='add decider history',
               round_id=rnd.id, player_id=decider_id, turn_number=number),
        update('round', rnd.id, step='update round turn', current_turn=number, status='selecting_category'),
        update('room', room.id, step='update room turn', current_turn=number, round_voting_phase=False),
        update('player', decider_id, step='mark decider', has_been_decider=True),
    ]
    return Transition(NEXT_TURN, mutations, decider_id=decider_id)


def advance_round(snapshot: Snapshot, chooser) -> Transition:
    """Close ``snapshot.round`` and either open the next one or finish the game."""
    room = _require_room(snapshot)
    rnd = snapshot.round
    if rnd is None:
        raise InvariantViolation(f'Room {room.id} has no round to advance')
    if rnd.round_number >= room.total_rounds:
        return complete_game(room, rnd, reason='all_rounds_played')

    player_ids = snapshot.player_ids
    if len(player_ids) <= 1:
        return complete_game(room, rnd, reason='not_enough_players')

    decider_id = chooser.choose(player_ids)
    number = rnd.round_number + 1
    mutations = [
        insert('round', alias='round', step='create round',
               room_id=room.id, round_number=number, status='selecting_category',
               is_complete=False, current_turn=1),
        insert('turn', alias='turn', step='create turn',
               round_id=Ref('round'), turn_number=1, decider_id=decider_id, status='selecting_category'),
        insert('decider_history', step='add decider history',
               round_id=Ref('round'), player_id=decider_id, turn_number=1),
        update('player', tuple(pid for pid in player_ids if pid != decider_id),
               step='reset decider flags', has_been_decider=False),
        update('player', decider_id, step='mark decider', has_been_decider=True),
    ]
    if not rnd.is_complete:
        mutations.append(update('round', rnd.id, step='complete round', reversible=False,
                                is_complete=True, status='completed'))
    mutations.append(update('room', room.id, step='update room round',
                            current_round=number, current_turn=1, round_voting_phase=False))
    return Transition(NEXT_ROUND, mutations, decider_id=decider_id)


def complete_game(room: RoomView, rnd: Optional[RoundView], reason: str) -> Transition:
    mutations = []
    if rnd is not None and not rnd.is_complete:
        mutations.append(update('round', rnd.id, step='complete round', reversible=False,
                                is_complete=True, status='completed'))
    mutations.append(update('room', room.id, step='complete game', reversible=False,
                            status='completed', round_voting_phase=False))
    return Transition(GAME_COMPLETED, mutations, reason=reason, game_over=True)


def decide_departure(snapshot: Snapshot, player_id: int) -> Transition:
    """Bookkeeping owed before ``player_id`` is removed from the room.

    Hands the host role to the longest-present remaining player and ends
    an in-progress game that would be left with one player or none.
    """
    room = _require_room(snapshot)
    departing = next((p for p in snapshot.players if p.id == player_id), None)
    if departing is None:
        raise InvariantViolation(f'Player {player_id} is not in room {room.id}')
    remaining = [p for p in snapshot.players if p.id != player_id]

    mutations = []
    if departing.is_host and remaining:
        successor = min(remaining, key=lambda p: p.id)
        mutations += [
            update('player', successor.id, step='promote host', is_host=True),
            update('room', room.id, step='update room host', host_id=successor.id),
        ]
    game_over = room.status == 'in_progress' and len(remaining) <= 1
    if game_over:
        mutations += complete_game(room, snapshot.round, reason='not_enough_players').mutations
    return Transition(PLAYER_LEFT, mutations, reason='not_enough_players' if game_over else None,
                      game_over=game_over)


def pick_scenarios(texts: Sequence[str], chooser, count: int) -> List[str]:
    return chooser.sample(list(texts), min(count, len(texts)))
