"""Progression orchestrator.

The only code that writes game rows. Each operation re-reads the rows it
needs, asks the state machine for a transition, applies that transition's
mutations through a ``Saga`` and broadcasts the result to the room.
"""

from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from hotseat import db
from hotseat.errors import AuthorizationError, NotFoundError, PartialWriteError, ValidationError
from hotseat.models import Answer, Player, Room, Round, Scenario, Turn
from . import scenario_bank
from . import state_machine as sm
from .notifications import publish, publish_state
from .scheduler import schedule_answer_scoring
from .snapshots import current_round, get_or_404, latest_turn, load_turn, room_snapshot
from .transitions import Outcome, apply_transition

VOTE_TYPES = ('up', 'down')


def get_chooser():
    return current_app.extensions['hotseat.chooser']


def _lost_advance_race(exc: PartialWriteError) -> bool:
    return exc.step in ('create turn', 'create round') and isinstance(exc.__cause__, IntegrityError)


def _authorize_decider(turn: Turn, player_id, timed_out: bool) -> None:
    # An expired client timer may be reported by anyone in the room
    if timed_out:
        return
    if player_id is None or turn.decider_id != player_id:
        raise AuthorizationError('You are not the decider for this turn')


def _require_member(room: Room, player_id) -> Player:
    player = Player.query.filter_by(id=player_id, room_id=room.id).first() if player_id is not None else None
    if player is None:
        raise AuthorizationError('You are not a player in this room')
    return player


# ---- Operations ----

def start_game(room_id, host_id) -> Outcome:
    room = get_or_404(Room, room_id, 'Room')
    if room.status == 'in_progress':
        current_app.logger.info(f"[start-skip] room={room.id} already in progress")
        return Outcome(kind=sm.UNCHANGED, reason='already_started')
    if room.host_id is None or room.host_id != host_id:
        raise AuthorizationError('Only the host can start the game')

    transition = sm.decide_start(room_snapshot(room), get_chooser(), int(current_app.config.get('MIN_PLAYERS', 2)))
    if not transition.changed:
        return Outcome.from_transition(transition)
    created = apply_transition(transition, 'start game')
    current_app.logger.info(
        f"[start] room={room.id} round={created['round'].id} turn={created['turn'].id} decider={transition.decider_id}"
    )
    publish(room.room_code, 'turn_updated', {'turn': created['turn'].to_dict()})
    publish_state(room.room_code)
    return Outcome.from_transition(transition, turn_id=created['turn'].id, decider_id=transition.decider_id)


def select_category(turn_id, category: Optional[str], player_id, timed_out: bool = False) -> Outcome:
    turn, rnd, room, snapshot = load_turn(turn_id)
    _authorize_decider(turn, player_id, timed_out)

    known = scenario_bank.categories()
    if not category:
        if not timed_out:
            raise ValidationError('Category is required')
        category = get_chooser().choose(known)
    elif category not in known:
        raise ValidationError(f'Unknown category: {category}')

    transition = sm.decide_category(snapshot, category)
    apply_transition(transition, 'select category')
    if transition.changed:
        current_app.logger.info(f"[category] room={room.id} turn={turn.id} category={category!r} timed_out={timed_out}")
        db.session.refresh(turn)
        publish(room.room_code, 'turn_updated', {'turn': turn.to_dict()})
        publish_state(room.room_code)
    return Outcome.from_transition(transition, category=turn.category)


def generate_scenarios(turn_id) -> list:
    """Attach a batch of pre-written scenarios to the turn; repeat calls return the same batch."""
    turn, _, room, _ = load_turn(turn_id)
    if not turn.category:
        raise ValidationError('Select a category before generating scenarios')

    existing = Scenario.query.filter_by(turn_id=turn.id, is_custom=False).order_by(Scenario.id).all()
    if existing:
        return existing
    if turn.status != 'selecting_scenario':
        raise ValidationError('Scenarios can only be generated while the scenario is being chosen')

    texts = scenario_bank.scenarios_for(turn.category)
    if not texts:
        raise NotFoundError(f'No scenarios for category {turn.category}')
    count = int(current_app.config.get('SCENARIOS_PER_TURN', 4))
    picked = sm.pick_scenarios(texts, get_chooser(), count)
    rows = [Scenario(turn_id=turn.id, scenario_text=text, is_custom=False) for text in picked]
    db.session.add_all(rows)
    db.session.commit()
    current_app.logger.info(f"[scenarios] room={room.id} turn={turn.id} count={len(rows)}")
    publish(room.room_code, 'scenarios_generated', {'turn_id': turn.id, 'scenarios': [s.to_dict() for s in rows]})
    return rows


def select_scenario(turn_id, scenario_id=None, custom_text: Optional[str] = None, context: Optional[str] = None,
                    player_id=None, timed_out: bool = False) -> Outcome:
    turn, rnd, room, snapshot = load_turn(turn_id)
    _authorize_decider(turn, player_id, timed_out)

    custom_text = (custom_text or '').strip() or None
    if scenario_id is not None:
        scenario = Scenario.query.filter_by(id=scenario_id, turn_id=turn.id).first()
        if scenario is None:
            raise NotFoundError('Scenario not found for this turn')
    elif custom_text is None:
        if not timed_out:
            raise ValidationError('A scenario id or custom text is required')
        if turn.status == 'selecting_scenario' and turn.category:
            scenario_id = get_chooser().choose(generate_scenarios(turn.id)).id

    transition = sm.decide_scenario(snapshot, scenario_id=scenario_id, custom_text=custom_text, context=context)
    apply_transition(transition, 'select scenario')
    if transition.changed:
        db.session.refresh(turn)
        current_app.logger.info(
            f"[scenario] room={room.id} turn={turn.id} scenario={turn.scenario_id} custom={custom_text is not None}"
        )
        publish(room.room_code, 'turn_updated', {'turn': turn.to_dict()})
        publish_state(room.room_code)
    return Outcome.from_transition(transition, scenario_id=turn.scenario_id)


def _upsert_answer(turn_id, player_id, text) -> Answer:
    """Insert or overwrite the (turn, player) answer."""
    for _ in range(2):
        answer = Answer.query.filter_by(turn_id=turn_id, player_id=player_id).first()
        if answer is not None:
            if answer.ai_score is not None:
                raise ValidationError('Your answer has already been scored')
            answer.answer_text = text
        else:
            answer = Answer(turn_id=turn_id, player_id=player_id, answer_text=text)
        db.session.add(answer)
        try:
            db.session.commit()
            return answer
        except IntegrityError:
            # A concurrent submission inserted first; overwrite it instead
            db.session.rollback()
    raise ValidationError('Could not save your answer, please retry')


def submit_answer(turn_id, player_id, text: str) -> Outcome:
    turn, rnd, room, _ = load_turn(turn_id)
    _require_member(room, player_id)
    text = (text or '').strip()
    if not text:
        raise ValidationError('Answer text is required')
    if room.status != 'in_progress' or turn.status != 'answering':
        raise ValidationError('This turn is not accepting answers')

    answer = _upsert_answer(turn.id, player_id, text)
    answer_data = answer.to_dict()
    current_app.logger.info(f"[answer] room={room.id} turn={turn.id} player={player_id} answer={answer.id}")
    publish(room.room_code, 'answer_submitted', {'turn_id': turn.id, 'player_id': player_id})

    _, _, _, snapshot = load_turn(turn.id)
    ready = sm.answers_ready(snapshot)
    if ready:
        schedule_answer_scoring(current_app._get_current_object(), turn.id)
    return Outcome(kind='answer_submitted', changed=True, data={'answer': answer_data, 'scoring_started': ready})


def submit_vote(answer_id, voter_id, vote_type: str = 'up') -> Outcome:
    """Record an upvote. A downvote is accepted but leaves no trace."""
    if vote_type not in VOTE_TYPES:
        raise ValidationError('vote_type must be up or down')
    answer = get_or_404(Answer, answer_id, 'Answer')
    turn, rnd, room, snapshot = load_turn(answer.turn_id)
    _require_member(room, voter_id)

    view = sm.AnswerView(id=answer.id, player_id=answer.player_id, ai_score=answer.ai_score)
    transition = sm.decide_vote(snapshot, view, voter_id)
    if not transition.accepted:
        raise ValidationError('Voting is not open for this turn')
    if vote_type == 'down':
        current_app.logger.info(f"[vote-down] room={room.id} turn={turn.id} answer={answer.id} voter={voter_id}")
        return Outcome(kind=sm.UNCHANGED, reason='downvote_ignored', data={'vote': None, 'vote_points': answer.vote_points})
    created = apply_transition(transition, 'submit vote')
    db.session.refresh(answer)
    current_app.logger.info(f"[vote] room={room.id} turn={turn.id} answer={answer.id} voter={voter_id}")
    publish(room.room_code, 'vote_cast', {'vote': created['vote'].to_dict(), 'vote_points': answer.vote_points})
    publish_state(room.room_code)
    return Outcome.from_transition(transition, vote=created['vote'].to_dict(), vote_points=answer.vote_points)


def finish_voting(room_id) -> Outcome:
    """Close voting on the room's current turn, then advance."""
    room = get_or_404(Room, room_id, 'Room')
    rnd = current_round(room)
    turn = latest_turn(rnd)
    if turn is None:
        return Outcome(kind=sm.BLOCKED, reason='no_active_turn')

    _, _, _, snapshot = load_turn(turn.id)
    transition = sm.decide_finish_voting(snapshot)
    if not transition.accepted:
        return Outcome.from_transition(transition)
    apply_transition(transition, 'finish voting')
    if transition.changed:
        current_app.logger.info(f"[finish-voting] room={room.id} round={rnd.id} turn={turn.id}")
        db.session.refresh(turn)
        publish(room.room_code, 'turn_updated', {'turn': turn.to_dict()})
    return advance_turn(turn.id)


def advance_turn(turn_id) -> Outcome:
    turn, rnd, room, snapshot = load_turn(turn_id)
    transition = sm.decide_advance(snapshot, get_chooser())
    if not transition.changed:
        return Outcome.from_transition(transition)

    try:
        created = apply_transition(transition, 'advance turn')
    except PartialWriteError as exc:
        if not _lost_advance_race(exc):
            raise
        current_app.logger.warning(f"[advance-race] room={room.id} round={rnd.id} turn={turn.id} another client advanced first")
        return Outcome(kind=sm.UNCHANGED, reason='already_advanced')

    new_turn = created.get('turn')
    current_app.logger.info(
        f"[advance] room={room.id} from_round={rnd.round_number} from_turn={turn.turn_number} kind={transition.kind} "
        f"decider={transition.decider_id} new_turn={new_turn.id if new_turn else None}"
    )
    if new_turn is not None:
        publish(room.room_code, 'turn_updated', {'turn': new_turn.to_dict()})
    if 'round' in created:
        publish(room.room_code, 'round_updated', {'round': created['round'].to_dict()})
    if transition.game_over:
        publish(room.room_code, 'game_completed', {'room_id': room.id, 'reason': transition.reason})
    publish_state(room.room_code)
    return Outcome.from_transition(
        transition,
        turn_id=new_turn.id if new_turn else None,
        decider_id=transition.decider_id,
    )


def get_game_state(room_id) -> Dict[str, Any]:
    room = get_or_404(Room, room_id, 'Room')
    rounds = Round.query.filter_by(room_id=room.id).order_by(Round.round_number).all()
    players = Player.query.filter_by(room_id=room.id).order_by(Player.total_points.desc(), Player.id).all()
    rnd = current_round(room)
    turns = Turn.query.filter_by(round_id=rnd.id).order_by(Turn.turn_number).all() if rnd else []
    return {
        'room': room.to_dict(),
        'rounds': [r.to_dict() for r in rounds],
        'players': [p.to_dict() for p in players],
        'turns': [t.to_dict() for t in turns],
    }
