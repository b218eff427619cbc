"""Answer scoring coordinator.

Scores every answer of a turn that still lacks a score, then opens voting.
Remote calls run concurrently; all database writes stay on the calling
thread. A failed or slow call never blocks the turn: the answer gets the
fallback score instead.
"""

import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Dict, List

from flask import current_app

from hotseat import db
from hotseat.errors import InvariantViolation
from hotseat.models import Answer, Scenario
from . import state_machine as sm
from .notifications import publish, publish_state
from .scorer import ScoreResult
from .snapshots import load_turn
from .transitions import Outcome, apply_transition

FALLBACK_SCORE = 5
FALLBACK_FEEDBACK = 'Error processing response'
MIN_SCORE = 1
MAX_SCORE = 10


def clamp_score(score) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(score)))


def get_scorer():
    return current_app.extensions['hotseat.scorer']


def _score_all(scorer, category: str, scenario_text: str, context: str, answers: List[Answer]) -> Dict[int, ScoreResult]:
    timeout = float(current_app.config.get('SCORING_TIMEOUT_SEC', 20.0))
    workers = max(1, min(int(current_app.config.get('SCORING_MAX_WORKERS', 4)), len(answers)))
    logger = current_app.logger
    results: Dict[int, ScoreResult] = {}

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix='hotseat-scoring')
    try:
        futures = {
            a.id: executor.submit(scorer.score, category, scenario_text, context, a.answer_text)
            for a in answers
        }
        deadline = time.monotonic() + timeout
        for answer_id, future in futures.items():
            try:
                result = future.result(timeout=max(0.0, deadline - time.monotonic()))
                results[answer_id] = ScoreResult(clamp_score(result.score), result.feedback)
            except FutureTimeout:
                logger.warning(f"[scoring-timeout] answer={answer_id} after={timeout}s")
                results[answer_id] = ScoreResult(FALLBACK_SCORE, FALLBACK_FEEDBACK)
            except Exception as exc:
                logger.warning(f"[scoring-fallback] answer={answer_id} error={exc!r}")
                results[answer_id] = ScoreResult(FALLBACK_SCORE, FALLBACK_FEEDBACK)
    finally:
        # In-flight calls are abandoned, not cancelled
        executor.shutdown(wait=False)
    return results


def _store_score(answer_id: int, result: ScoreResult) -> bool:
    """Write a score unless another pass already did; return whether this one won."""
    count = Answer.query.filter(Answer.id == answer_id, Answer.ai_score.is_(None)).update(
        {'ai_score': result.score, 'ai_feedback': result.feedback},
        synchronize_session=False,
    )
    db.session.commit()
    return count > 0


def _pending_answers(turn_id) -> List[Answer]:
    return Answer.query.filter(Answer.turn_id == turn_id, Answer.ai_score.is_(None)).order_by(Answer.id).all()


def score_pending_answers(turn_id) -> Outcome:
    """Score unscored answers until none are left, then open voting.

    Answers that arrive while a batch is being scored are picked up by the
    next batch of the same pass.
    """
    turn, rnd, room, snapshot = load_turn(turn_id)
    if sm.has_reached(turn.status, 'voting'):
        return Outcome(kind=sm.UNCHANGED, reason='voting_already_open')
    if turn.status != 'answering':
        return Outcome(kind=sm.BLOCKED, reason='turn_not_answering')
    if not sm.answers_ready(snapshot):
        return Outcome(kind=sm.BLOCKED, reason='waiting_for_answers')

    scenario = Scenario.query.get(turn.scenario_id) if turn.scenario_id else None
    if scenario is None:
        raise InvariantViolation(f'Turn {turn.id} is answering without a scenario')

    scorer = get_scorer()
    scored = 0
    while True:
        pending = _pending_answers(turn.id)
        if pending:
            current_app.logger.info(f"[scoring] room={room.id} turn={turn.id} pending={[a.id for a in pending]}")
            results = _score_all(scorer, turn.category or '', scenario.scenario_text, turn.context or '', pending)
            for answer in pending:
                if not _store_score(answer.id, results[answer.id]):
                    continue
                scored += 1
                db.session.refresh(answer)
                publish(room.room_code, 'answer_updated', {'answer': answer.to_dict()})
            continue

        _, _, _, snapshot = load_turn(turn.id)
        transition = sm.decide_voting(snapshot)
        # An answer landed between the last read and the snapshot
        if transition.reason != 'answers_not_scored':
            break

    apply_transition(transition, 'open voting')
    if transition.changed:
        db.session.refresh(turn)
        current_app.logger.info(f"[voting-open] room={room.id} turn={turn.id} scored={scored}")
        publish(room.room_code, 'turn_updated', {'turn': turn.to_dict()})
        publish_state(room.room_code)
    return Outcome.from_transition(transition, scored=scored)
