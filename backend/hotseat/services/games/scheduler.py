from typing import Set

from hotseat import socketio
from hotseat.errors import GameError
from .scoring import score_pending_answers


_scheduled_turns: Set[int] = set()


def schedule_answer_scoring(app, turn_id: int) -> None:
    """Score the turn's pending answers in the background.

    - Runs inline in TESTING mode, inside the caller's app context
    - Ensures a single scoring pass per turn at a time; answers submitted while
      a pass runs are scored by that same pass
    - Re-triggering after a pass finished is harmless: only unscored answers are touched
    """
    if turn_id in _scheduled_turns:
        app.logger.info(f"[scoring-skip] turn={turn_id} already scheduled")
        return

    if app.config.get('TESTING'):
        score_pending_answers(turn_id)
        return

    _scheduled_turns.add(turn_id)
    app.logger.info(f"[scoring-set] turn={turn_id}")

    def _worker(tid: int):
        try:
            with app.app_context():
                try:
                    outcome = score_pending_answers(tid)
                    app.logger.info(f"[scoring-done] turn={tid} kind={outcome.kind} reason={outcome.reason}")
                except GameError as exc:
                    app.logger.error(f"[scoring-error] turn={tid} error={exc.message}")
        finally:
            _scheduled_turns.discard(tid)

    socketio.start_background_task(_worker, turn_id)
