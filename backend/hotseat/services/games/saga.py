"""Sequential writes with compensation.

The record store commits each row on its own, so a multi-row change is a
sequence of steps. Each step returns the callable that undoes it. When a
step fails, the undo callables of the steps already applied run in
reverse order and a single ``PartialWriteError`` is raised.

Compensation is best effort: a crash in the middle of it leaves orphaned
rows. Every failure is logged with the steps already written so the rows
can be reconciled by hand.
"""

import logging
from typing import Callable, List, Optional, Tuple

from hotseat.errors import PartialWriteError

Undo = Callable[[], None]


class Saga:

    def __init__(self, operation: str, rollback: Callable[[], None], logger: Optional[logging.Logger] = None):
        self.operation = operation
        self._rollback = rollback
        self._logger = logger or logging.getLogger(__name__)
        self._undo: List[Tuple[str, Undo]] = []
        self.written: List[str] = []

    def step(self, label: str, action: Callable[[], Optional[Undo]]):
        try:
            undo = action()
        except Exception as exc:
            self._rollback()
            self._logger.error(
                f"[saga-fail] op={self.operation} step={label!r} written={self.written} error={exc!r}"
            )
            failures = self.compensate()
            raise PartialWriteError(self.operation, label, self.written, failures) from exc
        self.written.append(label)
        if undo is not None:
            self._undo.append((label, undo))

    def compensate(self) -> List[str]:
        """Undo applied steps newest first; return the labels that could not be undone."""
        failures = []
        while self._undo:
            label, undo = self._undo.pop()
            try:
                undo()
            except Exception as exc:
                self._rollback()
                failures.append(label)
                self._logger.error(
                    f"[saga-compensate-fail] op={self.operation} step={label!r} error={exc!r}"
                )
            else:
                self._logger.info(f"[saga-compensate] op={self.operation} step={label!r}")
        return failures
