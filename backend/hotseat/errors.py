"""Exception hierarchy for game operations.

Routes translate any ``GameError`` into ``{"error": message}`` with the
error's HTTP status. "Not ready yet" conditions are not errors; see
``Outcome`` in the orchestrator.
"""

from typing import Any, Dict, List, Optional


class GameError(Exception):
    """Base exception for all hotseat game errors."""
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {'error': self.message}


class ValidationError(GameError):
    """Raised when a request is malformed or arrives in the wrong phase."""
    status_code = 400


class AuthorizationError(GameError):
    """Raised when the acting player does not hold the required role."""
    status_code = 403


class NotFoundError(GameError):
    status_code = 404


class InvariantViolation(GameError):
    """Raised when a snapshot breaks a structural invariant.

    Never retried; the state needs an operator to look at it.
    """
    status_code = 500


class PartialWriteError(GameError):
    """Raised when one step of a multi-row write sequence fails.

    Earlier steps have been compensated on a best-effort basis;
    ``compensation_failures`` lists any undo step that failed as well.
    """
    status_code = 500

    def __init__(
        self,
        operation: str,
        step: str,
        written: Optional[List[str]] = None,
        compensation_failures: Optional[List[str]] = None,
    ):
        self.operation = operation
        self.step = step
        self.written = list(written or [])
        self.compensation_failures = list(compensation_failures or [])
        super().__init__(f"Failed to {step}")

    def to_dict(self) -> Dict[str, Any]:
        return {'error': self.message, 'operation': self.operation}


class ScoringError(GameError):
    """Raised by a scorer when the remote call fails or cannot be parsed."""
    status_code = 502
