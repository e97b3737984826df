"""
Shift Engine Exceptions

Every rejection carries a machine-readable ``code`` so the API layer can
surface it unchanged to callers.
"""

from __future__ import annotations


class ShiftEngineError(Exception):
    """Base exception for all shift and earnings engine errors."""

    code: str = "ENGINE_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ValidationError(ShiftEngineError):
    """Rejected synchronously; no state was mutated."""

    code = "VALIDATION_ERROR"


class ConflictError(ShiftEngineError):
    """The data store rejected a write that collides with a concurrent one."""

    code = "CONFLICT"


class NotFoundError(ShiftEngineError):
    """Referenced shift, rule, motivation or deposit does not exist."""

    code = "NOT_FOUND"


class TransientComputationError(ShiftEngineError):
    """One motivation could not be evaluated; the rest of the computation continues."""

    code = "TRANSIENT_COMPUTATION_ERROR"

    def __init__(self, message: str, motivation_id: object | None = None) -> None:
        self.motivation_id = motivation_id
        super().__init__(message)
