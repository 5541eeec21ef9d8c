"""Error hierarchy for the gigmarket engine.

Every user-facing error carries the id of the entity involved and, where it
applies, the state that made the operation illegal, so callers can render a
message without re-querying.

- ValidationError: malformed or missing input. Fix and resubmit.
- ConflictError: duplicate application or a lost race. Re-fetch state.
- InvalidStateError: operation not legal for the current state.
- NotFoundError: referenced job, application or entry is absent.
- UnauthorizedError: actor is not a party allowed to perform the operation.
- IntegrityError: internal invariant broken. Fatal, surfaced to operators.
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base for all gigmarket errors."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        current_state: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id
        self.current_state = current_state

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "entity_id": self.entity_id,
            "current_state": self.current_state,
        }


class ValidationError(MarketplaceError, ValueError):
    """Raised for malformed or missing input."""

    pass


class ConflictError(MarketplaceError):
    """Raised for duplicates and for concurrent operations that lost a race."""

    pass


class InvalidStateError(MarketplaceError):
    """Raised when an operation is not legal for the entity's current state."""

    pass


class NotFoundError(MarketplaceError):
    """Raised when a referenced job, application or wallet entry does not exist."""

    pass


class UnauthorizedError(MarketplaceError):
    """Raised when the actor is not allowed to perform the operation."""

    pass


class IntegrityError(MarketplaceError):
    """Raised when stored state violates an engine invariant.

    Never user-facing and never swallowed: e.g. a filled job with no
    accepted application.
    """

    pass


class DuplicateRecordError(Exception):
    """Raised by storage backends when a uniqueness constraint is violated.

    Internal to the storage layer; services translate it into a
    ConflictError or an idempotent no-op.
    """

    def __init__(self, table: str, key: str):
        super().__init__(f"Duplicate record in {table}: {key}")
        self.table = table
        self.key = key
