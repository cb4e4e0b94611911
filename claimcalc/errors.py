"""Error kinds raised by the reserving core.

Callers (API handlers, CLI commands) switch on the class to decide how a
failure is presented; the message always carries the original cause.
"""

from __future__ import annotations


class ReservingError(Exception):
    """Base class for every reserving failure."""


class MissingSchemaError(ReservingError):
    """Requested table has not been provisioned yet.

    Read paths never raise this; it is attached to an empty QueryResult so
    callers can tell "no data yet" from "query failed".
    """

    def __init__(self, relation: str, detail: str | None = None):
        self.relation = relation
        self.detail = detail
        super().__init__(f"Relation '{relation}' does not exist")


class ValidationError(ReservingError):
    """Input rejected before any backend call."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidStateError(ReservingError):
    """Lifecycle transition not permitted from the record's current state."""

    def __init__(self, entity: str, current: str, target: str | None = None):
        self.entity = entity
        self.current = current
        self.target = target
        if target is None:
            message = f"Cannot change {entity} in status '{current}'"
        else:
            message = f"Cannot move {entity} from '{current}' to '{target}'"
        super().__init__(message)


class ConcurrentUpdateError(InvalidStateError):
    """Record changed since the caller read it (version mismatch)."""

    def __init__(self, entity: str, expected: int, actual: int | None):
        self.expected = expected
        self.actual = actual
        ReservingError.__init__(
            self,
            f"{entity} was modified concurrently "
            f"(expected version {expected}, found {actual})",
        )
        self.entity = entity
        self.current = str(actual)
        self.target = None


class RecordNotFoundError(ReservingError):
    def __init__(self, entity: str, record_id: object):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} {record_id} not found")


class BackendError(ReservingError):
    """Any other data-store failure, original message preserved."""
