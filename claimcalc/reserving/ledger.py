"""Reserve lifecycle: creation, revision, approval and audit history.

Every function returns a new ReserveRecord; inputs are never mutated.
Variances are computed fields on the record, so any record produced here
already satisfies variance == actual - estimated for every category.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from claimcalc.errors import InvalidStateError, ValidationError
from claimcalc.models import (
    HistoryChangeType,
    ReserveCategory,
    ReserveHistoryEntry,
    ReserveMovement,
    ReserveRecord,
    ReserveStatus,
    ReserveType,
    utcnow,
)
from claimcalc.reserving.calculator import ZERO, compute_variance, variance_percentage

logger = logging.getLogger(__name__)

RESERVE_TRANSITIONS: dict[ReserveStatus, frozenset[ReserveStatus]] = {
    ReserveStatus.DRAFT: frozenset(
        {ReserveStatus.PENDING_APPROVAL, ReserveStatus.SUPERSEDED}
    ),
    ReserveStatus.PENDING_APPROVAL: frozenset(
        {ReserveStatus.APPROVED, ReserveStatus.SUPERSEDED}
    ),
    ReserveStatus.APPROVED: frozenset({ReserveStatus.SUPERSEDED}),
    ReserveStatus.SUPERSEDED: frozenset(),
}

COMPUTED_FIELDS = frozenset({"variance", "total_estimated", "total_actual", "total_variance"})

# Only the transition functions below may set these.
LIFECYCLE_FIELDS = frozenset(
    {"id", "project_id", "status", "approved_by", "approved_at", "version", "created_at", "created_by"}
)


def build_reserve(payload: Mapping[str, Any]) -> ReserveRecord:
    """Validate a reserve payload, translating pydantic errors to ValidationError."""
    try:
        return ReserveRecord.model_validate(dict(payload))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid reserve: {field}: {first['msg']}", field=field) from exc


def create_reserve(
    data: Mapping[str, Any],
    created_by: str,
    *,
    currency: str | None = None,
) -> ReserveRecord:
    """Build a new draft reserve from caller input.

    `reserve_type` and the `estimated` category mapping are required; variance
    and total fields are always derived and are rejected if supplied.
    """
    _reject_derived(data)
    if not data.get("project_id"):
        raise ValidationError("project_id is required", field="project_id")
    if not data.get("reserve_type"):
        raise ValidationError("reserve_type is required", field="reserve_type")
    if data.get("estimated") is None:
        raise ValidationError("Estimated category amounts are required", field="estimated")
    status = data.get("status")
    if status is not None and status != ReserveStatus.DRAFT:
        raise ValidationError("New reserves always start in draft", field="status")

    payload = {
        key: value
        for key, value in data.items()
        if key not in ("approved_by", "approved_at", "version", "id")
    }
    payload["status"] = ReserveStatus.DRAFT
    payload["created_by"] = created_by
    if currency and "currency" not in payload:
        payload["currency"] = currency
    return build_reserve(payload)


def revise_reserve(
    existing: ReserveRecord,
    changes: Mapping[str, Any],
    revised_by: str | None = None,
) -> ReserveRecord:
    """Produce a new draft record from `existing` with `changes` applied.

    Unspecified fields carry forward; category amounts merge per category.
    The prior record is not modified. Superseding it happens when the
    revision is approved (see ReservingService.approve_reserve).
    """
    _reject_derived(changes)
    _reject_lifecycle(changes)

    payload = _merge(existing, changes)
    now = utcnow()
    payload.update(
        id=uuid4(),
        reserve_type=changes.get("reserve_type", ReserveType.REVISED),
        status=ReserveStatus.DRAFT,
        approved_by=None,
        approved_at=None,
        version=1,
        created_by=revised_by or existing.created_by,
        created_at=now,
        updated_at=now,
    )
    return build_reserve(payload)


def apply_reserve_changes(existing: ReserveRecord, changes: Mapping[str, Any]) -> ReserveRecord:
    """Update amounts/notes on an existing record, keeping its identity."""
    _reject_derived(changes)
    _reject_lifecycle(changes)
    if existing.status == ReserveStatus.SUPERSEDED:
        raise InvalidStateError("reserve", existing.status.value)

    payload = _merge(existing, changes)
    payload.update(version=existing.version + 1, updated_at=utcnow())
    return build_reserve(payload)


def ensure_reserve_transition(record: ReserveRecord, target: ReserveStatus) -> None:
    if target not in RESERVE_TRANSITIONS[record.status]:
        raise InvalidStateError("reserve", record.status.value, target.value)


def submit_reserve(record: ReserveRecord) -> ReserveRecord:
    ensure_reserve_transition(record, ReserveStatus.PENDING_APPROVAL)
    return _transition(record, ReserveStatus.PENDING_APPROVAL)


def approve_reserve(record: ReserveRecord, approver_id: str) -> ReserveRecord:
    """Approve a reserve awaiting approval.

    Raises:
        InvalidStateError: unless the record is pending_approval
    """
    ensure_reserve_transition(record, ReserveStatus.APPROVED)
    now = utcnow()
    return _transition(
        record, ReserveStatus.APPROVED, approved_by=approver_id, approved_at=now
    )


def supersede_reserve(record: ReserveRecord) -> ReserveRecord:
    ensure_reserve_transition(record, ReserveStatus.SUPERSEDED)
    return _transition(record, ReserveStatus.SUPERSEDED)


def diff_reserve_history(
    before: ReserveRecord,
    after: ReserveRecord,
    *,
    reason: str | None = None,
    created_by: str | None = None,
) -> list[ReserveHistoryEntry]:
    """One history entry per category whose estimated or actual amount moved."""
    entries: list[ReserveHistoryEntry] = []
    for category in ReserveCategory:
        prev_est = before.estimated.get(category)
        new_est = after.estimated.get(category)
        prev_act = before.actual.get(category)
        new_act = after.actual.get(category)
        if prev_est == new_est and prev_act == new_act:
            continue

        if prev_est != new_est:
            change_type = (
                HistoryChangeType.INITIAL_ESTIMATE
                if prev_est == ZERO
                else HistoryChangeType.REVISED_ESTIMATE
            )
        else:
            change_type = HistoryChangeType.ACTUAL_UPDATE

        variance = compute_variance(new_est, new_act)
        entries.append(
            ReserveHistoryEntry(
                project_id=after.project_id,
                reserve_id=after.id,
                change_type=change_type,
                category=category,
                previous_estimated_amount=prev_est,
                new_estimated_amount=new_est,
                previous_actual_amount=prev_act,
                new_actual_amount=new_act,
                variance_amount=variance,
                variance_percentage=variance_percentage(variance, new_est),
                change_reason=reason,
                created_by=created_by,
            )
        )
    return entries


def create_reserve_movement(
    reserve: ReserveRecord,
    data: Mapping[str, Any],
    processed_by: str,
) -> ReserveMovement:
    if reserve.status == ReserveStatus.SUPERSEDED:
        raise InvalidStateError("reserve", reserve.status.value)
    payload = dict(data)
    payload.update(
        project_id=reserve.project_id,
        reserve_id=reserve.id,
        processed_by=processed_by,
    )
    try:
        return ReserveMovement.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid reserve movement: {field}: {first['msg']}", field=field) from exc


def _transition(record: ReserveRecord, status: ReserveStatus, **extra: Any) -> ReserveRecord:
    logger.info("Reserve %s: %s -> %s", record.id, record.status.value, status.value)
    return record.model_copy(
        update={
            "status": status,
            "version": record.version + 1,
            "updated_at": utcnow(),
            **extra,
        }
    )


def _merge(existing: ReserveRecord, changes: Mapping[str, Any]) -> dict[str, Any]:
    payload = existing.model_dump(exclude=set(COMPUTED_FIELDS))
    for key, value in changes.items():
        if key in ("estimated", "actual"):
            if value is None:
                continue
            if hasattr(value, "model_dump"):
                value = value.model_dump(exclude_unset=True)
            payload[key] = {**payload[key], **dict(value)}
        else:
            payload[key] = value
    return payload


def _reject_derived(data: Mapping[str, Any]) -> None:
    for key in data:
        if key in COMPUTED_FIELDS or key.startswith("variance_"):
            raise ValidationError(f"'{key}' is computed and cannot be supplied", field=key)


def _reject_lifecycle(changes: Mapping[str, Any]) -> None:
    for key in changes:
        if key in LIFECYCLE_FIELDS:
            raise ValidationError(
                f"'{key}' can only change through a lifecycle transition", field=key
            )
