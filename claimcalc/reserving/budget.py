"""PC sums and scope variations: budget lines that sit alongside the reserve."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from claimcalc.errors import InvalidStateError, ValidationError
from claimcalc.models import (
    PCSum,
    PCSumStatus,
    ScopeVariation,
    VariationStatus,
    utcnow,
)
from claimcalc.reserving.calculator import ZERO, round2, to_decimal

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

PC_SUM_TRANSITIONS: dict[PCSumStatus, frozenset[PCSumStatus]] = {
    PCSumStatus.ALLOCATED: frozenset({PCSumStatus.IN_PROGRESS, PCSumStatus.CANCELLED}),
    PCSumStatus.IN_PROGRESS: frozenset({PCSumStatus.COMPLETED, PCSumStatus.CANCELLED}),
    PCSumStatus.COMPLETED: frozenset(),
    PCSumStatus.CANCELLED: frozenset(),
}

VARIATION_TRANSITIONS: dict[VariationStatus, frozenset[VariationStatus]] = {
    VariationStatus.PROPOSED: frozenset({VariationStatus.CLIENT_REVIEW}),
    VariationStatus.CLIENT_REVIEW: frozenset(
        {VariationStatus.APPROVED, VariationStatus.REJECTED}
    ),
    VariationStatus.APPROVED: frozenset({VariationStatus.IMPLEMENTED}),
    VariationStatus.REJECTED: frozenset(),
    VariationStatus.IMPLEMENTED: frozenset(),
}

# Variations that need no client sign-off may be decided straight from proposed.
_DIRECT_DECISIONS = frozenset({VariationStatus.APPROVED, VariationStatus.REJECTED})

COMMITTED_VARIATION_STATUSES = frozenset(
    {VariationStatus.APPROVED, VariationStatus.IMPLEMENTED}
)


def validate_model(model: type[M], payload: Mapping[str, Any], label: str) -> M:
    try:
        return model.model_validate(dict(payload))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid {label}: {field}: {first['msg']}", field=field) from exc


def create_pc_sum(data: Mapping[str, Any], created_by: str) -> PCSum:
    if "remaining_amount" in data:
        raise ValidationError("'remaining_amount' is computed and cannot be supplied", field="remaining_amount")
    for required in ("pc_sum_description", "allocated_amount", "justification"):
        if data.get(required) in (None, ""):
            raise ValidationError(f"{required} is required", field=required)

    payload = dict(data)
    payload.update(status=PCSumStatus.ALLOCATED, created_by=created_by, approved_by=None, approved_at=None)
    return validate_model(PCSum, payload, "PC sum")


def record_pc_spend(pc_sum: PCSum, amount: Any) -> PCSum:
    """Add spend against a PC sum; first spend moves it to in_progress."""
    spend = round2(to_decimal(amount))
    if not spend.is_finite() or spend <= ZERO:
        raise ValidationError("Spend amount must be positive", field="amount")
    if pc_sum.status in (PCSumStatus.COMPLETED, PCSumStatus.CANCELLED):
        raise InvalidStateError("PC sum", pc_sum.status.value)
    if pc_sum.approval_required and pc_sum.approved_by is None:
        raise InvalidStateError("PC sum", "awaiting approval")

    status = pc_sum.status
    if status == PCSumStatus.ALLOCATED:
        status = PCSumStatus.IN_PROGRESS

    updated = pc_sum.model_copy(
        update={
            "spent_amount": pc_sum.spent_amount + spend,
            "status": status,
            "updated_at": utcnow(),
        }
    )
    if updated.remaining_amount < ZERO:
        logger.warning(
            "PC sum %s overspent by %s", pc_sum.id, -updated.remaining_amount
        )
    return updated


def approve_pc_sum(pc_sum: PCSum, approver_id: str) -> PCSum:
    if pc_sum.status == PCSumStatus.CANCELLED:
        raise InvalidStateError("PC sum", pc_sum.status.value)
    if pc_sum.approved_by is not None:
        raise InvalidStateError("PC sum", "approved")
    return pc_sum.model_copy(
        update={"approved_by": approver_id, "approved_at": utcnow(), "updated_at": utcnow()}
    )


def transition_pc_sum(pc_sum: PCSum, target: PCSumStatus | str) -> PCSum:
    status = _coerce(PCSumStatus, target)
    if status not in PC_SUM_TRANSITIONS[pc_sum.status]:
        raise InvalidStateError("PC sum", pc_sum.status.value, status.value)
    update: dict[str, Any] = {"status": status, "updated_at": utcnow()}
    if status == PCSumStatus.COMPLETED and pc_sum.actual_completion_date is None:
        update["actual_completion_date"] = utcnow().date()
    return pc_sum.model_copy(update=update)


def create_scope_variation(data: Mapping[str, Any], created_by: str) -> ScopeVariation:
    for required in ("variation_type", "description", "cost_impact", "justification"):
        if data.get(required) in (None, ""):
            raise ValidationError(f"{required} is required", field=required)

    payload = dict(data)
    payload.update(
        status=VariationStatus.PROPOSED,
        created_by=created_by,
        client_approved=False,
        client_approved_by=None,
        client_approved_at=None,
    )
    return validate_model(ScopeVariation, payload, "scope variation")


def transition_scope_variation(
    variation: ScopeVariation,
    target: VariationStatus | str,
    *,
    decided_by: str | None = None,
) -> ScopeVariation:
    status = _coerce(VariationStatus, target)
    allowed = VARIATION_TRANSITIONS[variation.status]
    if (
        variation.status == VariationStatus.PROPOSED
        and not variation.client_approval_required
    ):
        allowed = allowed | _DIRECT_DECISIONS
    if status not in allowed:
        raise InvalidStateError("scope variation", variation.status.value, status.value)

    update: dict[str, Any] = {"status": status, "updated_at": utcnow()}
    if status == VariationStatus.APPROVED and variation.client_approval_required:
        update.update(
            client_approved=True,
            client_approved_by=decided_by,
            client_approved_at=utcnow(),
        )
    return variation.model_copy(update=update)


def net_cost_impact(variations: Iterable[ScopeVariation]) -> Decimal:
    """Signed sum of approved and implemented variations."""
    return sum(
        (v.cost_impact for v in variations if v.status in COMMITTED_VARIATION_STATUSES),
        ZERO,
    )


def _coerce(enum_type: Any, value: Any) -> Any:
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown status: {value}", field="status") from exc
