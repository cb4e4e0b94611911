"""Damage item catalog: priced assessment lines and their works workflow."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from claimcalc.errors import InvalidStateError, ValidationError
from claimcalc.models import DamageItem, DamageStatus, HODCode, utcnow
from claimcalc.reserving.calculator import (
    DEFAULT_VAT_RATE,
    ONE,
    ZERO,
    suggest_unit_cost,
    to_decimal,
)

logger = logging.getLogger(__name__)

DAMAGE_STATUS_SEQUENCE: tuple[DamageStatus, ...] = (
    DamageStatus.ESTIMATED,
    DamageStatus.QUOTED,
    DamageStatus.APPROVED,
    DamageStatus.WORKS_ORDERED,
    DamageStatus.COMPLETED,
)

PRICING_FIELDS = frozenset({"quantity", "unit_cost", "vat_rate"})
DERIVED_FIELDS = frozenset({"total_cost", "vat_amount", "total_including_vat"})
IMMUTABLE_FIELDS = frozenset(
    {"id", "project_id", "created_by", "created_at", "version", "hod_code"}
)


def next_damage_status(status: DamageStatus) -> DamageStatus | None:
    index = DAMAGE_STATUS_SEQUENCE.index(status)
    if index + 1 >= len(DAMAGE_STATUS_SEQUENCE):
        return None
    return DAMAGE_STATUS_SEQUENCE[index + 1]


def ensure_damage_transition(item: DamageItem, target: DamageStatus) -> None:
    """Only the immediate next status is reachable; no skips, no reversals."""
    if next_damage_status(item.status) != target:
        raise InvalidStateError("damage item", item.status.value, DamageStatus(target).value)


def build_damage_item(payload: Mapping[str, Any]) -> DamageItem:
    try:
        return DamageItem.model_validate(dict(payload))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid damage item: {field}: {first['msg']}", field=field) from exc


def create_damage_item(
    data: Mapping[str, Any],
    created_by: str,
    *,
    hod_code: HODCode | None = None,
) -> DamageItem:
    """Build a new estimated damage item.

    When no unit cost is given and the HOD code carries a typical rate band,
    the band midpoint is used as the starting estimate.
    """
    _reject_derived(data)
    if not data.get("hod_code_id"):
        raise ValidationError("hod_code_id is required", field="hod_code_id")
    if not str(data.get("item_description") or "").strip():
        raise ValidationError("item_description is required", field="item_description")
    status = data.get("status")
    if status is not None and status != DamageStatus.ESTIMATED:
        raise ValidationError("New damage items always start as estimated", field="status")

    if hod_code is not None and not hod_code.is_active:
        raise ValidationError(f"HOD code {hod_code.code} is inactive", field="hod_code_id")

    payload = {key: value for key, value in data.items() if key not in IMMUTABLE_FIELDS}
    payload["project_id"] = data.get("project_id")
    payload["status"] = DamageStatus.ESTIMATED
    payload["created_by"] = created_by
    payload["quantity"] = _normalise_quantity(payload.get("quantity"))

    if payload.get("unit_cost") is None and hod_code is not None:
        suggested = suggest_unit_cost(hod_code.typical_rate_low, hod_code.typical_rate_high)
        if suggested is not None:
            payload["unit_cost"] = suggested
    for key in ("unit_cost", "vat_rate"):
        if payload.get(key) is None:
            payload.pop(key, None)
    if hod_code is not None:
        payload["hod_code"] = hod_code

    return build_damage_item(payload)


def update_damage_item(existing: DamageItem, changes: Mapping[str, Any]) -> DamageItem:
    """Apply partial changes to a damage item.

    Pricing changes are merged over the existing quantity/unit cost/VAT rate
    before totals are derived, so a change to quantity alone is priced with
    the item's current unit cost and VAT rate.
    """
    _reject_derived(changes)
    for key in changes:
        if key in IMMUTABLE_FIELDS:
            raise ValidationError(f"'{key}' cannot be changed", field=key)

    target = changes.get("status")
    if target is not None and _as_status(target) != existing.status:
        ensure_damage_transition(existing, _as_status(target))

    payload = existing.model_dump(exclude=set(DERIVED_FIELDS))
    payload.update(changes)
    if PRICING_FIELDS.intersection(changes):
        payload["quantity"] = _normalise_quantity(payload.get("quantity"))
        if payload.get("vat_rate") is None:
            payload["vat_rate"] = DEFAULT_VAT_RATE
    if "hod_code_id" in changes and str(changes["hod_code_id"]) != str(existing.hod_code_id):
        payload["hod_code"] = None
    payload["version"] = existing.version + 1
    payload["updated_at"] = utcnow()
    return build_damage_item(payload)


def advance_damage_item(
    item: DamageItem,
    target: DamageStatus | str | None = None,
) -> DamageItem:
    """Move one step along estimated → quoted → approved → works_ordered → completed."""
    following = next_damage_status(item.status)
    if following is None:
        raise InvalidStateError("damage item", item.status.value)
    if target is not None:
        ensure_damage_transition(item, _as_status(target))
    logger.info("Damage item %s: %s -> %s", item.id, item.status.value, following.value)
    return item.model_copy(
        update={"status": following, "version": item.version + 1, "updated_at": utcnow()}
    )


def filter_hod_codes(codes: Iterable[HODCode], term: str | None) -> list[HODCode]:
    """Case-insensitive match on code, description or category."""
    if not term:
        return list(codes)
    needle = term.lower()
    return [
        code
        for code in codes
        if needle in code.code.lower()
        or needle in code.description.lower()
        or needle in code.category.value.lower()
    ]


def _as_status(value: Any) -> DamageStatus:
    try:
        return DamageStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown damage item status: {value}", field="status") from exc


def _normalise_quantity(value: Any) -> Any:
    if value is None or to_decimal(value) == ZERO:
        return ONE
    return value


def _reject_derived(data: Mapping[str, Any]) -> None:
    for key in data:
        if key in DERIVED_FIELDS:
            raise ValidationError(f"'{key}' is computed and cannot be supplied", field=key)
