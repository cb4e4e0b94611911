"""Tests for claimcalc.reserving.catalog - damage item pricing and workflow."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from claimcalc.errors import InvalidStateError, ValidationError
from claimcalc.models import DamageStatus, Urgency
from claimcalc.reserving import catalog


@pytest.fixture
def item(project_id, laminate_code):
    return catalog.create_damage_item(
        {
            "project_id": project_id,
            "hod_code_id": laminate_code.id,
            "item_description": "Replace laminate, lounge",
            "quantity": "3",
            "unit_cost": "150.00",
            "vat_rate": "20",
        },
        "surveyor-1",
        hod_code=laminate_code,
    )


class TestCreate:
    def test_prices_line(self, item, laminate_code):
        assert item.status == DamageStatus.ESTIMATED
        assert item.total_cost == Decimal("450.00")
        assert item.vat_amount == Decimal("90.00")
        assert item.total_including_vat == Decimal("540.00")
        assert item.hod_code == laminate_code
        assert item.created_by == "surveyor-1"

    def test_requires_hod_code(self, project_id):
        with pytest.raises(ValidationError) as exc_info:
            catalog.create_damage_item(
                {"project_id": project_id, "item_description": "Door"}, "surveyor-1"
            )

        assert exc_info.value.field == "hod_code_id"

    def test_requires_description(self, project_id):
        with pytest.raises(ValidationError) as exc_info:
            catalog.create_damage_item(
                {"project_id": project_id, "hod_code_id": uuid4(), "item_description": "  "},
                "surveyor-1",
            )

        assert exc_info.value.field == "item_description"

    def test_zero_quantity_stored_as_one(self, project_id):
        created = catalog.create_damage_item(
            {
                "project_id": project_id,
                "hod_code_id": uuid4(),
                "item_description": "Front door",
                "quantity": 0,
                "unit_cost": "900.00",
            },
            "surveyor-1",
        )

        assert created.quantity == Decimal("1")
        assert created.total_cost == Decimal("900.00")

    def test_unit_cost_suggested_from_rate_band(self, project_id, laminate_code):
        created = catalog.create_damage_item(
            {
                "project_id": project_id,
                "hod_code_id": laminate_code.id,
                "item_description": "Hall laminate",
                "quantity": "10",
            },
            "surveyor-1",
            hod_code=laminate_code,
        )

        assert created.unit_cost == Decimal("60.00")
        assert created.total_cost == Decimal("600.00")

    def test_missing_vat_rate_defaults(self, project_id):
        created = catalog.create_damage_item(
            {
                "project_id": project_id,
                "hod_code_id": uuid4(),
                "item_description": "Radiator",
                "unit_cost": "200",
                "vat_rate": None,
            },
            "surveyor-1",
        )

        assert created.vat_amount == Decimal("40.00")

    def test_inactive_code_rejected(self, project_id, laminate_code):
        retired = laminate_code.model_copy(update={"is_active": False})

        with pytest.raises(ValidationError):
            catalog.create_damage_item(
                {"project_id": project_id, "hod_code_id": retired.id, "item_description": "x"},
                "surveyor-1",
                hod_code=retired,
            )

    def test_derived_totals_rejected(self, project_id):
        with pytest.raises(ValidationError):
            catalog.create_damage_item(
                {
                    "project_id": project_id,
                    "hod_code_id": uuid4(),
                    "item_description": "Radiator",
                    "total_cost": "1.00",
                },
                "surveyor-1",
            )


class TestUpdate:
    def test_quantity_change_reprices_from_existing_rate(self, item):
        updated = catalog.update_damage_item(item, {"quantity": "5"})

        assert updated.unit_cost == Decimal("150.00")
        assert updated.total_cost == Decimal("750.00")
        assert updated.vat_amount == Decimal("150.00")
        assert updated.total_including_vat == Decimal("900.00")
        assert updated.version == item.version + 1

    def test_zero_vat_honoured_on_update(self, item):
        updated = catalog.update_damage_item(item, {"vat_rate": 0})

        assert updated.vat_amount == Decimal("0.00")
        assert updated.total_including_vat == updated.total_cost

    def test_urgency_changes_at_any_status(self, item):
        quoted = catalog.advance_damage_item(item)

        updated = catalog.update_damage_item(quoted, {"urgency": "emergency"})

        assert updated.urgency == Urgency.EMERGENCY
        assert updated.status == DamageStatus.QUOTED

    def test_status_may_only_step_forward(self, item):
        assert catalog.update_damage_item(item, {"status": "quoted"}).status == DamageStatus.QUOTED
        with pytest.raises(InvalidStateError):
            catalog.update_damage_item(item, {"status": "approved"})

    def test_unknown_status_rejected(self, item):
        with pytest.raises(ValidationError):
            catalog.update_damage_item(item, {"status": "lost"})

    def test_derived_fields_rejected(self, item):
        with pytest.raises(ValidationError):
            catalog.update_damage_item(item, {"vat_amount": "0"})

    def test_immutable_fields_rejected(self, item):
        with pytest.raises(ValidationError):
            catalog.update_damage_item(item, {"project_id": "other"})

    def test_changing_hod_code_drops_embedded_code(self, item):
        updated = catalog.update_damage_item(item, {"hod_code_id": uuid4()})

        assert updated.hod_code is None


class TestAdvance:
    def test_walks_full_sequence(self, item):
        current = item
        seen = []
        for _ in range(4):
            current = catalog.advance_damage_item(current)
            seen.append(current.status)

        assert seen == [
            DamageStatus.QUOTED,
            DamageStatus.APPROVED,
            DamageStatus.WORKS_ORDERED,
            DamageStatus.COMPLETED,
        ]

    def test_completed_cannot_advance(self, item):
        current = item
        for _ in range(4):
            current = catalog.advance_damage_item(current)

        with pytest.raises(InvalidStateError):
            catalog.advance_damage_item(current)

    def test_skip_rejected(self, item):
        with pytest.raises(InvalidStateError):
            catalog.advance_damage_item(item, DamageStatus.APPROVED)

    def test_explicit_next_target(self, item):
        assert catalog.advance_damage_item(item, "quoted").status == DamageStatus.QUOTED


class TestFilterHodCodes:
    def test_matches_code_description_and_category(self, laminate_code):
        codes = [laminate_code]

        assert catalog.filter_hod_codes(codes, "b008") == codes
        assert catalog.filter_hod_codes(codes, "LAMINATE") == codes
        assert catalog.filter_hod_codes(codes, "building") == codes
        assert catalog.filter_hod_codes(codes, "hotel") == []

    def test_empty_term_returns_all(self, laminate_code):
        assert catalog.filter_hod_codes([laminate_code], None) == [laminate_code]
