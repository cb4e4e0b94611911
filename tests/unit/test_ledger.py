"""Tests for claimcalc.reserving.ledger - reserve lifecycle rules."""

from __future__ import annotations

from decimal import Decimal

import pytest

from claimcalc.errors import InvalidStateError, ValidationError
from claimcalc.models import (
    HistoryChangeType,
    MovementType,
    ReserveCategory,
    ReserveStatus,
    ReserveType,
)
from claimcalc.reserving import ledger


class TestCreateReserve:
    def test_creates_draft(self, project_id):
        record = ledger.create_reserve(
            {
                "project_id": project_id,
                "reserve_type": "initial",
                "estimated": {"building": "10000.00"},
            },
            "surveyor-1",
        )

        assert record.status == ReserveStatus.DRAFT
        assert record.created_by == "surveyor-1"
        assert record.estimated.building == Decimal("10000.00")
        assert record.estimated.contents == Decimal("0")
        assert record.variance.building == Decimal("-10000.00")

    def test_requires_reserve_type(self, project_id):
        with pytest.raises(ValidationError) as exc_info:
            ledger.create_reserve({"project_id": project_id, "estimated": {}}, "surveyor-1")

        assert exc_info.value.field == "reserve_type"

    def test_requires_estimates(self, project_id):
        with pytest.raises(ValidationError):
            ledger.create_reserve(
                {"project_id": project_id, "reserve_type": "initial"}, "surveyor-1"
            )

    @pytest.mark.parametrize("field", ["variance", "total_variance", "variance_building_reserve"])
    def test_rejects_derived_fields(self, project_id, field):
        with pytest.raises(ValidationError):
            ledger.create_reserve(
                {
                    "project_id": project_id,
                    "reserve_type": "initial",
                    "estimated": {},
                    field: "100",
                },
                "surveyor-1",
            )

    def test_rejects_non_draft_status(self, project_id):
        with pytest.raises(ValidationError):
            ledger.create_reserve(
                {
                    "project_id": project_id,
                    "reserve_type": "initial",
                    "estimated": {},
                    "status": "approved",
                },
                "surveyor-1",
            )

    def test_default_currency_applied(self, project_id):
        record = ledger.create_reserve(
            {"project_id": project_id, "reserve_type": "initial", "estimated": {}},
            "surveyor-1",
            currency="EUR",
        )

        assert record.currency == "EUR"


class TestReviseReserve:
    def test_revision_is_new_draft(self, draft_reserve):
        revised = ledger.revise_reserve(
            draft_reserve, {"actual": {"building": "12500.00"}}, revised_by="adjuster-2"
        )

        assert revised.id != draft_reserve.id
        assert revised.reserve_type == ReserveType.REVISED
        assert revised.status == ReserveStatus.DRAFT
        assert revised.created_by == "adjuster-2"
        assert revised.variance.building == Decimal("2500.00")
        # carried forward
        assert revised.estimated.contents == Decimal("2500.00")

    def test_prior_record_untouched(self, draft_reserve):
        before = draft_reserve.model_dump()

        ledger.revise_reserve(draft_reserve, {"estimated": {"building": "1"}})

        assert draft_reserve.model_dump() == before

    def test_rejects_lifecycle_fields(self, draft_reserve):
        with pytest.raises(ValidationError):
            ledger.revise_reserve(draft_reserve, {"status": "approved"})


class TestApplyChanges:
    def test_bumps_version_and_merges(self, draft_reserve):
        updated = ledger.apply_reserve_changes(draft_reserve, {"actual": {"contents": "3000"}})

        assert updated.id == draft_reserve.id
        assert updated.version == draft_reserve.version + 1
        assert updated.actual.contents == Decimal("3000")
        assert updated.estimated.building == Decimal("10000.00")
        assert updated.variance.contents == Decimal("500.00")

    def test_superseded_is_frozen(self, draft_reserve):
        superseded = ledger.supersede_reserve(draft_reserve)

        with pytest.raises(InvalidStateError):
            ledger.apply_reserve_changes(superseded, {"notes": "late change"})


class TestTransitions:
    def test_submit_then_approve(self, draft_reserve):
        pending = ledger.submit_reserve(draft_reserve)
        approved = ledger.approve_reserve(pending, "manager-1")

        assert approved.status == ReserveStatus.APPROVED
        assert approved.approved_by == "manager-1"
        assert approved.approved_at is not None
        assert approved.version == draft_reserve.version + 2

    def test_approving_draft_fails_and_leaves_record(self, draft_reserve):
        before = draft_reserve.model_dump()

        with pytest.raises(InvalidStateError):
            ledger.approve_reserve(draft_reserve, "manager-1")

        assert draft_reserve.model_dump() == before

    def test_superseded_is_terminal(self, draft_reserve):
        superseded = ledger.supersede_reserve(draft_reserve)

        with pytest.raises(InvalidStateError):
            ledger.submit_reserve(superseded)
        with pytest.raises(InvalidStateError):
            ledger.supersede_reserve(superseded)

    def test_approved_can_be_superseded(self, draft_reserve):
        approved = ledger.approve_reserve(ledger.submit_reserve(draft_reserve), "manager-1")

        assert ledger.supersede_reserve(approved).status == ReserveStatus.SUPERSEDED


class TestHistory:
    def test_one_entry_per_changed_category(self, draft_reserve):
        updated = ledger.apply_reserve_changes(
            draft_reserve,
            {"estimated": {"building": "11000.00"}, "actual": {"contents": "2000.00"}},
        )

        entries = ledger.diff_reserve_history(draft_reserve, updated, reason="re-inspection")

        by_category = {entry.category: entry for entry in entries}
        assert set(by_category) == {ReserveCategory.BUILDING, ReserveCategory.CONTENTS}
        building = by_category[ReserveCategory.BUILDING]
        assert building.change_type == HistoryChangeType.REVISED_ESTIMATE
        assert building.previous_estimated_amount == Decimal("10000.00")
        assert building.new_estimated_amount == Decimal("11000.00")
        assert building.change_reason == "re-inspection"
        contents = by_category[ReserveCategory.CONTENTS]
        assert contents.change_type == HistoryChangeType.ACTUAL_UPDATE
        assert contents.variance_amount == Decimal("-500.00")

    def test_initial_estimate(self, draft_reserve):
        updated = ledger.apply_reserve_changes(
            draft_reserve, {"estimated": {"professional_fees": "900"}}
        )

        (entry,) = ledger.diff_reserve_history(draft_reserve, updated)

        assert entry.change_type == HistoryChangeType.INITIAL_ESTIMATE

    def test_no_changes(self, draft_reserve):
        assert ledger.diff_reserve_history(draft_reserve, draft_reserve) == []


class TestMovements:
    def test_movement_tied_to_reserve(self, draft_reserve):
        movement = ledger.create_reserve_movement(
            draft_reserve,
            {"movement_type": "increase", "amount": "1500.00", "reason": "Additional damage found"},
            "adjuster-2",
        )

        assert movement.reserve_id == draft_reserve.id
        assert movement.project_id == draft_reserve.project_id
        assert movement.movement_type == MovementType.INCREASE
        assert movement.processed_by == "adjuster-2"

    def test_movement_requires_reason(self, draft_reserve):
        with pytest.raises(ValidationError):
            ledger.create_reserve_movement(
                draft_reserve, {"movement_type": "increase", "amount": "10"}, "adjuster-2"
            )
