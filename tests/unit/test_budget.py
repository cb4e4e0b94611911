"""Tests for claimcalc.reserving.budget and assessments - PC sums, variations, surveys."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from claimcalc.errors import InvalidStateError, ValidationError
from claimcalc.models import AssessmentStatus, PCSumStatus, SurveyStatus, VariationStatus
from claimcalc.reserving import assessments, budget


@pytest.fixture
def pc_sum(project_id):
    return budget.create_pc_sum(
        {
            "project_id": project_id,
            "pc_sum_description": "Asbestos survey and removal",
            "allocated_amount": "2000.00",
            "justification": "Pre-1980 construction",
        },
        "surveyor-1",
    )


@pytest.fixture
def variation(project_id):
    return budget.create_scope_variation(
        {
            "project_id": project_id,
            "variation_type": "addition",
            "description": "Replace subfloor",
            "cost_impact": "850.00",
            "justification": "Joists rotten on inspection",
        },
        "surveyor-1",
    )


class TestPCSums:
    def test_created_allocated(self, pc_sum):
        assert pc_sum.status == PCSumStatus.ALLOCATED
        assert pc_sum.remaining_amount == Decimal("2000.00")
        assert pc_sum.approved_by is None

    def test_requires_justification(self, project_id):
        with pytest.raises(ValidationError):
            budget.create_pc_sum(
                {"project_id": project_id, "pc_sum_description": "x", "allocated_amount": "1"},
                "surveyor-1",
            )

    def test_remaining_is_derived(self, project_id):
        with pytest.raises(ValidationError):
            budget.create_pc_sum(
                {
                    "project_id": project_id,
                    "pc_sum_description": "x",
                    "allocated_amount": "1",
                    "justification": "y",
                    "remaining_amount": "1",
                },
                "surveyor-1",
            )

    def test_spend_needs_approval(self, pc_sum):
        with pytest.raises(InvalidStateError):
            budget.record_pc_spend(pc_sum, "100")

    def test_spend_moves_to_in_progress(self, pc_sum):
        approved = budget.approve_pc_sum(pc_sum, "manager-1")

        spent = budget.record_pc_spend(approved, "750.00")

        assert spent.status == PCSumStatus.IN_PROGRESS
        assert spent.spent_amount == Decimal("750.00")
        assert spent.remaining_amount == Decimal("1250.00")

    def test_overspend_allowed_with_negative_remaining(self, pc_sum):
        approved = budget.approve_pc_sum(pc_sum, "manager-1")

        spent = budget.record_pc_spend(approved, "2500.00")

        assert spent.remaining_amount == Decimal("-500.00")

    def test_spend_must_be_positive(self, pc_sum):
        approved = budget.approve_pc_sum(pc_sum, "manager-1")

        with pytest.raises(ValidationError):
            budget.record_pc_spend(approved, "0")

    def test_no_spend_after_cancel(self, pc_sum):
        cancelled = budget.transition_pc_sum(pc_sum, "cancelled")

        with pytest.raises(InvalidStateError):
            budget.record_pc_spend(cancelled, "10")

    def test_complete_stamps_date(self, pc_sum):
        in_progress = budget.transition_pc_sum(pc_sum, PCSumStatus.IN_PROGRESS)

        completed = budget.transition_pc_sum(in_progress, PCSumStatus.COMPLETED)

        assert completed.actual_completion_date is not None

    def test_cannot_complete_from_allocated(self, pc_sum):
        with pytest.raises(InvalidStateError):
            budget.transition_pc_sum(pc_sum, PCSumStatus.COMPLETED)

    def test_double_approval_rejected(self, pc_sum):
        approved = budget.approve_pc_sum(pc_sum, "manager-1")

        with pytest.raises(InvalidStateError):
            budget.approve_pc_sum(approved, "manager-2")


class TestScopeVariations:
    def test_review_then_approve(self, variation):
        in_review = budget.transition_scope_variation(variation, "client_review")

        approved = budget.transition_scope_variation(
            in_review, VariationStatus.APPROVED, decided_by="client-7"
        )

        assert approved.status == VariationStatus.APPROVED
        assert approved.client_approved is True
        assert approved.client_approved_by == "client-7"

    def test_cannot_skip_client_review(self, variation):
        with pytest.raises(InvalidStateError):
            budget.transition_scope_variation(variation, VariationStatus.APPROVED)

    def test_direct_decision_without_client_sign_off(self, variation):
        internal = variation.model_copy(update={"client_approval_required": False})

        approved = budget.transition_scope_variation(internal, VariationStatus.APPROVED)

        assert approved.status == VariationStatus.APPROVED
        assert approved.client_approved is False

    def test_net_cost_impact_counts_committed_only(self, variation):
        approved = variation.model_copy(update={"status": VariationStatus.APPROVED})
        implemented = variation.model_copy(
            update={"status": VariationStatus.IMPLEMENTED, "cost_impact": Decimal("-200.00")}
        )
        rejected = variation.model_copy(update={"status": VariationStatus.REJECTED})

        total = budget.net_cost_impact([variation, approved, implemented, rejected])

        assert total == Decimal("650.00")


class TestAssessments:
    def test_survey_defaults_surveyor_to_actor(self, project_id):
        form = assessments.create_survey_form(
            {
                "project_id": project_id,
                "form_type": "initial_survey",
                "survey_date": date(2024, 3, 14),
                "damage_summary": "Escape of water from first floor bathroom",
            },
            "surveyor-1",
        )

        assert form.surveyor_id == "surveyor-1"
        assert form.form_status == SurveyStatus.IN_PROGRESS

    def test_survey_requires_summary(self, project_id):
        with pytest.raises(ValidationError):
            assessments.create_survey_form(
                {"project_id": project_id, "form_type": "initial_survey", "survey_date": "2024-03-14"},
                "surveyor-1",
            )

    def test_contractor_assessment_totals(self, project_id):
        assessment = assessments.create_contractor_assessment(
            {
                "project_id": project_id,
                "contractor_id": "contractor-9",
                "works_description": "Dry out and re-plaster",
                "subtotal_labour": "900.00",
                "subtotal_materials": "300.00",
                "vat_rate": "20",
            }
        )

        assert assessment.status == AssessmentStatus.SUBMITTED
        assert assessment.total_gross_amount == Decimal("1440.00")

    def test_contractor_totals_cannot_be_supplied(self, project_id):
        with pytest.raises(ValidationError):
            assessments.create_contractor_assessment(
                {
                    "project_id": project_id,
                    "contractor_id": "contractor-9",
                    "works_description": "x",
                    "total_gross_amount": "1",
                }
            )
