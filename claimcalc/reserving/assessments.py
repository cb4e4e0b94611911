"""Surveyor forms and contractor assessments attached to a claim."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from claimcalc.errors import ValidationError
from claimcalc.models import (
    AssessmentStatus,
    ContractorAssessment,
    SurveyForm,
    SurveyStatus,
)
from claimcalc.reserving.budget import validate_model

ASSESSMENT_DERIVED_FIELDS = frozenset({"total_net_amount", "vat_amount", "total_gross_amount"})


def create_survey_form(data: Mapping[str, Any], actor_id: str) -> SurveyForm:
    """New survey form; the surveyor defaults to the acting user."""
    for required in ("form_type", "survey_date", "damage_summary"):
        if data.get(required) in (None, ""):
            raise ValidationError(f"{required} is required", field=required)

    payload = dict(data)
    payload["surveyor_id"] = payload.get("surveyor_id") or actor_id
    payload.setdefault("form_status", SurveyStatus.IN_PROGRESS)
    payload.pop("approved_by", None)
    payload.pop("approved_at", None)
    return validate_model(SurveyForm, payload, "survey form")


def create_contractor_assessment(data: Mapping[str, Any]) -> ContractorAssessment:
    """New contractor assessment; net, VAT and gross come from the trade subtotals."""
    for key in data:
        if key in ASSESSMENT_DERIVED_FIELDS:
            raise ValidationError(f"'{key}' is computed and cannot be supplied", field=key)
    for required in ("contractor_id", "works_description"):
        if data.get(required) in (None, ""):
            raise ValidationError(f"{required} is required", field=required)

    payload = dict(data)
    payload.setdefault("status", AssessmentStatus.SUBMITTED)
    return validate_model(ContractorAssessment, payload, "contractor assessment")
