"""Request bodies for the ClaimCalc JSON API.

Derived amounts (variances, totals, remaining budget) are not accepted on any
request; unknown fields are rejected.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from claimcalc.models import (
    AssessmentType,
    DamageExtent,
    DamageStatus,
    HODCategory,
    MovementType,
    OccupancyStatus,
    PCSumStatus,
    RepairMethod,
    ReserveAmounts,
    ReserveCategory,
    ReserveType,
    SurveyFormType,
    Urgency,
    VariationStatus,
    VariationType,
)


class _Request(BaseModel):
    class Config:
        extra = "forbid"


class ReserveCreateRequest(_Request):
    reserve_type: ReserveType = ReserveType.INITIAL
    estimated: ReserveAmounts
    actual: ReserveAmounts | None = None
    currency: str | None = None
    notes: str | None = None
    reason: str | None = None


class ReserveUpdateRequest(_Request):
    """Partial amounts merge per category over the stored record."""

    estimated: dict[ReserveCategory, Decimal] | None = None
    actual: dict[ReserveCategory, Decimal] | None = None
    notes: str | None = None
    expected_version: int | None = None
    reason: str | None = None


class ReserveReviseRequest(_Request):
    reserve_type: ReserveType | None = None
    estimated: dict[ReserveCategory, Decimal] | None = None
    actual: dict[ReserveCategory, Decimal] | None = None
    notes: str | None = None
    reason: str | None = None


class ReserveMovementRequest(_Request):
    movement_type: MovementType
    category: ReserveCategory | None = None
    amount: Decimal
    reason: str
    reference_document: str | None = None
    reference_id: UUID | None = None
    authorized_by: str | None = None
    movement_date: date | None = None
    accounting_period: str | None = None
    notes: str | None = None


class DamageItemCreateRequest(_Request):
    hod_code_id: UUID
    item_description: str
    reserve_id: UUID | None = None
    location: str | None = None
    quantity: Decimal | None = None
    unit_cost: Decimal | None = None
    vat_rate: Decimal | None = None
    damage_cause: str | None = None
    damage_extent: DamageExtent | None = None
    repair_method: RepairMethod | None = None
    urgency: Urgency | None = None
    photos: list[str] | None = None
    measurements: dict[str, Any] | None = None
    supplier_quotes: dict[str, Any] | None = None
    surveyor_notes: str | None = None
    contractor_notes: str | None = None


class DamageItemUpdateRequest(_Request):
    hod_code_id: UUID | None = None
    item_description: str | None = None
    location: str | None = None
    quantity: Decimal | None = None
    unit_cost: Decimal | None = None
    vat_rate: Decimal | None = None
    damage_cause: str | None = None
    damage_extent: DamageExtent | None = None
    repair_method: RepairMethod | None = None
    urgency: Urgency | None = None
    photos: list[str] | None = None
    measurements: dict[str, Any] | None = None
    supplier_quotes: dict[str, Any] | None = None
    surveyor_notes: str | None = None
    contractor_notes: str | None = None
    status: DamageStatus | None = None
    expected_version: int | None = None


class DamageItemAdvanceRequest(_Request):
    target: DamageStatus | None = None
    expected_version: int | None = None


class PCSumCreateRequest(_Request):
    pc_sum_description: str
    allocated_amount: Decimal
    justification: str
    reserve_id: UUID | None = None
    category: HODCategory | None = None
    scope_definition: str | None = None
    expected_completion_date: date | None = None
    contractor_id: str | None = None
    approval_required: bool = True


class PCSpendRequest(_Request):
    amount: Decimal = Field(gt=0)


class PCSumTransitionRequest(_Request):
    status: PCSumStatus


class ScopeVariationCreateRequest(_Request):
    variation_type: VariationType
    description: str
    cost_impact: Decimal
    justification: str
    reserve_id: UUID | None = None
    original_scope: str | None = None
    revised_scope: str | None = None
    time_impact_days: int = 0
    client_instructions: str | None = None
    surveyor_recommendation: str | None = None
    client_approval_required: bool = True
    surveyor_id: str | None = None


class ScopeVariationTransitionRequest(_Request):
    status: VariationStatus


class SurveyFormCreateRequest(_Request):
    form_type: SurveyFormType
    survey_date: date
    damage_summary: str
    surveyor_id: str | None = None
    property_type: str | None = None
    year_built: int | None = None
    construction_type: str | None = None
    occupancy_status: OccupancyStatus | None = None
    access_gained: bool = True
    access_restrictions: str | None = None
    weather_conditions: str | None = None
    cause_of_loss: str | None = None
    incident_date: date | None = None
    recommendations: str | None = None
    urgent_actions_required: str | None = None
    health_safety_concerns: str | None = None
    make_safe_required: bool = False
    make_safe_completed: bool = False
    make_safe_cost: Decimal | None = None
    drying_equipment_required: bool = False
    drying_equipment_installed: bool = False
    environmental_monitoring: dict[str, Any] | None = None
    photos_taken: int = 0
    photo_references: list[str] = Field(default_factory=list)
    additional_specialists_required: list[str] = Field(default_factory=list)
    follow_up_required: bool = False
    follow_up_date: date | None = None
    client_present: bool = False
    client_representative_name: str | None = None


class ContractorAssessmentCreateRequest(_Request):
    contractor_id: str
    works_description: str
    damage_item_ids: list[UUID] = Field(default_factory=list)
    assessment_type: AssessmentType = AssessmentType.QUOTATION
    trade_speciality: str | None = None
    site_visit_date: date | None = None
    methodology: str | None = None
    estimated_duration_days: int | None = None
    proposed_start_date: date | None = None
    proposed_completion_date: date | None = None
    insurance_requirements_met: bool = False
    qualifications_certificates_provided: bool = False
    subtotal_labour: Decimal = Decimal("0")
    subtotal_materials: Decimal = Decimal("0")
    subtotal_plant_equipment: Decimal = Decimal("0")
    subtotal_other: Decimal = Decimal("0")
    vat_rate: Decimal | None = None
    payment_terms: str | None = None
    warranty_period_months: int = 12
    exclusions: str | None = None
    assumptions: str | None = None
    quote_valid_until: date | None = None
