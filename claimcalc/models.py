"""ClaimCalc Pydantic models for type-safe data validation.

Monetary fields are Decimal and UK defaults apply (GBP, 20% VAT). Derived
amounts (variances, line totals, remaining budget) are computed fields: they
are always recalculated from their inputs and can never be set directly.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any
from uuid import UUID, uuid4

from pydantic import AfterValidator, BaseModel, Field, computed_field

from claimcalc.reserving.calculator import (
    DEFAULT_VAT_RATE,
    ZERO,
    LineTotals,
    compute_assessment_totals,
    compute_line_totals,
    compute_remaining,
    compute_variance,
    round2,
    round3,
)

# Stored as NUMERIC(.., 2) and NUMERIC(12, 3); rounding on the way in keeps a
# record identical before and after a database round trip.
Money = Annotated[Decimal, AfterValidator(round2)]
Quantity = Annotated[Decimal, AfterValidator(round3)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReserveType(str, Enum):
    INITIAL = "initial"
    REVISED = "revised"
    FINAL = "final"


class ReserveStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    SUPERSEDED = "superseded"


class ReserveCategory(str, Enum):
    """Coverage categories a reserve is split across."""

    BUILDING = "building"
    CONTENTS = "contents"
    CONSEQUENTIAL = "consequential"
    ALTERNATIVE_ACCOMMODATION = "alternative_accommodation"
    PROFESSIONAL_FEES = "professional_fees"


class HODCategory(str, Enum):
    BUILDING = "building"
    CONTENTS = "contents"
    CONSEQUENTIAL = "consequential"
    ALTERNATIVE = "alternative"
    PROFESSIONAL_FEES = "professional_fees"


class UnitType(str, Enum):
    PER_ITEM = "per_item"
    PER_SQUARE_METRE = "per_square_metre"
    PER_METRE = "per_metre"
    PER_HOUR = "per_hour"
    PER_NIGHT = "per_night"
    PER_WEEK = "per_week"
    PER_MILE = "per_mile"
    PERCENTAGE = "percentage"


class DamageStatus(str, Enum):
    ESTIMATED = "estimated"
    QUOTED = "quoted"
    APPROVED = "approved"
    WORKS_ORDERED = "works_ordered"
    COMPLETED = "completed"


class Urgency(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    EMERGENCY = "emergency"


class DamageExtent(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    TOTAL_LOSS = "total_loss"


class RepairMethod(str, Enum):
    REPAIR = "repair"
    REPLACE = "replace"
    MAKE_GOOD = "make_good"


class PCSumStatus(str, Enum):
    ALLOCATED = "allocated"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VariationType(str, Enum):
    ADDITION = "addition"
    OMISSION = "omission"
    CHANGE = "change"


class VariationStatus(str, Enum):
    PROPOSED = "proposed"
    CLIENT_REVIEW = "client_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


class SurveyFormType(str, Enum):
    INITIAL_SURVEY = "initial_survey"
    DETAILED_SURVEY = "detailed_survey"
    PROGRESS_INSPECTION = "progress_inspection"
    FINAL_INSPECTION = "final_inspection"


class OccupancyStatus(str, Enum):
    OCCUPIED = "occupied"
    VACANT = "vacant"
    PARTIALLY_OCCUPIED = "partially_occupied"


class SurveyStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


class AssessmentType(str, Enum):
    QUOTATION = "quotation"
    FEASIBILITY = "feasibility"
    PROGRESS_REPORT = "progress_report"
    COMPLETION_REPORT = "completion_report"


class AssessmentStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


class MovementType(str, Enum):
    INITIAL_SETTING = "initial_setting"
    INCREASE = "increase"
    DECREASE = "decrease"
    TRANSFER = "transfer"
    RELEASE = "release"


class HistoryChangeType(str, Enum):
    INITIAL_ESTIMATE = "initial_estimate"
    REVISED_ESTIMATE = "revised_estimate"
    ACTUAL_UPDATE = "actual_update"
    VARIANCE_REVIEW = "variance_review"


class ReserveAmounts(BaseModel):
    """One amount per coverage category."""

    building: Money = ZERO
    contents: Money = ZERO
    consequential: Money = ZERO
    alternative_accommodation: Money = ZERO
    professional_fees: Money = ZERO

    @property
    def total(self) -> Decimal:
        return sum((self.get(category) for category in ReserveCategory), ZERO)

    def get(self, category: ReserveCategory | str) -> Decimal:
        return getattr(self, ReserveCategory(category).value)

    class Config:
        extra = "forbid"


class ReserveRecord(BaseModel):
    """One snapshot of a project's insurance reserve."""

    id: UUID = Field(default_factory=uuid4)
    project_id: str
    reserve_type: ReserveType
    status: ReserveStatus = ReserveStatus.DRAFT

    estimated: ReserveAmounts = Field(default_factory=ReserveAmounts)
    actual: ReserveAmounts = Field(default_factory=ReserveAmounts)
    currency: str = "GBP"

    # Audit
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    notes: str | None = None
    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def variance(self) -> ReserveAmounts:
        return ReserveAmounts(
            **{
                category.value: compute_variance(
                    self.estimated.get(category), self.actual.get(category)
                )
                for category in ReserveCategory
            }
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_estimated(self) -> Decimal:
        return self.estimated.total

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_actual(self) -> Decimal:
        return self.actual.total

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_variance(self) -> Decimal:
        return compute_variance(self.total_estimated, self.total_actual)

    class Config:
        json_schema_extra = {
            "example": {
                "project_id": "CLM-2024-0117",
                "reserve_type": "initial",
                "estimated": {"building": "10000.00", "contents": "2500.00"},
                "actual": {"building": "12500.00"},
                "currency": "GBP",
            }
        }


class HODCode(BaseModel):
    """Head of Damage cost code (read-only reference data)."""

    id: UUID = Field(default_factory=uuid4)
    code: str
    description: str
    category: HODCategory
    sub_category: str | None = None
    typical_rate_low: Money | None = None
    typical_rate_high: Money | None = None
    unit_type: UnitType = UnitType.PER_ITEM
    is_active: bool = True
    notes: str | None = None


class DamageItem(BaseModel):
    """One assessed unit of damage requiring repair or replacement."""

    id: UUID = Field(default_factory=uuid4)
    project_id: str
    reserve_id: UUID | None = None
    hod_code_id: UUID
    item_description: str = Field(min_length=1)
    location: str | None = None  # Room/area

    # Pricing inputs
    quantity: Quantity = Field(default=Decimal("1"), ge=0)
    unit_cost: Money = Field(default=ZERO, ge=0)
    vat_rate: Money = Field(default=DEFAULT_VAT_RATE, ge=0, le=100)

    # Descriptive attributes, changeable at any status
    damage_cause: str | None = None
    damage_extent: DamageExtent | None = None
    repair_method: RepairMethod | None = None
    urgency: Urgency = Urgency.NORMAL
    photos: list[str] = Field(default_factory=list)
    measurements: dict[str, Any] | None = None
    supplier_quotes: dict[str, Any] = Field(default_factory=dict)
    surveyor_notes: str | None = None
    contractor_notes: str | None = None

    status: DamageStatus = DamageStatus.ESTIMATED

    # Audit
    created_by: str | None = None
    surveyed_by: str | None = None
    surveyed_at: datetime | None = None
    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    hod_code: HODCode | None = None

    @property
    def line_totals(self) -> LineTotals:
        return compute_line_totals(self.quantity, self.unit_cost, self.vat_rate)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_cost(self) -> Decimal:
        return self.line_totals.total_cost

    @computed_field  # type: ignore[prop-decorator]
    @property
    def vat_amount(self) -> Decimal:
        return self.line_totals.vat_amount

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_including_vat(self) -> Decimal:
        return self.line_totals.total_including_vat

    class Config:
        json_schema_extra = {
            "example": {
                "project_id": "CLM-2024-0117",
                "hod_code_id": "550e8400-e29b-41d4-a716-446655440000",
                "item_description": "Replace water-damaged laminate, lounge",
                "location": "Lounge",
                "quantity": "18.5",
                "unit_cost": "60.00",
                "vat_rate": "20",
                "urgency": "high",
                "damage_extent": "major",
            }
        }


class PCSum(BaseModel):
    """Provisional cost sum: budget allocated to scope not yet itemised."""

    id: UUID = Field(default_factory=uuid4)
    project_id: str
    reserve_id: UUID | None = None
    pc_sum_description: str = Field(min_length=1)
    allocated_amount: Money = Field(ge=0)
    spent_amount: Money = Field(default=ZERO, ge=0)
    category: HODCategory | None = None
    justification: str = Field(min_length=1)
    scope_definition: str | None = None
    expected_completion_date: date | None = None
    actual_completion_date: date | None = None
    contractor_id: str | None = None
    status: PCSumStatus = PCSumStatus.ALLOCATED
    approval_required: bool = True
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining_amount(self) -> Decimal:
        return compute_remaining(self.allocated_amount, self.spent_amount)


class ScopeVariation(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    project_id: str
    reserve_id: UUID | None = None
    variation_type: VariationType
    description: str = Field(min_length=1)
    original_scope: str | None = None
    revised_scope: str | None = None
    cost_impact: Money  # signed
    time_impact_days: int = 0
    justification: str = Field(min_length=1)
    client_instructions: str | None = None
    surveyor_recommendation: str | None = None
    status: VariationStatus = VariationStatus.PROPOSED
    client_approval_required: bool = True
    client_approved: bool = False
    client_approved_by: str | None = None
    client_approved_at: datetime | None = None
    surveyor_id: str | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class SurveyForm(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    project_id: str
    form_type: SurveyFormType
    surveyor_id: str
    survey_date: date
    property_type: str | None = None
    year_built: int | None = None
    construction_type: str | None = None
    occupancy_status: OccupancyStatus | None = None
    access_gained: bool = True
    access_restrictions: str | None = None
    weather_conditions: str | None = None
    cause_of_loss: str | None = None
    incident_date: date | None = None
    damage_summary: str = Field(min_length=1)
    recommendations: str | None = None
    urgent_actions_required: str | None = None
    health_safety_concerns: str | None = None
    make_safe_required: bool = False
    make_safe_completed: bool = False
    make_safe_cost: Money | None = None
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
    form_status: SurveyStatus = SurveyStatus.IN_PROGRESS
    form_completed_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ContractorAssessment(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    project_id: str
    contractor_id: str
    damage_item_ids: list[UUID] = Field(default_factory=list)
    assessment_type: AssessmentType = AssessmentType.QUOTATION
    trade_speciality: str | None = None
    site_visit_date: date | None = None
    works_description: str = Field(min_length=1)
    methodology: str | None = None
    estimated_duration_days: int | None = None
    proposed_start_date: date | None = None
    proposed_completion_date: date | None = None
    insurance_requirements_met: bool = False
    qualifications_certificates_provided: bool = False
    subtotal_labour: Money = ZERO
    subtotal_materials: Money = ZERO
    subtotal_plant_equipment: Money = ZERO
    subtotal_other: Money = ZERO
    vat_rate: Money = Field(default=DEFAULT_VAT_RATE, ge=0, le=100)
    payment_terms: str | None = None
    warranty_period_months: int = 12
    exclusions: str | None = None
    assumptions: str | None = None
    quote_valid_until: date | None = None
    status: AssessmentStatus = AssessmentStatus.SUBMITTED
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    acceptance_notes: str | None = None
    rejection_reason: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def totals(self) -> LineTotals:
        return compute_assessment_totals(
            [
                self.subtotal_labour,
                self.subtotal_materials,
                self.subtotal_plant_equipment,
                self.subtotal_other,
            ],
            self.vat_rate,
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_net_amount(self) -> Decimal:
        return self.totals.total_cost

    @computed_field  # type: ignore[prop-decorator]
    @property
    def vat_amount(self) -> Decimal:
        return self.totals.vat_amount

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_gross_amount(self) -> Decimal:
        return self.totals.total_including_vat


class ReserveMovement(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    project_id: str
    reserve_id: UUID
    movement_type: MovementType
    category: ReserveCategory | None = None
    amount: Money
    reason: str = Field(min_length=1)
    reference_document: str | None = None
    reference_id: UUID | None = None
    authorized_by: str | None = None
    processed_by: str | None = None
    movement_date: date = Field(default_factory=lambda: utcnow().date())
    accounting_period: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class ReserveHistoryEntry(BaseModel):
    """Audit row written for each category changed by a reserve update."""

    id: UUID = Field(default_factory=uuid4)
    project_id: str
    reserve_id: UUID
    change_type: HistoryChangeType
    category: ReserveCategory
    previous_estimated_amount: Money = ZERO
    new_estimated_amount: Money = ZERO
    previous_actual_amount: Money = ZERO
    new_actual_amount: Money = ZERO
    variance_amount: Money = ZERO
    variance_percentage: Money | None = None
    change_reason: str | None = None
    created_by: str | None = None
    change_date: datetime = Field(default_factory=utcnow)


class PCSumTotals(BaseModel):
    count: int = 0
    allocated: Decimal = ZERO
    spent: Decimal = ZERO
    remaining: Decimal = ZERO


class ProjectFinancialSummary(BaseModel):
    """Rolled-up reserving position for one project."""

    project_id: str
    currency: str = "GBP"
    current_reserve: ReserveRecord | None = None
    reserve_count: int = 0
    variance_indicator: str | None = None
    variance_percentage: Money | None = None

    damage_item_count: int = 0
    damage_total_cost: Decimal = ZERO
    damage_total_vat: Decimal = ZERO
    damage_total_including_vat: Decimal = ZERO
    damage_items_by_status: dict[str, int] = Field(default_factory=dict)

    pc_sums: PCSumTotals = Field(default_factory=PCSumTotals)
    approved_variation_impact: Decimal = ZERO
    missing_relations: list[str] = Field(default_factory=list)
