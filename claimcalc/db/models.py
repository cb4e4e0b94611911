"""SQLAlchemy async database models for ClaimCalc.

Maps to the PostgreSQL reserving schema. Derived money columns (variances,
line totals, remaining amounts) are written from the domain models, which
compute them; nothing here calculates.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def _money(nullable: bool = False, default: Decimal | None = Decimal("0")):
    return mapped_column(Numeric(14, 2), nullable=nullable, default=default)


class HODCodeModel(Base):
    """Head of Damage cost code lookup."""

    __tablename__ = "hod_codes"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    sub_category: Mapped[str | None] = mapped_column(Text)
    typical_rate_low: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    typical_rate_high: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    unit_type: Mapped[str] = mapped_column(Text, nullable=False, default="per_item")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ProjectReserveModel(Base):
    """Reserve snapshot with estimated / actual / variance per category."""

    __tablename__ = "project_reserves"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    reserve_type: Mapped[str] = mapped_column(Text, nullable=False, default="initial")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft", index=True)

    estimated_building_reserve: Mapped[Decimal] = _money()
    estimated_contents_reserve: Mapped[Decimal] = _money()
    estimated_consequential_reserve: Mapped[Decimal] = _money()
    estimated_alternative_accommodation_reserve: Mapped[Decimal] = _money()
    estimated_professional_fees_reserve: Mapped[Decimal] = _money()
    estimated_total_reserve_amount: Mapped[Decimal] = _money()

    actual_building_reserve: Mapped[Decimal] = _money()
    actual_contents_reserve: Mapped[Decimal] = _money()
    actual_consequential_reserve: Mapped[Decimal] = _money()
    actual_alternative_accommodation_reserve: Mapped[Decimal] = _money()
    actual_professional_fees_reserve: Mapped[Decimal] = _money()
    actual_total_reserve_amount: Mapped[Decimal] = _money()

    variance_building_reserve: Mapped[Decimal] = _money()
    variance_contents_reserve: Mapped[Decimal] = _money()
    variance_consequential_reserve: Mapped[Decimal] = _money()
    variance_alternative_accommodation_reserve: Mapped[Decimal] = _money()
    variance_professional_fees_reserve: Mapped[Decimal] = _money()
    variance_total_reserve_amount: Mapped[Decimal] = _money()

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    created_by: Mapped[str | None] = mapped_column(Text)
    approved_by: Mapped[str | None] = mapped_column(Text)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_project_reserves_project_created", "project_id", "created_at"),
    )


class DamageItemModel(Base):
    """Individual damage line priced against a HOD code."""

    __tablename__ = "damage_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    reserve_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("project_reserves.id")
    )
    hod_code_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("hod_codes.id"), nullable=False, index=True
    )
    item_description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(Text)

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal("1"))
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_cost: Mapped[Decimal] = _money()
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("20"))
    vat_amount: Mapped[Decimal] = _money()
    total_including_vat: Mapped[Decimal] = _money()

    damage_cause: Mapped[str | None] = mapped_column(Text)
    damage_extent: Mapped[str | None] = mapped_column(Text)
    repair_method: Mapped[str | None] = mapped_column(Text)
    urgency: Mapped[str] = mapped_column(Text, nullable=False, default="normal")
    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    measurements: Mapped[dict | None] = mapped_column(JSON)
    supplier_quotes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    surveyor_notes: Mapped[str | None] = mapped_column(Text)
    contractor_notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="estimated", index=True)

    created_by: Mapped[str | None] = mapped_column(Text)
    surveyed_by: Mapped[str | None] = mapped_column(Text)
    surveyed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Loaded explicitly with joinedload(); async sessions cannot lazy-load.
    hod_code: Mapped[HODCodeModel] = relationship(lazy="raise")


class PCSumModel(Base):
    """Provisional cost sum for scope not yet itemised."""

    __tablename__ = "pc_sums"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    reserve_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("project_reserves.id")
    )
    pc_sum_description: Mapped[str] = mapped_column(Text, nullable=False)
    allocated_amount: Mapped[Decimal] = _money()
    spent_amount: Mapped[Decimal] = _money()
    remaining_amount: Mapped[Decimal] = _money()
    category: Mapped[str | None] = mapped_column(Text)
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    scope_definition: Mapped[str | None] = mapped_column(Text)
    expected_completion_date: Mapped[date | None] = mapped_column(Date)
    actual_completion_date: Mapped[date | None] = mapped_column(Date)
    contractor_id: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="allocated")
    approval_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approved_by: Mapped[str | None] = mapped_column(Text)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ScopeVariationModel(Base):
    __tablename__ = "scope_variations"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    reserve_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("project_reserves.id")
    )
    variation_type: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    original_scope: Mapped[str | None] = mapped_column(Text)
    revised_scope: Mapped[str | None] = mapped_column(Text)
    cost_impact: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)  # signed
    time_impact_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    client_instructions: Mapped[str | None] = mapped_column(Text)
    surveyor_recommendation: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="proposed")
    client_approval_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    client_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    client_approved_by: Mapped[str | None] = mapped_column(Text)
    client_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    surveyor_id: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class SurveyFormModel(Base):
    __tablename__ = "survey_forms"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    form_type: Mapped[str] = mapped_column(Text, nullable=False)
    surveyor_id: Mapped[str] = mapped_column(Text, nullable=False)
    survey_date: Mapped[date] = mapped_column(Date, nullable=False)
    property_type: Mapped[str | None] = mapped_column(Text)
    year_built: Mapped[int | None] = mapped_column(Integer)
    construction_type: Mapped[str | None] = mapped_column(Text)
    occupancy_status: Mapped[str | None] = mapped_column(Text)
    access_gained: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    access_restrictions: Mapped[str | None] = mapped_column(Text)
    weather_conditions: Mapped[str | None] = mapped_column(Text)
    cause_of_loss: Mapped[str | None] = mapped_column(Text)
    incident_date: Mapped[date | None] = mapped_column(Date)
    damage_summary: Mapped[str] = mapped_column(Text, nullable=False)
    recommendations: Mapped[str | None] = mapped_column(Text)
    urgent_actions_required: Mapped[str | None] = mapped_column(Text)
    health_safety_concerns: Mapped[str | None] = mapped_column(Text)
    make_safe_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    make_safe_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    make_safe_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    drying_equipment_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    drying_equipment_installed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    environmental_monitoring: Mapped[dict | None] = mapped_column(JSON)
    photos_taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    photo_references: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    additional_specialists_required: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    follow_up_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    follow_up_date: Mapped[date | None] = mapped_column(Date)
    client_present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    client_representative_name: Mapped[str | None] = mapped_column(Text)
    form_status: Mapped[str] = mapped_column(Text, nullable=False, default="in_progress")
    form_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[str | None] = mapped_column(Text)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ContractorAssessmentModel(Base):
    __tablename__ = "contractor_assessments"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    contractor_id: Mapped[str] = mapped_column(Text, nullable=False)
    damage_item_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    assessment_type: Mapped[str] = mapped_column(Text, nullable=False, default="quotation")
    trade_speciality: Mapped[str | None] = mapped_column(Text)
    site_visit_date: Mapped[date | None] = mapped_column(Date)
    works_description: Mapped[str] = mapped_column(Text, nullable=False)
    methodology: Mapped[str | None] = mapped_column(Text)
    estimated_duration_days: Mapped[int | None] = mapped_column(Integer)
    proposed_start_date: Mapped[date | None] = mapped_column(Date)
    proposed_completion_date: Mapped[date | None] = mapped_column(Date)
    insurance_requirements_met: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    qualifications_certificates_provided: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    subtotal_labour: Mapped[Decimal] = _money()
    subtotal_materials: Mapped[Decimal] = _money()
    subtotal_plant_equipment: Mapped[Decimal] = _money()
    subtotal_other: Mapped[Decimal] = _money()
    total_net_amount: Mapped[Decimal] = _money()
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("20"))
    vat_amount: Mapped[Decimal] = _money()
    total_gross_amount: Mapped[Decimal] = _money()
    payment_terms: Mapped[str | None] = mapped_column(Text)
    warranty_period_months: Mapped[int] = mapped_column(Integer, nullable=False, default=12)
    exclusions: Mapped[str | None] = mapped_column(Text)
    assumptions: Mapped[str | None] = mapped_column(Text)
    quote_valid_until: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="submitted")
    reviewed_by: Mapped[str | None] = mapped_column(Text)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    acceptance_notes: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ReserveMovementModel(Base):
    __tablename__ = "reserve_movements"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    reserve_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("project_reserves.id"), nullable=False
    )
    movement_type: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    reference_document: Mapped[str | None] = mapped_column(Text)
    reference_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    authorized_by: Mapped[str | None] = mapped_column(Text)
    processed_by: Mapped[str | None] = mapped_column(Text)
    movement_date: Mapped[date] = mapped_column(Date, nullable=False)
    accounting_period: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ReserveHistoryModel(Base):
    """Per-category audit trail of reserve amount changes."""

    __tablename__ = "reserve_history"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    reserve_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("project_reserves.id"), nullable=False, index=True
    )
    change_type: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    previous_estimated_amount: Mapped[Decimal] = _money()
    new_estimated_amount: Mapped[Decimal] = _money()
    previous_actual_amount: Mapped[Decimal] = _money()
    new_actual_amount: Mapped[Decimal] = _money()
    variance_amount: Mapped[Decimal] = _money()
    variance_percentage: Mapped[Decimal | None] = mapped_column(Numeric(9, 2))
    change_reason: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(Text)
    change_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
