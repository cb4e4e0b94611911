"""Database queries for the reserving tables.

List reads tolerate tables that have not been provisioned yet: they return an
empty QueryResult carrying a MissingSchemaError instead of raising. Every
other database failure is logged and re-raised as BackendError.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import JSON, Select, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from claimcalc.db.models import (
    Base,
    ContractorAssessmentModel,
    DamageItemModel,
    HODCodeModel,
    PCSumModel,
    ProjectReserveModel,
    ReserveHistoryModel,
    ReserveMovementModel,
    ScopeVariationModel,
    SurveyFormModel,
)
from claimcalc.errors import (
    BackendError,
    ConcurrentUpdateError,
    MissingSchemaError,
    RecordNotFoundError,
)
from claimcalc.models import (
    ContractorAssessment,
    DamageItem,
    HODCode,
    PCSum,
    ReserveAmounts,
    ReserveCategory,
    ReserveHistoryEntry,
    ReserveMovement,
    ReserveRecord,
    ScopeVariation,
    SurveyForm,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNDEFINED_TABLE_SQLSTATE = "42P01"
_MISSING_RELATION = re.compile(r"relation \S+ does not exist|no such table", re.IGNORECASE)


@dataclass
class QueryResult(Generic[T]):
    """Rows from a list read, plus the reason when the table is absent."""

    items: list[T] = field(default_factory=list)
    missing_schema: MissingSchemaError | None = None


def is_missing_relation(exc: BaseException) -> bool:
    """True when the failure means the queried table does not exist."""
    orig = getattr(exc, "orig", None)
    for candidate in (exc, orig):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code == UNDEFINED_TABLE_SQLSTATE:
            return True
    return bool(_MISSING_RELATION.search(str(exc)))


# ---------------------------------------------------------------------------
# List reads
# ---------------------------------------------------------------------------


async def fetch_hod_codes(session: AsyncSession) -> QueryResult[HODCode]:
    """Active HOD codes ordered by category then code."""
    stmt = (
        select(HODCodeModel)
        .where(HODCodeModel.is_active.is_(True))
        .order_by(HODCodeModel.category, HODCodeModel.code)
    )
    return await _run_list(session, HODCodeModel.__tablename__, stmt, _to_hod_code)


async def fetch_reserves(session: AsyncSession, project_id: str) -> QueryResult[ReserveRecord]:
    stmt = (
        select(ProjectReserveModel)
        .where(ProjectReserveModel.project_id == project_id)
        .order_by(ProjectReserveModel.created_at.desc())
    )
    return await _run_list(session, ProjectReserveModel.__tablename__, stmt, _to_reserve)


async def fetch_damage_items(session: AsyncSession, project_id: str) -> QueryResult[DamageItem]:
    """Damage items for the project, each with its HOD code embedded."""
    stmt = (
        select(DamageItemModel)
        .options(joinedload(DamageItemModel.hod_code))
        .where(DamageItemModel.project_id == project_id)
        .order_by(DamageItemModel.created_at.desc())
    )
    return await _run_list(session, DamageItemModel.__tablename__, stmt, _to_damage_item)


async def fetch_pc_sums(session: AsyncSession, project_id: str) -> QueryResult[PCSum]:
    stmt = (
        select(PCSumModel)
        .where(PCSumModel.project_id == project_id)
        .order_by(PCSumModel.created_at.desc())
    )
    return await _run_list(session, PCSumModel.__tablename__, stmt, _converter(PCSum))


async def fetch_scope_variations(
    session: AsyncSession, project_id: str
) -> QueryResult[ScopeVariation]:
    stmt = (
        select(ScopeVariationModel)
        .where(ScopeVariationModel.project_id == project_id)
        .order_by(ScopeVariationModel.created_at.desc())
    )
    return await _run_list(
        session, ScopeVariationModel.__tablename__, stmt, _converter(ScopeVariation)
    )


async def fetch_survey_forms(session: AsyncSession, project_id: str) -> QueryResult[SurveyForm]:
    stmt = (
        select(SurveyFormModel)
        .where(SurveyFormModel.project_id == project_id)
        .order_by(SurveyFormModel.survey_date.desc(), SurveyFormModel.created_at.desc())
    )
    return await _run_list(session, SurveyFormModel.__tablename__, stmt, _converter(SurveyForm))


async def fetch_contractor_assessments(
    session: AsyncSession, project_id: str
) -> QueryResult[ContractorAssessment]:
    stmt = (
        select(ContractorAssessmentModel)
        .where(ContractorAssessmentModel.project_id == project_id)
        .order_by(ContractorAssessmentModel.created_at.desc())
    )
    return await _run_list(
        session,
        ContractorAssessmentModel.__tablename__,
        stmt,
        _converter(ContractorAssessment),
    )


async def fetch_reserve_movements(
    session: AsyncSession, project_id: str
) -> QueryResult[ReserveMovement]:
    stmt = (
        select(ReserveMovementModel)
        .where(ReserveMovementModel.project_id == project_id)
        .order_by(ReserveMovementModel.movement_date.desc(), ReserveMovementModel.created_at.desc())
    )
    return await _run_list(
        session, ReserveMovementModel.__tablename__, stmt, _converter(ReserveMovement)
    )


async def fetch_reserve_history(
    session: AsyncSession,
    project_id: str,
    reserve_id: UUID | None = None,
) -> QueryResult[ReserveHistoryEntry]:
    stmt = select(ReserveHistoryModel).where(ReserveHistoryModel.project_id == project_id)
    if reserve_id is not None:
        stmt = stmt.where(ReserveHistoryModel.reserve_id == reserve_id)
    stmt = stmt.order_by(ReserveHistoryModel.change_date.desc())
    return await _run_list(
        session, ReserveHistoryModel.__tablename__, stmt, _converter(ReserveHistoryEntry)
    )


# ---------------------------------------------------------------------------
# Single reads
# ---------------------------------------------------------------------------


async def get_hod_code(session: AsyncSession, hod_code_id: UUID) -> HODCode | None:
    stmt = select(HODCodeModel).where(HODCodeModel.id == hod_code_id)
    model = await _run_one(session, stmt)
    return _to_hod_code(model) if model else None


async def get_reserve(session: AsyncSession, reserve_id: UUID) -> ReserveRecord | None:
    stmt = select(ProjectReserveModel).where(ProjectReserveModel.id == reserve_id)
    model = await _run_one(session, stmt)
    return _to_reserve(model) if model else None


async def get_damage_item(session: AsyncSession, item_id: UUID) -> DamageItem | None:
    stmt = (
        select(DamageItemModel)
        .options(joinedload(DamageItemModel.hod_code))
        .where(DamageItemModel.id == item_id)
    )
    model = await _run_one(session, stmt)
    return _to_damage_item(model) if model else None


async def get_pc_sum(session: AsyncSession, pc_sum_id: UUID) -> PCSum | None:
    stmt = select(PCSumModel).where(PCSumModel.id == pc_sum_id)
    model = await _run_one(session, stmt)
    return PCSum.model_validate(_row_dict(model)) if model else None


async def get_scope_variation(session: AsyncSession, variation_id: UUID) -> ScopeVariation | None:
    stmt = select(ScopeVariationModel).where(ScopeVariationModel.id == variation_id)
    model = await _run_one(session, stmt)
    return ScopeVariation.model_validate(_row_dict(model)) if model else None


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def insert_reserve(session: AsyncSession, record: ReserveRecord) -> ReserveRecord:
    await _insert(session, ProjectReserveModel(**_reserve_values(record)))
    return record


async def save_reserve(
    session: AsyncSession,
    record: ReserveRecord,
    *,
    expected_version: int,
) -> ReserveRecord:
    """Write `record` over the stored row if it is still at `expected_version`.

    Raises:
        ConcurrentUpdateError: stored version differs
        RecordNotFoundError: row no longer exists
    """
    await _save_versioned(
        session,
        ProjectReserveModel,
        "reserve",
        record.id,
        expected_version,
        _reserve_values(record),
    )
    return record


async def insert_damage_item(session: AsyncSession, item: DamageItem) -> DamageItem:
    await _insert(session, DamageItemModel(**_column_values(DamageItemModel, item)))
    return item


async def save_damage_item(
    session: AsyncSession,
    item: DamageItem,
    *,
    expected_version: int,
) -> DamageItem:
    await _save_versioned(
        session,
        DamageItemModel,
        "damage item",
        item.id,
        expected_version,
        _column_values(DamageItemModel, item),
    )
    return item


async def insert_pc_sum(session: AsyncSession, pc_sum: PCSum) -> PCSum:
    await _insert(session, PCSumModel(**_column_values(PCSumModel, pc_sum)))
    return pc_sum


async def save_pc_sum(session: AsyncSession, pc_sum: PCSum) -> PCSum:
    await _save(session, PCSumModel, "PC sum", pc_sum.id, _column_values(PCSumModel, pc_sum))
    return pc_sum


async def insert_scope_variation(session: AsyncSession, variation: ScopeVariation) -> ScopeVariation:
    await _insert(session, ScopeVariationModel(**_column_values(ScopeVariationModel, variation)))
    return variation


async def save_scope_variation(session: AsyncSession, variation: ScopeVariation) -> ScopeVariation:
    await _save(
        session,
        ScopeVariationModel,
        "scope variation",
        variation.id,
        _column_values(ScopeVariationModel, variation),
    )
    return variation


async def insert_survey_form(session: AsyncSession, form: SurveyForm) -> SurveyForm:
    await _insert(session, SurveyFormModel(**_column_values(SurveyFormModel, form)))
    return form


async def insert_contractor_assessment(
    session: AsyncSession, assessment: ContractorAssessment
) -> ContractorAssessment:
    await _insert(
        session,
        ContractorAssessmentModel(**_column_values(ContractorAssessmentModel, assessment)),
    )
    return assessment


async def insert_reserve_movement(session: AsyncSession, movement: ReserveMovement) -> ReserveMovement:
    await _insert(session, ReserveMovementModel(**_column_values(ReserveMovementModel, movement)))
    return movement


async def insert_reserve_history(
    session: AsyncSession, entries: Sequence[ReserveHistoryEntry]
) -> list[ReserveHistoryEntry]:
    if not entries:
        return []
    await _insert(
        session,
        *(ReserveHistoryModel(**_column_values(ReserveHistoryModel, entry)) for entry in entries),
    )
    return list(entries)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _run_list(
    session: AsyncSession,
    relation: str,
    stmt: Select,
    convert: Callable[[Any], T],
) -> QueryResult[T]:
    stmt = stmt.execution_options(populate_existing=True)
    try:
        if _uses_savepoints(session):
            # A failed statement aborts the surrounding PostgreSQL transaction.
            async with session.begin_nested():
                rows = (await session.execute(stmt)).scalars().unique().all()
        else:
            rows = (await session.execute(stmt)).scalars().unique().all()
    except SQLAlchemyError as exc:
        if is_missing_relation(exc):
            logger.warning("Table %s does not exist yet; returning no rows", relation)
            return QueryResult(items=[], missing_schema=MissingSchemaError(relation, str(exc)))
        logger.error("Failed to load %s: %s", relation, exc)
        raise BackendError(str(exc)) from exc

    return QueryResult(items=[convert(row) for row in rows])


async def _run_one(session: AsyncSession, stmt: Select) -> Any:
    stmt = stmt.execution_options(populate_existing=True)
    try:
        return (await session.execute(stmt)).scalars().unique().one_or_none()
    except SQLAlchemyError as exc:
        logger.error("Failed to load record: %s", exc)
        raise BackendError(str(exc)) from exc


async def _insert(session: AsyncSession, *models: Base) -> None:
    try:
        session.add_all(models)
        await session.flush()
    except SQLAlchemyError as exc:
        logger.error("Failed to insert %s: %s", type(models[0]).__tablename__, exc)
        raise BackendError(str(exc)) from exc


async def _save(
    session: AsyncSession,
    orm_cls: type[Base],
    entity: str,
    record_id: UUID,
    values: dict[str, Any],
) -> None:
    stmt = update(orm_cls).where(orm_cls.id == record_id).values(**_without_key(values))
    try:
        result = await session.execute(stmt)
    except SQLAlchemyError as exc:
        logger.error("Failed to save %s %s: %s", entity, record_id, exc)
        raise BackendError(str(exc)) from exc
    if result.rowcount == 0:
        raise RecordNotFoundError(entity, record_id)


async def _save_versioned(
    session: AsyncSession,
    orm_cls: type[Base],
    entity: str,
    record_id: UUID,
    expected_version: int,
    values: dict[str, Any],
) -> None:
    stmt = (
        update(orm_cls)
        .where(orm_cls.id == record_id, orm_cls.version == expected_version)
        .values(**_without_key(values))
    )
    try:
        result = await session.execute(stmt)
        if result.rowcount:
            return
        current = await session.scalar(select(orm_cls.version).where(orm_cls.id == record_id))
    except SQLAlchemyError as exc:
        logger.error("Failed to save %s %s: %s", entity, record_id, exc)
        raise BackendError(str(exc)) from exc

    if current is None:
        raise RecordNotFoundError(entity, record_id)
    logger.warning(
        "Version conflict on %s %s: expected %s, found %s",
        entity,
        record_id,
        expected_version,
        current,
    )
    raise ConcurrentUpdateError(entity, expected_version, current)


def _without_key(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if key != "id"}


def _uses_savepoints(session: AsyncSession) -> bool:
    return session.get_bind().dialect.name == "postgresql"


def _row_dict(model: Base) -> dict[str, Any]:
    return {column.key: getattr(model, column.key) for column in model.__table__.columns}


def _column_values(orm_cls: type[Base], record: BaseModel) -> dict[str, Any]:
    """Dump a domain model to the columns of `orm_cls` (computed fields included)."""
    data = record.model_dump()
    json_data = record.model_dump(mode="json")
    values: dict[str, Any] = {}
    for column in orm_cls.__table__.columns:
        if column.key not in data:
            continue
        if isinstance(column.type, JSON):
            values[column.key] = json_data[column.key]
        elif isinstance(data[column.key], Enum):
            values[column.key] = data[column.key].value
        else:
            values[column.key] = data[column.key]
    return values


def _converter(domain_cls: type[T]) -> Callable[[Base], T]:
    def convert(model: Base) -> T:
        return domain_cls.model_validate(_row_dict(model))

    return convert


def _to_hod_code(model: HODCodeModel) -> HODCode:
    return HODCode.model_validate(_row_dict(model))


def _to_damage_item(model: DamageItemModel) -> DamageItem:
    data = _row_dict(model)
    if model.hod_code is not None:
        data["hod_code"] = _to_hod_code(model.hod_code)
    return DamageItem.model_validate(data)


def _to_reserve(model: ProjectReserveModel) -> ReserveRecord:
    return ReserveRecord(
        id=model.id,
        project_id=model.project_id,
        reserve_type=model.reserve_type,
        status=model.status,
        estimated=ReserveAmounts(
            **{c.value: getattr(model, f"estimated_{c.value}_reserve") for c in ReserveCategory}
        ),
        actual=ReserveAmounts(
            **{c.value: getattr(model, f"actual_{c.value}_reserve") for c in ReserveCategory}
        ),
        currency=model.currency,
        created_by=model.created_by,
        approved_by=model.approved_by,
        approved_at=model.approved_at,
        notes=model.notes,
        version=model.version,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _reserve_values(record: ReserveRecord) -> dict[str, Any]:
    values: dict[str, Any] = {
        "id": record.id,
        "project_id": record.project_id,
        "reserve_type": record.reserve_type.value,
        "status": record.status.value,
        "currency": record.currency,
        "created_by": record.created_by,
        "approved_by": record.approved_by,
        "approved_at": record.approved_at,
        "notes": record.notes,
        "version": record.version,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "estimated_total_reserve_amount": record.total_estimated,
        "actual_total_reserve_amount": record.total_actual,
        "variance_total_reserve_amount": record.total_variance,
    }
    variance = record.variance
    for category in ReserveCategory:
        values[f"estimated_{category.value}_reserve"] = record.estimated.get(category)
        values[f"actual_{category.value}_reserve"] = record.actual.get(category)
        values[f"variance_{category.value}_reserve"] = variance.get(category)
    return values
