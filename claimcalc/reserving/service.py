"""Request-scoped reserving operations.

A ReservingService is built per request (or CLI command) from an open
session, the acting user and, optionally, a QueryCache. Domain rules are
checked before anything is written; the cache is invalidated only after a
write succeeds.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from claimcalc.config import ReservingConfig
from claimcalc.errors import ConcurrentUpdateError, RecordNotFoundError, ValidationError
from claimcalc.models import (
    ContractorAssessment,
    DamageItem,
    DamageStatus,
    HODCode,
    PCSum,
    PCSumStatus,
    PCSumTotals,
    ProjectFinancialSummary,
    ReserveHistoryEntry,
    ReserveMovement,
    ReserveRecord,
    ReserveStatus,
    ScopeVariation,
    SurveyForm,
    VariationStatus,
)
from claimcalc.reserving import assessments, budget, cache as cache_keys, catalog, ledger
from claimcalc.reserving import repository
from claimcalc.reserving.cache import QueryCache
from claimcalc.reserving.calculator import (
    ZERO,
    aggregate_damage_items,
    select_current_reserve,
    variance_indicator,
    variance_percentage,
)
from claimcalc.reserving.repository import QueryResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReservingService:
    """Reserving operations for one actor over one database session.

    Args:
        session: Open async session; the caller owns commit/rollback
        actor_id: Identity stamped on created_by / approved_by fields
        cache: Optional list-read cache shared across calls
        config: Reserving defaults (currency, VAT, variance tolerance)
    """

    def __init__(
        self,
        session: AsyncSession,
        actor_id: str,
        cache: QueryCache | None = None,
        config: ReservingConfig | None = None,
    ):
        if not actor_id:
            raise ValidationError("An acting user is required", field="actor_id")
        self.session = session
        self.actor_id = actor_id
        self.cache = cache
        self.config = config or ReservingConfig()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_hod_codes(self, search: str | None = None) -> list[HODCode]:
        result = await self._cached(
            cache_keys.HOD_CODES, None, lambda: repository.fetch_hod_codes(self.session)
        )
        return catalog.filter_hod_codes(result.items, search)

    async def list_reserves(self, project_id: str) -> list[ReserveRecord]:
        result = await self._reserves(project_id)
        return result.items

    async def current_reserve(self, project_id: str) -> ReserveRecord | None:
        return select_current_reserve(await self.list_reserves(project_id))

    async def list_reserve_history(
        self, project_id: str, reserve_id: UUID | None = None
    ) -> list[ReserveHistoryEntry]:
        if reserve_id is not None:
            result = await repository.fetch_reserve_history(self.session, project_id, reserve_id)
        else:
            result = await self._cached(
                cache_keys.RESERVE_HISTORY,
                project_id,
                lambda: repository.fetch_reserve_history(self.session, project_id),
            )
        return result.items

    async def list_reserve_movements(self, project_id: str) -> list[ReserveMovement]:
        result = await self._cached(
            cache_keys.RESERVE_MOVEMENTS,
            project_id,
            lambda: repository.fetch_reserve_movements(self.session, project_id),
        )
        return result.items

    async def list_damage_items(self, project_id: str) -> list[DamageItem]:
        return (await self._damage_items(project_id)).items

    async def list_pc_sums(self, project_id: str) -> list[PCSum]:
        return (await self._pc_sums(project_id)).items

    async def list_scope_variations(self, project_id: str) -> list[ScopeVariation]:
        return (await self._scope_variations(project_id)).items

    async def list_survey_forms(self, project_id: str) -> list[SurveyForm]:
        result = await self._cached(
            cache_keys.SURVEY_FORMS,
            project_id,
            lambda: repository.fetch_survey_forms(self.session, project_id),
        )
        return result.items

    async def list_contractor_assessments(self, project_id: str) -> list[ContractorAssessment]:
        result = await self._cached(
            cache_keys.CONTRACTOR_ASSESSMENTS,
            project_id,
            lambda: repository.fetch_contractor_assessments(self.session, project_id),
        )
        return result.items

    async def project_summary(self, project_id: str) -> ProjectFinancialSummary:
        """Roll up reserves, damage items, PC sums and variations for a project."""
        if self.cache is not None:
            cached = self.cache.get(cache_keys.PROJECT_FINANCIALS, project_id)
            if cached is not None:
                return cached
            token = self.cache.begin(cache_keys.PROJECT_FINANCIALS, project_id)

        reserves = await self._reserves(project_id)
        damage = await self._damage_items(project_id)
        pc_sums = await self._pc_sums(project_id)
        variations = await self._scope_variations(project_id)

        summary = self._build_summary(project_id, reserves, damage, pc_sums, variations)
        if self.cache is not None:
            self.cache.put(cache_keys.PROJECT_FINANCIALS, project_id, token, summary)
        return summary

    # ------------------------------------------------------------------
    # Reserves
    # ------------------------------------------------------------------

    async def create_reserve(
        self,
        project_id: str,
        data: Mapping[str, Any],
        *,
        reason: str | None = None,
    ) -> ReserveRecord:
        record = ledger.create_reserve(
            {**data, "project_id": project_id},
            self.actor_id,
            currency=self.config.currency,
        )
        blank = ReserveRecord(
            id=record.id, project_id=project_id, reserve_type=record.reserve_type
        )
        await repository.insert_reserve(self.session, record)
        await repository.insert_reserve_history(
            self.session,
            ledger.diff_reserve_history(blank, record, reason=reason, created_by=self.actor_id),
        )
        logger.info("Created %s reserve %s for project %s", record.reserve_type.value, record.id, project_id)
        self._invalidate("reserve", project_id)
        return record

    async def update_reserve(
        self,
        project_id: str,
        reserve_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_version: int | None = None,
        reason: str | None = None,
    ) -> ReserveRecord:
        """Apply amount/note changes to a reserve in place and record history."""
        existing = await self._load_reserve(project_id, reserve_id, expected_version)
        updated = ledger.apply_reserve_changes(existing, changes)
        await repository.save_reserve(self.session, updated, expected_version=existing.version)
        await repository.insert_reserve_history(
            self.session,
            ledger.diff_reserve_history(existing, updated, reason=reason, created_by=self.actor_id),
        )
        self._invalidate("reserve", existing.project_id)
        return updated

    async def revise_reserve(
        self,
        project_id: str,
        reserve_id: UUID,
        changes: Mapping[str, Any],
        *,
        reason: str | None = None,
    ) -> ReserveRecord:
        """Create a new draft reserve carrying forward `reserve_id` with `changes`."""
        existing = await self._load_reserve(project_id, reserve_id)
        revised = ledger.revise_reserve(existing, changes, revised_by=self.actor_id)
        await repository.insert_reserve(self.session, revised)
        await repository.insert_reserve_history(
            self.session,
            ledger.diff_reserve_history(existing, revised, reason=reason, created_by=self.actor_id),
        )
        logger.info("Revised reserve %s as %s", existing.id, revised.id)
        self._invalidate("reserve", existing.project_id)
        return revised

    async def submit_reserve(
        self, project_id: str, reserve_id: UUID, *, expected_version: int | None = None
    ) -> ReserveRecord:
        existing = await self._load_reserve(project_id, reserve_id, expected_version)
        submitted = ledger.submit_reserve(existing)
        await repository.save_reserve(self.session, submitted, expected_version=existing.version)
        self._invalidate("reserve", existing.project_id)
        return submitted

    async def approve_reserve(
        self, project_id: str, reserve_id: UUID, *, expected_version: int | None = None
    ) -> ReserveRecord:
        """Approve a pending reserve and supersede the project's earlier approved ones."""
        existing = await self._load_reserve(project_id, reserve_id, expected_version)
        approved = ledger.approve_reserve(existing, self.actor_id)

        previous = await repository.fetch_reserves(self.session, existing.project_id)
        for other in previous.items:
            if other.id != existing.id and other.status == ReserveStatus.APPROVED:
                superseded = ledger.supersede_reserve(other)
                await repository.save_reserve(self.session, superseded, expected_version=other.version)

        await repository.save_reserve(self.session, approved, expected_version=existing.version)
        self._invalidate("reserve", existing.project_id)
        return approved

    async def supersede_reserve(
        self, project_id: str, reserve_id: UUID, *, expected_version: int | None = None
    ) -> ReserveRecord:
        existing = await self._load_reserve(project_id, reserve_id, expected_version)
        superseded = ledger.supersede_reserve(existing)
        await repository.save_reserve(self.session, superseded, expected_version=existing.version)
        self._invalidate("reserve", existing.project_id)
        return superseded

    async def record_reserve_movement(
        self, project_id: str, reserve_id: UUID, data: Mapping[str, Any]
    ) -> ReserveMovement:
        reserve = await self._load_reserve(project_id, reserve_id)
        movement = ledger.create_reserve_movement(reserve, data, self.actor_id)
        await repository.insert_reserve_movement(self.session, movement)
        self._invalidate("reserve-movement", reserve.project_id)
        return movement

    # ------------------------------------------------------------------
    # Damage items
    # ------------------------------------------------------------------

    async def create_damage_item(self, project_id: str, data: Mapping[str, Any]) -> DamageItem:
        await self._check_reserve_link(project_id, data.get("reserve_id"))
        hod_code = None
        if data.get("hod_code_id"):
            hod_code = await self._load_hod_code(data["hod_code_id"])
        item = catalog.create_damage_item(
            {**data, "project_id": project_id}, self.actor_id, hod_code=hod_code
        )
        await repository.insert_damage_item(self.session, item)
        logger.info("Created damage item %s (%s) for project %s", item.id, item.total_including_vat, project_id)
        self._invalidate("damage-item", project_id)
        return item

    async def update_damage_item(
        self,
        project_id: str,
        item_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> DamageItem:
        existing = await self._load_damage_item(project_id, item_id, expected_version)
        new_hod_code = None
        if "hod_code_id" in changes and str(changes["hod_code_id"]) != str(existing.hod_code_id):
            new_hod_code = await self._load_hod_code(changes["hod_code_id"])
            if not new_hod_code.is_active:
                raise ValidationError(f"HOD code {new_hod_code.code} is inactive", field="hod_code_id")

        updated = catalog.update_damage_item(existing, changes)
        if new_hod_code is not None:
            updated = updated.model_copy(update={"hod_code": new_hod_code})
        await repository.save_damage_item(self.session, updated, expected_version=existing.version)
        self._invalidate("damage-item", existing.project_id)
        return updated

    async def advance_damage_item(
        self,
        project_id: str,
        item_id: UUID,
        target: DamageStatus | str | None = None,
        *,
        expected_version: int | None = None,
    ) -> DamageItem:
        existing = await self._load_damage_item(project_id, item_id, expected_version)
        advanced = catalog.advance_damage_item(existing, target)
        await repository.save_damage_item(self.session, advanced, expected_version=existing.version)
        self._invalidate("damage-item", existing.project_id)
        return advanced

    # ------------------------------------------------------------------
    # PC sums and scope variations
    # ------------------------------------------------------------------

    async def create_pc_sum(self, project_id: str, data: Mapping[str, Any]) -> PCSum:
        await self._check_reserve_link(project_id, data.get("reserve_id"))
        pc_sum = budget.create_pc_sum({**data, "project_id": project_id}, self.actor_id)
        await repository.insert_pc_sum(self.session, pc_sum)
        self._invalidate("pc-sum", project_id)
        return pc_sum

    async def record_pc_spend(self, project_id: str, pc_sum_id: UUID, amount: Any) -> PCSum:
        pc_sum = await self._load_pc_sum(project_id, pc_sum_id)
        updated = budget.record_pc_spend(pc_sum, amount)
        await repository.save_pc_sum(self.session, updated)
        self._invalidate("pc-sum", pc_sum.project_id)
        return updated

    async def approve_pc_sum(self, project_id: str, pc_sum_id: UUID) -> PCSum:
        pc_sum = await self._load_pc_sum(project_id, pc_sum_id)
        updated = budget.approve_pc_sum(pc_sum, self.actor_id)
        await repository.save_pc_sum(self.session, updated)
        self._invalidate("pc-sum", pc_sum.project_id)
        return updated

    async def transition_pc_sum(self, project_id: str, pc_sum_id: UUID, status: PCSumStatus | str) -> PCSum:
        pc_sum = await self._load_pc_sum(project_id, pc_sum_id)
        updated = budget.transition_pc_sum(pc_sum, status)
        await repository.save_pc_sum(self.session, updated)
        self._invalidate("pc-sum", pc_sum.project_id)
        return updated

    async def create_scope_variation(self, project_id: str, data: Mapping[str, Any]) -> ScopeVariation:
        await self._check_reserve_link(project_id, data.get("reserve_id"))
        variation = budget.create_scope_variation({**data, "project_id": project_id}, self.actor_id)
        await repository.insert_scope_variation(self.session, variation)
        self._invalidate("scope-variation", project_id)
        return variation

    async def transition_scope_variation(
        self, project_id: str, variation_id: UUID, status: VariationStatus | str
    ) -> ScopeVariation:
        variation = await self._load_scope_variation(project_id, variation_id)
        updated = budget.transition_scope_variation(variation, status, decided_by=self.actor_id)
        await repository.save_scope_variation(self.session, updated)
        self._invalidate("scope-variation", variation.project_id)
        return updated

    # ------------------------------------------------------------------
    # Surveys and contractor assessments
    # ------------------------------------------------------------------

    async def create_survey_form(self, project_id: str, data: Mapping[str, Any]) -> SurveyForm:
        form = assessments.create_survey_form({**data, "project_id": project_id}, self.actor_id)
        await repository.insert_survey_form(self.session, form)
        self._invalidate("survey-form", project_id)
        return form

    async def create_contractor_assessment(
        self, project_id: str, data: Mapping[str, Any]
    ) -> ContractorAssessment:
        assessment = assessments.create_contractor_assessment({**data, "project_id": project_id})
        await repository.insert_contractor_assessment(self.session, assessment)
        self._invalidate("contractor-assessment", project_id)
        return assessment

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _cached(
        self,
        entity: str,
        key: Any,
        loader: Callable[[], Awaitable[QueryResult[T]]],
    ) -> QueryResult[T]:
        if self.cache is None:
            return await loader()
        return await self.cache.fetch(entity, key, loader)

    async def _reserves(self, project_id: str) -> QueryResult[ReserveRecord]:
        return await self._cached(
            cache_keys.PROJECT_RESERVES,
            project_id,
            lambda: repository.fetch_reserves(self.session, project_id),
        )

    async def _damage_items(self, project_id: str) -> QueryResult[DamageItem]:
        return await self._cached(
            cache_keys.DAMAGE_ITEMS,
            project_id,
            lambda: repository.fetch_damage_items(self.session, project_id),
        )

    async def _pc_sums(self, project_id: str) -> QueryResult[PCSum]:
        return await self._cached(
            cache_keys.PC_SUMS,
            project_id,
            lambda: repository.fetch_pc_sums(self.session, project_id),
        )

    async def _scope_variations(self, project_id: str) -> QueryResult[ScopeVariation]:
        return await self._cached(
            cache_keys.SCOPE_VARIATIONS,
            project_id,
            lambda: repository.fetch_scope_variations(self.session, project_id),
        )

    def _invalidate(self, mutation: str, project_id: str) -> None:
        if self.cache is not None:
            self.cache.invalidate_after(mutation, project_id)

    async def _load_reserve(
        self, project_id: str, reserve_id: UUID, expected_version: int | None = None
    ) -> ReserveRecord:
        record = await repository.get_reserve(self.session, reserve_id)
        # Records from another project are indistinguishable from missing ones.
        if record is None or record.project_id != project_id:
            raise RecordNotFoundError("reserve", reserve_id)
        if expected_version is not None and record.version != expected_version:
            raise ConcurrentUpdateError("reserve", expected_version, record.version)
        return record

    async def _load_damage_item(
        self, project_id: str, item_id: UUID, expected_version: int | None = None
    ) -> DamageItem:
        item = await repository.get_damage_item(self.session, item_id)
        if item is None or item.project_id != project_id:
            raise RecordNotFoundError("damage item", item_id)
        if expected_version is not None and item.version != expected_version:
            raise ConcurrentUpdateError("damage item", expected_version, item.version)
        return item

    async def _load_pc_sum(self, project_id: str, pc_sum_id: UUID) -> PCSum:
        pc_sum = await repository.get_pc_sum(self.session, pc_sum_id)
        if pc_sum is None or pc_sum.project_id != project_id:
            raise RecordNotFoundError("PC sum", pc_sum_id)
        return pc_sum

    async def _load_scope_variation(self, project_id: str, variation_id: UUID) -> ScopeVariation:
        variation = await repository.get_scope_variation(self.session, variation_id)
        if variation is None or variation.project_id != project_id:
            raise RecordNotFoundError("scope variation", variation_id)
        return variation

    async def _check_reserve_link(self, project_id: str, reserve_id: Any) -> None:
        """A reserve_id on a child record must name a reserve in the same project."""
        if reserve_id is None:
            return
        try:
            record_id = reserve_id if isinstance(reserve_id, UUID) else UUID(str(reserve_id))
        except ValueError as exc:
            raise ValidationError(f"Invalid reserve id: {reserve_id}", field="reserve_id") from exc
        record = await repository.get_reserve(self.session, record_id)
        if record is None or record.project_id != project_id:
            raise ValidationError(
                f"Reserve {reserve_id} does not belong to project {project_id}", field="reserve_id"
            )

    async def _load_hod_code(self, hod_code_id: Any) -> HODCode:
        try:
            code_id = hod_code_id if isinstance(hod_code_id, UUID) else UUID(str(hod_code_id))
        except ValueError as exc:
            raise ValidationError(f"Invalid HOD code id: {hod_code_id}", field="hod_code_id") from exc
        hod_code = await repository.get_hod_code(self.session, code_id)
        if hod_code is None:
            raise ValidationError(f"Unknown HOD code: {hod_code_id}", field="hod_code_id")
        return hod_code

    def _build_summary(
        self,
        project_id: str,
        reserves: QueryResult[ReserveRecord],
        damage: QueryResult[DamageItem],
        pc_sums: QueryResult[PCSum],
        variations: QueryResult[ScopeVariation],
    ) -> ProjectFinancialSummary:
        current = select_current_reserve(reserves.items)
        indicator = None
        percentage = None
        if current is not None:
            indicator = variance_indicator(
                current.total_estimated,
                current.total_actual,
                self.config.variance_tolerance_pct,
            ).value
            percentage = variance_percentage(current.total_variance, current.total_estimated)

        damage_totals = aggregate_damage_items(damage.items)
        active_pc_sums = [p for p in pc_sums.items if p.status != PCSumStatus.CANCELLED]
        missing = [
            result.missing_schema.relation
            for result in (reserves, damage, pc_sums, variations)
            if result.missing_schema is not None
        ]

        return ProjectFinancialSummary(
            project_id=project_id,
            currency=current.currency if current else self.config.currency,
            current_reserve=current,
            reserve_count=len(reserves.items),
            variance_indicator=indicator,
            variance_percentage=percentage,
            damage_item_count=damage_totals.count,
            damage_total_cost=damage_totals.total_cost,
            damage_total_vat=damage_totals.total_vat,
            damage_total_including_vat=damage_totals.total_including_vat,
            damage_items_by_status=dict(Counter(item.status.value for item in damage.items)),
            pc_sums=PCSumTotals(
                count=len(active_pc_sums),
                allocated=sum((p.allocated_amount for p in active_pc_sums), ZERO),
                spent=sum((p.spent_amount for p in active_pc_sums), ZERO),
                remaining=sum((p.remaining_amount for p in active_pc_sums), ZERO),
            ),
            approved_variation_impact=budget.net_cost_impact(variations.items),
            missing_relations=missing,
        )
