"""Database layer for ClaimCalc with async SQLAlchemy."""

from claimcalc.db.connection import get_session, init_db
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

__all__ = [
    "Base",
    "HODCodeModel",
    "ProjectReserveModel",
    "DamageItemModel",
    "PCSumModel",
    "ScopeVariationModel",
    "SurveyFormModel",
    "ContractorAssessmentModel",
    "ReserveMovementModel",
    "ReserveHistoryModel",
    "get_session",
    "init_db",
]
