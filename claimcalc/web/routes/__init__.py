"""ClaimCalc API route modules.

Each module exports a `router` (APIRouter); claimcalc.web.app includes them.
"""

from claimcalc.web.routes import assessments, budget, catalog, reserves

__all__ = ["assessments", "budget", "catalog", "reserves"]
