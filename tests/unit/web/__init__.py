"""Unit tests for ClaimCalc web route modules.

Structure:
    tests/unit/web/
    ├── test_app.py                  # Error mapping, middleware, health
    ├── test_dependencies.py         # Actor header and service provider
    ├── test_routes_reserves.py      # Reserve routes
    ├── test_routes_catalog.py       # HOD code and damage item routes
    └── test_routes_budget.py        # PC sum, variation and assessment routes

Testing pattern:
    - Use FastAPI's TestClient for route testing
    - Override get_service with an AsyncMock service
    - Test request/response validation
    - Test error handling
"""
