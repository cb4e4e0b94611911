"""Tests for claimcalc.web.routes.catalog - HOD code and damage item routes."""

from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from claimcalc.errors import ValidationError
from claimcalc.models import DamageItem, DamageStatus, HODCategory, HODCode, UnitType
from claimcalc.web.app import register_error_handlers
from claimcalc.web.dependencies import get_service
from claimcalc.web.routes import catalog

PROJECT = "CLM-2024-0117"
HEADERS = {"X-Actor-Id": "surveyor-1"}


@pytest.fixture
def mock_service():
    return AsyncMock()


@pytest.fixture
def client(mock_service):
    test_app = FastAPI()
    test_app.include_router(catalog.router)
    register_error_handlers(test_app)
    test_app.dependency_overrides[get_service] = lambda: mock_service
    return TestClient(test_app)


@pytest.fixture
def code():
    return HODCode(
        code="B008",
        description="Flooring - laminate replacement",
        category=HODCategory.BUILDING,
        typical_rate_low=Decimal("35.00"),
        typical_rate_high=Decimal("85.00"),
        unit_type=UnitType.PER_SQUARE_METRE,
    )


@pytest.fixture
def item(code):
    return DamageItem(
        project_id=PROJECT,
        hod_code_id=code.id,
        item_description="Replace laminate, lounge",
        quantity=Decimal("3"),
        unit_cost=Decimal("150.00"),
        hod_code=code,
    )


class TestHODCodes:
    def test_search_forwarded(self, client, mock_service, code):
        mock_service.list_hod_codes.return_value = [code]

        response = client.get("/api/hod-codes", params={"search": "floor"}, headers=HEADERS)

        assert response.status_code == 200
        assert response.json()[0]["code"] == "B008"
        mock_service.list_hod_codes.assert_awaited_once_with("floor")


class TestDamageItems:
    def test_list_embeds_code(self, client, mock_service, item):
        mock_service.list_damage_items.return_value = [item]

        response = client.get(f"/api/projects/{PROJECT}/damage-items", headers=HEADERS)

        body = response.json()[0]
        assert body["hod_code"]["code"] == "B008"
        assert Decimal(body["total_cost"]) == Decimal("450.00")
        assert Decimal(body["vat_amount"]) == Decimal("90.00")
        assert Decimal(body["total_including_vat"]) == Decimal("540.00")

    def test_create(self, client, mock_service, item, code):
        mock_service.create_damage_item.return_value = item

        response = client.post(
            f"/api/projects/{PROJECT}/damage-items",
            json={
                "hod_code_id": str(code.id),
                "item_description": "Replace laminate, lounge",
                "quantity": "3",
                "unit_cost": "150.00",
            },
            headers=HEADERS,
        )

        assert response.status_code == 201
        project_id, data = mock_service.create_damage_item.call_args.args
        assert project_id == PROJECT
        assert data["hod_code_id"] == str(code.id)
        assert "vat_rate" not in data

    def test_create_rejects_totals(self, client, mock_service, code):
        response = client.post(
            f"/api/projects/{PROJECT}/damage-items",
            json={"hod_code_id": str(code.id), "item_description": "x", "total_cost": "10"},
            headers=HEADERS,
        )

        assert response.status_code == 422
        mock_service.create_damage_item.assert_not_called()

    def test_unknown_code(self, client, mock_service):
        mock_service.create_damage_item.side_effect = ValidationError(
            "Unknown HOD code", field="hod_code_id"
        )

        response = client.post(
            f"/api/projects/{PROJECT}/damage-items",
            json={"hod_code_id": str(uuid4()), "item_description": "x"},
            headers=HEADERS,
        )

        assert response.status_code == 422
        assert response.json()["field"] == "hod_code_id"

    def test_update_splits_version(self, client, mock_service, item):
        mock_service.update_damage_item.return_value = item

        response = client.patch(
            f"/api/projects/{PROJECT}/damage-items/{item.id}",
            json={"quantity": "10", "expected_version": 4},
            headers=HEADERS,
        )

        assert response.status_code == 200
        args, kwargs = mock_service.update_damage_item.call_args
        assert args[:2] == (PROJECT, item.id)
        assert set(args[2]) == {"quantity"}
        assert kwargs == {"expected_version": 4}

    def test_advance(self, client, mock_service, item):
        mock_service.advance_damage_item.return_value = item.model_copy(
            update={"status": DamageStatus.QUOTED}
        )

        response = client.post(
            f"/api/projects/{PROJECT}/damage-items/{item.id}/advance",
            json={"target": "quoted"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "quoted"
        mock_service.advance_damage_item.assert_awaited_once_with(
            PROJECT, item.id, DamageStatus.QUOTED, expected_version=None
        )
