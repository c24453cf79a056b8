"""
PropRecon - API Tests

HTTP surface of the reconciliation engine.
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient


class TestHealthEndpoints:

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_api_root(self, client: AsyncClient):
        response = await client.get("/api/v1")

        assert response.status_code == 200
        assert "reconciliations" in response.json()["endpoints"]


class TestReconciliationEndpoints:

    @pytest.mark.asyncio
    async def test_create(self, client: AsyncClient, test_property, january_bookings):
        response = await client.post(
            "/api/v1/reconciliations",
            json={"property_id": str(test_property.id), "month": "2025-01"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["line_item_count"] == 3
        recon = data["reconciliation"]
        assert recon["status"] == "draft"
        assert recon["reconciliation_month"] == "2025-01-01"
        assert Decimal(recon["total_revenue"]) == Decimal("4000.00")
        assert Decimal(recon["management_fee"]) == Decimal("600.00")
        assert Decimal(recon["net_to_owner"]) == Decimal("3400.00")

    @pytest.mark.asyncio
    async def test_create_conflict(self, client: AsyncClient, test_property):
        payload = {"property_id": str(test_property.id), "month": "2025-01-15"}
        first = await client.post("/api/v1/reconciliations", json=payload)

        response = await client.post("/api/v1/reconciliations", json=payload)

        assert response.status_code == 409
        data = response.json()
        assert data["existing_reconciliation_id"] == first.json()["reconciliation"]["id"]
        assert data["can_delete"] is True
        assert data["retryable"] is True
        assert "already exists" in data["error"]

    @pytest.mark.asyncio
    async def test_create_unknown_property(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/reconciliations",
            json={"property_id": str(uuid4()), "month": "2025-01"},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "DATA_INTEGRITY_ERROR"

    @pytest.mark.asyncio
    async def test_create_invalid_month(self, client: AsyncClient, test_property):
        response = await client.post(
            "/api/v1/reconciliations",
            json={"property_id": str(test_property.id), "month": "January"},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_list_and_get(self, client: AsyncClient, test_property, preview_reconciliation):
        await client.post(
            "/api/v1/reconciliations",
            json={"property_id": str(test_property.id), "month": "2025-02"},
        )

        all_response = await client.get(
            "/api/v1/reconciliations", params={"property_id": str(test_property.id)}
        )
        previews = await client.get("/api/v1/reconciliations", params={"status": "preview"})
        single = await client.get(f"/api/v1/reconciliations/{preview_reconciliation.id}")

        assert all_response.status_code == 200
        assert [r["reconciliation_month"] for r in all_response.json()] == ["2025-02-01", "2025-01-01"]
        assert [r["id"] for r in previews.json()] == [str(preview_reconciliation.id)]
        assert single.json()["status"] == "preview"

    @pytest.mark.asyncio
    async def test_get_unknown(self, client: AsyncClient):
        response = await client.get(f"/api/v1/reconciliations/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "RECONCILIATION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_line_items_and_verify(self, client: AsyncClient, test_property, january_bookings):
        created = await client.post(
            "/api/v1/reconciliations",
            json={"property_id": str(test_property.id), "month": "2025-01"},
        )
        reconciliation_id = created.json()["reconciliation"]["id"]

        items = (await client.get(f"/api/v1/reconciliations/{reconciliation_id}/line-items")).json()
        types = sorted(item["item_type"] for item in items)
        assert types == ["booking", "mid_term_booking", "order_minimum"]

        booking_item = next(item for item in items if item["item_type"] == "booking")
        response = await client.patch(
            f"/api/v1/reconciliations/line-items/{booking_item['id']}/verified",
            json={"verified": True},
        )

        assert response.status_code == 200
        assert response.json()["verified"] is True
        assert Decimal(response.json()["amount"]) == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_delete_draft_keeps_audit_log(self, client: AsyncClient, test_property):
        created = await client.post(
            "/api/v1/reconciliations",
            json={"property_id": str(test_property.id), "month": "2025-01"},
        )
        reconciliation_id = created.json()["reconciliation"]["id"]

        response = await client.delete(f"/api/v1/reconciliations/{reconciliation_id}")

        assert response.status_code == 204
        assert (await client.get(f"/api/v1/reconciliations/{reconciliation_id}")).status_code == 404
        audit = await client.get(f"/api/v1/reconciliations/{reconciliation_id}/audit-log")
        assert sorted(entry["action"] for entry in audit.json()) == ["created", "deleted"]

    @pytest.mark.asyncio
    async def test_delete_preview_rejected(self, client: AsyncClient, preview_reconciliation):
        response = await client.delete(f"/api/v1/reconciliations/{preview_reconciliation.id}")

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "CANNOT_DELETE"


class TestFinalizeEndpoints:

    @pytest.mark.asyncio
    async def test_finalize_one(self, client: AsyncClient, preview_reconciliation, january_bookings):
        response = await client.post(
            f"/api/v1/reconciliations/{preview_reconciliation.id}/finalize"
        )

        assert response.status_code == 200
        data = response.json()
        assert data["previous_status"] == "preview"
        assert data["new_items"] == 3
        assert data["reconciliation"]["status"] == "draft"

    @pytest.mark.asyncio
    async def test_auto_finalize(self, client: AsyncClient, preview_reconciliation, january_bookings):
        response = await client.post("/api/v1/reconciliations/auto-finalize")

        assert response.status_code == 200
        data = response.json()
        assert data["finalized_count"] == 1
        assert data["failed_count"] == 0
        assert data["skipped_count"] == 0
        assert data["results"][0]["id"] == str(preview_reconciliation.id)
        assert data["results"][0]["property"] == "Lakeview Cottage"
        assert Decimal(data["results"][0]["revenue"]) == Decimal("4000.00")
