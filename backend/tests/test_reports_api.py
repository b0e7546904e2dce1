"""
API Integration Tests — discrepancy report, closed-waybill export, dashboard.
"""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
class TestReportsAPI:
    async def test_discrepancies(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/reports/discrepancies")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        row = data["rows"][0]
        assert row["waybill_no"] == "WB-0900"
        assert row["difference"] == -3

    async def test_discrepancies_outside_range(self, client: AsyncClient, seeded_db):
        past = date.today() - timedelta(days=400)
        resp = await client.get(
            "/api/v1/reports/discrepancies",
            params={"from": past.isoformat(), "to": (past + timedelta(days=1)).isoformat()},
        )
        assert resp.status_code == 200
        assert resp.json() == {"total": 0, "rows": []}

    async def test_inverted_range_is_rejected(self, client: AsyncClient):
        resp = await client.get("/api/v1/reports/closed", params={"from": "2026-05-02", "to": "2026-05-01"})
        assert resp.status_code == 422

    async def test_closed_waybills(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/reports/closed")
        assert resp.status_code == 200
        assert [w["waybill_no"] for w in resp.json()] == ["WB-0900"]

    async def test_closed_pdf_export(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/reports/closed/pdf")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert "Closed_Incoming_Report.pdf" in resp.headers["content-disposition"]
        assert resp.content.startswith(b"%PDF")

    async def test_reports_need_staff_role(self, client: AsyncClient, mock_user):
        mock_user["role"] = "User"
        resp = await client.get("/api/v1/reports/discrepancies")
        assert resp.status_code == 403


@pytest.mark.asyncio
class TestDashboardAPI:
    async def test_dashboard(self, client: AsyncClient, seeded_db, mock_user):
        mock_user["role"] = "User"
        resp = await client.get("/api/v1/dashboard/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["product_count"] == 3
        assert data["open_waybills"] == 1
        assert data["closed_waybills"] == 1
        assert data["discrepancies_total"] == 1
        assert data["discrepancy_list_this_month"][0]["product_name"] == "Bar Soap"
        assert data["closed_waybills_this_month"][0]["waybill_no"] == "WB-0900"


@pytest.mark.asyncio
class TestHealth:
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
