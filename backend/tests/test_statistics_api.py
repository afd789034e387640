"""
API Integration Tests — Statistics and correlation endpoints with seeded data.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
class TestStatisticsAPI:
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_item_statistics(self, client: AsyncClient, seeded_db):
        resp = await client.get(f"/api/v1/statistics/items/{seeded_db['gauze'].item_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["item_name"] == "Gauze"
        assert data["mean"] == pytest.approx(11.6)
        assert data["volatility_classification"] == "VERY_LOW"
        assert data["trend"] == "STABLE"
        assert len(data["seasonality"]["day_of_week_pattern"]) == 5

    async def test_item_without_data(self, client: AsyncClient, seeded_db):
        resp = await client.get(f"/api/v1/statistics/items/{seeded_db['masks'].item_id}")
        assert resp.status_code == 200
        assert resp.json() == {"error": "No consumption data available"}

    async def test_unknown_item_is_404(self, client: AsyncClient):
        resp = await client.get("/api/v1/statistics/items/999999")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Item not found: 999999"

    async def test_refresh_item(self, client: AsyncClient, seeded_db):
        resp = await client.post(f"/api/v1/statistics/items/{seeded_db['gauze'].item_id}/refresh")
        assert resp.status_code == 200
        data = resp.json()
        assert data["volatility"] == "LOW"
        assert data["coverage_days"] == 9

    async def test_category_statistics(self, client: AsyncClient, seeded_db):
        resp = await client.get(f"/api/v1/statistics/categories/{seeded_db['category'].category_id}")
        assert resp.status_code == 200
        assert resp.json()["total_items"] == 3

    async def test_unknown_category_is_404(self, client: AsyncClient):
        resp = await client.get("/api/v1/statistics/categories/999999")
        assert resp.status_code == 404

    async def test_dashboard(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/statistics/dashboard", params={"days": 7})
        assert resp.status_code == 200
        data = resp.json()
        assert data["period_days"] == 7
        assert data["total_items"] == 4
        assert len(data["daily_consumption"]) == 8

    async def test_recalculate_all(self, client: AsyncClient, seeded_db):
        resp = await client.post("/api/v1/statistics/recalculate")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_items"] == 4
        assert data["updated"] == 3
        assert data["no_data"] == 1

    async def test_recalculate_selected_items(self, client: AsyncClient, seeded_db):
        resp = await client.post(
            "/api/v1/statistics/recalculate",
            json={"item_ids": [seeded_db["gauze"].item_id], "window_days": 14},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_items"] == 1
        assert data["window_days"] == 14

    async def test_recalculate_category(self, client: AsyncClient, seeded_db):
        resp = await client.post(f"/api/v1/statistics/categories/{seeded_db['category'].category_id}/recalculate")
        assert resp.status_code == 200
        assert resp.json()["updated"] == 3


@pytest.mark.asyncio
class TestCorrelationAPI:
    async def test_calculate_and_recommend(self, client: AsyncClient, seeded_db):
        resp = await client.post("/api/v1/statistics/correlations/calculate")
        assert resp.status_code == 200
        assert resp.json()["total_pairs"] == 3

        resp = await client.get(
            f"/api/v1/statistics/correlations/items/{seeded_db['syringe'].item_id}/recommendations"
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data[0]["item_name"] == "Gloves"
        assert data[0]["correlation"] == pytest.approx(-1.0)
        assert data[0]["needs_reorder"] is True

    async def test_force_recalculate(self, client: AsyncClient, seeded_db):
        await client.post("/api/v1/statistics/correlations/calculate")
        resp = await client.post("/api/v1/statistics/correlations/calculate", params={"force": True})
        assert resp.status_code == 200
        data = resp.json()
        assert data["deleted_edges"] == 3
        assert data["total_pairs"] == 3

    async def test_item_correlations(self, client: AsyncClient, seeded_db):
        resp = await client.post(f"/api/v1/statistics/correlations/items/{seeded_db['gauze'].item_id}")
        assert resp.status_code == 200
        assert resp.json()["total_correlations"] == 2

    async def test_item_correlations_unknown_item(self, client: AsyncClient):
        resp = await client.post("/api/v1/statistics/correlations/items/999999")
        assert resp.status_code == 404

    async def test_summary_before_any_sweep(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/statistics/correlations/summary")
        assert resp.status_code == 200
        assert resp.json()["total_correlations"] == 0

    async def test_debug(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/statistics/debug")
        assert resp.status_code == 200
        assert resp.json()["total_consumption_records"] == 15
