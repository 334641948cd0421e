"""
Integration tests for the budget, assignment, plan and snapshot endpoints.
"""

import pytest

from app.models.nutrition_plan import NutritionPlan
from tests.async_test_utils import AsyncDatabaseTestUtils
from tests.utils_jwt import generate_test_jwt

BUDGET_PAYLOAD = {
    "name": "Spring cut",
    "description": "12 week cut",
    "nutrition_targets": {"calories": 1900, "protein": 165, "fiber_min": 30},
    "steps_goal": 9000,
    "supplements": [{"name": "Creatine", "dosage": "5g", "timing": "Morning"}],
    "cardio_training": [{"name": "Bike", "duration_minutes": 30, "workouts_per_week": 2}],
}


async def _create_budget(client, headers, **overrides):
    response = await client.post("/api/v1/budgets/", json={**BUDGET_PAYLOAD, **overrides}, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestAuth:

    @pytest.mark.asyncio
    async def test_missing_token(self, async_client):
        response = await async_client.get("/api/v1/budgets/")
        assert response.status_code == 401
        assert response.json()["detail"] == "Could not validate credentials"

    @pytest.mark.asyncio
    async def test_invalid_token(self, async_client):
        response = await async_client.get("/api/v1/budgets/", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, async_client):
        from datetime import timedelta
        token = generate_test_jwt(expires_in=timedelta(minutes=-5))
        response = await async_client.get("/api/v1/budgets/", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestBudgetEndpoints:

    @pytest.mark.asyncio
    async def test_create_get_and_list(self, async_client, auth_header):
        created = await _create_budget(async_client, auth_header)
        assert created["created_by"] == "coach-1"
        assert created["cardio_training"][0]["name"] == "Bike"

        response = await async_client.get(f"/api/v1/budgets/{created['id']}", headers=auth_header)
        assert response.status_code == 200
        assert response.json()["nutrition_targets"]["protein"] == 165

        response = await async_client.get("/api/v1/budgets/", params={"search": "spring"}, headers=auth_header)
        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 1
        assert body["page"] == 1

    @pytest.mark.asyncio
    async def test_invalid_budget_rejected(self, async_client, auth_header):
        response = await async_client.post(
            "/api/v1/budgets/", json={**BUDGET_PAYLOAD, "steps_min": 9000, "steps_max": 5000}, headers=auth_header
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_private_budget_not_found_for_other_coach(self, async_client, auth_header, other_auth_header):
        created = await _create_budget(async_client, auth_header)
        response = await async_client.get(f"/api/v1/budgets/{created['id']}", headers=other_auth_header)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_save_syncs_assigned_clients(self, async_client, async_db_session, auth_header, test_customer):
        created = await _create_budget(async_client, auth_header)
        response = await async_client.post(
            "/api/v1/assignments/",
            json={"budget_id": created["id"], "customer_id": test_customer.id},
            headers=auth_header,
        )
        assert response.status_code == 201
        assert response.json()["sync_error"] is None

        response = await async_client.put(
            f"/api/v1/budgets/{created['id']}",
            json={**BUDGET_PAYLOAD, "nutrition_targets": {"calories": 1750, "protein": 170}},
            headers=auth_header,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["synced_count"] == 1
        assert body["failed_count"] == 0
        assert body["propagation"]["outcomes"][0]["customer_id"] == test_customer.id

        plans = await AsyncDatabaseTestUtils(async_db_session).rows(NutritionPlan, customer_id=test_customer.id)
        assert plans[0].targets["calories"] == 1750

        response = await async_client.get(f"/api/v1/budgets/{created['id']}/plans", headers=auth_header)
        assert response.status_code == 200
        assert len(response.json()["nutrition_plans"]) == 1

    @pytest.mark.asyncio
    async def test_update_by_other_coach_forbidden(self, async_client, auth_header, other_auth_header):
        created = await _create_budget(async_client, auth_header, is_public=True)
        response = await async_client.put(f"/api/v1/budgets/{created['id']}", json=BUDGET_PAYLOAD, headers=other_auth_header)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_save_unknown_budget(self, async_client, auth_header):
        response = await async_client.put("/api/v1/budgets/missing", json=BUDGET_PAYLOAD, headers=auth_header)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_budget_link(self, async_client, auth_header):
        created = await _create_budget(async_client, auth_header)
        response = await async_client.get(f"/api/v1/budgets/{created['id']}/link", headers=auth_header)
        assert response.status_code == 200
        assert response.json()["link"].endswith(f"/budget/{created['id']}")

    @pytest.mark.asyncio
    async def test_delete_budget(self, async_client, auth_header):
        created = await _create_budget(async_client, auth_header)
        response = await async_client.delete(
            f"/api/v1/budgets/{created['id']}", params={"delete_plans": "true"}, headers=auth_header
        )
        assert response.status_code == 204

        response = await async_client.get(f"/api/v1/budgets/{created['id']}", headers=auth_header)
        assert response.status_code == 404


class TestAssignmentEndpoints:

    @pytest.mark.asyncio
    async def test_assign_list_and_delete(self, async_client, auth_header, test_lead):
        created = await _create_budget(async_client, auth_header)
        response = await async_client.post(
            "/api/v1/assignments/", json={"budget_id": created["id"], "lead_id": test_lead.id}, headers=auth_header
        )
        assert response.status_code == 201
        assignment_id = response.json()["assignment"]["id"]
        assert response.json()["sync"]["steps_plan_id"]

        response = await async_client.get("/api/v1/assignments/", params={"lead_id": test_lead.id}, headers=auth_header)
        assert response.status_code == 200
        assert response.json()["total_count"] == 1

        response = await async_client.delete(f"/api/v1/assignments/{assignment_id}", headers=auth_header)
        assert response.status_code == 204

        response = await async_client.delete(f"/api/v1/assignments/{assignment_id}", headers=auth_header)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_assignment_needs_client(self, async_client, auth_header):
        response = await async_client.post("/api/v1/assignments/", json={"budget_id": "b1"}, headers=auth_header)
        assert response.status_code == 422

        response = await async_client.get("/api/v1/assignments/", headers=auth_header)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_assign_unknown_budget(self, async_client, auth_header, test_customer):
        response = await async_client.post(
            "/api/v1/assignments/", json={"budget_id": "missing", "customer_id": test_customer.id}, headers=auth_header
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_blank_plans_and_active_plans(self, async_client, auth_header, test_customer):
        response = await async_client.post(
            "/api/v1/assignments/blank", json={"customer_id": test_customer.id}, headers=auth_header
        )
        assert response.status_code == 201
        blank = response.json()
        assert blank["budget"]["name"] == "Empty action plan"

        response = await async_client.get("/api/v1/plans/active", params={"customer_id": test_customer.id}, headers=auth_header)
        assert response.status_code == 200
        active = response.json()
        assert active["effective_budget_id"] == blank["budget"]["id"]
        assert active["workout_plan"]["id"] == blank["workout_plan_id"]

        response = await async_client.get("/api/v1/plans/history", params={"customer_id": test_customer.id}, headers=auth_header)
        assert response.status_code == 200
        assert len(response.json()["supplement_plans"]) == 1

    @pytest.mark.asyncio
    async def test_private_copy(self, async_client, auth_header, test_customer, test_lead):
        created = await _create_budget(async_client, auth_header)
        first = await async_client.post(
            "/api/v1/assignments/", json={"budget_id": created["id"], "customer_id": test_customer.id}, headers=auth_header
        )
        await async_client.post(
            "/api/v1/assignments/", json={"budget_id": created["id"], "lead_id": test_lead.id}, headers=auth_header
        )

        response = await async_client.post(
            f"/api/v1/assignments/{first.json()['assignment']['id']}/private-copy", headers=auth_header
        )
        assert response.status_code == 200
        body = response.json()
        assert body["cloned"] is True
        assert body["assignment"]["budget_id"] == body["budget"]["id"] != created["id"]

    @pytest.mark.asyncio
    async def test_plans_history_needs_client(self, async_client, auth_header):
        response = await async_client.get("/api/v1/plans/history", headers=auth_header)
        assert response.status_code == 400


class TestSnapshotEndpoints:

    @pytest.mark.asyncio
    async def test_snapshot_lifecycle(self, async_client, auth_header, test_lead):
        created = await _create_budget(async_client, auth_header)
        response = await async_client.post(
            "/api/v1/snapshots/", json={"budget_id": created["id"], "lead_id": test_lead.id}, headers=auth_header
        )
        assert response.status_code == 201
        snapshot = response.json()
        assert snapshot["snapshot"]["name"] == "Spring cut"

        response = await async_client.get("/api/v1/snapshots/", params={"lead_id": test_lead.id}, headers=auth_header)
        assert response.json()["total_count"] == 1

        response = await async_client.get(f"/api/v1/snapshots/{snapshot['id']}", headers=auth_header)
        assert response.status_code == 200

        response = await async_client.delete(f"/api/v1/snapshots/{snapshot['id']}", headers=auth_header)
        assert response.status_code == 204

        response = await async_client.get(f"/api/v1/snapshots/{snapshot['id']}", headers=auth_header)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_snapshot_unknown_budget(self, async_client, auth_header):
        response = await async_client.post("/api/v1/snapshots/", json={"budget_id": "missing"}, headers=auth_header)
        assert response.status_code == 404
