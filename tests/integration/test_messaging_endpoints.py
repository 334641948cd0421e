"""
Integration tests for the WhatsApp messaging endpoints, with Green API mocked.
"""

import json

import httpx
import pytest

from app.main import app
from app.services.whatsapp import GreenApiService, get_green_api_service


@pytest.fixture
def green_api_requests():
    """Route Green API calls to an in-process mock and record them."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"idMessage": f"MSG{len(requests)}"})

    service = GreenApiService(
        id_instance="1101",
        api_token="token",
        base_url="https://green.example.com",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    app.dependency_overrides[get_green_api_service] = lambda: service
    yield requests
    app.dependency_overrides.pop(get_green_api_service, None)


class TestMessagingEndpoints:

    @pytest.mark.asyncio
    async def test_send_message(self, async_client, auth_header, green_api_requests):
        response = await async_client.post(
            "/api/v1/messaging/send",
            json={"phone_number": "050-123-4567", "message": "Check-in time"},
            headers=auth_header,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert json.loads(green_api_requests[0].content)["chatId"] == "972501234567@c.us"

    @pytest.mark.asyncio
    async def test_send_with_too_many_buttons(self, async_client, auth_header, green_api_requests):
        response = await async_client.post(
            "/api/v1/messaging/send",
            json={
                "phone_number": "0501234567",
                "message": "Pick one",
                "buttons": [{"text": "A"}, {"text": "B"}, {"text": "C"}, {"text": "D"}],
            },
            headers=auth_header,
        )

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert green_api_requests == []

    @pytest.mark.asyncio
    async def test_placeholders_and_preview(self, async_client, auth_header):
        response = await async_client.get("/api/v1/messaging/placeholders", params={"category": "lead"}, headers=auth_header)
        assert response.status_code == 200
        assert {item["key"] for item in response.json()} == {"status", "created_date", "lead_id"}

        response = await async_client.post(
            "/api/v1/messaging/preview",
            json={"template": "Hi {{first_name}}, goal {{target_steps}} steps {{unknown}}",
                  "values": {"first_name": "Dana", "target_steps": 9000}},
            headers=auth_header,
        )
        assert response.json()["message"] == "Hi Dana, goal 9000 steps {{unknown}}"

    @pytest.mark.asyncio
    async def test_send_budget_to_customer(self, async_client, auth_header, make_budget, test_customer, green_api_requests):
        budget = await make_budget(name="Spring cut")

        response = await async_client.post(
            f"/api/v1/budgets/{budget.id}/send",
            json={"customer_id": test_customer.id},
            headers=auth_header,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        sent = json.loads(green_api_requests[0].content)
        assert sent["chatId"] == "972501234567@c.us"
        assert "Hi Dana Levi" in sent["message"]
        assert "Spring cut" in sent["message"]
        assert f"/budget/{budget.id}" in sent["message"]

    @pytest.mark.asyncio
    async def test_send_budget_without_phone(self, async_client, auth_header, make_budget, green_api_requests):
        budget = await make_budget()

        response = await async_client.post(f"/api/v1/budgets/{budget.id}/send", json={}, headers=auth_header)

        assert response.status_code == 200
        assert response.json() == {"success": False, "data": None, "error": "No phone number found for this client"}
        assert green_api_requests == []

    @pytest.mark.asyncio
    async def test_send_unknown_budget(self, async_client, auth_header, green_api_requests):
        response = await async_client.post("/api/v1/budgets/missing/send", json={}, headers=auth_header)
        assert response.status_code == 404
