"""
WhatsApp messaging through Green API.

Sends plain text and button messages, renders {{placeholder}} templates
and builds the shareable budget links sent to clients. Delivery problems
are returned as ``success=False`` results and never raised.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.customer import Customer
from app.models.lead import Lead
from app.schemas.messaging import MessageButton, PlaceholderInfo, SendMessageResult
from app.services.budget import AsyncBudgetService
from app.utils.logger import messaging_logger

MAX_BUTTONS = 3
MAX_BUTTON_TEXT_LENGTH = 25

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

DEFAULT_BUDGET_TEMPLATE = "Hi {{name}}, your action plan \"{{budget_name}}\" is ready: {{budget_link}}"

AVAILABLE_PLACEHOLDERS: List[PlaceholderInfo] = [
    # Customer
    PlaceholderInfo(key="name", label="Full name", description="Client name", category="customer"),
    PlaceholderInfo(key="phone", label="Phone", description="Phone number", category="customer"),
    PlaceholderInfo(key="email", label="Email", description="Email address", category="customer"),
    PlaceholderInfo(key="password", label="Password", description="User password", category="customer"),
    PlaceholderInfo(key="login_url", label="Login link", description="Link to the login page", category="customer"),
    PlaceholderInfo(key="city", label="City", description="City of residence", category="customer"),
    PlaceholderInfo(key="gender", label="Gender", description="Client gender", category="customer"),
    PlaceholderInfo(key="payment_link", label="Payment link", description="Payment page link", category="customer"),
    # Lead
    PlaceholderInfo(key="status", label="Status", description="Inquiry status", category="lead"),
    PlaceholderInfo(key="created_date", label="Created", description="Inquiry creation date", category="lead"),
    PlaceholderInfo(key="lead_id", label="Lead ID", description="Lead id, for URL parameters", category="lead"),
    # Fitness
    PlaceholderInfo(key="fitness_goal", label="Fitness goal", description="Client fitness goal", category="fitness"),
    PlaceholderInfo(key="activity_level", label="Activity level", description="Physical activity level", category="fitness"),
    PlaceholderInfo(key="preferred_time", label="Preferred time", description="Preferred training time", category="fitness"),
    PlaceholderInfo(key="height", label="Height", description="Height in cm", category="fitness"),
    PlaceholderInfo(key="weight", label="Weight", description="Weight in kg", category="fitness"),
    PlaceholderInfo(key="bmi", label="BMI", description="Body mass index", category="fitness"),
    PlaceholderInfo(key="age", label="Age", description="Client age", category="fitness"),
    # Plans
    PlaceholderInfo(key="workout_plan_name", label="Workout plan", description="Active workout plan name", category="plans"),
    PlaceholderInfo(key="nutrition_plan_name", label="Nutrition plan", description="Active nutrition plan name", category="plans"),
    PlaceholderInfo(key="budget_link", label="Action plan link", description="Link to the action plan", category="plans"),
    PlaceholderInfo(key="budget_name", label="Action plan name", description="Name of the action plan", category="plans"),
    # Weekly review
    PlaceholderInfo(key="week_label", label="Week label", description="Week date range, e.g. 01/01 - 07/01", category="weekly_review"),
    PlaceholderInfo(key="week_start", label="Week start", description="First day of the week", category="weekly_review"),
    PlaceholderInfo(key="week_end", label="Week end", description="Last day of the week", category="weekly_review"),
    PlaceholderInfo(key="first_name", label="First name", description="Client first name", category="weekly_review"),
    PlaceholderInfo(key="full_name", label="Full name", description="Client full name", category="weekly_review"),
    PlaceholderInfo(key="target_calories", label="Calories target", description="Daily calories target", category="weekly_review"),
    PlaceholderInfo(key="target_protein", label="Protein target", description="Daily protein target in grams", category="weekly_review"),
    PlaceholderInfo(key="target_fiber", label="Fiber target", description="Daily fiber target in grams", category="weekly_review"),
    PlaceholderInfo(key="target_steps", label="Steps target", description="Daily steps target", category="weekly_review"),
    PlaceholderInfo(key="actual_calories", label="Actual calories", description="Average calories eaten", category="weekly_review"),
    PlaceholderInfo(key="actual_protein", label="Actual protein", description="Average protein in grams", category="weekly_review"),
    PlaceholderInfo(key="actual_fiber", label="Actual fiber", description="Average fiber in grams", category="weekly_review"),
    PlaceholderInfo(key="actual_weight", label="Average weight", description="Average weight of the week in kg", category="weekly_review"),
    PlaceholderInfo(key="trainer_summary", label="Coach summary", description="Coach summary and conclusions", category="weekly_review"),
    PlaceholderInfo(key="action_plan", label="Action plan", description="Focus points for next week", category="weekly_review"),
]


def get_placeholders_by_category(category: str) -> List[PlaceholderInfo]:
    return [placeholder for placeholder in AVAILABLE_PLACEHOLDERS if placeholder.category == category]


def format_phone_number(phone: str) -> str:
    """
    Normalize a phone number to Green API's country-code form, e.g. 972501234567.

    Spaces, dashes and parentheses are dropped along with a leading '+'.
    A leading 0 becomes 972, and a bare 9-digit number gets 972 prepended.
    """
    cleaned = re.sub(r"[\s\-()]", "", phone)

    if cleaned.startswith("+"):
        cleaned = cleaned[1:]

    if cleaned.startswith("0"):
        cleaned = "972" + cleaned[1:]

    if not cleaned.startswith("972") and len(cleaned) == 9:
        cleaned = "972" + cleaned

    return cleaned


def replace_placeholders(template: str, values: Mapping[str, Any]) -> str:
    """Replace every {{key}} found in values; None renders empty, unknown keys stay as written."""

    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def generate_budget_link(budget_id: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/budget/{budget_id}"


class GreenApiService:
    """Client for the Green API WhatsApp gateway."""

    def __init__(
        self,
        id_instance: Optional[str] = None,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.id_instance = settings.GREEN_API_ID_INSTANCE if id_instance is None else id_instance
        self.api_token = settings.GREEN_API_TOKEN_INSTANCE if api_token is None else api_token
        self.base_url = (base_url or settings.GREEN_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.GREEN_API_TIMEOUT
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.id_instance and self.api_token)

    def _url(self, method: str) -> str:
        return f"{self.base_url}/waInstance{self.id_instance}/{method}/{self.api_token}"

    async def _post(self, url: str, payload: Dict[str, Any]) -> Any:
        if self._client is not None:
            response = await self._client.post(url, json=payload, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload)
        response.raise_for_status()
        return response.json()

    async def send_whatsapp_message(
        self,
        phone_number: str,
        message: str,
        buttons: Optional[Sequence[MessageButton]] = None,
        footer: Optional[str] = None,
    ) -> SendMessageResult:
        """
        Send a text message, or a button message when buttons are given.

        Returns:
            SendMessageResult with the gateway's JSON reply on success, or an
            error string on failure
        """
        if not self.is_configured:
            messaging_logger.warning("Green API credentials are not configured", "CONFIG")
            return SendMessageResult(
                success=False,
                error="Green API configuration not found. Please check environment variables.",
            )

        chat_id = f"{format_phone_number(phone_number)}@c.us"
        payload: Dict[str, Any] = {"chatId": chat_id, "message": message}

        if buttons:
            if len(buttons) > MAX_BUTTONS:
                return SendMessageResult(success=False, error=f"Maximum {MAX_BUTTONS} buttons allowed per message")
            for button in buttons:
                if len(button.text) > MAX_BUTTON_TEXT_LENGTH:
                    return SendMessageResult(
                        success=False,
                        error=f'Button text "{button.text}" exceeds {MAX_BUTTON_TEXT_LENGTH} character limit',
                    )
            payload["buttons"] = [
                {"buttonId": str(index), "buttonText": button.text}
                for index, button in enumerate(buttons, start=1)
            ]
            if footer:
                payload["footer"] = footer
            url = self._url("SendButtons")
        else:
            url = self._url("sendMessage")

        try:
            data = await self._post(url, payload)
        except httpx.HTTPStatusError as e:
            error = f"HTTP error! status: {e.response.status_code}"
            if e.response.headers.get("content-type", "").startswith("application/json"):
                body = e.response.json()
                if isinstance(body, dict) and body.get("error"):
                    error = str(body["error"])
            messaging_logger.error("Green API rejected message", "SEND", chat_id=chat_id, error=error)
            return SendMessageResult(success=False, error=error)
        except httpx.HTTPError as e:
            messaging_logger.error("Failed to reach Green API", "SEND", chat_id=chat_id, error=str(e))
            return SendMessageResult(success=False, error=str(e) or "Failed to send WhatsApp message")
        except ValueError as e:
            messaging_logger.error("Green API returned a non-JSON reply", "SEND", chat_id=chat_id, error=str(e))
            return SendMessageResult(success=False, error="Invalid response from Green API")

        messaging_logger.success("WhatsApp message sent", "SEND", chat_id=chat_id, buttons=len(buttons or []))
        return SendMessageResult(success=True, data=data)


green_api_service = GreenApiService()


def get_green_api_service() -> GreenApiService:
    """FastAPI dependency returning the configured Green API client."""
    return green_api_service


class BudgetMessagingService:
    """Sends a budget's link to the client it is meant for."""

    @staticmethod
    async def _client_contact(db: AsyncSession, customer_id: Optional[str], lead_id: Optional[str]) -> Dict[str, Any]:
        contact: Dict[str, Any] = {}
        if lead_id:
            lead = await db.get(Lead, lead_id)
            if lead is not None:
                contact.update(name=lead.full_name, phone=lead.phone, email=lead.email,
                               status=lead.status, lead_id=lead.id)
                customer_id = customer_id or lead.customer_id
        if customer_id:
            customer = await db.get(Customer, customer_id)
            if customer is not None:
                contact.update({key: value for key, value in (
                    ("name", customer.full_name), ("phone", customer.phone), ("email", customer.email),
                ) if value})
        if contact.get("name"):
            contact.setdefault("full_name", contact["name"])
            contact.setdefault("first_name", contact["name"].split()[0])
        return contact

    @staticmethod
    async def send_budget_to_client(
        db: AsyncSession,
        budget_id: str,
        user_id: str,
        green_api: GreenApiService,
        customer_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        phone_number: Optional[str] = None,
        template: Optional[str] = None,
        values: Optional[Mapping[str, Any]] = None,
        buttons: Optional[Sequence[MessageButton]] = None,
        footer: Optional[str] = None,
    ) -> Optional[SendMessageResult]:
        """
        Render a message with the budget's name and link and send it over WhatsApp.

        Returns None when the budget is not visible to the user.
        """
        budget = await AsyncBudgetService.get_budget(db, budget_id, user_id)
        if budget is None:
            return None

        placeholders: Dict[str, Any] = await BudgetMessagingService._client_contact(db, customer_id, lead_id)
        placeholders.update(budget_name=budget.name, budget_link=generate_budget_link(budget.id))
        placeholders.update(values or {})

        phone = phone_number or placeholders.get("phone")
        if not phone:
            return SendMessageResult(success=False, error="No phone number found for this client")

        message = replace_placeholders(template or DEFAULT_BUDGET_TEMPLATE, placeholders)
        messaging_logger.info("Sending budget to client", "BUDGET", budget_id=budget_id,
                              customer_id=customer_id, lead_id=lead_id)
        return await green_api.send_whatsapp_message(phone, message, buttons=buttons, footer=footer)
