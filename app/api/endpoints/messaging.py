from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user_id
from app.schemas.messaging import (
    PlaceholderInfo,
    PlaceholderPreviewRequest,
    PlaceholderPreviewResponse,
    SendMessageRequest,
    SendMessageResult,
)
from app.services.whatsapp import (
    AVAILABLE_PLACEHOLDERS,
    GreenApiService,
    get_green_api_service,
    get_placeholders_by_category,
    replace_placeholders,
)

router = APIRouter()


@router.post("/send", response_model=SendMessageResult)
async def send_message(
    request: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    green_api: GreenApiService = Depends(get_green_api_service)
):
    """
    Send a WhatsApp message, with up to 3 reply buttons.

    Delivery failures come back as ``success: false`` with an error message.
    """
    return await green_api.send_whatsapp_message(
        phone_number=request.phone_number,
        message=request.message,
        buttons=request.buttons,
        footer=request.footer
    )


@router.get("/placeholders", response_model=List[PlaceholderInfo])
async def list_placeholders(
    category: Optional[str] = Query(None, description="customer, lead, fitness, plans or weekly_review"),
    user_id: str = Depends(get_current_user_id)
):
    """List the placeholders message templates can use."""
    if category:
        return get_placeholders_by_category(category)
    return AVAILABLE_PLACEHOLDERS


@router.post("/preview", response_model=PlaceholderPreviewResponse)
async def preview_message(
    request: PlaceholderPreviewRequest,
    user_id: str = Depends(get_current_user_id)
):
    """Render a template with the given values without sending it."""
    return PlaceholderPreviewResponse(message=replace_placeholders(request.template, request.values))
