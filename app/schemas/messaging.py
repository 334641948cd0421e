from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class MessageButton(BaseModel):
    id: Optional[str] = None
    text: str


class SendMessageRequest(BaseModel):
    phone_number: str = Field(..., min_length=1, description="Phone number in any common format")
    message: str = Field(..., min_length=1)
    buttons: Optional[List[MessageButton]] = Field(None, description="Up to 3 reply buttons")
    footer: Optional[str] = None


class SendMessageResult(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class PlaceholderInfo(BaseModel):
    key: str
    label: str
    description: str
    category: str


class PlaceholderPreviewRequest(BaseModel):
    template: str
    values: Dict[str, Optional[Union[str, int, float]]] = Field(default_factory=dict)


class PlaceholderPreviewResponse(BaseModel):
    message: str


class SendBudgetRequest(BaseModel):
    customer_id: Optional[str] = None
    lead_id: Optional[str] = None
    phone_number: Optional[str] = Field(None, description="Overrides the client's stored phone")
    template: Optional[str] = Field(None, description="Message template with {{placeholders}}")
    values: Dict[str, Optional[Union[str, int, float]]] = Field(default_factory=dict)
    buttons: Optional[List[MessageButton]] = None
    footer: Optional[str] = None
