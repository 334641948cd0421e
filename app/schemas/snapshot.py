from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.base import BaseSchema


class SnapshotCreate(BaseModel):
    budget_id: str = Field(..., min_length=1)
    lead_id: Optional[str] = None
    name: Optional[str] = Field(None, max_length=255, description="Defaults to the budget name")
    description: Optional[str] = None
    notes: Optional[str] = None


class SnapshotResponse(BaseSchema):
    id: str
    user_id: str
    lead_id: Optional[str] = None
    budget_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    snapshot: Dict[str, Any]
    notes: Optional[str] = None
    saved_at: datetime


class SnapshotListResponse(BaseModel):
    snapshots: List[SnapshotResponse]
    total_count: int
