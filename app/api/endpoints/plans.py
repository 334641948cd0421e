from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.db.async_session import get_async_db
from app.schemas.assignment import ClientActivePlansResponse
from app.schemas.plans import PlansHistoryResponse
from app.services.budget_assignment import AsyncAssignmentService
from app.services.plans import AsyncPlansService

router = APIRouter()


@router.get("/history", response_model=PlansHistoryResponse)
async def get_plans_history(
    customer_id: Optional[str] = Query(None, description="Customer id"),
    lead_id: Optional[str] = Query(None, description="Lead id"),
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get every workout, nutrition, steps and supplement plan of a client."""
    try:
        return await AsyncPlansService.get_plans_history(db=db, customer_id=customer_id, lead_id=lead_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/active", response_model=ClientActivePlansResponse)
async def get_active_plans(
    customer_id: Optional[str] = Query(None, description="Customer id"),
    lead_id: Optional[str] = Query(None, description="Lead id"),
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get the budget and plans a client is currently following."""
    try:
        return await AsyncAssignmentService.get_active_plans(db=db, customer_id=customer_id, lead_id=lead_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
