from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.db.async_session import get_async_db
from app.schemas.assignment import (
    AssignmentCreate,
    AssignmentListResponse,
    AssignmentResult,
    BlankPlansRequest,
    BlankPlansResponse,
    BudgetAssignmentResponse,
    PrivateBudgetResponse,
)
from app.schemas.budget import BudgetResponse
from app.services.budget_assignment import AsyncAssignmentService

router = APIRouter()


@router.post("/", response_model=AssignmentResult, status_code=status.HTTP_201_CREATED)
async def assign_budget(
    assignment_data: AssignmentCreate,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """
    Assign a budget to a customer or lead and build their plans from it.

    The assignment is created even when building the plans fails; check
    ``sync_error`` in the response.
    """
    try:
        result = await AsyncAssignmentService.assign_budget(
            db=db,
            budget_id=assignment_data.budget_id,
            user_id=user_id,
            customer_id=assignment_data.customer_id,
            lead_id=assignment_data.lead_id,
            notes=assignment_data.notes
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Budget not found"
        )
    return result


@router.get("/", response_model=AssignmentListResponse)
async def get_assignments(
    customer_id: Optional[str] = Query(None, description="Customer id"),
    lead_id: Optional[str] = Query(None, description="Lead id"),
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get the budget assignments of a customer or lead, newest first."""
    try:
        return await AsyncAssignmentService.get_assignments(db=db, customer_id=customer_id, lead_id=lead_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/blank", response_model=BlankPlansResponse, status_code=status.HTTP_201_CREATED)
async def create_blank_plans(
    request: BlankPlansRequest,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Start a client on an empty budget with one plan of each type."""
    try:
        return await AsyncAssignmentService.create_blank_plans(
            db=db,
            user_id=user_id,
            customer_id=request.customer_id,
            lead_id=request.lead_id
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{assignment_id}/private-copy", response_model=PrivateBudgetResponse)
async def make_private_budget(
    assignment_id: str,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Give an assignment its own copy of a shared budget so it can be edited alone."""
    result = await AsyncAssignmentService.make_private_budget(db=db, assignment_id=assignment_id, user_id=user_id)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Assignment not found"
        )
    assignment, budget, cloned = result
    return PrivateBudgetResponse(
        assignment=BudgetAssignmentResponse.model_validate(assignment),
        budget=BudgetResponse.model_validate(budget),
        cloned=cloned,
    )


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: str,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Delete an assignment together with the plans built from it."""
    deleted = await AsyncAssignmentService.delete_assignment(db=db, assignment_id=assignment_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Assignment not found"
        )
