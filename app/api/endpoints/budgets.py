from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.db.async_session import get_async_db
from app.schemas.budget import (
    BudgetCreate,
    BudgetLinkResponse,
    BudgetListResponse,
    BudgetResponse,
    BudgetSaveResponse,
    BudgetUpdate,
)
from app.schemas.messaging import SendBudgetRequest, SendMessageResult
from app.schemas.plans import AssociatedPlansResponse, BudgetPropagationResult
from app.services.budget import AsyncBudgetService
from app.services.plans import AsyncPlansService
from app.services.whatsapp import (
    BudgetMessagingService,
    GreenApiService,
    generate_budget_link,
    get_green_api_service,
)

router = APIRouter()


def _budget_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Budget not found"
    )


@router.post("/", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED)
async def create_budget(
    budget_data: BudgetCreate,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Create a new budget."""
    return await AsyncBudgetService.create_budget(db=db, budget_data=budget_data, user_id=user_id)


@router.get("/", response_model=BudgetListResponse)
async def list_budgets(
    search: Optional[str] = Query(None, description="Search term for name or description"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """List public budgets and budgets created by the current coach."""
    return await AsyncBudgetService.list_budgets(
        db=db,
        user_id=user_id,
        search=search,
        page=page,
        page_size=page_size
    )


@router.get("/{budget_id}", response_model=BudgetResponse)
async def get_budget(
    budget_id: str,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get a budget by id."""
    budget = await AsyncBudgetService.get_budget(db=db, budget_id=budget_id, user_id=user_id)
    if not budget:
        raise _budget_not_found()
    return budget


@router.put("/{budget_id}", response_model=BudgetSaveResponse)
async def save_budget(
    budget_id: str,
    budget_data: BudgetUpdate,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """
    Save a budget and push it to the plans of every client it is assigned to.

    The budget is saved even if some clients' plans could not be updated;
    those are listed in ``propagation``.
    """
    result = await AsyncBudgetService.save_budget_and_sync(
        db=db,
        budget_id=budget_id,
        budget_data=budget_data,
        user_id=user_id
    )
    if not result:
        raise _budget_not_found()
    return BudgetSaveResponse(
        budget=result.budget,
        propagation=result.propagation,
        synced_count=result.propagation.synced_count,
        failed_count=result.propagation.failed_count,
    )


@router.patch("/{budget_id}", response_model=BudgetResponse)
async def update_budget_only(
    budget_id: str,
    budget_data: BudgetUpdate,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Save a budget without touching any client plans."""
    budget = await AsyncBudgetService.update_budget(
        db=db,
        budget_id=budget_id,
        budget_data=budget_data,
        user_id=user_id
    )
    if not budget:
        raise _budget_not_found()
    return budget


@router.post("/{budget_id}/sync", response_model=BudgetPropagationResult)
async def sync_budget(
    budget_id: str,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Rebuild the plans of every active assignment from the budget as stored."""
    result = await AsyncBudgetService.sync_budget(db=db, budget_id=budget_id, user_id=user_id)
    if not result:
        raise _budget_not_found()
    return result


@router.get("/{budget_id}/plans", response_model=AssociatedPlansResponse)
async def get_associated_plans(
    budget_id: str,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get all plans built from a budget."""
    budget = await AsyncBudgetService.get_budget(db=db, budget_id=budget_id, user_id=user_id)
    if not budget:
        raise _budget_not_found()
    return await AsyncPlansService.get_associated_plans(db=db, budget_id=budget_id)


@router.get("/{budget_id}/link", response_model=BudgetLinkResponse)
async def get_budget_link(
    budget_id: str,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get the shareable link of a budget."""
    budget = await AsyncBudgetService.get_budget(db=db, budget_id=budget_id, user_id=user_id)
    if not budget:
        raise _budget_not_found()
    return BudgetLinkResponse(budget_id=budget.id, link=generate_budget_link(budget.id))


@router.post("/{budget_id}/send", response_model=SendMessageResult)
async def send_budget(
    budget_id: str,
    request: SendBudgetRequest,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id),
    green_api: GreenApiService = Depends(get_green_api_service)
):
    """Send the budget link to a client over WhatsApp."""
    result = await BudgetMessagingService.send_budget_to_client(
        db=db,
        budget_id=budget_id,
        user_id=user_id,
        green_api=green_api,
        customer_id=request.customer_id,
        lead_id=request.lead_id,
        phone_number=request.phone_number,
        template=request.template,
        values=request.values,
        buttons=request.buttons,
        footer=request.footer
    )
    if not result:
        raise _budget_not_found()
    return result


@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(
    budget_id: str,
    delete_plans: bool = Query(False, description="Also delete the plans built from this budget"),
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Delete a budget and its assignments. Plans are kept and detached unless delete_plans is set."""
    deleted = await AsyncBudgetService.delete_budget(
        db=db,
        budget_id=budget_id,
        user_id=user_id,
        delete_plans=delete_plans
    )
    if not deleted:
        raise _budget_not_found()
