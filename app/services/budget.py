from dataclasses import dataclass
import math
from typing import Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.budget import Budget
from app.models.budget_assignment import BudgetAssignment
from app.models.saved_action_plan import SavedActionPlan
from app.schemas.budget import BudgetCreate, BudgetListResponse, BudgetResponse, BudgetUpdate
from app.schemas.plans import BudgetPropagationResult
from app.services.async_error_handler import AsyncErrorHandler, handle_async_db_errors
from app.services.base import AsyncBaseService
from app.services.cache import (
    BUDGETS_KEY,
    PLAN_KEY_PREFIXES,
    budget_key,
    cache_service,
)
from app.services.plan_sync import BudgetValues, PlanSyncService
from app.services.plans import PLAN_SERVICES, client_filter
from app.utils.logger import budget_logger

budgets = AsyncBaseService(Budget)
assignments = AsyncBaseService(BudgetAssignment)
snapshots = AsyncBaseService(SavedActionPlan)

# Columns copied when a shared budget is cloned for one client
CLONED_FIELDS = (
    "name", "description", "nutrition_template_id", "nutrition_targets", "steps_goal",
    "steps_min", "steps_max", "steps_instructions", "workout_template_id", "supplement_template_id",
    "supplements", "eating_order", "eating_rules", "other_notes", "cardio_training", "interval_training",
)


@dataclass
class BudgetSaveResult:
    budget: BudgetResponse
    propagation: BudgetPropagationResult


def is_visible(budget: Budget, user_id: Optional[str]) -> bool:
    return bool(budget.is_public) or (user_id is not None and budget.created_by == user_id)


class AsyncBudgetService:
    """
    Async budget service.

    Budgets are visible to their creator and, when public, to every coach.
    Only the creator may change or delete one.
    """

    @staticmethod
    async def invalidate_budget(budget_id: str) -> None:
        await cache_service.invalidate(budget_key(budget_id))
        await cache_service.invalidate_prefix(BUDGETS_KEY)

    @staticmethod
    async def _get_owned(db: AsyncSession, budget_id: str, user_id: str, action: str) -> Optional[Budget]:
        budget = await budgets.get(db, budget_id)
        if budget is None:
            return None
        if budget.created_by != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not authorized to {action} this budget"
            )
        return budget

    @staticmethod
    async def create_budget(db: AsyncSession, budget_data: BudgetCreate, user_id: str) -> BudgetResponse:
        """Create a new budget owned by the acting coach."""
        budget = await budgets.create(db, obj_in={**budget_data.to_columns(), "created_by": user_id})
        await cache_service.invalidate_prefix(BUDGETS_KEY)
        budget_logger.success("Budget created", "CREATE", budget_id=budget.id, name=budget.name)
        return BudgetResponse.model_validate(budget)

    @staticmethod
    async def get_budget(db: AsyncSession, budget_id: str, user_id: Optional[str] = None) -> Optional[BudgetResponse]:
        """Get a budget if it is public or owned by the user."""
        cached = await cache_service.get(budget_key(budget_id))
        if cached is not None:
            response = BudgetResponse.model_validate(cached)
            if response.is_public or response.created_by == user_id:
                return response
            return None

        budget = await budgets.get(db, budget_id)
        if budget is None or not is_visible(budget, user_id):
            return None

        response = BudgetResponse.model_validate(budget)
        await cache_service.set(budget_key(budget_id), response.model_dump(mode="json"))
        return response

    @staticmethod
    async def list_budgets(
        db: AsyncSession,
        user_id: str,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> BudgetListResponse:
        """Public budgets plus the user's own, newest first."""
        key = f"{BUDGETS_KEY}:{user_id}:{search or ''}:{page}:{page_size}"
        cached = await cache_service.get(key)
        if cached is not None:
            return BudgetListResponse.model_validate(cached)

        stmt = select(Budget).where(or_(Budget.is_public.is_(True), Budget.created_by == user_id))
        if search and search.strip():
            term = f"%{search.strip()}%"
            stmt = stmt.where(or_(Budget.name.ilike(term), Budget.description.ilike(term)))

        try:
            count_result = await db.execute(select(func.count()).select_from(stmt.subquery()))
            total_count = count_result.scalar() or 0

            offset = (page - 1) * page_size
            result = await db.execute(stmt.order_by(Budget.created_at.desc()).offset(offset).limit(page_size))
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise AsyncErrorHandler.handle_error(e, "list budgets") from e

        response = BudgetListResponse(
            budgets=[BudgetResponse.model_validate(row) for row in rows],
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size) if total_count > 0 else 1,
        )
        await cache_service.set(key, response.model_dump(mode="json"))
        return response

    @staticmethod
    async def _replace(db: AsyncSession, budget_id: str, budget_data: BudgetUpdate, user_id: str) -> Optional[Budget]:
        budget = await AsyncBudgetService._get_owned(db, budget_id, user_id, "update")
        if budget is None:
            return None
        budget = await budgets.update(db, db_obj=budget, obj_in=budget_data.to_columns())
        await AsyncBudgetService.invalidate_budget(budget_id)
        budget_logger.info("Budget updated", "UPDATE", budget_id=budget_id)
        return budget

    @staticmethod
    async def update_budget(db: AsyncSession, budget_id: str, budget_data: BudgetUpdate, user_id: str) -> Optional[BudgetResponse]:
        """Replace every editable field of a budget. Plans are not touched."""
        budget = await AsyncBudgetService._replace(db, budget_id, budget_data, user_id)
        return BudgetResponse.model_validate(budget) if budget is not None else None

    @staticmethod
    async def save_budget_and_sync(
        db: AsyncSession,
        budget_id: str,
        budget_data: BudgetUpdate,
        user_id: str,
    ) -> Optional[BudgetSaveResult]:
        """
        Replace a budget, then push it to every active assignment.

        A failed update raises before any plan is touched. Sync failures are
        reported per assignment in the result.
        """
        budget = await AsyncBudgetService._replace(db, budget_id, budget_data, user_id)
        if budget is None:
            return None

        response = BudgetResponse.model_validate(budget)
        propagation = await PlanSyncService.propagate_budget_update(db, BudgetValues.from_budget(budget), user_id)
        # Budget views embed plan data, drop them once more after the plans changed
        await AsyncBudgetService.invalidate_budget(budget_id)

        if propagation.failed_count:
            budget_logger.warning("Budget saved with sync failures", "SAVE", budget_id=budget_id,
                                  synced=propagation.synced_count, failed=propagation.failed_count)
        else:
            budget_logger.success("Budget saved and synced", "SAVE", budget_id=budget_id,
                                  synced=propagation.synced_count)
        return BudgetSaveResult(budget=response, propagation=propagation)

    @staticmethod
    async def sync_budget(db: AsyncSession, budget_id: str, user_id: str) -> Optional[BudgetPropagationResult]:
        """Push a budget to its active assignments without changing it."""
        budget = await budgets.get(db, budget_id)
        if budget is None or not is_visible(budget, user_id):
            return None
        return await PlanSyncService.propagate_budget_update(db, BudgetValues.from_budget(budget), user_id)

    @staticmethod
    async def delete_budget(db: AsyncSession, budget_id: str, user_id: str, delete_plans: bool = False) -> bool:
        """
        Delete a budget and its assignments.

        With ``delete_plans`` the plans built from it are deleted too,
        otherwise they are kept and detached (budget_id cleared).
        """
        budget = await AsyncBudgetService._get_owned(db, budget_id, user_id, "delete")
        if budget is None:
            return False

        for service in PLAN_SERVICES.values():
            if delete_plans:
                await service.delete_where(db, {"budget_id": budget_id}, commit=False)
            else:
                await service.update_where(db, {"budget_id": budget_id}, {"budget_id": None}, commit=False)
        await snapshots.update_where(db, {"budget_id": budget_id}, {"budget_id": None}, commit=False)
        await assignments.delete_where(db, {"budget_id": budget_id}, commit=False)
        await budgets.delete(db, id=budget_id)

        await AsyncBudgetService.invalidate_budget(budget_id)
        for prefix in (*PLAN_KEY_PREFIXES, "plans-history", "budget-assignments"):
            await cache_service.invalidate_prefix(prefix)

        budget_logger.info("Budget deleted", "DELETE", budget_id=budget_id, delete_plans=delete_plans)
        return True

    @staticmethod
    @handle_async_db_errors("clone budget")
    async def clone_budget_for_assignment(
        db: AsyncSession, assignment_id: str, user_id: str
    ) -> Optional[Tuple[BudgetAssignment, Budget, bool]]:
        """
        Give an assignment a budget of its own before it is edited.

        When other assignments share the budget, a private copy is created,
        the assignment and the client's plans are moved to it. Returns
        (assignment, budget, cloned).
        """
        assignment = await assignments.get(db, assignment_id)
        if assignment is None:
            return None

        shared_with = await db.execute(
            select(func.count()).select_from(BudgetAssignment).where(
                BudgetAssignment.budget_id == assignment.budget_id,
                BudgetAssignment.id != assignment.id,
            )
        )
        original = await budgets.get(db, assignment.budget_id)
        if original is None:
            return None
        if not shared_with.scalar():
            return assignment, original, False

        copy = await budgets.create(
            db,
            obj_in={
                **{name: getattr(original, name) for name in CLONED_FIELDS},
                "is_public": False,
                "created_by": user_id,
            },
            commit=False,
        )
        filters = {"budget_id": original.id, **client_filter(assignment.customer_id, assignment.lead_id)}
        for service in PLAN_SERVICES.values():
            await service.update_where(db, filters, {"budget_id": copy.id}, commit=False)
        assignment.budget_id = copy.id
        await db.commit()
        await db.refresh(assignment)
        await db.refresh(copy)

        await cache_service.invalidate_prefix(BUDGETS_KEY)
        budget_logger.info("Private budget copy created", "CLONE",
                           assignment_id=assignment_id, source_budget_id=original.id, budget_id=copy.id)
        return assignment, copy, True
