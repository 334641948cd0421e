from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.budget_assignment import BudgetAssignment
from app.schemas.assignment import (
    AssignmentListResponse,
    AssignmentResult,
    BlankPlansResponse,
    BudgetAssignmentResponse,
    ClientActivePlansResponse,
)
from app.schemas.budget import BudgetResponse
from app.services.assignment_resolver import resolve_effective_budget
from app.services.async_error_handler import AsyncErrorHandler, handle_async_db_errors
from app.services.budget import AsyncBudgetService, assignments, budgets, is_visible
from app.services.cache import (
    BUDGETS_KEY,
    assignments_key,
    cache_service,
    client_assignment_keys,
    client_plan_keys,
)
from app.services.plan_sync import PlanSyncService, default_nutrition_targets
from app.services.plans import PLAN_SERVICES, AsyncPlansService
from app.utils.logger import assignment_logger

BLANK_BUDGET_NAME = "Empty action plan"

BLANK_NUTRITION_TARGETS = {
    "calories": 2000,
    "protein": 150,
    "carbs": 200,
    "fat": 65,
    "fiber_min": 30,
}


class AsyncAssignmentService:
    """Links budgets to customers and leads and keeps their plans in step."""

    @staticmethod
    async def _deactivate_client_assignments(db: AsyncSession, customer_id: Optional[str], lead_id: Optional[str]) -> None:
        conditions = []
        if customer_id:
            conditions.append(BudgetAssignment.customer_id == customer_id)
        if lead_id:
            conditions.append(BudgetAssignment.lead_id == lead_id)
        result = await db.execute(
            select(BudgetAssignment).where(or_(*conditions), BudgetAssignment.is_active.is_(True))
        )
        for assignment in result.scalars().all():
            assignment.is_active = False
        await db.flush()

    @staticmethod
    async def _invalidate_client(customer_id: Optional[str], lead_id: Optional[str]) -> None:
        await cache_service.invalidate(
            *client_assignment_keys(customer_id, lead_id),
            *client_plan_keys(customer_id, lead_id),
        )

    @staticmethod
    @handle_async_db_errors("assign budget")
    async def assign_budget(
        db: AsyncSession,
        budget_id: str,
        user_id: str,
        customer_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[AssignmentResult]:
        """
        Make a budget the client's active budget and build their plans from it.

        Returns None when the budget does not exist or is not visible. The
        assignment is kept even if plan sync fails; the failure is reported
        in the result.
        """
        if not customer_id and not lead_id:
            raise ValueError("Either customer_id or lead_id must be provided")

        budget = await budgets.get(db, budget_id)
        if budget is None or not is_visible(budget, user_id):
            return None

        await AsyncAssignmentService._deactivate_client_assignments(db, customer_id, lead_id)
        assignment = await assignments.create(db, obj_in={
            "budget_id": budget_id,
            "customer_id": customer_id,
            "lead_id": lead_id,
            "is_active": True,
            "assigned_by": user_id,
            "notes": notes,
        })
        response = AssignmentResult(assignment=BudgetAssignmentResponse.model_validate(assignment))
        assignment_logger.success("Budget assigned", "ASSIGN",
                                  assignment_id=assignment.id, budget_id=budget_id,
                                  customer_id=customer_id, lead_id=lead_id)

        try:
            response.sync = await PlanSyncService.sync_plans_from_budget(db, budget, customer_id, lead_id, user_id)
            if not response.sync.success:
                response.sync_error = "; ".join(f"{t}: {e}" for t, e in response.sync.errors.items())
        except (ValueError, SQLAlchemyError) as e:
            await db.rollback()
            response.sync_error = str(e)
            assignment_logger.error("Plan sync after assignment failed", "ASSIGN",
                                    assignment_id=response.assignment.id, error=str(e))

        await AsyncAssignmentService._invalidate_client(customer_id, lead_id)
        return response

    @staticmethod
    async def get_assignments(
        db: AsyncSession,
        customer_id: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> AssignmentListResponse:
        """A client's assignments, newest first."""
        if not customer_id and not lead_id:
            raise ValueError("Either customer_id or lead_id must be provided")

        key = assignments_key(customer_id, lead_id)
        cached = await cache_service.get(key)
        if cached is not None:
            return AssignmentListResponse.model_validate(cached)

        conditions = []
        if customer_id:
            conditions.append(BudgetAssignment.customer_id == customer_id)
        if lead_id:
            conditions.append(BudgetAssignment.lead_id == lead_id)
        try:
            result = await db.execute(
                select(BudgetAssignment).where(or_(*conditions)).order_by(BudgetAssignment.assigned_at.desc())
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise AsyncErrorHandler.handle_error(e, "list assignments") from e

        response = AssignmentListResponse(
            assignments=[BudgetAssignmentResponse.model_validate(row) for row in rows],
            total_count=len(rows),
        )
        await cache_service.set(key, response.model_dump(mode="json"))
        return response

    @staticmethod
    async def delete_assignment(db: AsyncSession, assignment_id: str) -> bool:
        """
        Delete an assignment and every plan built from it.

        Plan rows of all four types matching the assignment's budget and its
        lead, and the budget and its customer, are hard-deleted in the same
        transaction. Returns False for an unknown id.
        """
        assignment = await assignments.get(db, assignment_id)
        if assignment is None:
            return False

        budget_id = assignment.budget_id
        customer_id = assignment.customer_id
        lead_id = assignment.lead_id

        deleted = 0
        for service in PLAN_SERVICES.values():
            if lead_id:
                deleted += await service.delete_where(db, {"budget_id": budget_id, "lead_id": lead_id}, commit=False)
            if customer_id:
                deleted += await service.delete_where(db, {"budget_id": budget_id, "customer_id": customer_id}, commit=False)
        await assignments.delete(db, id=assignment_id)

        await AsyncAssignmentService._invalidate_client(customer_id, lead_id)
        assignment_logger.info("Assignment deleted", "DELETE",
                               assignment_id=assignment_id, budget_id=budget_id, plans_deleted=deleted)
        return True

    @staticmethod
    @handle_async_db_errors("create blank plans")
    async def create_blank_plans(
        db: AsyncSession,
        user_id: str,
        customer_id: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> BlankPlansResponse:
        """
        Start a client on an empty action plan.

        Creates one budget, one active assignment and one plan of each type,
        all committed together.
        """
        if not customer_id and not lead_id:
            raise ValueError("Either customer_id or lead_id must be provided")

        budget = await budgets.create(db, obj_in={
            "name": BLANK_BUDGET_NAME,
            "nutrition_targets": dict(BLANK_NUTRITION_TARGETS),
            "steps_goal": 0,
            "supplements": [],
            "is_public": False,
            "created_by": user_id,
        }, commit=False)

        await AsyncAssignmentService._deactivate_client_assignments(db, customer_id, lead_id)
        assignment = await assignments.create(db, obj_in={
            "budget_id": budget.id,
            "customer_id": customer_id,
            "lead_id": lead_id,
            "is_active": True,
            "assigned_by": user_id,
        }, commit=False)

        owner = {
            "budget_id": budget.id,
            "customer_id": customer_id,
            "lead_id": lead_id,
            "user_id": user_id,
            "created_by": user_id,
            "is_active": True,
        }
        plan_values = {
            "workout": {"strength": 0, "cardio": 0, "intervals": 0,
                        "custom_attributes": {"schema": [], "data": {}}},
            "nutrition": {"targets": default_nutrition_targets()},
            "steps": {"steps_goal": 0},
            "supplements": {"supplements": []},
        }
        plan_ids = {}
        for plan_type, service in PLAN_SERVICES.items():
            filters = {"customer_id": customer_id} if customer_id else {"lead_id": lead_id}
            await service.update_where(db, {**filters, "is_active": True}, {"is_active": False}, commit=False)
            plan = await service.create(db, obj_in={**owner, **plan_values[plan_type]}, commit=False)
            plan_ids[plan_type] = plan.id

        await db.commit()
        await db.refresh(budget)
        await db.refresh(assignment)

        await cache_service.invalidate_prefix(BUDGETS_KEY)
        await AsyncAssignmentService._invalidate_client(customer_id, lead_id)
        assignment_logger.success("Blank plans created", "BLANK", budget_id=budget.id,
                                  customer_id=customer_id, lead_id=lead_id)

        return BlankPlansResponse(
            budget=BudgetResponse.model_validate(budget),
            assignment=BudgetAssignmentResponse.model_validate(assignment),
            workout_plan_id=plan_ids["workout"],
            nutrition_plan_id=plan_ids["nutrition"],
            steps_plan_id=plan_ids["steps"],
            supplement_plan_id=plan_ids["supplements"],
        )

    @staticmethod
    async def make_private_budget(db: AsyncSession, assignment_id: str, user_id: str):
        """Assignment-facing wrapper of AsyncBudgetService.clone_budget_for_assignment."""
        result = await AsyncBudgetService.clone_budget_for_assignment(db, assignment_id, user_id)
        if result is None:
            return None
        assignment, budget, cloned = result
        await AsyncAssignmentService._invalidate_client(assignment.customer_id, assignment.lead_id)
        return assignment, budget, cloned

    @staticmethod
    async def get_active_plans(
        db: AsyncSession,
        customer_id: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> ClientActivePlansResponse:
        """Resolve the budget and the plan of each type a client is currently on."""
        assignment_list = await AsyncAssignmentService.get_assignments(db, customer_id=customer_id, lead_id=lead_id)
        history = await AsyncPlansService.get_plans_history(db, customer_id=customer_id, lead_id=lead_id)

        resolved = resolve_effective_budget(
            assignment_list.assignments,
            {
                "workout": history.workout_plans,
                "nutrition": history.nutrition_plans,
                "steps": history.steps_plans,
                "supplements": history.supplement_plans,
            },
        )
        budget = None
        if resolved.effective_budget_id:
            row = await budgets.get(db, resolved.effective_budget_id)
            budget = BudgetResponse.model_validate(row) if row is not None else None

        plans = resolved.active_plans
        return ClientActivePlansResponse(
            customer_id=customer_id,
            lead_id=lead_id,
            active_assignment=resolved.active_assignment,
            workout_plan=plans.workout,
            nutrition_plan=plans.nutrition,
            steps_plan=plans.steps,
            supplement_plan=plans.supplements,
            fallback_budget_id=resolved.fallback_budget_id,
            effective_budget_id=resolved.effective_budget_id,
            budget=budget,
        )
