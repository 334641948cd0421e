"""
Budget to plan synchronization.

Writes a budget's current values into the client's workout, nutrition,
steps and supplement plans. Each plan type is committed on its own, so a
failure in one type leaves the others written.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.budget import Budget
from app.models.budget_assignment import BudgetAssignment
from app.models.lead import Lead
from app.models.nutrition_template import NutritionTemplate
from app.models.workout_template import WorkoutTemplate
from app.schemas.plans import AssignmentSyncOutcome, BudgetPropagationResult, PlanSyncResult
from app.services.assignment_resolver import pick_active_or_first
from app.services.async_error_handler import async_transaction_rollback
from app.services.cache import cache_service, client_plan_keys
from app.services.plans import PLAN_SERVICES, client_filter
from app.utils.logger import sync_logger

DEFAULT_NUTRITION_TARGETS = {
    "calories": 2000,
    "protein": 150,
    "carbs": 200,
    "fat": 65,
    "fiber": 30,
}


def default_nutrition_targets() -> Dict[str, Any]:
    return dict(DEFAULT_NUTRITION_TARGETS)


def merge_nutrition_targets(existing: Optional[Dict[str, Any]], targets: Dict[str, Any]) -> Dict[str, Any]:
    """New targets over the existing object; "_"-prefixed metadata keys of the existing one survive."""
    merged = {key: value for key, value in (existing or {}).items() if key.startswith("_")}
    merged.update(targets)
    return merged


def resolve_steps(steps_goal: Optional[int], steps_min: Optional[int], steps_max: Optional[int]) -> Tuple[int, Optional[int], Optional[int]]:
    """(goal, min, max) to store; a range is kept only when both ends are set, and fills a zero goal."""
    goal = steps_goal or 0
    if steps_min is None or steps_max is None:
        return goal, None, None
    if goal == 0:
        goal = steps_min
    return goal, steps_min, steps_max


@dataclass
class BudgetValues:
    """Plain copy of the budget fields plans are built from.

    A rollback expires every ORM instance in the session, so the values are
    read once up front.
    """
    id: str
    name: str
    nutrition_template_id: Optional[str] = None
    nutrition_targets: Optional[Dict[str, Any]] = None
    steps_goal: int = 0
    steps_min: Optional[int] = None
    steps_max: Optional[int] = None
    steps_instructions: Optional[str] = None
    workout_template_id: Optional[str] = None
    supplements: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_budget(cls, budget: Budget) -> "BudgetValues":
        return cls(
            id=budget.id,
            name=budget.name,
            nutrition_template_id=budget.nutrition_template_id,
            nutrition_targets=dict(budget.nutrition_targets) if budget.nutrition_targets else None,
            steps_goal=budget.steps_goal or 0,
            steps_min=budget.steps_min,
            steps_max=budget.steps_max,
            steps_instructions=budget.steps_instructions,
            workout_template_id=budget.workout_template_id,
            supplements=list(budget.supplements or []),
        )


@dataclass
class SyncTarget:
    budget: BudgetValues
    customer_id: Optional[str]
    lead_id: Optional[str]
    user_id: str

    @property
    def match(self) -> Dict[str, str]:
        return {"budget_id": self.budget.id, **client_filter(self.customer_id, self.lead_id)}

    def new_row(self, description: str) -> Dict[str, Any]:
        return {
            "budget_id": self.budget.id,
            "customer_id": self.customer_id,
            "lead_id": self.lead_id,
            "user_id": self.user_id,
            "created_by": self.user_id,
            "start_date": date.today(),
            "description": description,
            "is_active": True,
        }


class PlanSyncService:
    """Creates or updates the plans derived from a budget for one client."""

    @staticmethod
    async def _resolve_customer_id(db: AsyncSession, customer_id: Optional[str], lead_id: Optional[str]) -> Optional[str]:
        if customer_id or not lead_id:
            return customer_id
        result = await db.execute(select(Lead.customer_id).where(Lead.id == lead_id))
        linked = result.scalar_one_or_none()
        if linked:
            sync_logger.info("Using customer linked to lead", "RESOLVE", lead_id=lead_id, customer_id=linked)
        return linked

    @staticmethod
    async def _existing(db: AsyncSession, plan_type: str, target: SyncTarget):
        rows = await PLAN_SERVICES[plan_type].get_multi(db, limit=None, filters=target.match, order_by="-created_at")
        return pick_active_or_first(rows)

    @staticmethod
    async def _activate(db: AsyncSession, plan_type: str, target: SyncTarget, row=None) -> None:
        """Deactivate the client's other active rows of this type and mark ``row`` active."""
        service = PLAN_SERVICES[plan_type]
        others = await service.get_multi(
            db,
            limit=None,
            filters={**client_filter(target.customer_id, target.lead_id), "is_active": True},
        )
        for other in others:
            if row is None or other.id != row.id:
                other.is_active = False
        if row is not None:
            row.is_active = True
        await db.flush()

    @staticmethod
    async def _sync_workout(db: AsyncSession, target: SyncTarget) -> str:
        existing = await PlanSyncService._existing(db, "workout", target)
        if existing is not None:
            # Workout programs are edited per client after creation
            return existing.id

        budget = target.budget
        row = target.new_row(f"Workout plan from budget: {budget.name}")
        row.update({"template_id": None, "strength": 0, "cardio": 0, "intervals": 0,
                    "custom_attributes": {"schema": [], "data": {}}})

        if budget.workout_template_id:
            template = await db.get(WorkoutTemplate, budget.workout_template_id)
            if template is None:
                sync_logger.warning("Workout template not found, creating blank plan", "WORKOUT",
                                    template_id=budget.workout_template_id)
            else:
                routine = template.routine_data or {}
                weekly = routine.get("weeklyWorkout") or {}
                row.update({
                    "template_id": template.id,
                    "strength": weekly.get("strength") or 0,
                    "cardio": weekly.get("cardio") or 0,
                    "intervals": weekly.get("intervals") or 0,
                    "custom_attributes": routine or {"schema": [], "data": {}},
                })

        await PlanSyncService._activate(db, "workout", target)
        plan = await PLAN_SERVICES["workout"].create(db, obj_in=row, commit=False)
        return plan.id

    @staticmethod
    async def _nutrition_targets(db: AsyncSession, budget: BudgetValues) -> Optional[Dict[str, Any]]:
        if budget.nutrition_targets:
            return dict(budget.nutrition_targets)
        if budget.nutrition_template_id:
            template = await db.get(NutritionTemplate, budget.nutrition_template_id)
            if template is not None and template.targets:
                return dict(template.targets)
        return None

    @staticmethod
    async def _sync_nutrition(db: AsyncSession, target: SyncTarget) -> str:
        budget = target.budget
        targets = await PlanSyncService._nutrition_targets(db, budget)
        existing = await PlanSyncService._existing(db, "nutrition", target)

        if existing is not None:
            # no budget values to apply, keep the client's current targets
            if targets is None:
                return existing.id
            existing.targets = merge_nutrition_targets(existing.targets, targets)
            existing.template_id = budget.nutrition_template_id
            await PlanSyncService._activate(db, "nutrition", target, existing)
            return existing.id

        row = target.new_row(f"Nutrition plan from budget: {budget.name}")
        row.update({
            "template_id": budget.nutrition_template_id,
            "targets": targets if targets is not None else default_nutrition_targets(),
        })
        await PlanSyncService._activate(db, "nutrition", target)
        plan = await PLAN_SERVICES["nutrition"].create(db, obj_in=row, commit=False)
        return plan.id

    @staticmethod
    async def _sync_steps(db: AsyncSession, target: SyncTarget) -> str:
        budget = target.budget
        goal, steps_min, steps_max = resolve_steps(budget.steps_goal, budget.steps_min, budget.steps_max)
        values = {
            "steps_goal": goal,
            "steps_min": steps_min,
            "steps_max": steps_max,
            "steps_instructions": budget.steps_instructions,
        }
        existing = await PlanSyncService._existing(db, "steps", target)

        if existing is not None:
            await PLAN_SERVICES["steps"].update(db, db_obj=existing, obj_in=values, commit=False)
            await PlanSyncService._activate(db, "steps", target, existing)
            return existing.id

        row = target.new_row(f"Steps plan from budget: {budget.name}")
        row.pop("description")
        row.update(values)
        await PlanSyncService._activate(db, "steps", target)
        plan = await PLAN_SERVICES["steps"].create(db, obj_in=row, commit=False)
        return plan.id

    @staticmethod
    async def _sync_supplements(db: AsyncSession, target: SyncTarget) -> str:
        budget = target.budget
        supplements = list(budget.supplements)
        existing = await PlanSyncService._existing(db, "supplements", target)

        if existing is not None:
            existing.supplements = supplements
            await PlanSyncService._activate(db, "supplements", target, existing)
            return existing.id

        row = target.new_row(f"Supplement plan from budget: {budget.name}")
        row["supplements"] = supplements
        await PlanSyncService._activate(db, "supplements", target)
        plan = await PLAN_SERVICES["supplements"].create(db, obj_in=row, commit=False)
        return plan.id

    @staticmethod
    async def sync_plans_from_budget(
        db: AsyncSession,
        budget,
        customer_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> PlanSyncResult:
        """
        Bring one client's four plans in line with a budget.

        ``budget`` is a Budget row or BudgetValues. Rows are matched on the
        budget id plus the customer id (looked up from the lead when only a
        lead is given), else the lead id.

        Raises:
            ValueError: when neither a customer nor a lead can be resolved
        """
        values = budget if isinstance(budget, BudgetValues) else BudgetValues.from_budget(budget)
        resolved_customer_id = await PlanSyncService._resolve_customer_id(db, customer_id, lead_id)
        if not resolved_customer_id and not lead_id:
            raise ValueError("Either customer_id or lead_id must be provided")

        target = SyncTarget(
            budget=values,
            customer_id=resolved_customer_id,
            lead_id=lead_id,
            user_id=user_id or "",
        )
        result = PlanSyncResult(budget_id=values.id, customer_id=resolved_customer_id, lead_id=lead_id)

        sync_logger.info("Syncing plans from budget", "START",
                         budget_id=values.id, customer_id=resolved_customer_id, lead_id=lead_id)

        steps = (
            ("workout", "workout_plan_id", PlanSyncService._sync_workout),
            ("nutrition", "nutrition_plan_id", PlanSyncService._sync_nutrition),
            ("steps", "steps_plan_id", PlanSyncService._sync_steps),
            ("supplements", "supplement_plan_id", PlanSyncService._sync_supplements),
        )
        for plan_type, id_field, sync_step in steps:
            try:
                async with async_transaction_rollback(db):
                    plan_id = await sync_step(db, target)
                setattr(result, id_field, plan_id)
            except HTTPException as e:
                result.errors[plan_type] = str(e.detail)
                sync_logger.error(f"Failed to sync {plan_type} plan", "WRITE", budget_id=values.id, error=e.detail)
            except SQLAlchemyError as e:
                result.errors[plan_type] = str(e)
                sync_logger.error(f"Failed to sync {plan_type} plan", "WRITE", budget_id=values.id, error=str(e))

        result.invalidated_keys = client_plan_keys(resolved_customer_id, lead_id)
        await cache_service.invalidate(*result.invalidated_keys)

        if result.success:
            sync_logger.success("Plans synced", "DONE", budget_id=values.id,
                                workout=result.workout_plan_id, nutrition=result.nutrition_plan_id,
                                steps=result.steps_plan_id, supplements=result.supplement_plan_id)
        else:
            sync_logger.warning("Plans partially synced", "DONE", budget_id=values.id, failed=list(result.errors))
        return result

    @staticmethod
    async def propagate_budget_update(db: AsyncSession, budget, user_id: Optional[str] = None) -> BudgetPropagationResult:
        """
        Sync every active assignment of a budget, one after another.

        All assignments are attempted; one failing does not stop the rest.
        """
        values = budget if isinstance(budget, BudgetValues) else BudgetValues.from_budget(budget)
        rows = await db.execute(
            select(BudgetAssignment.id, BudgetAssignment.customer_id, BudgetAssignment.lead_id)
            .where(BudgetAssignment.budget_id == values.id, BudgetAssignment.is_active.is_(True))
            .order_by(BudgetAssignment.assigned_at)
        )
        assignments = rows.all()
        propagation = BudgetPropagationResult(budget_id=values.id)

        sync_logger.info("Propagating budget update", "PROPAGATE", budget_id=values.id, assignments=len(assignments))

        for assignment_id, customer_id, lead_id in assignments:
            try:
                sync = await PlanSyncService.sync_plans_from_budget(db, values, customer_id, lead_id, user_id)
                propagation.outcomes.append(AssignmentSyncOutcome(
                    assignment_id=assignment_id,
                    customer_id=sync.customer_id,
                    lead_id=lead_id,
                    success=sync.success,
                    error="; ".join(f"{plan_type}: {error}" for plan_type, error in sync.errors.items()) or None,
                    sync=sync,
                ))
            except (ValueError, SQLAlchemyError) as e:
                await db.rollback()
                sync_logger.error("Assignment sync failed", "PROPAGATE", assignment_id=assignment_id, error=str(e))
                propagation.outcomes.append(AssignmentSyncOutcome(
                    assignment_id=assignment_id,
                    customer_id=customer_id,
                    lead_id=lead_id,
                    success=False,
                    error=str(e),
                ))

        return propagation
