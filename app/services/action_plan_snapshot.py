import copy
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.budget import Budget
from app.models.nutrition_template import NutritionTemplate
from app.models.workout_template import WorkoutTemplate
from app.schemas.snapshot import SnapshotCreate, SnapshotListResponse, SnapshotResponse
from app.services.budget import budgets, is_visible, snapshots as saved_action_plans
from app.utils.logger import budget_logger

EMPTY_SNAPSHOT_TARGETS = {
    "calories": 0,
    "protein": 0,
    "carbs": 0,
    "fat": 0,
    "fiber_min": 20,
    "water_min": 2.5,
}


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def create_budget_snapshot(
    budget: Budget,
    nutrition_template: Optional[NutritionTemplate] = None,
    workout_template: Optional[WorkoutTemplate] = None,
) -> Dict[str, Any]:
    """JSON-ready copy of a budget with the templates it points at."""
    snapshot = {
        "id": budget.id,
        "name": budget.name,
        "description": budget.description,
        "nutrition_template_id": budget.nutrition_template_id,
        "nutrition_targets": budget.nutrition_targets or dict(EMPTY_SNAPSHOT_TARGETS),
        "nutrition_template": {
            "id": nutrition_template.id,
            "name": nutrition_template.name,
            "description": nutrition_template.description,
            "targets": nutrition_template.targets,
            "activity_entries": nutrition_template.activity_entries,
            "manual_fields": nutrition_template.manual_fields,
            "manual_override": nutrition_template.manual_override,
        } if nutrition_template is not None else None,
        "workout_template_id": budget.workout_template_id,
        "workout_template": {
            "id": workout_template.id,
            "name": workout_template.name,
            "description": workout_template.description,
            "goal_tags": workout_template.goal_tags,
            "routine_data": workout_template.routine_data,
        } if workout_template is not None else None,
        "supplements": budget.supplements or [],
        "cardio_training": budget.cardio_training or None,
        "interval_training": budget.interval_training or None,
        "steps_goal": budget.steps_goal or 0,
        "steps_min": budget.steps_min,
        "steps_max": budget.steps_max,
        "steps_instructions": budget.steps_instructions,
        "eating_order": budget.eating_order,
        "eating_rules": budget.eating_rules,
        "created_at": _isoformat(budget.created_at),
        "updated_at": _isoformat(budget.updated_at),
    }
    # Detach from the ORM row's mutable JSON values
    return copy.deepcopy(snapshot)


class AsyncSnapshotService:
    """Saved, read-only copies of action plans."""

    @staticmethod
    async def save_snapshot(db: AsyncSession, data: SnapshotCreate, user_id: str) -> Optional[SnapshotResponse]:
        """Snapshot a budget as it is now. Returns None if the budget is not visible."""
        budget = await budgets.get(db, data.budget_id)
        if budget is None or not is_visible(budget, user_id):
            return None

        nutrition_template = None
        if budget.nutrition_template_id:
            nutrition_template = await db.get(NutritionTemplate, budget.nutrition_template_id)
        workout_template = None
        if budget.workout_template_id:
            workout_template = await db.get(WorkoutTemplate, budget.workout_template_id)

        saved = await saved_action_plans.create(db, obj_in={
            "user_id": user_id,
            "lead_id": data.lead_id,
            "budget_id": budget.id,
            "name": data.name or budget.name,
            "description": data.description if data.description is not None else budget.description,
            "snapshot": create_budget_snapshot(budget, nutrition_template, workout_template),
            "notes": data.notes,
        })
        budget_logger.info("Action plan snapshot saved", "SNAPSHOT", snapshot_id=saved.id, budget_id=budget.id)
        return SnapshotResponse.model_validate(saved)

    @staticmethod
    async def list_snapshots(db: AsyncSession, user_id: str, lead_id: Optional[str] = None) -> SnapshotListResponse:
        filters = {"user_id": user_id}
        if lead_id:
            filters["lead_id"] = lead_id
        rows = await saved_action_plans.get_multi(db, limit=None, filters=filters, order_by="-saved_at")
        return SnapshotListResponse(
            snapshots=[SnapshotResponse.model_validate(row) for row in rows],
            total_count=len(rows),
        )

    @staticmethod
    async def get_snapshot(db: AsyncSession, snapshot_id: str, user_id: str) -> Optional[SnapshotResponse]:
        saved = await saved_action_plans.get(db, snapshot_id)
        if saved is None or saved.user_id != user_id:
            return None
        return SnapshotResponse.model_validate(saved)

    @staticmethod
    async def delete_snapshot(db: AsyncSession, snapshot_id: str, user_id: str) -> bool:
        saved = await saved_action_plans.get(db, snapshot_id)
        if saved is None or saved.user_id != user_id:
            return False
        await saved_action_plans.delete(db, id=snapshot_id)
        return True
