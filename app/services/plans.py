from typing import Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.nutrition_plan import NutritionPlan
from app.models.steps_plan import StepsPlan
from app.models.supplement_plan import SupplementPlan
from app.models.workout_plan import WorkoutPlan
from app.schemas.plans import (
    AssociatedPlansResponse,
    NutritionPlanResponse,
    PlansHistoryResponse,
    StepsPlanResponse,
    SupplementPlanResponse,
    WorkoutPlanResponse,
)
from app.services.async_error_handler import AsyncErrorHandler
from app.services.base import AsyncBaseService
from app.services.cache import cache_service, plans_history_key
from app.utils.logger import sync_logger

workout_plans = AsyncBaseService(WorkoutPlan)
nutrition_plans = AsyncBaseService(NutritionPlan)
steps_plans = AsyncBaseService(StepsPlan)
supplement_plans = AsyncBaseService(SupplementPlan)

# Plan type -> table service, in resolution order
PLAN_SERVICES: Dict[str, AsyncBaseService] = {
    "workout": workout_plans,
    "nutrition": nutrition_plans,
    "steps": steps_plans,
    "supplements": supplement_plans,
}


def client_filter(customer_id: Optional[str], lead_id: Optional[str]) -> Dict[str, str]:
    """Match a client's rows by customer when known, else by lead."""
    if customer_id:
        return {"customer_id": customer_id}
    if lead_id:
        return {"lead_id": lead_id}
    raise ValueError("Either customer_id or lead_id must be provided")


class AsyncPlansService:
    """Read access to the per-client plan tables."""

    @staticmethod
    async def _client_rows(db: AsyncSession, model, customer_id: Optional[str], lead_id: Optional[str]) -> List:
        conditions = []
        if customer_id:
            conditions.append(model.customer_id == customer_id)
        if lead_id:
            conditions.append(model.lead_id == lead_id)
        stmt = select(model).where(or_(*conditions)).order_by(model.created_at.desc())
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_plans_history(
        db: AsyncSession,
        customer_id: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> PlansHistoryResponse:
        """Every plan of a client (rows matching the customer or the lead), newest first."""
        if not customer_id and not lead_id:
            raise ValueError("Either customer_id or lead_id must be provided")

        key = plans_history_key(customer_id, lead_id)
        cached = await cache_service.get(key)
        if cached is not None:
            return PlansHistoryResponse.model_validate(cached)

        try:
            history = PlansHistoryResponse(
                workout_plans=[
                    WorkoutPlanResponse.model_validate(row)
                    for row in await AsyncPlansService._client_rows(db, WorkoutPlan, customer_id, lead_id)
                ],
                nutrition_plans=[
                    NutritionPlanResponse.model_validate(row)
                    for row in await AsyncPlansService._client_rows(db, NutritionPlan, customer_id, lead_id)
                ],
                steps_plans=[
                    StepsPlanResponse.model_validate(row)
                    for row in await AsyncPlansService._client_rows(db, StepsPlan, customer_id, lead_id)
                ],
                supplement_plans=[
                    SupplementPlanResponse.model_validate(row)
                    for row in await AsyncPlansService._client_rows(db, SupplementPlan, customer_id, lead_id)
                ],
            )
        except SQLAlchemyError as e:
            raise AsyncErrorHandler.handle_error(e, "plans history") from e

        await cache_service.set(key, history.model_dump(mode="json"))
        sync_logger.debug(
            "Loaded plans history",
            "HISTORY",
            customer_id=customer_id,
            lead_id=lead_id,
            workout=len(history.workout_plans),
            nutrition=len(history.nutrition_plans),
        )
        return history

    @staticmethod
    async def get_associated_plans(db: AsyncSession, budget_id: str) -> AssociatedPlansResponse:
        """All plan rows still pointing at a budget."""
        filters = {"budget_id": budget_id}
        return AssociatedPlansResponse(
            budget_id=budget_id,
            workout_plans=[
                WorkoutPlanResponse.model_validate(row)
                for row in await workout_plans.get_multi(db, limit=None, filters=filters, order_by="-created_at")
            ],
            nutrition_plans=[
                NutritionPlanResponse.model_validate(row)
                for row in await nutrition_plans.get_multi(db, limit=None, filters=filters, order_by="-created_at")
            ],
            steps_plans=[
                StepsPlanResponse.model_validate(row)
                for row in await steps_plans.get_multi(db, limit=None, filters=filters, order_by="-created_at")
            ],
            supplement_plans=[
                SupplementPlanResponse.model_validate(row)
                for row in await supplement_plans.get_multi(db, limit=None, filters=filters, order_by="-created_at")
            ],
        )
