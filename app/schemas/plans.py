from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.base import BaseSchema


class PlanOwnership(BaseSchema):
    id: str
    budget_id: Optional[str] = None
    customer_id: Optional[str] = None
    lead_id: Optional[str] = None
    user_id: str
    start_date: Optional[date] = None
    is_active: bool
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class WorkoutPlanResponse(PlanOwnership):
    template_id: Optional[str] = None
    description: Optional[str] = None
    strength: int = 0
    cardio: int = 0
    intervals: int = 0
    custom_attributes: Dict[str, Any] = Field(default_factory=dict)


class NutritionPlanResponse(PlanOwnership):
    template_id: Optional[str] = None
    description: Optional[str] = None
    targets: Dict[str, Any] = Field(default_factory=dict)


class StepsPlanResponse(PlanOwnership):
    steps_goal: int = 0
    steps_min: Optional[int] = None
    steps_max: Optional[int] = None
    steps_instructions: Optional[str] = None


class SupplementPlanResponse(PlanOwnership):
    description: Optional[str] = None
    supplements: List[Dict[str, Any]] = Field(default_factory=list)


class PlansHistoryResponse(BaseModel):
    """Every plan row of a client, newest first per type"""
    workout_plans: List[WorkoutPlanResponse] = Field(default_factory=list)
    nutrition_plans: List[NutritionPlanResponse] = Field(default_factory=list)
    steps_plans: List[StepsPlanResponse] = Field(default_factory=list)
    supplement_plans: List[SupplementPlanResponse] = Field(default_factory=list)


class AssociatedPlansResponse(PlansHistoryResponse):
    budget_id: str


class PlanSyncResult(BaseModel):
    """Outcome of synchronizing one client's plans with a budget.

    Each plan type is written on its own; a type that failed has an entry
    in ``errors`` and no id.
    """
    budget_id: str
    customer_id: Optional[str] = None
    lead_id: Optional[str] = None
    workout_plan_id: Optional[str] = None
    nutrition_plan_id: Optional[str] = None
    steps_plan_id: Optional[str] = None
    supplement_plan_id: Optional[str] = None
    errors: Dict[str, str] = Field(default_factory=dict)
    invalidated_keys: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class AssignmentSyncOutcome(BaseModel):
    assignment_id: str
    customer_id: Optional[str] = None
    lead_id: Optional[str] = None
    success: bool
    error: Optional[str] = None
    sync: Optional[PlanSyncResult] = None


class BudgetPropagationResult(BaseModel):
    """Per-assignment outcomes of pushing a budget to all of its active assignments"""
    budget_id: str
    outcomes: List[AssignmentSyncOutcome] = Field(default_factory=list)

    @property
    def synced_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)
