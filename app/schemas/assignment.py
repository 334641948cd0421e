from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.schemas.base import BaseSchema
from app.schemas.budget import BudgetResponse
from app.schemas.plans import (
    NutritionPlanResponse,
    PlanSyncResult,
    StepsPlanResponse,
    SupplementPlanResponse,
    WorkoutPlanResponse,
)


class ClientRef(BaseModel):
    """A customer, a lead, or a lead already linked to a customer"""
    customer_id: Optional[str] = None
    lead_id: Optional[str] = None

    @model_validator(mode="after")
    def check_client(self):
        if not self.customer_id and not self.lead_id:
            raise ValueError("Either customer_id or lead_id is required")
        return self


class AssignmentCreate(ClientRef):
    budget_id: str = Field(..., min_length=1)
    notes: Optional[str] = None


class BlankPlansRequest(ClientRef):
    pass


class BudgetAssignmentResponse(BaseSchema):
    id: str
    budget_id: str
    customer_id: Optional[str] = None
    lead_id: Optional[str] = None
    is_active: bool
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None
    notes: Optional[str] = None


class AssignmentListResponse(BaseModel):
    assignments: List[BudgetAssignmentResponse]
    total_count: int


class AssignmentResult(BaseModel):
    """A new assignment and the outcome of syncing its plans.

    The assignment stands even when ``sync_error`` is set.
    """
    assignment: BudgetAssignmentResponse
    sync: Optional[PlanSyncResult] = None
    sync_error: Optional[str] = None


class BlankPlansResponse(BaseModel):
    budget: BudgetResponse
    assignment: BudgetAssignmentResponse
    workout_plan_id: str
    nutrition_plan_id: str
    steps_plan_id: str
    supplement_plan_id: str


class PrivateBudgetResponse(BaseModel):
    assignment: BudgetAssignmentResponse
    budget: BudgetResponse
    cloned: bool = Field(..., description="False when the budget was already used by this assignment only")


class ClientActivePlansResponse(BaseModel):
    """The budget and plans a client is currently on.

    ``effective_budget_id`` is the active assignment's budget, or the
    budget of the active plans when the client has no assignment.
    """
    customer_id: Optional[str] = None
    lead_id: Optional[str] = None
    active_assignment: Optional[BudgetAssignmentResponse] = None
    workout_plan: Optional[WorkoutPlanResponse] = None
    nutrition_plan: Optional[NutritionPlanResponse] = None
    steps_plan: Optional[StepsPlanResponse] = None
    supplement_plan: Optional[SupplementPlanResponse] = None
    fallback_budget_id: Optional[str] = None
    effective_budget_id: Optional[str] = None
    budget: Optional[BudgetResponse] = None
