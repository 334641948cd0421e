from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.base import BaseSchema
from app.schemas.plans import BudgetPropagationResult


class NutritionTargets(BaseModel):
    """Daily nutrition targets. Unknown keys are kept as-is."""
    model_config = ConfigDict(extra="allow")

    calories: Optional[float] = Field(None, ge=0, description="Daily calories")
    protein: Optional[float] = Field(None, ge=0, description="Protein in grams")
    carbs: Optional[float] = Field(None, ge=0, description="Carbohydrates in grams")
    fat: Optional[float] = Field(None, ge=0, description="Fat in grams")
    fiber: Optional[float] = Field(None, ge=0, description="Fiber in grams")
    fiber_min: Optional[float] = Field(None, ge=0, description="Minimum fiber in grams")
    water_min: Optional[float] = Field(None, ge=0, description="Minimum water in liters")


class SupplementItem(BaseModel):
    name: str = Field(..., min_length=1, description="Supplement name")
    dosage: Optional[str] = Field("", description="Dosage, e.g. '5g'")
    timing: Optional[str] = Field("", description="When to take it")
    link1: Optional[str] = None
    link2: Optional[str] = None


class CardioTrainingItem(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., description="Activity name")
    type: Optional[str] = None
    duration_minutes: int = Field(0, ge=0)
    workouts_per_week: int = Field(0, ge=0)
    period_type: Optional[str] = Field(None, description="'per_week' or 'per_day'")
    notes: Optional[str] = None


class IntervalTrainingItem(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    activity_type: str = Field(..., description="Activity, e.g. running or rowing")
    activity_duration_seconds: int = Field(0, ge=0)
    rest_duration_seconds: int = Field(0, ge=0)
    sets: int = Field(0, ge=0)
    workouts_per_week: int = Field(0, ge=0)
    notes: Optional[str] = None


class BudgetBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Name of the budget")
    description: Optional[str] = None
    nutrition_template_id: Optional[str] = None
    nutrition_targets: Optional[NutritionTargets] = None
    steps_goal: int = Field(0, ge=0, description="Daily steps goal")
    steps_min: Optional[int] = Field(None, ge=0)
    steps_max: Optional[int] = Field(None, ge=0)
    steps_instructions: Optional[str] = None
    workout_template_id: Optional[str] = None
    supplement_template_id: Optional[str] = None
    supplements: List[SupplementItem] = Field(default_factory=list)
    eating_order: Optional[str] = None
    eating_rules: Optional[str] = None
    other_notes: Optional[str] = None
    cardio_training: Optional[List[CardioTrainingItem]] = None
    interval_training: Optional[List[IntervalTrainingItem]] = None
    is_public: bool = False

    @model_validator(mode="after")
    def check_steps_range(self):
        if self.steps_min is not None and self.steps_max is not None and self.steps_min > self.steps_max:
            raise ValueError("steps_min cannot be greater than steps_max")
        return self

    def to_columns(self) -> Dict[str, Any]:
        """Column values for the budgets table; unset target keys are left out of the JSON."""
        data = self.model_dump()
        if self.nutrition_targets is not None:
            data["nutrition_targets"] = self.nutrition_targets.model_dump(exclude_none=True)
        return data


class BudgetCreate(BudgetBase):
    """Schema for creating a new budget"""
    pass


class BudgetUpdate(BudgetBase):
    """Schema for replacing a budget.

    Every non-identity field is written; an omitted optional field clears
    the stored value.
    """
    pass


class BudgetResponse(BudgetBase, BaseSchema):
    id: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class BudgetListResponse(BaseModel):
    """Schema for paginated list of budgets"""
    budgets: List[BudgetResponse]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class BudgetLinkResponse(BaseModel):
    budget_id: str
    link: str


class BudgetSaveResponse(BaseModel):
    """A saved budget and the outcome of pushing it to its assignments"""
    budget: BudgetResponse
    propagation: BudgetPropagationResult
    synced_count: int
    failed_count: int
