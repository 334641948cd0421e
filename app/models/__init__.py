"""Database models."""

# Import all models here to ensure they're recognized by SQLAlchemy
from app.models.budget import Budget
from app.models.budget_assignment import BudgetAssignment
from app.models.customer import Customer
from app.models.lead import Lead
from app.models.nutrition_plan import NutritionPlan
from app.models.nutrition_template import NutritionTemplate
from app.models.saved_action_plan import SavedActionPlan
from app.models.steps_plan import StepsPlan
from app.models.supplement_plan import SupplementPlan
from app.models.workout_plan import WorkoutPlan
from app.models.workout_template import WorkoutTemplate

__all__ = [
    "Budget",
    "BudgetAssignment",
    "Customer",
    "Lead",
    "NutritionPlan",
    "NutritionTemplate",
    "SavedActionPlan",
    "StepsPlan",
    "SupplementPlan",
    "WorkoutPlan",
    "WorkoutTemplate",
]
