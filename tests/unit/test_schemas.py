"""
Unit tests for request validation.
"""

import pytest
from pydantic import ValidationError

from app.schemas.assignment import AssignmentCreate, BlankPlansRequest
from app.schemas.budget import BudgetCreate


def test_budget_steps_range_must_be_ordered():
    with pytest.raises(ValidationError):
        BudgetCreate(name="Range", steps_min=9000, steps_max=8000)

    budget = BudgetCreate(name="Range", steps_min=8000, steps_max=9000)
    assert budget.steps_min == 8000


def test_budget_rejects_negative_targets():
    with pytest.raises(ValidationError):
        BudgetCreate(name="Bad", nutrition_targets={"calories": -1})


def test_budget_columns_keep_extra_target_keys():
    budget = BudgetCreate(
        name="Cut",
        nutrition_targets={"calories": 1800, "sugar_max": 40},
        supplements=[{"name": "Omega 3", "dosage": "1g"}],
    )
    columns = budget.to_columns()

    assert columns["nutrition_targets"] == {"calories": 1800, "sugar_max": 40}
    assert columns["supplements"][0]["name"] == "Omega 3"
    assert columns["is_public"] is False


def test_budget_name_required():
    with pytest.raises(ValidationError):
        BudgetCreate(name="")


def test_assignment_needs_a_client():
    with pytest.raises(ValidationError):
        AssignmentCreate(budget_id="b1")
    with pytest.raises(ValidationError):
        BlankPlansRequest()

    assert AssignmentCreate(budget_id="b1", lead_id="l1").lead_id == "l1"
