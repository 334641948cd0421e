"""
Pick the budget and plans a client is currently on.

A client can have several assignments and several rows per plan type. The
row flagged active wins; with none flagged, the first row is used (callers
pass lists newest first). Works on ORM rows and plain dicts.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

PLAN_TYPES = ("workout", "nutrition", "steps", "supplements")


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def pick_active_or_first(items: Optional[Sequence[Any]]) -> Optional[Any]:
    if not items:
        return None
    for item in items:
        if _field(item, "is_active"):
            return item
    return items[0]


@dataclass
class ActivePlans:
    workout: Optional[Any] = None
    nutrition: Optional[Any] = None
    steps: Optional[Any] = None
    supplements: Optional[Any] = None

    def as_dict(self) -> Dict[str, Optional[Any]]:
        return {plan_type: getattr(self, plan_type) for plan_type in PLAN_TYPES}


@dataclass
class EffectiveBudget:
    active_assignment: Optional[Any] = None
    active_plans: Optional[ActivePlans] = None
    fallback_budget_id: Optional[str] = None
    effective_budget_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.effective_budget_id is None


def resolve_active_plans(
    workout: Optional[Sequence[Any]] = None,
    nutrition: Optional[Sequence[Any]] = None,
    steps: Optional[Sequence[Any]] = None,
    supplements: Optional[Sequence[Any]] = None,
) -> ActivePlans:
    return ActivePlans(
        workout=pick_active_or_first(workout),
        nutrition=pick_active_or_first(nutrition),
        steps=pick_active_or_first(steps),
        supplements=pick_active_or_first(supplements),
    )


def resolve_fallback_budget_id(active_plans: ActivePlans) -> Optional[str]:
    """First budget id found in workout, nutrition, steps, supplements order."""
    for plan_type in PLAN_TYPES:
        plan = getattr(active_plans, plan_type)
        if plan is not None and _field(plan, "budget_id"):
            return _field(plan, "budget_id")
    return None


def resolve_effective_budget(
    assignments: Optional[Sequence[Any]] = None,
    histories: Optional[Dict[str, Sequence[Any]]] = None,
) -> EffectiveBudget:
    """
    Combine assignments and plan histories into the budget a client is on.

    ``histories`` maps plan type ("workout", "nutrition", "steps",
    "supplements") to that type's rows. The active assignment's budget wins;
    without one the plans' budget is used. Nothing found yields an empty
    result, never an error.
    """
    histories = histories or {}
    active_assignment = pick_active_or_first(assignments)
    active_plans = resolve_active_plans(**{plan_type: histories.get(plan_type) for plan_type in PLAN_TYPES})
    fallback_budget_id = resolve_fallback_budget_id(active_plans)

    effective_budget_id = _field(active_assignment, "budget_id") if active_assignment is not None else None
    return EffectiveBudget(
        active_assignment=active_assignment,
        active_plans=active_plans,
        fallback_budget_id=fallback_budget_id,
        effective_budget_id=effective_budget_id or fallback_budget_id,
    )
