"""
Integration tests for budget CRUD, propagation to assignments and snapshots.
"""

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from app.models.budget import Budget
from app.models.budget_assignment import BudgetAssignment
from app.models.customer import Customer
from app.models.nutrition_plan import NutritionPlan
from app.models.saved_action_plan import SavedActionPlan
from app.models.steps_plan import StepsPlan
from app.models.workout_plan import WorkoutPlan
from app.models.workout_template import WorkoutTemplate
from app.schemas.budget import BudgetCreate, BudgetUpdate
from app.schemas.snapshot import SnapshotCreate
from app.services.action_plan_snapshot import AsyncSnapshotService
from app.services.budget import AsyncBudgetService
from app.services.plan_sync import PlanSyncService
from tests.async_test_utils import COACH_ID, OTHER_COACH_ID, AsyncDatabaseTestUtils


def _update(**overrides) -> BudgetUpdate:
    values = {
        "name": "Cut phase v2",
        "nutrition_targets": {"calories": 1700, "protein": 170},
        "steps_goal": 10000,
        "supplements": [{"name": "Vitamin D", "dosage": "2000IU", "timing": "Morning"}],
    }
    values.update(overrides)
    return BudgetUpdate(**values)


class TestBudgetCrud:

    @pytest.mark.asyncio
    async def test_create_and_get(self, async_db_session):
        created = await AsyncBudgetService.create_budget(
            async_db_session,
            BudgetCreate(name="Lean bulk", nutrition_targets={"calories": 2800}, steps_min=7000, steps_max=9000),
            COACH_ID,
        )

        assert created.created_by == COACH_ID
        assert created.nutrition_targets.calories == 2800

        fetched = await AsyncBudgetService.get_budget(async_db_session, created.id, COACH_ID)
        assert fetched.name == "Lean bulk"
        assert fetched.steps_max == 9000

    @pytest.mark.asyncio
    async def test_private_budget_hidden_from_other_coaches(self, async_db_session, make_budget):
        private = await make_budget(is_public=False)
        public = await make_budget(name="Shared", is_public=True)

        assert await AsyncBudgetService.get_budget(async_db_session, private.id, OTHER_COACH_ID) is None
        assert (await AsyncBudgetService.get_budget(async_db_session, public.id, OTHER_COACH_ID)).name == "Shared"
        assert await AsyncBudgetService.get_budget(async_db_session, "missing", COACH_ID) is None

    @pytest.mark.asyncio
    async def test_list_budgets_search_and_pages(self, async_db_session, make_budget):
        await make_budget(name="Summer cut")
        await make_budget(name="Winter bulk")
        await make_budget(name="Public cut", is_public=True, created_by=OTHER_COACH_ID)
        await make_budget(name="Hidden cut", is_public=False, created_by=OTHER_COACH_ID)

        listed = await AsyncBudgetService.list_budgets(async_db_session, COACH_ID)
        assert {budget.name for budget in listed.budgets} == {"Summer cut", "Winter bulk", "Public cut"}
        assert listed.total_count == 3

        searched = await AsyncBudgetService.list_budgets(async_db_session, COACH_ID, search="cut")
        assert {budget.name for budget in searched.budgets} == {"Summer cut", "Public cut"}

        page = await AsyncBudgetService.list_budgets(async_db_session, COACH_ID, page=2, page_size=2)
        assert len(page.budgets) == 1
        assert page.total_pages == 2

    @pytest.mark.asyncio
    async def test_only_owner_can_update(self, async_db_session, make_budget):
        budget = await make_budget(is_public=True)

        with pytest.raises(HTTPException) as exc_info:
            await AsyncBudgetService.update_budget(async_db_session, budget.id, _update(), OTHER_COACH_ID)
        assert exc_info.value.status_code == 403

        assert await AsyncBudgetService.update_budget(async_db_session, "missing", _update(), COACH_ID) is None

    @pytest.mark.asyncio
    async def test_update_replaces_fields_without_touching_plans(self, async_db_session, make_budget, test_customer):
        db_utils = AsyncDatabaseTestUtils(async_db_session)
        budget = await make_budget(steps_instructions="Morning walk")
        await PlanSyncService.sync_plans_from_budget(async_db_session, budget, customer_id=test_customer.id, user_id=COACH_ID)

        updated = await AsyncBudgetService.update_budget(async_db_session, budget.id, _update(), COACH_ID)

        assert updated.name == "Cut phase v2"
        assert updated.steps_instructions is None
        steps = await db_utils.rows(StepsPlan, customer_id=test_customer.id)
        assert steps[0].steps_goal == 8000


class TestBudgetPropagation:

    @pytest.mark.asyncio
    async def test_save_pushes_to_active_assignments_only(self, async_db_session, make_budget, test_customer, test_lead):
        db_utils = AsyncDatabaseTestUtils(async_db_session)
        budget = await make_budget()
        inactive_customer = await db_utils.create_record(Customer, full_name="Former client")
        await db_utils.assign(budget.id, customer_id=test_customer.id)
        await db_utils.assign(budget.id, lead_id=test_lead.id)
        await db_utils.assign(budget.id, customer_id=inactive_customer.id, is_active=False)

        result = await AsyncBudgetService.save_budget_and_sync(async_db_session, budget.id, _update(), COACH_ID)

        assert result.budget.name == "Cut phase v2"
        assert result.propagation.synced_count == 2
        assert result.propagation.failed_count == 0

        customer_nutrition = await db_utils.rows(NutritionPlan, customer_id=test_customer.id)
        assert customer_nutrition[0].targets == {"calories": 1700, "protein": 170}
        lead_steps = await db_utils.rows(StepsPlan, lead_id=test_lead.id)
        assert lead_steps[0].steps_goal == 10000
        assert await db_utils.count_records(NutritionPlan, customer_id=inactive_customer.id) == 0

    @pytest.mark.asyncio
    async def test_one_failing_assignment_does_not_stop_the_rest(self, async_db_session, make_budget, test_customer, test_lead, monkeypatch):
        db_utils = AsyncDatabaseTestUtils(async_db_session)
        budget = await make_budget()
        budget_id = budget.id
        failing_customer = await db_utils.create_record(Customer, full_name="Broken client")
        failing_customer_id = failing_customer.id
        lead_id = test_lead.id
        await db_utils.assign(budget_id, customer_id=failing_customer_id)
        await db_utils.assign(budget_id, lead_id=lead_id)

        original_sync = PlanSyncService.sync_plans_from_budget

        async def flaky_sync(db, budget, customer_id=None, lead_id=None, user_id=None):
            if customer_id == failing_customer_id:
                raise OperationalError("SELECT", {}, Exception("connection reset"))
            return await original_sync(db, budget, customer_id, lead_id, user_id)

        monkeypatch.setattr(PlanSyncService, "sync_plans_from_budget", staticmethod(flaky_sync))

        result = await AsyncBudgetService.save_budget_and_sync(async_db_session, budget_id, _update(), COACH_ID)

        assert result.budget.name == "Cut phase v2"
        assert result.propagation.synced_count == 1
        assert result.propagation.failed_count == 1
        failed = [outcome for outcome in result.propagation.outcomes if not outcome.success]
        assert failed[0].customer_id == failing_customer_id
        assert "connection reset" in failed[0].error

        assert await db_utils.count_records(StepsPlan, lead_id=lead_id) == 1
        saved = await db_utils.get_record(Budget, budget_id)
        assert saved.name == "Cut phase v2"

    @pytest.mark.asyncio
    async def test_sync_budget_without_changes(self, async_db_session, make_budget, test_customer):
        db_utils = AsyncDatabaseTestUtils(async_db_session)
        budget = await make_budget()
        await db_utils.assign(budget.id, customer_id=test_customer.id)

        result = await AsyncBudgetService.sync_budget(async_db_session, budget.id, COACH_ID)

        assert result.synced_count == 1
        assert await db_utils.count_records(WorkoutPlan, customer_id=test_customer.id) == 1
        assert await AsyncBudgetService.sync_budget(async_db_session, budget.id, OTHER_COACH_ID) is None


class TestBudgetDeletion:

    @pytest.mark.asyncio
    async def test_delete_detaches_plans_by_default(self, async_db_session, make_budget, test_customer):
        db_utils = AsyncDatabaseTestUtils(async_db_session)
        budget = await make_budget()
        budget_id = budget.id
        await db_utils.assign(budget_id, customer_id=test_customer.id)
        await PlanSyncService.sync_plans_from_budget(async_db_session, budget, customer_id=test_customer.id, user_id=COACH_ID)

        assert await AsyncBudgetService.delete_budget(async_db_session, budget_id, COACH_ID)

        assert await db_utils.get_record(Budget, budget_id) is None
        assert await db_utils.count_records(BudgetAssignment, budget_id=budget_id) == 0
        plans = await db_utils.rows(NutritionPlan, customer_id=test_customer.id)
        assert len(plans) == 1
        assert plans[0].budget_id is None

    @pytest.mark.asyncio
    async def test_delete_with_plans(self, async_db_session, make_budget, test_customer):
        db_utils = AsyncDatabaseTestUtils(async_db_session)
        budget = await make_budget()
        await PlanSyncService.sync_plans_from_budget(async_db_session, budget, customer_id=test_customer.id, user_id=COACH_ID)

        assert await AsyncBudgetService.delete_budget(async_db_session, budget.id, COACH_ID, delete_plans=True)

        assert await db_utils.count_records(NutritionPlan, customer_id=test_customer.id) == 0
        assert await db_utils.count_records(WorkoutPlan, customer_id=test_customer.id) == 0

    @pytest.mark.asyncio
    async def test_delete_requires_owner(self, async_db_session, make_budget):
        budget = await make_budget(is_public=True)

        with pytest.raises(HTTPException) as exc_info:
            await AsyncBudgetService.delete_budget(async_db_session, budget.id, OTHER_COACH_ID)
        assert exc_info.value.status_code == 403
        assert await AsyncBudgetService.delete_budget(async_db_session, "missing", COACH_ID) is False


class TestSnapshots:

    @pytest.mark.asyncio
    async def test_snapshot_copies_budget_and_template(self, async_db_session, make_budget, test_lead):
        db_utils = AsyncDatabaseTestUtils(async_db_session)
        template = await db_utils.create_record(WorkoutTemplate, name="Push pull legs", routine_data={"weeklyWorkout": {"strength": 5}})
        budget = await make_budget(workout_template_id=template.id)

        snapshot = await AsyncSnapshotService.save_snapshot(
            async_db_session, SnapshotCreate(budget_id=budget.id, lead_id=test_lead.id, notes="Week 1"), COACH_ID
        )

        assert snapshot.name == "Cut phase"
        assert snapshot.snapshot["workout_template"]["name"] == "Push pull legs"
        assert snapshot.snapshot["nutrition_template"] is None
        assert snapshot.snapshot["steps_goal"] == 8000

        # Later budget edits do not reach the snapshot
        budget.name = "Changed"
        budget.nutrition_targets = {"calories": 1}
        await async_db_session.commit()
        stored = await AsyncSnapshotService.get_snapshot(async_db_session, snapshot.id, COACH_ID)
        assert stored.snapshot["name"] == "Cut phase"
        assert stored.snapshot["nutrition_targets"]["calories"] == 1800

    @pytest.mark.asyncio
    async def test_snapshots_are_private_to_their_coach(self, async_db_session, make_budget, test_lead):
        db_utils = AsyncDatabaseTestUtils(async_db_session)
        budget = await make_budget()
        snapshot = await AsyncSnapshotService.save_snapshot(
            async_db_session, SnapshotCreate(budget_id=budget.id, lead_id=test_lead.id), COACH_ID
        )

        assert await AsyncSnapshotService.get_snapshot(async_db_session, snapshot.id, OTHER_COACH_ID) is None
        assert not await AsyncSnapshotService.delete_snapshot(async_db_session, snapshot.id, OTHER_COACH_ID)

        listed = await AsyncSnapshotService.list_snapshots(async_db_session, COACH_ID, lead_id=test_lead.id)
        assert listed.total_count == 1

        assert await AsyncSnapshotService.delete_snapshot(async_db_session, snapshot.id, COACH_ID)
        assert await db_utils.count_records(SavedActionPlan) == 0

    @pytest.mark.asyncio
    async def test_snapshot_of_invisible_budget(self, async_db_session, make_budget):
        budget = await make_budget(created_by=OTHER_COACH_ID)
        result = await AsyncSnapshotService.save_snapshot(async_db_session, SnapshotCreate(budget_id=budget.id), COACH_ID)
        assert result is None
