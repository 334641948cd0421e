"""Create budget, assignment and plan tables

Revision ID: create_coachdesk_tables

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'create_coachdesk_tables'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _plan_owner_columns():
    return [
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('budget_id', sa.String(36), sa.ForeignKey('budgets.id', ondelete='SET NULL')),
        sa.Column('customer_id', sa.String(36), sa.ForeignKey('customers.id', ondelete='CASCADE')),
        sa.Column('lead_id', sa.String(36), sa.ForeignKey('leads.id', ondelete='CASCADE')),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('start_date', sa.Date()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(36)),
    ]


def _plan_indexes(table):
    for column in ('budget_id', 'customer_id', 'lead_id'):
        op.create_index(f'ix_{table}_{column}', table, [column])


def upgrade() -> None:
    op.create_table(
        'customers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50)),
        sa.Column('email', sa.String(255)),
        sa.Column('daily_protocol', sa.JSON()),
        *_timestamps(),
    )

    op.create_table(
        'leads',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('customer_id', sa.String(36), sa.ForeignKey('customers.id', ondelete='SET NULL')),
        sa.Column('full_name', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('email', sa.String(255)),
        sa.Column('status', sa.String(50)),
        *_timestamps(),
    )
    op.create_index('ix_leads_customer_id', 'leads', ['customer_id'])

    op.create_table(
        'workout_templates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('goal_tags', sa.JSON()),
        sa.Column('routine_data', sa.JSON()),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.String(36)),
        *_timestamps(),
    )

    op.create_table(
        'nutrition_templates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('targets', sa.JSON()),
        sa.Column('activity_entries', sa.JSON()),
        sa.Column('manual_fields', sa.JSON()),
        sa.Column('manual_override', sa.JSON()),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.String(36)),
        *_timestamps(),
    )

    op.create_table(
        'budgets',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('nutrition_template_id', sa.String(36)),
        sa.Column('nutrition_targets', sa.JSON()),
        sa.Column('steps_goal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('steps_min', sa.Integer()),
        sa.Column('steps_max', sa.Integer()),
        sa.Column('steps_instructions', sa.Text()),
        sa.Column('workout_template_id', sa.String(36)),
        sa.Column('supplement_template_id', sa.String(36)),
        sa.Column('supplements', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('eating_order', sa.Text()),
        sa.Column('eating_rules', sa.Text()),
        sa.Column('other_notes', sa.Text()),
        sa.Column('cardio_training', sa.JSON()),
        sa.Column('interval_training', sa.JSON()),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.String(36)),
        *_timestamps(),
    )
    op.create_index('ix_budgets_nutrition_template_id', 'budgets', ['nutrition_template_id'])
    op.create_index('ix_budgets_workout_template_id', 'budgets', ['workout_template_id'])
    op.create_index('ix_budgets_created_by', 'budgets', ['created_by'])

    op.create_table(
        'budget_assignments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('budget_id', sa.String(36), sa.ForeignKey('budgets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.String(36), sa.ForeignKey('customers.id', ondelete='CASCADE')),
        sa.Column('lead_id', sa.String(36), sa.ForeignKey('leads.id', ondelete='CASCADE')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('assigned_by', sa.String(36)),
        sa.Column('notes', sa.Text()),
        *_timestamps(),
    )
    op.create_index('ix_budget_assignments_budget_id', 'budget_assignments', ['budget_id'])
    op.create_index('ix_budget_assignments_customer_id', 'budget_assignments', ['customer_id'])
    op.create_index('ix_budget_assignments_lead_id', 'budget_assignments', ['lead_id'])

    op.create_table(
        'workout_plans',
        *_plan_owner_columns(),
        sa.Column('template_id', sa.String(36)),
        sa.Column('description', sa.Text()),
        sa.Column('strength', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cardio', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('intervals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('custom_attributes', sa.JSON(), nullable=False),
        *_timestamps(),
    )
    _plan_indexes('workout_plans')

    op.create_table(
        'nutrition_plans',
        *_plan_owner_columns(),
        sa.Column('template_id', sa.String(36)),
        sa.Column('description', sa.Text()),
        sa.Column('targets', sa.JSON(), nullable=False),
        *_timestamps(),
    )
    _plan_indexes('nutrition_plans')

    op.create_table(
        'steps_plans',
        *_plan_owner_columns(),
        sa.Column('steps_goal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('steps_min', sa.Integer()),
        sa.Column('steps_max', sa.Integer()),
        sa.Column('steps_instructions', sa.Text()),
        *_timestamps(),
    )
    _plan_indexes('steps_plans')

    op.create_table(
        'supplement_plans',
        *_plan_owner_columns(),
        sa.Column('description', sa.Text()),
        sa.Column('supplements', sa.JSON(), nullable=False),
        *_timestamps(),
    )
    _plan_indexes('supplement_plans')

    op.create_table(
        'saved_action_plans',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('lead_id', sa.String(36), sa.ForeignKey('leads.id', ondelete='CASCADE')),
        sa.Column('budget_id', sa.String(36), sa.ForeignKey('budgets.id', ondelete='SET NULL')),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('snapshot', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('saved_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_saved_action_plans_user_id', 'saved_action_plans', ['user_id'])
    op.create_index('ix_saved_action_plans_lead_id', 'saved_action_plans', ['lead_id'])


def downgrade() -> None:
    for table in (
        'saved_action_plans',
        'supplement_plans',
        'steps_plans',
        'nutrition_plans',
        'workout_plans',
        'budget_assignments',
        'budgets',
        'nutrition_templates',
        'workout_templates',
        'leads',
        'customers',
    ):
        op.drop_table(table)
