"""create app_builder_generations and users tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "app_builder_generations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("project_name", sa.String(length=100), nullable=False),
        sa.Column("form_data", sa.JSON(), nullable=False),
        sa.Column("selected_prompt_types", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("prd", sa.Text(), nullable=True),
        sa.Column("user_flows", sa.Text(), nullable=True),
        sa.Column("task_file", sa.Text(), nullable=True),
        sa.Column("screen_list", sa.JSON(), nullable=True),
        sa.Column("endpoint_list", sa.JSON(), nullable=True),
        sa.Column("security_feature_list", sa.JSON(), nullable=True),
        sa.Column("functionality_feature_list", sa.JSON(), nullable=True),
        sa.Column("error_scenario_list", sa.JSON(), nullable=True),
        sa.Column("generated_prompts", sa.JSON(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
    )
    op.create_index("ix_app_builder_generations_user_id", "app_builder_generations", ["user_id"])

    op.create_table(
        "users",
        sa.Column("clerk_id", sa.String(length=128), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("is_pro", sa.Boolean(), nullable=False),
        sa.Column("prompts_created_today", sa.Integer(), nullable=False),
        sa.Column("last_prompt_reset_date", sa.String(length=10), nullable=True),
        sa.Column("total_prompts", sa.Integer(), nullable=False),
        sa.Column("prompt_type_breakdown", sa.JSON(), nullable=False),
    )

def downgrade():
    op.drop_table("users")
    op.drop_index("ix_app_builder_generations_user_id", table_name="app_builder_generations")
    op.drop_table("app_builder_generations")
