"""add workflow_started_at to app_builder_generations

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

def upgrade():
    with op.batch_alter_table("app_builder_generations") as batch:
        batch.add_column(sa.Column("workflow_started_at", sa.DateTime(), nullable=True))

def downgrade():
    with op.batch_alter_table("app_builder_generations") as batch:
        batch.drop_column("workflow_started_at")
