"""fractional reference pace and stored pace adaptation

Revision ID: 20261026_0002
Revises: 20261019_0001
Create Date: 2026-10-26
"""

from alembic import op
import sqlalchemy as sa


revision = "20261026_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("athletes", sa.Column("five_k_pace_seconds", sa.Float(), nullable=True))
    op.add_column("executed_days", sa.Column("pace_adaptation", sa.JSON(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("executed_days") as batch_op:
        batch_op.drop_column("pace_adaptation")
    with op.batch_alter_table("athletes") as batch_op:
        batch_op.drop_column("five_k_pace_seconds")
