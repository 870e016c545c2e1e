"""task reminder windows + user reminder settings

Revision ID: 0002_reminded_windows
Revises: 0001_init
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0002_reminded_windows"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.add_column(
    "tasks",
    sa.Column("reminded_windows", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
  )
  op.add_column("users", sa.Column("settings", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")))
  op.add_column("users", sa.Column("timezone", sa.String(), nullable=True))


def downgrade() -> None:
  op.drop_column("users", "timezone")
  op.drop_column("users", "settings")
  op.drop_column("tasks", "reminded_windows")
