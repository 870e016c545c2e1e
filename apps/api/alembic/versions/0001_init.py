"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "tasks",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False, server_default="todo"),
    sa.Column("priority", sa.String(), nullable=False, server_default="medium"),
    sa.Column("assignee_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
  )
  op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)
  op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"], unique=False)
  op.create_index("ix_tasks_due_date", "tasks", ["due_date"], unique=False)

  op.create_table(
    "audit_events",
    sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
    sa.Column("task_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("tasks.id"), nullable=True),
    sa.Column("actor_id", postgresql.UUID(as_uuid=False), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=True),
    sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
  )
  op.create_index("ix_audit_events_task_id", "audit_events", ["task_id"], unique=False)


def downgrade() -> None:
  op.drop_index("ix_audit_events_task_id", table_name="audit_events")
  op.drop_table("audit_events")
  op.drop_index("ix_tasks_due_date", table_name="tasks")
  op.drop_index("ix_tasks_assignee_id", table_name="tasks")
  op.drop_index("ix_tasks_status", table_name="tasks")
  op.drop_table("tasks")
  op.drop_index("ix_users_email", table_name="users")
  op.drop_table("users")
