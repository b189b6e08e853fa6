"""initial schema: schedule_snapshots + snapshot_tasks

Revision ID: 0001
Revises:
Create Date: 2025-03-03

Monthly schedule snapshots per project. Append-only: a snapshot is never
updated once captured.
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "schedule_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_code", sa.String(64), nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("project_code", "snapshot_date", name="uq_snapshot_project_date"),
    )
    op.create_index("ix_schedule_snapshots_project_code", "schedule_snapshots", ["project_code"])
    op.create_index("ix_schedule_snapshots_snapshot_date", "schedule_snapshots", ["snapshot_date"])

    op.create_table(
        "snapshot_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "snapshot_id",
            sa.Integer(),
            sa.ForeignKey("schedule_snapshots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("task_name", sa.String(512), nullable=True),
        sa.Column("disciplina", sa.String(256), nullable=True),
        sa.Column("planned_end_date", sa.String(64), nullable=True),
        sa.Column("status", sa.String(128), nullable=True),
        sa.Column("delay_days", sa.Integer(), nullable=True),
        sa.Column("fase_nome", sa.String(256), nullable=True),
        sa.Column("categoria_atraso", sa.String(256), nullable=True),
        sa.Column("motivo_atraso", sa.Text(), nullable=True),
        sa.Column("observacao_otus", sa.Text(), nullable=True),
    )
    op.create_index("ix_snapshot_tasks_snapshot_id", "snapshot_tasks", ["snapshot_id"])


def downgrade() -> None:
    op.drop_index("ix_snapshot_tasks_snapshot_id", table_name="snapshot_tasks")
    op.drop_table("snapshot_tasks")
    op.drop_index("ix_schedule_snapshots_snapshot_date", table_name="schedule_snapshots")
    op.drop_index("ix_schedule_snapshots_project_code", table_name="schedule_snapshots")
    op.drop_table("schedule_snapshots")
