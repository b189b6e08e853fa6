"""add change_annotations table

Revision ID: 0002
Revises: 0001
Create Date: 2025-03-10

Coordinator notes on changelog records, keyed by the change identity
(project, snapshot pair, change type, task name, discipline). Absent
discipline is stored as '' so the unique constraint covers it.
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "change_annotations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_code", sa.String(64), nullable=False),
        sa.Column("from_snapshot_date", sa.Date(), nullable=False),
        sa.Column("to_snapshot_date", sa.Date(), nullable=False),
        sa.Column("change_type", sa.String(32), nullable=False),
        sa.Column("task_name", sa.String(512), nullable=False),
        sa.Column("disciplina", sa.String(256), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("justification", sa.Text(), nullable=True),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("override_delta_days", sa.Integer(), nullable=True),
        sa.Column("override_end_date", sa.Date(), nullable=True),
        sa.Column("created_by_email", sa.String(256), nullable=True),
        sa.Column("updated_by_email", sa.String(256), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_change_annotations_project_code", "change_annotations", ["project_code"])
    op.create_unique_constraint(
        "uq_change_annotation_key",
        "change_annotations",
        ["project_code", "from_snapshot_date", "to_snapshot_date",
         "change_type", "task_name", "disciplina"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_change_annotation_key", "change_annotations", type_="unique")
    op.drop_index("ix_change_annotations_project_code", table_name="change_annotations")
    op.drop_table("change_annotations")
