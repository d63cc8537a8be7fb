"""create import batch jobs

Revision ID: 0002
Revises: 0001
Create Date: 2025-10-26 10:12:41

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "import_batch_jobs",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "batch_id",
            sa.String(length=36),
            sa.ForeignKey("import_batches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("succeeded_at", sa.DateTime(), nullable=True),
        sa.Column("failed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_import_batch_jobs_batch_id", "import_batch_jobs", ["batch_id"])


def downgrade() -> None:
    op.drop_index("ix_import_batch_jobs_batch_id", table_name="import_batch_jobs")
    op.drop_table("import_batch_jobs")
