"""Create missing tables and backfill columns older stores lack

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op

from clothpos.services import schema_service


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    # Desktop-app stores already have most tables; only absent ones are created
    schema_service.ensure_schema(bind)
    schema_service.backfill_legacy_columns(bind)


def downgrade():
    # Legacy stores predate this revision; there is nothing to return to.
    pass
