"""Repair sale_items carrying legacy quantity/price columns

Revision ID: 0002_repair_sale_items
Revises: 0001_initial_schema
Create Date: 2026-10-19 09:10:00.000000
"""

from alembic import op

from clothpos.services import schema_service


# revision identifiers, used by Alembic.
revision = "0002_repair_sale_items"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade():
    schema_service.repair_malformed_sale_items(op.get_bind())


def downgrade():
    pass
