"""Drop sale_items foreign keys to the catalog

Revision ID: 0004_sale_items_catalog_fk
Revises: 0003_hash_credentials
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op

from clothpos.services import schema_service


# revision identifiers, used by Alembic.
revision = "0004_sale_items_catalog_fk"
down_revision = "0003_hash_credentials"
branch_labels = None
depends_on = None


def upgrade():
    schema_service.detach_sale_items_from_catalog(op.get_bind())


def downgrade():
    pass
