"""Replace plaintext users.password with bcrypt password_hash

Revision ID: 0003_hash_credentials
Revises: 0002_repair_sale_items
Create Date: 2026-10-19 09:20:00.000000
"""

from alembic import op

from clothpos.services import schema_service


# revision identifiers, used by Alembic.
revision = "0003_hash_credentials"
down_revision = "0002_repair_sale_items"
branch_labels = None
depends_on = None


def upgrade():
    schema_service.hash_legacy_credentials(op.get_bind())


def downgrade():
    # Hashes cannot be turned back into passwords.
    pass
