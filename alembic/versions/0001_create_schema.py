from __future__ import annotations

from alembic import op

from orderhub.core.database import Base
import orderhub.models  # noqa: F401

revision = "0001_create_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # menu_items, orders, order_items, kitchen_tokens, bills, activities
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
