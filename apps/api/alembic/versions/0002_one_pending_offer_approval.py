"""One pending offer-level approval per offer.

Revision ID: 0002_one_pending_offer_approval
Revises: 0001_baseline
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_one_pending_offer_approval'
down_revision = '0001_baseline'
branch_labels = None
depends_on = None

PENDING_OFFER_LEVEL = sa.text("slot_id IS NULL AND status = 'PENDING'")


def upgrade() -> None:
    op.create_index(
        'uq_approvals_one_pending_offer_level',
        'approvals',
        ['match_offer_id'],
        unique=True,
        postgresql_where=PENDING_OFFER_LEVEL,
        sqlite_where=PENDING_OFFER_LEVEL,
    )


def downgrade() -> None:
    op.drop_index('uq_approvals_one_pending_offer_level', table_name='approvals')
