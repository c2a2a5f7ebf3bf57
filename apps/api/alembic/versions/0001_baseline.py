"""Baseline: match offers, slots, approvals and the notification outbox.

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates:
- match_offers
- slots (partial unique index: one BOOKED slot per offer)
- approvals
- notifications
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_baseline'
down_revision = None
branch_labels = None
depends_on = None

BOOKED_ONLY = sa.text("status = 'BOOKED'")


def upgrade() -> None:
    # ==========================================================================
    # match_offers
    # ==========================================================================
    op.create_table(
        'match_offers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('host_name', sa.String(255), nullable=False),
        sa.Column('host_club', sa.String(255), nullable=True),
        sa.Column('host_contact', sa.String(255), nullable=True),
        sa.Column('age_group', sa.String(10), nullable=False),
        sa.Column('format', sa.String(10), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('location', sa.String(500), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('approver_email', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('share_token', sa.String(128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('share_token'),
        sa.CheckConstraint(
            "status IN ('PENDING_APPROVAL', 'OPEN', 'CLOSED', 'CANCELLED')",
            name='ck_match_offers_status',
        ),
        sa.CheckConstraint(
            "age_group IN ('U8', 'U10', 'U12', 'U14', 'U16', 'U18', 'Open')",
            name='ck_match_offers_age_group',
        ),
        sa.CheckConstraint(
            "format IN ('5v5', '7v7', '9v9', '11v11')",
            name='ck_match_offers_format',
        ),
        sa.CheckConstraint('duration > 0', name='ck_match_offers_duration'),
    )
    op.create_index('idx_match_offers_host_contact', 'match_offers', ['host_contact'])
    op.create_index('idx_match_offers_status', 'match_offers', ['status'])

    # ==========================================================================
    # slots
    # ==========================================================================
    op.create_table(
        'slots',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('match_offer_id', sa.Uuid(), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('held_by_session', sa.String(128), nullable=True),
        sa.Column('held_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('guest_name', sa.String(255), nullable=True),
        sa.Column('guest_club', sa.String(255), nullable=True),
        sa.Column('guest_contact', sa.String(255), nullable=True),
        sa.Column('guest_notes', sa.Text(), nullable=True),
        sa.Column('home_score', sa.Integer(), nullable=True),
        sa.Column('away_score', sa.Integer(), nullable=True),
        sa.Column('result_notes', sa.Text(), nullable=True),
        sa.Column('result_saved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['match_offer_id'], ['match_offers.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "status IN ('OPEN', 'HELD', 'PENDING_APPROVAL', 'BOOKED', 'REJECTED')",
            name='ck_slots_status',
        ),
        sa.CheckConstraint('end_time > start_time', name='ck_slots_time_window'),
    )
    op.create_index('idx_slots_offer', 'slots', ['match_offer_id', 'status'])
    op.create_index(
        'uq_slots_one_booked_per_offer',
        'slots',
        ['match_offer_id'],
        unique=True,
        postgresql_where=BOOKED_ONLY,
        sqlite_where=BOOKED_ONLY,
    )

    # ==========================================================================
    # approvals
    # ==========================================================================
    op.create_table(
        'approvals',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('approval_token', sa.String(128), nullable=False),
        sa.Column('match_offer_id', sa.Uuid(), nullable=False),
        sa.Column('slot_id', sa.Uuid(), nullable=True),
        sa.Column('approver_email', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('decision_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decision_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('approval_token'),
        sa.ForeignKeyConstraint(['match_offer_id'], ['match_offers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['slot_id'], ['slots.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name='ck_approvals_status',
        ),
    )
    op.create_index('idx_approvals_offer', 'approvals', ['match_offer_id', 'status'])
    op.create_index('idx_approvals_slot', 'approvals', ['slot_id'])

    # ==========================================================================
    # notifications (outbox; survives offer deletion)
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('recipient_email', sa.String(255), nullable=True),
        sa.Column('recipient_type', sa.String(20), nullable=False),
        sa.Column('notification_type', sa.String(40), nullable=False),
        sa.Column('match_offer_id', sa.Uuid(), nullable=True),
        sa.Column('slot_id', sa.Uuid(), nullable=True),
        sa.Column('subject', sa.String(500), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['match_offer_id'], ['match_offers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['slot_id'], ['slots.id'], ondelete='SET NULL'),
        sa.CheckConstraint(
            "recipient_type IN ('HOST', 'GUEST', 'APPROVER')",
            name='ck_notifications_recipient_type',
        ),
        sa.CheckConstraint(
            "notification_type IN ('SLOT_SELECTED', 'APPROVAL_REQUEST', 'OFFER_APPROVAL_REQUEST', "
            "'APPROVED', 'REJECTED', 'OFFER_CLOSED')",
            name='ck_notifications_type',
        ),
    )
    op.create_index('idx_notifications_unsent', 'notifications', ['sent', 'created_at'])
    op.create_index('idx_notifications_offer', 'notifications', ['match_offer_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('approvals')
    op.drop_index('uq_slots_one_booked_per_offer', table_name='slots')
    op.drop_table('slots')
    op.drop_table('match_offers')
