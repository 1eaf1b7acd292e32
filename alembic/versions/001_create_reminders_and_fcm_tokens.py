"""Create reminders and fcm_tokens tables

Revision ID: 001_create_reminders_and_fcm_tokens
Revises:
Create Date: 2025-02-10 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_reminders_and_fcm_tokens'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('reminders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('pet_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('reminder_type', sa.String(), nullable=False),
        sa.Column('trigger_datetime', sa.DateTime(timezone=True), nullable=False),
        sa.Column('next_trigger_datetime', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recurrence_rule', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reminders_user_id'), 'reminders', ['user_id'], unique=False)
    op.create_index(op.f('ix_reminders_pet_id'), 'reminders', ['pet_id'], unique=False)
    op.create_index('ix_reminders_active_next_trigger', 'reminders', ['is_active', 'next_trigger_datetime'], unique=False)
    op.create_index('ix_reminders_user_next_trigger', 'reminders', ['user_id', 'next_trigger_datetime'], unique=False)

    op.create_table('fcm_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('fcm_token', sa.String(), nullable=False),
        sa.Column('platform', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'fcm_token', name='uq_fcm_tokens_user_token')
    )
    op.create_index(op.f('ix_fcm_tokens_user_id'), 'fcm_tokens', ['user_id'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_fcm_tokens_user_id'), table_name='fcm_tokens')
    op.drop_table('fcm_tokens')
    op.drop_index('ix_reminders_user_next_trigger', table_name='reminders')
    op.drop_index('ix_reminders_active_next_trigger', table_name='reminders')
    op.drop_index(op.f('ix_reminders_pet_id'), table_name='reminders')
    op.drop_index(op.f('ix_reminders_user_id'), table_name='reminders')
    op.drop_table('reminders')
