"""create game_state, round_history and admin_action

Revision ID: 4a7c1d9e2b10
Revises:
Create Date: 2026-10-12 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4a7c1d9e2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'game_state',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('round_name', sa.String(length=200), nullable=False),
        sa.Column('round_details', sa.Text(), nullable=False),
        sa.Column('attachments_json', sa.Text(), nullable=True),
        sa.Column('current_timer', sa.Integer(), nullable=False),
        sa.Column('next_timer', sa.Integer(), nullable=False),
        sa.Column('round_start_time', sa.Float(), nullable=True),
        sa.Column('paused_remaining', sa.Integer(), nullable=True),
        sa.Column('cooldown_end_time', sa.Float(), nullable=True),
        sa.Column('countdown_days', sa.Integer(), nullable=False),
        sa.Column('countdown_hours', sa.Integer(), nullable=False),
        sa.Column('countdown_minutes', sa.Integer(), nullable=False),
        sa.Column('countdown_seconds', sa.Integer(), nullable=False),
        sa.Column('countdown_is_active', sa.Boolean(), nullable=False),
        sa.Column('countdown_is_paused', sa.Boolean(), nullable=False),
        sa.Column('countdown_start_time', sa.Float(), nullable=True),
        sa.Column('countdown_original_duration', sa.Integer(), nullable=True),
        sa.Column('countdown_finished_at', sa.Float(), nullable=True),
        sa.Column('next_round_name', sa.String(length=200), nullable=False),
        sa.Column('next_round_details', sa.Text(), nullable=False),
        sa.Column('next_round_attachments_json', sa.Text(), nullable=True),
        sa.Column('next_round_timer', sa.Integer(), nullable=False),
        sa.Column('current_round', sa.Integer(), nullable=False),
        sa.Column('total_rounds', sa.Integer(), nullable=False),
        sa.Column('game_status', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.Column('last_updated', sa.Float(), nullable=False),
    )
    op.create_table(
        'round_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('round_name', sa.String(length=200), nullable=False),
        sa.Column('round_details', sa.Text(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Float(), nullable=False),
        sa.Column('end_time', sa.Float(), nullable=True),
        sa.Column('attachments_json', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    with op.batch_alter_table('round_history') as batch_op:
        batch_op.create_index('ix_round_history_created_at', ['created_at'])
    op.create_table(
        'admin_action',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.Float(), nullable=False),
        sa.Column('game_state_json', sa.Text(), nullable=True),
    )
    with op.batch_alter_table('admin_action') as batch_op:
        batch_op.create_index('ix_admin_action_timestamp', ['timestamp'])


def downgrade():
    op.drop_table('admin_action')
    op.drop_table('round_history')
    op.drop_table('game_state')
