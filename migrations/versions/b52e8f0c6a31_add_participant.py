"""add participant roster

Revision ID: b52e8f0c6a31
Revises: 4a7c1d9e2b10
Create Date: 2026-10-14 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b52e8f0c6a31'
down_revision = '4a7c1d9e2b10'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'participant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('roll_number', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('college', sa.String(length=200), nullable=False),
        sa.Column('branch', sa.String(length=120), nullable=False),
        sa.Column('year', sa.String(length=16), nullable=False),
        sa.Column('degree', sa.String(length=64), nullable=False),
        sa.Column('team', sa.String(length=120), nullable=True),
        sa.Column('avatar', sa.String(length=120), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('eliminated_at', sa.Float(), nullable=True),
        sa.Column('registered_at', sa.Float(), nullable=False),
        sa.Column('last_updated', sa.Float(), nullable=False),
        sa.UniqueConstraint('email'),
    )
    with op.batch_alter_table('participant') as batch_op:
        batch_op.create_index('ix_participant_roll_number', ['roll_number'], unique=True)
        batch_op.create_index('ix_participant_college', ['college'])
        batch_op.create_index('ix_participant_team', ['team'])
        batch_op.create_index('ix_participant_status', ['status'])


def downgrade():
    op.drop_table('participant')
