"""create squad, daily event, outcome, challenge and stats tables

Revision ID: a1c4e7d2b9f0
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c4e7d2b9f0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('display_name', sa.String(length=64), nullable=False),
    )
    op.create_table(
        'squad',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
    )
    op.create_table(
        'squad_member',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('squad_id', sa.Integer(), sa.ForeignKey('squad.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('squad_id', 'user_id', name='uq_squad_member_squad_user'),
    )
    op.create_index('ix_squad_member_squad_id', 'squad_member', ['squad_id'])
    op.create_index('ix_squad_member_user_id', 'squad_member', ['user_id'])

    op.create_table(
        'daily_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('squad_id', sa.Integer(), sa.ForeignKey('squad.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('opens_at', sa.DateTime(), nullable=False),
        sa.Column('closes_at', sa.DateTime(), nullable=False),
        sa.Column('judge_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='scheduled'),
        sa.Column('poll_question', sa.Text(), nullable=True),
        sa.Column('poll_options', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('squad_id', 'date', name='uq_daily_events_squad_date'),
    )
    op.create_index('ix_daily_events_squad_id', 'daily_events', ['squad_id'])
    op.create_index('ix_daily_events_status', 'daily_events', ['status'])
    op.create_index('ix_daily_events_opens_at', 'daily_events', ['opens_at'])

    op.create_table(
        'event_outcomes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('daily_events.id'), nullable=False, unique=True),
        sa.Column('finalized_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('finalized_at', sa.DateTime(), nullable=False),
        sa.Column('overturned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('overturned_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'outcome_challenges',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('daily_events.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_outcome_challenges_event_user'),
    )
    op.create_index('ix_outcome_challenges_event_id', 'outcome_challenges', ['event_id'])

    op.create_table(
        'user_stats',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), primary_key=True),
        sa.Column('squad_id', sa.Integer(), sa.ForeignKey('squad.id'), primary_key=True),
        sa.Column('points_weekly', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('points_lifetime', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table('user_stats')
    op.drop_index('ix_outcome_challenges_event_id', table_name='outcome_challenges')
    op.drop_table('outcome_challenges')
    op.drop_table('event_outcomes')
    op.drop_index('ix_daily_events_opens_at', table_name='daily_events')
    op.drop_index('ix_daily_events_status', table_name='daily_events')
    op.drop_index('ix_daily_events_squad_id', table_name='daily_events')
    op.drop_table('daily_events')
    op.drop_index('ix_squad_member_user_id', table_name='squad_member')
    op.drop_index('ix_squad_member_squad_id', table_name='squad_member')
    op.drop_table('squad_member')
    op.drop_table('squad')
    op.drop_table('user')
