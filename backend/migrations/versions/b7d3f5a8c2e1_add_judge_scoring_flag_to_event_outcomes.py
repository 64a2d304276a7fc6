"""add judge_points_delta and scored_at to event_outcomes

Revision ID: b7d3f5a8c2e1
Revises: a1c4e7d2b9f0
Create Date: 2026-10-18 00:30:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7d3f5a8c2e1'
down_revision = 'a1c4e7d2b9f0'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('event_outcomes')}
    with op.batch_alter_table('event_outcomes') as batch_op:
        if 'judge_points_delta' not in cols:
            batch_op.add_column(sa.Column('judge_points_delta', sa.Integer(), nullable=True))
        if 'scored_at' not in cols:
            batch_op.add_column(sa.Column('scored_at', sa.DateTime(), nullable=True))


def downgrade():
    with op.batch_alter_table('event_outcomes') as batch_op:
        batch_op.drop_column('scored_at')
        batch_op.drop_column('judge_points_delta')
