"""Create profiles, metrics catalog, measurements and health analyses tables

Revision ID: 3f1c9a7d2b60
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b60'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table('profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('sex', sa.String(length=16), nullable=True, comment='male or female'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('metrics_catalog',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('display_name', sa.String(length=200), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('validation_min', sa.Float(), nullable=True, comment='Inclusive plausibility lower bound'),
        sa.Column('validation_max', sa.Float(), nullable=True, comment='Inclusive plausibility upper bound'),
        sa.Column('healthy_min_male', sa.Float(), nullable=True),
        sa.Column('healthy_max_male', sa.Float(), nullable=True),
        sa.Column('healthy_min_female', sa.Float(), nullable=True),
        sa.Column('healthy_max_female', sa.Float(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )

    op.create_table('measurements',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('metric', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('measured_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False, comment='ocr or manual'),
        sa.Column('confidence', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['metric'], ['metrics_catalog.key'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_measurements_user_id', 'measurements', ['user_id'])
    op.create_index(
        'ix_measurements_user_metric_measured', 'measurements', ['user_id', 'metric', 'measured_at']
    )

    op.create_table('health_analyses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, comment='completed or failed'),
        sa.Column('user_age', sa.Integer(), nullable=True),
        sa.Column('user_sex', sa.String(length=16), nullable=True),
        sa.Column('measurements_snapshot', sa.Text(), nullable=False),
        sa.Column('metrics_count', sa.Integer(), nullable=False),
        sa.Column('date_range_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('date_range_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ai_provider', sa.String(length=32), nullable=False),
        sa.Column('model_version', sa.String(length=100), nullable=False),
        sa.Column('prompt_tokens', sa.Integer(), nullable=False),
        sa.Column('completion_tokens', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Float(), nullable=False),
        sa.Column('full_response', _json(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('qc_issues', _json(), nullable=True),
        sa.Column('normalization_notes', _json(), nullable=True),
        sa.Column('derived_metrics', _json(), nullable=True),
        sa.Column('current_state', _json(), nullable=True),
        sa.Column('trends', _json(), nullable=True),
        sa.Column('correlations', _json(), nullable=True),
        sa.Column('paradoxes', _json(), nullable=True),
        sa.Column('hypotheses', _json(), nullable=True),
        sa.Column('risk_assessment', _json(), nullable=True),
        sa.Column('recommendations_next_steps', _json(), nullable=True),
        sa.Column('uncertainties', _json(), nullable=True),
        sa.Column('data_gaps', _json(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_health_analyses_user_status_created',
        'health_analyses',
        ['user_id', 'status', 'created_at']
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_health_analyses_user_status_created', 'health_analyses')
    op.drop_table('health_analyses')

    op.drop_index('ix_measurements_user_metric_measured', 'measurements')
    op.drop_index('ix_measurements_user_id', 'measurements')
    op.drop_table('measurements')

    op.drop_table('metrics_catalog')
    op.drop_table('profiles')
