"""
Initial migration - Create users and waste_reports tables

Revision ID: 001_initial
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create all tables."""

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(200)),
        sa.Column('enable_collector', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('city', sa.String(100)),
        sa.Column('state', sa.String(100)),
        sa.Column('country', sa.String(100)),
        sa.Column('reporter_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('collector_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('global_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Create waste_reports table
    op.create_table(
        'waste_reports',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('reporter_id', sa.String(64), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('collector_id', sa.String(64), sa.ForeignKey('users.id')),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('latitude', sa.Float()),
        sa.Column('longitude', sa.Float()),
        sa.Column('address', sa.Text()),
        sa.Column('city', sa.String(100)),
        sa.Column('state', sa.String(100)),
        sa.Column('country', sa.String(100)),
        sa.Column('waste_type', sa.String(50)),
        sa.Column('category', sa.String(50)),
        sa.Column('estimated_weight_kg', sa.Float(), nullable=False, server_default='0'),
        sa.Column('ai_classification', sa.JSON()),
        sa.Column('original_image_ref', sa.Text(), nullable=False),
        sa.Column('before_image_ref', sa.Text()),
        sa.Column('after_image_ref', sa.Text()),
        sa.Column('reported_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime()),
        sa.Column('collected_at', sa.DateTime()),
        sa.CheckConstraint(
            "status IN ('PENDING', 'IN_PROGRESS', 'COLLECTED')",
            name='ck_report_status',
        ),
        sa.CheckConstraint(
            "(collector_id IS NULL) = (status = 'PENDING')",
            name='ck_report_collector_assignment',
        ),
    )

    op.create_index('ix_waste_reports_reporter_id', 'waste_reports', ['reporter_id'])
    op.create_index('idx_report_status', 'waste_reports', ['status'])
    op.create_index('idx_report_collector_status', 'waste_reports', ['collector_id', 'status'])
    op.create_index('idx_report_reported_at', 'waste_reports', ['reported_at'])
    op.create_index('idx_report_city', 'waste_reports', ['city'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('waste_reports')
    op.drop_table('users')
