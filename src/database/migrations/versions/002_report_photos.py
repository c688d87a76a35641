"""
Store report photos in the database

Revision ID: 002_report_photos
Revises: 001_initial
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = '002_report_photos'
down_revision = '001_initial'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create report_photos table."""
    op.create_table(
        'report_photos',
        sa.Column('key', sa.String(255), primary_key=True),
        sa.Column('data', sa.LargeBinary(), nullable=False),
        sa.Column('mime_type', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop report_photos table."""
    op.drop_table('report_photos')
