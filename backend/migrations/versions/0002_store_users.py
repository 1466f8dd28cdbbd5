"""store user roster

Revision ID: 0002_store_users
Revises: 0001_initial_schema
Create Date: 2026-10-19 12:00:00.000000

Adds store_users: per-store staff membership and role.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_store_users'
down_revision = '0001_initial_schema'
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # store_users: roster of staff members and their role in each store
    # ============================================================================
    op.create_table(
        'store_users',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('added_by', sa.String(length=255), nullable=True),
        sa.Column('added_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('is_email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id')
    )
    op.create_index('ix_store_users_store_email', 'store_users', ['store_id', 'email'])


def downgrade():
    op.drop_index('ix_store_users_store_email', table_name='store_users')
    op.drop_table('store_users')
