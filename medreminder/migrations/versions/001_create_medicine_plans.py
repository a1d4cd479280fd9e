"""Create medicine_plans table

Revision ID: 001_create_medicine_plans
Revises:
Create Date: 2025-06-02 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_medicine_plans'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Databases created by earlier app builds already have the table
    inspector = sa.inspect(op.get_bind())
    if 'medicine_plans' in inspector.get_table_names():
        return

    op.create_table(
        'medicine_plans',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('dosage', sa.String(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('foodTiming', sa.String(), nullable=False),
        sa.Column('notificationTime', sa.String(), nullable=False),
        sa.Column('notificationsEnabled', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_medicine_plans_active', 'medicine_plans', ['notificationsEnabled', 'duration'])


def downgrade():
    op.drop_index('ix_medicine_plans_active', table_name='medicine_plans')
    op.drop_table('medicine_plans')
