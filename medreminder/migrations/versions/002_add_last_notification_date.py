"""Add lastNotificationDate rollover marker to medicine_plans

Revision ID: 002_add_last_notification_date
Revises: 001_create_medicine_plans
Create Date: 2025-06-20 18:30:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_add_last_notification_date'
down_revision = '001_create_medicine_plans'
branch_labels = None
depends_on = None


def upgrade():
    inspector = sa.inspect(op.get_bind())
    columns = {c['name'] for c in inspector.get_columns('medicine_plans')}
    if 'lastNotificationDate' not in columns:
        # Existing plans start without a marker, so the next rollover picks them up
        op.add_column('medicine_plans', sa.Column('lastNotificationDate', sa.Date(), nullable=True))

    # Legacy installs never had the active-plan index
    indexes = {i['name'] for i in inspector.get_indexes('medicine_plans')}
    if 'ix_medicine_plans_active' not in indexes:
        op.create_index('ix_medicine_plans_active', 'medicine_plans', ['notificationsEnabled', 'duration'])


def downgrade():
    with op.batch_alter_table('medicine_plans') as batch_op:
        batch_op.drop_column('lastNotificationDate')
