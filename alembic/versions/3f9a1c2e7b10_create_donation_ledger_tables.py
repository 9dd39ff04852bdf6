"""create_donation_ledger_tables

Revision ID: 3f9a1c2e7b10
Revises:
Create Date: 2026-10-19 10:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2e7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Attribution lookup tables
    op.create_table(
        'sections',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'districts',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['section_id'], ['sections.id'], name='fk_districts_section_id'),
    )
    op.create_table(
        'places',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('district_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['district_id'], ['districts.id'], name='fk_places_district_id'),
    )
    op.create_index('idx_places_district_id', 'places', ['district_id'])
    op.create_table(
        'units',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # Batches carry the running total of SUCCESS donations
    op.create_table(
        'batches',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=2), server_default=sa.text('0'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_batches_name', 'batches', ['name'], unique=True)
    op.create_index('idx_batches_slug', 'batches', ['slug'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=True),
        sa.Column('role', sa.Enum('SUPERADMIN', 'STAFF', 'VIEWER', 'COORDINATOR', name='userrole'), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['batch_id'], ['batches.id'], name='fk_users_batch_id'),
    )
    op.create_index('idx_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'donations',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=True),
        sa.Column('mobile', sa.String(length=20), nullable=True),
        sa.Column('hide_name', sa.Boolean(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=True),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('place_id', sa.Integer(), nullable=True),
        sa.Column('district_id', sa.Integer(), nullable=True),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.Column('payment_method', sa.Enum('UPI', 'QR', 'RAZORPAY', 'CASH', name='paymentmethod'), nullable=False),
        sa.Column('payment_status', sa.Enum('PENDING', 'SUCCESS', 'FAILED', name='paymentstatus'), nullable=False),
        sa.Column('external_order_id', sa.String(length=100), nullable=True),
        sa.Column('external_payment_id', sa.String(length=100), nullable=True),
        sa.Column('collected_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['batch_id'], ['batches.id'], name='fk_donations_batch_id'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], name='fk_donations_unit_id'),
        sa.ForeignKeyConstraint(['place_id'], ['places.id'], name='fk_donations_place_id'),
        sa.ForeignKeyConstraint(['district_id'], ['districts.id'], name='fk_donations_district_id'),
        sa.ForeignKeyConstraint(['section_id'], ['sections.id'], name='fk_donations_section_id'),
        sa.ForeignKeyConstraint(['collected_by_id'], ['users.id'], name='fk_donations_collected_by_id'),
    )
    # Unique gateway references: one donation per order and per captured payment
    op.create_index('idx_donations_external_order_id', 'donations', ['external_order_id'], unique=True)
    op.create_index('idx_donations_external_payment_id', 'donations', ['external_payment_id'], unique=True)
    op.create_index('idx_donations_status_created', 'donations', ['payment_status', 'created_at'])
    op.create_index('idx_donations_batch_id', 'donations', ['batch_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_donations_batch_id', table_name='donations')
    op.drop_index('idx_donations_status_created', table_name='donations')
    op.drop_index('idx_donations_external_payment_id', table_name='donations')
    op.drop_index('idx_donations_external_order_id', table_name='donations')
    op.drop_table('donations')

    op.drop_index('idx_users_username', table_name='users')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_table('users')

    op.drop_index('idx_batches_slug', table_name='batches')
    op.drop_index('idx_batches_name', table_name='batches')
    op.drop_table('batches')

    op.drop_table('units')
    op.drop_index('idx_places_district_id', table_name='places')
    op.drop_table('places')
    op.drop_table('districts')
    op.drop_table('sections')
