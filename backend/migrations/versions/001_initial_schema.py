"""
Alembic migration: initial doorshop schema.

Creates users, the three catalogs (doors, door accessories, mouldings),
baskets with versioned basket lines, and orders. Enum columns are stored as
strings holding the enum member name.

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment='Timestamp when record was last updated',
        ),
    ]


def _id() -> sa.Column:
    return sa.Column(
        'id',
        sa.Uuid(),
        primary_key=True,
        nullable=False,
        comment='Unique identifier for the record',
    )


def upgrade() -> None:
    """
    Create every table of the initial schema.
    """
    op.create_table(
        'users',
        _id(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'doors',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('final_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('image_urls', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column(
            'seller_id',
            sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='SET NULL'),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint('price >= 0', name='ck_doors_price_non_negative'),
    )
    op.create_index('ix_doors_name', 'doors', ['name'])

    op.create_table(
        'door_accessories',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('material', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('image_urls', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('price >= 0', name='ck_door_accessories_price_non_negative'),
    )

    op.create_table(
        'mouldings',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('article', sa.String(length=50), nullable=True),
        sa.Column('size', sa.String(length=100), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('image_urls', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('price >= 0', name='ck_mouldings_price_non_negative'),
    )

    op.create_table(
        'baskets',
        _id(),
        sa.Column(
            'user_id',
            sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
            comment='Owning user',
        ),
        *_timestamps(),
    )

    op.create_table(
        'basket_lines',
        _id(),
        sa.Column(
            'basket_id',
            sa.Uuid(),
            sa.ForeignKey('baskets.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('item_kind', sa.String(length=20), nullable=False),
        sa.Column('item_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column(
            'version',
            sa.Integer(),
            nullable=False,
            server_default='1',
            comment='Optimistic concurrency counter',
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            'basket_id', 'item_kind', 'item_id', name='uq_basket_lines_basket_item'
        ),
        sa.CheckConstraint('quantity >= 1', name='ck_basket_lines_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_basket_lines_price_non_negative'),
    )
    op.create_index('ix_basket_lines_basket_id', 'basket_lines', ['basket_id'])

    op.create_table(
        'orders',
        _id(),
        sa.Column(
            'user_id',
            sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('item_kind', sa.String(length=20), nullable=False),
        sa.Column('item_id', sa.Uuid(), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('order_type', sa.String(length=20), nullable=False),
        sa.Column('customer_name', sa.String(length=100), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('delivery_address', sa.String(length=255), nullable=False),
        sa.Column('preferred_delivery_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('installation_notes', sa.Text(), nullable=True),
        sa.Column('delivery_notes', sa.Text(), nullable=True),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            comment='Current order status',
        ),
        sa.Column('status_changed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 1', name='ck_orders_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_orders_price_non_negative'),
    )
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])


def downgrade() -> None:
    """
    Drop every table of the initial schema.
    """
    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_basket_lines_basket_id', table_name='basket_lines')
    op.drop_table('basket_lines')
    op.drop_table('baskets')
    op.drop_table('mouldings')
    op.drop_table('door_accessories')
    op.drop_index('ix_doors_name', table_name='doors')
    op.drop_table('doors')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
