"""Initial schema - products, platform connections and listings

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=False), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=False), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column('sku', sa.String(), nullable=False, unique=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('short_description', sa.String()),
        sa.Column('condition', sa.String()),
        sa.Column('listing_type', sa.String(), nullable=False, server_default='BUY_NOW'),
        sa.Column('price', sa.Numeric(12, 2)),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('metal_type', sa.String()),
        sa.Column('metal_weight', sa.Numeric(10, 4)),
        sa.Column('metal_purity', sa.Numeric(6, 4)),
        sa.Column('year', sa.Integer()),
        sa.Column('mint', sa.String()),
        sa.Column('grade', sa.String()),
        sa.Column('certification', sa.String()),
        sa.Column('cert_number', sa.String()),
        sa.Column('population', sa.Integer()),
        sa.Column('status', sa.String(), nullable=False, server_default='DRAFT'),
        sa.Column('featured', sa.Boolean(), server_default=sa.false()),
    )
    op.create_index('ix_products_status', 'products', ['status'])

    op.create_table(
        'product_images',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('alt', sa.String()),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_primary', sa.Boolean(), server_default=sa.false()),
    )
    op.create_index('ix_product_images_product_id', 'product_images', ['product_id'])

    op.create_table(
        'auctions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False, unique=True),
        sa.Column('start_price', sa.Numeric(12, 2)),
        sa.Column('reserve_price', sa.Numeric(12, 2)),
        sa.Column('buy_now_price', sa.Numeric(12, 2)),
        sa.Column('final_price', sa.Numeric(12, 2)),
        sa.Column('status', sa.String(), nullable=False, server_default='SCHEDULED'),
    )

    op.create_table(
        'platform_connections',
        sa.Column('id', sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column('platform', sa.String(), nullable=False, unique=True),
        sa.Column('access_token', sa.Text()),
        sa.Column('refresh_token', sa.Text()),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=False)),
        sa.Column('store_id', sa.String()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        'platform_listings',
        sa.Column('id', sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('connection_id', sa.Integer(), sa.ForeignKey('platform_connections.id'), nullable=False),
        sa.Column('platform', sa.String(), nullable=False),
        sa.Column('external_id', sa.String(), nullable=False),
        sa.Column('external_url', sa.String()),
        sa.Column('status', sa.String(), nullable=False, server_default='ACTIVE'),
        sa.Column('sale_amount', sa.Numeric(12, 2)),
        sa.Column('failure_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text()),
        sa.Column('last_sync_at', sa.TIMESTAMP(timezone=False)),
        sa.Column('platform_data', postgresql.JSONB(astext_type=sa.Text())),
        sa.UniqueConstraint('product_id', 'platform', name='uq_platform_listings_product_platform'),
    )
    op.create_index('ix_platform_listings_product_id', 'platform_listings', ['product_id'])
    op.create_index('ix_platform_listings_connection_id', 'platform_listings', ['connection_id'])
    op.create_index('ix_platform_listings_platform', 'platform_listings', ['platform'])
    op.create_index('ix_platform_listings_external_id', 'platform_listings', ['external_id'])
    op.create_index('ix_platform_listings_status', 'platform_listings', ['status'])

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('platform', sa.String(length=50)),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text())),
        sa.Column('created_at', sa.TIMESTAMP(timezone=False), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    for column in ('action', 'entity_type', 'entity_id', 'platform', 'created_at'):
        op.create_index(f'ix_activity_log_{column}', 'activity_log', [column])


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('platform_listings')
    op.drop_table('platform_connections')
    op.drop_table('auctions')
    op.drop_table('product_images')
    op.drop_table('products')
