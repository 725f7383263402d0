"""initial_bazaar_schema

Revision ID: 001_initial_bazaar
Revises:
Create Date: 2026-10-19

Creates the cart, catalog, discount, voucher and order tables.
Orders are split per seller; orders from one checkout share transaction_id.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_initial_bazaar'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), primary_key=True)


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False)]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False)
        )
    return columns


def upgrade() -> None:
    op.create_table(
        'buyers',
        _uuid_pk('buyer_id'),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('bazcoins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.CheckConstraint('bazcoins >= 0', name='chk_buyer_bazcoins_positive'),
    )
    op.create_index('idx_buyers_email', 'buyers', ['email'])

    op.create_table(
        'sellers',
        _uuid_pk('seller_id'),
        sa.Column('store_name', sa.String(255), nullable=False),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *_timestamps(),
    )

    op.create_table(
        'addresses',
        _uuid_pk('address_id'),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('buyers.buyer_id', ondelete='CASCADE'), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('street', sa.String(255), nullable=False),
        sa.Column('barangay', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('province', sa.String(100), nullable=False),
        sa.Column('postal_code', sa.String(20), nullable=False),
        sa.Column('phone', sa.String(30), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('idx_addresses_buyer', 'addresses', ['buyer_id'])

    op.create_table(
        'products',
        _uuid_pk('product_id'),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('sellers.seller_id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_free_shipping', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.CheckConstraint('stock >= 0', name='chk_product_stock_positive'),
        sa.CheckConstraint('price >= 0', name='chk_product_price_positive'),
    )
    op.create_index('idx_products_seller', 'products', ['seller_id'])

    op.create_table(
        'product_variants',
        _uuid_pk('variant_id'),
        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.product_id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('image_url', sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('stock >= 0', name='chk_variant_stock_positive'),
    )
    op.create_index('idx_variants_product', 'product_variants', ['product_id'])

    op.create_table(
        'registry_items',
        _uuid_pk('registry_item_id'),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('buyers.buyer_id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.product_id'), nullable=False),
        sa.Column('variant_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('product_variants.variant_id'), nullable=True),
        sa.Column('requested_qty', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('received_qty', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint('requested_qty > 0', name='chk_registry_requested_positive'),
        sa.CheckConstraint('received_qty >= 0', name='chk_registry_received_positive'),
    )

    op.create_table(
        'carts',
        _uuid_pk('cart_id'),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('buyers.buyer_id', ondelete='CASCADE'), nullable=False),
        *_timestamps(),
    )
    op.create_index('uq_carts_buyer', 'carts', ['buyer_id'], unique=True)

    op.create_table(
        'cart_items',
        _uuid_pk('item_id'),
        sa.Column('cart_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('carts.cart_id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.product_id'), nullable=False),
        sa.Column('variant_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('product_variants.variant_id', ondelete='SET NULL'), nullable=True),
        sa.Column('registry_item_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('registry_items.registry_item_id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(updated=False),
        sa.CheckConstraint('quantity > 0', name='chk_cart_item_quantity_positive'),
    )
    op.create_index('idx_cart_items_cart_created', 'cart_items', ['cart_id', 'created_at'])
    op.create_index(
        'idx_cart_items_cart_product', 'cart_items', ['cart_id', 'product_id', 'variant_id']
    )

    op.create_table(
        'discount_campaigns',
        _uuid_pk('campaign_id'),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('sellers.seller_id'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('discount_type', sa.String(20), nullable=False),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('max_discount_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('starts_at', sa.DateTime(), nullable=False),
        sa.Column('ends_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('ends_at > starts_at', name='chk_discount_campaign_time_range'),
        sa.CheckConstraint(
            "discount_type IN ('percentage', 'fixed_amount')", name='chk_discount_campaign_type'
        ),
        sa.CheckConstraint('discount_value >= 0', name='chk_discount_campaign_value'),
    )
    op.create_index(
        'idx_discount_campaigns_window',
        'discount_campaigns',
        ['is_active', 'starts_at', 'ends_at'],
    )

    op.create_table(
        'product_discounts',
        sa.Column('campaign_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('discount_campaigns.campaign_id', ondelete='CASCADE'),
                  primary_key=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.product_id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_index('idx_product_discounts_product', 'product_discounts', ['product_id'])

    op.create_table(
        'vouchers',
        _uuid_pk('voucher_id'),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False, server_default=''),
        sa.Column('voucher_type', sa.String(20), nullable=False),
        sa.Column('value', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('min_order_value', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('max_discount', sa.Numeric(10, 2), nullable=True),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('sellers.seller_id'), nullable=True),
        sa.Column('valid_from', sa.DateTime(), nullable=False),
        sa.Column('valid_to', sa.DateTime(), nullable=False),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('per_buyer_limit', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint(
            "voucher_type IN ('percentage', 'fixed', 'shipping')", name='chk_voucher_type'
        ),
        sa.CheckConstraint('used_count >= 0', name='chk_voucher_used_count'),
    )
    op.create_index('idx_vouchers_code', 'vouchers', ['code'])

    op.create_table(
        'orders',
        _uuid_pk('order_id'),
        sa.Column('order_number', sa.String(32), nullable=False, unique=True),
        sa.Column('transaction_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('buyers.buyer_id'), nullable=False),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('sellers.seller_id'), nullable=False),
        sa.Column('address_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('addresses.address_id'), nullable=True),
        sa.Column('shipping_address', postgresql.JSONB(), nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('payment_status', sa.String(20), nullable=False,
                  server_default='pending_payment'),
        sa.Column('status', sa.String(20), nullable=False, server_default='placed'),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('campaign_discount', sa.Numeric(12, 2), nullable=False),
        sa.Column('voucher_discount', sa.Numeric(12, 2), nullable=False),
        sa.Column('shipping_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax', sa.Numeric(12, 2), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('bazcoins_redeemed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('bazcoins_earned', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint('total >= 0', name='chk_order_total_positive'),
    )
    op.create_index('idx_orders_buyer_created', 'orders', ['buyer_id', 'created_at'])
    op.create_index('idx_orders_transaction', 'orders', ['transaction_id'])
    op.create_index('idx_orders_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        _uuid_pk('order_item_id'),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.order_id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.product_id'), nullable=False),
        sa.Column('variant_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('product_variants.variant_id'), nullable=True),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_per_unit', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.CheckConstraint('quantity > 0', name='chk_order_item_quantity_positive'),
    )

    op.create_table(
        'order_discounts',
        _uuid_pk('order_discount_id'),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.order_id', ondelete='CASCADE'), nullable=False),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('buyers.buyer_id'), nullable=False),
        sa.Column('campaign_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('discount_campaigns.campaign_id'), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        'voucher_redemptions',
        _uuid_pk('redemption_id'),
        sa.Column('voucher_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('vouchers.voucher_id'), nullable=False),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('buyers.buyer_id'), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.order_id', ondelete='CASCADE'), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index(
        'idx_voucher_redemptions_voucher_buyer',
        'voucher_redemptions',
        ['voucher_id', 'buyer_id'],
    )


def downgrade() -> None:
    for table in (
        'voucher_redemptions',
        'order_discounts',
        'order_items',
        'orders',
        'vouchers',
        'product_discounts',
        'discount_campaigns',
        'cart_items',
        'carts',
        'registry_items',
        'product_variants',
        'products',
        'addresses',
        'sellers',
        'buyers',
    ):
        op.drop_table(table)
