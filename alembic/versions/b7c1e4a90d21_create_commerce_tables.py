"""create_commerce_tables

Revision ID: b7c1e4a90d21
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = 'b7c1e4a90d21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


product_status = ENUM('draft', 'active', 'archived', name='store_product_status_enum', create_type=False)
stock_status = ENUM('in-stock', 'low-stock', 'out-of-stock', name='store_stock_status_enum', create_type=False)
cart_status = ENUM('active', 'converted', 'abandoned', 'expired', name='store_cart_status_enum', create_type=False)
discount_type = ENUM('percentage', 'flat', name='store_discount_type_enum', create_type=False)
coupon_status = ENUM('active', 'inactive', 'expired', name='store_coupon_status_enum', create_type=False)
coupon_visibility = ENUM('public', 'private', name='store_coupon_visibility_enum', create_type=False)
coupon_platform = ENUM('web', 'app', 'both', name='store_coupon_platform_enum', create_type=False)
audit_entity_type = ENUM('inventory', 'variant', 'coupon', name='store_audit_entity_type_enum', create_type=False)

ALL_ENUMS = (
    product_status,
    stock_status,
    cart_status,
    discount_type,
    coupon_status,
    coupon_visibility,
    coupon_platform,
    audit_entity_type,
)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema - Add catalog, store inventory, cart, coupon and audit tables."""
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'store_products',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('brand', sa.String(100), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('image_url', sa.String(512), nullable=True),
        sa.Column('status', product_status, server_default='active', nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'store_product_variants',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('attributes', JSONB(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('mrp', sa.Numeric(12, 2), nullable=True),
        sa.Column('image_url', sa.String(512), nullable=True),
        sa.Column('stock_quantity', sa.Integer(), server_default='0', nullable=False),
        sa.Column('stock_status', stock_status, server_default='out-of-stock', nullable=False),
        sa.Column('has_stock', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        *_timestamps(),
        sa.CheckConstraint('stock_quantity >= 0', name='variant_stock_non_negative'),
        sa.CheckConstraint(
            '(has_stock AND stock_quantity > 0) OR (NOT has_stock AND stock_quantity = 0)',
            name='variant_has_stock_derived',
        ),
        sa.CheckConstraint(
            "(stock_quantity = 0 AND stock_status = 'out-of-stock')"
            " OR (stock_quantity BETWEEN 1 AND 5 AND stock_status = 'low-stock')"
            " OR (stock_quantity > 5 AND stock_status = 'in-stock')",
            name='variant_stock_status_derived',
        ),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
    )
    op.create_index('ix_store_product_variants_product_sku', 'store_product_variants', ['product_id', 'sku'])

    op.create_table(
        'stores',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('owner_auth_id', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )
    op.create_index('ix_stores_owner_auth_id', 'stores', ['owner_auth_id'])

    op.create_table(
        'store_inventory',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('store_id', UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('variant_sku', sa.String(100), nullable=False),
        sa.Column('stock_qty', sa.Integer(), server_default='0', nullable=False),
        sa.Column('reserved_qty', sa.Integer(), server_default='0', nullable=False),
        sa.Column('stock_status', stock_status, server_default='out-of-stock', nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('store_sku', sa.String(100), nullable=True),
        sa.Column('lead_time_days', sa.Integer(), server_default='2', nullable=False),
        sa.Column('fulfillment_options', JSONB(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('stock_qty >= 0', name='inventory_stock_non_negative'),
        sa.CheckConstraint('reserved_qty >= 0', name='inventory_reserved_non_negative'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'product_id', 'variant_sku', name='uq_store_inventory_variant'),
    )
    op.create_index(
        'ix_store_inventory_product_sku_active',
        'store_inventory',
        ['product_id', 'variant_sku', 'is_active'],
    )
    op.create_index('ix_store_inventory_store_updated', 'store_inventory', ['store_id', 'updated_at'])

    op.create_table(
        'store_carts',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('member_auth_id', sa.String(255), nullable=True),
        sa.Column('session_id', sa.String(255), nullable=True),
        sa.Column('status', cart_status, server_default='active', nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'member_auth_id IS NOT NULL OR session_id IS NOT NULL', name='cart_one_owner'
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_carts_member_auth_id', 'store_carts', ['member_auth_id'])
    op.create_index('ix_store_carts_session_id', 'store_carts', ['session_id'])
    op.create_index('ix_store_carts_member_auth_id_status', 'store_carts', ['member_auth_id', 'status'])

    op.create_table(
        'store_cart_items',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('cart_id', UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=True),
        sa.Column('variant_sku', sa.String(100), nullable=True),
        sa.Column('variant_attributes', JSONB(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_snapshot', sa.Numeric(12, 2), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('image_url', sa.String(512), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('quantity > 0', name='positive_quantity'),
        sa.CheckConstraint('price_snapshot >= 0', name='non_negative_price_snapshot'),
        sa.ForeignKeyConstraint(['cart_id'], ['store_carts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'store_coupons',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('code', sa.String(16), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', discount_type, nullable=False),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('min_order_value', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('max_discount', sa.Numeric(12, 2), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_usage', sa.Integer(), nullable=True),
        sa.Column('used_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('status', coupon_status, server_default='active', nullable=False),
        sa.Column('visibility', coupon_visibility, server_default='public', nullable=False),
        sa.Column('platform', coupon_platform, server_default='both', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('discount_value >= 0', name='coupon_value_non_negative'),
        sa.CheckConstraint(
            "discount_type <> 'percentage' OR discount_value <= 100",
            name='coupon_percentage_max_100',
        ),
        sa.CheckConstraint('start_date < expiry_date', name='coupon_valid_window'),
        sa.CheckConstraint('used_count >= 0', name='coupon_used_non_negative'),
        sa.CheckConstraint(
            'total_usage IS NULL OR used_count <= total_usage',
            name='coupon_usage_within_limit',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_coupons_code', 'store_coupons', ['code'], unique=True)

    op.create_table(
        'store_audit_logs',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('entity_type', audit_entity_type, nullable=False),
        sa.Column('entity_id', UUID(as_uuid=True), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('old_value', JSONB(), nullable=True),
        sa.Column('new_value', JSONB(), nullable=True),
        sa.Column('performed_by', sa.String(255), nullable=False),
        sa.Column('performed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_audit_logs_entity', 'store_audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_store_audit_logs_performed_at', 'store_audit_logs', ['performed_at'])


def downgrade() -> None:
    """Downgrade schema - Drop commerce tables."""
    op.drop_table('store_audit_logs')
    op.drop_table('store_coupons')
    op.drop_table('store_cart_items')
    op.drop_table('store_carts')
    op.drop_table('store_inventory')
    op.drop_table('stores')
    op.drop_table('store_product_variants')
    op.drop_table('store_products')

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
