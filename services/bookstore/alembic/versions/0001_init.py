from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='customer'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )
    op.create_table(
        'items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(300), nullable=False),
        sa.Column('author', sa.String(200), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('price_cents', sa.Integer, nullable=False),
        sa.Column('sale_price_cents', sa.Integer, nullable=True),
        sa.Column('sale_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('on_sale', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('stock', sa.Integer, nullable=False, server_default='0'),
        sa.Column('img_url', sa.String(500), nullable=True),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )
    op.create_table(
        'carts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False, unique=True, index=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )
    op.create_table(
        'cart_items',
        sa.Column('cart_id', sa.Integer, sa.ForeignKey('carts.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('items.id'), primary_key=True),
        sa.Column('qty', sa.Integer, nullable=False, server_default='1')
    )
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False, index=True),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('subtotal_cents', sa.Integer, nullable=False, server_default='0'),
        sa.Column('discount_code', sa.String(50), nullable=True),
        sa.Column('discount_pct', sa.Integer, nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('items.id'), nullable=False),
        sa.Column('qty', sa.Integer, nullable=False),
        sa.Column('unit_price_cents', sa.Integer, nullable=False, server_default='0')
    )
    op.create_table(
        'order_fulfillments',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('items.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending', index=True),
        sa.Column('shipped_qty', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('fulfilled_by', sa.String(100), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime, nullable=True),
        sa.Column('shipped_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'shipped', 'delivered', 'cancelled')",
            name='ck_order_fulfillments_status'
        )
    )
    op.create_table(
        'discounts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('pct_off', sa.Integer, nullable=False),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('max_uses', sa.Integer, nullable=True),
        sa.Column('used_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime, nullable=True)
    )

def downgrade():
    op.drop_table('discounts')
    op.drop_table('order_fulfillments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('cart_items')
    op.drop_table('carts')
    op.drop_table('items')
    op.drop_table('profiles')
