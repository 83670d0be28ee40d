from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

FABRIC_GRADES = ('G1000', 'G2000', 'G3000', 'G4000', 'G5000', 'G6000', 'G7000', 'LEATHER')
ORDER_STATUSES = (
    'REQUESTED', 'AWAITING_PAYMENT', 'PAYMENT_APPROVED', 'APPROVED', 'IN_PRODUCTION',
    'IN_SHIPPING', 'IN_TRANSIT', 'DELIVERED', 'REJECTED',
)
AUDIT_ACTIONS = (
    'ORDER_CREATED', 'ORDER_STATUS_CHANGED', 'ORDER_MESSAGE_EDITED', 'ORDER_MESSAGE_DELETED',
    'SITE_CONFIG_CHANGED',
)


def _price(name):
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default='0')


def upgrade():
    order_status = sa.Enum(*ORDER_STATUSES, name='order_status')

    op.create_table(
        'app_user',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(200)),
        sa.Column('role', sa.String(20), nullable=False, server_default='CUSTOMER'),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False)
    )
    op.create_table(
        'product',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False)
    )
    op.create_table(
        'fabric',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('grade', sa.Enum(*FABRIC_GRADES, name='fabric_grade'), nullable=False),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true())
    )
    op.create_table(
        'price_list',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('name', sa.String(120), nullable=False, unique=True),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False)
    )
    op.create_table(
        'price_matrix_row',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('product_id', sa.BigInteger, sa.ForeignKey('product.id', ondelete='CASCADE'), nullable=False),
        sa.Column('size_cm', sa.Integer, nullable=False),
        sa.Column('price_list_id', sa.BigInteger, sa.ForeignKey('price_list.id')),
        _price('price_grade_1000'),
        _price('price_grade_2000'),
        _price('price_grade_3000'),
        _price('price_grade_4000'),
        _price('price_grade_5000'),
        _price('price_grade_6000'),
        _price('price_grade_7000'),
        _price('price_leather'),
        sa.Column('width_cm', sa.Integer),
        sa.Column('depth_cm', sa.Integer),
        sa.Column('height_cm', sa.Integer),
        sa.Column('fabric_yardage_m', sa.Numeric(6, 2)),
        sa.Column('leather_yardage_m', sa.Numeric(6, 2)),
        sa.Column('discount_percent', sa.Numeric(5, 2)),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.UniqueConstraint('product_id', 'size_cm', 'price_list_id', name='uq_price_row_product_size_list')
    )
    op.create_index('ix_price_matrix_row_product_id', 'price_matrix_row', ['product_id'])
    op.create_index('ix_price_matrix_row_price_list_id', 'price_matrix_row', ['price_list_id'])
    op.create_index(
        'uq_price_row_general_list', 'price_matrix_row', ['product_id', 'size_cm'], unique=True,
        postgresql_where=sa.text('price_list_id IS NULL'), sqlite_where=sa.text('price_list_id IS NULL')
    )
    op.create_table(
        'site_config',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('current_price_list_id', sa.BigInteger, sa.ForeignKey('price_list.id')),
        sa.Column('active_product_ids', sa.JSON, nullable=False),
        sa.Column('featured_discounts', sa.JSON, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False)
    )
    op.create_table(
        'express_stock',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('product_id', sa.BigInteger, sa.ForeignKey('product.id', ondelete='CASCADE'), nullable=False),
        sa.Column('size_cm', sa.Integer, nullable=False),
        sa.Column('fabric_id', sa.BigInteger, sa.ForeignKey('fabric.id'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.UniqueConstraint('product_id', 'size_cm', 'fabric_id', name='uq_express_stock_combo')
    )
    op.create_index('ix_express_stock_product_id', 'express_stock', ['product_id'])
    op.create_table(
        'coupon',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('code', sa.String(40), nullable=False, unique=True),
        sa.Column('description', sa.String(255)),
        sa.Column('discount_percent', sa.Numeric(5, 2)),
        sa.Column('discount_amount', sa.Numeric(12, 2)),
        sa.Column('minimum_value', sa.Numeric(12, 2)),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('starts_at', sa.DateTime),
        sa.Column('ends_at', sa.DateTime),
        sa.Column('usage_limit', sa.Integer),
        sa.Column('times_used', sa.Integer, nullable=False, server_default='0')
    )
    op.create_table(
        'cart',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('user_id', sa.BigInteger, sa.ForeignKey('app_user.id'), nullable=False, unique=True),
        sa.Column('coupon_code', sa.String(40)),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False)
    )
    op.create_table(
        'cart_line',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('cart_id', sa.BigInteger, sa.ForeignKey('cart.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.BigInteger, sa.ForeignKey('product.id'), nullable=False),
        sa.Column('size_cm', sa.Integer, nullable=False),
        sa.Column('fabric_id', sa.BigInteger, sa.ForeignKey('fabric.id'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('preview_unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_cart_line_quantity_positive')
    )
    op.create_index('ix_cart_line_cart_id', 'cart_line', ['cart_id'])
    op.create_table(
        'customer_order',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('code', sa.String(40), nullable=False),
        sa.Column('customer_id', sa.BigInteger, sa.ForeignKey('app_user.id'), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('idempotency_key', sa.String(64)),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.Column('last_seen_by_customer', sa.DateTime),
        sa.Column('last_seen_by_staff', sa.DateTime)
    )
    op.create_index('ix_customer_order_code', 'customer_order', ['code'], unique=True)
    op.create_index('ix_customer_order_customer_id', 'customer_order', ['customer_id'])
    op.create_index('ix_customer_order_idempotency_key', 'customer_order', ['idempotency_key'], unique=True)
    op.create_table(
        'order_line',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('order_id', sa.BigInteger, sa.ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.BigInteger, sa.ForeignKey('product.id'), nullable=False),
        sa.Column('size_cm', sa.Integer, nullable=False),
        sa.Column('fabric_id', sa.BigInteger, sa.ForeignKey('fabric.id'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False)
    )
    op.create_index('ix_order_line_order_id', 'order_line', ['order_id'])
    op.create_table(
        'order_status_history',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('order_id', sa.BigInteger, sa.ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.Enum(*ORDER_STATUSES, name='order_status', create_type=False), nullable=False),
        sa.Column('reason', sa.Text),
        sa.Column('user_id', sa.BigInteger, sa.ForeignKey('app_user.id')),
        sa.Column('created_at', sa.DateTime, nullable=False)
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])
    op.create_table(
        'order_message',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('order_id', sa.BigInteger, sa.ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.BigInteger, sa.ForeignKey('app_user.id'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('text', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('edited', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('edited_at', sa.DateTime),
        sa.Column('deleted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime)
    )
    op.create_index('ix_order_message_order_id', 'order_message', ['order_id'])
    op.create_table(
        'email_log',
        sa.Column('id', sa.BigInteger, primary_key=True),
        sa.Column('recipient', sa.String(500), nullable=False),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('template', sa.String(60), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('error', sa.Text),
        sa.Column('created_at', sa.DateTime, nullable=False)
    )
    op.create_index('ix_email_log_template', 'email_log', ['template'])
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.BigInteger, sa.ForeignKey('app_user.id')),
        sa.Column('action', sa.Enum(*AUDIT_ACTIONS, name='audit_action'), nullable=False),
        sa.Column('resource_type', sa.String(50)),
        sa.Column('resource_id', sa.Integer),
        sa.Column('details', sa.Text),
        sa.Column('ip_address', sa.String(45)),
        sa.Column('user_agent', sa.String(255)),
        sa.Column('created_at', sa.DateTime, nullable=False)
    )
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])


def downgrade():
    op.drop_table('audit_log')
    op.drop_table('email_log')
    op.drop_table('order_message')
    op.drop_table('order_status_history')
    op.drop_table('order_line')
    op.drop_table('customer_order')
    op.drop_table('cart_line')
    op.drop_table('cart')
    op.drop_table('coupon')
    op.drop_table('express_stock')
    op.drop_table('site_config')
    op.drop_table('price_matrix_row')
    op.drop_table('price_list')
    op.drop_table('fabric')
    op.drop_table('product')
    op.drop_table('app_user')
    sa.Enum(name='audit_action').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='order_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='fabric_grade').drop(op.get_bind(), checkfirst=True)
