"""Models package - exports all SQLAlchemy models."""
# Identity
from atelier.models.app_user import AppUser, UserRole, STAFF_ROLES

# Catalog & pricing
from atelier.models.product import Product
from atelier.models.fabric import Fabric, FabricGrade
from atelier.models.price_list import PriceList, PriceMatrixRow
from atelier.models.site_config import SiteConfig, SITE_CONFIG_ID
from atelier.models.express_stock import ExpressStock

# Cart
from atelier.models.cart import Cart
from atelier.models.cart_line import CartLine
from atelier.models.coupon import Coupon

# Orders
from atelier.models.order import Order, OrderStatus, STATUS_LABELS
from atelier.models.order_line import OrderLine
from atelier.models.order_status_history import OrderStatusHistory
from atelier.models.order_message import OrderMessage, MessageRole

# Operations
from atelier.models.email_log import EmailLog
from atelier.models.audit_log import AuditLog, AuditAction

__all__ = [
    'AppUser', 'UserRole', 'STAFF_ROLES',
    'Product', 'Fabric', 'FabricGrade', 'PriceList', 'PriceMatrixRow',
    'SiteConfig', 'SITE_CONFIG_ID', 'ExpressStock',
    'Cart', 'CartLine', 'Coupon',
    'Order', 'OrderStatus', 'STATUS_LABELS', 'OrderLine', 'OrderStatusHistory',
    'OrderMessage', 'MessageRole',
    'EmailLog', 'AuditLog', 'AuditAction',
]
