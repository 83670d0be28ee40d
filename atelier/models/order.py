"""Order model and status pipeline enum."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class OrderStatus(enum.Enum):
    """Order status pipeline, in manufacturing/delivery order."""
    REQUESTED = "REQUESTED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAYMENT_APPROVED = "PAYMENT_APPROVED"
    APPROVED = "APPROVED"
    IN_PRODUCTION = "IN_PRODUCTION"
    IN_SHIPPING = "IN_SHIPPING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    REJECTED = "REJECTED"


STATUS_LABELS = {
    OrderStatus.REQUESTED: 'Pedido solicitado',
    OrderStatus.AWAITING_PAYMENT: 'Esperando pago',
    OrderStatus.PAYMENT_APPROVED: 'Pago aprobado',
    OrderStatus.APPROVED: 'Aprobado',
    OrderStatus.IN_PRODUCTION: 'En producción',
    OrderStatus.IN_SHIPPING: 'En expedición',
    OrderStatus.IN_TRANSIT: 'En transporte',
    OrderStatus.DELIVERED: 'Entregado',
    OrderStatus.REJECTED: 'Rechazado',
}


class Order(Base):
    """
    Confirmed order (pedido).

    Immutable snapshot of the cart at commit time. After creation only status,
    updated_at and the two last-seen stamps change.
    """

    __tablename__ = 'customer_order'

    id = Column(BigId, primary_key=True, autoincrement=True)
    code = Column(String(40), nullable=False, unique=True, index=True)
    customer_id = Column(BigId, ForeignKey('app_user.id'), nullable=False, index=True)
    status = Column(Enum(OrderStatus, name='order_status'), nullable=False, default=OrderStatus.REQUESTED)
    total = Column(Numeric(12, 2), nullable=False)

    # Idempotency key to prevent duplicate orders on double-submit
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    # Set explicitly on creation and status changes; view stamps must not touch it
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    last_seen_by_customer = Column(DateTime, nullable=True)
    last_seen_by_staff = Column(DateTime, nullable=True)

    # Relationships
    customer = relationship('AppUser')
    lines = relationship('OrderLine', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderLine.id')
    history = relationship('OrderStatusHistory', back_populates='order', cascade='all, delete-orphan',
                           order_by='OrderStatusHistory.id')
    messages = relationship('OrderMessage', back_populates='order', cascade='all, delete-orphan',
                            order_by='OrderMessage.id')

    @property
    def status_label(self):
        return STATUS_LABELS[self.status]

    def __repr__(self):
        return f"<Order(id={self.id}, code='{self.code}', status={self.status.value}, total={self.total})>"
