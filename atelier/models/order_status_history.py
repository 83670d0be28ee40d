"""Order status history model (append-only)."""
from sqlalchemy import Column, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.models.order import OrderStatus
from atelier.utils.timeutils import utcnow


class OrderStatusHistory(Base):
    """One row per status transition. Never updated or deleted."""

    __tablename__ = 'order_status_history'

    id = Column(BigId, primary_key=True, autoincrement=True)
    order_id = Column(BigId, ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(Enum(OrderStatus, name='order_status'), nullable=False)
    reason = Column(Text, nullable=True)
    user_id = Column(BigId, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    order = relationship('Order', back_populates='history')
    user = relationship('AppUser')

    def __repr__(self):
        return f"<OrderStatusHistory(order_id={self.order_id}, status={self.status.value}, at={self.created_at})>"
