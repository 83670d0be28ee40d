"""Order message model."""
import enum
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class MessageRole(str, enum.Enum):
    """Who wrote an order message."""
    CUSTOMER = 'CUSTOMER'
    STAFF = 'STAFF'


class OrderMessage(Base):
    """
    Message thread entry on an order.

    Rows are never removed: edits and deletions only set the flag and timestamp.
    """

    __tablename__ = 'order_message'

    id = Column(BigId, primary_key=True, autoincrement=True)
    order_id = Column(BigId, ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(BigId, ForeignKey('app_user.id'), nullable=False)
    role = Column(String(20), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime, nullable=True)
    deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)

    order = relationship('Order', back_populates='messages')
    user = relationship('AppUser')

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'user_id': self.user_id,
            'role': self.role,
            'text': None if self.deleted else self.text,
            'created_at': self.created_at.isoformat(),
            'edited': self.edited,
            'edited_at': self.edited_at.isoformat() if self.edited_at else None,
            'deleted': self.deleted,
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
        }

    def __repr__(self):
        return f"<OrderMessage(id={self.id}, order_id={self.order_id}, role='{self.role}')>"
