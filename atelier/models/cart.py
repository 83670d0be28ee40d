"""Cart model for persistent shopping carts."""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class Cart(Base):
    """
    Persistent cart, one per user (enforced by UNIQUE constraint).

    The row survives checkout; only its lines are deleted.
    """

    __tablename__ = 'cart'

    id = Column(BigId, primary_key=True, autoincrement=True)
    user_id = Column(BigId, ForeignKey('app_user.id'), nullable=False, unique=True)
    coupon_code = Column(String(40), nullable=True)  # by value, not FK

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    user = relationship('AppUser')
    lines = relationship('CartLine', back_populates='cart', cascade='all, delete-orphan',
                         order_by='CartLine.id')

    def __repr__(self):
        return f"<Cart(id={self.id}, user_id={self.user_id})>"
