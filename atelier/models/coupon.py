"""Coupon model."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime
from atelier.database import Base, BigId


class Coupon(Base):
    """Discount coupon. Carts reference it by code value."""

    __tablename__ = 'coupon'

    id = Column(BigId, primary_key=True, autoincrement=True)
    code = Column(String(40), nullable=False, unique=True)
    description = Column(String(255), nullable=True)
    discount_percent = Column(Numeric(5, 2), nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=True)
    minimum_value = Column(Numeric(12, 2), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    times_used = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Coupon(code='{self.code}', active={self.active})>"
