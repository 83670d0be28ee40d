"""Cart line model."""
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class CartLine(Base):
    """
    Cart Line - a (product, size, fabric) with quantity.

    preview_unit_price is the effective price snapshot taken when the line was
    added or last reconciled. It is never trusted for charging.
    """

    __tablename__ = 'cart_line'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_cart_line_quantity_positive'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    cart_id = Column(BigId, ForeignKey('cart.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigId, ForeignKey('product.id'), nullable=False)
    size_cm = Column(Integer, nullable=False)
    fabric_id = Column(BigId, ForeignKey('fabric.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    preview_unit_price = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    cart = relationship('Cart', back_populates='lines')
    product = relationship('Product')
    fabric = relationship('Fabric')

    def __repr__(self):
        return (
            f"<CartLine(id={self.id}, product_id={self.product_id}, size_cm={self.size_cm}, "
            f"fabric_id={self.fabric_id}, quantity={self.quantity})>"
        )
