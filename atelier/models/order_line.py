"""Order line model."""
from sqlalchemy import Column, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId


class OrderLine(Base):
    """Order line (detalle del pedido). unit_price is captured at commit and never recomputed."""

    __tablename__ = 'order_line'

    id = Column(BigId, primary_key=True, autoincrement=True)
    order_id = Column(BigId, ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigId, ForeignKey('product.id'), nullable=False)
    size_cm = Column(Integer, nullable=False)
    fabric_id = Column(BigId, ForeignKey('fabric.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    # Relationships
    order = relationship('Order', back_populates='lines')
    product = relationship('Product')
    fabric = relationship('Fabric')

    def __repr__(self):
        return f"<OrderLine(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
