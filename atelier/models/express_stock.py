"""Express stock model (pronta entrega)."""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class ExpressStock(Base):
    """
    Finished pieces on hand for a (product, size, fabric) combination.

    Only annotates express-delivery eligibility; checkout never blocks on it.
    """

    __tablename__ = 'express_stock'
    __table_args__ = (
        UniqueConstraint('product_id', 'size_cm', 'fabric_id', name='uq_express_stock_combo'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    product_id = Column(BigId, ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    size_cm = Column(Integer, nullable=False)
    fabric_id = Column(BigId, ForeignKey('fabric.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    product = relationship('Product')
    fabric = relationship('Fabric')

    def __repr__(self):
        return (
            f"<ExpressStock(product_id={self.product_id}, size_cm={self.size_cm}, "
            f"fabric_id={self.fabric_id}, quantity={self.quantity})>"
        )
