"""Product model."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class Product(Base):
    """
    Catalog product (sofá, poltrona, ...).

    Only the fields the pricing core reads live here; the catalog editors
    own the rest of the product record.
    """

    __tablename__ = 'product'

    id = Column(BigId, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    price_rows = relationship('PriceMatrixRow', back_populates='product', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', active={self.active})>"
