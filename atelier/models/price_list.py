"""Price list and price matrix row models."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint, Index, text
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class PriceList(Base):
    """
    Named price list (tabela de preço).

    Rows without a price list belong to the general list. The list used
    system-wide is chosen in SiteConfig.current_price_list_id.
    """

    __tablename__ = 'price_list'

    id = Column(BigId, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False, unique=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    rows = relationship('PriceMatrixRow', back_populates='price_list')

    def __repr__(self):
        return f"<PriceList(id={self.id}, name='{self.name}')>"


class PriceMatrixRow(Base):
    """
    One row per (product, size, price list): a price per fabric grade.

    Committed orders capture their own unit price and never read these rows again.
    """

    __tablename__ = 'price_matrix_row'
    __table_args__ = (
        UniqueConstraint('product_id', 'size_cm', 'price_list_id', name='uq_price_row_product_size_list'),
        # NULL price_list_id (general list) is not covered by the constraint above
        Index('uq_price_row_general_list', 'product_id', 'size_cm', unique=True,
              postgresql_where=text('price_list_id IS NULL'),
              sqlite_where=text('price_list_id IS NULL')),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    product_id = Column(BigId, ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    size_cm = Column(Integer, nullable=False)
    price_list_id = Column(BigId, ForeignKey('price_list.id'), nullable=True, index=True)

    price_grade_1000 = Column(Numeric(12, 2), nullable=False, default=0)
    price_grade_2000 = Column(Numeric(12, 2), nullable=False, default=0)
    price_grade_3000 = Column(Numeric(12, 2), nullable=False, default=0)
    price_grade_4000 = Column(Numeric(12, 2), nullable=False, default=0)
    price_grade_5000 = Column(Numeric(12, 2), nullable=False, default=0)
    price_grade_6000 = Column(Numeric(12, 2), nullable=False, default=0)
    price_grade_7000 = Column(Numeric(12, 2), nullable=False, default=0)
    price_leather = Column(Numeric(12, 2), nullable=False, default=0)

    width_cm = Column(Integer, nullable=True)
    depth_cm = Column(Integer, nullable=True)
    height_cm = Column(Integer, nullable=True)
    fabric_yardage_m = Column(Numeric(6, 2), nullable=True)
    leather_yardage_m = Column(Numeric(6, 2), nullable=True)

    discount_percent = Column(Numeric(5, 2), nullable=True)

    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    product = relationship('Product', back_populates='price_rows')
    price_list = relationship('PriceList', back_populates='rows')

    def __repr__(self):
        return (
            f"<PriceMatrixRow(product_id={self.product_id}, size_cm={self.size_cm}, "
            f"price_list_id={self.price_list_id})>"
        )
