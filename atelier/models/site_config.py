"""Site-wide configuration (singleton row)."""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


SITE_CONFIG_ID = 1


class SiteConfig(Base):
    """
    Global storefront configuration curated by admins.

    - current_price_list_id: price list used system-wide (NULL = general list only)
    - active_product_ids: whitelist of sellable products (empty = no whitelist)
    - featured_discounts: {"<product_id>": percent} for featured products

    updated_at doubles as the snapshot version.
    """

    __tablename__ = 'site_config'

    id = Column(Integer, primary_key=True, default=SITE_CONFIG_ID)
    current_price_list_id = Column(BigId, ForeignKey('price_list.id'), nullable=True)
    active_product_ids = Column(JSON, nullable=False, default=list)
    featured_discounts = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    current_price_list = relationship('PriceList')

    def __repr__(self):
        return f"<SiteConfig(price_list={self.current_price_list_id}, updated_at={self.updated_at})>"
