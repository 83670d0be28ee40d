"""
Pricing service - unit price resolution, discount resolution and price quotes.

Resolvers are side-effect free: they only read the price matrix and the
site configuration snapshot they are given.
"""
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from atelier.models import Fabric, FabricGrade, PriceMatrixRow, Product
from atelier.exceptions import (
    FabricNotFoundError, PriceRowNotFoundError, ProductNotSellableError, PriceUnavailableError
)
from atelier.services.site_config_service import SiteConfigSnapshot

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
HUNDRED = Decimal('100')

# Fixed, exhaustive grade -> price column map
GRADE_COLUMNS = {
    FabricGrade.G1000: 'price_grade_1000',
    FabricGrade.G2000: 'price_grade_2000',
    FabricGrade.G3000: 'price_grade_3000',
    FabricGrade.G4000: 'price_grade_4000',
    FabricGrade.G5000: 'price_grade_5000',
    FabricGrade.G6000: 'price_grade_6000',
    FabricGrade.G7000: 'price_grade_7000',
    FabricGrade.LEATHER: 'price_leather',
}


def money(value) -> Decimal:
    """Round a monetary amount half-up to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def find_price_row(session: Session, product_id: int, size_cm: int,
                   price_list_id: Optional[int] = None) -> Optional[PriceMatrixRow]:
    """
    Find the price row for (product, size).

    The given price list wins; the general list (price_list_id NULL) is the fallback.
    """
    if price_list_id is not None:
        row = session.query(PriceMatrixRow).filter(
            PriceMatrixRow.product_id == product_id,
            PriceMatrixRow.size_cm == size_cm,
            PriceMatrixRow.price_list_id == price_list_id
        ).first()
        if row:
            return row

    return session.query(PriceMatrixRow).filter(
        PriceMatrixRow.product_id == product_id,
        PriceMatrixRow.size_cm == size_cm,
        PriceMatrixRow.price_list_id.is_(None)
    ).first()


def price_for_grade(row: PriceMatrixRow, grade: FabricGrade) -> Decimal:
    return money(getattr(row, GRADE_COLUMNS[grade]) or 0)


def resolve_unit_price(session: Session, product_id: int, size_cm: int, fabric_id: int,
                       snapshot: SiteConfigSnapshot) -> Decimal:
    """
    Resolve the undiscounted unit price of a (product, size, fabric) combination.

    Raises:
        FabricNotFoundError: fabric does not exist
        PriceRowNotFoundError: no price row for (product, size) in the current or general list
    """
    fabric = session.get(Fabric, fabric_id)
    if not fabric:
        raise FabricNotFoundError(fabric_id)

    row = find_price_row(session, product_id, size_cm, snapshot.current_price_list_id)
    if not row:
        raise PriceRowNotFoundError(product_id, size_cm)

    return price_for_grade(row, fabric.grade)


def resolve_discount_percent(session: Session, product_id: int, size_cm: int,
                             snapshot: SiteConfigSnapshot) -> Decimal:
    """
    Discount percent for (product, size): the larger of the price row discount
    and the featured-product discount. Sources never add up.
    """
    row = find_price_row(session, product_id, size_cm, snapshot.current_price_list_id)
    row_discount = Decimal(str(row.discount_percent)) if row and row.discount_percent else Decimal('0')
    featured_discount = snapshot.featured_discount(product_id)
    return max(row_discount, featured_discount)


def effective_price(price: Decimal, discount_percent: Decimal) -> Decimal:
    """Apply a percentage discount, rounding half-up to cents."""
    if not discount_percent:
        return money(price)
    return money(Decimal(str(price)) * (HUNDRED - Decimal(str(discount_percent))) / HUNDRED)


def ensure_sellable(session: Session, product_id: int, snapshot: SiteConfigSnapshot) -> Product:
    """Return the product if it is active and inside the catalog whitelist."""
    product = session.get(Product, product_id)
    if not product or not product.active or not snapshot.is_whitelisted(product_id):
        raise ProductNotSellableError(product_id)
    return product


def current_effective_price(session: Session, product_id: int, size_cm: int, fabric_id: int,
                            snapshot: SiteConfigSnapshot) -> Decimal:
    """Sellability check + unit price + discount. Raises PriceUnavailableError subclasses."""
    ensure_sellable(session, product_id, snapshot)
    unit_price = resolve_unit_price(session, product_id, size_cm, fabric_id, snapshot)
    discount = resolve_discount_percent(session, product_id, size_cm, snapshot)
    return effective_price(unit_price, discount)


@dataclass
class PriceQuote:
    """Result of a storefront price lookup."""
    available: bool
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    discount_percent: Decimal = Decimal('0')
    reason: Optional[str] = None
    express_eligible: bool = False
    express_quantity: int = 0

    def to_dict(self):
        data = asdict(self)
        for key in ('price', 'original_price', 'discount_percent'):
            if data[key] is not None:
                data[key] = float(data[key])
        return data


def quote_price(session: Session, product_id: int, size_cm: int, fabric_id: int,
                snapshot: SiteConfigSnapshot) -> PriceQuote:
    """
    Quote a combination for display. Never raises for domain absence:
    an unsellable combination comes back with available=False and a reason.
    """
    from atelier.services.stock_service import get_express_quantity

    try:
        ensure_sellable(session, product_id, snapshot)
        unit_price = resolve_unit_price(session, product_id, size_cm, fabric_id, snapshot)
    except PriceUnavailableError as e:
        logger.debug(f"[PRICING] {product_id}/{size_cm}/{fabric_id} unavailable: {e.reason}")
        return PriceQuote(available=False, reason=e.reason)

    discount = resolve_discount_percent(session, product_id, size_cm, snapshot)
    express_quantity = get_express_quantity(session, product_id, size_cm, fabric_id)

    return PriceQuote(
        available=True,
        price=effective_price(unit_price, discount),
        original_price=unit_price,
        discount_percent=discount,
        express_eligible=express_quantity > 0,
        express_quantity=express_quantity,
    )


def price_summaries(session: Session, product_ids: Iterable[int],
                    snapshot: SiteConfigSnapshot) -> Dict[int, Dict]:
    """
    Batch summary for catalog cards: minimum positive price and maximum
    discount per product, read in a single query.

    Products without any positive price are omitted.
    """
    product_ids = list({int(pid) for pid in product_ids})
    if not product_ids:
        return {}

    list_filter = PriceMatrixRow.price_list_id.is_(None)
    if snapshot.current_price_list_id is not None:
        list_filter = or_(list_filter, PriceMatrixRow.price_list_id == snapshot.current_price_list_id)

    rows = session.query(PriceMatrixRow).filter(
        PriceMatrixRow.product_id.in_(product_ids),
        list_filter
    ).all()

    # Per (product, size) the current list row shadows the general one
    chosen = {}
    for row in rows:
        key = (row.product_id, row.size_cm)
        if key not in chosen or row.price_list_id is not None:
            chosen[key] = row

    summaries = {}
    for (product_id, _size), row in chosen.items():
        prices = [price_for_grade(row, grade) for grade in GRADE_COLUMNS]
        positive = [p for p in prices if p > 0]
        if not positive:
            continue
        row_discount = Decimal(str(row.discount_percent)) if row.discount_percent else Decimal('0')

        summary = summaries.setdefault(product_id, {
            'min_price': None,
            'max_discount_percent': Decimal('0'),
        })
        row_min = min(positive)
        if summary['min_price'] is None or row_min < summary['min_price']:
            summary['min_price'] = row_min
        summary['max_discount_percent'] = max(summary['max_discount_percent'], row_discount)

    for product_id, summary in summaries.items():
        summary['max_discount_percent'] = max(summary['max_discount_percent'],
                                              snapshot.featured_discount(product_id))
        summary['min_effective_price'] = effective_price(summary['min_price'],
                                                         summary['max_discount_percent'])

    return summaries
