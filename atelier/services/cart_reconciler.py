"""
Cart reconciliation against the live price matrix and catalog whitelist.

Every line is re-priced with the same resolvers the storefront uses:
- product no longer sellable or price unavailable: line removed
- drift above REMOVE_DRIFT_PERCENT: line removed
- drift above UPDATE_DRIFT_PERCENT: preview price updated in place
- otherwise unchanged

Reconciliation is idempotent and runs in its own transaction.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from atelier.models import Cart, CartLine
from atelier.exceptions import PriceUnavailableError
from atelier.services.pricing_service import current_effective_price, money
from atelier.services.site_config_service import SiteConfigSnapshot
from atelier.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

REMOVE_DRIFT_PERCENT = Decimal('5')
UPDATE_DRIFT_PERCENT = Decimal('0.01')

OUTCOME_REMOVED = 'removed'
OUTCOME_UPDATED = 'updated'
OUTCOME_UNCHANGED = 'unchanged'

REASON_PRICE_CHANGED = 'PRICE_CHANGED'


def price_drift_percent(preview_price: Decimal, current_price: Decimal) -> Decimal:
    """Relative change in percent; a zero preview counts as full drift."""
    preview_price = Decimal(str(preview_price))
    if preview_price == 0:
        return Decimal('100')
    return abs(Decimal(str(current_price)) - preview_price) / preview_price * Decimal('100')


@dataclass
class LineOutcome:
    line_id: int
    product_id: int
    size_cm: int
    fabric_id: int
    outcome: str
    previous_price: Decimal
    current_price: Optional[Decimal] = None
    reason: Optional[str] = None

    def to_dict(self):
        return {
            'line_id': self.line_id,
            'product_id': self.product_id,
            'size_cm': self.size_cm,
            'fabric_id': self.fabric_id,
            'outcome': self.outcome,
            'reason': self.reason,
            'previous_price': float(self.previous_price),
            'current_price': float(self.current_price) if self.current_price is not None else None,
        }


@dataclass
class PricedLine:
    """A surviving cart line with the price it would be charged at right now."""
    line_id: int
    product_id: int
    size_cm: int
    fabric_id: int
    quantity: int
    current_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return money(self.current_price * self.quantity)


@dataclass
class ReconciliationResult:
    removed_count: int = 0
    updated_count: int = 0
    details: List[LineOutcome] = field(default_factory=list)
    survivors: List[PricedLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return money(sum((line.line_total for line in self.survivors), Decimal('0')))

    @property
    def message(self) -> str:
        if self.removed_count:
            return (
                f'{self.removed_count} producto(s) fueron removidos del carrito '
                'por cambios de precio o disponibilidad.'
            )
        if self.updated_count:
            return f'{self.updated_count} precio(s) del carrito fueron actualizados.'
        return 'Carrito validado con éxito.'

    def to_dict(self):
        return {
            'removed_count': self.removed_count,
            'updated_count': self.updated_count,
            'message': self.message,
            'details': [d.to_dict() for d in self.details],
        }


def _evaluate_line(session: Session, line: CartLine, snapshot: SiteConfigSnapshot) -> LineOutcome:
    outcome = LineOutcome(
        line_id=line.id,
        product_id=line.product_id,
        size_cm=line.size_cm,
        fabric_id=line.fabric_id,
        outcome=OUTCOME_UNCHANGED,
        previous_price=Decimal(str(line.preview_unit_price)),
    )

    try:
        current = current_effective_price(session, line.product_id, line.size_cm, line.fabric_id, snapshot)
    except PriceUnavailableError as e:
        # NOT_ACTIVE_IN_CATALOG is kept as is; any price absence is reported as PRICE_UNAVAILABLE
        outcome.outcome = OUTCOME_REMOVED
        outcome.reason = e.reason if e.reason == 'NOT_ACTIVE_IN_CATALOG' else 'PRICE_UNAVAILABLE'
        return outcome

    outcome.current_price = current
    drift = price_drift_percent(outcome.previous_price, current)

    if drift > REMOVE_DRIFT_PERCENT:
        outcome.outcome = OUTCOME_REMOVED
        outcome.reason = REASON_PRICE_CHANGED
    elif drift > UPDATE_DRIFT_PERCENT:
        outcome.outcome = OUTCOME_UPDATED

    return outcome


def reconcile_cart(session: Session, cart: Optional[Cart], snapshot: SiteConfigSnapshot,
                   commit: bool = True) -> ReconciliationResult:
    """
    Reconcile every line of the cart and persist the outcome.

    Removals are applied as one batch delete and price refreshes as guarded
    row updates. Safe to run concurrently for the same cart: a line deleted by
    another request in the meantime is skipped, never resurrected.
    """
    result = ReconciliationResult()
    if cart is None:
        return result

    lines = session.query(CartLine).filter(CartLine.cart_id == cart.id).order_by(CartLine.id).all()
    removed_ids = []

    try:
        for line in lines:
            outcome = _evaluate_line(session, line, snapshot)

            if outcome.outcome == OUTCOME_REMOVED:
                result.details.append(outcome)
                removed_ids.append(line.id)
                continue

            if outcome.outcome == OUTCOME_UPDATED:
                matched = session.query(CartLine).filter(CartLine.id == line.id).update(
                    {CartLine.preview_unit_price: outcome.current_price}, synchronize_session='evaluate'
                )
                if not matched:
                    logger.info(f"[CART] Line {line.id} of cart {cart.id} already gone, skipped")
                    continue
                result.updated_count += 1

            result.details.append(outcome)
            result.survivors.append(PricedLine(
                line_id=line.id,
                product_id=line.product_id,
                size_cm=line.size_cm,
                fabric_id=line.fabric_id,
                quantity=line.quantity,
                current_price=outcome.current_price,
            ))

        if removed_ids:
            session.query(CartLine).filter(CartLine.id.in_(removed_ids)).delete(synchronize_session=False)
            session.expire(cart, ['lines'])
            result.removed_count = len(removed_ids)

        if removed_ids or result.updated_count:
            cart.updated_at = utcnow()

        if commit:
            session.commit()
    except Exception:
        session.rollback()
        raise

    if removed_ids or result.updated_count:
        logger.info(
            f"[CART] Cart {cart.id} reconciled: {result.removed_count} removed, "
            f"{result.updated_count} updated (config {snapshot.version})"
        )
        _record_metrics(result)

    return result


def _record_metrics(result: ReconciliationResult) -> None:
    from atelier.blueprints.metrics import cart_reconciliation_lines_total, record
    if result.removed_count:
        record(cart_reconciliation_lines_total, result.removed_count, outcome=OUTCOME_REMOVED)
    if result.updated_count:
        record(cart_reconciliation_lines_total, result.updated_count, outcome=OUTCOME_UPDATED)
