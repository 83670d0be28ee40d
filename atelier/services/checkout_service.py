"""
Checkout service with transactional logic.
Converts a reconciled cart into an immutable order.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from atelier.models import (
    Cart, CartLine, Order, OrderLine, OrderStatusHistory, OrderStatus, AuditAction
)
from atelier.exceptions import (
    AtelierError, BusinessLogicError, CartChangedError, EmptyCartAfterValidationError, CheckoutFailedError
)
from atelier.services.cart_reconciler import reconcile_cart, ReconciliationResult
from atelier.services.cart_service import get_cart, redeem_coupon
from atelier.services.site_config_service import SiteConfigSnapshot
from atelier.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

ORDER_CODE_ATTEMPTS = 5


@dataclass
class CheckoutResult:
    order_id: int
    code: str
    total: Decimal
    removed_count: int = 0
    updated_count: int = 0
    replayed: bool = False

    def to_dict(self):
        return {
            'order_id': self.order_id,
            'code': self.code,
            'total': float(self.total),
            'removed_count': self.removed_count,
            'updated_count': self.updated_count,
        }


def generate_order_code(session: Session, prefix: str, now: Optional[datetime] = None) -> str:
    """
    Human-readable unique order code, e.g. PED-20260114-3FA9C1.
    The unique constraint on Order.code remains the final guard.
    """
    now = now or utcnow()
    for _ in range(ORDER_CODE_ATTEMPTS):
        code = f"{prefix}-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"
        if not session.query(Order.id).filter(Order.code == code).first():
            return code
    raise RuntimeError('Could not generate a unique order code')


def _append_initial_history(session: Session, order: Order, user_id: int, now: datetime) -> None:
    session.add(OrderStatusHistory(
        order_id=order.id,
        status=OrderStatus.REQUESTED,
        reason=None,
        user_id=user_id,
        created_at=now
    ))


def _create_order(
    session: Session,
    user_id: int,
    cart_id: int,
    reconciliation: ReconciliationResult,
    idempotency_key: Optional[str],
    code_prefix: str
) -> Order:
    """The atomic unit: every write below commits together or not at all."""
    # 1. Lock the cart row against concurrent checkouts
    cart = session.query(Cart).filter(Cart.id == cart_id).with_for_update().one()

    # 2. Every reconciled line must still be in the cart with the same quantity
    line_ids = [priced.line_id for priced in reconciliation.survivors]
    locked_quantities = dict(
        session.query(CartLine.id, CartLine.quantity).filter(
            CartLine.cart_id == cart_id,
            CartLine.id.in_(line_ids)
        ).with_for_update().all()
    )
    for priced in reconciliation.survivors:
        if locked_quantities.get(priced.line_id) != priced.quantity:
            logger.warning(f"[CHECKOUT] Cart {cart_id} line {priced.line_id} changed after reconciliation")
            raise CartChangedError()

    now = utcnow()
    # 3. Consume one use of the cart coupon
    if cart.coupon_code:
        redeem_coupon(session, cart.coupon_code, reconciliation.total, now)

    # 4. Create Order with prices captured from reconciliation
    order = Order(
        code=generate_order_code(session, code_prefix, now),
        customer_id=user_id,
        status=OrderStatus.REQUESTED,
        total=reconciliation.total,
        idempotency_key=idempotency_key,
        created_at=now,
        updated_at=now
    )
    session.add(order)
    session.flush()

    # 5. Create OrderLines
    for priced in reconciliation.survivors:
        session.add(OrderLine(
            order_id=order.id,
            product_id=priced.product_id,
            size_cm=priced.size_cm,
            fabric_id=priced.fabric_id,
            quantity=priced.quantity,
            unit_price=priced.current_price,
            line_total=priced.line_total
        ))

    # 6. First history entry, the purchaser is the actor
    _append_initial_history(session, order, user_id, now)

    # 7. Clear the ordered lines; the cart row itself survives
    deleted = session.query(CartLine).filter(CartLine.id.in_(line_ids)).delete(synchronize_session=False)
    if deleted != len(line_ids):
        raise CartChangedError()
    details = {'code': order.code, 'total': str(order.total)}
    if cart.coupon_code:
        details['coupon'] = cart.coupon_code
    cart.coupon_code = None
    cart.updated_at = now

    from atelier.services.audit_service import log_action
    log_action(session, AuditAction.ORDER_CREATED, 'order', order.id, details=details, user_id=user_id)

    session.commit()
    return order


def checkout(
    session: Session,
    user_id: int,
    snapshot: SiteConfigSnapshot,
    idempotency_key: Optional[str] = None,
    code_prefix: str = 'PED'
) -> CheckoutResult:
    """
    Confirm the user's cart as an order.

    1. Reconcile the cart (own transaction).
    2. Create order, lines and first history entry and clear the cart atomically.
    3. Notify customer and fulfillment after commit (best effort).

    Raises:
        BusinessLogicError: cart missing or empty
        EmptyCartAfterValidationError: reconciliation removed every line
        CartChangedError: the cart changed before the lock was taken (409)
        CheckoutFailedError: atomic unit failed and was rolled back
    """
    if idempotency_key:
        existing = session.query(Order).filter(Order.idempotency_key == idempotency_key).first()
        if existing:
            if existing.customer_id != user_id:
                raise BusinessLogicError('Clave de idempotencia inválida.', status_code=409)
            logger.info(f"[CHECKOUT] Replayed idempotency key for order {existing.code}")
            _count('replayed')
            return CheckoutResult(existing.id, existing.code, existing.total, replayed=True)

    cart = get_cart(session, user_id)
    if not cart or not cart.lines:
        raise BusinessLogicError('El carrito está vacío')
    cart_id = cart.id

    reconciliation = reconcile_cart(session, cart, snapshot)
    if not reconciliation.survivors:
        _count('empty_after_validation')
        raise EmptyCartAfterValidationError(reconciliation.removed_count)

    try:
        order = _create_order(session, user_id, cart_id, reconciliation, idempotency_key, code_prefix)
    except AtelierError as e:
        session.rollback()
        logger.info(f"[CHECKOUT] Order rejected for user {user_id}: {e.message}")
        _count('rejected')
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"[CHECKOUT] Order creation failed for user {user_id}: {e}")
        _count('failed')
        raise CheckoutFailedError() from e

    logger.info(
        f"[CHECKOUT] Order {order.code} created for user {user_id}: "
        f"{len(reconciliation.survivors)} line(s), total {order.total}"
    )
    _count('created')

    _notify_order_created(session, order)

    return CheckoutResult(
        order_id=order.id,
        code=order.code,
        total=order.total,
        removed_count=reconciliation.removed_count,
        updated_count=reconciliation.updated_count,
    )


def _notify_order_created(session: Session, order: Order) -> None:
    from atelier.services.notification_service import notify_order_placed, notify_factory_new_order
    try:
        notify_order_placed(session, order)
        notify_factory_new_order(session, order)
    except Exception as e:
        # The order is already committed
        logger.error(f"[CHECKOUT] Notifications for order {order.id} failed: {e}")


def _count(outcome: str) -> None:
    from atelier.blueprints.metrics import checkouts_total, record
    record(checkouts_total, outcome=outcome)
