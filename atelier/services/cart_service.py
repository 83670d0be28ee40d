"""Cart Service - Persistent cart operations (one cart per user)."""

from decimal import Decimal
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session
from atelier.models import Cart, CartLine, Coupon
from atelier.exceptions import BusinessLogicError, NotFoundError
from atelier.services.pricing_service import current_effective_price, money
from atelier.services.site_config_service import SiteConfigSnapshot
from atelier.utils.formatters import money_ar_2
from atelier.utils.timeutils import utcnow


def get_cart(session: Session, user_id: int) -> Optional[Cart]:
    return session.query(Cart).filter(Cart.user_id == user_id).first()


def get_or_create_cart(session: Session, user_id: int) -> Cart:
    """
    Get existing cart or create new one for user.
    One cart per user.
    """
    cart = get_cart(session, user_id)

    if not cart:
        cart = Cart(user_id=user_id)
        session.add(cart)
        # Solo flush() para obtener el ID; el caller confirma la transacción
        session.flush()

    return cart


def add_line(
    session: Session,
    user_id: int,
    product_id: int,
    size_cm: int,
    fabric_id: int,
    quantity: int,
    snapshot: SiteConfigSnapshot
) -> CartLine:
    """
    Add a (product, size, fabric) to the cart or increase the quantity of the
    matching line. The preview price is refreshed to the current effective price.

    Raises PriceUnavailableError subclasses when the combination is not sellable.
    """
    if quantity <= 0:
        raise BusinessLogicError('La cantidad debe ser mayor a 0.')

    preview = current_effective_price(session, product_id, size_cm, fabric_id, snapshot)
    cart = get_or_create_cart(session, user_id)

    line = session.query(CartLine).filter(
        CartLine.cart_id == cart.id,
        CartLine.product_id == product_id,
        CartLine.size_cm == size_cm,
        CartLine.fabric_id == fabric_id
    ).first()

    if line:
        line.quantity = line.quantity + quantity
        line.preview_unit_price = preview
    else:
        line = CartLine(
            cart_id=cart.id,
            product_id=product_id,
            size_cm=size_cm,
            fabric_id=fabric_id,
            quantity=quantity,
            preview_unit_price=preview
        )
        session.add(line)

    cart.updated_at = utcnow()
    session.flush()
    return line


def _get_own_line(session: Session, user_id: int, line_id: int) -> CartLine:
    line = session.query(CartLine).join(Cart, Cart.id == CartLine.cart_id).filter(
        CartLine.id == line_id,
        Cart.user_id == user_id
    ).first()
    if not line:
        raise NotFoundError('El producto no está en el carrito.')
    return line


def update_line_quantity(session: Session, user_id: int, line_id: int, quantity: int) -> CartLine:
    """Update the quantity of one of the user's cart lines."""
    if quantity <= 0:
        raise BusinessLogicError('La cantidad debe ser mayor a 0.')

    line = _get_own_line(session, user_id, line_id)
    line.quantity = quantity
    line.cart.updated_at = utcnow()
    session.flush()
    return line


def remove_line(session: Session, user_id: int, line_id: int) -> None:
    """Remove line from cart."""
    line = _get_own_line(session, user_id, line_id)
    cart = line.cart
    session.delete(line)
    cart.updated_at = utcnow()
    session.flush()


def validate_coupon(session: Session, code: str, now=None, subtotal: Optional[Decimal] = None,
                    lock: bool = False) -> Coupon:
    """
    Check that a coupon exists, is active, inside its validity window and under
    its usage limit. When a subtotal is given the coupon minimum is enforced too.
    """
    now = now or utcnow()
    query = session.query(Coupon).filter(Coupon.code == code.strip().upper())
    if lock:
        query = query.with_for_update().populate_existing()
    coupon = query.first()

    if not coupon:
        raise NotFoundError('Cupón inválido.')
    if not coupon.active:
        raise BusinessLogicError('El cupón no está activo.')
    if coupon.starts_at and now < coupon.starts_at:
        raise BusinessLogicError('El cupón todavía no está vigente.')
    if coupon.ends_at and now > coupon.ends_at:
        raise BusinessLogicError('El cupón está vencido.')
    if coupon.usage_limit is not None and coupon.times_used >= coupon.usage_limit:
        raise BusinessLogicError('El cupón alcanzó su límite de uso.')
    if subtotal is not None and coupon.minimum_value is not None and subtotal < coupon.minimum_value:
        raise BusinessLogicError(
            f'El cupón requiere una compra mínima de ${money_ar_2(coupon.minimum_value)}.',
            payload={'minimum_value': float(coupon.minimum_value)}
        )

    return coupon


def apply_coupon(session: Session, user_id: int, code: str, now=None) -> Coupon:
    """Validate a coupon and store its code on a non-empty cart. Totals are not affected."""
    coupon = validate_coupon(session, code, now)
    cart = get_cart(session, user_id)
    has_lines = cart is not None and session.query(CartLine.id).filter(CartLine.cart_id == cart.id).first()
    if not has_lines:
        raise BusinessLogicError('El carrito está vacío.', status_code=422)

    cart.coupon_code = coupon.code
    cart.updated_at = utcnow()
    session.flush()
    return coupon


def redeem_coupon(session: Session, code: str, subtotal: Decimal, now=None) -> Coupon:
    """
    Consume one use of the coupon at checkout. The coupon row is locked and
    re-validated against the reconciled subtotal. The caller commits.
    """
    coupon = validate_coupon(session, code, now, subtotal=subtotal, lock=True)
    coupon.times_used = (coupon.times_used or 0) + 1
    session.flush()
    return coupon


def remove_coupon(session: Session, user_id: int) -> None:
    cart = get_cart(session, user_id)
    if cart and cart.coupon_code:
        cart.coupon_code = None
        cart.updated_at = utcnow()
        session.flush()


def calculate_cart_totals(priced_lines: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Calculate totals for lines that carry a 'current_price' and 'quantity'.
    Each line gets its 'line_total'.
    """
    total = Decimal('0')
    for line in priced_lines:
        line_total = money(line['current_price'] * line['quantity'])
        line['line_total'] = line_total
        total += line_total

    return {
        'total': money(total),
        'lines': priced_lines,
    }
