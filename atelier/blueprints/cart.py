"""Cart blueprint - persistent cart with live price reconciliation."""
from flask import Blueprint, jsonify, g, current_app
from atelier.database import get_session
from atelier.middleware import require_login
from atelier.exceptions import AtelierError
from atelier.forms.api_forms import AddCartLineForm, UpdateCartLineForm, CouponForm, validate_form
from atelier.models import CartLine
from atelier.services import cart_service
from atelier.services.cart_reconciler import reconcile_cart, ReconciliationResult
from atelier.services.site_config_service import current_snapshot

cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


def _serialize_cart(db_session, cart, result: ReconciliationResult):
    """Cart lines priced with the reconciled current price."""
    line_ids = [priced.line_id for priced in result.survivors]
    lines = {
        line.id: line
        for line in db_session.query(CartLine).filter(CartLine.id.in_(line_ids)).all()
    } if line_ids else {}

    priced_lines = []
    for priced in result.survivors:
        line = lines.get(priced.line_id)
        priced_lines.append({
            'id': priced.line_id,
            'product_id': priced.product_id,
            'product_name': line.product.name if line else None,
            'size_cm': priced.size_cm,
            'fabric_id': priced.fabric_id,
            'fabric_name': line.fabric.name if line else None,
            'quantity': priced.quantity,
            'current_price': priced.current_price,
        })
    totals = cart_service.calculate_cart_totals(priced_lines)

    return {
        'lines': [
            {**line, 'current_price': float(line['current_price']), 'line_total': float(line['line_total'])}
            for line in totals['lines']
        ],
        'total': float(totals['total']),
        'coupon_code': cart.coupon_code if cart else None,
        'removed_count': result.removed_count,
        'updated_count': result.updated_count,
        'message': result.message,
    }


def _line_to_dict(line: CartLine):
    return {
        'id': line.id,
        'product_id': line.product_id,
        'size_cm': line.size_cm,
        'fabric_id': line.fabric_id,
        'quantity': line.quantity,
        'preview_unit_price': float(line.preview_unit_price),
    }


@cart_bp.route('', methods=['GET'])
@require_login
def get_cart():
    """Current cart, reconciled against live prices before it is shown."""
    db_session = get_session()
    cart = cart_service.get_cart(db_session, g.user_id)
    result = reconcile_cart(db_session, cart, current_snapshot())
    return jsonify(_serialize_cart(db_session, cart, result))


@cart_bp.route('/lines', methods=['POST'])
@require_login
def add_line():
    form = validate_form(AddCartLineForm())
    db_session = get_session()

    try:
        line = cart_service.add_line(
            db_session,
            g.user_id,
            form.product_id.data,
            form.size_cm.data,
            form.fabric_id.data,
            form.quantity.data or 1,
            current_snapshot()
        )
        db_session.commit()
    except AtelierError as e:
        db_session.rollback()
        current_app.logger.info(f"[CART] Add rejected for user {g.user_id}: {e.message}")
        raise

    return jsonify(_line_to_dict(line)), 201


@cart_bp.route('/lines/<int:line_id>', methods=['PUT'])
@require_login
def update_line(line_id):
    form = validate_form(UpdateCartLineForm())
    db_session = get_session()

    try:
        line = cart_service.update_line_quantity(db_session, g.user_id, line_id, form.quantity.data)
        db_session.commit()
    except AtelierError:
        db_session.rollback()
        raise

    return jsonify(_line_to_dict(line))


@cart_bp.route('/lines/<int:line_id>', methods=['DELETE'])
@require_login
def delete_line(line_id):
    db_session = get_session()

    try:
        cart_service.remove_line(db_session, g.user_id, line_id)
        db_session.commit()
    except AtelierError:
        db_session.rollback()
        raise

    return jsonify({'success': True})


@cart_bp.route('/validate', methods=['POST'])
@require_login
def validate_cart():
    """Reconcile the cart and report how many lines were removed or updated."""
    db_session = get_session()
    cart = cart_service.get_cart(db_session, g.user_id)
    result = reconcile_cart(db_session, cart, current_snapshot())
    return jsonify(result.to_dict())


@cart_bp.route('/coupon', methods=['POST'])
@require_login
def apply_coupon():
    form = validate_form(CouponForm())
    db_session = get_session()

    try:
        coupon = cart_service.apply_coupon(db_session, g.user_id, form.code.data)
        db_session.commit()
    except AtelierError:
        db_session.rollback()
        raise

    return jsonify({
        'code': coupon.code,
        'description': coupon.description,
        'discount_percent': float(coupon.discount_percent) if coupon.discount_percent is not None else None,
        'discount_amount': float(coupon.discount_amount) if coupon.discount_amount is not None else None,
        'minimum_value': float(coupon.minimum_value) if coupon.minimum_value is not None else None,
    })


@cart_bp.route('/coupon', methods=['DELETE'])
@require_login
def remove_coupon():
    db_session = get_session()
    cart_service.remove_coupon(db_session, g.user_id)
    db_session.commit()
    return jsonify({'success': True})
