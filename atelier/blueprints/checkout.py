"""Checkout blueprint - converts the cart into an order."""
from flask import Blueprint, request, jsonify, g, current_app
from atelier.database import get_session
from atelier.middleware import require_login
from atelier.exceptions import ValidationError
from atelier.services.checkout_service import checkout as checkout_cart
from atelier.services.site_config_service import current_snapshot

checkout_bp = Blueprint('checkout', __name__, url_prefix='/api')

IDEMPOTENCY_HEADER = 'Idempotency-Key'
MAX_IDEMPOTENCY_KEY_LENGTH = 64


@checkout_bp.route('/checkout', methods=['POST'])
@require_login
def checkout():
    """
    Confirm the cart as an order.

    The optional Idempotency-Key header makes client retries safe: a repeated
    key returns the order created by the first request.
    """
    idempotency_key = (request.headers.get(IDEMPOTENCY_HEADER) or '').strip() or None
    if idempotency_key and len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError({IDEMPOTENCY_HEADER: [f'Máximo {MAX_IDEMPOTENCY_KEY_LENGTH} caracteres']})

    result = checkout_cart(
        get_session(),
        g.user_id,
        current_snapshot(),
        idempotency_key=idempotency_key,
        code_prefix=current_app.config.get('ORDER_CODE_PREFIX', 'PED')
    )

    return jsonify(result.to_dict()), 200 if result.replayed else 201
