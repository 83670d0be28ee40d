"""Customer orders blueprint - order history, detail, view stamps and messages."""
from flask import Blueprint, jsonify, g
from atelier.database import get_session
from atelier.middleware import require_login
from atelier.forms.api_forms import MarkViewedForm, MessageForm, validate_form
from atelier.services.order_status_service import (
    list_customer_orders, get_customer_order, mark_viewed_by_customer, post_message,
    customer_has_unseen_updates, order_detail
)

orders_bp = Blueprint('orders', __name__, url_prefix='/api/my-orders')


@orders_bp.route('', methods=['GET'])
@require_login
def my_orders():
    orders = list_customer_orders(get_session(), g.user_id)
    return jsonify({
        'orders': [
            {
                'id': order.id,
                'code': order.code,
                'status': order.status.value,
                'status_label': order.status_label,
                'total': float(order.total),
                'created_at': order.created_at.isoformat(),
                'has_unseen_updates': customer_has_unseen_updates(order),
            }
            for order in orders
        ]
    })


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_login
def my_order_detail(order_id):
    order = get_customer_order(get_session(), g.user_id, order_id)
    data = order_detail(order)
    data['has_unseen_updates'] = customer_has_unseen_updates(order)
    return jsonify(data)


@orders_bp.route('/view', methods=['POST'])
@require_login
def mark_viewed():
    """Mark one order ({"order_id": ...}) or all of the customer's orders as seen."""
    form = validate_form(MarkViewedForm())
    count = mark_viewed_by_customer(get_session(), g.user_id, form.order_id.data)
    return jsonify({'success': True, 'count': count})


@orders_bp.route('/<int:order_id>/messages', methods=['POST'])
@require_login
def post_order_message(order_id):
    form = validate_form(MessageForm())
    db_session = get_session()
    order = get_customer_order(db_session, g.user_id, order_id)
    message = post_message(db_session, order, g.user, form.text.data)
    return jsonify(message.to_dict()), 201
