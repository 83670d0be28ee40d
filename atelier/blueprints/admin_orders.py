"""Backoffice orders blueprint - listing, status pipeline and order messages (staff only)."""
from flask import Blueprint, request, jsonify, g, current_app
from atelier.database import get_session
from atelier.decorators.permissions import require_staff
from atelier.exceptions import ValidationError
from atelier.forms.api_forms import OrderListForm, StatusChangeForm, MessageForm, validate_form
from atelier.models import OrderStatus
from atelier.services.order_status_service import (
    OrderSortKey, list_orders, get_order, transition_status, mark_viewed_by_staff,
    post_message, edit_message, delete_message, order_detail, order_needs_attention
)

admin_orders_bp = Blueprint('admin_orders', __name__, url_prefix='/api/admin/orders')


@admin_orders_bp.route('', methods=['GET'])
@require_staff
def orders_list():
    form = validate_form(OrderListForm(formdata=request.args))

    try:
        sort = OrderSortKey(form.sort.data) if form.sort.data else OrderSortKey.CREATED_DESC
    except ValueError:
        raise ValidationError({'sort': [f'Orden inválido. Opciones: {[k.value for k in OrderSortKey]}']})

    try:
        status = OrderStatus(form.status.data) if form.status.data else None
    except ValueError:
        raise ValidationError({'status': ['Estado inválido']})

    result = list_orders(
        get_session(),
        page=form.page.data or 1,
        per_page=form.limit.data or current_app.config.get('ORDERS_PAGE_SIZE', 20),
        sort=sort,
        search=form.q.data or None,
        status=status,
        attention_only=(form.attention.data or '').lower() in ('1', 'true')
    )
    return jsonify(result)


@admin_orders_bp.route('/<int:order_id>', methods=['GET'])
@require_staff
def order_show(order_id):
    order = get_order(get_session(), order_id)
    data = order_detail(order)
    data['customer_email'] = order.customer.email
    data['needs_attention'] = order_needs_attention(order)
    return jsonify(data)


@admin_orders_bp.route('/<int:order_id>/status', methods=['POST'])
@require_staff
def order_status(order_id):
    form = validate_form(StatusChangeForm())
    new_status = OrderStatus(form.new_status.data)
    reason = (form.reason.data or '').strip() or None

    updated = transition_status(get_session(), order_id, new_status, g.user_id, reason=reason)
    return jsonify({'updated': updated, 'status': new_status.value})


@admin_orders_bp.route('/<int:order_id>/view', methods=['POST'])
@require_staff
def order_view(order_id):
    mark_viewed_by_staff(get_session(), order_id)
    return jsonify({'success': True})


@admin_orders_bp.route('/<int:order_id>/messages', methods=['POST'])
@require_staff
def order_message_create(order_id):
    form = validate_form(MessageForm())
    db_session = get_session()
    order = get_order(db_session, order_id)
    message = post_message(db_session, order, g.user, form.text.data)
    return jsonify(message.to_dict()), 201


@admin_orders_bp.route('/<int:order_id>/messages/<int:message_id>', methods=['PUT'])
@require_staff
def order_message_edit(order_id, message_id):
    form = validate_form(MessageForm())
    message = edit_message(get_session(), order_id, message_id, form.text.data, g.user_id)
    return jsonify(message.to_dict())


@admin_orders_bp.route('/<int:order_id>/messages/<int:message_id>', methods=['DELETE'])
@require_staff
def order_message_delete(order_id, message_id):
    delete_message(get_session(), order_id, message_id, g.user_id)
    return jsonify({'success': True})
