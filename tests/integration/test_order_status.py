"""
Integration tests for the order status pipeline, view stamps, attention flag and messages.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from atelier.models import (
    Order, OrderStatus, OrderStatusHistory, OrderMessage, EmailLog, AuditLog, AuditAction
)
from atelier.exceptions import (
    InvalidStatusTransitionError, BusinessLogicError, NotFoundError, UnauthorizedError
)
from atelier.services.order_status_service import (
    transition_status, mark_viewed_by_staff, mark_viewed_by_customer, order_needs_attention,
    customer_has_unseen_updates, post_message, edit_message, delete_message, get_customer_order,
    list_orders, OrderSortKey
)

T0 = datetime(2026, 1, 14, 10, 0, 0)


def _make_order(session, customer, code, total='1800.00', created_at=T0):
    order = Order(
        code=code,
        customer_id=customer.id,
        status=OrderStatus.REQUESTED,
        total=Decimal(total),
        created_at=created_at,
        updated_at=created_at
    )
    session.add(order)
    session.flush()
    session.add(OrderStatusHistory(
        order_id=order.id, status=OrderStatus.REQUESTED, user_id=customer.id, created_at=created_at
    ))
    session.commit()
    return order


@pytest.fixture
def order(session, customer):
    return _make_order(session, customer, 'PED-20260114-A1B2C3')


class TestTransitions:
    """Status changes append to the history."""

    def test_each_transition_appends_history(self, app_ctx, session, order, staff):
        path = [OrderStatus.AWAITING_PAYMENT, OrderStatus.PAYMENT_APPROVED,
                OrderStatus.IN_PRODUCTION, OrderStatus.DELIVERED]
        now = T0 + timedelta(hours=1)
        for status in path:
            assert transition_status(session, order.id, status, staff.id, now=now) is True

        history = session.query(OrderStatusHistory).filter_by(order_id=order.id).order_by(
            OrderStatusHistory.id).all()
        assert [h.status for h in history] == [OrderStatus.REQUESTED] + path
        stamps = [h.created_at for h in history]
        assert all(a < b for a, b in zip(stamps, stamps[1:]))

        order = session.get(Order, order.id)
        assert order.status == OrderStatus.DELIVERED
        assert order.updated_at == stamps[-1]

    def test_same_status_is_noop(self, app_ctx, session, order, staff):
        assert transition_status(session, order.id, OrderStatus.REQUESTED, staff.id) is False
        assert session.query(OrderStatusHistory).filter_by(order_id=order.id).count() == 1

    def test_backward_transition_refused(self, app_ctx, session, order, staff):
        transition_status(session, order.id, OrderStatus.IN_PRODUCTION, staff.id)

        with pytest.raises(InvalidStatusTransitionError):
            transition_status(session, order.id, OrderStatus.APPROVED, staff.id)

        assert session.get(Order, order.id).status == OrderStatus.IN_PRODUCTION
        assert session.query(OrderStatusHistory).filter_by(order_id=order.id).count() == 2

    def test_terminal_status_is_final(self, app_ctx, session, order, staff):
        transition_status(session, order.id, OrderStatus.REJECTED, staff.id, reason='Sin stock de tela')

        with pytest.raises(InvalidStatusTransitionError):
            transition_status(session, order.id, OrderStatus.IN_PRODUCTION, staff.id)

    def test_unknown_order(self, app_ctx, session, staff):
        with pytest.raises(NotFoundError):
            transition_status(session, 9999, OrderStatus.APPROVED, staff.id)

    def test_rejection_reason_and_notification(self, app_ctx, session, order, staff):
        transition_status(session, order.id, OrderStatus.REJECTED, staff.id, reason='Sin stock de tela')

        last = session.query(OrderStatusHistory).filter_by(order_id=order.id).order_by(
            OrderStatusHistory.id.desc()).first()
        assert last.status == OrderStatus.REJECTED
        assert last.reason == 'Sin stock de tela'
        assert last.user_id == staff.id

        log = session.query(EmailLog).one()
        assert log.template == 'order_rejected'

    def test_forward_transition_notifies_customer(self, app_ctx, session, order, staff, customer):
        transition_status(session, order.id, OrderStatus.APPROVED, staff.id)

        log = session.query(EmailLog).one()
        assert log.template == 'order_status_updated'
        assert log.recipient == customer.email

    def test_transition_is_audited(self, app_ctx, session, order, staff):
        transition_status(session, order.id, OrderStatus.APPROVED, staff.id)

        entry = session.query(AuditLog).filter_by(action=AuditAction.ORDER_STATUS_CHANGED).one()
        assert entry.resource_id == order.id
        assert entry.user_id == staff.id

    def test_transition_keeps_staff_view_stamp(self, app_ctx, session, order, staff):
        seen = T0 + timedelta(minutes=10)
        mark_viewed_by_staff(session, order.id, now=seen)

        transition_status(session, order.id, OrderStatus.APPROVED, staff.id, now=T0 + timedelta(minutes=20))
        assert session.get(Order, order.id).last_seen_by_staff == seen


class TestAttention:
    """Staff attention flag over the order lifecycle."""

    def test_attention_lifecycle(self, app_ctx, session, order, customer, staff):
        assert order_needs_attention(session.get(Order, order.id)) is True

        mark_viewed_by_staff(session, order.id, now=T0 + timedelta(minutes=1))
        assert order_needs_attention(session.get(Order, order.id)) is False

        post_message(session, session.get(Order, order.id), customer, '¿Cuándo entregan?',
                     now=T0 + timedelta(minutes=2))
        assert order_needs_attention(session.get(Order, order.id)) is True

        mark_viewed_by_staff(session, order.id, now=T0 + timedelta(minutes=3))
        assert order_needs_attention(session.get(Order, order.id)) is False

        transition_status(session, order.id, OrderStatus.APPROVED, staff.id, now=T0 + timedelta(minutes=4))
        assert order_needs_attention(session.get(Order, order.id)) is True

    def test_staff_message_does_not_raise_attention(self, app_ctx, session, order, staff):
        mark_viewed_by_staff(session, order.id, now=T0 + timedelta(minutes=1))
        post_message(session, session.get(Order, order.id), staff, 'Ya está en producción',
                     now=T0 + timedelta(minutes=2))
        assert order_needs_attention(session.get(Order, order.id)) is False


class TestCustomerView:
    """Customer-side unseen updates."""

    def test_staff_message_is_unseen_until_viewed(self, app_ctx, session, order, customer, staff):
        assert customer_has_unseen_updates(session.get(Order, order.id)) is False

        post_message(session, session.get(Order, order.id), staff, 'Confirmamos tu pedido',
                     now=T0 + timedelta(minutes=5))
        assert customer_has_unseen_updates(session.get(Order, order.id)) is True

        mark_viewed_by_customer(session, customer.id, order.id, now=T0 + timedelta(minutes=6))
        assert customer_has_unseen_updates(session.get(Order, order.id)) is False

    def test_mark_all_viewed(self, app_ctx, session, customer):
        _make_order(session, customer, 'PED-20260114-000001')
        _make_order(session, customer, 'PED-20260114-000002')

        assert mark_viewed_by_customer(session, customer.id) == 2
        assert session.query(Order).filter(Order.last_seen_by_customer.is_(None)).count() == 0

    def test_other_customer_order_looks_missing(self, app_ctx, session, order, other_customer):
        with pytest.raises(NotFoundError):
            get_customer_order(session, other_customer.id, order.id)
        with pytest.raises(NotFoundError):
            mark_viewed_by_customer(session, other_customer.id, order.id)

    def test_view_stamps_do_not_touch_updated_at(self, app_ctx, session, order, customer):
        mark_viewed_by_customer(session, customer.id, order.id, now=T0 + timedelta(days=1))
        mark_viewed_by_staff(session, order.id, now=T0 + timedelta(days=1))
        assert session.get(Order, order.id).updated_at == T0


class TestMessages:
    """Order messages: roles, soft edit and soft delete."""

    def test_role_follows_author(self, app_ctx, session, order, customer, staff):
        from_customer = post_message(session, order, customer, 'Hola')
        from_staff = post_message(session, order, staff, 'Buen día')
        assert from_customer.role == 'CUSTOMER'
        assert from_staff.role == 'STAFF'

    def test_empty_message_rejected(self, app_ctx, session, order, customer):
        with pytest.raises(BusinessLogicError) as exc:
            post_message(session, order, customer, '   ')
        assert exc.value.status_code == 422

    def test_edit_staff_message(self, app_ctx, session, order, staff):
        message = post_message(session, order, staff, 'Entrega el lunes', now=T0)
        message_id = message.id

        edited = edit_message(session, order.id, message_id, 'Entrega el martes', staff.id,
                              now=T0 + timedelta(minutes=1))

        assert edited.id == message_id
        assert edited.text == 'Entrega el martes'
        assert edited.edited is True
        assert edited.edited_at == T0 + timedelta(minutes=1)
        assert edited.created_at == T0

    def test_customer_message_cannot_be_edited(self, app_ctx, session, order, customer, staff):
        message = post_message(session, order, customer, 'Hola')
        with pytest.raises(UnauthorizedError):
            edit_message(session, order.id, message.id, 'Otro texto', staff.id)
        with pytest.raises(UnauthorizedError):
            delete_message(session, order.id, message.id, staff.id)

    def test_message_of_another_order(self, app_ctx, session, order, customer, staff):
        other = _make_order(session, customer, 'PED-20260114-FFFFFF')
        message = post_message(session, other, staff, 'Mensaje')
        with pytest.raises(BusinessLogicError):
            edit_message(session, order.id, message.id, 'Cambio', staff.id)

    def test_soft_delete_keeps_row(self, app_ctx, session, order, staff):
        message = post_message(session, order, staff, 'Borrar esto')
        message_id = message.id

        delete_message(session, order.id, message_id, staff.id)

        row = session.get(OrderMessage, message_id)
        assert row is not None
        assert row.deleted is True
        assert row.deleted_at is not None
        assert row.to_dict()['text'] is None

    def test_deleted_message_cannot_be_edited(self, app_ctx, session, order, staff):
        message = post_message(session, order, staff, 'Borrar esto')
        delete_message(session, order.id, message.id, staff.id)
        with pytest.raises(BusinessLogicError):
            edit_message(session, order.id, message.id, 'Revivir', staff.id)


class TestStaffListing:
    """Paginated listing with search, filters and attention."""

    @pytest.fixture
    def orders(self, session, customer, other_customer):
        first = _make_order(session, customer, 'PED-20260110-AAAAAA', total='500.00',
                            created_at=T0 - timedelta(days=4))
        second = _make_order(session, customer, 'PED-20260112-BBBBBB', total='2500.00',
                             created_at=T0 - timedelta(days=2))
        third = _make_order(session, other_customer, 'PED-20260114-CCCCCC', total='1200.00', created_at=T0)
        return [first.id, second.id, third.id]

    def test_default_sort_newest_first(self, app_ctx, session, orders):
        result = list_orders(session)
        assert [item['id'] for item in result['items']] == list(reversed(orders))
        assert result['total'] == 3

    def test_sort_by_total(self, app_ctx, session, orders):
        result = list_orders(session, sort=OrderSortKey.TOTAL_DESC)
        assert [item['total'] for item in result['items']] == [2500.0, 1200.0, 500.0]

    def test_pagination(self, app_ctx, session, orders):
        result = list_orders(session, page=2, per_page=2)
        assert len(result['items']) == 1
        assert result['pages'] == 2

    def test_page_size_is_capped(self, app_ctx, session, orders):
        assert list_orders(session, per_page=1000)['per_page'] == 100

    def test_search_by_code_or_email(self, app_ctx, session, orders):
        assert [i['code'] for i in list_orders(session, search='bbbbbb')['items']] == ['PED-20260112-BBBBBB']
        assert [i['customer_email'] for i in list_orders(session, search='otro@')['items']] == ['otro@test.com']

    def test_filter_by_status(self, app_ctx, session, orders, staff):
        transition_status(session, orders[0], OrderStatus.APPROVED, staff.id)
        result = list_orders(session, status=OrderStatus.APPROVED)
        assert [item['id'] for item in result['items']] == [orders[0]]

    def test_attention_only(self, app_ctx, session, orders, customer):
        for order_id in orders:
            mark_viewed_by_staff(session, order_id, now=T0 + timedelta(minutes=1))
        post_message(session, session.get(Order, orders[1]), customer, 'Consulta',
                     now=T0 + timedelta(minutes=2))

        result = list_orders(session, attention_only=True)
        assert [item['id'] for item in result['items']] == [orders[1]]
        assert result['items'][0]['needs_attention'] is True
