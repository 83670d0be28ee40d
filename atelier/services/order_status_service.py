"""
Order status pipeline, view stamps, attention signal and order messages.

Status changes append to an immutable history and notify the customer after
commit. Concurrent transitions on the same order are last-write-wins.
"""
import enum
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Dict, Any, List

from sqlalchemy import func, or_, and_
from sqlalchemy.orm import Session

from atelier.models import (
    Order, OrderStatus, OrderStatusHistory, OrderMessage, MessageRole, AppUser, AuditAction
)
from atelier.exceptions import (
    BusinessLogicError, NotFoundError, InvalidStatusTransitionError, UnauthorizedError
)
from atelier.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

# Forward order of the manufacturing/delivery pipeline
STATUS_PIPELINE = [
    OrderStatus.REQUESTED,
    OrderStatus.AWAITING_PAYMENT,
    OrderStatus.PAYMENT_APPROVED,
    OrderStatus.APPROVED,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.IN_SHIPPING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
]
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.REJECTED})

HISTORY_TICK = timedelta(microseconds=1)


def check_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """
    Validate a status move. Returns False for a no-op (same status).

    Forward moves may skip stages; REJECTED is reachable from any non-terminal
    status; backward moves and moves out of a terminal status are refused.
    """
    if current == new:
        return False
    if current in TERMINAL_STATUSES:
        raise InvalidStatusTransitionError(current.value, new.value)
    if new == OrderStatus.REJECTED:
        return True
    if STATUS_PIPELINE.index(new) < STATUS_PIPELINE.index(current):
        raise InvalidStatusTransitionError(current.value, new.value)
    return True


def _next_history_time(session: Session, order_id: int, now: datetime) -> datetime:
    """History timestamps strictly increase per order, even under clock skew."""
    last = session.query(func.max(OrderStatusHistory.created_at)).filter(
        OrderStatusHistory.order_id == order_id
    ).scalar()
    if last is not None and now <= last:
        return last + HISTORY_TICK
    return now


def get_order(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError('Pedido no encontrado.')
    return order


def get_customer_order(session: Session, customer_id: int, order_id: int) -> Order:
    """Fetch an order owned by the customer. Other customers' orders look missing."""
    order = session.query(Order).filter(
        Order.id == order_id,
        Order.customer_id == customer_id
    ).first()
    if not order:
        raise NotFoundError('Pedido no encontrado.')
    return order


def transition_status(
    session: Session,
    order_id: int,
    new_status: OrderStatus,
    actor_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None
) -> bool:
    """
    Move an order to new_status.

    Appends one history row, updates status and updated_at, then notifies the
    customer after commit. Returns False when the order already had that status.
    """
    order = get_order(session, order_id)
    previous = order.status

    try:
        if not check_transition(previous, new_status):
            return False

        at = _next_history_time(session, order.id, now or utcnow())
        session.add(OrderStatusHistory(
            order_id=order.id,
            status=new_status,
            reason=reason,
            user_id=actor_id,
            created_at=at
        ))
        order.status = new_status
        order.updated_at = at

        from atelier.services.audit_service import log_action
        log_action(session, AuditAction.ORDER_STATUS_CHANGED, 'order', order.id,
                   details={'from': previous.value, 'to': new_status.value, 'reason': reason},
                   user_id=actor_id)

        session.commit()
    except (BusinessLogicError, NotFoundError) as e:
        session.rollback()
        raise e

    logger.info(f"[ORDERS] Order {order.code}: {previous.value} -> {new_status.value} by user {actor_id}")
    _after_transition(session, order, new_status, reason)
    return True


def _after_transition(session: Session, order: Order, new_status: OrderStatus, reason: Optional[str]) -> None:
    from atelier.services.notification_service import notify_order_rejected, notify_status_updated
    from atelier.blueprints.metrics import order_status_transitions_total, record
    record(order_status_transitions_total, status=new_status.value)

    try:
        if new_status == OrderStatus.REJECTED:
            notify_order_rejected(session, order, reason)
        else:
            notify_status_updated(session, order)
    except Exception as e:
        logger.error(f"[ORDERS] Status notification for order {order.id} failed: {e}")


# =====================================================
# VIEW STAMPS & ATTENTION
# =====================================================

def mark_viewed_by_staff(session: Session, order_id: int, now: Optional[datetime] = None) -> Order:
    order = get_order(session, order_id)
    order.last_seen_by_staff = now or utcnow()
    session.commit()
    return order


def mark_viewed_by_customer(session: Session, customer_id: int, order_id: Optional[int] = None,
                            now: Optional[datetime] = None) -> int:
    """Stamp one of the customer's orders (or all of them) as seen. Returns the count."""
    now = now or utcnow()
    if order_id is not None:
        order = get_customer_order(session, customer_id, order_id)
        order.last_seen_by_customer = now
        count = 1
    else:
        count = session.query(Order).filter(Order.customer_id == customer_id).update(
            {Order.last_seen_by_customer: now}, synchronize_session=False
        )
    session.commit()
    return count


def needs_attention(
    status: OrderStatus,
    last_seen_by_staff: Optional[datetime],
    customer_message_times: Iterable[datetime],
    updated_at: Optional[datetime]
) -> bool:
    """
    Derived staff attention flag. True when staff never viewed the order
    (every fresh REQUESTED order), a customer message is newer than the last
    staff view, or the order changed after it.
    """
    if last_seen_by_staff is None:
        return True
    if any(sent_at > last_seen_by_staff for sent_at in customer_message_times):
        return True
    return updated_at is not None and updated_at > last_seen_by_staff


def order_needs_attention(order: Order) -> bool:
    return needs_attention(
        order.status,
        order.last_seen_by_staff,
        [m.created_at for m in order.messages if m.role == MessageRole.CUSTOMER.value and not m.deleted],
        order.updated_at,
    )


def customer_has_unseen_updates(order: Order) -> bool:
    """Staff message or status change after the customer last opened the order."""
    reference = order.last_seen_by_customer or order.created_at
    if order.updated_at and order.updated_at > reference:
        return True
    return any(
        m.created_at > reference
        for m in order.messages
        if m.role == MessageRole.STAFF.value and not m.deleted
    )


# =====================================================
# MESSAGES
# =====================================================

def post_message(session: Session, order: Order, user: AppUser, text: str,
                 now: Optional[datetime] = None) -> OrderMessage:
    """Append a message; the role tag follows the author's role."""
    text = (text or '').strip()
    if not text:
        raise BusinessLogicError('El mensaje está vacío.', status_code=422)

    role = MessageRole.STAFF if user.is_staff else MessageRole.CUSTOMER
    message = OrderMessage(
        order_id=order.id,
        user_id=user.id,
        role=role.value,
        text=text,
        created_at=now or utcnow()
    )
    session.add(message)
    session.commit()
    logger.info(f"[ORDERS] {role.value} message on order {order.id} by user {user.id}")
    return message


def _get_staff_message(session: Session, order_id: int, message_id: int) -> OrderMessage:
    get_order(session, order_id)
    message = session.get(OrderMessage, message_id)
    if not message:
        raise NotFoundError('Mensaje no encontrado.')
    if message.order_id != order_id:
        raise BusinessLogicError('El mensaje no pertenece a este pedido.')
    if message.role != MessageRole.STAFF.value:
        raise UnauthorizedError('Solo se pueden modificar mensajes del equipo.')
    return message


def edit_message(session: Session, order_id: int, message_id: int, text: str, actor_id: int,
                 now: Optional[datetime] = None) -> OrderMessage:
    """Soft-edit a staff message. The row keeps its id and created_at."""
    text = (text or '').strip()
    if not text:
        raise BusinessLogicError('El mensaje está vacío.', status_code=422)

    message = _get_staff_message(session, order_id, message_id)
    if message.deleted:
        raise BusinessLogicError('No se puede editar un mensaje eliminado.')

    message.text = text
    message.edited = True
    message.edited_at = now or utcnow()

    from atelier.services.audit_service import log_action
    log_action(session, AuditAction.ORDER_MESSAGE_EDITED, 'order_message', message.id, user_id=actor_id)
    session.commit()
    return message


def delete_message(session: Session, order_id: int, message_id: int, actor_id: int,
                   now: Optional[datetime] = None) -> OrderMessage:
    """Soft-delete a staff message; the row is retained."""
    message = _get_staff_message(session, order_id, message_id)
    if not message.deleted:
        message.deleted = True
        message.deleted_at = now or utcnow()

        from atelier.services.audit_service import log_action
        log_action(session, AuditAction.ORDER_MESSAGE_DELETED, 'order_message', message.id, user_id=actor_id)
        session.commit()
    return message


# =====================================================
# STAFF LISTING
# =====================================================

class OrderSortKey(str, enum.Enum):
    CREATED_DESC = 'created_desc'
    CREATED_ASC = 'created_asc'
    UPDATED_DESC = 'updated_desc'
    TOTAL_DESC = 'total_desc'
    TOTAL_ASC = 'total_asc'
    CODE_ASC = 'code_asc'


ORDER_SORTS = {
    OrderSortKey.CREATED_DESC: (Order.created_at.desc(), Order.id.desc()),
    OrderSortKey.CREATED_ASC: (Order.created_at.asc(), Order.id.asc()),
    OrderSortKey.UPDATED_DESC: (Order.updated_at.desc(), Order.id.desc()),
    OrderSortKey.TOTAL_DESC: (Order.total.desc(), Order.id.desc()),
    OrderSortKey.TOTAL_ASC: (Order.total.asc(), Order.id.asc()),
    OrderSortKey.CODE_ASC: (Order.code.asc(),),
}

MAX_PAGE_SIZE = 100


def list_orders(
    session: Session,
    page: int = 1,
    per_page: int = 20,
    sort: OrderSortKey = OrderSortKey.CREATED_DESC,
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    attention_only: bool = False
) -> Dict[str, Any]:
    """Paginated staff listing with the attention flag computed per order."""
    per_page = max(1, min(per_page, MAX_PAGE_SIZE))
    page = max(1, page)

    last_customer_message = session.query(
        OrderMessage.order_id.label('order_id'),
        func.max(OrderMessage.created_at).label('last_at')
    ).filter(
        OrderMessage.role == MessageRole.CUSTOMER.value,
        OrderMessage.deleted.is_(False)
    ).group_by(OrderMessage.order_id).subquery()

    query = session.query(Order, AppUser.email, last_customer_message.c.last_at).join(
        AppUser, AppUser.id == Order.customer_id
    ).outerjoin(
        last_customer_message, last_customer_message.c.order_id == Order.id
    )

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Order.code.ilike(pattern), AppUser.email.ilike(pattern)))

    if status:
        query = query.filter(Order.status == status)

    if attention_only:
        query = query.filter(or_(
            Order.last_seen_by_staff.is_(None),
            Order.updated_at > Order.last_seen_by_staff,
            and_(last_customer_message.c.last_at.isnot(None),
                 last_customer_message.c.last_at > Order.last_seen_by_staff)
        ))

    total = query.count()
    rows = query.order_by(*ORDER_SORTS[sort]).offset((page - 1) * per_page).limit(per_page).all()

    items = []
    for order, email, last_at in rows:
        items.append({
            'id': order.id,
            'code': order.code,
            'customer_email': email,
            'status': order.status.value,
            'status_label': order.status_label,
            'total': float(order.total),
            'created_at': order.created_at.isoformat(),
            'updated_at': order.updated_at.isoformat(),
            'needs_attention': needs_attention(
                order.status, order.last_seen_by_staff, [last_at] if last_at else [], order.updated_at
            ),
        })

    return {
        'items': items,
        'page': page,
        'per_page': per_page,
        'total': total,
        'pages': (total + per_page - 1) // per_page,
    }


def list_customer_orders(session: Session, customer_id: int) -> List[Order]:
    return session.query(Order).filter(
        Order.customer_id == customer_id
    ).order_by(Order.created_at.desc(), Order.id.desc()).all()


def order_detail(order: Order) -> Dict[str, Any]:
    """Full order view shared by the customer and staff endpoints."""
    return {
        'id': order.id,
        'code': order.code,
        'customer_id': order.customer_id,
        'status': order.status.value,
        'status_label': order.status_label,
        'total': float(order.total),
        'created_at': order.created_at.isoformat(),
        'updated_at': order.updated_at.isoformat(),
        'last_seen_by_customer': order.last_seen_by_customer.isoformat() if order.last_seen_by_customer else None,
        'last_seen_by_staff': order.last_seen_by_staff.isoformat() if order.last_seen_by_staff else None,
        'lines': [
            {
                'id': line.id,
                'product_id': line.product_id,
                'product_name': line.product.name if line.product else None,
                'size_cm': line.size_cm,
                'fabric_id': line.fabric_id,
                'fabric_name': line.fabric.name if line.fabric else None,
                'quantity': line.quantity,
                'unit_price': float(line.unit_price),
                'line_total': float(line.line_total),
            }
            for line in order.lines
        ],
        'history': [
            {
                'status': entry.status.value,
                'reason': entry.reason,
                'user_id': entry.user_id,
                'created_at': entry.created_at.isoformat(),
            }
            for entry in order.history
        ],
        'messages': [message.to_dict() for message in order.messages],
    }
