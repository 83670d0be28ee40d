"""
Notification service for order e-mails.
Uses Flask-Mail for SMTP delivery; every dispatch is recorded in email_log.

Delivery is best effort: callers run after their transaction committed and a
failed notification is logged and counted, never raised.
"""
import logging
from html import escape
from typing import Any, Dict, Optional

from flask import current_app
from flask_mail import Mail, Message

from atelier.models import EmailLog, Order, STATUS_LABELS
from atelier.utils.formatters import money_ar_2, datetime_ar
from atelier.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

mail = Mail()

TEMPLATE_ORDER_PLACED = 'order_placed'
TEMPLATE_FACTORY_NEW_ORDER = 'factory_new_order'
TEMPLATE_STATUS_UPDATED = 'order_status_updated'
TEMPLATE_ORDER_REJECTED = 'order_rejected'

STATUS_SENT = 'sent'
STATUS_SKIPPED = 'skipped'
STATUS_FAILED = 'failed'


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents SMTP errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


# =====================================================
# TEMPLATES
# =====================================================

def _layout(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <style>
            body {{ font-family: Arial, sans-serif; color: #333; }}
            .container {{ max-width: 600px; margin: auto; padding: 20px; }}
            .header {{ background: #4a3f35; color: #fff; padding: 20px; text-align: center; }}
            .content {{ background: #fff; padding: 30px; }}
            table {{ width: 100%; border-collapse: collapse; }}
            td, th {{ padding: 6px; border-bottom: 1px solid #eee; text-align: left; }}
            .footer {{ color: #999; font-size: 12px; text-align: center; margin-top: 20px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header"><h1>{escape(title)}</h1></div>
            <div class="content">{body}</div>
            <div class="footer">Este es un email automático, por favor no respondas.</div>
        </div>
    </body>
    </html>
    """


def _lines_table(lines) -> str:
    rows = ''.join(
        f"<tr><td>{escape(str(line['product_name']))}</td><td>{line['size_cm']} cm</td>"
        f"<td>{escape(str(line['fabric_name']))}</td><td>{line['quantity']}</td>"
        f"<td>$ {money_ar_2(line['line_total'])}</td></tr>"
        for line in lines
    )
    return (
        "<table><tr><th>Producto</th><th>Medida</th><th>Tela</th><th>Cant.</th><th>Total</th></tr>"
        f"{rows}</table>"
    )


def _render_order_placed(payload: Dict[str, Any]) -> str:
    body = (
        f"<p>Hola <strong>{escape(payload.get('customer_name') or '')}</strong>,</p>"
        f"<p>Recibimos tu pedido <strong>{payload['code']}</strong> el {datetime_ar(payload.get('created_at'))}.</p>"
        f"{_lines_table(payload.get('lines', []))}"
        f"<p><strong>Total: $ {money_ar_2(payload['total'])}</strong></p>"
        "<p>Te avisaremos cada vez que cambie el estado de tu pedido.</p>"
    )
    return _layout('¡Gracias por tu pedido!', body)


def _render_factory_new_order(payload: Dict[str, Any]) -> str:
    body = (
        f"<p>Nuevo pedido <strong>{payload['code']}</strong> de "
        f"{escape(payload.get('customer_email') or '')}.</p>"
        f"{_lines_table(payload.get('lines', []))}"
        f"<p><strong>Total: $ {money_ar_2(payload['total'])}</strong></p>"
    )
    return _layout('Nuevo pedido', body)


def _render_status_updated(payload: Dict[str, Any]) -> str:
    body = (
        f"<p>Hola <strong>{escape(payload.get('customer_name') or '')}</strong>,</p>"
        f"<p>Tu pedido <strong>{payload['code']}</strong> cambió de estado: "
        f"<strong>{escape(payload['status_label'])}</strong>.</p>"
    )
    return _layout('Actualización de tu pedido', body)


def _render_order_rejected(payload: Dict[str, Any]) -> str:
    reason = payload.get('reason') or 'Sin motivo informado.'
    body = (
        f"<p>Hola <strong>{escape(payload.get('customer_name') or '')}</strong>,</p>"
        f"<p>Lamentablemente tu pedido <strong>{payload['code']}</strong> fue rechazado.</p>"
        f"<p><strong>Motivo:</strong> {escape(reason)}</p>"
        "<p>Si tenés dudas podés escribirnos desde el detalle del pedido.</p>"
    )
    return _layout('Pedido rechazado', body)


TEMPLATES = {
    TEMPLATE_ORDER_PLACED: _render_order_placed,
    TEMPLATE_FACTORY_NEW_ORDER: _render_factory_new_order,
    TEMPLATE_STATUS_UPDATED: _render_status_updated,
    TEMPLATE_ORDER_REJECTED: _render_order_rejected,
}


# =====================================================
# DISPATCH
# =====================================================

def _log_email(session, recipient: str, subject: str, template_id: str, status: str,
               error: Optional[str] = None) -> None:
    try:
        session.add(EmailLog(
            recipient=recipient,
            subject=subject[:255],
            template=template_id,
            status=status,
            error=error,
            created_at=utcnow()
        ))
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"[EMAIL] Failed to write email log for {recipient}: {e}")


def _count_failure(template_id: str) -> None:
    from atelier.blueprints.metrics import notification_failures_total, record
    record(notification_failures_total, template=template_id)


def dispatch(recipient: str, subject: str, template_id: str, payload: Dict[str, Any],
             session=None) -> bool:
    """
    Render and send one notification.

    Returns True when sent (or skipped because mail is disabled), False on failure.
    Never raises.
    """
    if session is None:
        from atelier.database import get_session
        session = get_session()

    if not recipient:
        logger.warning(f"[EMAIL] No recipient for {template_id}, skipped")
        return False

    try:
        html = TEMPLATES[template_id](payload)

        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] {template_id} skipped for {recipient}")
            _log_email(session, recipient, subject, template_id, STATUS_SKIPPED)
            return True

        msg = Message(subject=subject, recipients=[recipient], html=html)
        mail.send(msg)
        logger.info(f"[EMAIL] ✓ {template_id} sent to {recipient}")
        _log_email(session, recipient, subject, template_id, STATUS_SENT)
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] ✗ Failed to send {template_id} to {recipient}: {e}")
        _count_failure(template_id)
        _log_email(session, recipient, subject, template_id, STATUS_FAILED, str(e)[:1000])
        return False


# =====================================================
# ORDER NOTIFICATIONS
# =====================================================

def _order_payload(order: Order) -> Dict[str, Any]:
    customer = order.customer
    return {
        'order_id': order.id,
        'code': order.code,
        'total': order.total,
        'created_at': order.created_at,
        'status': order.status.value,
        'status_label': STATUS_LABELS[order.status],
        'customer_name': customer.full_name or customer.email,
        'customer_email': customer.email,
        'lines': [
            {
                'product_name': line.product.name if line.product else line.product_id,
                'size_cm': line.size_cm,
                'fabric_name': line.fabric.name if line.fabric else line.fabric_id,
                'quantity': line.quantity,
                'unit_price': line.unit_price,
                'line_total': line.line_total,
            }
            for line in order.lines
        ],
    }


def notify_order_placed(session, order: Order) -> bool:
    """Order confirmation to the customer."""
    payload = _order_payload(order)
    return dispatch(payload['customer_email'], f"Pedido {order.code} recibido",
                    TEMPLATE_ORDER_PLACED, payload, session=session)


def notify_factory_new_order(session, order: Order) -> bool:
    """New-order alert to the fulfillment inbox."""
    recipient = current_app.config.get('FULFILLMENT_EMAIL')
    return dispatch(recipient, f"Nuevo pedido {order.code}",
                    TEMPLATE_FACTORY_NEW_ORDER, _order_payload(order), session=session)


def notify_status_updated(session, order: Order) -> bool:
    payload = _order_payload(order)
    return dispatch(payload['customer_email'], f"Pedido {order.code}: {payload['status_label']}",
                    TEMPLATE_STATUS_UPDATED, payload, session=session)


def notify_order_rejected(session, order: Order, reason: Optional[str]) -> bool:
    payload = _order_payload(order)
    payload['reason'] = reason
    return dispatch(payload['customer_email'], f"Pedido {order.code} rechazado",
                    TEMPLATE_ORDER_REJECTED, payload, session=session)
