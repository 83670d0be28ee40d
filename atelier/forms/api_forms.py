"""
Forms for the JSON API.

Flask-WTF reads JSON bodies as form data; query strings are passed explicitly
as formdata. CSRF is off for these forms because the API is session-cookie
based and exempted in the app factory.
"""
from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField, TextAreaField, SelectField
from wtforms.validators import InputRequired, NumberRange, Length, Optional

from atelier.models import OrderStatus
from atelier.exceptions import ValidationError


class ApiForm(FlaskForm):
    """Base form for JSON payloads."""

    class Meta:
        csrf = False


def validate_form(form):
    """Validate a form or raise ValidationError with per-field messages."""
    if not form.validate():
        raise ValidationError(form.errors)
    return form


class PriceQueryForm(ApiForm):
    """Query string of GET /api/price."""

    product_id = IntegerField(
        'Producto',
        validators=[InputRequired(message='El producto es requerido'), NumberRange(min=1)]
    )
    size_cm = IntegerField(
        'Medida',
        validators=[InputRequired(message='La medida es requerida'),
                    NumberRange(min=1, message='La medida debe ser mayor a 0')]
    )
    fabric_id = IntegerField(
        'Tela',
        validators=[InputRequired(message='La tela es requerida'), NumberRange(min=1)]
    )


class AddCartLineForm(PriceQueryForm):
    """Payload of POST /api/cart/lines."""

    quantity = IntegerField(
        'Cantidad',
        validators=[Optional(), NumberRange(min=1, max=999, message='La cantidad debe estar entre 1 y 999')],
        default=1
    )


class UpdateCartLineForm(ApiForm):
    """Payload of PUT /api/cart/lines/<id>."""

    quantity = IntegerField(
        'Cantidad',
        validators=[InputRequired(message='La cantidad es requerida'),
                    NumberRange(min=1, max=999, message='La cantidad debe estar entre 1 y 999')]
    )


class CouponForm(ApiForm):
    code = StringField(
        'Cupón',
        validators=[InputRequired(message='El código es requerido'), Length(min=1, max=40)]
    )


class StatusChangeForm(ApiForm):
    """Payload of POST /api/admin/orders/<id>/status."""

    new_status = SelectField(
        'Estado',
        choices=[(s.value, s.value) for s in OrderStatus],
        validators=[InputRequired(message='El estado es requerido')]
    )
    reason = TextAreaField(
        'Motivo',
        validators=[Optional(), Length(max=1000)]
    )


class MessageForm(ApiForm):
    text = TextAreaField(
        'Mensaje',
        validators=[InputRequired(message='El mensaje es requerido'), Length(min=1, max=2000)]
    )


class OrderListForm(ApiForm):
    """Query string of GET /api/admin/orders."""

    page = IntegerField('Página', validators=[Optional(), NumberRange(min=1)], default=1)
    limit = IntegerField('Límite', validators=[Optional(), NumberRange(min=1, max=100)], default=20)
    sort = StringField('Orden', validators=[Optional(), Length(max=20)])
    q = StringField('Búsqueda', validators=[Optional(), Length(max=100)])
    status = StringField('Estado', validators=[Optional(), Length(max=30)])
    attention = StringField('Atención', validators=[Optional(), Length(max=5)])


class MarkViewedForm(ApiForm):
    """Payload of POST /api/my-orders/view; without order_id every order is marked."""

    order_id = IntegerField(
        'Pedido',
        validators=[Optional(), NumberRange(min=1, message='ID de pedido inválido')]
    )
