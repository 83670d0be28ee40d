"""
Unit tests for notification templates and formatters.
"""

from datetime import datetime
from decimal import Decimal

from atelier.services.notification_service import TEMPLATES
from atelier.utils.formatters import money_ar_2, datetime_ar


PAYLOAD = {
    'order_id': 1,
    'code': 'PED-20260114-A1B2C3',
    'total': Decimal('12345.5'),
    'created_at': datetime(2026, 1, 14, 15, 30),
    'status': 'REJECTED',
    'status_label': 'Rechazado',
    'customer_name': 'Ana <Admin>',
    'customer_email': 'ana@test.com',
    'lines': [{
        'product_name': 'Sofá Lisboa',
        'size_cm': 200,
        'fabric_name': 'Linho Cru',
        'quantity': 2,
        'unit_price': Decimal('900.00'),
        'line_total': Decimal('1800.00'),
    }],
}


class TestFormatters:

    def test_money(self):
        assert money_ar_2(850) == '850,00'
        assert money_ar_2(Decimal('12345.5')) == '12.345,50'
        assert money_ar_2(None) == '-'

    def test_datetime(self):
        assert datetime_ar(datetime(2026, 1, 12, 15, 30)) == '12/01/2026 15:30'
        assert datetime_ar(datetime(2026, 1, 12, 15, 30), with_time=False) == '12/01/2026'
        assert datetime_ar(None) == '-'


class TestTemplates:

    def test_every_template_renders(self):
        for template_id, render in TEMPLATES.items():
            html = render(dict(PAYLOAD, reason='Sin stock'))
            assert PAYLOAD['code'] in html, template_id

    def test_order_placed_lists_lines_and_total(self):
        html = TEMPLATES['order_placed'](PAYLOAD)
        assert 'Sofá Lisboa' in html
        assert '1.800,00' in html
        assert '12.345,50' in html

    def test_user_text_is_escaped(self):
        html = TEMPLATES['order_rejected'](dict(PAYLOAD, reason='<script>x</script>'))
        assert '<script>' not in html
        assert '&lt;script&gt;' in html
        assert 'Ana &lt;Admin&gt;' in html

    def test_rejection_without_reason(self):
        html = TEMPLATES['order_rejected'](dict(PAYLOAD, reason=None))
        assert 'Sin motivo informado.' in html
