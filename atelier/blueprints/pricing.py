"""Pricing blueprint - public price lookups for the storefront."""
from flask import Blueprint, request, jsonify, current_app
from atelier.database import get_session
from atelier.exceptions import ValidationError
from atelier.forms.api_forms import PriceQueryForm, validate_form
from atelier.services.pricing_service import quote_price, price_summaries
from atelier.services.site_config_service import current_snapshot
from atelier.services.stock_service import express_options

pricing_bp = Blueprint('pricing', __name__, url_prefix='/api')

MAX_SUMMARY_PRODUCTS = 100


@pricing_bp.route('/price', methods=['GET'])
def price():
    """Effective price of a (product, size, fabric) combination."""
    form = validate_form(PriceQueryForm(formdata=request.args))
    quote = quote_price(
        get_session(),
        form.product_id.data,
        form.size_cm.data,
        form.fabric_id.data,
        current_snapshot()
    )
    return jsonify(quote.to_dict())


@pricing_bp.route('/prices/summary', methods=['GET'])
def prices_summary():
    """Minimum price and maximum discount per product, for catalog cards."""
    raw = request.args.get('product_ids', '').strip()
    try:
        product_ids = [int(pid) for pid in raw.split(',') if pid.strip()]
    except ValueError:
        raise ValidationError({'product_ids': ['Lista de IDs inválida']})
    if len(product_ids) > MAX_SUMMARY_PRODUCTS:
        raise ValidationError({'product_ids': [f'Máximo {MAX_SUMMARY_PRODUCTS} productos por consulta']})

    summaries = price_summaries(get_session(), product_ids, current_snapshot())
    current_app.logger.debug(f"[PRICING] Summary for {len(product_ids)} products, {len(summaries)} priced")

    return jsonify({
        str(product_id): {
            'min_price': float(summary['min_price']),
            'min_effective_price': float(summary['min_effective_price']),
            'max_discount_percent': float(summary['max_discount_percent']),
        }
        for product_id, summary in summaries.items()
    })


@pricing_bp.route('/products/<int:product_id>/express-options', methods=['GET'])
def product_express_options(product_id):
    """(size, fabric) combinations with finished pieces on hand."""
    return jsonify({'product_id': product_id, 'options': express_options(get_session(), product_id)})
