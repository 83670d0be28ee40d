"""Backoffice site configuration blueprint (admins only)."""
from flask import Blueprint, request, jsonify, g
from atelier.database import get_session
from atelier.decorators.permissions import require_role
from atelier.exceptions import ValidationError
from atelier.models import UserRole
from atelier.services.site_config_service import load_snapshot, update_site_config

admin_config_bp = Blueprint('admin_config', __name__, url_prefix='/api/admin/site-config')

EDITABLE_KEYS = ('current_price_list_id', 'active_product_ids', 'featured_discounts')


@admin_config_bp.route('', methods=['GET'])
@require_role(UserRole.ADMIN.value)
def site_config_show():
    snapshot = load_snapshot(get_session(), use_cache=False)
    return jsonify(snapshot.to_dict())


@admin_config_bp.route('', methods=['PUT'])
@require_role(UserRole.ADMIN.value)
def site_config_update():
    """Partial update: only the keys present in the body change."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError({'body': ['Se esperaba un objeto JSON']})

    unknown = [key for key in payload if key not in EDITABLE_KEYS]
    if unknown:
        raise ValidationError({key: ['Campo no editable'] for key in unknown})

    if 'active_product_ids' in payload and not isinstance(payload['active_product_ids'], (list, type(None))):
        raise ValidationError({'active_product_ids': ['Se esperaba una lista']})
    if 'featured_discounts' in payload and not isinstance(payload['featured_discounts'], (dict, type(None))):
        raise ValidationError({'featured_discounts': ['Se esperaba un objeto']})

    snapshot = update_site_config(get_session(), {key: payload[key] for key in payload}, user_id=g.user_id)
    return jsonify(snapshot.to_dict())
