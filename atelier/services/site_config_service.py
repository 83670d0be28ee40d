"""
Site configuration snapshot service.

Pricing, reconciliation and checkout never read the SiteConfig row ad hoc:
they receive a SiteConfigSnapshot taken once per request.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, FrozenSet, Optional, Iterable, Any

from sqlalchemy.orm import Session

from atelier.models import SiteConfig, SITE_CONFIG_ID, PriceList, Product, AuditAction
from atelier.exceptions import ValidationError
from atelier.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

CACHE_MODULE = 'site_config'
CACHE_KEY = 'snapshot'


@dataclass(frozen=True)
class SiteConfigSnapshot:
    """Immutable view of the site configuration at a point in time."""
    current_price_list_id: Optional[int] = None
    # None means "no whitelist": every active product is sellable
    active_product_ids: Optional[FrozenSet[int]] = None
    featured_discounts: Dict[int, Decimal] = field(default_factory=dict)
    version: str = ''

    def is_whitelisted(self, product_id: int) -> bool:
        if self.active_product_ids is None:
            return True
        return product_id in self.active_product_ids

    def featured_discount(self, product_id: int) -> Decimal:
        return self.featured_discounts.get(product_id, Decimal('0'))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_price_list_id': self.current_price_list_id,
            'active_product_ids': sorted(self.active_product_ids) if self.active_product_ids is not None else [],
            'featured_discounts': {str(k): str(v) for k, v in self.featured_discounts.items()},
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SiteConfigSnapshot':
        active = data.get('active_product_ids') or []
        return cls(
            current_price_list_id=data.get('current_price_list_id'),
            active_product_ids=frozenset(int(pid) for pid in active) if active else None,
            featured_discounts={
                int(pid): Decimal(str(pct))
                for pid, pct in (data.get('featured_discounts') or {}).items()
            },
            version=data.get('version') or '',
        )


def get_or_create_site_config(session: Session) -> SiteConfig:
    """Get the singleton SiteConfig row, creating an empty one on first use."""
    config = session.get(SiteConfig, SITE_CONFIG_ID)
    if not config:
        config = SiteConfig(
            id=SITE_CONFIG_ID,
            current_price_list_id=None,
            active_product_ids=[],
            featured_discounts={},
            updated_at=utcnow()
        )
        session.add(config)
        session.flush()
    return config


def snapshot_from_config(config: SiteConfig) -> SiteConfigSnapshot:
    return SiteConfigSnapshot.from_dict({
        'current_price_list_id': config.current_price_list_id,
        'active_product_ids': config.active_product_ids,
        'featured_discounts': config.featured_discounts,
        'version': config.updated_at.isoformat() if config.updated_at else '',
    })


def load_snapshot(session: Session, use_cache: bool = True) -> SiteConfigSnapshot:
    """Load the current configuration snapshot (cache-aside through Redis)."""
    def _load():
        config = session.get(SiteConfig, SITE_CONFIG_ID)
        if not config:
            return SiteConfigSnapshot().to_dict()
        return snapshot_from_config(config).to_dict()

    if not use_cache:
        return SiteConfigSnapshot.from_dict(_load())

    from flask import current_app
    from atelier.services.cache_service import get_cache
    ttl = current_app.config.get('CACHE_SITE_CONFIG_TTL', 30)
    return SiteConfigSnapshot.from_dict(get_cache().memoize(CACHE_MODULE, CACHE_KEY, _load, ttl))


def invalidate_snapshot_cache() -> None:
    """Gracefully attempt to drop the cached snapshot."""
    try:
        from atelier.services.cache_service import get_cache
        get_cache().delete(CACHE_MODULE, CACHE_KEY)
    except RuntimeError as e:
        logger.warning(f"[CACHE] Could not invalidate site config snapshot: {e}")


def _parse_percent(field_name: str, raw) -> Decimal:
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({field_name: ['Porcentaje inválido']})
    if value < 0 or value >= 100:
        raise ValidationError({field_name: ['El porcentaje debe estar entre 0 y 100 (excluido)']})
    return value.quantize(Decimal('0.01'))


def _parse_product_ids(session: Session, raw: Iterable) -> list:
    try:
        ids = sorted({int(pid) for pid in raw})
    except (ValueError, TypeError):
        raise ValidationError({'active_product_ids': ['IDs de producto inválidos']})
    if ids:
        found = {pid for (pid,) in session.query(Product.id).filter(Product.id.in_(ids)).all()}
        missing = [pid for pid in ids if pid not in found]
        if missing:
            raise ValidationError({'active_product_ids': [f'Productos inexistentes: {missing}']})
    return ids


def _parse_price_list_id(session: Session, raw) -> Optional[int]:
    if raw is None:
        return None
    try:
        price_list_id = int(raw)
    except (ValueError, TypeError):
        raise ValidationError({'current_price_list_id': ['ID de lista inválido']})
    price_list = session.get(PriceList, price_list_id)
    if not price_list:
        raise ValidationError({'current_price_list_id': ['Lista de precios inexistente']})
    if not price_list.active:
        raise ValidationError({'current_price_list_id': ['La lista de precios no está activa']})
    return price_list_id


def _parse_featured_discounts(raw: Dict) -> Dict[str, str]:
    discounts = {}
    for pid, pct in (raw or {}).items():
        field_name = f'featured_discounts.{pid}'
        try:
            pid_int = int(pid)
        except (ValueError, TypeError):
            raise ValidationError({field_name: ['ID de producto inválido']})
        discounts[str(pid_int)] = str(_parse_percent(field_name, pct))
    return discounts


def update_site_config(session: Session, data: Dict[str, Any], user_id: Optional[int] = None) -> SiteConfigSnapshot:
    """
    Update the admin-curated configuration and bump its version.

    Only keys present in data are changed. Everything is validated before the
    row is touched. Commits and invalidates the cached snapshot.
    """
    changes = {}
    if 'current_price_list_id' in data:
        changes['current_price_list_id'] = _parse_price_list_id(session, data['current_price_list_id'])
    if 'active_product_ids' in data:
        changes['active_product_ids'] = _parse_product_ids(session, data['active_product_ids'] or [])
    if 'featured_discounts' in data:
        changes['featured_discounts'] = _parse_featured_discounts(data['featured_discounts'])

    try:
        config = get_or_create_site_config(session)
        for key, value in changes.items():
            setattr(config, key, value)
        config.updated_at = utcnow()

        from atelier.services.audit_service import log_action
        log_action(session, AuditAction.SITE_CONFIG_CHANGED, 'site_config', config.id,
                   details=changes, user_id=user_id)

        session.commit()
    except Exception:
        session.rollback()
        raise

    invalidate_snapshot_cache()
    logger.info(f"[CONFIG] Site config updated (version {config.updated_at.isoformat()}) by user {user_id}")
    return snapshot_from_config(config)


def current_snapshot() -> SiteConfigSnapshot:
    """Snapshot for the current request, loaded once and kept on g."""
    from flask import g
    from atelier.database import get_session
    if 'site_config_snapshot' not in g:
        g.site_config_snapshot = load_snapshot(get_session())
    return g.site_config_snapshot
