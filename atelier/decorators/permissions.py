"""
Permission decorators for role-based access control.
Extends require_login with role checks.
"""

from functools import wraps
from flask import g, current_app, request

from atelier.exceptions import AuthenticationRequiredError, UnauthorizedError
from atelier.models import STAFF_ROLES


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('STAFF', 'ADMIN')
        @require_role('ADMIN')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Must be logged in
            if not g.get('user'):
                raise AuthenticationRequiredError()

            user_role = g.get('user_role')
            if not user_role or user_role not in allowed_roles:
                current_app.logger.warning(
                    f"Forbidden: user {g.user.id} ({user_role}) on {request.endpoint}"
                )
                raise UnauthorizedError('No tienes permisos para acceder a esta función.')

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_staff(f):
    """Shortcut for require_role(STAFF, ADMIN)."""
    return require_role(*STAFF_ROLES)(f)
