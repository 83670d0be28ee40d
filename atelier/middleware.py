"""Middleware for caller identity."""
from functools import wraps
from flask import session, g, current_app
from atelier.database import get_session
from atelier.models import AppUser
from atelier.exceptions import AuthenticationRequiredError


def load_identity():
    """
    Load current user into g (Flask's per-request global).

    Called before each request. Sets g.user, g.user_id and g.user_role when
    the session carries an active user.
    """
    g.user = None
    g.user_id = None
    g.user_role = None

    try:
        user_id = session.get('user_id')
        if user_id:
            db_session = get_session()
            if not db_session:
                return

            user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
            if user:
                g.user = user
                g.user_id = user.id
                g.user_role = user.role
            else:
                # Stale session for a deleted or deactivated user
                session.pop('user_id', None)
    except Exception as e:
        # Avoid crashing the whole app if context loading fails
        current_app.logger.error(f"Error in load_identity: {e}")


def require_login(f):
    """
    Decorator: Require user to be logged in.

    Answers 401 JSON through the AtelierError handler.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise AuthenticationRequiredError()
        return f(*args, **kwargs)
    return decorated_function
