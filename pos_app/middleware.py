"""Middleware for business and actor context."""
from functools import wraps
from flask import g, request, jsonify, current_app
from pos_app.context import PosContext


def _header_int(name):
    value = request.headers.get(name)
    if value is None or not value.strip().isdigit():
        return None
    return int(value)


def load_pos_context():
    """
    Load the current business and acting employee into g.

    Called before each request. The caller identifies itself with the
    ``X-Business-Id`` and ``X-Actor-Id`` headers; services receive the
    resulting PosContext explicitly.
    """
    g.pos_context = PosContext(
        business_id=_header_int('X-Business-Id'),
        actor_id=_header_int('X-Actor-Id'),
    )
    if request.headers.get('X-Business-Id') and g.pos_context.business_id is None:
        current_app.logger.warning(f"Ignoring malformed X-Business-Id header on {request.path}")


def current_context() -> PosContext:
    return g.get('pos_context') or PosContext()


def require_business(f):
    """
    Decorator: Require a business context.

    Returns 400 JSON when no business id was supplied.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_context().business_id is None:
            return jsonify({'status': 'error', 'message': 'X-Business-Id header is required'}), 400
        return f(*args, **kwargs)
    return decorated_function


def require_actor(f):
    """Decorator: Require both business and acting employee."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_context().is_complete:
            return jsonify({'status': 'error', 'message': 'X-Business-Id and X-Actor-Id headers are required'}), 400
        return f(*args, **kwargs)
    return decorated_function
