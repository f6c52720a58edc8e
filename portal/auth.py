"""Principal guards for admin and driver routes.

Each guarded view resolves the caller to exactly one principal and exposes
the decoded claims as ``g.principal``. Property managers never pass through
these guards; their capability tokens are resolved by
``portal.services.portal_data``.
"""
import logging
from functools import wraps
from flask import request, g, current_app
from shared.enums import PrincipalType
from .services.tokens import decode_token, extract_bearer_token, TokenError
from .utils import api_error

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGES = {
    PrincipalType.ADMIN: 'Invalid or expired admin token',
    PrincipalType.DRIVER: 'Invalid or expired driver token',
}


def authenticate(*allowed):
    """Resolve the bearer token to claims for one of the allowed principal types.

    Returns:
        tuple: (claims, None) on success, or (None, error_response)
    """
    secret = current_app.config.get('JWT_SECRET')
    if not secret:
        return None, api_error('Server configuration error', 500, 'error',
                               details={'reason': 'JWT_SECRET not configured'})

    token = extract_bearer_token(request.headers.get('Authorization'))
    if not token:
        return None, api_error('No authorization token provided', 401)

    # With more than one allowed role the invalid-token message stays generic
    invalid_message = INVALID_TOKEN_MESSAGES[allowed[0]] if len(allowed) == 1 else 'Invalid or expired token'
    try:
        claims = decode_token(token, secret)
    except TokenError:
        return None, api_error(invalid_message, 401)

    if claims.get('type') not in {p.value for p in allowed}:
        logger.warning(f"Token role mismatch on {request.path}: {claims.get('type')!r}")
        return None, api_error('Forbidden', 403)

    return claims, None


def require_principal(*allowed):
    """Decorator factory guarding a view with signed-token authentication."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            claims, error = authenticate(*allowed)
            if error is not None:
                return error
            g.principal = claims
            return view(*args, **kwargs)
        return wrapped
    return decorator


admin_required = require_principal(PrincipalType.ADMIN)
driver_required = require_principal(PrincipalType.DRIVER)
admin_or_driver_required = require_principal(PrincipalType.ADMIN, PrincipalType.DRIVER)


def current_principal_type():
    return PrincipalType(g.principal['type'])


def current_driver_id():
    return g.principal.get('driverId')
