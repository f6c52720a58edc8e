"""Admin password login, exchanged for an 8-hour admin session token."""
from flask import Blueprint, jsonify, current_app
import hmac
import logging
from shared.validation import ValidationError
from ..services.tokens import create_admin_token
from ..utils import api_error, get_json_body, get_client_ip, get_service

bp = Blueprint('admin_auth', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

PASSWORD_MAX_LENGTH = 256


@bp.route('/admin/auth', methods=['POST'])
def admin_login():
    """Check the admin password and return a signed admin token."""
    client_ip = get_client_ip()
    limiter = get_service('login_limiter')
    remaining = None
    if limiter is not None:
        allowed, remaining, retry_after = limiter.check(client_ip)
        if not allowed:
            logger.warning(f"Admin login rate limit hit for {client_ip}")
            response, status = api_error('Too many login attempts. Please try again later.', 429,
                                         retryAfter=retry_after)
            response.headers['Retry-After'] = str(retry_after)
            return response, status

    admin_password = current_app.config.get('ADMIN_PASSWORD')
    secret = current_app.config.get('JWT_SECRET')
    if not admin_password or not secret:
        return api_error('Service not configured', 500, 'error',
                         details={'reason': 'ADMIN_PASSWORD or JWT_SECRET missing'})

    try:
        data = get_json_body()
    except ValidationError as e:
        return api_error(str(e), 400)

    password = data.get('password')
    if not isinstance(password, str) or not password:
        return api_error('Password is required', 400)
    if len(password) > PASSWORD_MAX_LENGTH:
        return api_error('Invalid password', 400)

    if not hmac.compare_digest(password.encode('utf-8'), admin_password.encode('utf-8')):
        logger.warning(f"Failed admin login from {client_ip}")
        return api_error('Invalid credentials', 401)

    logger.info(f"Admin login from {client_ip}")
    response = jsonify({
        'success': True,
        'token': create_admin_token(secret),
        'expiresIn': '8h',
    })
    if remaining is not None:
        response.headers['X-RateLimit-Remaining'] = str(remaining)
    return response
