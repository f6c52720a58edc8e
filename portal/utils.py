"""Request helpers shared by the portal blueprints."""
from datetime import date, datetime
from flask import jsonify, request, current_app
from sqlalchemy import inspect
from shared.validation import ValidationError
import logging


logger = logging.getLogger(__name__)


def api_error(message, status_code=400, log_level='warning', details=None, **extra):
    """
    Standardized API error response with consistent logging.

    Args:
        message (str): Error message for the client
        status_code (int): HTTP status code
        log_level (str): Logging level ('debug', 'info', 'warning', 'error', 'critical')
        details (dict, optional): Additional details for logging only
        **extra: Additional keys merged into the JSON body

    Returns:
        Flask response: JSON error response
    """
    log_func = getattr(logger, log_level, logger.warning)
    if details:
        log_func(f"API Error ({status_code}): {message} - Details: {details}")
    else:
        log_func(f"API Error ({status_code}): {message}")

    body = {'error': message}
    body.update(extra)
    return jsonify(body), status_code


def handle_api_exception(e, operation="operation", status_code=500, expose=False):
    """
    Handle exceptions in API endpoints with consistent logging and responses.

    Args:
        e (Exception): The exception that occurred
        operation (str): Description of the operation being performed
        status_code (int): HTTP status code to return
        expose (bool): Pass the exception text through to the client

    Returns:
        Flask response: JSON error response
    """
    logger.error(f"Exception during {operation}: {str(e)}", exc_info=True)
    message = str(e) if expose and str(e) else f"Failed to {operation}"
    return api_error(message, status_code, 'error')


def get_json_body():
    """Return the request JSON object.

    Raises:
        ValidationError: If the body is missing, malformed, or not an object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Invalid JSON body')
    return data


def get_client_ip():
    """First X-Forwarded-For hop, then X-Real-IP, then the socket address."""
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.headers.get('X-Real-IP') or request.remote_addr or 'unknown'


def get_service(name):
    """Return an injected client from app.extensions, or None when not configured."""
    return current_app.extensions.get(name)


def serialize_value(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def row_to_dict(resource):
    """
    Convert a model instance to a dict keyed by column name.

    Column names are used rather than attribute keys so that renamed
    attributes (activity_log.metadata) serialize under their table name.
    """
    if resource is None:
        return None
    mapper = inspect(resource).mapper
    return {
        prop.columns[0].name: serialize_value(getattr(resource, prop.key))
        for prop in mapper.column_attrs
    }
