"""Mailgun tracking webhook."""
from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import SQLAlchemyError
import hashlib
import hmac
import logging
from shared.enums import ActivityAction, ActorType
from ..models import db
from ..services.portal_data import record_activity
from ..utils import api_error, handle_api_exception

bp = Blueprint('webhooks', __name__, url_prefix='/api/webhooks')
logger = logging.getLogger(__name__)

TRACKED_EVENTS = {
    'opened': (ActivityAction.EMAIL_OPENED, 'Email opened by {recipient}'),
    'clicked': (ActivityAction.EMAIL_CLICKED, 'Email link clicked by {recipient}'),
}


def verify_mailgun_signature(signing_key, timestamp, token, signature):
    """HMAC-SHA256(key, timestamp + token) as hex, compared in constant time."""
    if not all(isinstance(v, str) and v for v in (timestamp, token, signature)):
        return False
    expected = hmac.new(
        signing_key.encode('utf-8'),
        f"{timestamp}{token}".encode('utf-8'),
        hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(expected, signature)


@bp.route('/mailgun', methods=['POST'])
def mailgun_webhook():
    """Record email opens and clicks against the project they were sent for."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return api_error('Invalid JSON body', 400)

    signing_key = current_app.config.get('MAILGUN_WEBHOOK_SIGNING_KEY')
    if signing_key:
        signature = payload.get('signature')
        if not isinstance(signature, dict) or not verify_mailgun_signature(
            signing_key, signature.get('timestamp'), signature.get('token'), signature.get('signature')
        ):
            return api_error('Invalid signature', 401)
    else:
        logger.warning("MAILGUN_WEBHOOK_SIGNING_KEY not set; accepting unsigned webhook")

    event_data = payload.get('event-data')
    if not isinstance(event_data, dict) or not event_data:
        return api_error('No event data', 400)

    event = event_data.get('event')
    recipient = event_data.get('recipient')
    user_variables = event_data.get('user-variables') or {}
    project_id = user_variables.get('project_id') if isinstance(user_variables, dict) else None

    logger.info(f"Mailgun event {event} for project {project_id}")

    tracked = TRACKED_EVENTS.get(event)
    if tracked:
        action, template = tracked
        try:
            record_activity(
                action.value,
                template.format(recipient=recipient),
                ActorType.SYSTEM.value,
                project_id=project_id,
                metadata={'event': event, 'recipient': recipient},
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            return handle_api_exception(e, 'record email event')

    return jsonify({'success': True})
