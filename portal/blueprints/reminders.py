"""Scheduled reminder job, triggered by the cron secret or an admin token."""
from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy.exc import SQLAlchemyError
import hmac
import logging
from shared.enums import PrincipalType
from shared.models import now
from ..auth import authenticate
from ..models import db
from ..services.notifications import send_due_reminders
from ..utils import api_error, get_service, handle_api_exception

bp = Blueprint('reminders', __name__, url_prefix='/api/cron')
logger = logging.getLogger(__name__)


def cron_secret_matches(presented):
    expected = current_app.config.get('CRON_SECRET')
    if not expected or not presented:
        return False
    return hmac.compare_digest(presented.encode('utf-8'), expected.encode('utf-8'))


@bp.route('/send-reminders', methods=['GET'])
def send_reminders():
    """Email property managers who still have open portal tasks."""
    if not cron_secret_matches(request.headers.get('X-Cron-Secret')):
        claims, error = authenticate(PrincipalType.ADMIN)
        if error is not None:
            return api_error('Unauthorized', 401)
        g.principal = claims

    mailgun = get_service('mailgun')
    if mailgun is None:
        return api_error('Mailgun API key not configured', 500, 'error')

    force = request.args.get('force') == 'true'
    project_id = request.args.get('projectId')

    try:
        results = send_due_reminders(mailgun, force=force, project_id=project_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        return handle_api_exception(e, 'send reminders', expose=True)

    return jsonify({
        'success': True,
        'timestamp': now().isoformat(),
        'results': results,
    })
