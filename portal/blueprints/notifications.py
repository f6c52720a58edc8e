"""Outbound messaging: CRM contact sync, portal links by SMS and delivery emails."""
from flask import Blueprint, jsonify, current_app
from urllib.parse import urlparse
import logging
from shared.schemas import DeliveryNotificationRequest, validate_payload
from shared.validation import Validator, ValidationError
from ..auth import admin_required
from ..models import db, Project
from ..services.highlevel import HighLevelError
from ..services.mailgun import MailgunError
from ..services.notifications import send_delivery_notification
from ..utils import api_error, get_json_body, get_client_ip, get_service

bp = Blueprint('notifications', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)


def validated_phone_and_url(phone, url, url_label):
    """Return the normalized 10-digit phone, raising on bad phone or URL."""
    if not Validator.is_non_empty_string(phone):
        raise ValidationError('Phone number is required')
    if not Validator.is_non_empty_string(url):
        raise ValidationError(f'{url_label} is required')
    formatted = Validator.normalize_phone(phone)
    if not formatted:
        raise ValidationError('Invalid phone number format (10 digits required)')
    if not Validator.is_valid_url(url):
        raise ValidationError('Invalid URL format')
    return formatted


@bp.route('/sync-contact', methods=['POST'])
@admin_required
def sync_contact():
    """Create or update the CRM contact for a property manager."""
    highlevel = get_service('highlevel')
    if highlevel is None:
        return api_error('HighLevel not configured', 500, 'error')

    try:
        data = get_json_body()
        name = data.get('name')
        email = data.get('email')
        phone = data.get('phone')
        if not Validator.is_non_empty_string(name):
            raise ValidationError('Name is required')
        if not Validator.is_valid_email(email):
            raise ValidationError('Valid email is required')
        if phone and not Validator.normalize_phone(phone):
            raise ValidationError('Invalid phone number format')
    except ValidationError as e:
        return api_error(str(e), 400)

    try:
        contact_id = highlevel.sync_contact(name.strip(), email.strip(), phone)
    except HighLevelError as e:
        return api_error(str(e), 500, 'error')

    return jsonify({'success': True, 'contactId': contact_id})


@bp.route('/notifications/sms', methods=['POST'])
@admin_required
def send_sms():
    """Text a portal link to a phone number on the admin's behalf."""
    highlevel = get_service('highlevel')
    if highlevel is None:
        return api_error('SMS service not configured', 500, 'error')

    try:
        data = get_json_body()
        phone = validated_phone_and_url(data.get('phone'), data.get('url'), 'URL')
    except ValidationError as e:
        return api_error(str(e), 400)

    try:
        message_id = highlevel.send_portal_link(phone, data['url'])
    except HighLevelError as e:
        return api_error(str(e), 500, 'error')

    logger.info(f"Portal link sent by SMS, message {message_id}")
    return jsonify({'success': True, 'messageId': message_id})


@bp.route('/request-link', methods=['POST'])
def request_link():
    """Public endpoint: a visitor asks for their project link by SMS."""
    client_ip = get_client_ip()
    limiter = get_service('link_limiter')
    if limiter is not None:
        allowed, _, retry_after = limiter.check(client_ip)
        if not allowed:
            logger.warning(f"Request-link rate limit hit for {client_ip}")
            response, status = api_error('Too many requests. Please try again later.', 429,
                                         retryAfter=retry_after)
            response.headers['Retry-After'] = str(retry_after)
            return response, status

    highlevel = get_service('highlevel')
    if highlevel is None:
        return api_error('SMS service not configured', 500, 'error')

    try:
        data = get_json_body()
        project_url = data.get('projectUrl')
        phone = validated_phone_and_url(data.get('phone'), project_url, 'Project URL')
        allowed_hosts = current_app.config['REQUEST_LINK_ALLOWED_HOSTS']
        if urlparse(project_url).hostname not in allowed_hosts:
            raise ValidationError('Invalid project URL')
    except ValidationError as e:
        return api_error(str(e), 400)

    try:
        highlevel.send_portal_link(phone, project_url)
    except HighLevelError as e:
        # Upstream detail stays in the log for this public route
        return api_error('Failed to send SMS', 500, 'error', details={'reason': str(e)})

    return jsonify({'success': True})


@bp.route('/notifications/delivery', methods=['POST'])
@admin_required
def delivery_notification():
    """Email the project's contact that equipment has shipped."""
    mailgun = get_service('mailgun')
    if mailgun is None:
        return api_error('Mailgun API key not configured', 500, 'error')

    try:
        payload = validate_payload(DeliveryNotificationRequest, get_json_body())
    except ValidationError as e:
        return api_error(str(e), 400)

    project = db.session.get(Project, payload.project_id)
    if project is None:
        return api_error('Project not found', 404)

    try:
        recipient = send_delivery_notification(mailgun, project, payload.delivery)
    except MailgunError as e:
        return api_error(str(e), 500, 'error')

    if recipient is None:
        return api_error('No recipient email found for this project', 400)

    return jsonify({
        'success': True,
        'to': recipient,
        'equipment': payload.delivery.equipment,
    })
