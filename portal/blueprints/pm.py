"""Property-manager portal: the token-scoped aggregate and the message thread.

The path token is the only credential. Every route re-resolves it to a
manager row and derives the manager id from that row.
"""
from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError
import logging
from shared.enums import MessageSender
from shared.models import now
from shared.schemas import PMMessageCreate, validate_payload
from shared.validation import ValidationError
from ..models import db, PmMessage
from ..services.portal_data import resolve_property_manager, fetch_projects_by_pm_token
from ..utils import api_error, get_json_body, handle_api_exception, row_to_dict

bp = Blueprint('pm', __name__, url_prefix='/api/pm')
logger = logging.getLogger(__name__)


@bp.route('/<token>', methods=['GET'])
def get_portal(token):
    """Return every active project reachable from a manager's token."""
    try:
        portal = fetch_projects_by_pm_token(token)
    except SQLAlchemyError as e:
        db.session.rollback()
        return handle_api_exception(e, 'load portal')

    if portal is None or not portal.projects:
        return api_error('Portal not found', 404, 'info')
    return jsonify(portal.to_json())


@bp.route('/<token>/messages', methods=['GET'])
def list_messages(token):
    manager = resolve_property_manager(token)
    if manager is None:
        return api_error('Portal not found', 404, 'info')

    messages = db.session.query(PmMessage).filter_by(pm_id=manager.id).order_by(PmMessage.created_at.asc()).all()
    return jsonify({'messages': [row_to_dict(m) for m in messages]})


@bp.route('/<token>/messages', methods=['POST'])
def post_message(token):
    """Store a message from the manager; pm_id comes from the token, never the body."""
    manager = resolve_property_manager(token)
    if manager is None:
        return api_error('Portal not found', 404, 'info')

    try:
        payload = validate_payload(PMMessageCreate, get_json_body())
    except ValidationError as e:
        return api_error(str(e), 400)

    message = PmMessage(
        pm_id=manager.id,
        sender=MessageSender.PM.value,
        sender_name=manager.name,
        message=payload.message,
    )
    try:
        db.session.add(message)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        return handle_api_exception(e, 'send message')

    logger.info(f"Message {message.id} posted by manager {manager.id}")
    return jsonify({'message': row_to_dict(message)}), 201


@bp.route('/<token>/messages/read', methods=['POST'])
def mark_read(token):
    """Mark the admin's unread messages to this manager as read."""
    manager = resolve_property_manager(token)
    if manager is None:
        return api_error('Portal not found', 404, 'info')

    try:
        updated = db.session.query(PmMessage).filter(
            PmMessage.pm_id == manager.id,
            PmMessage.sender == MessageSender.ADMIN.value,
            PmMessage.read_at.is_(None),
        ).update({PmMessage.read_at: now()}, synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        return handle_api_exception(e, 'mark messages read')

    return jsonify({'success': True, 'updated': updated})
