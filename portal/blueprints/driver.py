"""Driver access-code exchange and temperature logging."""
from flask import Blueprint, jsonify, current_app
from datetime import timedelta
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
import logging
from shared.enums import TempLogStatus, TempLogEntryType
from shared.models import today, ensure_aware
from shared.validation import Validator, ValidationError
from ..auth import driver_required, current_driver_id
from ..models import db, Driver, TempLogSession, TempLogEntry
from ..services.tokens import create_driver_token
from ..utils import api_error, get_json_body, row_to_dict

bp = Blueprint('driver', __name__, url_prefix='/api/driver')
logger = logging.getLogger(__name__)

HISTORY_DAYS = 30


@bp.route('/auth', methods=['POST'])
def driver_auth():
    """Exchange a driver access code for a 4-hour driver token."""
    secret = current_app.config.get('JWT_SECRET')
    if not secret:
        return api_error('Server configuration error', 500, 'error',
                         details={'reason': 'JWT_SECRET not configured'})

    try:
        data = get_json_body()
        code = Validator.normalize_access_code(data.get('accessToken'))
    except ValidationError as e:
        return api_error(str(e), 400)

    try:
        driver = db.session.query(Driver).filter_by(access_token=code).first()
    except SQLAlchemyError as e:
        logger.error(f"Driver lookup failed: {e}", exc_info=True)
        db.session.rollback()
        return api_error('Authentication failed', 500, 'error')

    if driver is None:
        logger.info(f"Driver auth failed for code {code[:4]}...")
        return api_error('Invalid access token', 401)
    if not driver.is_active:
        logger.info(f"Inactive driver {driver.id} attempted login")
        return api_error('Driver account is inactive', 401)

    logger.info(f"Driver {driver.id} authenticated")
    return jsonify({
        'token': create_driver_token(secret, driver.id, driver.email),
        'driver': {'id': driver.id, 'name': driver.name},
    })


# ---------------------------------------------------------------------------
# Temperature log
# ---------------------------------------------------------------------------

def session_dict(session, with_entries=False):
    result = row_to_dict(session)
    if with_entries:
        entries = sorted(session.entries, key=lambda e: ensure_aware(e.timestamp))
        result['entries'] = [row_to_dict(e) for e in entries]
    return result


def owned_session(session_id, driver_id):
    session = db.session.get(TempLogSession, session_id) if session_id else None
    if session is None or session.driver_id != driver_id:
        return None
    return session


def owned_entry(entry_id, driver_id):
    entry = db.session.get(TempLogEntry, entry_id)
    if entry is None or entry.session.driver_id != driver_id:
        return None
    return entry


def parse_temperature(value):
    if isinstance(value, bool):
        raise ValidationError('temperature must be a number')
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError('temperature must be a number')


def get_active_session(driver_id, data, record_id):
    session = db.session.query(TempLogSession).filter_by(
        driver_id=driver_id, status=TempLogStatus.IN_PROGRESS.value
    ).order_by(TempLogSession.created_at.desc()).first()
    return jsonify({'session': session_dict(session, with_entries=True) if session else None})


def create_session(driver_id, data, record_id):
    session = TempLogSession(
        driver_id=driver_id,
        vehicle_id=data.get('vehicleId') or None,
        notes=data.get('notes') or None,
        status=TempLogStatus.IN_PROGRESS.value,
    )
    db.session.add(session)
    db.session.commit()
    logger.info(f"Temp log session {session.id} created by driver {driver_id}")
    return jsonify({'session': session_dict(session)}), 201


def complete_session(driver_id, data, record_id):
    if not record_id:
        return api_error('Session ID required', 400)
    session = owned_session(record_id, driver_id)
    if session is None:
        return api_error('Not authorized to modify this session', 403)

    session.status = TempLogStatus.COMPLETED.value
    db.session.commit()
    logger.info(f"Temp log session {session.id} completed")
    return jsonify({'session': session_dict(session)})


def get_session_history(driver_id, data, record_id):
    cutoff = today() - timedelta(days=HISTORY_DAYS)
    counts = db.session.query(
        TempLogEntry.session_id, func.count(TempLogEntry.id).label('entry_count')
    ).group_by(TempLogEntry.session_id).subquery()

    rows = db.session.query(TempLogSession, counts.c.entry_count).outerjoin(
        counts, counts.c.session_id == TempLogSession.id
    ).filter(
        TempLogSession.driver_id == driver_id,
        TempLogSession.session_date >= cutoff,
    ).order_by(TempLogSession.created_at.desc()).all()

    sessions = []
    for session, entry_count in rows:
        item = session_dict(session)
        item['entry_count'] = entry_count or 0
        sessions.append(item)
    return jsonify({'sessions': sessions})


def add_entry(driver_id, data, record_id):
    session_id = data.get('sessionId')
    entry_type = data.get('entryType')
    temperature = data.get('temperature')

    if not session_id or not entry_type or temperature is None:
        return api_error('sessionId, entryType, and temperature are required', 400)
    if entry_type not in (TempLogEntryType.PICKUP.value, TempLogEntryType.DELIVERY.value):
        return api_error('entryType must be pickup or delivery', 400)
    temperature = parse_temperature(temperature)

    session = owned_session(session_id, driver_id)
    if session is None:
        return api_error('Not authorized to add entries to this session', 403)
    if session.status != TempLogStatus.IN_PROGRESS.value:
        return api_error('Cannot add entries to a completed session', 400)

    if entry_type == TempLogEntryType.PICKUP.value:
        stop_number = 0
    else:
        stop_number = data.get('stopNumber')
        if not stop_number:
            last_stop = db.session.query(func.max(TempLogEntry.stop_number)).filter_by(
                session_id=session_id, entry_type=TempLogEntryType.DELIVERY.value
            ).scalar()
            stop_number = (last_stop or 0) + 1

    entry = TempLogEntry(
        session_id=session_id,
        entry_type=entry_type,
        stop_number=stop_number,
        location_name=data.get('locationName') or None,
        temperature=temperature,
        photo_url=data.get('photoUrl') or None,
        notes=data.get('notes') or None,
    )
    db.session.add(entry)
    db.session.commit()
    logger.info(f"Temp log entry {entry_type} at {temperature} for session {session_id}")
    return jsonify({'entry': row_to_dict(entry)}), 201


def _checked_entry(driver_id, data, verb):
    """Return (entry, None) for an entry the driver may change, or (None, error)."""
    entry_id = data.get('entryId')
    if not entry_id:
        return None, api_error('entryId required', 400)
    entry = owned_entry(entry_id, driver_id)
    if entry is None:
        return None, api_error(f'Not authorized to {verb} this entry', 403)
    if entry.session.status != TempLogStatus.IN_PROGRESS.value:
        return None, api_error(f'Cannot {verb} entries in a completed session', 400)
    return entry, None


def update_entry(driver_id, data, record_id):
    entry, error = _checked_entry(driver_id, data, 'modify')
    if error:
        return error

    if data.get('temperature') is not None:
        entry.temperature = parse_temperature(data['temperature'])
    if 'photoUrl' in data:
        entry.photo_url = data['photoUrl']
    if 'notes' in data:
        entry.notes = data['notes']
    if 'locationName' in data:
        entry.location_name = data['locationName']
    db.session.commit()
    return jsonify({'entry': row_to_dict(entry)})


def delete_entry(driver_id, data, record_id):
    entry, error = _checked_entry(driver_id, data, 'delete')
    if error:
        return error

    db.session.delete(entry)
    db.session.commit()
    return jsonify({'success': True})


TEMP_LOG_ACTIONS = {
    'getActiveSession': get_active_session,
    'createSession': create_session,
    'completeSession': complete_session,
    'getSessionHistory': get_session_history,
    'addEntry': add_entry,
    'updateEntry': update_entry,
    'deleteEntry': delete_entry,
}


@bp.route('/temp-log', methods=['POST'])
@driver_required
def temp_log():
    """Dispatch a temperature-log action for the authenticated driver."""
    try:
        body = get_json_body()
    except ValidationError as e:
        return api_error(str(e), 400)

    action = body.get('action')
    handler = TEMP_LOG_ACTIONS.get(action)
    if handler is None:
        return api_error('Invalid action', 400, validActions=list(TEMP_LOG_ACTIONS))

    data = body.get('data') or {}
    if not isinstance(data, dict):
        return api_error('data must be an object', 400)

    try:
        return handler(current_driver_id(), data, body.get('id'))
    except ValidationError as e:
        return api_error(str(e), 400)
    except SQLAlchemyError as e:
        logger.error(f"Temp log {action} failed: {e}", exc_info=True)
        db.session.rollback()
        return api_error(str(e), 500, 'error')
