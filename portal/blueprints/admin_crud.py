"""Generic admin CRUD endpoint over the portal tables."""
from flask import Blueprint
import secrets
import logging
from shared.enums import PhaseStatus, TempLogStatus
from shared.validation import ValidationError
from ..auth import admin_required
from ..base.table_crud import TableCRUD
from ..models import (
    PropertyManager, Property, Location, Project, Phase, Task, Equipment,
    Driver, TempLogSession, TempLogEntry, ActivityLog, PmMessage, GlobalDocument, EmailTemplate
)
from ..utils import api_error, get_json_body

bp = Blueprint('admin_crud', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

ACTIONS = ('create', 'read', 'update', 'delete')


def generate_public_token():
    return secrets.token_hex(12)


def generate_access_code():
    # Access codes are normalized to lower case on exchange
    return secrets.token_hex(8)


def default_access_token(values):
    if not values.get('access_token'):
        values['access_token'] = generate_access_code()
    else:
        values['access_token'] = values['access_token'].strip().lower()
    return values


TABLES = {
    'projects': TableCRUD(
        Project,
        allowed_fields=[
            'property_id', 'location_id', 'name', 'status', 'description',
            'target_install_date', 'actual_install_date', 'notes',
            'property_manager_id', 'project_number', 'public_token', 'is_active',
            'overall_progress', 'estimated_completion', 'configuration',
            'employee_count', 'email_reminders_enabled', 'reminder_email',
            'last_reminder_sent', 'survey_clicks', 'survey_completions',
            'survey_token', 'raptor_pm_name', 'raptor_pm_email', 'raptor_pm_phone',
        ],
        required_for_create=['property_id', 'name'],
        order_by=('created_at', False),
        defaults={'public_token': generate_public_token, 'is_active': True},
    ),
    'phases': TableCRUD(
        Phase,
        allowed_fields=[
            'project_id', 'title', 'phase_number', 'status', 'description',
            'start_date', 'end_date', 'is_approximate',
            'property_responsibility', 'contractor_name',
            'contractor_scheduled_date', 'contractor_status',
            'survey_response_rate', 'survey_top_meals',
            'survey_top_snacks', 'survey_dietary_notes',
            'document_url', 'document_label', 'documents',
        ],
        required_for_create=['project_id', 'title'],
        order_by=('phase_number', True),
        defaults={'phase_number': 1, 'status': PhaseStatus.NOT_STARTED.value},
    ),
    'tasks': TableCRUD(
        Task,
        allowed_fields=[
            'phase_id', 'label', 'completed', 'sort_order', 'scheduled_date',
            'upload_speed', 'download_speed', 'enclosure_type',
            'enclosure_color', 'custom_color_name', 'smartfridge_qty',
            'smartcooker_qty', 'delivery_carrier', 'tracking_number', 'deliveries',
            'document_url', 'notes', 'pm_text_response', 'pm_text_value',
        ],
        required_for_create=['phase_id', 'label'],
        order_by=('sort_order', True),
        defaults={'completed': False, 'sort_order': 0},
    ),
    'property_managers': TableCRUD(
        PropertyManager,
        allowed_fields=['name', 'email', 'phone', 'company', 'is_active', 'access_token', 'notes'],
        required_for_create=['name'],
        order_by=('name', True),
        defaults={'is_active': True},
        pre_create_hook=default_access_token,
    ),
    'properties': TableCRUD(
        Property,
        allowed_fields=['name', 'property_manager_id', 'address', 'city', 'state', 'zip',
                        'total_employees', 'notes'],
        required_for_create=['name'],
        order_by=('name', True),
    ),
    'locations': TableCRUD(
        Location,
        allowed_fields=['name', 'property_id', 'floor', 'employee_count', 'images', 'notes'],
        required_for_create=['name', 'property_id'],
        order_by=('name', True),
    ),
    'pm_messages': TableCRUD(
        PmMessage,
        allowed_fields=['pm_id', 'sender', 'sender_name', 'message', 'read_at'],
        required_for_create=['pm_id', 'message'],
        order_by=('created_at', False),
        defaults={'sender': 'admin'},
    ),
    'global_documents': TableCRUD(
        GlobalDocument,
        allowed_fields=['key', 'label', 'description', 'url', 'file_type'],
        required_for_create=['key', 'label'],
        order_by=('label', True),
    ),
    'email_templates': TableCRUD(
        EmailTemplate,
        allowed_fields=['key', 'name', 'subject', 'body', 'description', 'cc_emails', 'is_active'],
        required_for_create=['key', 'name'],
        order_by=('name', True),
    ),
    'drivers': TableCRUD(
        Driver,
        allowed_fields=['name', 'email', 'phone', 'is_active', 'access_token'],
        required_for_create=['name'],
        order_by=('name', True),
        defaults={'is_active': True},
        pre_create_hook=default_access_token,
    ),
    'temp_log_sessions': TableCRUD(
        TempLogSession,
        allowed_fields=['driver_id', 'session_date', 'vehicle_id', 'notes', 'status'],
        required_for_create=['driver_id'],
        order_by=('created_at', False),
        defaults={'status': TempLogStatus.IN_PROGRESS.value},
    ),
    'temp_log_entries': TableCRUD(
        TempLogEntry,
        allowed_fields=['session_id', 'entry_type', 'stop_number', 'location_name',
                        'timestamp', 'temperature', 'photo_url', 'notes'],
        required_for_create=['session_id', 'entry_type', 'temperature'],
        order_by=('timestamp', True),
        defaults={'stop_number': 1},
    ),
    'equipment': TableCRUD(
        Equipment,
        allowed_fields=['project_id', 'name', 'model', 'spec', 'status', 'status_label', 'sort_order'],
        required_for_create=['project_id', 'name'],
        order_by=('sort_order', True),
    ),
    'activity_log': TableCRUD(
        ActivityLog,
        allowed_fields=['project_id', 'phase_id', 'task_id', 'action', 'description',
                        'performed_by', 'actor_type', 'metadata'],
        required_for_create=['action', 'description'],
        order_by=('created_at', False),
    ),
}


@bp.route('/admin/crud', methods=['POST'])
@admin_required
def admin_crud():
    """Dispatch {table, action, data, id, filters} to the table's CRUD handler."""
    try:
        body = get_json_body()
    except ValidationError as e:
        return api_error(str(e), 400)

    table = body.get('table')
    action = body.get('action')
    data = body.get('data') or {}
    record_id = body.get('id')
    filters = body.get('filters') or {}

    if action not in ACTIONS:
        return api_error(f"Invalid action. Allowed: {', '.join(ACTIONS)}", 400)
    crud = TABLES.get(table)
    if crud is None:
        return api_error(f"Invalid table. Allowed: {', '.join(TABLES)}", 400)
    if not isinstance(data, dict) or not isinstance(filters, dict):
        return api_error('data and filters must be objects', 400)

    logger.debug(f"Admin CRUD {action} on {table}")

    if action == 'read':
        return crud.read(record_id, filters)
    if action == 'create':
        return crud.create(data)
    if action == 'update':
        return crud.update(record_id, data)
    return crud.delete(record_id)
