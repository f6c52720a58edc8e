"""Task updates from the admin console and the property-manager portal."""
from flask import Blueprint, jsonify, request, g
from sqlalchemy.exc import SQLAlchemyError
import logging
from shared.enums import PrincipalType, ActorType, ActivityAction
from shared.schemas import PortalTaskUpdate, validate_payload
from shared.validation import Validator, ValidationError
from ..auth import authenticate
from ..models import db, Phase, Task
from ..services.portal_data import (
    token_grants_project, recalculate_phase_status, recalculate_project_progress,
    strip_pm_prefix, record_activity
)
from ..utils import api_error, get_json_body, handle_api_exception, row_to_dict
from .admin_crud import TABLES

bp = Blueprint('tasks', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

PORTAL_TOKEN_HEADER = 'X-Portal-Token'


def portal_task_values(data):
    """Validate the portal-writable subset of a task payload."""
    payload = validate_payload(PortalTaskUpdate, data)
    values = payload.model_dump(exclude_unset=True)
    if 'scheduled_date' in values:
        values['scheduled_date'] = Validator.parse_date(values['scheduled_date'], 'scheduled_date')
    return values


@bp.route('/tasks/<task_id>', methods=['PATCH'])
def update_task(task_id):
    """
    Update a task, then recompute its phase status and project progress.

    Admins authenticate with a bearer token and may change any task field.
    Property managers send their portal token in X-Portal-Token and may only
    change completion, their text responses and the scheduled date.
    """
    portal_token = None
    if request.headers.get('Authorization'):
        claims, error = authenticate(PrincipalType.ADMIN)
        if error is not None:
            return error
        g.principal = claims
        actor = ActorType.ADMIN
    else:
        portal_token = request.headers.get(PORTAL_TOKEN_HEADER)
        if not portal_token:
            return api_error('No authorization token provided', 401)
        actor = ActorType.PROPERTY_MANAGER

    try:
        data = get_json_body()
        if actor == ActorType.ADMIN:
            values = TABLES['tasks'].sanitize(data)
        else:
            values = portal_task_values(data)
    except ValidationError as e:
        return api_error(str(e), 400)

    task = db.session.get(Task, task_id)
    if task is None:
        return api_error('Task not found', 404)
    phase = task.phase
    project = phase.project

    # A token for some other project is indistinguishable from a missing task
    if portal_token is not None and not token_grants_project(portal_token, project):
        return api_error('Task not found', 404, 'info')

    if not values:
        return api_error('No valid fields to update', 400)

    # Moving a task leaves two phases, and possibly two projects, to recompute
    target_phase = phase
    if values.get('phase_id', phase.id) != phase.id:
        target_phase = db.session.get(Phase, values['phase_id'])
        if target_phase is None:
            return api_error('Phase not found', 400)

    try:
        for key, value in values.items():
            setattr(task, key, value)
        db.session.flush()

        recalculate_phase_status(phase)
        new_progress = recalculate_project_progress(project)
        if target_phase is not phase:
            db.session.expire(task, ['phase'])
            recalculate_phase_status(target_phase)
            project = target_phase.project
            new_progress = recalculate_project_progress(project)
            phase = target_phase

        if values.get('completed') is True:
            record_activity(
                ActivityAction.TASK_COMPLETED.value,
                strip_pm_prefix(task.label),
                actor.value,
                project_id=project.id,
                phase_id=phase.id,
                task_id=task.id,
            )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        return handle_api_exception(e, 'update task')

    logger.info(f"Task {task.id} updated by {actor.value}: {sorted(values)}; progress {new_progress}%")
    return jsonify({
        'task': row_to_dict(task),
        'newProgress': new_progress,
        'success': True,
    })
