"""Public project view and survey link tracking."""
from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError
import logging
from shared.validation import Validator, ValidationError
from ..models import db, Project
from ..services.portal_data import fetch_project_by_token
from ..utils import api_error, get_json_body, handle_api_exception

bp = Blueprint('projects', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

SURVEY_COUNTERS = {
    'click': 'survey_clicks',
    'complete': 'survey_completions',
}


@bp.route('/project/<token>', methods=['GET'])
def get_project(token):
    """Return the project view for a public project token."""
    try:
        view = fetch_project_by_token(token)
    except SQLAlchemyError as e:
        db.session.rollback()
        return handle_api_exception(e, 'load project')

    if view is None:
        return api_error('Project not found', 404, 'info')
    return jsonify(view.to_json())


@bp.route('/survey-track', methods=['POST'])
def survey_track():
    """Count a survey link click or a completed survey."""
    try:
        data = get_json_body()
        survey_token = data.get('surveyToken')
        if not Validator.is_non_empty_string(survey_token):
            raise ValidationError('Survey token is required')
        action = Validator.validate_choice(data.get('action'), 'action', list(SURVEY_COUNTERS))
    except ValidationError as e:
        return api_error(str(e), 400)

    column = getattr(Project, SURVEY_COUNTERS[action])
    try:
        # Increment in SQL so concurrent clicks are not lost
        updated = db.session.query(Project).filter(Project.survey_token == survey_token).update(
            {column: column + 1}, synchronize_session=False
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        return handle_api_exception(e, 'track survey')

    if not updated:
        return api_error('Survey not found', 404, 'info')

    logger.debug(f"Survey {action} recorded")
    return jsonify({'success': True})
