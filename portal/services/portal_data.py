"""Capability-token resolution and project view assembly.

``resolve_property_manager`` and ``resolve_project`` are the only places a
portal token is turned into rows; every PM-facing route goes through them.
"""
import logging
import re
from shared.enums import PhaseStatus
from shared.models import today
from shared.schemas import (
    ProjectView, PhaseView, TaskView, EquipmentView, GlobalDocumentView, ContactInfo,
    PropertyManagerInfo, ContractorInfo, SurveyResults, DocumentLink,
    PMPortalView, PortalManagerSummary, PortalPropertySummary
)
from ..models import db, PropertyManager, Property, Project, Phase, Task, GlobalDocument, ActivityLog

logger = logging.getLogger(__name__)

PM_TASK_PREFIX_PATTERN = re.compile(r'^\[(PM|PM-TEXT|PM-DATE)\]\s*')
REMINDER_TASK_PREFIXES = ('[PM]', '[PM-TEXT]')


# ---------------------------------------------------------------------------
# Derived fields
# ---------------------------------------------------------------------------

def format_display_date(value):
    """Format a date like 'January 15, 2024'; empty string when unset."""
    if not value:
        return ''
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def days_remaining(target, reference=None):
    """Whole days from today to target; negative when past, None when unset."""
    if not target:
        return None
    return (target - (reference or today())).days


def phase_status_for(tasks):
    """Status a phase takes from its tasks' completion."""
    completed = sum(1 for t in tasks if t.completed)
    if completed == 0:
        return PhaseStatus.PENDING.value
    if completed == len(tasks):
        return PhaseStatus.COMPLETED.value
    return PhaseStatus.IN_PROGRESS.value


def progress_percent(tasks):
    total = len(tasks)
    if total == 0:
        return 0
    completed = sum(1 for t in tasks if t.completed)
    # round half up, not Python's banker's rounding
    return int(completed * 100 / total + 0.5)


def strip_pm_prefix(label):
    return PM_TASK_PREFIX_PATTERN.sub('', label or '', count=1)


def is_reminder_task(task):
    return (task.label or '').startswith(REMINDER_TASK_PREFIXES)


def project_tasks(project):
    return db.session.query(Task).join(Phase, Task.phase_id == Phase.id).filter(
        Phase.project_id == project.id
    ).all()


def recalculate_phase_status(phase):
    """Write back a phase status derived from its tasks; no-op for empty phases."""
    tasks = db.session.query(Task).filter_by(phase_id=phase.id).all()
    if tasks:
        phase.status = phase_status_for(tasks)
    return phase.status


def recalculate_project_progress(project):
    project.overall_progress = progress_percent(project_tasks(project))
    return project.overall_progress


def record_activity(action, description, actor_type, project_id=None, phase_id=None,
                    task_id=None, performed_by=None, metadata=None):
    """Stage an activity_log row on the current session (caller commits)."""
    entry = ActivityLog(
        project_id=project_id,
        phase_id=phase_id,
        task_id=task_id,
        action=action,
        description=description,
        performed_by=performed_by,
        actor_type=actor_type,
        meta=metadata or {},
    )
    db.session.add(entry)
    return entry


# ---------------------------------------------------------------------------
# Capability-token resolution
# ---------------------------------------------------------------------------

def resolve_property_manager(token):
    """Return the active property manager owning a portal token, or None."""
    if not token:
        return None
    return db.session.query(PropertyManager).filter_by(access_token=token, is_active=True).first()


def resolve_project(public_token):
    """Return the active project for a public token, or None."""
    if not public_token:
        return None
    return db.session.query(Project).filter_by(public_token=public_token, is_active=True).first()


def project_property_manager(project):
    """The property manager reachable from a project through its location's property."""
    location = project.location
    prop = location.property if location else None
    return prop.property_manager if prop else None


def token_grants_project(token, project):
    """True when a capability token scopes to the given project.

    Either the project's own public token or the access token of the active
    manager whose property holds the project.
    """
    if not token or project is None:
        return False
    if project.is_active and project.public_token == token:
        return True
    manager = project_property_manager(project)
    return bool(manager and manager.is_active and manager.access_token == token)


# ---------------------------------------------------------------------------
# View assembly
# ---------------------------------------------------------------------------

def _iso(value):
    return value.isoformat() if value else None


def build_task_view(task):
    return TaskView(
        id=task.id,
        label=task.label,
        completed=bool(task.completed),
        scheduled_date=_iso(task.scheduled_date),
        upload_speed=task.upload_speed,
        download_speed=task.download_speed,
        enclosure_type=task.enclosure_type,
        enclosure_color=task.enclosure_color,
        custom_color_name=task.custom_color_name,
        smartfridge_qty=task.smartfridge_qty,
        smartcooker_qty=task.smartcooker_qty,
        delivery_carrier=task.delivery_carrier,
        tracking_number=task.tracking_number,
        deliveries=task.deliveries,
        document_url=task.document_url,
        pm_text_value=task.pm_text_value,
    )


def build_phase_view(phase):
    contractor = None
    if phase.contractor_name:
        contractor = ContractorInfo(
            name=phase.contractor_name,
            scheduled_date=_iso(phase.contractor_scheduled_date),
            status=phase.contractor_status,
        )

    survey = None
    if phase.survey_response_rate:
        survey = SurveyResults(
            response_rate=phase.survey_response_rate,
            top_meals=phase.survey_top_meals or [],
            top_snacks=phase.survey_top_snacks or [],
            dietary_notes=phase.survey_dietary_notes,
        )

    document = None
    if phase.document_url:
        document = DocumentLink(url=phase.document_url, label=phase.document_label or 'View Document')

    return PhaseView(
        id=phase.id,
        title=phase.title,
        status=phase.status,
        start_date=_iso(phase.start_date),
        end_date=_iso(phase.end_date),
        description=phase.description,
        is_approximate=bool(phase.is_approximate),
        property_responsibility=phase.property_responsibility,
        contractor_info=contractor,
        survey_results=survey,
        document=document,
        documents=phase.documents or [],
        tasks=[build_task_view(t) for t in phase.tasks],
    )


def global_documents_map():
    documents = db.session.query(GlobalDocument).order_by(GlobalDocument.label).all()
    return {
        doc.key: GlobalDocumentView(key=doc.key, label=doc.label, url=doc.url, description=doc.description)
        for doc in documents
    }


def build_project_view(project, global_documents=None):
    location = project.location
    prop = location.property if location else None
    manager = prop.property_manager if prop else None

    return ProjectView(
        id=project.project_number,
        project_id=project.id,
        public_token=project.public_token,
        location_name=location.name if location else '',
        location_floor=(location.floor or '') if location else '',
        location_images=(location.images or []) if location else [],
        property_name=prop.name if prop else '',
        address=prop.formatted_address() if prop else '',
        employee_count=(prop.total_employees or 0) if prop else 0,
        configuration=project.configuration,
        project_manager=ContactInfo(
            name=project.raptor_pm_name,
            email=project.raptor_pm_email,
            phone=project.raptor_pm_phone,
        ),
        property_manager=PropertyManagerInfo(
            id=manager.id,
            name=manager.name,
            company=manager.company,
            email=manager.email,
            phone=manager.phone,
        ) if manager else None,
        estimated_completion=format_display_date(project.estimated_completion),
        days_remaining=days_remaining(project.estimated_completion),
        overall_progress=project.overall_progress,
        survey_token=project.survey_token,
        survey_clicks=project.survey_clicks or 0,
        survey_completions=project.survey_completions or 0,
        phases=[build_phase_view(p) for p in project.phases],
        equipment=[
            EquipmentView(id=e.id, name=e.name, model=e.model, spec=e.spec,
                          status=e.status, status_label=e.status_label)
            for e in project.equipment
        ],
        global_documents=global_documents if global_documents is not None else global_documents_map(),
    )


def fetch_project_by_token(public_token):
    """Assemble the full view for an active project, or None."""
    project = resolve_project(public_token)
    if project is None:
        return None
    return build_project_view(project)


def fetch_projects_by_pm_token(access_token):
    """Assemble the portal aggregate for a property manager token, or None.

    Walks the manager's properties (by name) through their locations to the
    active projects.
    """
    manager = resolve_property_manager(access_token)
    if manager is None:
        return None

    properties = db.session.query(Property).filter_by(
        property_manager_id=manager.id
    ).order_by(Property.name).all()

    documents = global_documents_map()
    projects = []
    for prop in properties:
        for location in prop.locations:
            for project in location.projects:
                if project.is_active:
                    view = fetch_project_view(project, documents)
                    if view is not None:
                        projects.append(view)

    logger.debug(f"Portal for manager {manager.id}: {len(properties)} properties, {len(projects)} projects")

    return PMPortalView(
        property_manager=PortalManagerSummary(
            id=manager.id, name=manager.name, email=manager.email, company=manager.company
        ),
        properties=[
            PortalPropertySummary(
                id=p.id,
                name=p.name,
                address=p.formatted_address(),
                total_employees=p.total_employees or 0,
                location_count=len(p.locations),
            )
            for p in properties
        ],
        projects=projects,
    )


def fetch_project_view(project, global_documents=None):
    """Re-resolve a project through its public token before building its view."""
    resolved = resolve_project(project.public_token)
    if resolved is None:
        return None
    return build_project_view(resolved, global_documents)
