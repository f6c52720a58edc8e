"""Email notifications: delivery notices and property-manager reminders."""
import logging
from datetime import timedelta
from flask import current_app, render_template
from shared.enums import ActivityAction, ActorType
from shared.models import now, ensure_aware
from shared.validation import Validator, ValidationError
from ..models import db, Project, EmailTemplate
from .mailgun import MailgunError
from .portal_data import project_property_manager, is_reminder_task, strip_pm_prefix, record_activity

logger = logging.getLogger(__name__)

REMINDER_TEMPLATE_KEY = 'weekly-reminder'
DELIVERY_TEMPLATE_KEY = 'delivery-notification'
REMINDER_INTERVAL = timedelta(hours=24)


def cc_emails_for(template_key):
    """CC list from an active email_templates row, else the configured default."""
    template = db.session.query(EmailTemplate).filter_by(key=template_key, is_active=True).first()
    if template and template.cc_emails:
        return template.cc_emails
    return current_app.config.get('DEFAULT_CC_EMAILS')


def project_url(project):
    return f"{current_app.config['PORTAL_URL'].rstrip('/')}/project/{project.public_token}"


def project_contact(project):
    """Return (recipient, first_name, property_name) for a project.

    The project's reminder_email overrides the property manager's address.
    """
    manager = project_property_manager(project)
    location = project.location
    prop = location.property if location else None

    property_name = (prop.name if prop else None) or (location.name if location else None)
    first_name = (manager.name or '').split(' ')[0] if manager else ''
    recipient = project.reminder_email or (manager.email if manager else None)
    return recipient, first_name, property_name


def pluralize(count, word):
    return f"{count} {word}{'' if count == 1 else 's'}"


def send_delivery_notification(mailgun, project, delivery):
    """
    Email the project's recipient that equipment has shipped.

    Returns:
        str: The recipient address, or None when the project has no recipient

    Raises:
        MailgunError: If the send fails
    """
    recipient, first_name, property_name = project_contact(project)
    if not recipient:
        return None

    property_name = property_name or 'your location'
    delivery_date = delivery.date
    try:
        parsed = Validator.parse_date(delivery.date, 'date')
        delivery_date = f"{parsed.strftime('%A, %B')} {parsed.day}, {parsed.year}"
    except ValidationError:
        pass

    html = render_template(
        'emails/delivery.html',
        portal_url=current_app.config['PORTAL_URL'].rstrip('/'),
        project_url=project_url(project),
        first_name=first_name,
        property_name=property_name,
        delivery=delivery,
        delivery_date=delivery_date,
    )
    mailgun.send(
        recipient,
        f"Equipment on the way to {property_name} - {delivery.equipment}",
        html,
        cc=cc_emails_for(DELIVERY_TEMPLATE_KEY),
    )
    return recipient


def reminder_tasks(project):
    """The project's [PM]/[PM-TEXT] tasks in phase then sort order."""
    return [task for phase in project.phases for task in phase.tasks if is_reminder_task(task)]


def send_project_reminder(mailgun, project, force=False, cc=None, reference_time=None):
    """Send one project's reminder if it is due. Returns a result dict."""
    current = reference_time or now()
    recipient, first_name, property_name = project_contact(project)
    property_name = property_name or project.project_number or project.name

    last_sent = ensure_aware(project.last_reminder_sent)
    if not force and last_sent and last_sent > current - REMINDER_INTERVAL:
        return {'project': property_name, 'status': 'skipped', 'reason': 'Recently reminded'}

    tasks = reminder_tasks(project)
    incomplete = sum(1 for t in tasks if not t.completed)
    if incomplete == 0:
        return {'project': property_name, 'status': 'skipped', 'reason': 'No incomplete tasks'}

    if not recipient:
        return {'project': property_name, 'status': 'skipped', 'reason': 'No email address'}

    html = render_template(
        'emails/reminder.html',
        portal_url=current_app.config['PORTAL_URL'].rstrip('/'),
        project_url=project_url(project),
        first_name=first_name,
        property_name=property_name,
        incomplete_count=incomplete,
        tasks=[{'label': strip_pm_prefix(t.label), 'completed': t.completed} for t in tasks],
    )

    try:
        mailgun.send(
            recipient,
            f"Reminder: {pluralize(incomplete, 'item')} remaining for {property_name}",
            html,
            cc=cc,
            project_id=project.id,
            tracking=True,
        )
    except MailgunError as e:
        logger.error(f"Failed to send reminder for {property_name}: {e}")
        return {'project': property_name, 'status': 'error', 'error': str(e)}

    project.last_reminder_sent = current
    record_activity(
        ActivityAction.REMINDER_SENT.value,
        f"Weekly reminder sent to {recipient} ({pluralize(incomplete, 'pending item')})",
        ActorType.SYSTEM.value,
        project_id=project.id,
    )
    db.session.commit()
    return {'project': property_name, 'status': 'sent', 'to': recipient, 'tasks': incomplete}


def send_due_reminders(mailgun, force=False, project_id=None):
    """
    Run the reminder job over every reminder-enabled project.

    Args:
        mailgun: MailgunClient used for delivery
        force: Ignore the 24h resend guard
        project_id: Restrict the run to one project regardless of its
            reminder flag

    Returns:
        list: One result dict per project considered
    """
    query = db.session.query(Project)
    if project_id:
        query = query.filter(Project.id == project_id)
    else:
        query = query.filter(Project.email_reminders_enabled.is_(True))

    cc = cc_emails_for(REMINDER_TEMPLATE_KEY)
    results = [send_project_reminder(mailgun, project, force=force, cc=cc) for project in query.all()]

    sent = sum(1 for r in results if r['status'] == 'sent')
    logger.info(f"Reminder run finished: {sent} sent, {len(results) - sent} not sent")
    return results
