import click
import logging
import secrets
from flask import current_app
from flask.cli import with_appcontext
from shared.validation import Validator, ValidationError
from .models import db, Driver, PropertyManager, EmailTemplate
from .services.notifications import send_due_reminders, REMINDER_TEMPLATE_KEY, DELIVERY_TEMPLATE_KEY

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_TEMPLATES = [
    {'key': REMINDER_TEMPLATE_KEY, 'name': 'Weekly Reminder',
     'description': 'Sent to property managers with open portal tasks'},
    {'key': DELIVERY_TEMPLATE_KEY, 'name': 'Delivery Notification',
     'description': 'Sent when equipment ships'},
]


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create missing tables and seed the default email templates."""
    logger.info("Starting database initialization")
    db.create_all()
    logger.info("Database tables created successfully")

    for template_data in DEFAULT_EMAIL_TEMPLATES:
        if not db.session.query(EmailTemplate).filter_by(key=template_data['key']).first():
            db.session.add(EmailTemplate(cc_emails=current_app.config.get('DEFAULT_CC_EMAILS'), **template_data))
            logger.info(f"Added default email template '{template_data['key']}'")
        else:
            logger.debug(f"Email template '{template_data['key']}' already exists")
    db.session.commit()
    click.echo('Initialized the database.')


def _access_code(code):
    if not code:
        return secrets.token_hex(8)
    try:
        return Validator.normalize_access_code(code)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint='--access-code')


@click.command('create-driver')
@click.argument('name')
@click.option('--email', default=None)
@click.option('--phone', default=None)
@click.option('--access-code', default=None, help='8-32 characters; generated when omitted')
@with_appcontext
def create_driver_command(name, email, phone, access_code):
    """Add a driver and print their access code."""
    driver = Driver(name=name, email=email, phone=phone, access_token=_access_code(access_code))
    db.session.add(driver)
    db.session.commit()
    logger.info(f"Created driver {driver.id}")
    click.echo(f"Driver {driver.id} access code: {driver.access_token}")


@click.command('create-property-manager')
@click.argument('name')
@click.option('--email', default=None)
@click.option('--company', default=None)
@with_appcontext
def create_property_manager_command(name, email, company):
    """Add a property manager and print their portal URL."""
    if email and not Validator.is_valid_email(email):
        raise click.BadParameter('Invalid email format', param_hint='--email')
    manager = PropertyManager(name=name, email=email, company=company, access_token=secrets.token_hex(12))
    db.session.add(manager)
    db.session.commit()
    logger.info(f"Created property manager {manager.id}")
    click.echo(f"{current_app.config['PORTAL_URL'].rstrip('/')}/pm/{manager.access_token}")


@click.command('send-reminders')
@click.option('--force', is_flag=True, help='Ignore the 24h resend guard')
@click.option('--project-id', default=None, help='Only this project')
@with_appcontext
def send_reminders_command(force, project_id):
    """Run the reminder job once."""
    mailgun = current_app.extensions.get('mailgun')
    if mailgun is None:
        raise click.ClickException('MAILGUN_API_KEY not configured')

    results = send_due_reminders(mailgun, force=force, project_id=project_id)
    for result in results:
        detail = result.get('to') or result.get('reason') or result.get('error') or ''
        click.echo(f"{result['status']:8} {result['project']} {detail}")
