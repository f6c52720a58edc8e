"""Pytest configuration and fixtures for portal tests."""
import pytest
import tempfile
import os
from datetime import timedelta

os.environ.setdefault('LOG_DIR', tempfile.mkdtemp(prefix='portal-logs-'))

from portal.app import create_app
from portal.models import (
    db, PropertyManager, Property, Location, Project, Phase, Task, Driver
)
from portal.services.tokens import create_admin_token, create_driver_token
from portal.services.mailgun import MailgunError
from shared.models import today

JWT_SECRET = 'test-jwt-secret-with-enough-length'
ADMIN_PASSWORD = 'correct horse battery staple'


class FakeStorage:
    """Records uploads instead of talking to a bucket."""

    def __init__(self, error=None):
        self.uploads = []
        self.error = error

    def upload(self, bucket, path, data, content_type=None):
        if self.error is not None:
            raise self.error
        self.uploads.append({'bucket': bucket, 'path': path, 'data': data, 'content_type': content_type})
        return f"https://cdn.example.com/{bucket}/{path}"


class FakeMailgun:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, to, subject, html, cc=None, project_id=None, tracking=False):
        if to in self.fail_for:
            raise MailgunError('Mailgun error: Bad Request')
        self.sent.append({'to': to, 'subject': subject, 'html': html, 'cc': cc,
                          'project_id': project_id, 'tracking': tracking})
        return {'id': f'<{len(self.sent)}@mailgun>'}


class FakeHighLevel:
    def __init__(self):
        self.synced = []
        self.links = []

    def sync_contact(self, name, email, phone=None):
        self.synced.append((name, email, phone))
        return 'contact-1'

    def send_portal_link(self, phone, url):
        self.links.append((phone, url))
        return 'message-1'


@pytest.fixture
def app():
    """Create and configure a test app instance."""
    # Create temporary database for testing
    db_fd, db_path = tempfile.mkstemp()

    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'JWT_SECRET': JWT_SECRET,
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'CRON_SECRET': 'cron-secret',
        'MAILGUN_WEBHOOK_SIGNING_KEY': None,
        'PORTAL_URL': 'https://portal.example.com',
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()

    yield app

    # Cleanup
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def storage(app):
    fake = FakeStorage()
    app.extensions['storage'] = fake
    return fake


@pytest.fixture
def mailgun(app):
    fake = FakeMailgun()
    app.extensions['mailgun'] = fake
    return fake


@pytest.fixture
def highlevel(app):
    fake = FakeHighLevel()
    app.extensions['highlevel'] = fake
    return fake


@pytest.fixture
def admin_headers():
    return {'Authorization': f'Bearer {create_admin_token(JWT_SECRET)}'}


def driver_headers_for(driver_id, email='driver@example.com'):
    return {'Authorization': f'Bearer {create_driver_token(JWT_SECRET, driver_id, email)}'}


@pytest.fixture
def make_driver_headers():
    return driver_headers_for


@pytest.fixture
def driver(app):
    """An active driver; returns its id."""
    with app.app_context():
        row = Driver(name='Dana Driver', email='dana@example.com', phone='5551234567',
                     access_token='truck-code-01')
        db.session.add(row)
        db.session.commit()
        return row.id


@pytest.fixture
def driver_headers(driver):
    return driver_headers_for(driver)


@pytest.fixture
def portal(app):
    """
    Seed one property manager with one property, location and project.

    The project has two phases: the first with two [PM] tasks (one done),
    the second with a single open admin task.

    Returns:
        dict: ids and tokens of the seeded rows
    """
    with app.app_context():
        manager = PropertyManager(name='Pat Manager', email='pat@example.com', company='Acme Realty',
                                  phone='5559876543', access_token='abc123')
        db.session.add(manager)
        db.session.flush()

        prop = Property(name='Tower One', address='1 Main St', city='Springfield', state='IL',
                        zip='62701', total_employees=450, property_manager_id=manager.id)
        db.session.add(prop)
        db.session.flush()

        location = Location(property_id=prop.id, name='Lobby', floor='1', images=['https://img.example.com/a.jpg'])
        db.session.add(location)
        db.session.flush()

        project = Project(property_id=prop.id, location_id=location.id, name='Tower One Install',
                          project_number='RV-1001', public_token='proj-token-1', survey_token='survey-1',
                          estimated_completion=today() + timedelta(days=10), overall_progress=33,
                          raptor_pm_name='Riley Raptor', raptor_pm_email='riley@example.com',
                          email_reminders_enabled=True)
        db.session.add(project)
        db.session.flush()

        phase_one = Phase(project_id=project.id, title='Site Survey', phase_number=1)
        phase_two = Phase(project_id=project.id, title='Installation', phase_number=2)
        db.session.add_all([phase_one, phase_two])
        db.session.flush()

        done = Task(phase_id=phase_one.id, label='[PM] Confirm power outlet', completed=True, sort_order=0)
        open_pm = Task(phase_id=phase_one.id, label='[PM-TEXT] Provide network details', sort_order=1)
        admin_task = Task(phase_id=phase_two.id, label='Install machines', sort_order=0)
        db.session.add_all([done, open_pm, admin_task])
        db.session.commit()

        return {
            'manager_id': manager.id,
            'manager_token': manager.access_token,
            'property_id': prop.id,
            'location_id': location.id,
            'project_id': project.id,
            'project_token': project.public_token,
            'phase_one_id': phase_one.id,
            'phase_two_id': phase_two.id,
            'done_task_id': done.id,
            'open_task_id': open_pm.id,
            'admin_task_id': admin_task.id,
        }
