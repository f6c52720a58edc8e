"""Flask application factory for the installation portal."""
from flask import Flask
import os
import logging
from pathlib import Path
from .models import db
from .blueprints import (
    admin_auth, admin_crud, driver, pm, projects, tasks, uploads, webhooks, notifications, reminders
)
from .cli import init_db_command, create_driver_command, create_property_manager_command, send_reminders_command
from .logging_config import setup_logging
from .services.storage import StorageService
from .services.highlevel import HighLevelClient
from .services.mailgun import MailgunClient
from .services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

# Read from the environment; instance/config.py or a test mapping may override any of them
ENV_SETTINGS = {
    'JWT_SECRET': None,
    'ADMIN_PASSWORD': None,
    'CLOUD_STORAGE_PROVIDER': 's3',
    'CLOUD_STORAGE_ACCESS_KEY': None,
    'CLOUD_STORAGE_SECRET_KEY': None,
    'CLOUD_STORAGE_REGION': 'us-east-1',
    'CLOUD_STORAGE_HOST': None,
    'CLOUD_STORAGE_PUBLIC_BASE_URL': None,
    'CLOUD_STORAGE_DEFAULT_BUCKET': 'project-files',
    'HIGHLEVEL_API_KEY': None,
    'HIGHLEVEL_LOCATION_ID': None,
    'MAILGUN_API_KEY': None,
    'MAILGUN_DOMAIN': 'reminders.raptor-vending.com',
    'FROM_EMAIL': 'Raptor Vending <noreply@reminders.raptor-vending.com>',
    'PORTAL_URL': 'https://portal.raptor-vending.com',
    'DEFAULT_CC_EMAILS': 'ryan@raptor-vending.com, tracie@raptor-vending.com, cristian@raptor-vending.com',
    'MAILGUN_WEBHOOK_SIGNING_KEY': None,
    'CRON_SECRET': None,
    'REQUEST_LINK_ALLOWED_HOSTS': 'portal.raptor-vending.com,localhost',
}

ADMIN_LOGIN_LIMIT = '5/minute'
REQUEST_LINK_LIMIT = '3/minute'
MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def load_env_settings(app):
    for key, default in ENV_SETTINGS.items():
        app.config[key] = os.getenv(key, default)
    if os.getenv('DATABASE_URL'):
        app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL')


def build_services(app):
    """Construct external clients once per process; None marks a client as not configured."""
    app.extensions['storage'] = StorageService.from_config(app.config)
    app.extensions['highlevel'] = HighLevelClient.from_config(app.config)
    app.extensions['mailgun'] = MailgunClient.from_config(app.config)
    app.extensions['login_limiter'] = RateLimiter(ADMIN_LOGIN_LIMIT, 'admin-login')
    app.extensions['link_limiter'] = RateLimiter(REQUEST_LINK_LIMIT, 'request-link')


def create_app(test_config=None):
    """Flask application factory for the installation portal.

    Creates and configures a Flask application instance with:
    - SQLAlchemy database integration
    - External storage, CRM and email clients in app.extensions
    - Blueprint registration for API endpoints
    - CLI command registration
    - Logging configuration

    Args:
        test_config (dict, optional): Configuration overrides for testing

    Returns:
        Flask: Configured Flask application instance
    """
    # Setup logging first
    setup_logging()
    logger.info("Starting Flask application initialization")

    app = Flask(__name__, instance_relative_config=True)
    logger.debug(f"Flask app created with instance path: {app.instance_path}")

    load_env_settings(app)
    app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_BYTES

    if test_config is None:
        # Load the instance config, if it exists, when not testing
        config_loaded = app.config.from_pyfile('config.py', silent=True)
        if config_loaded:
            logger.info("Loaded configuration from instance/config.py")
        else:
            logger.debug("No instance config file found, using environment")
    else:
        # Load the test config if passed in
        app.config.from_mapping(test_config)
        logger.info("Loaded test configuration")

    hosts = app.config['REQUEST_LINK_ALLOWED_HOSTS']
    if isinstance(hosts, str):
        app.config['REQUEST_LINK_ALLOWED_HOSTS'] = [h.strip() for h in hosts.split(',') if h.strip()]

    # Ensure the instance folder exists
    Path(app.instance_path).mkdir(parents=True, exist_ok=True)

    if 'SQLALCHEMY_DATABASE_URI' not in app.config:
        db_path = os.path.join(app.instance_path, 'portal.db')
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{db_path}'
        logger.info(f"Configured database URI: {app.config['SQLALCHEMY_DATABASE_URI']}")
    else:
        logger.info("Using configured database URI")
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    db.init_app(app)
    logger.info("SQLAlchemy database initialized")

    if not app.config.get('JWT_SECRET'):
        logger.warning("JWT_SECRET not configured; admin and driver routes will return 500")

    build_services(app)

    # Register blueprints
    logger.info("Registering API blueprints")
    app.register_blueprint(admin_auth.bp)
    logger.debug("Registered admin_auth blueprint")
    app.register_blueprint(admin_crud.bp)
    logger.debug("Registered admin_crud blueprint")
    app.register_blueprint(driver.bp)
    logger.debug("Registered driver blueprint")
    app.register_blueprint(pm.bp)
    logger.debug("Registered pm blueprint")
    app.register_blueprint(projects.bp)
    logger.debug("Registered projects blueprint")
    app.register_blueprint(tasks.bp)
    logger.debug("Registered tasks blueprint")
    app.register_blueprint(uploads.bp)
    logger.debug("Registered uploads blueprint")
    app.register_blueprint(webhooks.bp)
    logger.debug("Registered webhooks blueprint")
    app.register_blueprint(notifications.bp)
    logger.debug("Registered notifications blueprint")
    app.register_blueprint(reminders.bp)
    logger.debug("Registered reminders blueprint")
    logger.info("All API blueprints registered successfully")

    # Register CLI commands
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_driver_command)
    app.cli.add_command(create_property_manager_command)
    app.cli.add_command(send_reminders_command)
    logger.info("CLI commands registered: init-db, create-driver, create-property-manager, send-reminders")

    logger.info("Flask application initialization completed successfully")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
