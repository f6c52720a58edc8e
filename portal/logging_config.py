"""Logging configuration for the portal."""
import logging
import os
import json
from logging.handlers import RotatingFileHandler
from shared.models import now


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for better log analysis."""

    def format(self, record):
        log_entry = {
            'timestamp': now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, default=str)


def setup_logging(log_dir=None):
    """Setup logging configuration for the portal.

    Args:
        log_dir: Directory for the rotating JSON log file (defaults to ./logs
            next to the package, or LOG_DIR from the environment)
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logs_dir = log_dir or os.getenv('LOG_DIR') or os.path.join(os.path.dirname(__file__), '..', 'logs')
    os.makedirs(logs_dir, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    structured_formatter = StructuredFormatter()
    simple_formatter = logging.Formatter(
        '%(asctime)s %(levelname)-8s %(name)-20s %(message)s'
    )

    # File handler with rotation (structured JSON)
    log_file = os.path.join(logs_dir, 'portal.log')
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(structured_formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(simple_formatter)

    # Replace only handlers installed by a previous call so the factory can run
    # repeatedly without duplicating output or dropping foreign handlers
    for handler in list(logger.handlers):
        if getattr(handler, '_portal_handler', False):
            logger.removeHandler(handler)
            handler.close()

    for handler in (file_handler, console_handler):
        handler._portal_handler = True
        logger.addHandler(handler)

    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('libcloud').setLevel(logging.WARNING)

    logger.info("Logging initialized", extra={
        'extra_fields': {
            'log_level': log_level_str,
            'log_file': log_file,
            'structured_logging': True
        }
    })

    return logger
