from flask_sqlalchemy import SQLAlchemy
import logging
from shared.models import (
    Base, PropertyManager, Property, Location, Project, Phase, Task, Equipment,
    Driver, TempLogSession, TempLogEntry, ActivityLog, PmMessage, GlobalDocument, EmailTemplate
)

logger = logging.getLogger(__name__)
db = SQLAlchemy(model_class=Base)
