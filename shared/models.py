import uuid
from datetime import datetime
from zoneinfo import ZoneInfo
from sqlalchemy import Column, Integer, String, Float, Boolean, Text, Date, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship, declarative_base
from shared.enums import ProjectStatus, PhaseStatus, EquipmentStatus, TempLogStatus

Base = declarative_base()

# All portal times are Eastern; SQLite drops tzinfo on storage, so values read
# back may be naive and are treated as Eastern (see ensure_aware).
APP_TIMEZONE = ZoneInfo('America/New_York')


def now():
    """Return current datetime in application timezone (timezone-aware)."""
    return datetime.now(APP_TIMEZONE)


def today():
    """Return the current calendar date in application timezone."""
    return now().date()


def ensure_aware(value):
    """Attach the application timezone to a naive datetime read back from storage."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=APP_TIMEZONE)


def new_id():
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin providing created/updated timestamps."""

    created_at = Column(DateTime(timezone=True), default=now)
    updated_at = Column(DateTime(timezone=True), default=now, onupdate=now)


class PropertyManager(Base, TimestampMixin):
    __tablename__ = 'property_managers'
    id = Column(String(36), primary_key=True, default=new_id)
    access_token = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200))
    phone = Column(String(40))
    company = Column(String(200))
    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text)
    properties = relationship('Property', backref='property_manager', lazy='select')


class Property(Base, TimestampMixin):
    __tablename__ = 'properties'
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    address = Column(String(300))
    city = Column(String(120))
    state = Column(String(40))
    zip = Column(String(20))
    total_employees = Column(Integer, default=0)
    property_manager_id = Column(String(36), ForeignKey('property_managers.id', ondelete='SET NULL'), index=True)
    notes = Column(Text)
    locations = relationship('Location', backref='property', lazy='select', cascade="all, delete-orphan")

    def formatted_address(self):
        return f"{self.address}, {self.city}, {self.state} {self.zip}"


class Location(Base, TimestampMixin):
    __tablename__ = 'locations'
    id = Column(String(36), primary_key=True, default=new_id)
    property_id = Column(String(36), ForeignKey('properties.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    floor = Column(String(60))
    employee_count = Column(Integer)
    images = Column(JSON, default=list)
    notes = Column(Text)
    projects = relationship('Project', backref='location', lazy='select')


class Project(Base, TimestampMixin):
    __tablename__ = 'projects'
    id = Column(String(36), primary_key=True, default=new_id)
    property_id = Column(String(36), ForeignKey('properties.id', ondelete='CASCADE'), nullable=False)
    location_id = Column(String(36), ForeignKey('locations.id', ondelete='SET NULL'), index=True)
    property_manager_id = Column(String(36), ForeignKey('property_managers.id', ondelete='SET NULL'))
    name = Column(String(200), nullable=False)
    project_number = Column(String(60))
    public_token = Column(String(64), unique=True, nullable=False, index=True)
    status = Column(String(40), default=ProjectStatus.PLANNING.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    description = Column(Text)
    configuration = Column(JSON)
    target_install_date = Column(Date)
    actual_install_date = Column(Date)
    estimated_completion = Column(Date)
    overall_progress = Column(Integer, default=0, nullable=False)
    notes = Column(Text)
    raptor_pm_name = Column(String(200))
    raptor_pm_email = Column(String(200))
    raptor_pm_phone = Column(String(40))
    email_reminders_enabled = Column(Boolean, default=False, nullable=False)
    reminder_email = Column(String(200))
    last_reminder_sent = Column(DateTime(timezone=True))
    survey_token = Column(String(64), unique=True, index=True)
    survey_clicks = Column(Integer, default=0, nullable=False)
    survey_completions = Column(Integer, default=0, nullable=False)
    employee_count = Column(Integer)
    phases = relationship('Phase', backref='project', lazy='select', cascade="all, delete-orphan",
                          order_by='Phase.phase_number')
    equipment = relationship('Equipment', backref='project', lazy='select', cascade="all, delete-orphan",
                             order_by='Equipment.sort_order')


class Phase(Base, TimestampMixin):
    __tablename__ = 'phases'
    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(200), nullable=False)
    phase_number = Column(Integer, default=1, nullable=False)
    status = Column(String(40), default=PhaseStatus.NOT_STARTED.value, nullable=False)
    description = Column(Text)
    start_date = Column(Date)
    end_date = Column(Date)
    is_approximate = Column(Boolean, default=False, nullable=False)
    property_responsibility = Column(Text)
    contractor_name = Column(String(200))
    contractor_scheduled_date = Column(Date)
    contractor_status = Column(String(60))
    survey_response_rate = Column(Float)
    survey_top_meals = Column(JSON)
    survey_top_snacks = Column(JSON)
    survey_dietary_notes = Column(Text)
    document_url = Column(String(500))
    document_label = Column(String(200))
    documents = Column(JSON, default=list)
    tasks = relationship('Task', backref='phase', lazy='select', cascade="all, delete-orphan",
                         order_by='Task.sort_order')


Index('idx_phase_project_number', Phase.project_id, Phase.phase_number)


class Task(Base, TimestampMixin):
    __tablename__ = 'tasks'
    id = Column(String(36), primary_key=True, default=new_id)
    phase_id = Column(String(36), ForeignKey('phases.id', ondelete='CASCADE'), nullable=False)
    label = Column(Text, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    scheduled_date = Column(Date)
    upload_speed = Column(String(40))
    download_speed = Column(String(40))
    enclosure_type = Column(String(60))
    enclosure_color = Column(String(60))
    custom_color_name = Column(String(100))
    smartfridge_qty = Column(Integer)
    smartcooker_qty = Column(Integer)
    delivery_carrier = Column(String(100))
    tracking_number = Column(String(100))
    deliveries = Column(JSON)
    document_url = Column(String(500))
    pm_text_value = Column(Text)
    pm_text_response = Column(Text)
    notes = Column(Text)


Index('idx_task_phase_sort', Task.phase_id, Task.sort_order)


class Equipment(Base, TimestampMixin):
    __tablename__ = 'equipment'
    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    model = Column(String(200))
    spec = Column(Text)
    status = Column(String(40), default=EquipmentStatus.PENDING.value)
    status_label = Column(String(200))
    sort_order = Column(Integer, default=0, nullable=False)


class Driver(Base, TimestampMixin):
    __tablename__ = 'drivers'
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    email = Column(String(200))
    phone = Column(String(40))
    is_active = Column(Boolean, default=True, nullable=False)
    access_token = Column(String(64), unique=True, nullable=False, index=True)
    sessions = relationship('TempLogSession', backref='driver', lazy='select', cascade="all, delete-orphan")


class TempLogSession(Base, TimestampMixin):
    __tablename__ = 'temp_log_sessions'
    id = Column(String(36), primary_key=True, default=new_id)
    driver_id = Column(String(36), ForeignKey('drivers.id', ondelete='CASCADE'), nullable=False, index=True)
    session_date = Column(Date, default=today, nullable=False)
    vehicle_id = Column(String(60))
    notes = Column(Text)
    status = Column(String(20), default=TempLogStatus.IN_PROGRESS.value, nullable=False)
    entries = relationship('TempLogEntry', backref='session', lazy='select', cascade="all, delete-orphan",
                           order_by='TempLogEntry.timestamp')


class TempLogEntry(Base):
    __tablename__ = 'temp_log_entries'
    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey('temp_log_sessions.id', ondelete='CASCADE'), nullable=False, index=True)
    entry_type = Column(String(20), nullable=False)
    stop_number = Column(Integer, default=1, nullable=False)
    location_name = Column(String(200))
    timestamp = Column(DateTime(timezone=True), default=now, nullable=False)
    temperature = Column(Float, nullable=False)
    photo_url = Column(String(500))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=now)


class ActivityLog(Base):
    __tablename__ = 'activity_log'
    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey('projects.id', ondelete='CASCADE'), index=True)
    phase_id = Column(String(36))
    task_id = Column(String(36))
    action = Column(String(60), nullable=False)
    description = Column(Text, nullable=False)
    performed_by = Column(String(200))
    actor_type = Column(String(40))
    # "metadata" is reserved on declarative classes
    meta = Column('metadata', JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=now)


class PmMessage(Base):
    __tablename__ = 'pm_messages'
    id = Column(String(36), primary_key=True, default=new_id)
    pm_id = Column(String(36), ForeignKey('property_managers.id', ondelete='CASCADE'), nullable=False, index=True)
    sender = Column(String(20), nullable=False)
    sender_name = Column(String(200))
    message = Column(Text, nullable=False)
    read_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=now)


class GlobalDocument(Base, TimestampMixin):
    __tablename__ = 'global_documents'
    id = Column(String(36), primary_key=True, default=new_id)
    key = Column(String(100), unique=True, nullable=False)
    label = Column(String(200), nullable=False)
    description = Column(Text)
    url = Column(String(500))
    file_type = Column(String(40))


class EmailTemplate(Base, TimestampMixin):
    __tablename__ = 'email_templates'
    id = Column(String(36), primary_key=True, default=new_id)
    key = Column(String(100), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    subject = Column(String(300))
    body = Column(Text)
    description = Column(Text)
    cc_emails = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
