import enum


class PrincipalType(str, enum.Enum):
    """Kinds of caller a request can be authenticated as.

    Admin and driver principals come from signed tokens; property managers
    present an opaque capability token instead.
    """
    ADMIN = "admin"
    DRIVER = "driver"
    PROPERTY_MANAGER = "property_manager"


class ProjectStatus(str, enum.Enum):
    """Project lifecycle stages."""
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    PLANNING = "planning"


class PhaseStatus(str, enum.Enum):
    """Phase status values.

    PENDING, IN_PROGRESS and COMPLETED are the values written back when task
    completion changes. NOT_STARTED is the default for phases created through
    the admin CRUD route.
    """
    BLOCKED = "blocked"
    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    NOT_STARTED = "not_started"
    PENDING = "pending"


class EquipmentStatus(str, enum.Enum):
    DELIVERED = "delivered"
    FABRICATING = "fabricating"
    INSTALLED = "installed"
    IN_TRANSIT = "in-transit"
    PENDING = "pending"
    READY = "ready"


class TempLogStatus(str, enum.Enum):
    """Driver temperature-log session states."""
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"


class TempLogEntryType(str, enum.Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class ActorType(str, enum.Enum):
    """Who performed an action recorded in the activity log."""
    ADMIN = "admin"
    DRIVER = "driver"
    PROPERTY_MANAGER = "property_manager"
    SYSTEM = "system"


class ActivityAction(str, enum.Enum):
    EMAIL_CLICKED = "email_clicked"
    EMAIL_OPENED = "email_opened"
    REMINDER_SENT = "reminder_sent"
    TASK_COMPLETED = "task_completed"


class MessageSender(str, enum.Enum):
    ADMIN = "admin"
    PM = "pm"


class StorageErrorKind(str, enum.Enum):
    """Closed set of upstream storage failure kinds.

    BUCKET_NOT_FOUND and POLICY_DENIED carry an operator hint; everything
    unrecognized is UPSTREAM_FAILURE.
    """
    BUCKET_NOT_FOUND = "bucket_not_found"
    NOT_CONFIGURED = "not_configured"
    POLICY_DENIED = "policy_denied"
    UPSTREAM_FAILURE = "upstream_failure"
