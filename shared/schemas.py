"""Pydantic schemas for request validation and portal view serialization."""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic import ValidationError as PydanticValidationError
from shared.validation import ValidationError, Validator


def flatten_pydantic_errors(e: PydanticValidationError) -> str:
    """Join pydantic errors into a single 'field: message' string."""
    errors = []
    for error in e.errors():
        field = '.'.join(str(x) for x in error['loc'])
        errors.append(f"{field}: {error['msg']}" if field else error['msg'])
    return '; '.join(errors)


def validate_payload(schema, data):
    """Validate a request payload, raising the shared ValidationError on failure."""
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(flatten_pydantic_errors(e))


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------

class DeliveryInfo(BaseModel):
    equipment: str = Field(..., min_length=1, max_length=200)
    date: str = Field(..., min_length=1)
    tracking: str = Field(..., min_length=1, max_length=100)
    carrier: Optional[str] = Field(None, max_length=100)

    @field_validator('equipment', 'date', 'tracking')
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('must not be blank')
        return v.strip()


class DeliveryNotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias='projectId')
    delivery: DeliveryInfo

    @field_validator('project_id')
    @classmethod
    def valid_project_id(cls, v: str) -> str:
        if not Validator.is_valid_id(v):
            raise ValueError('Valid projectId is required')
        return v


class PortalTaskUpdate(BaseModel):
    """Fields a property manager may change on a task through a capability token."""
    model_config = ConfigDict(extra='ignore')

    completed: Optional[bool] = None
    pm_text_value: Optional[str] = Field(None, max_length=2000)
    pm_text_response: Optional[str] = Field(None, max_length=2000)
    scheduled_date: Optional[str] = None

    @field_validator('completed')
    @classmethod
    def completed_not_null(cls, v: Optional[bool]) -> bool:
        # only runs when the client sends the field
        if v is None:
            raise ValueError('completed cannot be null')
        return v

    @field_validator('pm_text_value', 'pm_text_response')
    @classmethod
    def sanitize(cls, v: Optional[str]) -> Optional[str]:
        return Validator.sanitize_text(v) if v else v


class PMMessageCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)

    @field_validator('message')
    @classmethod
    def clean_message(cls, v: str) -> str:
        v = Validator.sanitize_text(v.strip())
        if not v:
            raise ValueError('Message cannot be empty')
        return v


# ---------------------------------------------------------------------------
# Portal views (serialized with camelCase keys)
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)


class TaskView(BaseModel):
    """Task rows keep their column names in portal payloads."""
    id: str
    label: str
    completed: bool
    scheduled_date: Optional[str] = None
    upload_speed: Optional[str] = None
    download_speed: Optional[str] = None
    enclosure_type: Optional[str] = None
    enclosure_color: Optional[str] = None
    custom_color_name: Optional[str] = None
    smartfridge_qty: Optional[int] = None
    smartcooker_qty: Optional[int] = None
    delivery_carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    deliveries: Optional[List[Any]] = None
    document_url: Optional[str] = None
    pm_text_value: Optional[str] = None


class ContractorInfo(CamelModel):
    name: str
    scheduled_date: Optional[str] = None
    status: Optional[str] = None


class SurveyResults(CamelModel):
    response_rate: float
    top_meals: List[Any] = []
    top_snacks: List[Any] = []
    dietary_notes: Optional[str] = None


class DocumentLink(CamelModel):
    url: str
    label: str


class PhaseView(CamelModel):
    id: str
    title: str
    status: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    description: Optional[str] = None
    is_approximate: bool = False
    property_responsibility: Optional[str] = None
    contractor_info: Optional[ContractorInfo] = None
    survey_results: Optional[SurveyResults] = None
    document: Optional[DocumentLink] = None
    documents: List[Any] = []
    tasks: List[TaskView] = []


class EquipmentView(CamelModel):
    id: str
    name: str
    model: Optional[str] = None
    spec: Optional[str] = None
    status: Optional[str] = None
    status_label: Optional[str] = None


class GlobalDocumentView(CamelModel):
    key: str
    label: str
    url: Optional[str] = None
    description: Optional[str] = None


class ContactInfo(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class PropertyManagerInfo(CamelModel):
    id: str
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class ProjectView(CamelModel):
    id: Optional[str] = None
    project_id: str
    public_token: str
    location_name: str = ''
    location_floor: str = ''
    location_images: List[str] = []
    property_name: str = ''
    address: str = ''
    employee_count: int = 0
    configuration: Any = None
    project_manager: ContactInfo
    property_manager: Optional[PropertyManagerInfo] = None
    estimated_completion: str = ''
    days_remaining: Optional[int] = None
    overall_progress: Optional[int] = None
    survey_token: Optional[str] = None
    survey_clicks: int = 0
    survey_completions: int = 0
    phases: List[PhaseView] = []
    equipment: List[EquipmentView] = []
    global_documents: Dict[str, GlobalDocumentView] = {}


class PortalManagerSummary(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    company: Optional[str] = None


class PortalPropertySummary(CamelModel):
    id: str
    name: str
    address: str
    total_employees: int = 0
    location_count: int = 0


class PMPortalView(CamelModel):
    property_manager: PortalManagerSummary
    properties: List[PortalPropertySummary] = []
    projects: List[ProjectView] = []
