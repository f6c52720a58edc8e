"""Tests for request schemas and view serialization."""
import pytest
from shared.schemas import (
    DeliveryNotificationRequest, PortalTaskUpdate, PMMessageCreate, validate_payload,
    ProjectView, ContactInfo, PhaseView, TaskView
)
from shared.validation import ValidationError


def test_delivery_request_aliases():
    payload = validate_payload(DeliveryNotificationRequest, {
        'projectId': '3f2b8c4e-1d2a-4b5c-9e8f-0a1b2c3d4e5f',
        'delivery': {'equipment': ' SmartFridge ', 'date': '2025-03-14', 'tracking': '1Z'},
    })
    assert payload.project_id == '3f2b8c4e-1d2a-4b5c-9e8f-0a1b2c3d4e5f'
    assert payload.delivery.equipment == 'SmartFridge'
    assert payload.delivery.carrier is None


def test_delivery_request_errors_are_flattened():
    with pytest.raises(ValidationError) as excinfo:
        validate_payload(DeliveryNotificationRequest, {'projectId': 'bad', 'delivery': {'equipment': '  '}})
    message = str(excinfo.value)
    assert 'projectId' in message
    assert 'delivery.equipment' in message
    assert 'delivery.tracking' in message


def test_portal_task_update_ignores_unknown_fields():
    payload = validate_payload(PortalTaskUpdate, {'completed': True, 'label': 'x', 'phase_id': 'y'})
    assert payload.model_dump(exclude_unset=True) == {'completed': True}


def test_portal_task_update_rejects_null_completion():
    with pytest.raises(ValidationError, match='completed cannot be null'):
        validate_payload(PortalTaskUpdate, {'completed': None})
    assert validate_payload(PortalTaskUpdate, {'pm_text_value': None}).pm_text_value is None


def test_portal_task_update_sanitizes_text():
    payload = validate_payload(PortalTaskUpdate, {'pm_text_value': '<i>Guest</i> wifi'})
    assert payload.pm_text_value == 'Guest wifi'


def test_pm_message_rejects_markup_only():
    with pytest.raises(ValidationError):
        validate_payload(PMMessageCreate, {'message': '<b></b>'})
    with pytest.raises(ValidationError):
        validate_payload(PMMessageCreate, {'message': 'x' * 2001})


def test_views_serialize_camel_case_with_snake_case_tasks():
    view = ProjectView(
        project_id='p-1',
        public_token='tok',
        project_manager=ContactInfo(name='Riley'),
        days_remaining=-3,
        phases=[PhaseView(id='ph-1', title='Survey', status='pending',
                          tasks=[TaskView(id='t-1', label='[PM] Confirm', completed=False,
                                          smartfridge_qty=2)])],
    )
    data = view.to_json()
    assert data['projectId'] == 'p-1'
    assert data['daysRemaining'] == -3
    assert data['propertyManager'] is None
    assert data['phases'][0]['isApproximate'] is False
    task = data['phases'][0]['tasks'][0]
    assert task['smartfridge_qty'] == 2
    assert 'smartfridgeQty' not in task
