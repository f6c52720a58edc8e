"""Tests for the Mailgun tracking webhook."""
import hashlib
import hmac
import json
import logging
import pytest
from portal.models import db, ActivityLog
from portal.blueprints.webhooks import verify_mailgun_signature

SIGNING_KEY = 'key-webhook-signing'


def signed(timestamp='1700000000', token='a' * 50, key=SIGNING_KEY):
    signature = hmac.new(key.encode(), f'{timestamp}{token}'.encode(), hashlib.sha256).hexdigest()
    return {'timestamp': timestamp, 'token': token, 'signature': signature}


def event_payload(event='opened', project_id=None, signature=None):
    payload = {
        'event-data': {
            'event': event,
            'recipient': 'pat@example.com',
            'user-variables': {'project_id': project_id} if project_id else {},
        }
    }
    if signature is not None:
        payload['signature'] = signature
    return payload


@pytest.fixture
def signing_key(app):
    app.config['MAILGUN_WEBHOOK_SIGNING_KEY'] = SIGNING_KEY
    return SIGNING_KEY


def test_verify_signature():
    sig = signed()
    assert verify_mailgun_signature(SIGNING_KEY, sig['timestamp'], sig['token'], sig['signature'])
    assert not verify_mailgun_signature('other-key', sig['timestamp'], sig['token'], sig['signature'])
    assert not verify_mailgun_signature(SIGNING_KEY, '1700000001', sig['token'], sig['signature'])
    assert not verify_mailgun_signature(SIGNING_KEY, sig['timestamp'], sig['token'], None)


def test_signed_open_event_is_recorded(client, app, portal, signing_key):
    response = client.post('/api/webhooks/mailgun',
                           json=event_payload('opened', portal['project_id'], signed()))
    assert response.status_code == 200
    assert json.loads(response.data) == {'success': True}

    with app.app_context():
        activity = db.session.query(ActivityLog).one()
        assert activity.action == 'email_opened'
        assert activity.actor_type == 'system'
        assert activity.project_id == portal['project_id']
        assert activity.meta == {'event': 'opened', 'recipient': 'pat@example.com'}


def test_mutated_signature_is_rejected(client, app, portal, signing_key):
    sig = signed()
    sig['signature'] = sig['signature'][:-1] + ('0' if sig['signature'][-1] != '0' else '1')
    response = client.post('/api/webhooks/mailgun', json=event_payload('clicked', portal['project_id'], sig))
    assert response.status_code == 401
    assert json.loads(response.data)['error'] == 'Invalid signature'

    with app.app_context():
        assert db.session.query(ActivityLog).count() == 0


def test_missing_signature_is_rejected_when_key_set(client, signing_key):
    response = client.post('/api/webhooks/mailgun', json=event_payload('clicked'))
    assert response.status_code == 401


def test_unsigned_webhook_accepted_without_key(client, app, caplog):
    with caplog.at_level(logging.WARNING, logger='portal.blueprints.webhooks'):
        response = client.post('/api/webhooks/mailgun', json=event_payload('clicked'))
    assert response.status_code == 200
    assert 'MAILGUN_WEBHOOK_SIGNING_KEY not set' in caplog.text

    with app.app_context():
        activity = db.session.query(ActivityLog).one()
        assert activity.action == 'email_clicked'
        assert activity.project_id is None


def test_untracked_event_is_acknowledged(client, app):
    response = client.post('/api/webhooks/mailgun', json=event_payload('delivered'))
    assert response.status_code == 200
    with app.app_context():
        assert db.session.query(ActivityLog).count() == 0


def test_missing_event_data(client):
    response = client.post('/api/webhooks/mailgun', json={'signature': {}})
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'No event data'
