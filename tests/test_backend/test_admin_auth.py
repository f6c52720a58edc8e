"""Tests for the admin password login endpoint."""
import json
from portal.services.tokens import decode_token


def test_admin_login_success(client, app):
    response = client.post('/api/admin/auth', json={'password': app.config['ADMIN_PASSWORD']})
    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['success'] is True
    assert data['expiresIn'] == '8h'
    assert response.headers['X-RateLimit-Remaining'] == '4'

    claims = decode_token(data['token'], app.config['JWT_SECRET'])
    assert claims['type'] == 'admin'
    # 8 hours between issue and expiry
    assert claims['exp'] - claims['iat'] == 8 * 3600


def test_admin_login_wrong_password(client):
    response = client.post('/api/admin/auth', json={'password': 'not the password'})
    assert response.status_code == 401
    assert json.loads(response.data)['error'] == 'Invalid credentials'


def test_admin_login_requires_password(client):
    response = client.post('/api/admin/auth', json={})
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Password is required'

    response = client.post('/api/admin/auth', json={'password': 'x' * 257})
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Invalid password'


def test_admin_login_rate_limited(client):
    for _ in range(5):
        response = client.post('/api/admin/auth', json={'password': 'wrong'})
        assert response.status_code == 401

    response = client.post('/api/admin/auth', json={'password': 'wrong'})
    assert response.status_code == 429
    data = json.loads(response.data)
    assert data['retryAfter'] >= 1
    assert int(response.headers['Retry-After']) == data['retryAfter']


def test_rate_limit_is_per_client_ip(client):
    for _ in range(5):
        client.post('/api/admin/auth', json={'password': 'wrong'},
                    headers={'X-Forwarded-For': '10.0.0.1'})

    blocked = client.post('/api/admin/auth', json={'password': 'wrong'},
                          headers={'X-Forwarded-For': '10.0.0.1'})
    other = client.post('/api/admin/auth', json={'password': 'wrong'},
                        headers={'X-Forwarded-For': '10.0.0.2, 10.0.0.1'})
    assert blocked.status_code == 429
    assert other.status_code == 401


def test_admin_login_not_configured(client, app):
    app.config['ADMIN_PASSWORD'] = None
    response = client.post('/api/admin/auth', json={'password': 'anything'})
    assert response.status_code == 500
    assert json.loads(response.data)['error'] == 'Service not configured'
