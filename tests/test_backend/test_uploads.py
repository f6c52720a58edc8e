"""Tests for the upload relay endpoint."""
import base64
import io
import json
import re
from shared.enums import StorageErrorKind
from portal.services.storage import StorageError

PATH_PATTERN = re.compile(r'^(?P<folder>.+)/\d{13}-[0-9a-f]{8}(?P<ext>\.[a-z0-9]+)?$')


def test_multipart_upload_defaults(client, storage, admin_headers):
    response = client.post(
        '/api/uploads',
        data={'file': (io.BytesIO(b'fake image bytes'), 'Photo.JPG', 'image/jpeg')},
        headers=admin_headers,
        content_type='multipart/form-data',
    )
    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['success'] is True
    assert data['bucket'] == 'project-files'

    match = PATH_PATTERN.match(data['path'])
    assert match and match.group('folder') == 'uploads'
    assert match.group('ext') == '.jpg'
    assert data['url'] == data['publicUrl'] == f"https://cdn.example.com/project-files/{data['path']}"

    stored = storage.uploads[0]
    assert stored['data'] == b'fake image bytes'
    assert stored['content_type'] == 'image/jpeg'


def test_multipart_upload_with_folder(client, storage, admin_headers):
    response = client.post(
        '/api/admin/upload',
        data={'file': (io.BytesIO(b'%PDF'), 'plan.pdf'), 'folder': 'projects/RV-1001/', 'bucket': 'docs'},
        headers=admin_headers,
        content_type='multipart/form-data',
    )
    data = json.loads(response.data)
    assert data['bucket'] == 'docs'
    assert data['path'].startswith('projects/RV-1001/')
    assert data['path'].endswith('.pdf')


def test_json_upload(client, storage, admin_headers):
    payload = {
        'bucket': 'docs',
        'filePath': 'contracts/signed.png',
        'fileData': 'data:image/png;base64,' + base64.b64encode(b'png bytes').decode(),
        'contentType': 'image/png',
    }
    response = client.post('/api/uploads', json=payload, headers=admin_headers)
    assert response.status_code == 200
    data = json.loads(response.data)
    assert PATH_PATTERN.match(data['path']).group('folder') == 'contracts'
    assert storage.uploads[0]['data'] == b'png bytes'
    assert storage.uploads[0]['content_type'] == 'image/png'


def test_json_upload_missing_fields(client, storage, admin_headers):
    response = client.post('/api/uploads', json={'bucket': 'docs', 'filePath': 'a.png'}, headers=admin_headers)
    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Missing required fields: bucket, filePath, fileData'
    assert storage.uploads == []


def test_json_upload_invalid_base64(client, storage, admin_headers):
    response = client.post('/api/uploads', json={'bucket': 'docs', 'filePath': 'a.png', 'fileData': '%%%'},
                           headers=admin_headers)
    assert response.status_code == 400
    assert storage.uploads == []


def test_folder_traversal_is_rejected(client, storage, admin_headers):
    response = client.post(
        '/api/uploads',
        data={'file': (io.BytesIO(b'x'), 'x.txt'), 'folder': '../secrets'},
        headers=admin_headers,
        content_type='multipart/form-data',
    )
    assert response.status_code == 400
    assert storage.uploads == []


def test_driver_uploads_are_confined(client, storage, driver, driver_headers):
    response = client.post(
        '/api/uploads',
        data={'file': (io.BytesIO(b'thermometer'), 'reading.jpg'), 'folder': 'projects/other'},
        headers=driver_headers,
        content_type='multipart/form-data',
    )
    assert response.status_code == 200
    path = json.loads(response.data)['path']
    assert PATH_PATTERN.match(path).group('folder') == f'temp-logs/{driver}'


def test_upload_requires_principal(client, storage):
    response = client.post('/api/uploads', json={'bucket': 'b', 'filePath': 'a.png', 'fileData': 'YQ=='})
    assert response.status_code == 401
    assert storage.uploads == []


def test_upload_storage_not_configured(client, admin_headers):
    response = client.post('/api/uploads', json={'bucket': 'b', 'filePath': 'a.png', 'fileData': 'YQ=='},
                           headers=admin_headers)
    assert response.status_code == 500
    data = json.loads(response.data)
    assert data['error'] == 'Storage service not configured'
    assert data['kind'] == 'not_configured'


def test_upload_bucket_not_found_carries_hint(client, storage, admin_headers):
    storage.error = StorageError(StorageErrorKind.BUCKET_NOT_FOUND, 'Container missing')
    response = client.post('/api/uploads', json={'bucket': 'b', 'filePath': 'a.png', 'fileData': 'YQ=='},
                           headers=admin_headers)
    assert response.status_code == 500
    data = json.loads(response.data)
    assert data['kind'] == 'bucket_not_found'
    assert data['hint']


def test_upload_upstream_failure_has_no_hint(client, storage, admin_headers):
    storage.error = StorageError(StorageErrorKind.UPSTREAM_FAILURE, 'Connection reset')
    response = client.post('/api/uploads', json={'bucket': 'b', 'filePath': 'a.png', 'fileData': 'YQ=='},
                           headers=admin_headers)
    data = json.loads(response.data)
    assert data == {'error': 'Connection reset', 'kind': 'upstream_failure'}
