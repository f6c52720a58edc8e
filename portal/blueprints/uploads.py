"""Upload relay: accepts a file from an admin or driver and writes it to object storage."""
from flask import Blueprint, jsonify, request, current_app
import os
import re
import secrets
import time
import logging
from shared.enums import PrincipalType, StorageErrorKind
from shared.validation import Validator, ValidationError
from ..auth import admin_or_driver_required, current_principal_type, current_driver_id
from ..services.storage import StorageError, DEFAULT_CONTENT_TYPE
from ..utils import api_error, get_json_body, get_service

bp = Blueprint('uploads', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

EXTENSION_PATTERN = re.compile(r'^\.[A-Za-z0-9]{1,10}$')


class UploadRequest:
    """One upload normalized from either request shape."""

    def __init__(self, bucket, folder, filename, data, content_type):
        self.bucket = bucket
        self.folder = folder
        self.filename = filename
        self.data = data
        self.content_type = content_type or DEFAULT_CONTENT_TYPE


def parse_multipart():
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise ValidationError('No file provided')
    return UploadRequest(
        bucket=request.form.get('bucket') or current_app.config.get('CLOUD_STORAGE_DEFAULT_BUCKET'),
        folder=Validator.validate_folder(request.form.get('folder')),
        filename=upload.filename,
        data=upload.read(),
        content_type=upload.mimetype,
    )


def parse_json():
    data = get_json_body()
    bucket = data.get('bucket')
    file_path = data.get('filePath')
    file_data = data.get('fileData')
    if not bucket or not file_path or not file_data:
        raise ValidationError('Missing required fields: bucket, filePath, fileData')
    if not isinstance(file_path, str):
        raise ValidationError('filePath must be a string')

    folder, filename = os.path.split(file_path.strip())
    return UploadRequest(
        bucket=bucket,
        folder=Validator.validate_folder(folder),
        filename=filename,
        data=Validator.decode_base64(file_data),
        content_type=data.get('contentType'),
    )


def storage_path(folder, filename):
    """Server-generated object path: <folder>/<epoch-millis>-<random hex><ext>."""
    ext = os.path.splitext(filename or '')[1].lower()
    if not EXTENSION_PATTERN.match(ext):
        ext = ''
    return f"{folder}/{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"


def storage_error_response(error):
    if error.kind in (StorageErrorKind.BUCKET_NOT_FOUND, StorageErrorKind.POLICY_DENIED):
        return api_error(error.message, 500, 'error', kind=error.kind.value, hint=error.hint)
    return api_error(error.message, 500, 'error', kind=error.kind.value)


@bp.route('/uploads', methods=['POST'])
@bp.route('/admin/upload', methods=['POST'])
@admin_or_driver_required
def upload():
    """
    Store one file and return its public URL.

    Accepts multipart/form-data (file, folder, bucket) or JSON
    (bucket, filePath, fileData as base64, contentType). Driver uploads are
    always written under temp-logs/<driverId>/.
    """
    try:
        if request.mimetype == 'multipart/form-data':
            upload_request = parse_multipart()
        else:
            upload_request = parse_json()
        if not upload_request.bucket:
            raise ValidationError('Bucket is required')
    except ValidationError as e:
        return api_error(str(e), 400)

    folder = upload_request.folder
    if current_principal_type() == PrincipalType.DRIVER:
        folder = f"temp-logs/{current_driver_id()}"
    path = storage_path(folder, upload_request.filename)

    storage = get_service('storage')
    if storage is None:
        return api_error('Storage service not configured', 500, 'error',
                         kind=StorageErrorKind.NOT_CONFIGURED.value)

    try:
        url = storage.upload(upload_request.bucket, path, upload_request.data, upload_request.content_type)
    except StorageError as e:
        return storage_error_response(e)

    logger.info(f"Stored {len(upload_request.data)} bytes at {upload_request.bucket}/{path}")
    return jsonify({
        'success': True,
        'url': url,
        'publicUrl': url,
        'path': path,
        'bucket': upload_request.bucket,
    })
