"""Object storage relay using Apache Libcloud."""

import logging
from libcloud.common.types import InvalidCredsError, LibcloudError
from libcloud.storage.types import Provider, ContainerDoesNotExistError
from libcloud.storage.providers import get_driver
from shared.enums import StorageErrorKind


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'

STORAGE_HINTS = {
    StorageErrorKind.BUCKET_NOT_FOUND: 'Create the bucket in the storage console and make it public.',
    StorageErrorKind.POLICY_DENIED: 'The storage credentials are not allowed to write to this bucket. '
                                    'Check the key pair and the bucket policy.',
}


class StorageError(Exception):
    """Upstream storage failure, classified by kind."""

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def hint(self):
        return STORAGE_HINTS.get(self.kind)


def classify_storage_error(exc):
    """Map a libcloud exception onto a StorageErrorKind."""
    if isinstance(exc, ContainerDoesNotExistError):
        return StorageErrorKind.BUCKET_NOT_FOUND
    if isinstance(exc, InvalidCredsError):
        return StorageErrorKind.POLICY_DENIED
    status = getattr(exc, 'http_code', None) or getattr(exc, 'status', None)
    if status == 404:
        return StorageErrorKind.BUCKET_NOT_FOUND
    if status in (401, 403):
        return StorageErrorKind.POLICY_DENIED
    return StorageErrorKind.UPSTREAM_FAILURE


class StorageService:
    """Writes uploaded objects to a bucket and reports their public URL."""

    provider_map = {
        's3': Provider.S3,
        'gcs': Provider.GOOGLE_STORAGE,
        'azure': Provider.AZURE_BLOBS,
        'minio': Provider.MINIO,
    }

    def __init__(self, provider_name, access_key, secret_key, region=None, host=None,
                 public_base_url=None, default_bucket=None):
        if provider_name not in self.provider_map:
            raise ValueError(f"Unsupported provider: {provider_name}")

        self.provider_name = provider_name
        self.region = region
        self.host = host
        self.public_base_url = public_base_url.rstrip('/') if public_base_url else None
        self.default_bucket = default_bucket
        self.driver = self._get_driver(access_key, secret_key)

        logger.info(f"Cloud storage initialized with provider: {self.provider_name}")

    @classmethod
    def from_config(cls, config):
        """Build from app config, or return None when credentials are absent."""
        access_key = config.get('CLOUD_STORAGE_ACCESS_KEY')
        secret_key = config.get('CLOUD_STORAGE_SECRET_KEY')
        if not (access_key and secret_key):
            logger.warning("Cloud storage not configured; uploads will be rejected")
            return None
        return cls(
            provider_name=config.get('CLOUD_STORAGE_PROVIDER', 's3'),
            access_key=access_key,
            secret_key=secret_key,
            region=config.get('CLOUD_STORAGE_REGION'),
            host=config.get('CLOUD_STORAGE_HOST'),
            public_base_url=config.get('CLOUD_STORAGE_PUBLIC_BASE_URL'),
            default_bucket=config.get('CLOUD_STORAGE_DEFAULT_BUCKET'),
        )

    def _get_driver(self, access_key, secret_key):
        """Get the libcloud driver for the configured provider."""
        kwargs = {
            'key': access_key,
            'secret': secret_key,
        }

        if self.provider_name == 's3' and self.region:
            kwargs['region'] = self.region
        elif self.provider_name == 'minio' and self.host:
            kwargs['host'] = self.host
            kwargs['secure'] = True

        return get_driver(self.provider_map[self.provider_name])(**kwargs)

    def upload(self, bucket, path, data, content_type=None):
        """
        Write bytes to bucket/path, overwriting any existing object.

        Args:
            bucket: Container name
            path: Object name inside the container
            data: Payload bytes
            content_type: MIME type (defaults to application/octet-stream)

        Returns:
            str: Public URL of the stored object

        Raises:
            StorageError: If the upstream write fails
        """
        content_type = content_type or DEFAULT_CONTENT_TYPE
        logger.info(f"Uploading {len(data)} bytes to {bucket}/{path}")
        try:
            container = self.driver.get_container(container_name=bucket)
            obj = self.driver.upload_object_via_stream(
                iterator=iter([data]),
                container=container,
                object_name=path,
                extra={'content_type': content_type},
            )
        except (LibcloudError, OSError) as e:
            kind = classify_storage_error(e)
            logger.error(f"Upload to {bucket}/{path} failed ({kind.value}): {e}")
            raise StorageError(kind, str(e)) from e

        return self.public_url(bucket, path, obj)

    def public_url(self, bucket, path, obj=None):
        if self.public_base_url:
            return f"{self.public_base_url}/{bucket}/{path}"
        if obj is not None:
            try:
                return obj.get_cdn_url()
            except NotImplementedError:
                pass
            public = getattr(obj, 'public_url', None)
            if public:
                return public
        return f"/{bucket}/{path}"
