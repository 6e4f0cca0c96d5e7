"""
Storage Service - S3-compatible object storage for product images

Supports AWS S3 and S3-compatible services (R2, MinIO) through a custom
endpoint. Every call is best-effort from the caller's point of view: failures
come back as an unsuccessful result and are logged here, never raised.
"""
import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """Result of a file upload."""
    success: bool
    filename: Optional[str] = None
    url: Optional[str] = None
    key: Optional[str] = None
    error: Optional[str] = None
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None


@dataclass
class DeleteResult:
    """Result of an object deletion."""
    success: bool
    url: Optional[str] = None
    key: Optional[str] = None
    error: Optional[str] = None


class StorageService:
    """
    S3-compatible storage service.

    Uploads product images under generated keys and deletes them again by the
    key derived from their public URL. boto3 is synchronous, so calls run in a
    worker thread to let several uploads proceed concurrently.
    """
    _validation_lock: Lock = Lock()
    _bucket_validated: bool = False

    ALLOWED_IMAGE_TYPES = {
        'image/png': '.png',
        'image/jpeg': '.jpg',
        'image/gif': '.gif',
        'image/webp': '.webp',
        'image/avif': '.avif',
    }

    def __init__(self, client=None, bucket: Optional[str] = None):
        self._client = client
        self._bucket = bucket or settings.S3_BUCKET
        self._region = settings.S3_REGION
        self._prefix = settings.S3_PRODUCT_PREFIX.strip('/')
        self.max_image_size = settings.MAX_PRODUCT_IMAGE_MB * 1024 * 1024

    @property
    def client(self):
        """Lazy-load S3 client."""
        if self._client is None:
            config = Config(
                signature_version='s3v4',
                retries={'max_attempts': 3, 'mode': 'standard'}
            )

            client_kwargs = {
                'service_name': 's3',
                'region_name': self._region,
                'config': config,
            }
            # Missing keys fall back to boto3's default credential chain (IAM role)
            if settings.S3_ACCESS_KEY and settings.S3_SECRET_KEY:
                client_kwargs['aws_access_key_id'] = settings.S3_ACCESS_KEY
                client_kwargs['aws_secret_access_key'] = settings.S3_SECRET_KEY

            if settings.S3_ENDPOINT:
                client_kwargs['endpoint_url'] = settings.S3_ENDPOINT

            self._client = boto3.client(**client_kwargs)

        return self._client

    @property
    def bucket(self) -> str:
        return self._bucket

    def is_configured(self) -> bool:
        """
        Check if S3 is configured.

        Missing access/secret keys are allowed to support IAM/role-based auth.
        """
        return bool(self._bucket)

    # ----- Keys and URLs -----

    def get_public_url(self, key: str) -> str:
        """Public URL for an object key."""
        if settings.S3_ENDPOINT:
            endpoint = settings.S3_ENDPOINT.rstrip('/')
            return f"{endpoint}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """
        Derive the object key from a stored public URL.

        The key is the URL path without its leading slash; path-style URLs
        from a custom endpoint also carry the bucket name, which is dropped.
        """
        try:
            parsed = urlparse(url)
        except ValueError:
            return None
        if not parsed.scheme or not parsed.netloc:
            return None

        key = unquote(parsed.path.lstrip('/'))
        bucket_prefix = f"{self._bucket}/"
        if settings.S3_ENDPOINT and key.startswith(bucket_prefix):
            key = key[len(bucket_prefix):]
        return key or None

    def generate_key(self, filename: str) -> str:
        """products/{timestamp}-{random}-{filename}"""
        timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        random_part = uuid.uuid4().hex[:7]
        base = os.path.basename(filename or "") or "image"
        safe_filename = "".join(c for c in base if c.isalnum() or c in '.-_') or "image"
        return f"{self._prefix}/{timestamp}-{random_part}-{safe_filename}"

    # ----- Validation -----

    def validate_configuration_once(self) -> None:
        """Run bucket validation a single time per process."""
        if StorageService._bucket_validated:
            return

        with StorageService._validation_lock:
            if StorageService._bucket_validated:
                return
            self._validate_configuration()
            StorageService._bucket_validated = True

    def _validate_configuration(self) -> None:
        """
        Verify bucket access with head_bucket.

        Outside production a failure is only logged so local development can
        run without object storage.
        """
        env = settings.ENVIRONMENT.lower()

        if not self.is_configured():
            if env != "production":
                logger.warning("S3 storage not configured; image uploads will fail")
                return
            raise RuntimeError("S3 storage not configured. Set S3_BUCKET or S3_BUCKET_NAME.")

        try:
            self.client.head_bucket(Bucket=self._bucket)
            logger.info(
                "S3 bucket validated: bucket=%s region=%s endpoint=%s",
                self._bucket,
                self._region,
                settings.S3_ENDPOINT or "aws",
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_msg = e.response.get('Error', {}).get('Message', str(e))
            detail = f"S3 bucket validation failed for '{self._bucket}': {error_code} - {error_msg}"
            if env != "production":
                logger.warning(detail)
                return
            raise RuntimeError(detail) from e

    def _validate_image(self, content: bytes, content_type: str) -> Tuple[bool, Optional[str]]:
        """Validate image file."""
        if content_type not in self.ALLOWED_IMAGE_TYPES:
            return False, f"Invalid content type: {content_type}. Allowed: {list(self.ALLOWED_IMAGE_TYPES.keys())}"

        if not content:
            return False, "Empty file"

        if len(content) > self.max_image_size:
            max_mb = self.max_image_size / (1024 * 1024)
            actual_mb = len(content) / (1024 * 1024)
            return False, f"File too large: {actual_mb:.1f}MB. Max: {max_mb:.0f}MB"

        # Basic magic byte validation
        if content_type == 'image/png' and not content.startswith(b'\x89PNG'):
            return False, "Invalid PNG file"
        if content_type == 'image/jpeg' and not content.startswith(b'\xff\xd8'):
            return False, "Invalid JPEG file"
        if content_type == 'image/gif' and not content.startswith(b'GIF'):
            return False, "Invalid GIF file"

        return True, None

    # ----- Operations -----

    async def upload_product_image(
        self,
        content: bytes,
        filename: str,
        content_type: str,
    ) -> UploadResult:
        """
        Upload a product image under a freshly generated key.

        Returns:
            UploadResult with the public URL on success; on failure the error
            is logged and returned, never raised.
        """
        is_valid, error = self._validate_image(content, content_type)
        if not is_valid:
            logger.warning(f"Rejected product image {filename}: {error}")
            return UploadResult(success=False, filename=filename, error=error)

        key = self.generate_key(filename)

        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                CacheControl='public, max-age=86400',  # 1 day cache
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_msg = e.response.get('Error', {}).get('Message', str(e))
            logger.error(f"Failed to upload {filename}: {error_code} - {error_msg}")
            return UploadResult(success=False, filename=filename, key=key, error=f"Upload failed: {error_msg}")
        except Exception as e:
            logger.error(f"Failed to upload {filename}: {e}")
            return UploadResult(success=False, filename=filename, key=key, error=f"Upload failed: {str(e)}")

        url = self.get_public_url(key)
        logger.info(f"Uploaded product image: {key}")

        return UploadResult(
            success=True,
            filename=filename,
            url=url,
            key=key,
            content_type=content_type,
            size_bytes=len(content),
        )

    async def delete_object(self, key: str) -> DeleteResult:
        """Delete an object by key."""
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self._bucket, Key=key)
        except Exception as e:
            logger.error(f"Delete failed for {key}: {e}")
            return DeleteResult(success=False, key=key, error=str(e))

        logger.info(f"Deleted object: {key}")
        return DeleteResult(success=True, key=key)

    async def delete_by_url(self, url: str) -> DeleteResult:
        """Delete the object a stored public URL points at."""
        key = self.key_from_url(url)
        if not key:
            logger.error(f"Cannot derive object key from URL: {url}")
            return DeleteResult(success=False, url=url, error="Unparseable object URL")

        result = await self.delete_object(key)
        result.url = url
        return result


_storage: Optional[StorageService] = None


def get_storage() -> StorageService:
    """FastAPI dependency returning the process-wide storage service."""
    global _storage
    if _storage is None:
        _storage = StorageService()
    return _storage
