"""
Cloudflare R2 / S3-compatible storage client.

Uses boto3 with S3-compatible API to interact with Cloudflare R2.
This is storage-provider agnostic - works with any S3-compatible storage.

Uploaded objects are written with a public-read ACL and addressed through
the configured public URL prefix, so the URLs handed back to clients never
expire.
"""
import logging
from typing import Optional
import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, NoCredentialsError

from app.config import settings

logger = logging.getLogger(__name__)


class StorageNotConfiguredError(RuntimeError):
    """Raised when an upload is attempted without R2 credentials."""


class R2Client:
    """
    S3-compatible client for Cloudflare R2.

    Implements the object store used by the upload pipeline: put a local
    file under a key, build its public URL, delete it.
    """

    def __init__(self, client=None):
        """
        Initialize R2 client with boto3.

        Uses environment variables for configuration.
        Fails gracefully if not configured (is_configured stays False).
        An already built S3 client can be passed in instead.
        """
        self._client = client
        self._configured = client is not None

        if self._configured:
            return

        if not all([
            settings.r2_endpoint,
            settings.r2_access_key,
            settings.r2_secret_key
        ]):
            logger.warning(
                "R2 storage not configured. "
                "Set R2_ENDPOINT, R2_ACCESS_KEY, and R2_SECRET_KEY."
            )
            return

        try:
            # Use signature_version='s3v4' for R2 compatibility
            self._client = boto3.client(
                's3',
                endpoint_url=settings.r2_endpoint,
                aws_access_key_id=settings.r2_access_key,
                aws_secret_access_key=settings.r2_secret_key,
                region_name=settings.r2_region,
                config=Config(
                    signature_version='s3v4',
                    s3={'addressing_style': 'path'}  # R2 uses path-style
                )
            )
            self._configured = True
            logger.info(f"R2 client initialized for bucket: {settings.r2_bucket}")

        except NoCredentialsError:
            logger.error("R2 credentials not found or invalid")
        except Exception as e:
            logger.error(f"Failed to initialize R2 client: {e}")

    @property
    def is_configured(self) -> bool:
        """Check if R2 client is properly configured."""
        return self._configured and self._client is not None

    @property
    def bucket(self) -> str:
        """Get configured bucket name."""
        return settings.r2_bucket

    def upload_file(self, local_path: str, object_key: str, content_type: str) -> None:
        """
        Upload a local file to the bucket with a public-read ACL.

        Blocking; call through ``asyncio.to_thread`` from async code.

        Args:
            local_path: Path of the file to upload
            object_key: Key to store it under
            content_type: MIME type recorded on the object

        Raises:
            StorageNotConfiguredError: If R2 credentials are missing
            ClientError: If the put is rejected by the store
        """
        if not self.is_configured:
            raise StorageNotConfiguredError("R2 storage not configured")

        try:
            self._client.upload_file(
                local_path,
                self.bucket,
                object_key,
                ExtraArgs={
                    'ContentType': content_type,
                    'ACL': 'public-read',
                }
            )
        except ClientError as e:
            logger.error(f"Failed to upload {object_key} to R2: {e}")
            raise

        logger.debug(f"Uploaded {local_path} to R2 as {object_key}")

    def public_url(self, object_key: str) -> str:
        """
        Build the public URL of an object.

        Falls back to ``{endpoint}/{bucket}`` when no public prefix is set.
        """
        base = settings.r2_public_url
        if not base:
            base = f"{(settings.r2_endpoint or '').rstrip('/')}/{self.bucket}"
        return f"{base.rstrip('/')}/{object_key}"

    def delete_object(self, object_key: str) -> bool:
        """
        Delete an object from the bucket.

        Args:
            object_key: The S3 object key to delete

        Returns:
            True if deletion was successful, False otherwise
        """
        if not self.is_configured:
            logger.warning(f"Cannot delete object {object_key}: R2 not configured")
            return False

        try:
            self._client.delete_object(Bucket=self.bucket, Key=object_key)
            logger.debug(f"Deleted object {object_key} from R2")
            return True
        except ClientError as e:
            # If object doesn't exist, consider it a success (idempotent)
            if e.response['Error']['Code'] == '404':
                logger.debug(f"Object {object_key} not found in R2 (already deleted)")
                return True
            logger.error(f"Failed to delete object {object_key} from R2: {e}")
            return False


# Singleton instance
_r2_client: Optional[R2Client] = None


def get_r2_client() -> R2Client:
    """
    Get the singleton R2 client instance.

    Returns:
        R2Client instance (may or may not be configured)
    """
    global _r2_client
    if _r2_client is None:
        _r2_client = R2Client()
    return _r2_client
