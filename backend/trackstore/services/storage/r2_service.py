"""Cloudflare R2 storage service using S3-compatible API"""
import logging
from typing import Optional
from urllib.parse import quote
from botocore.exceptions import ClientError, BotoCoreError
import boto3
from botocore.config import Config

from trackstore.core.config import settings
from trackstore.core.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


def _content_disposition(filename: str) -> str:
    """Build an attachment Content-Disposition header value

    Uses an ASCII fallback plus the RFC 5987 encoded name so non-ASCII titles
    survive in browsers that support it.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'").replace("?", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


class R2Service:
    """Service for interacting with Cloudflare R2 storage"""

    def __init__(self):
        """Initialize R2 service with configuration from settings"""
        if not settings.R2_ACCESS_KEY_ID or not settings.R2_SECRET_ACCESS_KEY:
            raise ValueError("R2 configuration is missing. Set R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY environment variables.")

        if not settings.R2_BUCKET_NAME:
            raise ValueError("R2_BUCKET_NAME is not set. Set R2_BUCKET_NAME environment variable.")

        endpoint_url = settings.R2_ENDPOINT_URL
        if not endpoint_url and settings.R2_ACCOUNT_ID:
            endpoint_url = f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com"
        if not endpoint_url:
            raise ValueError("R2_ENDPOINT_URL is not set. Set R2_ENDPOINT_URL or R2_ACCOUNT_ID environment variable.")

        self.bucket = settings.R2_BUCKET_NAME
        self.endpoint_url = endpoint_url

        # Bounded timeouts: a slow storage backend must surface as a retryable error
        self.s3_client = boto3.client(
            's3',
            endpoint_url=self.endpoint_url,
            aws_access_key_id=settings.R2_ACCESS_KEY_ID,
            aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            region_name="auto",
            config=Config(
                signature_version='s3v4',
                connect_timeout=settings.R2_CONNECT_TIMEOUT,
                read_timeout=settings.R2_READ_TIMEOUT,
                retries={"max_attempts": 2}
            )
        )
        logger.info(f"R2Service initialized for bucket: {self.bucket}")

    def generate_download_url(self, object_key: str, expires_in: Optional[int] = None, filename: Optional[str] = None) -> str:
        """Generate presigned URL for direct download from R2

        Args:
            object_key: R2 object key (path in bucket)
            expires_in: URL expiration time in seconds (default: DOWNLOAD_URL_EXPIRY)
            filename: Suggested download filename (sets Content-Disposition: attachment)

        Returns:
            Presigned GET URL for downloading directly from R2

        Raises:
            ValueError: If object_key is empty
            StorageUnavailable: If URL generation fails
        """
        if not object_key:
            raise ValueError("object_key cannot be empty")

        if expires_in is None:
            expires_in = settings.DOWNLOAD_URL_EXPIRY

        params = {
            'Bucket': self.bucket,
            'Key': object_key
        }
        if filename:
            params['ResponseContentDisposition'] = _content_disposition(filename)

        try:
            url = self.s3_client.generate_presigned_url(
                'get_object',
                Params=params,
                ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate download URL for {object_key}: {e}", exc_info=True)
            raise StorageUnavailable()

        logger.debug(f"Generated download URL for {object_key} (expires in {expires_in}s)")
        return url

    def get_public_url(self, object_key: str) -> Optional[str]:
        """Public (unsigned) URL for an object, for buckets with a public domain

        Only suitable for non-protected assets such as cover art.
        """
        if not settings.R2_PUBLIC_DOMAIN:
            return None
        domain = settings.R2_PUBLIC_DOMAIN.rstrip("/")
        if "://" not in domain:
            domain = f"https://{domain}"
        return f"{domain}/{quote(object_key.lstrip('/'))}"


# Global R2 service instance (lazy initialization)
_r2_service: Optional[R2Service] = None


def get_r2_service() -> R2Service:
    """Get or create R2 service instance (lazy initialization)

    Raises:
        ValueError: If R2 configuration is missing
    """
    global _r2_service
    if _r2_service is None:
        _r2_service = R2Service()
    return _r2_service
