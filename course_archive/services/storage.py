"""
MinIO storage service for relay writes
"""
import logging
from typing import BinaryIO, Optional

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as TransportError

from ..core.config import settings

logger = logging.getLogger(__name__)


class StorageWriteError(Exception):
    """Object store rejected or never received a write or delete"""


def _describe(error: Exception) -> str:
    if isinstance(error, S3Error):
        return f"{error.code}: {error.message}"
    return f"Object store unreachable: {error}"


class ObjectStore:
    """
    Object storage service using MinIO (S3-compatible).
    
    Only the relay talks to the store directly. Reads go through the origin
    proxy over HTTP so end users never see the storage endpoint.
    """
    
    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        self.client = client or Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE
        )
        self.bucket = bucket or settings.MINIO_BUCKET
        logger.info(f"🗄️  MinIO client initialized: {settings.MINIO_ENDPOINT}/{self.bucket}")
    
    def ensure_bucket_exists(self):
        """Create bucket if it doesn't exist"""
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"✅ Created MinIO bucket: {self.bucket}")
            else:
                logger.info(f"✅ MinIO bucket exists: {self.bucket}")
        except S3Error as e:
            logger.error(f"❌ Failed to create bucket: {e}")
            raise
    
    def put_file(
        self,
        storage_key: str,
        data: BinaryIO,
        length: int,
        content_type: str = "application/octet-stream"
    ) -> None:
        """
        Upload a file-like object (blocking; run it in an executor from async code).
        
        Raises:
            StorageWriteError: the store refused the write or could not be reached
        """
        try:
            self.client.put_object(
                self.bucket,
                storage_key,
                data,
                length=length,
                content_type=content_type
            )
        # MinIO raises S3Error for refusals, urllib3 errors when the endpoint
        # is down and ValueError for bad arguments
        except (S3Error, TransportError, ValueError) as e:
            logger.error(f"❌ Failed to upload {storage_key}: {e}")
            raise StorageWriteError(_describe(e)) from e
        logger.info(f"✅ Uploaded {length} bytes to {storage_key}")
    
    def delete(self, storage_key: str) -> None:
        """
        Delete object from storage.
        
        Only used to compensate a failed catalog insert. Deleting a catalog
        row never calls this; the blob stays reachable by its path.
        """
        try:
            self.client.remove_object(self.bucket, storage_key)
            logger.info(f"🗑️  Deleted {storage_key}")
        except (S3Error, TransportError, ValueError) as e:
            logger.error(f"❌ Failed to delete {storage_key}: {e}")
            raise StorageWriteError(_describe(e)) from e


# Singleton instance
storage_service = ObjectStore()


def get_object_store() -> ObjectStore:
    """Dependency for the object store"""
    return storage_service
