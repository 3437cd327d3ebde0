"""
Storage Service - interview recordings in Azure Blob Storage.

Blob names: interviews/{interview_id}/{email with @ -> _at_}_{timestamp}.{ext}
"""

from datetime import datetime
from typing import Optional

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

from app.core.config import get_settings
from app.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

ALLOWED_RECORDING_TYPES = {
    "video/webm": "webm",
    "video/mp4": "mp4",
    "video/avi": "avi",
}
MAX_RECORDING_SIZE = 500 * 1024 * 1024  # 500MB


class StorageNotConfiguredError(Exception):
    pass


def build_blob_name(interview_id: str, candidate_email: str, mime_type: str,
                    timestamp: Optional[datetime] = None) -> str:
    ext = ALLOWED_RECORDING_TYPES.get(mime_type, "webm")
    stamp = int((timestamp or datetime.utcnow()).timestamp() * 1000)
    safe_email = candidate_email.replace("@", "_at_")
    return f"interviews/{interview_id}/{safe_email}_{stamp}.{ext}"


class RecordingStorage:

    def __init__(self, connection_string: str = None, container_name: str = None):
        self.connection_string = connection_string or settings.azure_storage_connection_string
        self.container_name = container_name or settings.azure_storage_container_name
        self._service: Optional[BlobServiceClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.connection_string)

    def _container(self):
        if not self.is_configured:
            raise StorageNotConfiguredError("Azure storage connection string not configured")
        if self._service is None:
            self._service = BlobServiceClient.from_connection_string(self.connection_string)
        container = self._service.get_container_client(self.container_name)
        try:
            container.create_container()
            logger.info(f"Created blob container {self.container_name}")
        except ResourceExistsError:
            pass
        return container

    def upload_recording(self, interview_id: str, candidate_email: str, data: bytes, mime_type: str) -> dict:
        """Upload bytes and return {blob_name, url, size}."""
        blob_name = build_blob_name(interview_id, candidate_email, mime_type)
        blob = self._container().get_blob_client(blob_name)
        blob.upload_blob(
            data,
            overwrite=True,
            content_settings=ContentSettings(content_type=mime_type),
            metadata={"interview_id": interview_id, "candidate_email": candidate_email},
        )
        logger.info(f"Uploaded recording {blob_name} ({len(data)} bytes)")
        return {"blob_name": blob_name, "url": blob.url, "size": len(data)}

    def delete_blob(self, blob_name: str) -> bool:
        try:
            self._container().delete_blob(blob_name)
            return True
        except ResourceNotFoundError:
            return False
        except (AzureError, StorageNotConfiguredError) as e:
            logger.warning(f"Could not delete blob {blob_name}: {e}")
            return False


def get_recording_storage() -> RecordingStorage:
    return RecordingStorage()
