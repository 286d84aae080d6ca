from abc import ABC, abstractmethod
from pathlib import Path

import httpx

from bms_assistant.config import Settings
from bms_assistant.logging_config import get_logger

logger = get_logger("storage")

PDF_CONTENT_TYPE = "application/pdf"


class DocumentStorageError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DocumentStorage(ABC):
    """Publishes rendered documents and returns a retrievable URL."""

    @abstractmethod
    def upload(self, filename: str, content: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        pass


class LocalDocumentStorage(DocumentStorage):
    def __init__(self, directory: str, public_base_url: str):
        self.directory = Path(directory)
        self.public_base_url = public_base_url.rstrip("/")

    def upload(self, filename: str, content: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            (self.directory / filename).write_bytes(content)
        except OSError as e:
            raise DocumentStorageError(f"Failed to write {filename}: {e}") from e
        return f"{self.public_base_url}/{filename}"


class SupabaseDocumentStorage(DocumentStorage):
    """Supabase Storage REST API."""

    def __init__(self, base_url: str, api_key: str, bucket: str, timeout_seconds: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout_seconds = timeout_seconds

    def public_url(self, filename: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{filename}"

    def upload(self, filename: str, content: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{filename}"
        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "apikey": self.api_key,
                        "Content-Type": content_type,
                        "x-upsert": "true",
                    },
                    content=content,
                )
        except httpx.HTTPError as e:
            logger.error(f"Storage upload failed: {e}")
            raise DocumentStorageError(f"Failed to upload document: {e}") from e

        if response.status_code >= 300:
            logger.error(
                "Storage upload rejected",
                extra={"context": {"status_code": response.status_code, "body": response.text[:300]}},
            )
            raise DocumentStorageError(f"Failed to upload document: HTTP {response.status_code}")

        return self.public_url(filename)


def build_storage(settings: Settings) -> DocumentStorage:
    if settings.storage_backend == "supabase":
        if not settings.storage_url or not settings.storage_api_key:
            raise DocumentStorageError("Supabase storage requires storage_url and storage_api_key")
        return SupabaseDocumentStorage(
            settings.storage_url, settings.storage_api_key, settings.storage_bucket
        )
    return LocalDocumentStorage(settings.storage_local_dir, settings.public_base_url)
