"""Image storage for message attachments, avatars and group icons.

Files are written to ``{MEDIA_ROOT}/{folder}/{uuid}{ext}`` and exposed under
``{MEDIA_URL}``. The rest of the application only sees the returned URL, so a
CDN-backed implementation can replace ``LocalBlobStorage`` without touching
the interactors.
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from chat_relay.domain.exceptions import UpstreamError, ValidationError


class BlobStorage(ABC):
    @abstractmethod
    async def store(
        self, data: bytes, filename: str, content_type: str, folder: str
    ) -> str:
        """Persist ``data`` and return the public URL for it."""


class LocalBlobStorage(BlobStorage):
    def __init__(
        self,
        root_dir: str,
        base_url: str,
        max_bytes: int,
        logger: logging.Logger,
    ):
        self.root_dir = Path(root_dir)
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes
        self.logger = logger

    def _validate(self, data: bytes, content_type: str) -> None:
        if not data:
            raise ValidationError("Uploaded file is empty")
        if not (content_type or "").startswith("image/"):
            raise ValidationError(f"Unsupported file type: {content_type or 'unknown'}")
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"File size ({len(data)} bytes) exceeds limit ({self.max_bytes} bytes)"
            )

    async def store(
        self, data: bytes, filename: str, content_type: str, folder: str
    ) -> str:
        self._validate(data, content_type)

        stored_name = f"{uuid.uuid4()}{Path(filename or '').suffix.lower()}"
        target_dir = self.root_dir / folder
        target = target_dir / stored_name
        try:
            await asyncio.to_thread(target_dir.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, data)
        except OSError as e:
            self.logger.error(f"Failed to store upload {filename!r}: {e!s}")
            raise UpstreamError("Failed to upload file. Please try again.") from e

        self.logger.info(f"Stored upload {target} ({len(data)} bytes)")
        return f"{self.base_url}/{folder}/{stored_name}"
