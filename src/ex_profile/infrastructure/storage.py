"""Object storage for avatars, KYC documents, deposit proofs and address QR codes.

The core only keeps the public URL that ``put`` returns. LocalObjectStorage
writes under UPLOAD_DIR (served at UPLOAD_BASE_URL); any other backend only
has to satisfy the ObjectStorage protocol.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from config.settings import settings
from src.ex_common.errors import InvalidRequestError, StorageUnavailableError

logger = logging.getLogger(__name__)

_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    data: bytes


def check_image(upload: UploadedFile, field: str, max_bytes: int) -> str:
    """Validate an image upload and return the file extension for its type."""
    ext = _IMAGE_TYPES.get((upload.content_type or "").lower())
    if ext is None:
        raise InvalidRequestError(f"{field}: only image files are allowed")
    if not upload.data:
        raise InvalidRequestError(f"{field}: file is empty")
    if len(upload.data) > max_bytes:
        raise InvalidRequestError(f"{field}: file exceeds {max_bytes} bytes")
    return ext


class ObjectStorage(Protocol):
    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` and return its public URL; StorageUnavailableError on failure."""
        ...


class LocalObjectStorage:
    def __init__(self, root: str | Path | None = None, base_url: str | None = None) -> None:
        self._root = Path(root or settings.UPLOAD_DIR)
        self._base_url = (base_url or settings.UPLOAD_BASE_URL).rstrip("/")

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        path = self._root / bucket / key
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            logger.error("Storing %s/%s failed: %s", bucket, key, exc)
            raise StorageUnavailableError(f"could not store {bucket}/{key}") from exc
        return f"{self._base_url}/{bucket}/{key}"

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
