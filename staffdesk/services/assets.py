"""
Profile image storage on local disk.

Stored names are generated here (``profile-<epoch ms>-<random>.<ext>``);
client filenames are never used, so a reference can't point outside the
upload directory.  Each reference belongs to exactly one user row.
"""

from __future__ import annotations

import logging
import os
import secrets
import time
from pathlib import Path

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from staffdesk.core.config import settings
from staffdesk.core.exceptions import PayloadTooLargeError, UnsupportedMediaTypeError

logger = logging.getLogger(__name__)

# Media type -> stored extension
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
}

FILE_PERMISSIONS = 0o644


class AssetManager:
    def __init__(self, upload_dir: str | Path, max_bytes: int) -> None:
        self.upload_dir = Path(upload_dir)
        self.max_bytes = max_bytes

    def path_for(self, reference: str) -> Path:
        """Resolve a stored reference, refusing anything that isn't a bare name."""
        if not reference or os.path.basename(reference) != reference or reference.startswith("."):
            raise ValueError(f"Invalid asset reference: {reference!r}")
        return self.upload_dir / reference

    @staticmethod
    def _new_name(extension: str) -> str:
        millis = int(time.time() * 1000)
        return f"profile-{millis}-{secrets.randbelow(10**9)}{extension}"

    def _check(self, data: bytes, content_type: str | None) -> str:
        media_type = (content_type or "").split(";")[0].strip().lower()
        extension = ALLOWED_IMAGE_TYPES.get(media_type)
        if extension is None:
            raise UnsupportedMediaTypeError("Only image files are allowed!")
        if len(data) > self.max_bytes:
            raise PayloadTooLargeError(
                f"Profile image must not exceed {self.max_bytes // (1024 * 1024)} MB"
            )
        return extension

    async def store(self, data: bytes, content_type: str | None) -> str:
        """Write *data* under a fresh name and return its reference."""
        extension = self._check(data, content_type)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        reference = self._new_name(extension)
        path = self.path_for(reference)
        async with aiofiles.open(path, "wb") as fh:
            await fh.write(data)
        path.chmod(FILE_PERMISSIONS)
        logger.info("Stored profile image %s (%d bytes)", reference, len(data))
        return reference

    async def read_upload(self, upload: UploadFile | None) -> bytes | None:
        """Read at most one byte past the limit; an empty file field means no upload."""
        if upload is None or not upload.filename:
            return None
        data = await upload.read(self.max_bytes + 1)
        return data or None

    async def store_upload(self, upload: UploadFile | None) -> str | None:
        data = await self.read_upload(upload)
        if data is None:
            return None
        return await self.store(data, upload.content_type)

    async def replace(self, old_reference: str | None, data: bytes, content_type: str | None) -> str:
        """Store the new image.

        The old one stays on disk until the caller has committed the row
        without it and then calls :meth:`remove`.
        """
        reference = await self.store(data, content_type)
        logger.debug("Replacing profile image %s with %s", old_reference, reference)
        return reference

    async def remove(self, reference: str | None) -> None:
        """Best-effort delete; failures are logged, never raised."""
        if not reference:
            return
        try:
            path = self.path_for(reference)
            await aiofiles.os.remove(path)
            logger.info("Deleted profile image %s", reference)
        except FileNotFoundError:
            logger.debug("Profile image %s already gone", reference)
        except (OSError, ValueError) as e:
            logger.error("Error deleting profile image %s: %s", reference, e)


asset_manager = AssetManager(settings.UPLOAD_DIR, settings.MAX_UPLOAD_BYTES)


def get_asset_manager() -> AssetManager:
    """FastAPI dependency — the process-wide asset manager."""
    return asset_manager
