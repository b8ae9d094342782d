"""
MailTrack Backend: Letter Image Storage
=========================================

What:  Validation, storage, lookup and removal of scanned letter images.
How:   A scan is accepted when its extension, its size and the type libmagic
       reads from its header bytes all check out. Accepted scans are written
       under storage_root/YYYY/MM/DD/ with a UUID filename; letters keep the
       path relative to the root and the API serves it at
       /api/v1/files/<relative path>.
Who:   Incoming and outgoing letter services, and the file-serving route.

Layout:
    storage/
    └── 2024/
        └── 05/
            └── 01/
                ├── a1b2c3d4-5678-….jpg
                └── e5f6g7h8-9012-….png
"""

import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from mailtrack.config import settings
from mailtrack.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Sniffed content type → extensions a scan of that type may carry
SCAN_TYPES = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
}
SCAN_EXTENSIONS = sorted({ext for exts in SCAN_TYPES.values() for ext in exts})

PUBLIC_PREFIX = "/api/v1/files/"

_MB = 1024 * 1024


@dataclass
class ImageUpload:
    """An image read from a multipart request, not yet validated."""
    filename: str
    content: bytes
    content_length: Optional[int] = None


class FileService:
    """
    Owns every scanned letter image on disk.

    A route reads the multipart `image` part into an ImageUpload; the letter
    service passes it to validate_and_store() and records the relative path.
    public_url() renders that path in responses, and delete_stored() drops
    the file once its letter is deleted or gets a new scan.
    """

    def __init__(self, storage_root: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("Letter images stored under %s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_extension(self, filename: str) -> str:
        """Lowercased extension of `filename`, or ValidationError."""
        ext = Path(filename).suffix.lower()
        if ext in SCAN_EXTENSIONS:
            return ext
        raise ValidationError(
            message=f"Image type '{ext or 'none'}' is not supported. Use one of: {', '.join(SCAN_EXTENSIONS)}",
            field="image",
            context={"extension": ext, "allowed": SCAN_EXTENSIONS},
        )

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        limit = settings.max_file_size
        if actual_size == 0:
            raise ValidationError(message="Uploaded image is empty.", field="image")

        size = max(content_length or 0, actual_size)
        if size > limit:
            raise ValidationError(
                message=f"Image size ({size / _MB:.1f}MB) exceeds maximum of {limit / _MB:.0f}MB.",
                field="image",
                context={"max_size_mb": limit / _MB, "size": size},
            )

    def validate_mime_type(self, file_content: bytes) -> str:
        """Content type read by libmagic from the scan's header bytes."""
        import magic

        try:
            mime_type = magic.from_buffer(file_content, mime=True)
        except magic.MagicException as e:
            logger.error("libmagic could not read the upload: %s", e)
            raise FileStorageError(
                message="Could not verify the image type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in SCAN_TYPES:
            raise ValidationError(
                message=f"Image content '{mime_type}' is not supported. Upload a PNG or JPEG scan.",
                field="image",
                context={"detected_mime": mime_type, "allowed": sorted(SCAN_TYPES)},
            )
        return mime_type

    # ── Storage ───────────────────────────────────────────────────────────

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """Write `content` to a fresh dated path. Returns (absolute, relative)."""
        day = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{day}/{uuid.uuid4()}{extension}"
        target = self.storage_root / relative_path

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "wb") as out:
                await out.write(content)
        except OSError as e:
            logger.error("Could not write letter image %s: %s", target, e)
            raise FileStorageError(
                message="Failed to save the letter image. Please try again.",
                context={"path": relative_path, "os_error": str(e)},
            )

        logger.info("Stored letter image %s (%d bytes)", relative_path, len(content))
        return str(target), relative_path

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """Extension, then size, then sniffed type; nothing is written unless all pass."""
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        self.validate_mime_type(content)
        return await self.store_file(content, ext)

    # ── Lookup & Removal ──────────────────────────────────────────────────

    def resolve(self, relative_path: str) -> Path:
        """
        Map a stored relative path to a file inside the storage root.

        Raises:
            ValidationError: The path escapes the storage root.
            NotFoundError: No such file.
        """
        full_path = (self.storage_root / relative_path).resolve()
        if not full_path.is_relative_to(self.storage_root):
            raise ValidationError(message="Invalid file path", field="path")
        if not full_path.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return full_path

    def public_url(self, relative_path: Optional[str]) -> Optional[str]:
        if not relative_path:
            return None
        return f"{PUBLIC_PREFIX}{relative_path}"

    async def delete_stored(self, relative_path: Optional[str]) -> None:
        """
        Remove a stored image. Best effort: a missing or undeletable file
        is logged, never raised, so letter writes are not blocked by disk state.
        """
        if not relative_path:
            return
        path = (self.storage_root / relative_path).resolve()
        if not path.is_relative_to(self.storage_root):
            logger.warning("Refusing to delete path outside storage root: %s", relative_path)
            return
        try:
            if path.exists():
                os.remove(path)
                logger.info("Removed stored image: %s", relative_path)
            else:
                logger.debug("Cleanup: file already gone: %s", relative_path)
        except OSError as e:
            logger.warning("Failed to remove stored image %s: %s", relative_path, str(e))


file_service = FileService()
