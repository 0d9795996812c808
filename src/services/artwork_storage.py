"""Artwork file storage on Supabase Storage."""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any

from src.api.middleware.error_handler import InvalidInputError, UpstreamError
from src.core.config import Settings, get_settings
from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class ArtworkUpload:
    """An artwork file received from a client."""

    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def extension(self) -> str:
        """Lowercase extension without the dot, or empty string."""
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1].lower()


def validate_upload(upload: ArtworkUpload | None, settings: Settings) -> ArtworkUpload:
    """Check an upload is present, non-empty, of an accepted type and size.

    Raises:
        InvalidInputError: If the upload cannot be accepted.
    """
    if upload is None or not upload.filename:
        raise InvalidInputError("No file provided")

    if not upload.content:
        raise InvalidInputError("Uploaded file is empty")

    allowed = settings.allowed_extensions_set
    if upload.extension not in allowed:
        raise InvalidInputError(
            "Invalid file type. Allowed: " + ", ".join(sorted(ext.upper() for ext in allowed))
        )

    if len(upload.content) > settings.artwork_max_file_size:
        raise InvalidInputError(
            f"File exceeds maximum size of {settings.artwork_max_file_size // (1024 * 1024)} MB"
        )

    return upload


def build_storage_path(order_number: str, item_id: int, filename: str) -> str:
    """Build a unique object path for an artwork file."""
    safe_name = _UNSAFE_FILENAME_CHARS.sub("-", filename).strip("-") or "artwork"
    return f"orders/{order_number}/item-{item_id}/{int(time.time() * 1000)}-{safe_name}"


class ArtworkStorage:
    """Stores artwork files and hands back their public URL."""

    def __init__(self) -> None:
        """Initialize storage with the shared Supabase client."""
        self.client = get_supabase_client()
        self.settings = get_settings()

    def _put(self, path: str, upload: ArtworkUpload) -> Any:
        bucket = self.client.storage.from_(self.settings.artwork_bucket)
        return bucket.upload(
            path=path,
            file=upload.content,
            file_options={"content-type": upload.content_type or "application/octet-stream"},
        )

    async def store(
        self,
        order: dict[str, Any],
        item_id: int,
        upload: ArtworkUpload,
        timeout: float | None = None,
    ) -> str:
        """Upload an artwork file and return its public URL.

        Args:
            order: The order row the artwork belongs to.
            item_id: The order item the artwork is for.
            upload: The file to store.
            timeout: Seconds to wait for storage; defaults to the configured
                upload timeout.

        Returns:
            str: Public URL of the stored file.

        Raises:
            UpstreamError: If storage fails or times out.
        """
        timeout = self.settings.artwork_upload_timeout_seconds if timeout is None else timeout
        order_number = order.get("order_number") or f"order-{order['id']}"
        path = build_storage_path(order_number, item_id, upload.filename)

        try:
            await asyncio.wait_for(asyncio.to_thread(self._put, path, upload), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error("Artwork upload to %s timed out after %.1fs", path, timeout)
            raise UpstreamError("Artwork upload timed out, please try again") from e
        except Exception as e:
            logger.error("Artwork upload to %s failed: %s", path, str(e))
            raise UpstreamError("Failed to store artwork, please try again") from e

        url = self.client.storage.from_(self.settings.artwork_bucket).get_public_url(path)
        logger.info("Stored artwork for order %s item %s at %s", order_number, item_id, path)
        return url.rstrip("?")
