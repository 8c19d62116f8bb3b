"""Download provider photos, watermark them and store the result."""

from __future__ import annotations

import io
import logging
import time
from typing import Callable, Protocol, Iterator

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from placekeeper.core.errors import AssetFailure, PipelineError
from placekeeper.services.places_client import PlacesClient
from utils.storage_manager import StoredAsset

logger = logging.getLogger(__name__)

WATERMARK_OPACITY = 128  # of 255
WATERMARK_MARGIN = 10
JPEG_QUALITY = 85


class AssetStorage(Protocol):
    def save(self, name: str, data: bytes, content_type: str = "image/jpeg") -> str: ...

    def iter_assets(self) -> Iterator[StoredAsset]: ...

    def delete(self, name: str) -> None: ...


def apply_watermark(image_bytes: bytes, text: str) -> bytes:
    """Composite semi-transparent ``text`` in the bottom-right corner; returns JPEG bytes."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            base = img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as exc:
        raise AssetFailure(f"cannot decode image: {exc}") from exc

    width, height = base.size
    font_size = max(12, width // 12)
    font = ImageFont.load_default(size=font_size)

    overlay = Image.new("RGBA", base.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(overlay)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = max(0, width - (right - left) - WATERMARK_MARGIN - left)
    y = max(0, height - (bottom - top) - WATERMARK_MARGIN - top)
    draw.text((x, y), text, font=font, fill=(255, 255, 255, WATERMARK_OPACITY))

    composed = Image.alpha_composite(base, overlay).convert("RGB")
    out = io.BytesIO()
    composed.save(out, format="JPEG", quality=JPEG_QUALITY)
    return out.getvalue()


class AssetPipeline:
    """photo reference -> watermarked file -> relative path"""

    def __init__(
        self,
        places: PlacesClient,
        storage: AssetStorage,
        *,
        url_prefix: str = "/uploads/places",
        watermark_text: str = "BEDIC",
        max_width: int = 800,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.places = places
        self.storage = storage
        self.url_prefix = url_prefix.rstrip("/")
        self.watermark_text = watermark_text
        self.max_width = max_width
        self.clock = clock

    def filename_for(self, owner_id: str) -> str:
        safe = "".join(c if c.isalnum() or c in ("-", "_") else "_" for c in owner_id)
        return f"{safe}_{int(self.clock() * 1000)}.jpg"

    def fetch(self, photo_reference: str | None, owner_id: str) -> str | None:
        """Return the relative asset path, or None when any step fails."""
        if not photo_reference:
            return None
        try:
            raw, _content_type = self.places.photo(photo_reference, max_width=self.max_width)
            if not raw:
                raise AssetFailure("empty photo response")
            watermarked = apply_watermark(raw, self.watermark_text)
            filename = self.filename_for(owner_id)
            try:
                self.storage.save(filename, watermarked, content_type="image/jpeg")
            except Exception as exc:  # noqa: BLE001 - any backend error is an asset failure
                raise AssetFailure(f"write failed: {exc}") from exc
        except PipelineError as exc:
            logger.warning("image for %s not stored: %s", owner_id, exc)
            return None
        logger.info("image stored: %s", filename)
        return f"{self.url_prefix}/{filename}"
