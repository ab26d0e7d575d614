"""
Featured image generation and normalisation.

Images come from a Gemini image model through google-genai and are returned
as ``data:`` URIs. ``normalize_image`` centre-crops any result to 16:9 and
resizes it to exactly 1536x864, re-encoded as high-quality JPEG, so every
published article carries a cover of the same geometry.
"""

from __future__ import annotations

import base64
import io
from typing import Any, Optional, Tuple

from google import genai
from google.genai import types
from PIL import Image

from geo_writer.config import DEFAULT_IMAGE_MODEL
from geo_writer.exceptions import ConfigurationError, GenerationError
from geo_writer.retry import BASE_DELAY, MAX_ATTEMPTS, call_with_retry
from geo_writer.run_log import get_logger

logger = get_logger("image_generator")

TARGET_WIDTH = 1536
TARGET_HEIGHT = 864
JPEG_QUALITY = 95

IMAGE_CONSTRAINTS = """\
IMPORTANT IMAGE CONSTRAINTS (MANDATORY):
- Horizontal image
- Aspect ratio 16:9
- Editorial photography style
- No logos
- No text
- No watermarks
"""


# ---------------------------------------------------------------------------
# Normalisation (Pillow)
# ---------------------------------------------------------------------------


def decode_data_uri(data_uri: str) -> Tuple[str, bytes]:
    """Split a ``data:<mime>;base64,<payload>`` URI into (mime, bytes)."""
    if not data_uri or not data_uri.startswith("data:") or "," not in data_uri:
        raise GenerationError("Image is not a base64 data URI")
    header, payload = data_uri.split(",", 1)
    mime = header[5:].split(";", 1)[0] or "application/octet-stream"
    try:
        return mime, base64.b64decode(payload)
    except (ValueError, TypeError) as exc:
        raise GenerationError(f"Image payload is not valid base64: {exc}") from exc


def to_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def compute_center_crop(
    width: int, height: int, target_width: int = TARGET_WIDTH, target_height: int = TARGET_HEIGHT
) -> Tuple[int, int, int, int]:
    """Return the (left, top, right, bottom) box of the centred target-ratio region.

    Sources wider than the target ratio lose width; taller ones lose height.
    """
    target_ratio = target_width / target_height
    if width / height > target_ratio:
        crop_width = round(height * target_ratio)
        left = (width - crop_width) // 2
        return left, 0, left + crop_width, height
    crop_height = round(width / target_ratio)
    top = (height - crop_height) // 2
    return 0, top, width, top + crop_height


def normalize_image(
    data_uri: str, width: int = TARGET_WIDTH, height: int = TARGET_HEIGHT
) -> str:
    """Centre-crop to 16:9, resize to ``width`` x ``height`` and re-encode as JPEG."""
    _, raw = decode_data_uri(data_uri)
    try:
        with Image.open(io.BytesIO(raw)) as img:
            box = compute_center_crop(img.width, img.height, width, height)
            result = img.crop(box).resize((width, height), Image.Resampling.LANCZOS)
            if result.mode != "RGB":
                result = result.convert("RGB")
            buffer = io.BytesIO()
            result.save(buffer, format="JPEG", quality=JPEG_QUALITY)
            logger.debug(
                "Image normalised from %dx%d (crop %s) to %dx%d",
                img.width, img.height, box, width, height,
            )
    except OSError as exc:
        raise GenerationError(f"Image could not be decoded: {exc}") from exc
    return to_data_uri(buffer.getvalue(), "image/jpeg")


# ---------------------------------------------------------------------------
# Gemini image backend
# ---------------------------------------------------------------------------


class ImageGenerator:
    """Generate images with a Gemini image model."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_IMAGE_MODEL,
        client: Any = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_base_delay: float = BASE_DELAY,
    ):
        if not api_key and client is None:
            raise ConfigurationError(
                "GEMINI_API_KEY is not set; image generation is unavailable",
                missing=["GEMINI_API_KEY"],
            )
        self.model = model
        self._client = client or genai.Client(api_key=api_key)
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay

    def _config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=["IMAGE", "TEXT"],
            image_config=types.ImageConfig(aspect_ratio="16:9"),
        )

    async def _generate_once(self, prompt: str) -> str:
        response = await self._client.aio.models.generate_content(
            model=self.model,
            contents=f"{IMAGE_CONSTRAINTS}\n{prompt}",
            config=self._config(),
        )
        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if not inline or not inline.data:
                    continue
                mime = inline.mime_type or "image/png"
                if not mime.startswith("image/"):
                    continue
                data = inline.data
                if isinstance(data, str):
                    return f"data:{mime};base64,{data}"
                return to_data_uri(data, mime)
        raise GenerationError("No image data returned by model")

    async def generate_image(self, prompt: str) -> str:
        """Return the generated image as a ``data:`` URI."""
        image = await call_with_retry(
            lambda: self._generate_once(prompt),
            label="image",
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
        )
        logger.info("Image generated by %s", self.model)
        return image
