"""
OCR providers — turn receipt image bytes into raw text.

The parser never talks to a provider directly; callers hand it whatever
``recognize_text`` returns.  Two providers are available:

  * Google Cloud Vision (``TEXT_DETECTION`` over HTTPS, API key auth)
  * local Tesseract via pytesseract, with the same grayscale / upscale /
    dark-band inversion preprocessing we always used for thermal paper

Providers return ``""`` when the image simply has no text in it.  Anything
else that goes wrong (network, auth, quota, unreadable image) is raised as
an ``OCRProviderError`` and is not retried here.
"""
from __future__ import annotations

import asyncio
import base64
import io
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import httpx
import numpy as np
import pytesseract
from PIL import Image, ImageEnhance, ImageFilter

if TYPE_CHECKING:
    from config import Settings

logger = logging.getLogger("pocketpilot.providers")

# Register HEIC/HEIF support via pillow-heif if available
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    HEIF_AVAILABLE = True
except ImportError:
    HEIF_AVAILABLE = False
    logger.info("pillow-heif not installed — HEIC files will not be supported")

GOOGLE_VISION_ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"
DEFAULT_TIMEOUT = 30.0


class OCRProviderError(Exception):
    """Raised when the OCR provider call fails (auth, quota, bad image, API error)."""
    pass


class ProviderUnavailable(OCRProviderError):
    """Raised when the provider could not be reached at all (network, timeout)."""
    pass


class OCRProvider(ABC):
    """Narrow interface in front of an external text-recognition service."""

    name = "ocr"

    @abstractmethod
    async def recognize_text(self, image_bytes: bytes) -> str:
        """Return the full recognized text, or "" when none was found."""
        ...


# ── Google Cloud Vision ───────────────────────────────────────────────────────

class GoogleVisionProvider(OCRProvider):
    name = "google"

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        endpoint: str = GOOGLE_VISION_ENDPOINT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise OCRProviderError("OCR service configuration error: missing API key")
        self._api_key = api_key
        self._timeout = timeout
        self._endpoint = endpoint
        self._transport = transport

    def _build_request(self, image_bytes: bytes) -> dict:
        return {
            "requests": [{
                "image": {"content": base64.standard_b64encode(image_bytes).decode()},
                "features": [
                    {"type": "TEXT_DETECTION"},
                    {"type": "DOCUMENT_TEXT_DETECTION"},
                ],
            }]
        }

    async def recognize_text(self, image_bytes: bytes) -> str:
        payload = self._build_request(image_bytes)
        logger.info("Sending %d KB image to Google Vision", len(image_bytes) // 1024)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self._endpoint, params={"key": self._api_key}, json=payload
                )
        except httpx.TimeoutException as e:
            logger.error("Google Vision timed out after %ss", self._timeout)
            raise ProviderUnavailable(f"OCR provider timed out: {e}") from e
        except httpx.TransportError as e:
            logger.error("Google Vision unreachable: %s", e)
            raise ProviderUnavailable(f"OCR provider unreachable: {e}") from e
        except httpx.RequestError as e:
            logger.error("Google Vision request failed: %s", e)
            raise OCRProviderError(f"OCR request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.is_success:
            error = data.get("error") if isinstance(data, dict) else None
            if not isinstance(error, dict):
                error = {}
            message = error.get("message") or resp.text or resp.reason_phrase
            logger.error("Google Vision API error %s: %s", resp.status_code, message)
            raise OCRProviderError(f"OCR failed: {message}")

        if not isinstance(data, dict):
            logger.error("Google Vision returned an unparseable body (%s)", resp.status_code)
            raise OCRProviderError("OCR failed: unparseable provider response")

        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: dict) -> str:
        responses = data.get("responses") or [{}]
        first = responses[0] or {}
        annotations = first.get("textAnnotations") or []
        if annotations and annotations[0].get("description"):
            return annotations[0]["description"]

        error = data.get("error") or first.get("error")
        if error:
            message = error.get("message", "unknown error")
            logger.error("Google Vision API error: %s", message)
            raise OCRProviderError(f"OCR failed: {message}")

        logger.warning("Google Vision found no text in image")
        return ""


# ── Tesseract ─────────────────────────────────────────────────────────────────

TESSERACT_CONFIG = (
    "--psm 6 -c tessedit_char_whitelist='ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz0123456789 .,$%/-:*()#@'"
)


def preprocess_image(image: Image.Image) -> Image.Image:
    """
    Improve OCR accuracy on photographed receipts:
    - Convert to grayscale
    - Upscale if small
    - Invert dark-background / white-text bands
    - Enhance contrast and sharpen
    """
    img = image.convert("L")

    w, h = img.size
    if w < 800:
        scale = 800 / w
        img = img.resize((int(w * scale), int(h * scale)), Image.LANCZOS)

    # ~40 horizontal bands; a band averaging below 80 is white-on-black text
    arr = np.array(img)
    band_height = max(1, arr.shape[0] // 40)
    for y in range(0, arr.shape[0], band_height):
        band = arr[y:y + band_height, :]
        if band.mean() < 80:
            arr[y:y + band_height, :] = 255 - band
    img = Image.fromarray(arr)

    img = ImageEnhance.Contrast(img).enhance(2.0)
    img = img.filter(ImageFilter.SHARPEN)
    return img


class TesseractProvider(OCRProvider):
    name = "tesseract"

    def __init__(self, *, config: str = TESSERACT_CONFIG) -> None:
        self._config = config

    def _open(self, image_bytes: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(image_bytes))
        except Exception as e:
            msg = str(e)
            if not HEIF_AVAILABLE and ("heif" in msg.lower() or "heic" in msg.lower()):
                raise OCRProviderError("HEIC/HEIF files require pillow-heif") from e
            raise OCRProviderError(f"Cannot open image: {msg}") from e

        # HEIF/palette/CMYK modes → RGB for Tesseract compatibility
        if image.mode not in ("RGB", "L", "RGBA"):
            image = image.convert("RGB")
        return image

    def _run(self, image_bytes: bytes) -> str:
        processed = preprocess_image(self._open(image_bytes))
        try:
            text = pytesseract.image_to_string(processed, config=self._config)
        except pytesseract.TesseractNotFoundError as e:
            raise ProviderUnavailable("tesseract binary not found in PATH") from e
        except pytesseract.TesseractError as e:
            raise OCRProviderError(f"Tesseract failed: {e}") from e
        return text.strip()

    async def recognize_text(self, image_bytes: bytes) -> str:
        text = await asyncio.to_thread(self._run, image_bytes)
        if not text:
            logger.warning("Tesseract found no text in image")
        return text


def create_provider(settings: "Settings") -> OCRProvider:
    """Build the provider named by ``settings.ocr_provider``."""
    match settings.ocr_provider:
        case "google":
            return GoogleVisionProvider(
                settings.google_vision_api_key,
                timeout=settings.ocr_timeout_seconds,
                endpoint=settings.google_vision_endpoint,
            )
        case "tesseract":
            return TesseractProvider()
        case _:
            raise ValueError(
                f"Unknown OCR provider: {settings.ocr_provider!r} "
                f"(choose google or tesseract)"
            )
