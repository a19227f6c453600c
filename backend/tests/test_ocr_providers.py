"""
Tests for the OCR providers.

Google Vision is exercised through httpx.MockTransport (no network);
Tesseract with pytesseract patched out (no binary required).
"""
import base64
import io
import json
from unittest.mock import patch

import httpx
import pytest
from PIL import Image

from services.ocr_providers import (
    GoogleVisionProvider,
    OCRProviderError,
    ProviderUnavailable,
    TesseractProvider,
    preprocess_image,
)


def vision_provider(handler, **kwargs):
    return GoogleVisionProvider(
        "test-key", transport=httpx.MockTransport(handler), **kwargs
    )


def png_bytes(size=(100, 40), color=255):
    buf = io.BytesIO()
    Image.new("L", size, color=color).save(buf, format="PNG")
    return buf.getvalue()


# ── Google Vision ────────────────────────────────────────────────────────────

class TestGoogleVision:

    @pytest.mark.asyncio
    async def test_returns_full_text_annotation(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "responses": [{
                    "textAnnotations": [
                        {"description": "ACME\nTotal 5.00"},
                        {"description": "ACME"},
                    ]
                }]
            })

        text = await vision_provider(handler).recognize_text(b"\x89PNGdata")
        assert text == "ACME\nTotal 5.00"
        assert seen["url"].params["key"] == "test-key"
        req = seen["body"]["requests"][0]
        assert base64.b64decode(req["image"]["content"]) == b"\x89PNGdata"
        assert {f["type"] for f in req["features"]} == {
            "TEXT_DETECTION", "DOCUMENT_TEXT_DETECTION",
        }

    @pytest.mark.asyncio
    async def test_no_text_returns_empty_string(self):
        provider = vision_provider(lambda r: httpx.Response(200, json={"responses": [{}]}))
        assert await provider.recognize_text(b"img") == ""

    @pytest.mark.asyncio
    async def test_response_error_raises(self):
        def handler(request):
            return httpx.Response(200, json={
                "responses": [{"error": {"code": 3, "message": "Bad image data."}}]
            })

        with pytest.raises(OCRProviderError, match="Bad image data"):
            await vision_provider(handler).recognize_text(b"img")

    @pytest.mark.asyncio
    async def test_top_level_error_raises(self):
        def handler(request):
            return httpx.Response(200, json={
                "responses": [], "error": {"code": 8, "message": "Quota exceeded"},
            })

        with pytest.raises(OCRProviderError, match="Quota exceeded"):
            await vision_provider(handler).recognize_text(b"img")

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"code": 403, "message": "API key not valid"}})

        with pytest.raises(OCRProviderError, match="API key not valid") as exc:
            await vision_provider(handler).recognize_text(b"img")
        assert not isinstance(exc.value, ProviderUnavailable)

    @pytest.mark.asyncio
    async def test_http_error_without_json_body(self):
        provider = vision_provider(lambda r: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(OCRProviderError, match="Bad Gateway"):
            await provider.recognize_text(b"img")

    @pytest.mark.asyncio
    async def test_html_body_with_ok_status_raises(self):
        provider = vision_provider(
            lambda r: httpx.Response(200, text="<html>proxy error</html>")
        )
        with pytest.raises(OCRProviderError, match="unparseable") as exc:
            await provider.recognize_text(b"img")
        assert not isinstance(exc.value, ProviderUnavailable)

    @pytest.mark.asyncio
    async def test_non_object_json_body_raises(self):
        provider = vision_provider(lambda r: httpx.Response(200, json=["responses"]))
        with pytest.raises(OCRProviderError, match="unparseable"):
            await provider.recognize_text(b"img")

    @pytest.mark.asyncio
    async def test_redirect_status_raises(self):
        def handler(request):
            return httpx.Response(
                302, headers={"Location": "https://login.example.com/"}, text=""
            )

        with pytest.raises(OCRProviderError, match="OCR failed"):
            await vision_provider(handler).recognize_text(b"img")

    @pytest.mark.asyncio
    async def test_undecodable_response_raises(self):
        def handler(request):
            raise httpx.DecodingError("bad gzip stream", request=request)

        with pytest.raises(OCRProviderError, match="bad gzip stream") as exc:
            await vision_provider(handler).recognize_text(b"img")
        assert not isinstance(exc.value, ProviderUnavailable)

    @pytest.mark.asyncio
    async def test_network_failure_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderUnavailable, match="unreachable"):
            await vision_provider(handler).recognize_text(b"img")

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(ProviderUnavailable, match="timed out"):
            await vision_provider(handler, timeout=0.5).recognize_text(b"img")

    def test_missing_key(self):
        with pytest.raises(OCRProviderError):
            GoogleVisionProvider("")


# ── Tesseract ────────────────────────────────────────────────────────────────

class TestTesseract:

    def test_preprocess_upscales_and_grayscales(self):
        img = Image.new("RGB", (400, 100), color=(255, 255, 255))
        out = preprocess_image(img)
        assert out.mode == "L"
        assert out.size == (800, 200)

    def test_preprocess_inverts_dark_bands(self):
        img = Image.new("L", (800, 80), color=0)
        out = preprocess_image(img)
        assert out.getpixel((10, 10)) == 255

    @pytest.mark.asyncio
    async def test_recognize_text(self):
        with patch("services.ocr_providers.pytesseract.image_to_string",
                   return_value="  ACME\nTotal 5.00 \n") as ocr:
            text = await TesseractProvider().recognize_text(png_bytes())
        assert text == "ACME\nTotal 5.00"
        assert ocr.call_count == 1

    @pytest.mark.asyncio
    async def test_blank_image_returns_empty(self):
        with patch("services.ocr_providers.pytesseract.image_to_string", return_value="\n"):
            assert await TesseractProvider().recognize_text(png_bytes()) == ""

    @pytest.mark.asyncio
    async def test_unreadable_image(self):
        with pytest.raises(OCRProviderError, match="Cannot open image"):
            await TesseractProvider().recognize_text(b"not an image")

    @pytest.mark.asyncio
    async def test_missing_binary_is_unavailable(self):
        import pytesseract

        with patch("services.ocr_providers.pytesseract.image_to_string",
                   side_effect=pytesseract.TesseractNotFoundError()):
            with pytest.raises(ProviderUnavailable):
                await TesseractProvider().recognize_text(png_bytes())
