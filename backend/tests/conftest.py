"""
Shared fixtures for backend tests.

Everything here is pure text / in-memory: no OCR binary, no network.
Tests that need a provider build one around ``httpx.MockTransport`` or a
stub class.
"""
import random
from datetime import date

import pytest

from services.ocr_providers import OCRProvider

TODAY = date(2026, 3, 1)

COFFEE_RECEIPT = """\
Blue Bottle Coffee
123 Market St
Tel: (555) 123-4567
Date: 03/15/2024
2x Latte 9.00
Croissant 3.50
Subtotal: $12.50
Tax: $1.13
Total: $13.63
Thank you for visiting!
"""


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def rng():
    """Seeded random source so generated receipts are reproducible."""
    return random.Random(1234)


class StubProvider(OCRProvider):
    """Returns canned text (or raises) instead of calling a real service."""

    name = "stub"

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def recognize_text(self, image_bytes: bytes) -> str:
        self.calls.append(image_bytes)
        if self.error:
            raise self.error
        return self.text


@pytest.fixture
def stub_provider():
    return StubProvider
