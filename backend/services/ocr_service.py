"""
OCR Service — turns raw receipt text from an OCR provider into a structured,
confidence-scored ExtractedReceipt using heuristic keyword and regex passes.

Each field gets its own pass over the normalized lines:
merchant (top of receipt), total (TOTAL / AMOUNT / DUE lines), date,
category (merchant keywords) and line items.  The result is deterministic
for a given text and reference date.
"""
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Optional

from models.schemas import Category, ExtractedReceipt, LineItem
from services.ocr_providers import OCRProvider
from services.reconcile import reconcile_items
from services.text_utils import (
    extract_date_token,
    extract_monetary_value,
    find_monetary_values,
    matches_any_keyword,
    parse_date,
    split_lines,
)

logger = logging.getLogger("pocketpilot.ocr")

# ── Receipt Text Parser ───────────────────────────────────────────────────────

# Header / boilerplate lines that are never the merchant name
HEADER_SKIP_KEYWORDS = (
    'thank', 'welcome', 'customer', 'copy', 'receipt', 'transaction', 'visit',
)

TOTAL_KEYWORDS = ('total', 'amount', 'due')

# Lines that indicate totals / metadata (should not be parsed as items)
ITEM_SKIP_KEYWORDS = (
    'total', 'subtotal', 'tax', 'due', 'cash', 'change',
    'visa', 'mastercard', 'amex',
    'date:', 'time:', 'phone:', 'tel:', 'thank', 'welcome', 'call',
)

# Merchant keyword → category.  Order matters: the first category with a
# keyword contained in the merchant name wins.
CATEGORY_KEYWORDS: list[tuple[Category, tuple[str, ...]]] = [
    (Category.FOOD, (
        "restaurant", "cafe", "coffee", "pizza", "burger", "food", "kitchen",
        "bistro", "grill", "starbucks", "mcdonalds",
    )),
    (Category.SHOPPING, (
        "store", "shop", "mart", "market", "retail", "boutique", "target", "walmart",
    )),
    (Category.TRANSPORTATION, (
        "uber", "lyft", "taxi", "gas", "fuel", "station", "parking", "shell", "chevron",
    )),
    (Category.ENTERTAINMENT, (
        "cinema", "movie", "theater", "theatre", "concert", "game", "netflix", "spotify",
    )),
    (Category.HEALTHCARE, (
        "pharmacy", "drug", "medical", "hospital", "clinic", "doctor", "cvs", "walgreens",
    )),
    (Category.UTILITIES, (
        "electric", "water", "internet", "phone", "utility", "att", "verizon",
    )),
    (Category.TRAVEL, (
        "hotel", "airline", "flight", "booking", "airbnb", "expedia",
    )),
]

# "Latte 4.50", "ITEM 1 $4.99"
ITEM_LINE_RE = re.compile(r'^(.+?)\s+\$?(\d+\.\d{2})$')
# "2x Latte", "3 Bagel"
QTY_PREFIX_RE = re.compile(r'^(\d+)[xX]?\s+(.+)')
# Modifier line printed under an item: "x 2 @ $3.00"
MODIFIER_RE = re.compile(r'[xX]\s*(\d+)\s*@')

CONFIDENCE_TOTAL = 0.4
CONFIDENCE_MERCHANT = 0.3
CONFIDENCE_DATE = 0.3


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


def extract_merchant(lines: list[str]) -> Optional[str]:
    """First line that isn't a greeting / receipt-copy banner."""
    for line in lines:
        if not matches_any_keyword(line, HEADER_SKIP_KEYWORDS):
            return line
    return None


def extract_total(lines: list[str]) -> Optional[Decimal]:
    """
    An explicit TOTAL / AMOUNT / DUE line wins outright (subtotal lines are
    excluded so tax isn't dropped).  Without one, fall back to the largest
    value printed anywhere.
    """
    largest = Decimal("0")
    for line in lines:
        lower = line.lower()
        if any(kw in lower for kw in TOTAL_KEYWORDS) and 'subtotal' not in lower:
            value = extract_monetary_value(line)
            if value is not None:
                logger.debug("Total %s from line %r", value, line)
                return value
        for value in find_monetary_values(line):
            if value > largest:
                largest = value

    if largest > 0:
        logger.debug("No TOTAL line — falling back to largest value %s", largest)
        return largest
    return None


def extract_date(lines: list[str]) -> Optional[date]:
    for line in lines:
        parsed = parse_date(extract_date_token(line))
        if parsed:
            return parsed
    return None


def categorize_merchant(merchant: Optional[str]) -> Category:
    if not merchant:
        return Category.OTHER
    lower = merchant.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(kw in lower for kw in keywords):
            return category
    return Category.OTHER


def extract_items(lines: list[str]) -> list[LineItem]:
    """
    Walk the lines with an explicit cursor.  A modifier line ("x 2 @ 3.00")
    directly under an item sets its quantity and is consumed with it.
    """
    items: list[LineItem] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if len(line) < 3 or matches_any_keyword(line, ITEM_SKIP_KEYWORDS):
            i += 1
            continue

        m = ITEM_LINE_RE.match(line)
        if m:
            name = m.group(1).strip()
            price = Decimal(m.group(2))
            quantity = 1

            qty_match = QTY_PREFIX_RE.match(name)
            if qty_match and int(qty_match.group(1)) > 0:
                quantity = int(qty_match.group(1))
                name = qty_match.group(2).strip()

            if i + 1 < len(lines):
                mod_match = MODIFIER_RE.search(lines[i + 1])
                if mod_match:
                    if int(mod_match.group(1)) > 0:
                        quantity = int(mod_match.group(1))
                    i += 1  # consume modifier line

            if len(name) > 1 and not _is_number(name):
                items.append(LineItem(name=name, quantity=quantity, price=price))
            else:
                logger.debug("Rejected item candidate %r", line)
        i += 1
    return items


def score_confidence(
    total: Optional[Decimal], merchant: Optional[str], purchase_date: Optional[date]
) -> float:
    confidence = 0.0
    if total is not None:
        confidence += CONFIDENCE_TOTAL
    if merchant is not None:
        confidence += CONFIDENCE_MERCHANT
    if purchase_date is not None:
        confidence += CONFIDENCE_DATE
    return round(confidence, 1)


def empty_receipt(raw_text: str = "", *, today: Optional[date] = None) -> ExtractedReceipt:
    """Zero-confidence result for an image with no readable text."""
    return ExtractedReceipt(
        purchase_date=today or date.today(),
        confidence=0.0,
        raw_text=raw_text,
    )


def parse_receipt_text(text: str, *, today: Optional[date] = None) -> ExtractedReceipt:
    """
    Parse OCR text into a structured receipt.
    ``today`` is used when no date can be read from the text.
    """
    lines = split_lines(text)
    if not lines:
        return empty_receipt(text or "", today=today)

    merchant = extract_merchant(lines)
    total = extract_total(lines)
    found_date = extract_date(lines)
    category = categorize_merchant(merchant)
    items = reconcile_items(extract_items(lines), total)
    confidence = score_confidence(total, merchant, found_date)

    logger.info(
        "Parsed receipt: merchant=%r total=%s date=%s category=%s items=%d confidence=%.1f",
        merchant, total, found_date, category.value, len(items), confidence,
    )
    return ExtractedReceipt(
        merchant_name=merchant,
        total_amount=total,
        purchase_date=found_date or today or date.today(),
        date_detected=found_date is not None,
        category=category,
        items=tuple(items),
        confidence=confidence,
        raw_text=text,
    )


async def scan_receipt(
    image_bytes: bytes,
    provider: OCRProvider,
    *,
    today: Optional[date] = None,
) -> ExtractedReceipt:
    """
    Run the image through the OCR provider and parse the result.
    Provider failures (OCRProviderError) propagate; an image without text
    is a valid zero-confidence receipt.
    """
    text = await provider.recognize_text(image_bytes)
    if not text or not text.strip():
        logger.warning("No text detected by %s provider", provider.name)
        return empty_receipt(text or "", today=today)
    return parse_receipt_text(text, today=today)
