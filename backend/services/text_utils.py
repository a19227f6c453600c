"""
Lexical helpers shared by the receipt parser and the receipt generator:
line splitting, money and date token matching, keyword checks.
"""
import re
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

CENT = Decimal("0.01")

# "$4.99", "4.99" — but not a slice of "1.234.56" or "12.345"
MONEY_RE = re.compile(r'(?<![\d.])\$?(\d+\.\d{2})(?!\.?\d)')

# "03/15/2024", "3-15-24", "2024-03-15"
DATE_TOKEN_RE = re.compile(
    r'(?<!\d)(\d{4}-\d{1,2}-\d{1,2}|\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})(?!\d)'
)

# Tried in order; the first that parses wins.  Month-first deliberately
# precedes day-first, so 03/04/2024 reads as March 4.
DATE_FORMATS = (
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%m/%d/%y",
    "%m-%d-%y",
    "%Y-%m-%d",
)


def to_money(value) -> Decimal:
    """Quantize to cents, rounding halves away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def split_lines(text: str) -> list[str]:
    """Trimmed, non-empty lines in their original order."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def find_monetary_values(line: str) -> list[Decimal]:
    return [Decimal(m) for m in MONEY_RE.findall(line)]


def extract_monetary_value(line: str, *, last: bool = False) -> Optional[Decimal]:
    """First (or last) currency-looking value on the line, or None."""
    values = find_monetary_values(line)
    if not values:
        return None
    return values[-1] if last else values[0]


def extract_date_token(line: str) -> Optional[str]:
    m = DATE_TOKEN_RE.search(line)
    return m.group(1) if m else None


def parse_date(token: Optional[str]) -> Optional[date]:
    if not token:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(token, fmt).date()
        except ValueError:
            continue
    return None


def matches_any_keyword(text: Optional[str], keywords: Iterable[str]) -> bool:
    if not text:
        return False
    lower = text.lower()
    return any(kw.lower() in lower for kw in keywords)
