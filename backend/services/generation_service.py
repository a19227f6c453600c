"""
Receipt Generation Service

Builds a digital receipt for an expense that has no scanned image: the
known total is broken down into plausible line items whose prices add up
exactly to it, then rendered as HTML.

The breakdown depends on the category:
  * food-like   — a main drink, then pastries, then one closing item
  * transport   — a single trip fare
  * anything else — the expense label at 85% plus tax & fees

Prices are rounded to cents as they are generated.  Randomness comes from
an injectable ``random.Random`` so tests can pin the output.
"""
import logging
import random
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from models.schemas import Category, SynthesizedItem, SynthesizedReceipt
from services.ocr_service import CATEGORY_KEYWORDS
from services.reconcile import reconcile_items
from services.render_service import render_receipt_html
from services.text_utils import matches_any_keyword, to_money

logger = logging.getLogger("pocketpilot.generate")

# Labels mentioning any of these get the food breakdown whatever the category
FOOD_VENDOR_KEYWORDS = dict(CATEGORY_KEYWORDS)[Category.FOOD]

MAIN_ITEM_RANGE = (4.0, 7.0)
ACCESSORY_RANGE = (2.0, 5.0)
CLOSING_THRESHOLD = Decimal("0.50")
CORE_SHARE = Decimal("0.85")

DEFAULT_LABEL = "General Purchase"
PLACEHOLDER_ADDRESS = "123 Innovation Blvd, Tech City, TC 94043"
PLACEHOLDER_PHONE = "(555) 012-3456"


class SynthesisValidationError(ValueError):
    """Raised when a receipt is requested for a zero, negative, sub-cent or non-numeric total."""
    pass


def _validate_total(total) -> Decimal:
    try:
        requested = total if isinstance(total, Decimal) else Decimal(str(total))
        amount = to_money(requested)
    except (InvalidOperation, ValueError, TypeError) as e:
        raise SynthesisValidationError(f"Total must be a number, got {total!r}") from e
    if not amount.is_finite() or amount <= 0:
        raise SynthesisValidationError(f"Total must be positive, got {total!r}")
    # items are priced in cents, so a sub-cent total could never be matched
    if requested != amount:
        raise SynthesisValidationError(
            f"Total must not have more than two decimal places, got {total!r}"
        )
    return amount


def _random_price(rng: random.Random, bounds: tuple[float, float]) -> Decimal:
    return to_money(rng.uniform(*bounds))


def _label_name(label: str) -> str:
    name = (label or "").strip()
    return name if len(name) > 1 else DEFAULT_LABEL


def is_food_like(category: Category, label: str) -> bool:
    return category == Category.FOOD or matches_any_keyword(label, FOOD_VENDOR_KEYWORDS)


def _food_items(total: Decimal, rng: random.Random) -> list[SynthesizedItem]:
    items = []
    remaining = total

    main_price = min(remaining, _random_price(rng, MAIN_ITEM_RANGE))
    if remaining > main_price:
        items.append(SynthesizedItem(name="Handcrafted Drink", price=main_price))
        remaining -= main_price

    while remaining > 0:
        price = min(remaining, _random_price(rng, ACCESSORY_RANGE))
        if remaining - price < CLOSING_THRESHOLD:
            items.append(SynthesizedItem(name="Bakery Item", price=remaining))
            remaining = Decimal("0.00")
        else:
            items.append(SynthesizedItem(name="Pastry", price=price))
            remaining -= price
    return items


def _generic_items(total: Decimal, label: str) -> list[SynthesizedItem]:
    core = to_money(total * CORE_SHARE)
    return [
        SynthesizedItem(name=_label_name(label), price=core),
        SynthesizedItem(name="Tax & Fees", price=total - core),
    ]


def generate_items(
    total,
    category: Category,
    label: str,
    *,
    rng: Optional[random.Random] = None,
) -> list[SynthesizedItem]:
    """Break ``total`` into line items that sum to it exactly."""
    amount = _validate_total(total)
    category = Category.coerce(category)
    rng = rng or random.Random()

    if is_food_like(category, label):
        items = _food_items(amount, rng)
    elif category == Category.TRANSPORTATION:
        items = [SynthesizedItem(name="Trip Fare", price=amount)]
    else:
        items = _generic_items(amount, label)

    return reconcile_items(items, amount)


def generate_merchant_info(label: str, rng: random.Random) -> dict[str, str]:
    return {
        "name": _label_name(label),
        "address": PLACEHOLDER_ADDRESS,
        "phone": PLACEHOLDER_PHONE,
        "id": f"{rng.getrandbits(32):08X}",
    }


def generate_receipt(
    total,
    category: Category,
    label: str,
    *,
    purchased_at: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> SynthesizedReceipt:
    """
    Generate items and the rendered HTML for an expense.
    ``purchased_at`` is the expense date printed on the receipt (defaults to
    the generation time).
    """
    rng = rng or random.Random()
    generated_at = now or datetime.now()
    amount = _validate_total(total)
    category = Category.coerce(category)

    items = generate_items(amount, category, label, rng=rng)
    merchant = generate_merchant_info(label, rng)
    markup = render_receipt_html(merchant, purchased_at or generated_at, items, amount)

    logger.info(
        "Generated %d-item receipt for %s (%s, total %s)",
        len(items), merchant["name"], category.value, amount,
    )
    return SynthesizedReceipt(
        items=tuple(items),
        rendered_markup=markup,
        generated_at=generated_at,
    )
