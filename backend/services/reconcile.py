"""
Reconciliation — make line items add up to an authoritative total.

Both the OCR parser and the receipt generator finish here.  Only the last
item is touched: its price absorbs whatever drift is left so that
sum(item prices) matches the total to the cent.
"""
import logging
from decimal import Decimal
from typing import Optional, Sequence

from models.schemas import LineItem
from services.text_utils import CENT, to_money

logger = logging.getLogger("pocketpilot.reconcile")


def items_sum(items: Sequence[LineItem]) -> Decimal:
    """Sum of item prices; items without a price count as zero."""
    return sum((item.price or Decimal("0") for item in items), Decimal("0.00"))


def reconcile_items(items: Sequence[LineItem], total: Optional[Decimal]) -> list:
    items = list(items)
    if not items or total is None:
        return items

    drift = total - items_sum(items)
    if abs(drift) <= CENT:
        return items

    last = items[-1]
    corrected = to_money((last.price or Decimal("0")) + drift)
    logger.debug(
        "Reconciling %r: %s → %s (drift %s against total %s)",
        last.name, last.price, corrected, drift, total,
    )
    items[-1] = last.model_copy(update={"price": corrected})
    return items
