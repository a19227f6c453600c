"""
Render Service — a printable HTML receipt from merchant info, a timestamp,
line items and the total.
"""
from datetime import datetime
from decimal import Decimal
from html import escape
from typing import Mapping, Sequence

from models.schemas import LineItem

RECEIPT_CSS = """
        body { font-family: 'Courier New', Courier, monospace; max-width: 300px; margin: 20px auto; background: #fff; padding: 20px; border: 1px dashed #ccc; }
        .header { text-align: center; margin-bottom: 20px; }
        .header h2 { margin: 0; text-transform: uppercase; }
        .info { font-size: 12px; color: #666; text-align: center; margin-bottom: 20px; }
        .divider { border-top: 1px dashed #000; margin: 10px 0; }
        .item { display: flex; justify-content: space-between; margin-bottom: 5px; font-size: 14px; }
        .name { flex: 2; }
        .qty { flex: 0.5; color: #666; }
        .price { flex: 1; text-align: right; }
        .total { display: flex; justify-content: space-between; font-weight: bold; margin-top: 10px; font-size: 16px; }
        .footer { text-align: center; margin-top: 20px; font-size: 10px; color: #999; }
"""


def format_money(amount) -> str:
    return f"${Decimal(amount or 0):.2f}"


def format_timestamp(when: datetime) -> str:
    """e.g. "Mar 15, 2024, 2:05 PM"."""
    hour = when.hour % 12 or 12
    return f"{when:%b} {when.day}, {when.year}, {hour}:{when:%M %p}"


def _item_row(item: LineItem) -> str:
    return (
        '    <div class="item">\n'
        f'        <span class="name">{escape(item.name)}</span>\n'
        f'        <span class="qty">x{item.quantity}</span>\n'
        f'        <span class="price">{format_money(item.price)}</span>\n'
        '    </div>'
    )


def render_receipt_html(
    merchant: Mapping[str, str],
    when: datetime,
    items: Sequence[LineItem],
    total: Decimal,
) -> str:
    rows = "\n".join(_item_row(item) for item in items)
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>{RECEIPT_CSS}    </style>
</head>
<body>
    <div class="header">
        <h2>{escape(merchant.get("name") or "Merchant")}</h2>
    </div>
    <div class="info">
        {escape(merchant.get("address", ""))}<br>
        Tel: {escape(merchant.get("phone", ""))}<br>
        Date: {escape(format_timestamp(when))}<br>
        Receipt #: {escape(merchant.get("id") or "0000")}
    </div>
    <div class="divider"></div>
    <div class="items">
{rows}
    </div>
    <div class="divider"></div>
    <div class="total">
        <span>TOTAL</span>
        <span>{format_money(total)}</span>
    </div>
    <div class="footer">
        <p>Generated by PocketPilot<br>Keep this for your records.</p>
    </div>
</body>
</html>
"""
