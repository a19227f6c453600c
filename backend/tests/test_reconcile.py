"""
Tests for reconcile_items — the last item absorbs drift beyond one cent.
"""
from decimal import Decimal

from models.schemas import LineItem, SynthesizedItem
from services.reconcile import items_sum, reconcile_items


def item(name, price, quantity=1):
    return LineItem(name=name, quantity=quantity, price=Decimal(price))


class TestReconcileItems:

    def test_adjusts_last_item(self):
        items = [item("Bread", "2.00"), item("Milk", "3.00")]
        result = reconcile_items(items, Decimal("5.75"))
        assert result[0] == items[0]
        assert result[1].price == Decimal("3.75")
        assert result[1].name == "Milk"

    def test_negative_drift(self):
        items = [item("Bread", "2.00"), item("Milk", "3.00")]
        result = reconcile_items(items, Decimal("4.50"))
        assert result[1].price == Decimal("2.50")

    def test_keeps_quantity(self):
        items = [item("Soda", "6.00", quantity=2)]
        result = reconcile_items(items, Decimal("6.50"))
        assert result[0].quantity == 2
        assert result[0].price == Decimal("6.50")

    def test_one_cent_tolerance(self):
        items = [item("Bread", "2.00"), item("Milk", "3.01")]
        assert reconcile_items(items, Decimal("5.00")) == items

    def test_exact_match_untouched(self):
        items = [item("Bread", "2.00")]
        assert reconcile_items(items, Decimal("2.00")) == items

    def test_no_total(self):
        items = [item("Bread", "2.00")]
        assert reconcile_items(items, None) == items

    def test_empty_items(self):
        assert reconcile_items([], Decimal("9.99")) == []

    def test_missing_price_counts_as_zero(self):
        items = [item("Bread", "2.00"), LineItem(name="Mystery")]
        result = reconcile_items(items, Decimal("3.00"))
        assert result[1].price == Decimal("1.00")

    def test_does_not_mutate_input(self):
        items = [item("Bread", "2.00")]
        reconcile_items(items, Decimal("9.00"))
        assert items[0].price == Decimal("2.00")

    def test_preserves_item_type(self):
        items = [SynthesizedItem(name="Trip Fare", price=Decimal("1.00"))]
        result = reconcile_items(items, Decimal("2.00"))
        assert isinstance(result[0], SynthesizedItem)

    def test_items_sum(self):
        assert items_sum([item("A1", "1.10"), item("B1", "2.20")]) == Decimal("3.30")
