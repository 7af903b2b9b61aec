"""Invoice arithmetic: line amounts, invoice totals and discount rules."""

from decimal import Decimal

import pytest

from app.services.invoice_math import compute_line, compute_totals, totals_from
from app.validation import ValidationError


def D(value):
    return Decimal(value)


class TestComputeLine:
    def test_discount_then_tax(self):
        line = compute_line(unit_price=D("100"), quantity=D("2"), discount_percentage=D("10"), tax_rate=D("10"))
        assert line.subtotal == D("180.00")
        assert line.tax == D("18.00")
        assert line.total == D("198.00")

    def test_rounds_half_up_to_cents(self):
        line = compute_line(unit_price=D("0.333"), quantity=D("3"), tax_rate=D("17"))
        # 0.999 -> 1.00, tax 0.17
        assert line.subtotal == D("1.00")
        assert line.tax == D("0.17")

    def test_fractional_quantity(self):
        line = compute_line(unit_price=D("50"), quantity=D("1.5"))
        assert line.total == D("75.00")

    def test_full_discount(self):
        line = compute_line(unit_price=D("80"), quantity=D("1"), discount_percentage=D("100"), tax_rate=D("16"))
        assert line.total == D("0.00")


class TestComputeTotals:
    def test_invoice_discount_applied_after_tax(self):
        totals = compute_totals(
            [
                {"unit_price": D("100"), "quantity": D("2"), "discount_percentage": D("10"), "tax_rate": D("10")},
                {"unit_price": D("50"), "quantity": D("1"), "discount_percentage": None, "tax_rate": None},
            ],
            D("8"),
        )
        assert totals.subtotal == D("230.00")
        assert totals.tax_amount == D("18.00")
        assert totals.discount_amount == D("8.00")
        assert totals.total_amount == D("240.00")
        assert [line.total for line in totals.lines] == [D("198.00"), D("50.00")]

    def test_no_discount(self):
        totals = compute_totals([{"unit_price": D("10"), "quantity": D("1")}])
        assert totals.discount_amount == D("0.00")
        assert totals.total_amount == D("10.00")

    def test_discount_equal_to_total_is_allowed(self):
        totals = compute_totals([{"unit_price": D("10"), "quantity": D("1")}], D("10"))
        assert totals.total_amount == D("0.00")


class TestTotalsFrom:
    def test_discount_exceeding_total(self):
        with pytest.raises(ValidationError, match="cannot exceed invoice total"):
            totals_from(subtotal=D("100"), tax_amount=D("5"), discount_amount=D("105.01"))

    def test_negative_discount(self):
        with pytest.raises(ValidationError, match="positive number"):
            totals_from(subtotal=D("100"), tax_amount=D("0"), discount_amount=D("-1"))

    def test_recomputes_from_stored_sums(self):
        totals = totals_from(subtotal=D("230"), tax_amount=D("18"), discount_amount=D("30"))
        assert totals.total_amount == D("218.00")
        assert totals.lines == []

    def test_total_beyond_money_column(self):
        with pytest.raises(ValidationError, match="out of range"):
            totals_from(subtotal=D("9999999999.99"), tax_amount=D("0.01"), discount_amount=None)
