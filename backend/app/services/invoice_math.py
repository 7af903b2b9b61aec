"""
Invoice arithmetic.

One place computes line and invoice amounts so that create, update and
duplicate always agree:

    gross         = unit_price * quantity
    line_subtotal = gross - gross * discount_percentage / 100
    line_tax      = line_subtotal * tax_rate / 100
    line_total    = line_subtotal + line_tax

    subtotal      = sum(line_subtotal)
    tax_amount    = sum(line_tax)
    total_amount  = subtotal + tax_amount - discount_amount

Every amount is quantized to cents with ROUND_HALF_UP.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..validation import NUMBER_LIMIT, ValidationError, money

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineAmounts:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    lines: list[LineAmounts] = field(default_factory=list)


def compute_line(
    *,
    unit_price: Decimal,
    quantity: Decimal,
    discount_percentage: Decimal = Decimal("0"),
    tax_rate: Decimal = Decimal("0"),
) -> LineAmounts:
    gross = Decimal(unit_price) * Decimal(quantity)
    line_subtotal = money(gross - gross * Decimal(discount_percentage) / HUNDRED)
    line_tax = money(line_subtotal * Decimal(tax_rate) / HUNDRED)
    return LineAmounts(subtotal=line_subtotal, tax=line_tax, total=line_subtotal + line_tax)


def compute_totals(lines: list[dict], discount_amount: Decimal | None = None) -> InvoiceTotals:
    """
    `lines` are dicts with unit_price, quantity, discount_percentage and
    tax_rate already resolved (product defaults applied).
    """
    amounts = [
        compute_line(
            unit_price=line["unit_price"],
            quantity=line["quantity"],
            discount_percentage=line.get("discount_percentage") or Decimal("0"),
            tax_rate=line.get("tax_rate") or Decimal("0"),
        )
        for line in lines
    ]
    return totals_from(
        subtotal=sum((a.subtotal for a in amounts), Decimal("0")),
        tax_amount=sum((a.tax for a in amounts), Decimal("0")),
        discount_amount=discount_amount,
        lines=amounts,
    )


def totals_from(
    *,
    subtotal: Decimal,
    tax_amount: Decimal,
    discount_amount: Decimal | None,
    lines: list[LineAmounts] | None = None,
) -> InvoiceTotals:
    """Apply the invoice-level discount to already computed sums."""
    discount = money(discount_amount or 0)
    if discount < 0:
        raise ValidationError("Discount amount must be a positive number")
    subtotal = money(subtotal)
    tax_amount = money(tax_amount)
    if subtotal + tax_amount >= NUMBER_LIMIT:
        raise ValidationError("Invoice total is out of range")
    total = subtotal + tax_amount - discount
    if total < 0:
        raise ValidationError("Discount amount cannot exceed invoice total")
    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount,
        total_amount=total,
        lines=lines or [],
    )
