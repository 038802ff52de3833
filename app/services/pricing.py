from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_final_amount(
    total_amount: Decimal,
    shipping_amount: Decimal,
    tax_amount: Decimal,
    discount_amount: Decimal,
) -> Decimal:
    return quantize_money(total_amount + shipping_amount + tax_amount - discount_amount)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (rupees, euros) to the gateway's integer minor units."""
    return int(quantize_money(amount) * 100)


@dataclass(frozen=True)
class OrderAmounts:
    unit_price: Decimal
    quantity: int
    total_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal

    def as_dict(self) -> dict[str, str]:
        return {
            "item_total": format(self.total_amount, "f"),
            "shipping_amount": format(self.shipping_amount, "f"),
            "tax_amount": format(self.tax_amount, "f"),
            "discount_amount": format(self.discount_amount, "f"),
            "final_amount": format(self.final_amount, "f"),
        }


def compute_order_amounts(
    unit_price: Decimal,
    quantity: int,
    shipping_fee: Decimal,
    tax_rate: Decimal,
    discount_amount: Decimal = Decimal("0"),
) -> OrderAmounts:
    if quantity < 1:
        raise ValueError("quantity must be at least 1")
    unit = quantize_money(Decimal(str(unit_price)))
    total = quantize_money(unit * quantity)
    shipping = quantize_money(shipping_fee)
    tax = quantize_money(total * tax_rate)
    discount = quantize_money(discount_amount)
    return OrderAmounts(
        unit_price=unit,
        quantity=quantity,
        total_amount=total,
        shipping_amount=shipping,
        tax_amount=tax,
        discount_amount=discount,
        final_amount=compute_final_amount(total, shipping, tax, discount),
    )
