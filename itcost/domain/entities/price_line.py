"""
Price Line Entity - a single priced row of a calculation.

A price sheet is an ordered list of price lines; its total is the
sum of line totals and must match the stored calculation total.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert numeric input to a two-decimal Decimal."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        d = value
    else:
        d = Decimal(str(value))
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class PriceLine:
    """
    One price line of a calculation.

    Attributes:
        price_type: Name of the priced component (e.g. 'CPU', 'Drifttimme')
        quantity: Number of units
        unit_price: Price per unit at the time of pricing
        pricing_config_id: Price list row the unit price came from
        unit: Display unit from the price list row
        comment: Free-text note
    """

    price_type: str
    quantity: Decimal = Decimal("1.00")
    unit_price: Decimal = Decimal("0.00")
    pricing_config_id: Optional[int] = None
    unit: Optional[str] = None
    comment: Optional[str] = None

    def __post_init__(self):
        self.quantity = to_decimal(self.quantity)
        self.unit_price = to_decimal(self.unit_price)

    @property
    def total_price(self) -> Decimal:
        return (self.quantity * self.unit_price).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class PriceSheet:
    """Ordered collection of price lines."""

    lines: List[PriceLine] = field(default_factory=list)

    def add(self, line: PriceLine) -> None:
        self.lines.append(line)

    @property
    def total(self) -> Decimal:
        return sum((line.total_price for line in self.lines), Decimal("0.00"))

    def is_empty(self) -> bool:
        return len(self.lines) == 0
