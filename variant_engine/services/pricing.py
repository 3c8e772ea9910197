"""
Pricing Engine

final = round2((base + sum(fixed)) * (1 + sum(percentage) / 100))

Fixed deltas always apply before percentages, whatever order the values
arrive in, so the price depends only on the set of modifiers.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from pydantic import BaseModel

from variant_engine.core.logger import logger
from variant_engine.models.attribute import AttributeValue, FixedModifier, PercentageModifier

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    # str() first so 0.1 becomes Decimal("0.1") rather than its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class PriceQuote(BaseModel):
    """Breakdown of one computed price"""
    base_price: Decimal
    fixed_total: Decimal
    percentage_total: Decimal
    final_price: Decimal
    clamped: bool = False

    @property
    def amount(self) -> float:
        return float(self.final_price)


class PricingEngine:
    """Computes deterministic variant prices from attribute value modifiers"""

    def quote(self, base_price: Number, values: Iterable[AttributeValue]) -> PriceQuote:
        base = to_decimal(base_price)
        fixed_total = Decimal("0")
        percentage_total = Decimal("0")
        modifiers = [m for value in values for m in value.price_modifiers]
        for modifier in modifiers:
            if isinstance(modifier, FixedModifier):
                fixed_total += to_decimal(modifier.amount)
            elif isinstance(modifier, PercentageModifier):
                percentage_total += to_decimal(modifier.amount)

        raw = (base + fixed_total) * (1 + percentage_total / HUNDRED)
        clamped = raw < 0
        final = Decimal("0.00") if clamped else round2(raw)

        return PriceQuote(
            base_price=base,
            fixed_total=fixed_total,
            percentage_total=percentage_total,
            final_price=final,
            clamped=clamped,
        )

    def price(
        self,
        base_price: Number,
        values: Iterable[AttributeValue],
        correlation_id: Optional[str] = None
    ) -> float:
        """Final price for a combination; negative results are clamped to 0.00."""
        quote = self.quote(base_price, values)
        if quote.clamped:
            logger.warning(
                "Computed variant price was negative, clamped to 0.00",
                correlation_id=correlation_id,
                metadata={
                    "base_price": str(quote.base_price),
                    "fixed_total": str(quote.fixed_total),
                    "percentage_total": str(quote.percentage_total),
                },
            )
        return quote.amount
