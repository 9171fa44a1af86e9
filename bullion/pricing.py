"""Spot-price based pricing for stock-in, sale and buyback.

Every function here is pure. Amounts are computed in ``Decimal`` and floored
to whole currency units before they leave the module.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import ROUND_FLOOR, Decimal
from typing import Union

from bullion.core.config import settings
from bullion.models import MetalType


@dataclass(frozen=True)
class Percent:
    """Markup expressed as a percentage of ``spot * weight``."""

    value: float
    kind: str = field(default="PERCENT", init=False)


@dataclass(frozen=True)
class FixedPerGram:
    """Markup expressed as a flat amount per gram."""

    value: float
    kind: str = field(default="FIXED_PER_GRAM", init=False)


Markup = Union[Percent, FixedPerGram]


def _dec(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def markup_amount(markup: Markup, spot: float, weight: float) -> Decimal:
    base = _dec(spot) * _dec(weight)
    if isinstance(markup, Percent):
        return base * (_dec(markup.value) / Decimal("100"))
    if isinstance(markup, FixedPerGram):
        return _dec(markup.value) * _dec(weight)
    raise TypeError(f"Unsupported markup: {markup!r}")


def markup_from_kind(kind: str, value: float) -> Markup:
    kind_n = (kind or "").strip().upper()
    if kind_n == "PERCENT":
        return Percent(value)
    if kind_n == "FIXED_PER_GRAM":
        return FixedPerGram(value)
    raise ValueError(f"Unknown markup kind: {kind!r}")


def spot_for(metal_type: str, gold: float, silver: float) -> float:
    return gold if MetalType.parse(metal_type) == MetalType.GOLD else silver


def stock_in_cost(spot: float, weight: float, markup: Markup) -> int:
    base = _dec(spot) * _dec(weight)
    return _floor(base + markup_amount(markup, spot, weight))


def sale_price(spot: float, weight: float, ojorat: float, margin_percent: float) -> int:
    # Ojorat is always per gram, the margin always a percentage on top.
    total_cost = (_dec(spot) + _dec(ojorat)) * _dec(weight)
    return _floor(total_cost + total_cost * (_dec(margin_percent) / Decimal("100")))


@dataclass(frozen=True)
class BuybackQuote:
    base_value: int
    deduction: int
    packaging_fee: int
    final_price: int

    @property
    def is_valid(self) -> bool:
        return self.final_price > 0


def buyback_quote(spot: float, weight: float, markup: Markup, packaging_fee: float = 0) -> BuybackQuote:
    base = _dec(spot) * _dec(weight)
    deduction = markup_amount(markup, spot, weight)
    fee = _dec(packaging_fee)
    return BuybackQuote(
        base_value=_floor(base),
        deduction=_floor(deduction),
        packaging_fee=_floor(fee),
        final_price=_floor(base - deduction - fee),
    )


def buyback_price(spot: float, weight: float, markup: Markup, packaging_fee: float = 0) -> int:
    """Price paid to a customer; anything <= 0 means deductions exceed the metal value."""
    return buyback_quote(spot, weight, markup, packaging_fee).final_price


# ----------------------------------------------------------------------
# Per-flow configuration. Each form keeps its own; none of it is stored.

@dataclass(frozen=True)
class StockInPricing:
    markup: Markup = field(default_factory=lambda: FixedPerGram(settings.STOCK_IN_FEE_PER_GRAM))

    def cost(self, spot: float, weight: float) -> int:
        return stock_in_cost(spot, weight, self.markup)


@dataclass(frozen=True)
class SalePricing:
    ojorat_per_gram: float = field(default_factory=lambda: settings.SALE_OJORAT_PER_GRAM)
    profit_margin_percent: float = field(default_factory=lambda: settings.SALE_PROFIT_MARGIN_PERCENT)

    def price(self, spot: float, weight: float) -> int:
        return sale_price(spot, weight, self.ojorat_per_gram, self.profit_margin_percent)


@dataclass(frozen=True)
class BuybackPricing:
    markup: Markup = field(default_factory=lambda: Percent(settings.BUYBACK_DEDUCTION_PERCENT))
    packaging_fee: float = field(default_factory=lambda: settings.BUYBACK_PACKAGING_FEE)

    def quote(self, spot: float, weight: float) -> BuybackQuote:
        return buyback_quote(spot, weight, self.markup, self.packaging_fee)

    def switch_mode(self, kind: str) -> "BuybackPricing":
        """Change deduction mode, resetting the value to that mode's default."""
        default = (
            settings.BUYBACK_DEDUCTION_PERCENT
            if (kind or "").strip().upper() == "PERCENT"
            else settings.BUYBACK_DEDUCTION_PER_GRAM
        )
        return replace(self, markup=markup_from_kind(kind, default))
