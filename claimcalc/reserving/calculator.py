"""Monetary arithmetic for damage items, reserves and budget lines.

Every function here is pure and total: no I/O, no validation, no exceptions
for negative or zero inputs. Amounts are Decimal throughout; rounding is to
pennies with ROUND_HALF_UP, the convention used on UK invoices.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Protocol, TypeVar

PENNY = Decimal("0.01")
THOUSANDTH = Decimal("0.001")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
DEFAULT_VAT_RATE = Decimal("20")
DEFAULT_VARIANCE_TOLERANCE = Decimal("5")

CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€", "USD": "$"}

# No traps: overflow and undefined results (inf - inf) come back as NaN/Infinity.
MONEY_CONTEXT = Context(prec=60, rounding=ROUND_HALF_UP, traps=[])


class _PricedLine(Protocol):
    total_cost: Decimal
    vat_amount: Decimal
    total_including_vat: Decimal


class _StatusRecord(Protocol):
    status: Any


R = TypeVar("R", bound=_StatusRecord)


@dataclass(frozen=True, slots=True)
class LineTotals:
    total_cost: Decimal
    vat_amount: Decimal
    total_including_vat: Decimal


@dataclass(frozen=True, slots=True)
class DamageTotals:
    count: int
    total_cost: Decimal
    total_vat: Decimal
    total_including_vat: Decimal


class VarianceIndicator(str, Enum):
    ON_TRACK = "on_track"
    OVER_BUDGET = "over_budget"
    UNDER_BUDGET = "under_budget"


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Coerce int/float/str/Decimal to Decimal; None and junk become `default`.

    Floats go through str() so 0.1 stays 0.1 rather than its binary expansion.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return default
    # Signalling NaN raises on comparison; only quiet NaN leaves this function.
    return Decimal("NaN") if result.is_snan() else result


def quantize_to(value: Decimal, step: Decimal) -> Decimal:
    """Round half-up to `step`; Infinity and NaN pass through unchanged."""
    if not value.is_finite():
        return value
    with localcontext(MONEY_CONTEXT) as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() - step.as_tuple().exponent + 2)
        return value.quantize(step, rounding=ROUND_HALF_UP)


def round2(value: Decimal) -> Decimal:
    return quantize_to(value, PENNY)


def round3(value: Decimal) -> Decimal:
    return quantize_to(value, THOUSANDTH)


def compute_line_totals(
    quantity: Any = None,
    unit_cost: Any = None,
    vat_rate: Any = None,
) -> LineTotals:
    """Price one line: quantity × unit cost, plus VAT.

    A missing or zero quantity counts as one unit. A missing VAT rate uses the
    UK standard 20%; an explicit 0 is honoured (zero-rated work).

    >>> compute_line_totals(3, "150.00", 20)
    LineTotals(total_cost=Decimal('450.00'), vat_amount=Decimal('90.00'), total_including_vat=Decimal('540.00'))
    """
    qty = to_decimal(quantity)
    if qty == ZERO:
        qty = ONE
    cost = to_decimal(unit_cost)
    rate = to_decimal(vat_rate, DEFAULT_VAT_RATE)

    with localcontext(MONEY_CONTEXT):
        total_cost = round2(qty * cost)
        vat_amount = round2(total_cost * rate / HUNDRED)
        return LineTotals(
            total_cost=total_cost,
            vat_amount=vat_amount,
            total_including_vat=total_cost + vat_amount,
        )


def aggregate_damage_items(items: Iterable[_PricedLine]) -> DamageTotals:
    """Sum the pre-computed totals of each line. Empty input gives zeros."""
    count = 0
    total_cost = ZERO
    total_vat = ZERO
    total_including_vat = ZERO
    with localcontext(MONEY_CONTEXT):
        for item in items:
            count += 1
            total_cost += to_decimal(item.total_cost)
            total_vat += to_decimal(item.vat_amount)
            total_including_vat += to_decimal(item.total_including_vat)
    return DamageTotals(
        count=count,
        total_cost=total_cost,
        total_vat=total_vat,
        total_including_vat=total_including_vat,
    )


def select_current_reserve(reserves: Sequence[R]) -> R | None:
    """Pick the authoritative reserve.

    Precondition: `reserves` is ordered newest first, as every reserve list
    read returns it. The first approved record wins; without one, the newest
    record stands in.
    """
    if not reserves:
        return None
    for reserve in reserves:
        if reserve.status == "approved":
            return reserve
    return reserves[0]


def compute_variance(estimated: Any, actual: Any) -> Decimal:
    with localcontext(MONEY_CONTEXT):
        return to_decimal(actual) - to_decimal(estimated)


def variance_percentage(variance: Any, estimated: Any) -> Decimal | None:
    """Variance as a percentage of the estimate; None when nothing was estimated."""
    base = to_decimal(estimated)
    if base == ZERO:
        return None
    with localcontext(MONEY_CONTEXT):
        return to_decimal(variance) / base * HUNDRED


def variance_indicator(
    estimated: Any,
    actual: Any,
    tolerance_pct: Any = DEFAULT_VARIANCE_TOLERANCE,
) -> VarianceIndicator:
    """Classify a variance; an undefined percentage (NaN) counts as on track."""
    variance = compute_variance(estimated, actual)
    pct = variance_percentage(variance, estimated) or ZERO
    tolerance = to_decimal(tolerance_pct, DEFAULT_VARIANCE_TOLERANCE)
    if pct.is_nan() or tolerance.is_nan() or abs(pct) < tolerance:
        return VarianceIndicator.ON_TRACK
    if pct > ZERO:
        return VarianceIndicator.OVER_BUDGET
    return VarianceIndicator.UNDER_BUDGET


def compute_remaining(allocated: Any, spent: Any) -> Decimal:
    with localcontext(MONEY_CONTEXT):
        return to_decimal(allocated) - to_decimal(spent)


def compute_assessment_totals(
    subtotals: Iterable[Any],
    vat_rate: Any = None,
) -> LineTotals:
    """Net/VAT/gross for a contractor quotation built from trade subtotals."""
    rate = to_decimal(vat_rate, DEFAULT_VAT_RATE)
    with localcontext(MONEY_CONTEXT):
        net = round2(sum((to_decimal(s) for s in subtotals), ZERO))
        vat_amount = round2(net * rate / HUNDRED)
        return LineTotals(total_cost=net, vat_amount=vat_amount, total_including_vat=net + vat_amount)


def suggest_unit_cost(rate_low: Any, rate_high: Any) -> Decimal | None:
    """Midpoint of a HOD code's typical rate band, or the low rate alone."""
    if rate_low is None:
        return None
    low = to_decimal(rate_low)
    if rate_high is None:
        return low
    with localcontext(MONEY_CONTEXT):
        return round2((low + to_decimal(rate_high)) / 2)


def format_currency(amount: Any, currency: str = "GBP") -> str:
    """en-GB display string, e.g. £1,234.50 or -£20.00."""
    value = to_decimal(amount)
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    sign = "-" if value.is_signed() and not value.is_nan() and value != ZERO else ""
    if value.is_finite():
        body = f"{round2(abs(value)):,.2f}"
    else:
        body = "NaN" if value.is_nan() else "Infinity"
    if symbol is None:
        return f"{sign}{currency.upper()} {body}"
    return f"{sign}{symbol}{body}"
