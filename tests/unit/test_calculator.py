"""Tests for claimcalc.reserving.calculator - pure money arithmetic."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest

from claimcalc.reserving.calculator import (
    DamageTotals,
    LineTotals,
    VarianceIndicator,
    aggregate_damage_items,
    compute_assessment_totals,
    compute_line_totals,
    compute_remaining,
    compute_variance,
    format_currency,
    round2,
    select_current_reserve,
    suggest_unit_cost,
    to_decimal,
    variance_indicator,
    variance_percentage,
)


@dataclass
class _Line:
    total_cost: Decimal
    vat_amount: Decimal
    total_including_vat: Decimal


@dataclass
class _Reserve:
    name: str
    status: str


class TestLineTotals:
    def test_standard_rate(self):
        totals = compute_line_totals(3, Decimal("150.00"), 20)

        assert totals == LineTotals(
            total_cost=Decimal("450.00"),
            vat_amount=Decimal("90.00"),
            total_including_vat=Decimal("540.00"),
        )

    def test_zero_quantity_counts_as_one(self):
        totals = compute_line_totals(0, Decimal("80.00"), 20)

        assert totals.total_cost == Decimal("80.00")
        assert totals.total_including_vat == Decimal("96.00")

    def test_missing_quantity_counts_as_one(self):
        assert compute_line_totals(None, "12.50", 20).total_cost == Decimal("12.50")

    def test_missing_vat_rate_uses_standard_rate(self):
        totals = compute_line_totals(1, "100", None)

        assert totals.vat_amount == Decimal("20.00")

    def test_explicit_zero_vat_is_honoured(self):
        totals = compute_line_totals(2, "100", 0)

        assert totals.vat_amount == Decimal("0.00")
        assert totals.total_including_vat == Decimal("200.00")

    def test_rounds_half_up_to_pennies(self):
        totals = compute_line_totals("0.5", "0.25", 20)

        # 0.125 -> 0.13, VAT 0.026 -> 0.03
        assert totals.total_cost == Decimal("0.13")
        assert totals.vat_amount == Decimal("0.03")

    def test_float_inputs_do_not_pick_up_binary_noise(self):
        totals = compute_line_totals(0.1, 0.2, 20)

        assert totals.total_cost == Decimal("0.02")

    def test_negative_values_are_accepted(self):
        totals = compute_line_totals(2, "-10.00", 20)

        assert totals.total_cost == Decimal("-20.00")
        assert totals.total_including_vat == Decimal("-24.00")

    @pytest.mark.parametrize(
        "quantity,unit_cost,vat_rate",
        [
            ("18.5", "60.00", "20"),
            ("3", "33.33", "5"),
            ("7.25", "19.99", "17.5"),
        ],
    )
    def test_vat_identity(self, quantity, unit_cost, vat_rate):
        totals = compute_line_totals(quantity, unit_cost, vat_rate)

        assert totals.total_including_vat == totals.total_cost + totals.vat_amount


class TestAggregate:
    def test_sums_lines(self):
        lines = [
            _Line(Decimal("450.00"), Decimal("90.00"), Decimal("540.00")),
            _Line(Decimal("100.42"), Decimal("20.08"), Decimal("120.50")),
        ]

        totals = aggregate_damage_items(lines)

        assert totals.count == 2
        assert totals.total_including_vat == Decimal("660.50")
        assert totals.total_cost == Decimal("550.42")
        assert totals.total_vat == Decimal("110.08")

    def test_empty_gives_zeros(self):
        assert aggregate_damage_items([]) == DamageTotals(
            count=0,
            total_cost=Decimal("0"),
            total_vat=Decimal("0"),
            total_including_vat=Decimal("0"),
        )


class TestSelectCurrentReserve:
    def test_prefers_approved(self):
        reserves = [
            _Reserve("newest", "draft"),
            _Reserve("approved", "approved"),
            _Reserve("oldest", "superseded"),
        ]

        assert select_current_reserve(reserves).name == "approved"

    def test_falls_back_to_newest(self):
        reserves = [_Reserve("newest", "draft"), _Reserve("older", "pending_approval")]

        assert select_current_reserve(reserves).name == "newest"

    def test_empty(self):
        assert select_current_reserve([]) is None


class TestVariance:
    def test_variance_is_actual_minus_estimated(self):
        assert compute_variance(Decimal("10000"), Decimal("12500")) == Decimal("2500")

    def test_percentage(self):
        assert variance_percentage(Decimal("2500"), Decimal("10000")) == Decimal("25")

    def test_percentage_without_estimate(self):
        assert variance_percentage(Decimal("100"), Decimal("0")) is None

    @pytest.mark.parametrize(
        "estimated,actual,expected",
        [
            ("10000", "10400", VarianceIndicator.ON_TRACK),
            ("10000", "9600", VarianceIndicator.ON_TRACK),
            ("10000", "10500", VarianceIndicator.OVER_BUDGET),
            ("10000", "9000", VarianceIndicator.UNDER_BUDGET),
            ("0", "500", VarianceIndicator.ON_TRACK),
        ],
    )
    def test_indicator(self, estimated, actual, expected):
        assert variance_indicator(estimated, actual) == expected

    def test_indicator_respects_tolerance(self):
        assert variance_indicator("10000", "10800", tolerance_pct=10) == VarianceIndicator.ON_TRACK


def test_remaining():
    assert compute_remaining("5000.00", "1250.50") == Decimal("3749.50")


def test_assessment_totals():
    totals = compute_assessment_totals(["1200.00", "800.00", "150.00", "50.00"], 20)

    assert totals.total_cost == Decimal("2200.00")
    assert totals.vat_amount == Decimal("440.00")
    assert totals.total_including_vat == Decimal("2640.00")


class TestSuggestUnitCost:
    def test_midpoint(self):
        assert suggest_unit_cost(Decimal("35.00"), Decimal("85.00")) == Decimal("60.00")

    def test_low_only(self):
        assert suggest_unit_cost(Decimal("45.00"), None) == Decimal("45.00")

    def test_no_band(self):
        assert suggest_unit_cost(None, None) is None


class TestFormatCurrency:
    def test_gbp(self):
        assert format_currency(Decimal("1234.5")) == "£1,234.50"

    def test_negative(self):
        assert format_currency(Decimal("-20")) == "-£20.00"

    def test_unknown_currency_uses_code(self):
        assert format_currency(Decimal("10"), "CHF") == "CHF 10.00"


def test_to_decimal_defaults_on_junk():
    assert to_decimal("not-a-number") == Decimal("0")
    assert to_decimal(None, Decimal("20")) == Decimal("20")


def test_round2():
    assert round2(Decimal("2.345")) == Decimal("2.35")


class TestExtremeInputs:
    def test_amounts_beyond_default_precision(self):
        totals = compute_line_totals(1, Decimal("1e27"), 20)

        assert totals.total_cost == Decimal("1e27")
        assert totals.vat_amount == Decimal("2e26")
        assert totals.total_including_vat == Decimal("1.2e27")

    def test_infinite_unit_cost(self):
        totals = compute_line_totals(1, float("inf"), 20)

        assert totals.total_cost.is_infinite()
        assert totals.total_including_vat.is_infinite()

    def test_undefined_result_is_nan(self):
        totals = compute_line_totals(float("inf"), 0, 20)

        assert totals.total_cost.is_nan()

    def test_round2_passes_non_finite_through(self):
        assert round2(Decimal("Infinity")).is_infinite()
        assert round2(Decimal("NaN")).is_nan()
        assert round2(Decimal("12345678901234567890123456789.005")) == Decimal(
            "12345678901234567890123456789.01"
        )

    def test_signalling_nan_is_quietened(self):
        assert to_decimal("sNaN").is_nan()
        assert not to_decimal("sNaN").is_snan()

    def test_indicator_on_nan(self):
        assert variance_indicator("NaN", 10) == VarianceIndicator.ON_TRACK
        assert variance_indicator(100, "inf") == VarianceIndicator.OVER_BUDGET

    def test_assessment_and_suggestion(self):
        assert compute_assessment_totals([Decimal("1e27")], 0).total_cost == Decimal("1e27")
        assert suggest_unit_cost("inf", 10).is_infinite()

    def test_format_currency(self):
        assert format_currency(Decimal("1e27")) == "£1,000,000,000,000,000,000,000,000,000.00"
        assert format_currency(float("-inf")) == "-£Infinity"
        assert format_currency("NaN") == "£NaN"
