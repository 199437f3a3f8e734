"""
Hypothesis-based property tests for the statement engine.

Properties checked:
- Variance: amount is current - baseline; percent is defined exactly when
  the baseline is non-zero (or both are zero) and shares the amount's sign
- LTM ranges: always cover the requested number of months, end at the
  latest period, and are contiguous
- Filters: exact matches return only matching rows, and a value partition
  loses no rows
- Rollup: grouping conserves the column totals
- Number formatting: grouping separators never change the value
- Expressions: arithmetic agrees with Decimal arithmetic
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from statement_engine.expressions import ExpressionContext, evaluate_expression
from statement_engine.filters import apply_filter
from statement_engine.formatting import format_number
from statement_engine.ltm import are_valid_ranges, calculate_ltm_range, get_total_months
from statement_engine.rollup import apply_rollup, build_normal_mode_spec, sum_column
from statement_engine.variance import calculate_variance

amounts = st.decimals(
    min_value=Decimal("-1000000000"),
    max_value=Decimal("1000000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

CODE1_VALUES = ("10", "40", "60", "500", "520", "550")


@st.composite
def movement_rows(draw, max_size=40):
    size = draw(st.integers(min_value=0, max_value=max_size))
    rows = []
    for _ in range(size):
        code1 = draw(st.sampled_from(CODE1_VALUES))
        account = f"{code1}{draw(st.integers(min_value=0, max_value=3))}"
        rows.append({
            "year": draw(st.sampled_from((2024, 2025))),
            "period": draw(st.integers(min_value=1, max_value=12)),
            "account_code": account,
            "account_description": f"Account {account}",
            "statement_type": "IS" if int(code1) >= 500 else "BS",
            "code0": "R" if int(code1) >= 500 else "A",
            "name0": "Group",
            "code1": code1,
            "name1": f"Category {code1}",
            "movement_amount": draw(amounts),
        })
    return rows


# ---------------------------------------------------------------------------
# Variance
# ---------------------------------------------------------------------------


class TestVarianceProperties:

    @given(baseline=amounts, current=amounts)
    def test_amount_is_difference(self, baseline, current):
        assert calculate_variance(baseline, current).amount == current - baseline

    @given(baseline=amounts, current=amounts)
    def test_percent_defined(self, baseline, current):
        percent = calculate_variance(baseline, current).percent
        if baseline == 0 and current != 0:
            assert percent is None
        else:
            assert percent is not None

    @given(baseline=amounts.filter(lambda v: v != 0), current=amounts)
    def test_percent_sign_follows_amount(self, baseline, current):
        variance = calculate_variance(baseline, current)
        if variance.amount > 0:
            assert variance.percent > 0
        elif variance.amount < 0:
            assert variance.percent < 0
        else:
            assert variance.percent == 0


# ---------------------------------------------------------------------------
# LTM ranges
# ---------------------------------------------------------------------------


class TestLtmRangeProperties:

    @given(
        year=st.integers(min_value=2000, max_value=2100),
        period=st.integers(min_value=1, max_value=12),
        months=st.integers(min_value=1, max_value=60),
    )
    def test_covers_requested_months(self, year, period, months):
        ranges = calculate_ltm_range(year, period, months)
        assert are_valid_ranges(ranges)
        assert get_total_months(ranges) == months
        assert (ranges[-1].year, ranges[-1].end_period) == (year, period)

    @given(
        year=st.integers(min_value=2000, max_value=2100),
        period=st.integers(min_value=1, max_value=12),
        months=st.integers(min_value=1, max_value=60),
    )
    def test_ranges_contiguous(self, year, period, months):
        ranges = calculate_ltm_range(year, period, months)
        for earlier, later in zip(ranges, ranges[1:]):
            assert later.year == earlier.year + 1
            assert earlier.end_period == 12
            assert later.start_period == 1

    @given(period=st.integers().filter(lambda p: not 1 <= p <= 12))
    def test_invalid_period_gives_no_ranges(self, period):
        assert calculate_ltm_range(2025, period, 12) == []


# ---------------------------------------------------------------------------
# Filters and rollup
# ---------------------------------------------------------------------------


class TestFilterProperties:

    @given(rows=movement_rows(), code1=st.sampled_from(CODE1_VALUES))
    def test_exact_match_only_returns_matches(self, rows, code1):
        matched = apply_filter({"code1": code1})(rows)
        assert all(r["code1"] == code1 for r in matched)
        assert len(matched) == sum(1 for r in rows if r["code1"] == code1)

    @given(rows=movement_rows())
    def test_partition_loses_nothing(self, rows):
        low = apply_filter({"code1": {"lt": 500}})(rows)
        high = apply_filter({"code1": {"gte": 500}})(rows)
        assert len(low) + len(high) == len(rows)

    @given(rows=movement_rows())
    def test_empty_spec_matches_all(self, rows):
        assert apply_filter({})(rows) == list(rows)


class TestRollupProperties:

    @settings(max_examples=50)
    @given(rows=movement_rows(), multiplier=st.sampled_from((1, -1)))
    def test_totals_conserved(self, rows, multiplier):
        spec = build_normal_mode_spec(2024, 2025, multiplier)
        grouped = apply_rollup(spec, rows)
        for year in (2024, 2025):
            expected = sum(
                (r["movement_amount"] for r in rows if r["year"] == year), Decimal("0"),
            )
            assert sum_column(grouped, f"amount_{year}") == expected * multiplier

    @given(rows=movement_rows())
    def test_one_group_per_account(self, rows):
        grouped = apply_rollup(build_normal_mode_spec(2024, 2025), rows)
        assert len(grouped) == len({r["account_code"] for r in rows})


# ---------------------------------------------------------------------------
# Formatting and expressions
# ---------------------------------------------------------------------------


class TestFormattingProperties:

    @given(value=amounts, decimals=st.integers(min_value=0, max_value=4))
    def test_grouping_does_not_change_value(self, value, decimals):
        grouped = format_number(value, decimals, True)
        plain = format_number(value, decimals, False)
        assert grouped.replace(",", "") == plain
        assert abs(Decimal(plain) - value) <= Decimal(1).scaleb(-decimals) / 2

    @given(value=amounts, decimals=st.integers(min_value=0, max_value=4))
    def test_never_negative_zero(self, value, decimals):
        text = format_number(value, decimals, True)
        assert not (text.startswith("-") and Decimal(text.replace(",", "")) == 0)


class TestExpressionProperties:

    @given(a=amounts, b=amounts)
    def test_addition_and_subtraction(self, a, b):
        context = ExpressionContext(variables={"a": a, "b": b}, orders={10: a})
        assert evaluate_expression("a + b", context).value == a + b
        assert evaluate_expression("@10 - b", context).value == a - b

    @given(a=amounts)
    def test_division_by_zero_fails(self, a):
        context = ExpressionContext(variables={"a": a, "zero": Decimal("0")}, orders={})
        result = evaluate_expression("a / zero", context)
        assert not result
        assert result.error == "Division by zero"
