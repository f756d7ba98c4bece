"""Tests for trend calculation, grouping, display and ranking."""

import math

import pytest

from fos_dashboard.schemas.trends import (
    RankingDirection,
    TrendColor,
    TrendConfidence,
    TrendDirection,
    TrendPoint,
)
from fos_dashboard.services.trend_analysis import (
    CLOSURE_3_DAYS,
    UPHOLD_RATE,
    build_yearly_series,
    calculate_benchmark_trends,
    calculate_trend,
    format_trend_display,
    get_metric,
    group_trends_by_entity,
    is_improvement,
    rank_by_significance,
)


def points(*pairs: tuple[str, float]) -> list[TrendPoint]:
    return [TrendPoint(year=year, value=value) for year, value in pairs]


def firm_rows(firm_name: str, upheld_by_year: dict[str, float | None], **extra) -> list[dict]:
    return [
        {
            "firm_name": firm_name,
            "trend_year": year,
            "upheld_rate": rate,
            "closure_rate_3_days": extra.get("closure_rate_3_days"),
            "closure_rate_8_weeks": extra.get("closure_rate_8_weeks"),
        }
        for year, rate in upheld_by_year.items()
    ]


class TestCalculateTrend:
    """Tests for calculate_trend."""

    def test_rising_series(self):
        """A steadily rising series should be a significant, high-confidence rise."""
        result = calculate_trend(points(("2021", 10), ("2022", 12), ("2023", 15)))

        assert result.direction == TrendDirection.UP
        assert result.change_percent == 50.0
        assert result.change_value == 5.0
        assert result.is_significant is True
        assert result.confidence == TrendConfidence.HIGH
        assert result.periods == 3

    def test_falling_series_with_two_points(self):
        """Two points are enough for a direction but only give low confidence."""
        result = calculate_trend(points(("2021", 20), ("2022", 18)))

        assert result.direction == TrendDirection.DOWN
        assert result.change_percent == -10.0
        assert result.change_value == -2.0
        assert result.confidence == TrendConfidence.LOW

    def test_input_order_does_not_matter(self):
        """Points should be ordered by period label before comparison."""
        ordered = points(("2021", 10), ("2022", 12), ("2023", 15))
        assert calculate_trend(list(reversed(ordered))) == calculate_trend(ordered)

    def test_too_few_points(self):
        """Fewer points than required should give a stable, low-confidence default."""
        single = calculate_trend(points(("2022", 40)))
        assert single.direction == TrendDirection.STABLE
        assert single.change_percent == 0
        assert single.change_value == 0
        assert single.is_significant is False
        assert single.confidence == TrendConfidence.LOW
        assert single.periods == 1

        assert calculate_trend([]).periods == 0
        assert calculate_trend(None).periods == 0

    def test_zero_baseline_reports_no_percent_change(self):
        """A series starting at 0 keeps a 0% change even though the value moved."""
        result = calculate_trend(points(("2021", 0), ("2022", 10)))

        assert result.change_percent == 0
        assert result.change_value == 10.0
        assert result.direction == TrendDirection.STABLE
        assert result.is_significant is False

    def test_stable_series_has_medium_confidence(self):
        """A stable series of three or more points should have medium confidence."""
        result = calculate_trend(points(("2021", 50), ("2022", 51), ("2023", 50.5)))

        assert result.direction == TrendDirection.STABLE
        assert result.confidence == TrendConfidence.MEDIUM

    def test_confidence_from_consistency(self):
        """Confidence should follow the share of moves agreeing with the direction."""
        mostly_up = calculate_trend(
            points(("2019", 10), ("2020", 15), ("2021", 12), ("2022", 20), ("2023", 25))
        )
        assert mostly_up.direction == TrendDirection.UP
        assert mostly_up.confidence == TrendConfidence.MEDIUM

        choppy = calculate_trend(
            points(("2019", 10), ("2020", 12), ("2021", 9), ("2022", 8), ("2023", 13))
        )
        assert choppy.direction == TrendDirection.UP
        assert choppy.confidence == TrendConfidence.LOW

    def test_threshold_is_inclusive(self):
        """A change exactly at the threshold should count as significant."""
        result = calculate_trend(points(("2021", 100), ("2022", 105)))

        assert result.direction == TrendDirection.UP
        assert result.is_significant is True

    def test_custom_threshold_and_min_periods(self):
        """Both tuning parameters should be honoured."""
        pair = points(("2021", 100), ("2022", 103))
        assert calculate_trend(pair).direction == TrendDirection.STABLE
        assert calculate_trend(pair, significance_threshold=2).direction == TrendDirection.UP
        assert calculate_trend(pair, min_periods_for_trend=3).periods == 2
        assert calculate_trend(pair, min_periods_for_trend=3).change_value == 0

    def test_rounds_half_up(self):
        """Changes should be rounded half-up to one decimal place."""
        result = calculate_trend(points(("2021", 10), ("2022", 10.25)))

        assert result.change_value == 0.3
        assert result.change_percent == 2.5

    def test_result_is_deterministic(self):
        """The same input should always produce an equal result."""
        series = points(("2021", 31.2), ("2022", 28.4), ("2023", 26.9))
        assert calculate_trend(series) == calculate_trend(series)


class TestGroupTrendsByEntity:
    """Tests for group_trends_by_entity and build_yearly_series."""

    def test_averages_per_firm_and_year(self):
        """Rows for the same firm and year should be averaged per metric."""
        rows = [
            *firm_rows("Acme Bank", {"2021": 30, "2022": 24}),
            *firm_rows("Acme Bank", {"2021": 40}),
        ]

        [bundle] = group_trends_by_entity(rows)

        assert bundle.firm_name == "Acme Bank"
        assert [(p.year, p.value) for p in bundle.yearly_data] == [("2021", 35), ("2022", 24)]
        assert bundle.trends.uphold_rate.change_value == -11.0
        assert bundle.trends.uphold_rate.direction == TrendDirection.DOWN

    def test_firms_keep_first_seen_order(self):
        """Firms should be returned in the order they first appear."""
        rows = [
            *firm_rows("Zeta Insurance", {"2021": 10}),
            *firm_rows("Acme Bank", {"2021": 20}),
            *firm_rows("Zeta Insurance", {"2022": 12}),
        ]

        bundles = group_trends_by_entity(rows)

        assert [b.firm_name for b in bundles] == ["Zeta Insurance", "Acme Bank"]
        assert len(bundles[0].yearly_data) == 2

    def test_missing_values_are_skipped(self):
        """None and NaN values should not count towards yearly averages."""
        rows = firm_rows(
            "Acme Bank",
            {"2021": None, "2022": math.nan, "2023": 20},
            closure_rate_3_days=60,
        )

        [bundle] = group_trends_by_entity(rows)

        assert [p.year for p in bundle.yearly_data] == ["2023"]
        assert bundle.trends.uphold_rate.periods == 1
        assert bundle.trends.closure_3_days.periods == 3
        assert bundle.trends.closure_8_weeks.periods == 0

    def test_rows_without_firm_are_ignored(self):
        """Rows with an empty firm name should be dropped."""
        rows = [*firm_rows("", {"2021": 10}), *firm_rows("Acme Bank", {"2021": 20})]
        assert [b.firm_name for b in group_trends_by_entity(rows)] == ["Acme Bank"]

    def test_empty_rows(self):
        """No rows should give no bundles."""
        assert group_trends_by_entity([]) == []

    def test_build_yearly_series_for_metric(self):
        """A single metric's yearly series should be built from any rows."""
        rows = [
            {"trend_year": "2022", "closure_rate_3_days": 50},
            {"trend_year": "2021", "closure_rate_3_days": 40},
            {"trend_year": "2022", "closure_rate_3_days": 70},
        ]

        series = build_yearly_series(rows, CLOSURE_3_DAYS)

        assert [(p.year, p.value) for p in series] == [("2021", 40), ("2022", 60)]


class TestBenchmarkTrends:
    """Tests for calculate_benchmark_trends."""

    def test_benchmarks_per_metric(self):
        """Each metric should be analysed from its own yearly averages."""
        rows = [
            {
                "year": "2021",
                "avg_uphold_rate": 30,
                "avg_closure_3_days": 50,
                "avg_closure_8_weeks": None,
            },
            {
                "year": "2022",
                "avg_uphold_rate": 27,
                "avg_closure_3_days": 55,
                "avg_closure_8_weeks": 90,
            },
        ]

        result = calculate_benchmark_trends(rows)

        assert result.uphold_rate.direction == TrendDirection.DOWN
        assert result.uphold_rate.change_percent == -10.0
        assert result.closure_3_days.direction == TrendDirection.UP
        assert result.closure_8_weeks.periods == 1
        assert [p.year for p in result.yearly_benchmarks] == ["2021", "2022"]

    def test_empty_rows(self):
        """No rows should give default results and an empty benchmark series."""
        result = calculate_benchmark_trends([])

        assert result.uphold_rate.direction == TrendDirection.STABLE
        assert result.uphold_rate.periods == 0
        assert result.yearly_benchmarks == []


class TestFormatTrendDisplay:
    """Tests for format_trend_display and is_improvement."""

    def test_falling_uphold_rate_is_favourable(self):
        """A falling uphold rate should render green with a down arrow."""
        trend = calculate_trend(points(("2021", 20), ("2022", 18)))

        display = format_trend_display(trend, UPHOLD_RATE)

        assert display.icon == "↘"
        assert display.text == "-10.0%"
        assert display.color == TrendColor.GREEN
        assert display.tooltip == "Weak trend over 2 periods. Significant change."

    def test_falling_closure_rate_is_unfavourable(self):
        """A falling closure rate should render red."""
        trend = calculate_trend(points(("2021", 20), ("2022", 18)))
        assert format_trend_display(trend, CLOSURE_3_DAYS).color == TrendColor.RED

    def test_rising_closure_rate(self):
        """A rising closure rate should render green with a signed percentage."""
        trend = calculate_trend(points(("2021", 40), ("2022", 45), ("2023", 50)))

        display = format_trend_display(trend, CLOSURE_3_DAYS)

        assert display.icon == "↗"
        assert display.text == "+25.0%"
        assert display.color == TrendColor.GREEN
        assert display.tooltip == "Strong trend over 3 periods. Significant change."

    def test_stable_trend(self):
        """A stable trend should render gray with a flat arrow."""
        trend = calculate_trend(points(("2021", 50), ("2022", 51)))

        display = format_trend_display(trend)

        assert display.icon == "→"
        assert display.text == "+2.0%"
        assert display.color == TrendColor.GRAY
        assert display.tooltip.endswith("Minor change.")
        assert is_improvement(trend, UPHOLD_RATE) is None


class TestRankBySignificance:
    """Tests for rank_by_significance."""

    @pytest.fixture
    def bundles(self):
        rows = [
            *firm_rows("Improving Bank", {"2021": 40, "2022": 20}),
            *firm_rows("Declining Insurer", {"2021": 20, "2022": 26}),
            *firm_rows("Steady Lender", {"2021": 30, "2022": 31}),
        ]
        return group_trends_by_entity(rows)

    def test_both_directions(self, bundles):
        """Only significant trends should be ranked, largest change first."""
        ranked = rank_by_significance(bundles)
        assert [b.firm_name for b in ranked] == ["Improving Bank", "Declining Insurer"]

    def test_improving_follows_metric_polarity(self, bundles):
        """A falling uphold rate should count as improving."""
        ranked = rank_by_significance(bundles, UPHOLD_RATE, RankingDirection.IMPROVING)
        assert [b.firm_name for b in ranked] == ["Improving Bank"]

    def test_declining(self, bundles):
        """A rising uphold rate should count as declining."""
        ranked = rank_by_significance(bundles, UPHOLD_RATE, RankingDirection.DECLINING)
        assert [b.firm_name for b in ranked] == ["Declining Insurer"]

    def test_limit(self, bundles):
        """The result should be cut to the requested limit."""
        assert len(rank_by_significance(bundles, limit=1)) == 1
        assert rank_by_significance(bundles, limit=0) == []

    def test_ties_keep_input_order(self):
        """Firms with equal changes should keep their input order."""
        rows = [
            *firm_rows("First", {"2021": 10, "2022": 12}),
            *firm_rows("Second", {"2021": 20, "2022": 24}),
        ]
        ranked = rank_by_significance(group_trends_by_entity(rows))
        assert [b.firm_name for b in ranked] == ["First", "Second"]

    @pytest.fixture
    def closure_bundles(self):
        def rows(firm_name: str, closure_by_year: dict[str, float]) -> list[dict]:
            return [
                {
                    "firm_name": firm_name,
                    "trend_year": year,
                    "upheld_rate": 30,
                    "closure_rate_3_days": rate,
                    "closure_rate_8_weeks": None,
                }
                for year, rate in closure_by_year.items()
            ]

        return group_trends_by_entity(
            [
                *rows("Slower Insurer", {"2021": 50, "2022": 35}),
                *rows("Faster Bank", {"2021": 40, "2022": 60}),
            ]
        )

    def test_rising_closure_rate_is_improving(self, closure_bundles):
        """A rising 3-day closure rate should count as improving."""
        ranked = rank_by_significance(
            closure_bundles, CLOSURE_3_DAYS, RankingDirection.IMPROVING
        )
        assert [b.firm_name for b in ranked] == ["Faster Bank"]

    def test_falling_closure_rate_is_declining(self, closure_bundles):
        """A falling 3-day closure rate should count as declining."""
        ranked = rank_by_significance(
            closure_bundles, CLOSURE_3_DAYS, RankingDirection.DECLINING
        )
        assert [b.firm_name for b in ranked] == ["Slower Insurer"]

    def test_ranks_on_the_requested_metric(self, closure_bundles):
        """Ranking should use the chosen metric's change, not the uphold rate."""
        assert [b.firm_name for b in rank_by_significance(closure_bundles, CLOSURE_3_DAYS)] == [
            "Faster Bank",
            "Slower Insurer",
        ]
        assert rank_by_significance(closure_bundles, UPHOLD_RATE) == []



class TestMetricRegistry:
    """Tests for metric lookup."""

    def test_get_metric(self):
        """Known keys should resolve and unknown keys should raise KeyError."""
        assert get_metric("uphold_rate") is UPHOLD_RATE
        with pytest.raises(KeyError):
            get_metric("complaint_volume")
