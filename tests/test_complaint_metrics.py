"""Tests for complaint metric queries."""

from conftest import ComplaintMetricFactory
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fos_dashboard.models.complaint_metric import ComplaintMetric
from fos_dashboard.services.complaint_metrics import (
    UNKNOWN_YEAR,
    MetricFilters,
    get_firm_names,
    get_historical_trend_rows,
    get_industry_trend_rows,
    split_list_param,
    trend_year_expression,
)


class TestFilterParsing:
    """Tests for query parameter parsing."""

    def test_split_list_param(self):
        """Values should be trimmed, de-duplicated and blank-free."""
        assert split_list_param(" Acme Bank, Zeta ,Acme Bank,, ") == ["Acme Bank", "Zeta"]
        assert split_list_param(None) == []
        assert split_list_param(["2021,2022", "2022"]) == ["2021", "2022"]

    def test_metric_filters_from_query(self):
        """Filters should be built from comma-separated values."""
        filters = MetricFilters.from_query(years="2021,2022", firms="Acme Bank")

        assert filters.years == ["2021", "2022"]
        assert filters.firms == ["Acme Bank"]
        assert filters.products == []


class TestTrendYearExpression:
    """Tests for reporting period bucketing."""

    async def test_periods_map_to_years(
        self, db_session: AsyncSession, metric_factory: ComplaintMetricFactory
    ):
        """Periods mentioning a configured year should map to it."""
        await metric_factory.create(reporting_period="2022 H1")
        await metric_factory.create(reporting_period="01/07/2021 - 31/12/2021")
        await metric_factory.create(reporting_period="Legacy return")

        stmt = select(
            ComplaintMetric.reporting_period, trend_year_expression([2021, 2022]).label("year")
        ).order_by(ComplaintMetric.id)
        result = await db_session.execute(stmt)

        assert [row.year for row in result.all()] == ["2022", "2021", UNKNOWN_YEAR]

    async def test_no_years_configured(
        self, db_session: AsyncSession, metric_factory: ComplaintMetricFactory
    ):
        """Without configured years every period is unknown."""
        await metric_factory.create(reporting_period="2022 H1")

        result = await db_session.execute(select(trend_year_expression([]).label("year")))

        assert result.scalar_one() == UNKNOWN_YEAR


class TestHistoricalTrendRows:
    """Tests for get_historical_trend_rows."""

    async def test_rows_are_labelled_and_ordered(
        self, db_session: AsyncSession, metric_factory: ComplaintMetricFactory
    ):
        """Rows should carry rate aliases and a trend year, ordered by firm and period."""
        await metric_factory.create(firm_name="Zeta Insurance", reporting_period="2021 H1")
        await metric_factory.create(firm_name="Acme Bank", reporting_period="2022 H1")
        await metric_factory.create(firm_name="Acme Bank", reporting_period="2021 H2")
        await metric_factory.create(firm_name="Acme Bank", reporting_period=None)

        rows = await get_historical_trend_rows(db_session)

        assert [(r["firm_name"], r["trend_year"]) for r in rows] == [
            ("Acme Bank", "2021"),
            ("Acme Bank", "2022"),
            ("Zeta Insurance", "2021"),
        ]
        assert rows[0]["upheld_rate"] == 30.0
        assert rows[0]["closure_rate_3_days"] == 50.0
        assert rows[0]["closure_rate_8_weeks"] == 40.0

    async def test_filters(self, db_session: AsyncSession, metric_factory: ComplaintMetricFactory):
        """Year, firm and product filters should all narrow the rows."""
        await metric_factory.create(firm_name="Acme Bank", reporting_period="2021 H1")
        await metric_factory.create(
            firm_name="Acme Bank", reporting_period="2022 H1", product_category="Insurance"
        )
        await metric_factory.create(firm_name="Zeta Insurance", reporting_period="2022 H1")

        by_year = await get_historical_trend_rows(db_session, MetricFilters(years=["2022"]))
        assert len(by_year) == 2

        by_firm = await get_historical_trend_rows(db_session, MetricFilters(firms=["Acme Bank"]))
        assert len(by_firm) == 2

        by_product = await get_historical_trend_rows(
            db_session, MetricFilters(products=["Insurance"])
        )
        assert [r["reporting_period"] for r in by_product] == ["2022 H1"]

    async def test_limit(self, db_session: AsyncSession, metric_factory: ComplaintMetricFactory):
        """The row count should be capped by the limit."""
        await metric_factory.create_series("Acme Bank", {2020: 30, 2021: 28, 2022: 25})

        rows = await get_historical_trend_rows(db_session, limit=2)

        assert len(rows) == 2


class TestIndustryTrendRows:
    """Tests for get_industry_trend_rows."""

    async def test_yearly_averages(
        self, db_session: AsyncSession, metric_factory: ComplaintMetricFactory
    ):
        """Rows should average each year across firms and skip unknown years."""
        for firm_name, period, rate in [
            ("Acme Bank", "2021 H1", 20),
            ("Acme Bank", "2021 H2", 30),
            ("Zeta Insurance", "2021 H1", 40),
            ("Zeta Insurance", "2022 H1", 10),
        ]:
            await metric_factory.create(
                firm_name=firm_name, reporting_period=period, upheld_rate_pct=rate
            )
        await metric_factory.create(firm_name="Zeta Insurance", reporting_period="Legacy return")

        rows = await get_industry_trend_rows(db_session)

        assert [row["year"] for row in rows] == ["2021", "2022"]
        assert rows[0]["avg_uphold_rate"] == 30.0
        assert rows[0]["firm_count"] == 2
        assert rows[0]["record_count"] == 3
        assert rows[1]["avg_uphold_rate"] == 10.0
        assert rows[1]["firm_count"] == 1


class TestFirmNames:
    """Tests for get_firm_names."""

    async def test_distinct_sorted_names(
        self, db_session: AsyncSession, metric_factory: ComplaintMetricFactory
    ):
        """Firm names should be distinct, non-empty and sorted."""
        await metric_factory.create(firm_name="Zeta Insurance")
        await metric_factory.create(firm_name="Acme Bank")
        await metric_factory.create(firm_name="Acme Bank", reporting_period="2023 H1")
        await metric_factory.create(firm_name="")

        assert await get_firm_names(db_session) == ["Acme Bank", "Zeta Insurance"]
