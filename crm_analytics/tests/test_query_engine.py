"""
Tests for the query engine.

Covers filter semantics (null handling, numeric and text operators), the date
window, the record cap, grouped and individual series construction, standalone
aggregations, sampling, progress reporting and error wrapping.

Fixture layout (see conftest.client_records):
    id  name  state  policy_amount  active   renewal
    1   Ana   CA     100            True     2024-06-01
    2   Ben   TX     200            False    2024-07-01
    3   Cara  CA     "300"          "true"   2024-08-01
    4   Dan   FL     400            True     "not a date"
    5   Eve   TX     "n/a"          None     None
    6   None  CA     600            "no"     2024-09-15
    7   Gus   -      None           True     2024-10-01
    8   Hal   TX     800            1        2024-11-01
"""

from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest

from crm_analytics.core.config import Settings
from crm_analytics.models import (
    AggregationFunction,
    ClientRecord,
    FieldSelection,
    FilterOperator,
    FilterRule,
    QueryConfiguration,
    SeriesType,
)
from crm_analytics.services.field_catalog import build_accessor_table
from crm_analytics.services.query_engine import (
    MISSING_GROUP_KEY,
    QueryEngine,
    QueryExecutionError,
    apply_date_range,
    apply_filters,
    build_query_description,
    order_records,
)


POLICY = FieldSelection(fieldName="policy_amount", displayName="Policy amount")


def ids(records) -> List[int]:
    return [r.id for r in records]


@pytest.fixture
def accessors(custom_fields):
    return build_accessor_table(custom_fields)


@pytest.fixture
def engine(custom_fields) -> QueryEngine:
    return QueryEngine(custom_fields=custom_fields, settings=Settings(max_records=0))


# =============================================================================
# Filters
# =============================================================================


class TestFilters:

    @pytest.mark.parametrize("rule, expected", [
        (FilterRule(fieldName="policy_amount", operator=FilterOperator.GREATER_THAN, value=250), [3, 4, 6, 8]),
        (FilterRule(fieldName="policy_amount", operator=FilterOperator.LESS_OR_EQUAL, value=200), [1, 2]),
        (FilterRule(fieldName="policy_amount", operator=FilterOperator.EQUALS, value=300), [3]),
        (FilterRule(fieldName="state", operator=FilterOperator.EQUALS, value="CA"), [1, 3, 6]),
        (FilterRule(fieldName="state", operator=FilterOperator.NOT_EQUALS, value="CA"), [2, 4, 5, 8]),
        (FilterRule(fieldName="Name", operator=FilterOperator.CONTAINS, value="a"), [1, 3, 4, 8]),
        (FilterRule(fieldName="Name", operator=FilterOperator.STARTS_WITH, value="A"), [1]),
        (FilterRule(fieldName="Name", operator=FilterOperator.ENDS_WITH, value="n"), [2, 4]),
        (FilterRule(fieldName="Name", operator=FilterOperator.IS_NULL), [6]),
        (FilterRule(fieldName="state", operator=FilterOperator.IS_NOT_NULL), [1, 2, 3, 4, 5, 6, 8]),
        (FilterRule(fieldName="active", operator=FilterOperator.EQUALS, value=True), [1, 3, 4, 7, 8]),
    ])
    def test_single_rule(self, client_records, accessors, rule, expected) -> None:
        assert ids(apply_filters(client_records, [rule], accessors)) == expected

    def test_rules_are_conjunctive(self, client_records, accessors) -> None:
        rules = [
            FilterRule(fieldName="state", operator=FilterOperator.EQUALS, value="TX"),
            FilterRule(fieldName="policy_amount", operator=FilterOperator.GREATER_THAN, value=300),
        ]
        assert ids(apply_filters(client_records, rules, accessors)) == [8]

    def test_no_rules_keeps_everything(self, client_records, accessors) -> None:
        assert ids(apply_filters(client_records, [], accessors)) == list(range(1, 9))

    def test_numeric_operator_with_text_operand_matches_nothing(self, client_records, accessors) -> None:
        rule = FilterRule(fieldName="Name", operator=FilterOperator.GREATER_THAN, value=5)
        assert apply_filters(client_records, [rule], accessors) == []

    def test_unknown_field_is_null(self, client_records, accessors) -> None:
        is_null = FilterRule(fieldName="does_not_exist", operator=FilterOperator.IS_NULL)
        equals = FilterRule(fieldName="does_not_exist", operator=FilterOperator.EQUALS, value="x")
        assert len(apply_filters(client_records, [is_null], accessors)) == 8
        assert apply_filters(client_records, [equals], accessors) == []


class TestDateRange:

    def test_inclusive_window_on_custom_date(self, client_records, accessors) -> None:
        config = QueryConfiguration(
            dateRangeField="renewal",
            startDate=datetime(2024, 7, 1),
            endDate=datetime(2024, 9, 15),
        )
        assert ids(apply_date_range(client_records, config, accessors)) == [2, 3, 6]

    def test_open_ended_window_on_native_date(self, client_records, accessors) -> None:
        config = QueryConfiguration(dateRangeField="CreatedAt", startDate=datetime(2024, 1, 7))
        assert ids(apply_date_range(client_records, config, accessors)) == [6, 7, 8]

    def test_no_bounds_is_noop(self, client_records, accessors) -> None:
        config = QueryConfiguration(dateRangeField="renewal")
        assert len(apply_date_range(client_records, config, accessors)) == 8

    def test_timezone_aware_values_compared_as_utc(self, accessors) -> None:
        records = [
            ClientRecord(id=1, extraData={"renewal": "2024-01-05T10:00:00Z"}),
            ClientRecord(id=2, extraData={"renewal": "2024-01-06"}),
            ClientRecord(id=3, extraData={"renewal": "2024-01-31T23:30:00-05:00"}),
        ]
        config = QueryConfiguration(
            dateRangeField="renewal",
            startDate=datetime(2024, 1, 1),
            endDate=datetime(2024, 2, 1),
        )
        assert ids(apply_date_range(records, config, accessors)) == [1, 2]

    def test_timezone_aware_bounds(self, accessors) -> None:
        records = [
            ClientRecord(id=1, extraData={"renewal": "2024-01-05T10:00:00Z"}),
            ClientRecord(id=2, extraData={"renewal": "2024-01-06"}),
        ]
        config = QueryConfiguration(
            dateRangeField="renewal",
            startDate=datetime(2024, 1, 5, 12, tzinfo=timezone(timedelta(hours=5))),
        )
        assert ids(apply_date_range(records, config, accessors)) == [1, 2]

    def test_aware_dates_do_not_fail_the_query(self, engine) -> None:
        records = [
            ClientRecord(id=1, extraData={"renewal": "2024-01-05T10:00:00Z", "policy_amount": 10}),
            ClientRecord(id=2, extraData={"renewal": "2024-01-06", "policy_amount": 20}),
        ]
        config = QueryConfiguration(
            selectedFields=[POLICY],
            dateRangeField="renewal",
            startDate=datetime(2024, 1, 1),
            endDate=datetime(2024, 2, 1),
        )

        result = engine.execute(records, config)

        assert result.totalRecordsAnalyzed == 2
        assert result.series[0].values == [10.0, 20.0]


class TestOrdering:

    def test_descending_numeric_with_missing_last(self, client_records, accessors) -> None:
        ordered = order_records(client_records, "policy_amount", True, accessors)
        assert ids(ordered)[:6] == [8, 6, 4, 3, 2, 1]
        assert set(ids(ordered)[6:]) == {5, 7}

    def test_ascending_text_with_missing_first(self, client_records, accessors) -> None:
        ordered = order_records(client_records, "Name", False, accessors)
        assert ids(ordered) == [6, 1, 2, 3, 4, 5, 7, 8]

    def test_no_order_keeps_input(self, client_records, accessors) -> None:
        assert ids(order_records(client_records, None, True, accessors)) == list(range(1, 9))


# =============================================================================
# Grouped Mode
# =============================================================================


class TestGroupedMode:

    def test_count_partitions_every_record(self, engine, client_records) -> None:
        config = QueryConfiguration(selectedFields=[POLICY], groupByField="state")

        result = engine.execute(client_records, config)

        assert len(result.series) == 1
        series = result.series[0]
        assert series.type == SeriesType.BAR
        assert [p.label for p in series.points] == ["CA", "FL", MISSING_GROUP_KEY, "TX"]
        assert series.values == [3.0, 1.0, 1.0, 3.0]
        assert sum(series.values) == result.totalRecordsAnalyzed == 8
        assert series.metadata == {"groupBy": "state", "aggregation": "Count"}

    def test_sum_uses_numeric_values_only(self, engine, client_records) -> None:
        config = QueryConfiguration(
            selectedFields=[POLICY],
            groupByField="state",
            aggregation=AggregationFunction.SUM,
        )
        series = engine.execute(client_records, config).series[0]
        assert dict(zip([p.label for p in series.points], series.values)) == {
            "CA": 1000.0, "FL": 400.0, MISSING_GROUP_KEY: 0.0, "TX": 1000.0,
        }

    def test_field_tag_overrides_query_aggregation(self, engine, client_records) -> None:
        tagged = POLICY.model_copy(update={"aggregation": AggregationFunction.AVERAGE})
        config = QueryConfiguration(selectedFields=[tagged], groupByField="state")

        series = engine.execute(client_records, config).series[0]

        assert series.values[-1] == pytest.approx(500.0)
        assert series.values[0] == pytest.approx(1000.0 / 3)
        assert series.metadata["aggregation"] == "Average"

    def test_none_aggregation_counts_numeric_values(self, engine, client_records) -> None:
        config = QueryConfiguration(
            selectedFields=[POLICY],
            groupByField="state",
            aggregation=AggregationFunction.NONE,
        )
        series = engine.execute(client_records, config).series[0]
        assert series.values == [3.0, 1.0, 0.0, 2.0]
        assert series.metadata["aggregation"] == "None"

    def test_no_records_yields_no_series(self, engine) -> None:
        config = QueryConfiguration(selectedFields=[POLICY], groupByField="state")
        assert engine.execute([], config).series == []


# =============================================================================
# Individual Mode
# =============================================================================


class TestIndividualMode:

    def test_one_point_per_numeric_value(self, engine, client_records) -> None:
        result = engine.execute(client_records, QueryConfiguration(selectedFields=[POLICY]))

        assert len(result.series) == 1
        series = result.series[0]
        assert series.type == SeriesType.LINE
        assert series.name == "Policy amount"
        assert series.values == [100.0, 200.0, 300.0, 400.0, 600.0, 800.0]
        assert [p.label for p in series.points] == ["Ana", "Ben", "Cara", "Dan", "Client 6", "Hal"]
        assert series.points[0].timestamp == client_records[0].createdAt

    def test_order_and_limit(self, engine, client_records) -> None:
        config = QueryConfiguration(
            selectedFields=[POLICY],
            orderBy="policy_amount",
            orderDescending=True,
            limit=3,
        )
        assert engine.execute(client_records, config).series[0].values == [800.0, 600.0, 400.0]

    def test_limit_applies_before_skipping_non_numeric(self, engine, client_records) -> None:
        config = QueryConfiguration(selectedFields=[POLICY], orderBy="Name", limit=2)
        series = engine.execute(client_records, config).series[0]
        assert [p.label for p in series.points] == ["Client 6", "Ana"]

    def test_field_without_numbers_is_dropped(self, engine, client_records, caplog) -> None:
        config = QueryConfiguration(selectedFields=[FieldSelection(fieldName="Name")])
        with caplog.at_level("WARNING"):
            result = engine.execute(client_records, config)
        assert result.series == []
        assert "produced no numeric points" in caplog.text

    def test_standalone_aggregation_series(self, engine, client_records) -> None:
        tagged = POLICY.model_copy(update={"aggregation": AggregationFunction.SUM})
        config = QueryConfiguration(selectedFields=[POLICY, tagged])

        result = engine.execute(client_records, config)

        assert [s.name for s in result.series] == ["Policy amount", "Policy amount (Sum)"]
        aggregate_series = result.series[1]
        assert len(aggregate_series.points) == 1
        assert aggregate_series.points[0].label == "Sum"
        assert aggregate_series.points[0].value == 2400.0

    def test_none_aggregation_tag_adds_nothing(self, engine, client_records) -> None:
        tagged = POLICY.model_copy(update={"aggregation": AggregationFunction.NONE})
        result = engine.execute(client_records, QueryConfiguration(selectedFields=[tagged]))
        assert result.series == []


# =============================================================================
# Limits and Sampling
# =============================================================================


class TestLimits:

    def test_record_cap_truncates_prefix(self, custom_fields, client_records, small_settings) -> None:
        engine = QueryEngine(custom_fields=custom_fields, settings=small_settings)

        result = engine.execute(client_records, QueryConfiguration(selectedFields=[POLICY]))

        assert result.totalRecordsAnalyzed == 5
        assert result.metadata["truncated"] is True
        assert result.metadata["recordsBeforeTruncation"] == 8
        assert result.metadata["maxRecordsLimit"] == 5
        assert result.series[0].values == [100.0, 200.0, 300.0, 400.0]

    def test_under_cap_is_not_flagged(self, engine, client_records) -> None:
        result = engine.execute(client_records, QueryConfiguration(selectedFields=[POLICY]))
        assert "truncated" not in result.metadata
        assert result.metadata["sampled"] is False

    @pytest.mark.slow
    def test_long_series_is_sampled(self, many_records) -> None:
        settings = Settings(max_records=0, max_chart_points=100)
        config = QueryConfiguration(selectedFields=[FieldSelection(fieldName="score")])

        result = QueryEngine(settings=settings).execute(many_records, config)

        series = result.series[0]
        assert len(series.points) == 100
        assert series.metadata["originalCount"] == 3000
        assert series.points[0].label == "Client 0001"
        assert series.points[-1].label == "Client 3000"
        assert result.metadata["sampled"] is True

    def test_sampling_disabled(self, many_records) -> None:
        settings = Settings(max_records=0, max_chart_points=100, enable_smart_sampling=False)
        config = QueryConfiguration(selectedFields=[FieldSelection(fieldName="score")])

        result = QueryEngine(settings=settings).execute(many_records, config)

        assert len(result.series[0].points) == 3000
        assert result.metadata["sampled"] is False


# =============================================================================
# Progress, Errors and Description
# =============================================================================


class TestProgressAndErrors:

    def test_progress_milestones(self, custom_fields, client_records) -> None:
        calls: List[Tuple[int, str]] = []
        engine = QueryEngine(
            custom_fields=custom_fields,
            settings=Settings(max_records=0),
            progress_callback=lambda pct, msg: calls.append((pct, msg)),
        )

        engine.execute(client_records, QueryConfiguration(selectedFields=[POLICY]))

        percentages = [pct for pct, _ in calls]
        assert percentages[0] == 0
        assert calls[-1] == (100, "Query completed.")
        assert percentages == sorted(percentages)

    def test_unexpected_error_is_wrapped(self, engine, client_records, monkeypatch) -> None:
        calls: List[Tuple[int, str]] = []
        engine.progress_callback = lambda pct, msg: calls.append((pct, msg))

        def boom(*args, **kwargs):
            raise KeyError("accessor")

        monkeypatch.setattr("crm_analytics.services.query_engine.apply_filters", boom)

        with pytest.raises(QueryExecutionError, match="Error executing query") as exc_info:
            engine.execute(client_records, QueryConfiguration(selectedFields=[POLICY]))

        assert isinstance(exc_info.value.__cause__, KeyError)
        assert calls[-1] == (100, "Query failed.")

    def test_result_carries_run_details(self, engine, client_records) -> None:
        result = engine.execute(client_records, QueryConfiguration(selectedFields=[POLICY]))
        assert result.id
        assert result.executionTime >= 0
        assert result.insights == []
        assert result.queryDescription == "Analysis of Policy amount using Count"


class TestQueryDescription:

    def test_full_description(self) -> None:
        config = QueryConfiguration(
            selectedFields=[POLICY, FieldSelection(fieldName="age")],
            groupByField="state",
            filters=[FilterRule(fieldName="state", operator=FilterOperator.IS_NOT_NULL)],
            aggregation=AggregationFunction.SUM,
        )
        assert build_query_description(config) == (
            "Analysis of Policy amount, age grouped by state with 1 filter(s) using Sum"
        )

    def test_empty_description(self) -> None:
        config = QueryConfiguration(aggregation=AggregationFunction.NONE)
        assert build_query_description(config) == "Analysis of all fields"
