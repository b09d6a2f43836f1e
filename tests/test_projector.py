import pytest

from realize.analyzer.projector import (
    build_columns,
    classify_cpa,
    compute_ctr,
    compute_totals,
    metric_value,
    project_table,
)
from realize.analyzer.reconciler import MetricResolution, ResolvedMetric
from realize.core.breakdowns import Breakdown
from realize.models.report_models import CampaignRow, DateRow, DimensionRow, ItemRow


def _resolution():
    return MetricResolution(
        rule_name="Purchase",
        conversion=ResolvedMetric(metric_id="conv", caption="Purchase: Conversions (Clicks)", source="dynamic"),
        cpa=ResolvedMetric(metric_id="cpa_x", caption="Purchase: CPA (Clicks)", source="dynamic"),
    )


# ── Columns ──


def test_item_columns_with_all_options():
    columns = build_columns(
        Breakdown.ITEM,
        include_clicks=True,
        include_ctr=True,
        include_url=True,
        include_thumbnail=True,
        conversion_caption="Conv",
        cpa_caption="CPA",
    )
    assert [c.key for c in columns] == [
        "item", "item_name", "spent", "clicks", "ctr", "url", "thumbnail_url", "conversions", "cpa",
    ]


def test_campaign_columns_ignore_url_options():
    columns = build_columns(Breakdown.CAMPAIGN, include_clicks=True, include_url=True)
    assert [c.key for c in columns] == ["campaign", "campaign_name", "spent", "clicks"]


def test_date_columns():
    columns = build_columns(Breakdown.WEEK, include_ctr=True)
    assert [c.key for c in columns] == ["date", "spent", "ctr"]


def test_dimension_columns_use_stripped_breakdown_name():
    columns = build_columns(Breakdown.COUNTRY, include_clicks=True, include_ctr=True)
    assert [c.key for c in columns] == ["country", "spent"]
    assert columns[0].header == "Country"


# ── Values ──


def test_metric_value_prefers_dynamic_metrics():
    row = CampaignRow(spent=1.0, dynamic_metrics={"clicks": 7}, clicks=3)
    assert metric_value(row, "clicks") == 7


def test_metric_value_falls_back_to_row_field():
    row = CampaignRow(spent=1.0, clicks=3)
    assert metric_value(row, "clicks") == 3


def test_metric_value_missing_is_none_not_zero():
    row = CampaignRow(spent=1.0)
    assert metric_value(row, "clicks") is None
    assert metric_value(row, None) is None


def test_metric_value_parses_formatted_strings():
    row = CampaignRow(spent=1.0, dynamic_metrics={"cpa_x": "$1,234.50", "bad": "n/a"})
    assert metric_value(row, "cpa_x") == pytest.approx(1234.5)
    assert metric_value(row, "bad") is None


@pytest.mark.parametrize(
    "clicks, impressions, expected",
    [
        (5, 100, 0.05),
        (5, 0, None),
        (None, 100, None),
        (5, None, None),
    ],
)
def test_ctr(clicks, impressions, expected):
    assert compute_ctr(clicks, impressions) == expected


@pytest.mark.parametrize(
    "cpa, conversions, goal, expected",
    [
        (40, 2, 50, "good"),
        (80, 2, 50, "bad"),
        (60, 2, 50, None),
        (75, 2, 50, None),
        (40, 0, 50, None),
        (40, None, 50, None),
        (40, 2, None, None),
        (None, 2, 50, None),
    ],
)
def test_classify_cpa(cpa, conversions, goal, expected):
    assert classify_cpa(cpa, conversions, goal) == expected


# ── Totals ──


def test_totals_count_active_rows_for_entity_breakdowns():
    rows = [
        CampaignRow(spent=10.0, dynamic_metrics={"conv": 2}),
        CampaignRow(spent=0.0, dynamic_metrics={"conv": "x"}),
        CampaignRow(spent=5.5),
    ]
    totals = compute_totals(rows, Breakdown.CAMPAIGN, "conv")
    assert totals.spent == pytest.approx(15.5)
    assert totals.conversions == 2
    assert totals.active_count == 2


def test_totals_skip_active_count_for_dates():
    totals = compute_totals([DateRow(spent=3.0)], Breakdown.DAY)
    assert totals.active_count is None
    assert totals.conversions is None


def test_totals_count_active_sites():
    rows = [DimensionRow(spent=1.0, site="a.com"), DimensionRow(spent=0.0, site="b.com")]
    assert compute_totals(rows, Breakdown.SITE).active_count == 1


# ── Table ──


def test_project_table_rows_and_flags():
    rows = [
        ItemRow(
            spent=100.0,
            item=11,
            item_name="Ad A",
            clicks=10,
            impressions=1000,
            dynamic_metrics={"conv": 4, "cpa_x": 25.0},
        ),
        ItemRow(spent=50.0, item=12, item_name="Ad B", dynamic_metrics={"conv": 1, "cpa_x": 50.0}),
    ]
    table = project_table(
        rows, Breakdown.ITEM, _resolution(), cpa_goal=30, include_clicks=True, include_ctr=True
    )

    assert table.column_keys == ["item", "item_name", "spent", "clicks", "ctr", "conversions", "cpa"]
    first, second = table.rows
    assert first.values["item"] == 11
    assert first.values["ctr"] == pytest.approx(0.01)
    assert first.values["conversions"] == 4
    assert first.cpa_flag == "good"
    assert second.values["clicks"] is None
    assert second.values["ctr"] is None
    assert second.cpa_flag == "bad"
    assert table.totals.spent == 150.0
    assert table.totals.conversions == 5
    assert table.totals.active_count == 2
    assert table.conversion_caption == "Purchase: Conversions (Clicks)"


def test_project_table_date_rows_drop_time_part():
    table = project_table([DateRow(spent=1.0, date="2024-05-01 00:00:00.0")], Breakdown.DAY)
    assert table.rows[0].values["date"] == "2024-05-01"
    assert table.rows[0].cpa_flag is None


def test_project_table_dimension_value():
    table = project_table([DimensionRow(spent=2.0, platform="Desktop")], Breakdown.PLATFORM)
    assert table.rows[0].values == {"platform": "Desktop", "spent": 2.0}
