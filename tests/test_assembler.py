from __future__ import annotations

import pytest

from dashcore.assembler import assemble, assemble_chart
from dashcore.chart_helpers import PALETTE
from dashcore.envelope import normalize
from dashcore.viewmodels import (
    ActivityListViewModel,
    ChartListViewModel,
    ChartSeries,
    StatsViewModel,
    TableRowsViewModel,
)


def test_stats_from_success_envelope():
    view_model = assemble(normalize({"success": True, "data": {"totalStudents": 42}}), "stats")
    assert isinstance(view_model, StatsViewModel)
    assert view_model.to_dict() == {"totalStudents": 42}
    assert view_model["totalStudents"] == 42


def test_stats_with_declared_fields_fill_missing_and_bad_values():
    record = {"TotalStudents": "12", "totalTeachers": "n/a", "totalClasses": float("nan")}
    view_model = assemble(record, "stats", fields=["totalStudents", "totalTeachers", "totalClasses", "totalSubjects"])
    assert view_model.to_dict() == {"totalStudents": 12, "totalTeachers": 0, "totalClasses": 0, "totalSubjects": 0}


def test_stats_read_nested_block_and_skip_non_scalars():
    record = {"stats": {"TotalSchools": 3, "AverageScore": "71.5", "label": "x"}, "charts": []}
    assert assemble(record, "stats").to_dict() == {"totalSchools": 3, "averageScore": 71.5}


def test_chart_payload_becomes_chart_series():
    chart = assemble_chart({"type": "Bar", "labels": ["Jan", "Feb"], "datasets": [{"label": "Rev", "data": [10, 20]}]})
    assert isinstance(chart, ChartSeries)
    assert chart.kind == "bar"
    assert chart.labels == ["Jan", "Feb"]
    assert [(line.label, line.values) for line in chart.series] == [("Rev", [10, 20])]
    assert chart.series[0].color == PALETTE[0]


def test_chart_unknown_kind_defaults_to_bar():
    chart = assemble_chart({"kind": "radar", "labels": ["a"], "series": [{"label": "s", "values": [1]}]})
    assert chart.kind == "bar"


def test_chart_drops_series_with_length_mismatch():
    chart = assemble_chart(
        {
            "kind": "line",
            "labels": ["a", "b", "c"],
            "series": [{"label": "ok", "values": [1, 2, 3]}, {"label": "short", "values": [1, 2]}],
        }
    )
    assert [line.label for line in chart.series] == ["ok"]
    assert all(len(line.values) == len(chart.labels) for line in chart.series)


def test_chart_with_no_valid_series_is_dropped_from_list():
    record = {
        "charts": [
            {"labels": ["a", "b"], "datasets": [{"label": "bad", "data": [1]}]},
            {"type": "pie", "labels": ["x", "y"], "datasets": [{"label": "share", "data": ["1", None]}]},
            "not a chart",
        ]
    }
    view_model = assemble(record, "chartList")
    assert isinstance(view_model, ChartListViewModel)
    assert len(view_model.charts) == 1
    assert view_model.dropped == 2
    pie = view_model.charts[0]
    assert pie.kind == "pie"
    assert pie.series[0].values == [1, 0]
    assert pie.series[0].color == PALETTE[:2]
    assert pie.is_valid()


def test_single_chart_record_is_treated_as_list():
    record = normalize({"success": True, "data": {"Labels": ["a"], "Datasets": [{"Label": "s", "Data": [5]}]}})
    view_model = assemble(record, "chartList")
    assert [c.labels for c in view_model.charts] == [["a"]]


def test_activity_list_normalizes_items():
    record = {
        "RecentActivities": [
            {"Id": 7, "Action": "Enrolled", "Details": "New student", "Type": "student", "CreatedAt": "2024-05-01T10:00:00"},
            None,
        ]
    }
    view_model = assemble(record, "activityList")
    assert isinstance(view_model, ActivityListViewModel)
    item = view_model.items[0]
    assert len(view_model.items) == 1
    assert (item.id, item.title, item.description, item.kind) == ("7", "Enrolled", "New student", "student")
    assert item.timestamp == "2024-05-01T10:00:00"


def test_missing_list_fields_are_empty():
    assert assemble({}, "activityList").items == []
    assert assemble({"recentActivities": "oops"}, "activityList").items == []
    assert assemble({}, "chartList").charts == []
    assert assemble(None, "tableRows").rows == []


def test_table_rows_from_source_with_total_count():
    record = {"revenueByTenant": [{"TenantName": "North", "Revenue": "10.5"}], "totalCount": 12}
    view_model = assemble(record, "tableRows", source="revenueByTenant")
    assert isinstance(view_model, TableRowsViewModel)
    assert view_model.rows == [{"tenantName": "North", "revenue": 10.5}]
    assert view_model.total_count == 12


def test_table_total_count_defaults_to_row_count():
    assert assemble({"rows": [{"a": 1}, {"a": 2}]}, "tableRows").total_count == 2


def test_unknown_section_kind_is_rejected():
    with pytest.raises(ValueError):
        assemble({}, "pieChart")
