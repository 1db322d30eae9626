from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from dashcore.chart_helpers import color_at, slice_colors
from dashcore.coerce import as_number, ensure_list, is_missing, is_numeric_string, safe_str, safe_str_lower
from dashcore.envelope import NormalizedRecord, camel_key, collapse_keys, has_any, lookup
from dashcore.viewmodels import (
    CHART_KINDS,
    DEFAULT_CHART_KIND,
    ActivityItem,
    ActivityListViewModel,
    ChartListViewModel,
    ChartSeries,
    SectionKind,
    SectionViewModel,
    SeriesLine,
    StatsViewModel,
    TableRowsViewModel,
)


logger = logging.getLogger(__name__)

ACTIVITY_SOURCES = ("recentActivities", "activities", "items")
TABLE_SOURCES = ("rows", "items")


def _first_list(record: Mapping, names: Iterable[str]) -> List[Any]:
    for name in names:
        values = ensure_list(lookup(record, name))
        if values:
            return values
    return []


def _first_value(mapping: Mapping, names: Iterable[str]) -> Any:
    for name in names:
        value = lookup(mapping, name)
        if not is_missing(value):
            return value
    return None


def _is_stat_value(value: Any) -> bool:
    if isinstance(value, (list, tuple, dict)):
        return False
    if isinstance(value, str):
        return is_numeric_string(value)
    return True


def assemble_stats(
    record: NormalizedRecord, *, fields: Optional[Iterable[str]] = None, source: Optional[str] = None, **_: Any
) -> StatsViewModel:
    nested = lookup(record, source or "stats")
    stats = nested if isinstance(nested, Mapping) else record

    values: Dict[str, Any] = {}
    if fields is not None:
        for name in fields:
            values[camel_key(name)] = as_number(lookup(stats, name))
        return StatsViewModel(values=values)

    for key, value in stats.items():
        canonical = camel_key(key)
        if canonical in values or not _is_stat_value(value):
            continue
        values[canonical] = as_number(lookup(stats, canonical))
    return StatsViewModel(values=values)


def _series_color(dataset: Mapping, index: int, kind: str, label_count: int) -> Union[str, List[str]]:
    color = _first_value(dataset, ("color", "backgroundColor", "borderColor"))
    if isinstance(color, (list, tuple)):
        return [safe_str(c) for c in color]
    if isinstance(color, str) and color:
        return color
    if kind in ("pie", "doughnut"):
        return slice_colors(label_count)
    return color_at(index)


def assemble_chart(raw: Any) -> Optional[ChartSeries]:
    """Chart.js-style or canonical chart payload -> ChartSeries; ``None`` when nothing valid remains."""

    if not isinstance(raw, Mapping):
        return None
    if not has_any(raw, "labels") or not (has_any(raw, "series") or has_any(raw, "datasets")):
        return None

    kind = safe_str_lower(_first_value(raw, ("kind", "type")))
    if kind not in CHART_KINDS:
        kind = DEFAULT_CHART_KIND
    labels = [safe_str(label) for label in ensure_list(lookup(raw, "labels"))]
    datasets = ensure_list(_first_value(raw, ("series", "datasets")))

    series: List[SeriesLine] = []
    for index, dataset in enumerate(datasets):
        if not isinstance(dataset, Mapping):
            continue
        values = [as_number(v) for v in ensure_list(_first_value(dataset, ("values", "data")))]
        if len(values) != len(labels):
            logger.debug("dropping series %r: %d values for %d labels", lookup(dataset, "label"), len(values), len(labels))
            continue
        series.append(
            SeriesLine(
                label=safe_str(lookup(dataset, "label")),
                values=values,
                color=_series_color(dataset, index, kind, len(labels)),
            )
        )
    if not series:
        return None

    chart_id = lookup(raw, "id")
    return ChartSeries(
        kind=kind,
        labels=labels,
        series=series,
        title=safe_str(lookup(raw, "title")),
        id=safe_str(chart_id) if chart_id is not None else None,
    )


def assemble_chart_list(record: NormalizedRecord, *, source: Optional[str] = None, **_: Any) -> ChartListViewModel:
    raw_charts = ensure_list(lookup(record, source or "charts"))
    if not raw_charts and has_any(record, "labels"):
        raw_charts = [record]

    charts: List[ChartSeries] = []
    for raw in raw_charts:
        chart = assemble_chart(raw)
        if chart is not None:
            charts.append(chart)
    return ChartListViewModel(charts=charts, dropped=len(raw_charts) - len(charts))


def _activity(raw: Mapping) -> ActivityItem:
    activity_id = _first_value(raw, ("id", "activityId"))
    timestamp = _first_value(raw, ("timestamp", "createdAt", "date", "time"))
    return ActivityItem(
        id=safe_str(activity_id) if activity_id is not None else None,
        title=safe_str(_first_value(raw, ("title", "action", "name", "description"))),
        description=safe_str(_first_value(raw, ("description", "details", "message"))),
        kind=safe_str(_first_value(raw, ("type", "kind", "activityType"))),
        timestamp=safe_str(timestamp) if timestamp is not None else None,
    )


def assemble_activity_list(record: NormalizedRecord, *, source: Optional[str] = None, **_: Any) -> ActivityListViewModel:
    raw_items = _first_list(record, (source,) if source else ACTIVITY_SOURCES)
    return ActivityListViewModel(items=[_activity(item) for item in raw_items if isinstance(item, Mapping)])


def assemble_table_rows(record: NormalizedRecord, *, source: Optional[str] = None, **_: Any) -> TableRowsViewModel:
    raw_rows = _first_list(record, (source,) if source else TABLE_SOURCES)
    rows = [collapse_keys(row) for row in raw_rows if isinstance(row, Mapping)]
    total = int(as_number(lookup(record, "totalCount")))
    return TableRowsViewModel(rows=rows, total_count=total or len(rows))


ASSEMBLERS: Dict[SectionKind, Callable[..., SectionViewModel]] = {
    SectionKind.STATS: assemble_stats,
    SectionKind.CHART_LIST: assemble_chart_list,
    SectionKind.ACTIVITY_LIST: assemble_activity_list,
    SectionKind.TABLE_ROWS: assemble_table_rows,
}


def assemble(record: NormalizedRecord, section_kind: Union[SectionKind, str], **options: Any) -> SectionViewModel:
    """Normalized record -> typed view-model for one section kind.

    List fields are always lists and numeric fields are always finite numbers.
    """

    kind = SectionKind(section_kind)
    if not isinstance(record, Mapping):
        record = {}
    return ASSEMBLERS[kind](record, **options)
