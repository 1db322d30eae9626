"""Chart engine configuration: imports Altair and exposes one entry point per chart kind.

Import this only when rendering charts (the lazy loader in ``dashcore.charts`` does).
For data helpers, import from ``dashcore.chart_helpers`` instead.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import altair as alt
import pandas as pd

from dashcore.chart_helpers import DEFAULT_CHART_OPTIONS, color_at, slice_colors

alt.data_transformers.disable_max_rows()

CHART_OPTIONS = DEFAULT_CHART_OPTIONS


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _series_names(series: Sequence[Any]) -> List[str]:
    return [_field(s, "label") or f"Series {i + 1}" for i, s in enumerate(series)]


def _frame(data: Mapping[str, Any]) -> pd.DataFrame:
    labels = list(data.get("labels") or [])
    series = list(data.get("series") or [])
    rows = []
    for name, item in zip(_series_names(series), series):
        for order, (label, value) in enumerate(zip(labels, _field(item, "values") or [])):
            rows.append({"label": label, "order": order, "series": name, "value": value})
    return pd.DataFrame(rows, columns=["label", "order", "series", "value"])


def _options(config: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return {**CHART_OPTIONS, **(config or {})}


def _series_scale(series: Sequence[Any]) -> alt.Scale:
    names = _series_names(series)
    colors = []
    for i, item in enumerate(series):
        color = _field(item, "color")
        colors.append(color if isinstance(color, str) and color else color_at(i))
    return alt.Scale(domain=names, range=colors)


def _finish(chart: alt.Chart, options: Mapping[str, Any]) -> Dict[str, Any]:
    chart = chart.properties(height=options["height"])
    if options.get("title"):
        chart = chart.properties(title=options["title"]).configure_title(fontSize=options["title_font_size"])
    return to_vega_spec(chart)


def _tooltip(options: Mapping[str, Any]) -> list:
    return ["label:N", "series:N", alt.Tooltip("value:Q", format=options["value_format"])]


def bar(data: Mapping[str, Any], config: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    options = _options(config)
    labels = list(data.get("labels") or [])
    radius = options["bar_corner_radius"]
    chart = (
        alt.Chart(_frame(data))
        .mark_bar(cornerRadiusTopLeft=radius, cornerRadiusTopRight=radius)
        .encode(
            x=alt.X("label:N", sort=labels, title=None, axis=alt.Axis(grid=False, labelAngle=0)),
            xOffset="series:N",
            y=alt.Y("value:Q", title=None, axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("series:N", scale=_series_scale(data.get("series") or []), legend=alt.Legend(orient=options["legend_orient"], title=None)),
            tooltip=_tooltip(options),
        )
    )
    return _finish(chart, options)


def line(data: Mapping[str, Any], config: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    options = _options(config)
    labels = list(data.get("labels") or [])
    chart = (
        alt.Chart(_frame(data))
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("label:N", sort=labels, title=None, axis=alt.Axis(grid=False, labelAngle=0)),
            y=alt.Y("value:Q", title=None, axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("series:N", scale=_series_scale(data.get("series") or []), legend=alt.Legend(orient=options["legend_orient"], title=None)),
            tooltip=_tooltip(options),
        )
    )
    return _finish(chart, options)


def _arc(data: Mapping[str, Any], options: Mapping[str, Any], inner_radius: int) -> Dict[str, Any]:
    labels = list(data.get("labels") or [])
    series = list(data.get("series") or [])[:1]
    colors = _field(series[0], "color") if series else None
    if not isinstance(colors, list) or len(colors) != len(labels):
        colors = slice_colors(len(labels))
    chart = (
        alt.Chart(_frame({"labels": labels, "series": series}))
        .mark_arc(innerRadius=inner_radius)
        .encode(
            theta=alt.Theta("value:Q", stack=True),
            order=alt.Order("order:Q"),
            color=alt.Color("label:N", sort=labels, scale=alt.Scale(domain=labels, range=colors), legend=alt.Legend(orient=options["legend_orient"], title=None)),
            tooltip=_tooltip(options),
        )
    )
    return _finish(chart, options)


def pie(data: Mapping[str, Any], config: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return _arc(data, _options(config), 0)


def doughnut(data: Mapping[str, Any], config: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    options = _options(config)
    return _arc(data, options, options["doughnut_inner_radius"])


ENTRY_POINTS = {"bar": bar, "line": line, "pie": pie, "doughnut": doughnut}
