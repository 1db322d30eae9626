"""Chart helpers: pure data utilities (no chart engine dependency).

Import from here to avoid loading the engine until a chart is actually rendered.
"""

from __future__ import annotations

from typing import Any, Dict, List

from dashcore.coerce import format_decimal


CHART_COLORS: Dict[str, str] = {
    "primary": "#6366f1",
    "secondary": "#8b5cf6",
    "success": "#10b981",
    "warning": "#f59e0b",
    "danger": "#ef4444",
    "info": "#3b82f6",
    "purple": "#a855f7",
    "pink": "#ec4899",
    "cyan": "#06b6d4",
    "teal": "#14b8a6",
    "yellow": "#eab308",
    "orange": "#f97316",
}
PALETTE: List[str] = list(CHART_COLORS.values())

DEFAULT_CHART_OPTIONS: Dict[str, Any] = {
    "height": 350,
    "legend_orient": "top",
    "value_format": ",.2f",
    "title_font_size": 16,
    "bar_corner_radius": 6,
    "doughnut_inner_radius": 60,
}


def color_at(index: int) -> str:
    return PALETTE[index % len(PALETTE)]


def slice_colors(count: int) -> List[str]:
    return [color_at(i) for i in range(count)]


def chart_value_format(value: Any) -> str:
    return format_decimal(value, 2)
