from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from dashcore.coerce import Number


class SectionKind(str, Enum):
    STATS = "stats"
    CHART_LIST = "chartList"
    ACTIVITY_LIST = "activityList"
    TABLE_ROWS = "tableRows"


CHART_KINDS = ("bar", "line", "pie", "doughnut")
DEFAULT_CHART_KIND = "bar"


@dataclass(frozen=True)
class SeriesLine:
    label: str
    values: List[Number]
    color: Union[str, List[str], None] = None


@dataclass(frozen=True)
class ChartSeries:
    kind: str = DEFAULT_CHART_KIND
    labels: List[str] = field(default_factory=list)
    series: List[SeriesLine] = field(default_factory=list)
    title: str = ""
    id: Optional[str] = None

    def is_valid(self) -> bool:
        return self.kind in CHART_KINDS and all(len(s.values) == len(self.labels) for s in self.series)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StatsViewModel:
    values: Dict[str, Number] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Number:
        return self.values[key]

    def get(self, key: str, default: Number = 0) -> Number:
        return self.values.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.values)


@dataclass(frozen=True)
class ChartListViewModel:
    charts: List[ChartSeries] = field(default_factory=list)
    dropped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"charts": [c.to_dict() for c in self.charts], "dropped": self.dropped}


@dataclass(frozen=True)
class ActivityItem:
    id: Optional[str]
    title: str
    description: str = ""
    kind: str = ""
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class ActivityListViewModel:
    items: List[ActivityItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"items": [asdict(item) for item in self.items]}


@dataclass(frozen=True)
class TableRowsViewModel:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    total_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"rows": [dict(r) for r in self.rows], "total_count": self.total_count}


SectionViewModel = Union[StatsViewModel, ChartListViewModel, ActivityListViewModel, TableRowsViewModel]
