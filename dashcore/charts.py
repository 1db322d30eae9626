"""Lazy visualization loader.

The chart engine (Altair + ``dashcore.chart_config``) is imported on first use, off the event loop,
and the resulting handle is shared by every section for the rest of the process.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from dashcore.compartment import Placeholder
from dashcore.errors import EngineUnavailable
from dashcore.viewmodels import CHART_KINDS, DEFAULT_CHART_KIND, ChartSeries


logger = logging.getLogger(__name__)

ENGINE_MODULE = "altair"
CONFIG_MODULE = "dashcore.chart_config"
ENGINE_FAILED_MESSAGE = "Chart failed to load"

EntryPoint = Callable[[Mapping[str, Any], Optional[Mapping[str, Any]]], Dict[str, Any]]


@dataclass(frozen=True)
class RendererHandle:
    engine: Any
    config: Any
    entry_points: Mapping[str, EntryPoint]
    options: Mapping[str, Any] = field(default_factory=dict)

    def entry_point(self, kind: str) -> EntryPoint:
        return self.entry_points.get(kind) or self.entry_points[DEFAULT_CHART_KIND]


@dataclass(frozen=True)
class RenderedChart:
    kind: str
    spec: Dict[str, Any]
    title: str = ""
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "spec": self.spec, "title": self.title, "id": self.id}


RenderedOutput = Union[RenderedChart, Placeholder]


async def import_renderer(engine_module: str = ENGINE_MODULE, config_module: str = CONFIG_MODULE) -> RendererHandle:
    engine = await asyncio.to_thread(importlib.import_module, engine_module)
    config = await asyncio.to_thread(importlib.import_module, config_module)
    declared = getattr(config, "ENTRY_POINTS", None) or {kind: getattr(config, kind, None) for kind in CHART_KINDS}
    entry_points = {kind: fn for kind, fn in declared.items() if kind in CHART_KINDS and callable(fn)}
    if DEFAULT_CHART_KIND not in entry_points:
        raise ImportError(f"{config_module} has no {DEFAULT_CHART_KIND!r} entry point")
    return RendererHandle(
        engine=engine,
        config=config,
        entry_points=entry_points,
        options=dict(getattr(config, "CHART_OPTIONS", {}) or {}),
    )


def _renderable(series: Any) -> bool:
    if not isinstance(series, ChartSeries) or not series.series:
        return False
    return all(len(line.values) == len(series.labels) for line in series.series)


class ChartLoader:
    """Acquire-once, reuse-forever holder for the chart renderer.

    Concurrent callers before resolution share one in-flight acquisition. A failed acquisition is
    cached as ``EngineUnavailable`` until ``reset`` is called (manual retry only).
    """

    def __init__(self, acquire: Callable[[], Awaitable[RendererHandle]] = import_renderer):
        self._acquire = acquire
        self._handle: Optional[RendererHandle] = None
        self._pending: Optional[asyncio.Future] = None
        self._error: Optional[EngineUnavailable] = None
        self.acquisitions = 0

    @property
    def ready(self) -> bool:
        return self._handle is not None

    @property
    def error(self) -> Optional[EngineUnavailable]:
        return self._error

    async def get_chart_renderer(self) -> RendererHandle:
        if self._handle is not None:
            return self._handle
        if self._error is not None:
            raise self._error
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())
        # callers may be cancelled; the shared acquisition is not
        return await asyncio.shield(self._pending)

    def reset(self) -> None:
        if self._handle is None and self._pending is None:
            self._error = None

    async def _load(self) -> RendererHandle:
        self.acquisitions += 1
        logger.info("loading chart engine")
        try:
            handle = await self._acquire()
        except Exception as exc:
            error = EngineUnavailable(ENGINE_FAILED_MESSAGE, messages=[ENGINE_FAILED_MESSAGE, str(exc)])
            error.__cause__ = exc
            self._error = error
            self._pending = None
            logger.error("chart engine unavailable: %s", exc)
            raise error
        self._handle = handle
        self._pending = None
        logger.info("chart engine ready (%s)", ", ".join(sorted(handle.entry_points)))
        return handle

    def render_chart(self, series: Optional[ChartSeries]) -> RenderedOutput:
        """Render with the already-loaded engine; placeholders while loading or after a failure. Never raises."""

        if not _renderable(series):
            return Placeholder(kind="empty")
        if self._error is not None:
            return Placeholder(kind="unavailable", message=ENGINE_FAILED_MESSAGE)
        if self._handle is None:
            return Placeholder(kind="loading", message="Loading chart…")

        kind = series.kind if series.kind in CHART_KINDS else DEFAULT_CHART_KIND
        data = {"labels": list(series.labels), "series": list(series.series)}
        config = {**self._handle.options, "title": series.title}
        try:
            spec = self._handle.entry_point(kind)(data, config)
        except Exception:
            logger.exception("rendering %s chart %r failed", kind, series.title or series.id)
            return Placeholder(kind="empty")
        return RenderedChart(kind=kind, spec=spec, title=series.title, id=series.id)

    async def render_chart_async(self, series: Optional[ChartSeries]) -> RenderedOutput:
        if not _renderable(series):
            return Placeholder(kind="empty")
        try:
            await self.get_chart_renderer()
        except EngineUnavailable:
            return Placeholder(kind="unavailable", message=ENGINE_FAILED_MESSAGE)
        return self.render_chart(series)


@lru_cache(maxsize=1)
def get_chart_loader() -> ChartLoader:
    """Process-wide loader shared by all sections."""
    return ChartLoader()


async def get_chart_renderer() -> RendererHandle:
    return await get_chart_loader().get_chart_renderer()


def render_chart(series: Optional[ChartSeries]) -> RenderedOutput:
    return get_chart_loader().render_chart(series)
