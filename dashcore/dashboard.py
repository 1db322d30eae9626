from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from dashcore.charts import ChartLoader, RenderedOutput, get_chart_loader
from dashcore.policy import SUMMARY, RefreshPolicy
from dashcore.scheduler import Scheduler
from dashcore.section import AssembleFn, FetchFn, Section, SectionSnapshot
from dashcore.viewmodels import ChartListViewModel, SectionKind


logger = logging.getLogger(__name__)


class Dashboard:
    """Orchestrates the sections of one dashboard page.

    Must be used from inside a running event loop: registering a section fetches it immediately.
    """

    def __init__(self, *, scheduler: Optional[Scheduler] = None, chart_loader: Optional[ChartLoader] = None):
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.chart_loader = chart_loader if chart_loader is not None else get_chart_loader()
        self.sections: Dict[str, Section] = {}

    def register_section(
        self,
        section_id: str,
        fetch_fn: FetchFn,
        assemble_fn: Union[AssembleFn, SectionKind, str],
        policy: RefreshPolicy = SUMMARY,
        **assemble_options: Any,
    ) -> Callable[[], None]:
        existing = self.sections.get(section_id)
        if existing is not None:
            existing.unmount()

        section = Section(section_id, fetch_fn, assemble_fn, policy, **assemble_options)
        self.sections[section_id] = section
        section.mount(self.scheduler)
        logger.debug("registered section %s", section_id)

        def unmount() -> None:
            section.unmount()
            if self.sections.get(section_id) is section:
                del self.sections[section_id]

        return unmount

    def section(self, section_id: str) -> Section:
        try:
            return self.sections[section_id]
        except KeyError:
            raise KeyError(f"Unknown section {section_id!r}") from None

    def snapshot(self, section_id: str) -> SectionSnapshot:
        return self.section(section_id).snapshot()

    def snapshots(self) -> Dict[str, SectionSnapshot]:
        return {section_id: section.snapshot() for section_id, section in self.sections.items()}

    def retry(self, section_id: str) -> None:
        logger.info("manual retry for section %s", section_id)
        self.section(section_id).retry()

    def refresh(self, section_id: str):
        return self.section(section_id).refresh()

    def dismiss_error(self, section_id: str) -> None:
        self.section(section_id).dismiss_error()

    async def render_charts(self, section_id: str) -> List[RenderedOutput]:
        """Render every chart of a chart section, loading the chart engine on first use."""

        view_model = self.snapshot(section_id).view_model
        if not isinstance(view_model, ChartListViewModel):
            return []
        return [await self.chart_loader.render_chart_async(chart) for chart in view_model.charts]

    def retry_chart_engine(self) -> None:
        self.chart_loader.reset()

    def close(self) -> None:
        for section in list(self.sections.values()):
            section.unmount()
        self.sections.clear()
        self.scheduler.close()

    async def __aenter__(self) -> "Dashboard":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()
