from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import DashboardSnapshotModel, NormalizeRequest, RenderedChartModel, SectionSnapshotModel, SectionSource
from api.settings import Settings, get_settings
from api.upstream import FetchFn, create_client, make_fetch
from dashcore.assembler import assemble
from dashcore.charts import ChartLoader, RenderedChart, get_chart_loader
from dashcore.dashboard import Dashboard
from dashcore.envelope import Failed, Malformed, normalize_result
from dashcore.policy import RefreshPolicy, normalize_policy


logger = logging.getLogger(__name__)


def policy_for(source: SectionSource, settings: Settings) -> RefreshPolicy:
    raw: Dict[str, Any] = {"preset": source.policy}
    if settings.default_max_retries is not None:
        raw["max_retries"] = settings.default_max_retries
    if settings.default_backoff:
        raw["backoff"] = settings.default_backoff
    return normalize_policy(raw)


def build_dashboard(
    sections: List[SectionSource],
    fetchers: Dict[str, FetchFn],
    settings: Settings,
    *,
    chart_loader: Optional[ChartLoader] = None,
) -> Dashboard:
    dashboard = Dashboard(chart_loader=chart_loader)
    for source in sections:
        options: Dict[str, Any] = {}
        if source.fields:
            options["fields"] = source.fields
        if source.source:
            options["source"] = source.source
        dashboard.register_section(source.id, fetchers[source.id], source.kind, policy_for(source, settings), **options)
    return dashboard


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    sections: List[SectionSource] = getattr(app.state, "sections", None) or settings.sections
    fetchers: Dict[str, FetchFn] = dict(getattr(app.state, "fetchers", None) or {})

    client = None
    if any(source.id not in fetchers for source in sections):
        client = create_client(settings.upstream_base_url, timeout=settings.request_timeout, token=settings.upstream_token)
        for source in sections:
            fetchers.setdefault(source.id, make_fetch(client, source.path))

    chart_loader = getattr(app.state, "chart_loader", None) or get_chart_loader()
    app.state.dashboard = build_dashboard(sections, fetchers, settings, chart_loader=chart_loader)
    logger.info("dashboard mounted with %d sections", len(sections))
    try:
        yield
    finally:
        app.state.dashboard.close()
        if client is not None:
            await client.aclose()


app = FastAPI(title="Dashboard Aggregation API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _dashboard(request: Request) -> Dashboard:
    return request.app.state.dashboard


def _engine_state(loader: ChartLoader) -> str:
    if loader.ready:
        return "ready"
    return "unavailable" if loader.error is not None else "idle"


@app.get("/health")
async def health(request: Request):
    dashboard = _dashboard(request)
    return _json({"status": "ok", "sections": len(dashboard.sections), "polling": dashboard.scheduler.active_sections()})


@app.get("/dashboard")
async def dashboard_snapshot(request: Request):
    try:
        dashboard = _dashboard(request)
        model = DashboardSnapshotModel(
            sections=[SectionSnapshotModel(**snap.to_dict()) for snap in dashboard.snapshots().values()],
            chart_engine=_engine_state(dashboard.chart_loader),
        )
        return _json(model.model_dump())
    except Exception as exc:
        logger.exception("dashboard snapshot failed")
        return _error(exc)


@app.get("/sections/{section_id}")
async def section_snapshot(section_id: str, request: Request):
    try:
        return _json(_dashboard(request).snapshot(section_id).to_dict())
    except KeyError as exc:
        return _error(exc, 404)
    except Exception as exc:
        logger.exception("section %s snapshot failed", section_id)
        return _error(exc)


@app.post("/sections/{section_id}/retry")
async def retry_section(section_id: str, request: Request):
    try:
        dashboard = _dashboard(request)
        dashboard.retry(section_id)
        return _json(dashboard.snapshot(section_id).to_dict())
    except KeyError as exc:
        return _error(exc, 404)
    except Exception as exc:
        logger.exception("retry of section %s failed", section_id)
        return _error(exc)


@app.post("/sections/{section_id}/refresh")
async def refresh_section(section_id: str, request: Request):
    try:
        dashboard = _dashboard(request)
        await dashboard.refresh(section_id)
        return _json(dashboard.snapshot(section_id).to_dict())
    except KeyError as exc:
        return _error(exc, 404)
    except Exception as exc:
        logger.exception("refresh of section %s failed", section_id)
        return _error(exc)


@app.post("/sections/{section_id}/dismiss")
async def dismiss_section_error(section_id: str, request: Request):
    try:
        dashboard = _dashboard(request)
        dashboard.dismiss_error(section_id)
        return _json(dashboard.snapshot(section_id).to_dict())
    except KeyError as exc:
        return _error(exc, 404)
    except Exception as exc:
        logger.exception("dismissing the error of section %s failed", section_id)
        return _error(exc)


@app.get("/sections/{section_id}/charts")
async def section_charts(section_id: str, request: Request):
    try:
        rendered = await _dashboard(request).render_charts(section_id)
    except KeyError as exc:
        return _error(exc, 404)
    except Exception as exc:
        logger.exception("rendering charts for section %s failed", section_id)
        return _error(exc)

    charts = []
    for item in rendered:
        if isinstance(item, RenderedChart):
            charts.append(RenderedChartModel(**item.to_dict()).model_dump())
        else:
            charts.append(RenderedChartModel(kind=item.kind, placeholder=item.to_dict()).model_dump())
    return _json({"charts": charts})


@app.post("/charts/engine/retry")
async def retry_chart_engine(request: Request):
    try:
        dashboard = _dashboard(request)
        dashboard.retry_chart_engine()
        return _json({"chart_engine": _engine_state(dashboard.chart_loader)})
    except Exception as exc:
        logger.exception("chart engine retry failed")
        return _error(exc)


@app.post("/normalize")
async def normalize_payload(body: NormalizeRequest):
    try:
        result = normalize_result(body.payload)
        outcome = "failed" if isinstance(result, Failed) else "malformed" if isinstance(result, Malformed) else "ok"
        payload: Dict[str, Any] = {"result": outcome, "record": result.record}
        if body.section_kind:
            payload["view_model"] = assemble(result.record, body.section_kind).to_dict()
        return _json(payload)
    except Exception as exc:
        logger.exception("normalize failed")
        return _error(exc)
