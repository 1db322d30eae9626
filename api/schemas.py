from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


SectionKindName = Literal["stats", "chartList", "activityList", "tableRows"]


class SectionSource(BaseModel):
    id: str
    path: str
    kind: SectionKindName
    policy: str = "summary"
    source: Optional[str] = None
    fields: Optional[List[str]] = None


class FailureStateModel(BaseModel):
    attempts: int = 0
    last_error: Optional[str] = None
    last_message: Optional[str] = None
    retry_scheduled_at: Optional[float] = None
    status: str = "idle"
    faulted: bool = False
    dismissed: bool = False


class PlaceholderModel(BaseModel):
    kind: str
    message: str = ""
    section_id: Optional[str] = None


class SectionSnapshotModel(BaseModel):
    id: str
    kind: Optional[str] = None
    status: str
    view_model: Optional[Dict[str, Any]] = None
    failure: FailureStateModel = Field(default_factory=FailureStateModel)
    placeholder: Optional[PlaceholderModel] = None
    errors: List[str] = Field(default_factory=list)
    show_error: bool = False
    updated_at: Optional[float] = None


class DashboardSnapshotModel(BaseModel):
    sections: List[SectionSnapshotModel] = Field(default_factory=list)
    chart_engine: Literal["idle", "ready", "unavailable"] = "idle"


class RenderedChartModel(BaseModel):
    kind: str
    spec: Optional[Dict[str, Any]] = None
    title: str = ""
    id: Optional[str] = None
    placeholder: Optional[PlaceholderModel] = None


class NormalizeRequest(BaseModel):
    payload: Any = None
    section_kind: Optional[SectionKindName] = None
