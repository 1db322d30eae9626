from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from dashcore.assembler import assemble
from dashcore.coerce import ensure_list
from dashcore.compartment import FaultCompartment, Placeholder, unavailable
from dashcore.envelope import Failed, NormalizedRecord, NormalizeResult, normalize_result
from dashcore.errors import UpstreamFailure
from dashcore.failure import FailureState, SectionStatus
from dashcore.policy import SUMMARY, RefreshPolicy
from dashcore.scheduler import Scheduler
from dashcore.viewmodels import SectionKind, SectionViewModel


logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]
AssembleFn = Callable[[NormalizedRecord], SectionViewModel]


@dataclass(frozen=True)
class SectionSnapshot:
    id: str
    kind: Optional[str]
    status: str
    view_model: Optional[SectionViewModel]
    failure: Dict[str, Any]
    placeholder: Optional[Placeholder] = None
    errors: List[str] = field(default_factory=list)
    updated_at: Optional[float] = None

    @property
    def show_error(self) -> bool:
        return bool(self.failure.get("last_error")) and not self.failure.get("dismissed")

    def to_dict(self) -> Dict[str, Any]:
        view_model = self.view_model
        return {
            "id": self.id,
            "kind": self.kind,
            "status": self.status,
            "view_model": view_model.to_dict() if view_model is not None else None,
            "failure": dict(self.failure),
            "placeholder": self.placeholder.to_dict() if self.placeholder is not None else None,
            "errors": list(self.errors),
            "show_error": self.show_error,
            "updated_at": self.updated_at,
        }


def _resolve_assembler(assemble_fn: Union[AssembleFn, SectionKind, str], options: Dict[str, Any]):
    if callable(assemble_fn):
        return None, assemble_fn
    kind = SectionKind(assemble_fn)
    return kind, partial(assemble, section_kind=kind, **options)


class Section:
    """One independently fetched, retried and fault-isolated region of the dashboard."""

    def __init__(
        self,
        section_id: str,
        fetch_fn: FetchFn,
        assemble_fn: Union[AssembleFn, SectionKind, str],
        policy: RefreshPolicy = SUMMARY,
        *,
        clock: Callable[[], float] = time.time,
        **assemble_options: Any,
    ):
        self.id = section_id
        self.fetch_fn = fetch_fn
        self.policy = policy
        self.kind, self.assemble_fn = _resolve_assembler(assemble_fn, assemble_options)
        self.failure = FailureState()
        self.compartment = FaultCompartment(section_id, self.failure)
        self.record: Optional[NormalizedRecord] = None
        self.applied_seq = 0
        self.updated_at: Optional[float] = None
        self.mounted = False
        self._clock = clock
        self._scheduler: Optional[Scheduler] = None
        self._cancel: Optional[Callable[[], None]] = None
        self._view_model: Optional[SectionViewModel] = None
        self._view_model_seq = 0

    async def fetch(self) -> NormalizeResult:
        payload = await self.fetch_fn()
        result = normalize_result(payload)
        if isinstance(result, Failed):
            raise UpstreamFailure(messages=result.errors)
        return result

    def apply(self, result: NormalizeResult, seq: int) -> bool:
        """Store a fetch result unless the section is gone or a newer result already landed."""

        if not self.mounted:
            logger.debug("section %s unmounted; discarding result #%s", self.id, seq)
            return False
        if seq <= self.applied_seq:
            logger.debug("section %s: result #%s is older than #%s; discarding", self.id, seq, self.applied_seq)
            return False
        self.applied_seq = seq
        self.record = result.record
        self.updated_at = self._clock()
        return True

    def mount(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self.mounted = True
        self._cancel = scheduler.schedule(self.id, self.fetch, self.policy, failure=self.failure, on_result=self.apply)

    def unmount(self) -> None:
        self.mounted = False
        if self._cancel is not None:
            self._cancel()

    def retry(self) -> None:
        if not self.mounted or self._scheduler is None:
            raise RuntimeError(f"section {self.id} is not mounted")
        self.compartment.reset()
        self._cancel = self._scheduler.retry(self.id)

    def refresh(self):
        if not self.mounted or self._scheduler is None:
            raise RuntimeError(f"section {self.id} is not mounted")
        return self._scheduler.refresh(self.id)

    def dismiss_error(self) -> None:
        self.failure.dismiss()

    def _assembled(self) -> SectionViewModel:
        if self._view_model is None or self._view_model_seq != self.applied_seq:
            self._view_model = self.assemble_fn(self.record or {})
            self._view_model_seq = self.applied_seq
        return self._view_model

    def snapshot(self, fallback: Any = None) -> SectionSnapshot:
        view_model: Optional[SectionViewModel] = None
        placeholder: Optional[Placeholder] = None

        if self.record is not None:
            rendered = self.compartment.render(self._assembled, fallback=fallback)
            if self.compartment.faulted:
                placeholder = rendered if isinstance(rendered, Placeholder) else unavailable(self.id, self.failure.last_message)
            else:
                view_model = rendered
        elif self.failure.terminal:
            placeholder = unavailable(self.id, self.failure.last_message)
        else:
            placeholder = Placeholder(kind="loading", section_id=self.id)

        status = self.failure.status
        if self.compartment.faulted:
            status = SectionStatus.FAILED
        return SectionSnapshot(
            id=self.id,
            kind=self.kind.value if self.kind is not None else None,
            status=status.value,
            view_model=view_model,
            failure=self.failure.to_dict(),
            placeholder=placeholder,
            errors=[e for e in ensure_list((self.record or {}).get("errors")) if isinstance(e, str)],
            updated_at=self.updated_at,
        )
