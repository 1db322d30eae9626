from __future__ import annotations

import inspect
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from dashcore.errors import RenderFault, error_message
from dashcore.failure import FailureState


logger = logging.getLogger(__name__)

T = TypeVar("T")
FallbackFn = Callable[[RenderFault, Callable[[], None]], Any]


@dataclass(frozen=True)
class Placeholder:
    """Static stand-in rendered instead of real content ("unavailable", "loading", "empty")."""

    kind: str
    message: str = ""
    section_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def unavailable(section_id: str, message: Optional[str] = None) -> Placeholder:
    return Placeholder(kind="unavailable", message=message or f"{section_id} unavailable", section_id=section_id)


def _takes_no_arguments(fn: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return False
    try:
        signature.bind(None, None)
        return False
    except TypeError:
        pass
    try:
        signature.bind()
    except TypeError:
        return False
    return True


class FaultCompartment:
    """Containment boundary for one section.

    The first error raised by ``content`` is recorded in the section's FailureState and every later
    render returns the fallback until ``reset`` is called. Errors never cross the boundary.
    """

    def __init__(self, section_id: str, failure: Optional[FailureState] = None):
        self.section_id = section_id
        self.failure = failure if failure is not None else FailureState()
        self.error: Optional[RenderFault] = None

    @property
    def faulted(self) -> bool:
        return self.error is not None

    def render(self, content: Callable[[], T], fallback: Union[FallbackFn, Any, None] = None) -> Union[T, Any]:
        """Return ``content()``, or the fallback once the compartment has faulted.

        ``fallback`` may be a static value, ``fallback(error, reset)`` or a zero-argument callable.
        Without one an "unavailable" Placeholder is returned.
        """
        if self.error is None:
            try:
                return content()
            except Exception as exc:
                self._record(exc)
        return self._fallback(fallback)

    def reset(self) -> None:
        self.error = None
        self.failure.reset()

    def _record(self, exc: Exception) -> None:
        fault = exc if isinstance(exc, RenderFault) else RenderFault(error_message(exc))
        if fault is not exc:
            fault.__cause__ = exc
        self.error = fault
        self.failure.record_fault(fault)
        logger.exception("section %s failed to render; showing fallback", self.section_id)

    def _fallback(self, fallback: Union[FallbackFn, Any, None]) -> Any:
        if fallback is None:
            return unavailable(self.section_id)
        if not callable(fallback):
            return fallback
        try:
            if _takes_no_arguments(fallback):
                return fallback()
            return fallback(self.error, self.reset)
        except Exception:
            logger.exception("fallback for section %s raised; using placeholder", self.section_id)
            return unavailable(self.section_id)
