from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from dashcore.errors import ErrorKind, error_message, kind_of


class SectionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TERMINAL = "terminal"


@dataclass
class FailureState:
    """Per-section retry bookkeeping.

    idle -> loading -> succeeded | failed(attempts + 1); terminal once retries are exhausted.
    ``reset`` (manual retry) returns to idle.
    """

    attempts: int = 0
    last_error: Optional[ErrorKind] = None
    last_message: Optional[str] = None
    retry_scheduled_at: Optional[float] = None
    status: SectionStatus = SectionStatus.IDLE
    faulted: bool = False
    dismissed: bool = False

    @property
    def terminal(self) -> bool:
        return self.status == SectionStatus.TERMINAL

    @property
    def has_error(self) -> bool:
        return self.last_error is not None

    @property
    def show_indicator(self) -> bool:
        return self.has_error and not self.dismissed

    def begin(self) -> None:
        self.status = SectionStatus.LOADING

    def succeed(self) -> None:
        self.attempts = 0
        self.retry_scheduled_at = None
        self.status = SectionStatus.SUCCEEDED
        if not self.faulted:
            self.last_error = None
            self.last_message = None

    def fail(self, error: BaseException, *, retry_at: Optional[float] = None) -> None:
        self.attempts += 1
        self.last_error = kind_of(error)
        self.last_message = error_message(error)
        self.retry_scheduled_at = retry_at
        self.status = SectionStatus.FAILED
        self.dismissed = False

    def note_error(self, error: BaseException, *, terminal: bool = False) -> None:
        """Record an out-of-band failure without spending one of the poll loop's retries."""
        self.last_error = kind_of(error)
        self.last_message = error_message(error)
        self.status = SectionStatus.TERMINAL if terminal else SectionStatus.FAILED
        self.dismissed = False

    def mark_terminal(self) -> None:
        self.status = SectionStatus.TERMINAL
        self.retry_scheduled_at = None

    def record_fault(self, error: BaseException) -> None:
        self.faulted = True
        self.last_error = kind_of(error)
        self.last_message = error_message(error)
        self.dismissed = False

    def dismiss(self) -> None:
        self.dismissed = True

    def reset(self) -> None:
        self.attempts = 0
        self.last_error = None
        self.last_message = None
        self.retry_scheduled_at = None
        self.status = SectionStatus.IDLE
        self.faulted = False
        self.dismissed = False

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["last_error"] = self.last_error.value if self.last_error else None
        out["status"] = self.status.value
        return out
