from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional


logger = logging.getLogger(__name__)

Backoff = Callable[[int], float]

MIN_INTERVAL_MS = 1000
MAX_RETRIES_CAP = 10


def constant_backoff(delay_ms: float = 1000.0) -> Backoff:
    return lambda attempt: delay_ms


def linear_backoff(step_ms: float = 500.0) -> Backoff:
    """500 ms, 1 s, 1.5 s, ... (``step_ms * (attempt + 1)``)."""

    return lambda attempt: step_ms * (attempt + 1)


def exponential_backoff(base_ms: float = 1000.0, factor: float = 2.0, max_ms: float = 30000.0) -> Backoff:
    return lambda attempt: min(max_ms, base_ms * factor**attempt)


BACKOFFS: Dict[str, Callable[..., Backoff]] = {
    "constant": constant_backoff,
    "linear": linear_backoff,
    "exponential": exponential_backoff,
}


@dataclass(frozen=True)
class RefreshPolicy:
    interval_ms: Optional[float] = 30000
    max_retries: int = 1
    backoff: Backoff = field(default_factory=linear_backoff, compare=False, repr=False)

    @property
    def polls(self) -> bool:
        return bool(self.interval_ms)

    def interval_seconds(self) -> Optional[float]:
        return self.interval_ms / 1000.0 if self.interval_ms else None

    def retry_delay_seconds(self, attempt: int) -> float:
        try:
            delay = float(self.backoff(attempt))
        except Exception:
            logger.warning("backoff curve failed for attempt %s; retrying immediately", attempt, exc_info=True)
            return 0.0
        if math.isnan(delay) or delay < 0:
            return 0.0
        if math.isinf(delay):
            delay = 30000.0
        return delay / 1000.0


SUMMARY = RefreshPolicy(interval_ms=30000, max_retries=1)
ACTIVITIES = RefreshPolicy(interval_ms=30000, max_retries=1)
FINANCIAL = RefreshPolicy(interval_ms=300000, max_retries=1)
NOTIFICATIONS = RefreshPolicy(interval_ms=60000, max_retries=1)
ONE_SHOT = RefreshPolicy(interval_ms=None, max_retries=1)

PRESETS: Dict[str, RefreshPolicy] = {
    "summary": SUMMARY,
    "activities": ACTIVITIES,
    "financial": FINANCIAL,
    "notifications": NOTIFICATIONS,
    "one_shot": ONE_SHOT,
}


def get_policy(name: str) -> RefreshPolicy:
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(f"Unknown refresh policy {name!r}; expected one of {sorted(PRESETS)}") from None


def normalize_policy(raw: Optional[dict], *, default: RefreshPolicy = SUMMARY) -> RefreshPolicy:
    raw = raw or {}
    base = default
    if raw.get("preset"):
        base = get_policy(str(raw["preset"]))

    interval_ms = raw.get("interval_ms", base.interval_ms)
    try:
        interval_ms = float(interval_ms) if interval_ms else None
    except (TypeError, ValueError):
        interval_ms = base.interval_ms
    if interval_ms is not None:
        interval_ms = max(MIN_INTERVAL_MS, interval_ms)

    max_retries = raw.get("max_retries", base.max_retries)
    try:
        max_retries = int(max_retries)
    except (TypeError, ValueError):
        max_retries = base.max_retries
    max_retries = max(0, min(MAX_RETRIES_CAP, max_retries))

    backoff = base.backoff
    backoff_name = raw.get("backoff")
    if backoff_name:
        factory = BACKOFFS.get(str(backoff_name))
        if factory is None:
            raise ValueError(f"Unknown backoff {backoff_name!r}; expected one of {sorted(BACKOFFS)}")
        backoff = factory(**(raw.get("backoff_options") or {}))

    return RefreshPolicy(interval_ms=interval_ms, max_retries=max_retries, backoff=backoff)
