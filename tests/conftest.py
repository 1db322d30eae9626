from __future__ import annotations

import pytest

from dashcore.charts import ChartLoader
from dashcore.policy import RefreshPolicy, constant_backoff
from tests.fakes import CountingAcquire


@pytest.fixture
def acquire() -> CountingAcquire:
    return CountingAcquire()


@pytest.fixture
def chart_loader(acquire) -> ChartLoader:
    return ChartLoader(acquire=acquire)


@pytest.fixture
def fast_policy() -> RefreshPolicy:
    return RefreshPolicy(interval_ms=None, max_retries=0, backoff=constant_backoff(0))
