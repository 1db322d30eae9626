from __future__ import annotations

import asyncio

import pytest

from dashcore.errors import ErrorKind, UpstreamFailure
from dashcore.failure import FailureState, SectionStatus
from dashcore.policy import RefreshPolicy, constant_backoff
from dashcore.scheduler import Scheduler

from tests.fakes import ScriptedFetch


@pytest.mark.asyncio
async def test_always_failing_fetch_runs_once_plus_max_retries():
    scheduler = Scheduler()
    fetch = ScriptedFetch(ConnectionError("down"))
    failure = FailureState()
    terminal_flags = []

    scheduler.schedule(
        "stats",
        fetch,
        RefreshPolicy(interval_ms=10, max_retries=3, backoff=constant_backoff(0)),
        failure=failure,
        on_failure=lambda error, terminal: terminal_flags.append(terminal),
    )
    await scheduler.join("stats")

    assert fetch.calls == 4
    assert failure.terminal
    assert failure.attempts == 4
    assert failure.last_error is ErrorKind.UPSTREAM_FAILURE
    assert failure.last_message == "down"
    assert terminal_flags == [False, False, False, True]
    assert not scheduler.is_scheduled("stats")


@pytest.mark.asyncio
async def test_success_polls_and_resets_attempts():
    scheduler = Scheduler()
    fetch = ScriptedFetch(UpstreamFailure("flaky"), {"n": 1})
    results = []
    failure = FailureState()

    scheduler.schedule(
        "charts",
        fetch,
        RefreshPolicy(interval_ms=5, max_retries=2, backoff=constant_backoff(0)),
        failure=failure,
        on_result=lambda payload, seq: results.append(seq),
    )
    while fetch.calls < 4:
        await asyncio.sleep(0.005)
    scheduler.close()

    assert failure.attempts == 0
    assert failure.last_error is None
    assert results == sorted(results)
    assert len(results) >= 2


@pytest.mark.asyncio
async def test_one_shot_policy_stops_after_success():
    scheduler = Scheduler()
    fetch = ScriptedFetch({"ok": True})
    scheduler.schedule("once", fetch, RefreshPolicy(interval_ms=None, max_retries=1))
    await scheduler.join("once")
    assert fetch.calls == 1
    assert scheduler.failure_state("once").status is SectionStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_rescheduling_replaces_previous_schedule():
    scheduler = Scheduler()
    gate = asyncio.Event()
    first_results = []

    async def slow():
        await gate.wait()
        return "first"

    scheduler.schedule("stats", slow, RefreshPolicy(interval_ms=None), on_result=lambda p, s: first_results.append(p))
    await asyncio.sleep(0)
    second = ScriptedFetch("second")
    scheduler.schedule("stats", second, RefreshPolicy(interval_ms=None))
    gate.set()
    await scheduler.join("stats")
    await asyncio.sleep(0)

    assert first_results == []
    assert second.calls == 1
    assert scheduler.active_sections() == []


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_discards_in_flight_result():
    scheduler = Scheduler()
    gate = asyncio.Event()
    results = []

    async def slow():
        await gate.wait()
        return "late"

    cancel = scheduler.schedule("stats", slow, RefreshPolicy(interval_ms=10), on_result=lambda p, s: results.append(p))
    await asyncio.sleep(0)
    cancel()
    cancel()
    gate.set()
    await asyncio.sleep(0.01)

    assert results == []
    assert not scheduler.is_scheduled("stats")
    assert scheduler.failure_state("stats") is None


@pytest.mark.asyncio
async def test_manual_retry_restarts_a_terminal_section():
    scheduler = Scheduler()
    fetch = ScriptedFetch(UpstreamFailure("DB timeout"), {"ok": True})
    failure = FailureState()
    scheduler.schedule("financial", fetch, RefreshPolicy(interval_ms=None, max_retries=0), failure=failure)
    await scheduler.join("financial")
    assert failure.terminal

    scheduler.retry("financial")
    assert failure.status is SectionStatus.IDLE
    await scheduler.join("financial")

    assert fetch.calls == 2
    assert failure.status is SectionStatus.SUCCEEDED
    with pytest.raises(KeyError):
        scheduler.retry("unknown")


@pytest.mark.asyncio
async def test_refresh_fetches_out_of_band():
    scheduler = Scheduler()
    fetch = ScriptedFetch({"ok": True})
    seqs = []
    scheduler.schedule("stats", fetch, RefreshPolicy(interval_ms=None), on_result=lambda p, s: seqs.append(s))
    await scheduler.join("stats")

    await scheduler.refresh("stats")

    assert fetch.calls == 2
    assert len(seqs) == 2 and seqs[0] < seqs[1]


@pytest.mark.asyncio
async def test_successful_refresh_resumes_polling_of_a_terminal_section():
    scheduler = Scheduler()
    fetch = ScriptedFetch(ConnectionError("down"), ConnectionError("still down"), {"ok": True})
    failure = FailureState()
    scheduler.schedule("stats", fetch, RefreshPolicy(interval_ms=5, max_retries=0), failure=failure)
    await scheduler.join("stats")
    assert failure.terminal
    assert not scheduler.is_scheduled("stats")

    await scheduler.refresh("stats")
    assert failure.terminal
    assert failure.last_message == "still down"
    assert not scheduler.is_scheduled("stats")

    await scheduler.refresh("stats")
    assert failure.status is SectionStatus.SUCCEEDED
    assert scheduler.is_scheduled("stats")

    calls = fetch.calls
    await asyncio.sleep(0.05)
    assert fetch.calls > calls
    assert scheduler.is_scheduled("stats")
    scheduler.close()


@pytest.mark.asyncio
async def test_failed_refresh_does_not_use_up_retries():
    scheduler = Scheduler()
    fetch = ScriptedFetch({"ok": True}, UpstreamFailure("down"))
    failure = FailureState()
    terminal_flags = []
    scheduler.schedule(
        "stats",
        fetch,
        RefreshPolicy(interval_ms=30, max_retries=1, backoff=constant_backoff(0)),
        failure=failure,
        on_failure=lambda error, terminal: terminal_flags.append(terminal),
    )
    while failure.status is not SectionStatus.SUCCEEDED:
        await asyncio.sleep(0.001)

    await scheduler.refresh("stats")
    assert failure.attempts == 0
    assert failure.status is SectionStatus.FAILED
    assert failure.last_message == "down"

    await scheduler.join("stats")

    # ok, failed refresh, failed poll, its one retry
    assert fetch.calls == 4
    assert failure.attempts == 2
    assert failure.terminal
    assert terminal_flags == [False, False, True]
