from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from dashcore.errors import UpstreamFailure
from dashcore.failure import FailureState
from dashcore.policy import RefreshPolicy


logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]
ResultHandler = Callable[[Any, int], None]
FailureHandler = Callable[[UpstreamFailure, bool], None]


@dataclass(eq=False)
class _Job:
    section_id: str
    fetch_fn: FetchFn
    policy: RefreshPolicy
    failure: FailureState
    on_result: Optional[ResultHandler] = None
    on_failure: Optional[FailureHandler] = None
    task: Optional[asyncio.Task] = None
    side_tasks: Set[asyncio.Task] = field(default_factory=set)
    cancelled: bool = False


class Scheduler:
    """Fetches each section immediately, then polls on success and backs off on failure.

    At most one schedule is active per section; scheduling a section again replaces it.
    Results carry a monotonically increasing sequence number so the receiver can drop stale ones.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time):
        self._jobs: Dict[str, _Job] = {}
        self._seq = itertools.count(1)
        self._clock = clock

    def schedule(
        self,
        section_id: str,
        fetch_fn: FetchFn,
        policy: RefreshPolicy,
        *,
        failure: Optional[FailureState] = None,
        on_result: Optional[ResultHandler] = None,
        on_failure: Optional[FailureHandler] = None,
    ) -> Callable[[], None]:
        previous = self._jobs.get(section_id)
        if previous is not None:
            logger.debug("replacing schedule for section %s", section_id)
            self._cancel(previous)

        job = _Job(
            section_id=section_id,
            fetch_fn=fetch_fn,
            policy=policy,
            failure=failure if failure is not None else FailureState(),
            on_result=on_result,
            on_failure=on_failure,
        )
        self._jobs[section_id] = job
        job.task = asyncio.get_running_loop().create_task(self._run(job), name=f"dashboard-poll:{section_id}")

        def cancel() -> None:
            self._cancel(job)

        return cancel

    def failure_state(self, section_id: str) -> Optional[FailureState]:
        job = self._jobs.get(section_id)
        return job.failure if job is not None else None

    def is_scheduled(self, section_id: str) -> bool:
        job = self._jobs.get(section_id)
        return job is not None and job.task is not None and not job.task.done()

    def active_sections(self) -> List[str]:
        return [section_id for section_id in self._jobs if self.is_scheduled(section_id)]

    def retry(self, section_id: str) -> Callable[[], None]:
        """Manual retry: clear the failure state and start the schedule over."""

        job = self._jobs.get(section_id)
        if job is None:
            raise KeyError(section_id)
        job.failure.reset()
        return self.schedule(
            section_id,
            job.fetch_fn,
            job.policy,
            failure=job.failure,
            on_result=job.on_result,
            on_failure=job.on_failure,
        )

    def refresh(self, section_id: str) -> asyncio.Task:
        """Out-of-band fetch; does not disturb the polling timer.

        A failed refresh is recorded but does not use up a retry. A successful refresh on a
        section whose polling has stopped (terminal, for instance) starts the poll timer again.
        """

        job = self._jobs.get(section_id)
        if job is None or job.cancelled:
            raise KeyError(section_id)
        task = asyncio.get_running_loop().create_task(self._refresh(job), name=f"dashboard-refresh:{section_id}")
        job.side_tasks.add(task)
        task.add_done_callback(job.side_tasks.discard)
        return task

    async def join(self, section_id: str) -> None:
        job = self._jobs.get(section_id)
        if job is None or job.task is None:
            return
        await asyncio.wait({job.task})

    def close(self) -> None:
        for job in list(self._jobs.values()):
            self._cancel(job)

    def _cancel(self, job: _Job) -> None:
        if job.cancelled:
            return
        job.cancelled = True
        if job.task is not None and not job.task.done():
            job.task.cancel()
        for task in list(job.side_tasks):
            task.cancel()
        if self._jobs.get(job.section_id) is job:
            del self._jobs[job.section_id]

    def _is_live(self, job: _Job) -> bool:
        return not job.cancelled and self._jobs.get(job.section_id) is job

    async def _attempt(self, job: _Job) -> Optional[UpstreamFailure]:
        seq = next(self._seq)
        job.failure.begin()
        try:
            payload = await job.fetch_fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._is_live(job):
                logger.debug("discarding failure of cancelled fetch for section %s", job.section_id)
                return None
            return UpstreamFailure.wrap(exc)

        if not self._is_live(job):
            logger.debug("discarding result #%s for cancelled section %s", seq, job.section_id)
            return None
        if job.on_result is not None:
            job.on_result(payload, seq)
        job.failure.succeed()
        return None

    async def _refresh(self, job: _Job) -> None:
        was_terminal = job.failure.terminal
        error = await self._attempt(job)
        if not self._is_live(job):
            return
        if error is not None:
            logger.warning("refresh of section %s failed: %s", job.section_id, error)
            job.failure.note_error(error, terminal=was_terminal)
            if job.on_failure is not None:
                job.on_failure(error, was_terminal)
            return

        interval = job.policy.interval_seconds()
        if interval is not None and (job.task is None or job.task.done()):
            # polling has stopped; resume it on the normal interval
            logger.info("refresh of section %s succeeded; resuming polling", job.section_id)
            job.task = asyncio.get_running_loop().create_task(
                self._run(job, delay=interval), name=f"dashboard-poll:{job.section_id}"
            )

    async def _run(self, job: _Job, delay: Optional[float] = None) -> None:
        policy = job.policy
        if delay is not None:
            await asyncio.sleep(delay)
        while self._is_live(job):
            error = await self._attempt(job)
            if error is None:
                delay = policy.interval_seconds()
                if delay is None:
                    return
            elif job.failure.attempts < policy.max_retries:
                delay = policy.retry_delay_seconds(job.failure.attempts)
                job.failure.fail(error, retry_at=self._clock() + delay)
                logger.warning(
                    "section %s fetch failed (attempt %s/%s), retrying in %.2fs: %s",
                    job.section_id,
                    job.failure.attempts,
                    policy.max_retries + 1,
                    delay,
                    error,
                )
                if job.on_failure is not None:
                    job.on_failure(error, False)
            else:
                job.failure.fail(error)
                job.failure.mark_terminal()
                logger.error(
                    "section %s failed after %s attempts, waiting for manual retry: %s",
                    job.section_id,
                    job.failure.attempts,
                    error,
                )
                if job.on_failure is not None:
                    job.on_failure(error, True)
                return
            await asyncio.sleep(delay)
