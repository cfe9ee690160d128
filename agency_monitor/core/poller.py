from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from agency_monitor.core.job_trigger import JobTriggerClient
from agency_monitor.core.models import Run, TriggerResult
from agency_monitor.core.supabase_repo import SupabaseRepo


LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


class PollState(str, Enum):
    IDLE = "idle"
    TRIGGERING = "triggering"
    POLLING = "polling"
    SETTLED = "settled"


@dataclass(slots=True)
class PollSession:
    generation: int
    agency_id: str
    cancelled: bool = False
    task: asyncio.Task[None] | None = None
    refreshes: set[asyncio.Task[None]] = field(default_factory=set)
    settled: asyncio.Event = field(default_factory=asyncio.Event)

    def cancel(self) -> None:
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()


class RunPoller:
    """
    Triggers agency runs and polls the run list until nothing is pending.

    At most one poll session is active; every new session bumps the
    generation so replies belonging to an older session are dropped.
    """

    def __init__(
        self,
        repo: SupabaseRepo,
        trigger: JobTriggerClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        on_error: Callable[[str], Any] | None = None,
    ) -> None:
        self._repo = repo
        self._trigger = trigger
        self.poll_interval = poll_interval
        self.on_error = on_error
        self.state = PollState.IDLE
        self.loading = False
        self.agency_id = ""
        self.runs: list[Run] = []
        self.last_error = ""
        self._generation = 0
        self._session: PollSession | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_polling(self) -> bool:
        return self._session is not None and not self._session.cancelled

    def start_run(self, agency_id: str) -> asyncio.Task[TriggerResult]:
        if not agency_id:
            raise ValueError("An agency must be selected to start a run.")
        self.stop_polling()
        self.agency_id = agency_id
        self.loading = True
        self.last_error = ""
        self.state = PollState.TRIGGERING
        task = asyncio.get_running_loop().create_task(self._trigger_then_poll(agency_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _trigger_then_poll(self, agency_id: str) -> TriggerResult:
        try:
            result = await self._trigger.trigger_run(agency_id)
        except Exception as exc:  # noqa: BLE001
            result = TriggerResult(agency_id=agency_id, ok=False, error=str(exc) or exc.__class__.__name__)
        if not result.ok:
            self._report_error(f"Run trigger failed: {result.error}")
        # The run list is reloaded whether or not the trigger went through.
        await self.refresh()
        if agency_id == self.agency_id:
            self.start_polling()
        return result

    async def refresh(self) -> list[Run]:
        agency_id = self.agency_id
        if not agency_id:
            return self.runs
        try:
            rows = await asyncio.to_thread(self._repo.get_runs, agency_id)
            runs = [Run.from_row(row) for row in rows]
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Run list refresh failed agency=%s error=%s", agency_id, exc)
            return self.runs
        if agency_id == self.agency_id:
            self.runs = runs
        return self.runs

    def start_polling(self) -> PollSession:
        if not self.agency_id:
            raise ValueError("An agency must be selected to poll runs.")
        self.stop_polling()
        self._generation += 1
        session = PollSession(generation=self._generation, agency_id=self.agency_id)
        self._session = session
        self.state = PollState.POLLING
        session.task = asyncio.get_running_loop().create_task(self._poll_loop(session))
        LOGGER.info("Polling runs agency=%s generation=%s", session.agency_id, session.generation)
        return session

    def stop_polling(self) -> None:
        session = self._session
        if session is None:
            return
        session.cancel()
        self._session = None
        if self.state is PollState.POLLING:
            self.state = PollState.IDLE
            self.loading = False
        # Release waiters; they read the final state themselves.
        session.settled.set()

    async def wait_settled(self, timeout: float | None = None) -> bool:
        session = self._session
        if session is None:
            return self.state is PollState.SETTLED
        try:
            await asyncio.wait_for(session.settled.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return self.state is PollState.SETTLED

    async def _poll_loop(self, session: PollSession) -> None:
        while not session.cancelled:
            await asyncio.sleep(self.poll_interval)
            if session.cancelled:
                break
            # A hung refresh must not hold back the next tick.
            tick = asyncio.create_task(self._tick(session))
            session.refreshes.add(tick)
            tick.add_done_callback(session.refreshes.discard)

    async def _tick(self, session: PollSession) -> None:
        try:
            rows = await asyncio.to_thread(self._repo.get_runs, session.agency_id)
            runs = [Run.from_row(row) for row in rows]
        except Exception as exc:  # noqa: BLE001
            if self._is_current(session):
                LOGGER.warning("Run poll failed agency=%s error=%s; keeping previous list", session.agency_id, exc)
            return
        if not self._is_current(session):
            LOGGER.debug("Ignoring stale run poll generation=%s", session.generation)
            return
        self.runs = runs
        pending = sum(1 for run in self.runs if run.is_pending)
        if pending:
            LOGGER.debug("Runs pending agency=%s count=%s", session.agency_id, pending)
            return
        self._settle(session)

    def _settle(self, session: PollSession) -> None:
        session.cancel()
        self._session = None
        self.loading = False
        self.state = PollState.SETTLED
        session.settled.set()
        LOGGER.info("All runs completed agency=%s", session.agency_id)

    def _is_current(self, session: PollSession) -> bool:
        return session is self._session and not session.cancelled

    def _report_error(self, message: str) -> None:
        self.last_error = message
        LOGGER.error(message)
        if self.on_error is not None:
            self.on_error(message)
