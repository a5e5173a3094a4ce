"""
Cron job supervisor.

Jobs are named, scheduled with a cron expression (5 fields, or 6 with a
trailing seconds field) and evaluated against an ``enabled`` predicate when
they are started. Every firing runs in its own task: a failing or slow run
never stops the schedule, and stopping a job cancels its timer but lets a run
that is already executing finish.

Usage:
    jobs = JobSupervisor()
    jobs.add_job(JobConfig(name="cleanup", schedule="0 * * * *", task=cleanup))
    await jobs.start()
    ...
    await jobs.stop_all()
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from pydantic import BaseModel

from servicehub.config.logging_config import get_logger
from servicehub.errors import ConfigurationError, DuplicateNameError, NotFoundError

log = get_logger(__name__)

JobTask = Callable[[], Union[Awaitable[Any], Any]]
EnabledPredicate = Union[bool, Callable[[], bool], None]


@dataclass
class JobConfig:
    name: str
    schedule: str
    task: JobTask
    enabled: EnabledPredicate = None
    run_on_init: bool = False
    timezone: str = "UTC"


@dataclass
class JobState:
    config: JobConfig
    running: bool = False
    handle: Optional[asyncio.Task[None]] = None


class JobInfo(BaseModel):
    name: str
    schedule: str
    enabled: bool
    running: bool


def _evaluate_enabled(name: str, enabled: EnabledPredicate) -> bool:
    if enabled is None:
        return True
    if isinstance(enabled, bool):
        return enabled
    try:
        return bool(enabled())
    except Exception as e:
        log.error(f"Job '{name}' enabled predicate raised, treating as disabled: {e}")
        return False


class JobSupervisor:
    """Owns scheduled jobs and their timers."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobState] = {}
        self._runs: set[asyncio.Task[bool]] = set()
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def __contains__(self, name: object) -> bool:
        return name in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def _state(self, name: str) -> JobState:
        state = self._jobs.get(name)
        if state is None:
            raise NotFoundError(name, what="job", available=list(self._jobs))
        return state

    def add_job(self, config: JobConfig) -> None:
        """Register a job. Starts it immediately when the supervisor is running.

        Raises:
            ConfigurationError: Blank name, invalid cron schedule or unknown timezone.
            DuplicateNameError: A job with this name already exists.
        """
        if not config.name or not config.name.strip():
            raise ConfigurationError("Job name must be a non-empty string")
        if config.name in self._jobs:
            raise DuplicateNameError(config.name, what="job")
        if not croniter.is_valid(config.schedule):
            raise ConfigurationError(f"Invalid cron schedule for job '{config.name}': {config.schedule!r}")
        try:
            ZoneInfo(config.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown timezone for job '{config.name}': {config.timezone!r}") from e

        self._jobs[config.name] = JobState(config=config)
        log.debug(f"Job added: {config.name} ({config.schedule})")

        if self._started and _evaluate_enabled(config.name, config.enabled):
            self.start_job(config.name)

    async def start(self) -> None:
        """Start every enabled job, then run the ``run_on_init`` jobs once."""
        if self._started:
            return
        self._started = True

        for name, state in self._jobs.items():
            if _evaluate_enabled(name, state.config.enabled):
                self.start_job(name)

        for name, state in list(self._jobs.items()):
            if state.config.run_on_init and state.running:
                await self.run_job(name)

        log.info(f"Job supervisor started with {len(self._jobs)} job(s)")

    def start_job(self, name: str) -> None:
        state = self._state(name)
        if not _evaluate_enabled(name, state.config.enabled):
            log.warning(f"Job '{name}' is disabled, not starting")
            return
        if state.running:
            log.warning(f"Job '{name}' is already running")
            return

        state.handle = asyncio.create_task(self._timer_loop(state.config), name=f"job:{name}")
        state.running = True
        log.info(f"Job started: {name} ({state.config.schedule})")

    async def stop_job(self, name: str) -> None:
        state = self._state(name)
        if not state.running:
            return
        task, state.handle = state.handle, None
        state.running = False
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        log.info(f"Job stopped: {name}")

    async def remove_job(self, name: str) -> None:
        state = self._state(name)
        await self.stop_job(name)
        # A concurrent remove (or remove + re-add) may have run while stopping
        if self._jobs.get(name) is state:
            del self._jobs[name]
            log.debug(f"Job removed: {name}")

    def list_jobs(self) -> list[JobInfo]:
        return [
            JobInfo(
                name=name,
                schedule=state.config.schedule,
                enabled=_evaluate_enabled(name, state.config.enabled),
                running=state.running,
            )
            for name, state in self._jobs.items()
        ]

    def is_running(self, name: str) -> bool:
        return self._state(name).running

    async def stop_all(self) -> None:
        """Stop every timer. Runs already in progress are left to finish."""
        for name in list(self._jobs):
            await self.stop_job(name)
        self._started = False

    async def run_job(self, name: str) -> bool:
        """Run a job once now. Returns False when the task raised."""
        config = self._state(name).config
        try:
            result = config.task()
            if inspect.isawaitable(result):
                await result
            return True
        except Exception as e:
            log.error(f"Job '{name}' failed: {e}", exc_info=True)
            return False

    def _fire(self, name: str) -> None:
        run = asyncio.create_task(self.run_job(name), name=f"job-run:{name}")
        self._runs.add(run)
        run.add_done_callback(self._runs.discard)

    async def _timer_loop(self, config: JobConfig) -> None:
        tz = ZoneInfo(config.timezone)
        schedule = croniter(config.schedule, datetime.now(tz))
        while True:
            next_fire = schedule.get_next(datetime)
            delay = (next_fire - datetime.now(tz)).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)
            if config.name in self._jobs:
                self._fire(config.name)
