"""
Periodic triggers on a single asyncio event loop.

Each trigger is an asyncio.Task that sleeps until the next wall-clock multiple
of its interval and then runs a synchronous callback. Callbacks never await, so
the loop serialises them and they never overlap.
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from enum import Enum

from rich.markup import escape

from pvsync_agent.collector.models import Reading
from pvsync_agent.collector.parser import parse_record
from pvsync_agent.collector.record_source import read_current_record
from pvsync_agent.context import AgentContext
from pvsync_agent.errors import ParseError, RecordSourceError, SensorDomainError
from pvsync_agent.sync.uploader import FlushResult
from pvsync_agent.utils.logging import log_error


class TriggerState(Enum):
    STOPPED = "stopped"
    SCHEDULED = "scheduled"


class PeriodicTrigger:
    """
    Fires ``callback`` at every multiple of ``interval`` seconds of wall-clock time.

    Must be started from inside a running event loop. Cancellation is explicit.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], object],
        logger: logging.Logger,
        clock: Callable[[], float] = time.time,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.logger = logger
        self.clock = clock
        self.ticks = 0
        self._task: asyncio.Task | None = None
        self._last_fire: float | None = None

    @property
    def state(self) -> TriggerState:
        if self._task is not None and not self._task.done():
            return TriggerState.SCHEDULED
        return TriggerState.STOPPED

    @property
    def is_scheduled(self) -> bool:
        return self.state is TriggerState.SCHEDULED

    def next_fire_time(self, now: float) -> float:
        """Next interval boundary strictly after ``now`` and after the previous fire."""
        target = (math.floor(now / self.interval) + 1) * self.interval
        if self._last_fire is not None and target <= self._last_fire:
            target = self._last_fire + self.interval
        return target

    def start(self) -> None:
        if self.is_scheduled:
            return
        self._last_fire = None
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        self.logger.debug(f"Scheduled {self.name} trigger every {self.interval}s")

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self.logger.debug(f"Cancelled {self.name} trigger")
        self._task = None

    async def _run(self) -> None:
        while True:
            target = self.next_fire_time(self.clock())
            await asyncio.sleep(max(target - self.clock(), 0.0))
            self._last_fire = target
            self.ticks += 1
            try:
                self.callback()
            except Exception as e:
                # Tick errors never stop the schedule
                log_error(e, self.logger, f"{self.name} tick failed")


class DualIntervalScheduler:
    """
    Sampling and upload triggers over one shared AgentContext.

    Equal intervals: only the sampling trigger exists and every sampling tick
    also flushes. Different intervals: both triggers run on their own periods
    and sampling ticks never flush.
    """

    def __init__(self, context: AgentContext, clock: Callable[[], float] = time.time):
        self.context = context
        self.logger = context.logger
        schedule = context.schedule

        self.sampling_trigger = PeriodicTrigger(
            "sampling",
            schedule.sampling_interval_seconds,
            self.sampling_tick,
            self.logger,
            clock=clock,
        )
        self.upload_trigger: PeriodicTrigger | None = None
        if not schedule.intervals_equal:
            self.upload_trigger = PeriodicTrigger(
                "upload",
                schedule.upload_interval_seconds,
                self.upload_tick,
                self.logger,
                clock=clock,
            )

        self.samples_taken = 0
        self.samples_skipped = 0

    @property
    def triggers(self) -> list[PeriodicTrigger]:
        return [t for t in (self.sampling_trigger, self.upload_trigger) if t is not None]

    @property
    def upload_scheduled(self) -> bool:
        return self.upload_trigger is not None and self.upload_trigger.is_scheduled

    def start(self) -> None:
        """Schedule the triggers. Requires a running event loop."""
        for trigger in self.triggers:
            trigger.start()

    def stop(self) -> None:
        for trigger in self.triggers:
            trigger.cancel()

    def sampling_tick(self) -> Reading | None:
        """Acquire, parse and buffer one reading; flush too when no upload trigger runs."""
        ctx = self.context
        try:
            raw = read_current_record(ctx.record_path)
        except RecordSourceError as e:
            self.samples_skipped += 1
            log_error(e, self.logger, "Skipping sampling cycle")
            return None

        record = escape(raw.decode("ascii", errors="replace"))
        try:
            reading = parse_record(raw)
        except SensorDomainError:
            self.samples_skipped += 1
            self.logger.error(f"data error. record='{record}'")
            return None
        except ParseError as e:
            self.samples_skipped += 1
            self.logger.error(f"failed to create a sensing data ({e}). record='{record}'")
            return None

        key = ctx.key_factory()
        evicted = ctx.collection.insert(key, reading)
        if evicted is not None:
            self.logger.debug(f"Collection full, evicted oldest {evicted}")
        self.samples_taken += 1
        self.logger.debug(f"** Added a sensing data:uuid={key}, record='{record}'")

        if not self.upload_scheduled:
            ctx.uploader.flush(ctx.collection)
        return reading

    def upload_tick(self) -> FlushResult:
        return self.context.uploader.flush(self.context.collection)
