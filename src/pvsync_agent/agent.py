"""
Agent lifecycle: build the context, register the model, run the triggers on an
asyncio loop until asked to stop, then release everything.
"""

import asyncio
import logging
import signal

from pvsync_agent.collector.collection import BoundedCollection
from pvsync_agent.config.settings import (
    AgentConfig,
    ScheduleConfig,
    StorageConfig,
    load_schedule_config,
)
from pvsync_agent.context import AgentContext
from pvsync_agent.errors import StartupError
from pvsync_agent.scheduler.triggers import DualIntervalScheduler
from pvsync_agent.sync.obstore_transport import ObstoreTransport
from pvsync_agent.sync.transport import InMemoryTransport, LocalParquetTransport, Transport
from pvsync_agent.sync.uploader import Uploader
from pvsync_agent.utils.ids import create_service_id
from pvsync_agent.utils.logging import log_status


def create_transport(
    config: AgentConfig,
    logger: logging.Logger,
    storage_config: StorageConfig | None = None,
) -> Transport:
    """Build the transport selected by ``config.transport``."""
    if config.transport == "memory":
        return InMemoryTransport(logger)
    if config.transport == "cloud":
        return ObstoreTransport(
            storage_config or StorageConfig(), logger, compression=config.compression
        )
    return LocalParquetTransport(config.output_dir, logger, compression=config.compression)


class Agent:
    """
    One telemetry agent.

    ``start`` must run inside an event loop; ``run`` wraps start, wait and stop.
    """

    def __init__(
        self,
        config: AgentConfig,
        transport: Transport,
        logger: logging.Logger,
        schedule: ScheduleConfig | None = None,
    ):
        self.config = config
        self.transport = transport
        self.logger = logger
        self.schedule = schedule
        self.context: AgentContext | None = None
        self.scheduler: DualIntervalScheduler | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None

    def start(self) -> None:
        """
        Bring the agent up and schedule its triggers.

        Raises:
            StartupError: service id, model registration or schedule could not be set up
        """
        try:
            service_id = create_service_id(self.config.urn, self.config.service_name)
        except ValueError as e:
            raise StartupError(f"failed to create service id: {e}") from e

        self.logger.debug(f"Registering model {self.config.model_name}")
        try:
            self.transport.register_model(self.config.model_name)
        except Exception as e:
            raise StartupError(f"failed to register model: {e}") from e

        schedule = self.schedule or load_schedule_config(self.config.schedule_path, self.logger)
        self.context = AgentContext(
            schedule=schedule,
            record_path=self.config.record_path,
            collection=BoundedCollection(),
            uploader=Uploader(self.transport, service_id, self.config.model_name, self.logger),
            logger=self.logger,
        )
        self.scheduler = DualIntervalScheduler(self.context)
        self.scheduler.start()

        if schedule.intervals_equal:
            mode = f"sampling + upload every {schedule.sampling_interval_seconds}s"
        else:
            mode = (
                f"sampling every {schedule.sampling_interval_seconds}s, "
                f"upload every {schedule.upload_interval_seconds}s"
            )
        log_status(f"Started {service_id}: {mode}", self.logger, "")

    def stop(self) -> None:
        """Cancel triggers, unregister the model and release the collection."""
        if self.scheduler is not None:
            self.scheduler.stop()
        if self.context is not None and self.config.flush_on_stop:
            self.context.uploader.flush(self.context.collection)
        self.transport.unregister_model(self.config.model_name)
        if self.context is not None:
            self.context.collection.clear()
        self.context = None
        self.scheduler = None
        self.logger.info("Agent stopped")

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self, duration: float | None = None) -> None:
        """
        Run until SIGINT/SIGTERM, ``request_stop`` or ``duration`` seconds elapse.
        """
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        self.start()

        handled: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._stop_event.set)
                handled.append(sig)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or not supported on this platform
                pass

        try:
            if duration is None:
                await self._stop_event.wait()
            else:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    pass
        finally:
            for sig in handled:
                loop.remove_signal_handler(sig)
            self.stop()
            self._stop_event = None


def run_agent(agent: Agent, duration: float | None = None) -> None:
    """Run ``agent`` on a fresh event loop."""
    asyncio.run(agent.run(duration=duration))
