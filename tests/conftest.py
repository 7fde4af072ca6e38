import logging

import pytest

from pvsync_agent.collector.collection import BoundedCollection
from pvsync_agent.collector.models import Reading
from pvsync_agent.config.settings import ScheduleConfig
from pvsync_agent.context import AgentContext
from pvsync_agent.errors import TransportError
from pvsync_agent.sync.uploader import Uploader

SERVICE_ID = "urn:moat:pvdemo:upload-sensing-data:1.0"


class RecordingTransport:
    """Fake transport that records every call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []
        self.registered = set()

    def register_model(self, name):
        self.registered.add(name)

    def unregister_model(self, name):
        self.registered.discard(name)

    def submit_notification(self, service_id, model_name, batch):
        self.calls.append((service_id, model_name, batch))
        if self.fail:
            raise TransportError("endpoint unavailable")
        return len(self.calls)


@pytest.fixture
def logger():
    return logging.getLogger("pvsync.tests")


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def failing_transport():
    return RecordingTransport(fail=True)


@pytest.fixture
def record_file(tmp_path):
    """Write a sensor record and return its path."""
    path = tmp_path / "sensordata.txt"

    def write(content: str | bytes = "ch1 12.5 V\n"):
        if isinstance(content, str):
            content = content.encode("ascii")
        path.write_bytes(content)
        return path

    return write


@pytest.fixture
def make_reading():
    counter = iter(range(1_000_000))

    def make(value: float | None = None, channel: str = "ch1", unit: str = "V") -> Reading:
        n = next(counter)
        return Reading(
            timestamp=1_700_000_000_000 + n,
            channel_id=channel,
            value=float(n) if value is None else value,
            unit=unit,
        )

    return make


@pytest.fixture
def make_context(logger, transport, record_file):
    def make(sampling: int = 10, upload: int = 30, transport_impl=None, path=None):
        keys = (f"key-{i:04d}" for i in range(1_000_000))
        return AgentContext(
            schedule=ScheduleConfig(
                sampling_interval_seconds=sampling, upload_interval_seconds=upload
            ),
            record_path=path or record_file(),
            collection=BoundedCollection(),
            uploader=Uploader(transport_impl or transport, SERVICE_ID, "SensingData", logger),
            logger=logger,
            key_factory=lambda: next(keys),
        )

    return make
