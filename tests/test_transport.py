"""
Transport tests: batch encoding, local Parquet files, object storage.
"""

from datetime import datetime, timezone

import polars as pl
import pytest
from obstore.store import MemoryStore

from pvsync_agent.collector.models import Batch, Reading
from pvsync_agent.config.settings import StorageConfig
from pvsync_agent.errors import StartupError, TransportError
from pvsync_agent.sync.obstore_transport import ObstoreTransport
from pvsync_agent.sync.transport import (
    InMemoryTransport,
    LocalParquetTransport,
    Transport,
    batch_object_path,
    batch_to_frame,
)

from .conftest import SERVICE_ID

# 2024-03-05 06:07:08.009 UTC
BASE_MS = int(datetime(2024, 3, 5, 6, 7, 8, tzinfo=timezone.utc).timestamp()) * 1000 + 9


@pytest.fixture
def batch():
    return Batch(
        entries=(
            ("k1", Reading(timestamp=BASE_MS, channel_id="ch1", value=12.5, unit="V")),
            ("k2", Reading(timestamp=BASE_MS + 1000, channel_id="ch2", value=0.75, unit="A")),
        )
    )


def test_batch_records_use_endpoint_field_names(batch):
    records = batch.to_records()
    assert [r["key"] for r in records] == ["k1", "k2"]
    assert records[0] == {
        "key": "k1",
        "timestamp": BASE_MS,
        "da": "ch1",
        "value": 12.5,
        "unit": "V",
    }


def test_batch_to_frame(batch):
    df = batch_to_frame(batch)
    assert df.columns == ["key", "timestamp", "da", "value", "unit"]
    assert df["da"].to_list() == ["ch1", "ch2"]
    assert df.schema["timestamp"] == pl.Datetime(time_unit="ms", time_zone="UTC")
    assert df["timestamp"][0] == datetime(2024, 3, 5, 6, 7, 8, 9000, tzinfo=timezone.utc)


def test_batch_object_path_is_partitioned(batch):
    path = batch_object_path("SensingData", batch, 7)
    assert path == "model=SensingData/year=2024/month=03/day=05/batch_060708_000007.parquet"


def test_transports_satisfy_protocol(logger, tmp_path):
    assert isinstance(InMemoryTransport(logger), Transport)
    assert isinstance(LocalParquetTransport(tmp_path, logger), Transport)


def test_unregistered_model_is_rejected(logger, batch):
    transport = InMemoryTransport(logger)
    with pytest.raises(TransportError):
        transport.submit_notification(SERVICE_ID, "SensingData", batch)


def test_request_ids_increase(logger, batch):
    transport = InMemoryTransport(logger)
    transport.register_model("SensingData")

    ids = [transport.submit_notification(SERVICE_ID, "SensingData", batch) for _ in range(3)]

    assert ids == [1, 2, 3]
    assert [s[0] for s in transport.submissions] == ids


def test_unregister_blocks_further_submissions(logger, batch):
    transport = InMemoryTransport(logger)
    transport.register_model("SensingData")
    transport.unregister_model("SensingData")
    with pytest.raises(TransportError):
        transport.submit_notification(SERVICE_ID, "SensingData", batch)


def test_local_transport_writes_parquet(logger, tmp_path, batch):
    transport = LocalParquetTransport(tmp_path, logger)
    transport.register_model("SensingData")

    request_id = transport.submit_notification(SERVICE_ID, "SensingData", batch)

    file_path = tmp_path / batch_object_path("SensingData", batch, request_id)
    assert file_path.exists()
    df = pl.read_parquet(file_path)
    assert df["key"].to_list() == ["k1", "k2"]
    assert df["value"].to_list() == [12.5, 0.75]
    assert df["unit"].to_list() == ["V", "A"]


def test_local_transport_wraps_write_errors(logger, tmp_path, batch):
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory")
    transport = LocalParquetTransport(blocker, logger)
    transport.register_model("SensingData")

    with pytest.raises(TransportError):
        transport.submit_notification(SERVICE_ID, "SensingData", batch)


def test_obstore_transport_puts_batch(logger, batch):
    store = MemoryStore()
    transport = ObstoreTransport(StorageConfig(storage_bucket="b"), logger, store=store)
    transport.register_model("SensingData")

    request_id = transport.submit_notification(SERVICE_ID, "SensingData", batch)

    paths = [obj["path"] for chunk in store.list() for obj in chunk]
    assert paths == [batch_object_path("SensingData", batch, request_id)]


class UnreachableStore:
    def __init__(self):
        self.fail = True
        self.puts = []

    def put(self, path, data):
        if self.fail:
            raise ConnectionError("connection refused")
        self.puts.append(path)


def test_obstore_transport_goes_offline_and_recovers(logger, batch):
    store = UnreachableStore()
    transport = ObstoreTransport(StorageConfig(storage_bucket="b"), logger, store=store)
    transport.register_model("SensingData")

    with pytest.raises(TransportError):
        transport.submit_notification(SERVICE_ID, "SensingData", batch)
    assert transport.is_offline

    store.fail = False
    transport.submit_notification(SERVICE_ID, "SensingData", batch)
    assert not transport.is_offline
    assert len(store.puts) == 1


def test_obstore_transport_requires_bucket(logger, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(StartupError):
        ObstoreTransport(StorageConfig(storage_bucket=None), logger)


def test_obstore_regional_endpoint(logger, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    config = StorageConfig(
        storage_provider="wasabi", storage_bucket="b", storage_region="eu-central-1"
    )
    transport = ObstoreTransport(config, logger, store=MemoryStore())
    assert transport._get_endpoint("wasabi") == "https://s3.eu-central-1.wasabisys.com"
