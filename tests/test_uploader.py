"""
Flush policy tests.
"""

from pvsync_agent.collector.collection import BoundedCollection
from pvsync_agent.sync.uploader import FlushStatus, Uploader

from .conftest import SERVICE_ID


def filled(make_reading, count):
    collection = BoundedCollection()
    for i in range(count):
        collection.insert(f"k{i}", make_reading())
    return collection


def test_flush_empty_collection_is_noop(transport, logger):
    uploader = Uploader(transport, SERVICE_ID, "SensingData", logger)
    collection = BoundedCollection()

    result = uploader.flush(collection)

    assert result.status is FlushStatus.EMPTY
    assert result.count == 0
    assert transport.calls == []
    assert len(collection) == 0


def test_flush_submits_snapshot_and_clears(transport, logger, make_reading):
    uploader = Uploader(transport, SERVICE_ID, "SensingData", logger)
    collection = filled(make_reading, 5)
    snapshot = collection.drain_all()

    result = uploader.flush(collection)

    assert result.status is FlushStatus.DELIVERED
    assert result.request_id == 1
    assert result.count == 5
    assert len(transport.calls) == 1
    service_id, model_name, batch = transport.calls[0]
    assert service_id == SERVICE_ID
    assert model_name == "SensingData"
    assert batch == snapshot
    assert len(collection) == 0


def test_flush_clears_even_when_transport_fails(failing_transport, logger, make_reading):
    uploader = Uploader(failing_transport, SERVICE_ID, "SensingData", logger)
    collection = filled(make_reading, 3)

    result = uploader.flush(collection)

    assert result.status is FlushStatus.FAILED
    assert result.error is not None
    assert result.count == 3
    assert len(failing_transport.calls) == 1
    assert len(collection) == 0


def test_consecutive_flushes(transport, logger, make_reading):
    uploader = Uploader(transport, SERVICE_ID, "SensingData", logger)
    collection = filled(make_reading, 2)

    assert uploader.flush(collection).status is FlushStatus.DELIVERED
    assert uploader.flush(collection).status is FlushStatus.EMPTY
    assert len(transport.calls) == 1
