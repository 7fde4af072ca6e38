"""
Flush policy: drain the collection into a batch and hand it to the transport.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum

from pvsync_agent.collector.collection import BoundedCollection
from pvsync_agent.errors import TransportError
from pvsync_agent.sync.transport import Transport
from pvsync_agent.utils.logging import log_batch_upload, log_error


class FlushStatus(Enum):
    DELIVERED = "delivered"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class FlushResult:
    """Outcome of one flush."""

    status: FlushStatus
    count: int = 0
    request_id: int | None = None
    error: TransportError | None = None


class Uploader:
    """
    Submits the buffered readings as one batch per flush.

    The collection is cleared after every non-empty flush, whether or not the
    transport accepted the batch. A failed submission therefore drops that batch.
    """

    def __init__(
        self,
        transport: Transport,
        service_id: str,
        model_name: str,
        logger: logging.Logger,
    ):
        self.transport = transport
        self.service_id = service_id
        self.model_name = model_name
        self.logger = logger

    def flush(self, collection: BoundedCollection) -> FlushResult:
        if len(collection) == 0:
            self.logger.debug("no sensing data found.")
            return FlushResult(status=FlushStatus.EMPTY)

        batch = collection.drain_all()
        start_time = time.monotonic()
        try:
            request_id = self.transport.submit_notification(
                self.service_id, self.model_name, batch
            )
        except TransportError as e:
            log_error(e, self.logger, f"Failed to upload {len(batch)} readings")
            return FlushResult(status=FlushStatus.FAILED, count=len(batch), error=e)
        finally:
            collection.clear()

        log_batch_upload(len(batch), request_id, time.monotonic() - start_time, self.logger)
        return FlushResult(status=FlushStatus.DELIVERED, count=len(batch), request_id=request_id)
