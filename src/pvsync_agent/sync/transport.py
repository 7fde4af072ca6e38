"""
Transports deliver batches to a collection endpoint.

The uploader only relies on the Transport protocol:
    submit_notification(service_id, model_name, batch) -> request_id
    register_model(name) / unregister_model(name)

Batches are encoded as Parquet with Polars so the local and cloud transports
write identical files.
"""

import io
import itertools
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

import polars as pl

from pvsync_agent.collector.models import Batch
from pvsync_agent.errors import TransportError


@runtime_checkable
class Transport(Protocol):
    """External notification-delivery collaborator."""

    def register_model(self, name: str) -> None: ...

    def unregister_model(self, name: str) -> None: ...

    def submit_notification(self, service_id: str, model_name: str, batch: Batch) -> int: ...


def batch_to_frame(batch: Batch) -> pl.DataFrame:
    """Build a typed DataFrame (one row per reading) from a batch."""
    df = pl.DataFrame(
        batch.to_records(),
        schema={
            "key": pl.Utf8,
            "timestamp": pl.Int64,
            "da": pl.Utf8,
            "value": pl.Float64,
            "unit": pl.Utf8,
        },
    )
    return df.with_columns(
        pl.from_epoch("timestamp", time_unit="ms").dt.replace_time_zone("UTC")
    )


def encode_batch(batch: Batch, compression: str = "zstd") -> bytes:
    """Encode a batch as Parquet bytes."""
    buffer = io.BytesIO()
    batch_to_frame(batch).write_parquet(
        buffer,
        compression=compression,
        statistics=True,
        use_pyarrow=True,
    )
    return buffer.getvalue()


def batch_object_path(model_name: str, batch: Batch, request_id: int) -> str:
    """
    Hive-partitioned relative path for a batch.

    Layout: model={name}/year={y}/month={m}/day={d}/batch_{HHMMSS}_{request_id}.parquet
    Partition values come from the first (oldest) reading in the batch.
    """
    first = batch.readings[0].time if len(batch) else datetime.now(timezone.utc)
    return (
        f"model={model_name}/year={first.year}/month={first.month:02d}/day={first.day:02d}/"
        f"batch_{first.strftime('%H%M%S')}_{request_id:06d}.parquet"
    )


class BaseTransport:
    """
    Model registry and request-id allocation shared by the concrete transports.

    Subclasses implement ``_deliver``; any exception it raises is reported to the
    caller as TransportError.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.registered_models: set[str] = set()
        self._request_ids = itertools.count(1)

    def register_model(self, name: str) -> None:
        if not name:
            raise TransportError("model name is required")
        self.registered_models.add(name)
        self.logger.debug(f"Registered model {name}")

    def unregister_model(self, name: str) -> None:
        self.registered_models.discard(name)
        self.logger.debug(f"Unregistered model {name}")

    def submit_notification(self, service_id: str, model_name: str, batch: Batch) -> int:
        if model_name not in self.registered_models:
            raise TransportError(f"model '{model_name}' is not registered")

        request_id = next(self._request_ids)
        try:
            self._deliver(service_id, model_name, batch, request_id)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"request {request_id} failed: {e}") from e
        return request_id

    def _deliver(self, service_id: str, model_name: str, batch: Batch, request_id: int) -> None:
        raise NotImplementedError


class InMemoryTransport(BaseTransport):
    """Keeps every submitted batch in memory. Used for dry runs."""

    def __init__(self, logger: logging.Logger):
        super().__init__(logger)
        self.submissions: list[tuple[int, str, str, Batch]] = []

    def _deliver(self, service_id: str, model_name: str, batch: Batch, request_id: int) -> None:
        self.submissions.append((request_id, service_id, model_name, batch))


class LocalParquetTransport(BaseTransport):
    """Writes each batch as a Hive-partitioned Parquet file under output_dir."""

    def __init__(self, output_dir: Path, logger: logging.Logger, compression: str = "zstd"):
        super().__init__(logger)
        self.output_dir = Path(output_dir)
        self.compression = compression

    def _deliver(self, service_id: str, model_name: str, batch: Batch, request_id: int) -> None:
        file_path = self.output_dir / batch_object_path(model_name, batch, request_id)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(encode_batch(batch, self.compression))
        self.logger.debug(
            f"Wrote {len(batch)} rows to {file_path.relative_to(self.output_dir)} "
            f"for {service_id}"
        )
