"""
Configuration management using Pydantic Settings.
Supports environment variables and .env files for the agent, plus the
two-integer schedule file read once at startup.
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SAMPLING_INTERVAL = 10
DEFAULT_UPLOAD_INTERVAL = 30

DEFAULT_RECORD_PATH = Path("/tmp/sensordata.txt")
DEFAULT_SCHEDULE_PATH = Path("/tmp/pvdemo.conf")

VALID_PROVIDERS = {"s3", "r2", "gcs", "azure", "minio", "wasabi", "backblaze", "hetzner"}
VALID_TRANSPORTS = {"local", "cloud", "memory"}


class ScheduleConfig(BaseModel):
    """Sampling and upload periods. Immutable for the process lifetime."""

    model_config = ConfigDict(frozen=True)

    sampling_interval_seconds: int = Field(default=DEFAULT_SAMPLING_INTERVAL, ge=1)
    upload_interval_seconds: int = Field(default=DEFAULT_UPLOAD_INTERVAL, ge=1)

    @model_validator(mode="before")
    @classmethod
    def clamp_sampling(cls, data: Any) -> Any:
        """Sampling never runs slower than upload: clamp it down to the upload period."""
        if isinstance(data, dict):
            sampling = data.get("sampling_interval_seconds", DEFAULT_SAMPLING_INTERVAL)
            upload = data.get("upload_interval_seconds", DEFAULT_UPLOAD_INTERVAL)
            if isinstance(sampling, int) and isinstance(upload, int) and sampling > upload:
                data = {**data, "sampling_interval_seconds": upload}
        return data

    @property
    def intervals_equal(self) -> bool:
        """True when one trigger performs both sampling and upload."""
        return self.sampling_interval_seconds == self.upload_interval_seconds


def _parse_schedule_line(text: str) -> tuple[int, int] | None:
    """Parse '<sampling> <upload>' into two positive ints, or None if malformed."""
    fields = text.split()
    if len(fields) != 2:
        return None
    try:
        sampling, upload = int(fields[0]), int(fields[1])
    except ValueError:
        return None
    if sampling < 1 or upload < 1:
        return None
    return sampling, upload


def load_schedule_config(
    path: Path = DEFAULT_SCHEDULE_PATH, logger: logging.Logger | None = None
) -> ScheduleConfig:
    """
    Load the schedule from a one-line config file.

    The file holds two whitespace-delimited integers: sampling and upload seconds.
    Defaults (10, 30) are used when the file is missing, unreadable or malformed.
    The sampling interval is clamped down to the upload interval.

    Args:
        path: Schedule file location
        logger: Optional logger for the resulting intervals

    Returns:
        ScheduleConfig
    """
    logger = logger or logging.getLogger("pvsync")
    parsed = None
    try:
        parsed = _parse_schedule_line(Path(path).read_text(encoding="ascii", errors="replace"))
        if parsed is None:
            logger.warning(f"Malformed schedule file {path}, using defaults")
    except OSError:
        logger.debug(f"No schedule file at {path}, using defaults")

    if parsed is None:
        config = ScheduleConfig()
    else:
        config = ScheduleConfig(
            sampling_interval_seconds=parsed[0], upload_interval_seconds=parsed[1]
        )

    logger.debug(
        f"sensing interval sec={config.sampling_interval_seconds}, "
        f"upload interval sec={config.upload_interval_seconds}"
    )
    return config


class AgentConfig(BaseSettings):
    """Agent identity, file locations and transport selection."""

    # Application identity
    urn: str = Field(default="pvdemo", description="Application URN used in the service id")
    service_name: str = Field(
        default="upload-sensing-data", description="Notification service name"
    )
    model_name: str = Field(default="SensingData", description="Model registered for batches")

    # Inputs
    record_path: Path = Field(
        default=DEFAULT_RECORD_PATH, description="Sensor record file rewritten by the reader"
    )
    schedule_path: Path = Field(
        default=DEFAULT_SCHEDULE_PATH, description="Two-integer schedule file"
    )

    # Output
    transport: str = Field(default="local", description="Transport: local, cloud or memory")
    output_dir: Path = Field(default=Path("output"), description="Directory for local batches")
    compression: str = Field(
        default="zstd", description="Compression codec for Parquet batches (snappy, zstd, gzip)"
    )
    flush_on_stop: bool = Field(
        default=False, description="Upload buffered readings once more when stopping"
    )

    model_config = SettingsConfigDict(
        env_prefix="PVSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    @field_validator("output_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Path | str) -> Path:
        """Expand ~ and resolve output paths."""
        return Path(v).expanduser().resolve()

    @field_validator("transport")
    @classmethod
    def validate_transport(cls, v: str) -> str:
        """Validate transport kind is supported."""
        v_lower = v.lower()
        if v_lower not in VALID_TRANSPORTS:
            raise ValueError(
                f"Invalid transport '{v}'. Must be one of: {', '.join(sorted(VALID_TRANSPORTS))}"
            )
        return v_lower


class StorageConfig(BaseSettings):
    """
    Object storage target for the cloud transport.

    ``storage_provider`` is one of VALID_PROVIDERS; r2, minio, wasabi, backblaze
    and hetzner are reached through the S3 protocol.
    """

    storage_provider: str = Field(default="s3", description="Storage provider")
    storage_bucket: str | None = Field(default=None, description="Bucket/container name")
    storage_prefix: str | None = Field(default=None, description="Prefix/path within bucket")
    storage_region: str = Field(default="us-west-2", description="Storage region")
    storage_endpoint: str | None = Field(default=None, description="Custom endpoint URL")

    # S3-compatible credentials
    aws_access_key_id: str | None = Field(default=None, description="Access key ID")
    aws_secret_access_key: str | None = Field(default=None, description="Secret access key")

    # Google Cloud Storage credentials
    gcs_service_account_path: str | None = Field(
        default=None, description="Path to GCS service account JSON file"
    )

    # Azure credentials
    azure_storage_account: str | None = Field(default=None, description="Azure storage account")
    azure_storage_key: str | None = Field(default=None, description="Azure storage account key")
    azure_sas_token: str | None = Field(default=None, description="Azure SAS token")

    model_config = SettingsConfigDict(
        env_prefix="PVSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("storage_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """Validate storage provider is supported."""
        v_lower = v.lower()
        if v_lower not in VALID_PROVIDERS:
            raise ValueError(
                f"Invalid provider '{v}'. Must be one of: {', '.join(sorted(VALID_PROVIDERS))}"
            )
        return v_lower


class AppConfig(BaseSettings):
    """Application-wide configuration."""

    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Path = Field(default=Path("logs"), description="Directory for log files")

    model_config = SettingsConfigDict(
        env_prefix="PVSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Path | str) -> Path:
        """Expand ~ and resolve log paths."""
        return Path(v).expanduser().resolve()
