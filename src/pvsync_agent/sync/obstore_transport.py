"""
Cloud transport: each batch becomes one Parquet object in S3-compatible, GCS or
Azure storage, written with obstore under the same Hive path as local batches.
"""

import logging
from typing import Any

from obstore.store import AzureStore, GCSStore, S3Store

from pvsync_agent.collector.models import Batch
from pvsync_agent.config.settings import StorageConfig
from pvsync_agent.errors import StartupError, TransportError
from pvsync_agent.sync.transport import BaseTransport, batch_object_path, encode_batch
from pvsync_agent.utils.logging import log_status

# Providers whose endpoint can be derived from the region
REGIONAL_ENDPOINTS = {
    "wasabi": ("https://s3.{region}.wasabisys.com", "us-east-1"),
    "backblaze": ("https://s3.{region}.backblazeb2.com", "us-west-004"),
    "hetzner": ("https://{region}.your-objectstorage.com", "fsn1"),
}

PATH_STYLE_PROVIDERS = ("r2", "minio", "wasabi", "backblaze", "hetzner")


def _is_network_error(error: Exception) -> bool:
    message = str(error).lower()
    return "connection" in message or "network" in message or "timed out" in message


class ObstoreTransport(BaseTransport):
    """
    Upload batches to object storage.

    Store construction errors are fatal (StartupError); upload errors are
    reported per request as TransportError and flip the transport offline until
    the next successful put.
    """

    def __init__(
        self,
        config: StorageConfig,
        logger: logging.Logger,
        compression: str = "zstd",
        store: S3Store | GCSStore | AzureStore | None = None,
    ):
        super().__init__(logger)
        self.config = config
        self.compression = compression
        self.is_offline = False
        self.store = store if store is not None else self._init_store()

    def _init_store(self) -> S3Store | GCSStore | AzureStore:
        """Initialize object store based on configured provider."""
        provider = self.config.storage_provider
        if not self.config.storage_bucket:
            raise StartupError("storage_bucket is required for the cloud transport")

        try:
            if provider == "gcs":
                store = self._init_gcs()
            elif provider == "azure":
                store = self._init_azure()
            else:
                store = self._init_s3_compatible(provider)
        except StartupError:
            raise
        except Exception as e:
            raise StartupError(f"Failed to initialize {provider} store: {e}") from e

        log_status(f"Connected to {provider}: {self._url()}", self.logger, "CLOUD")
        return store

    def _url(self, scheme: str = "s3") -> str:
        url = f"{scheme}://{self.config.storage_bucket}"
        if self.config.storage_prefix:
            url = f"{url}/{self.config.storage_prefix.strip('/')}"
        return url

    def _init_s3_compatible(self, provider: str) -> S3Store:
        """Initialize S3 or an S3-compatible store (R2, MinIO, Wasabi, ...)."""
        config_dict: dict[str, Any] = {}
        if self.config.storage_region:
            config_dict["aws_region"] = self.config.storage_region

        endpoint = self._get_endpoint(provider)
        if endpoint:
            config_dict["aws_endpoint"] = endpoint
        if provider in PATH_STYLE_PROVIDERS:
            config_dict["aws_virtual_hosted_style_request"] = "false"
        if provider == "minio" and endpoint and endpoint.startswith("http://"):
            config_dict["aws_allow_http"] = "true"

        # Static credentials bypass the AWS chain (and its IMDS timeout on non-EC2 hosts)
        credential_provider = None
        if self.config.aws_access_key_id and self.config.aws_secret_access_key:
            access_key = self.config.aws_access_key_id
            secret_key = self.config.aws_secret_access_key

            def get_credentials() -> dict[str, Any]:
                return {
                    "access_key_id": access_key,
                    "secret_access_key": secret_key,
                    "token": None,
                    "expires_at": None,
                }

            credential_provider = get_credentials
        else:
            config_dict["skip_signature"] = "true"

        return S3Store.from_url(
            self._url("s3"), config=config_dict, credential_provider=credential_provider
        )

    def _init_gcs(self) -> GCSStore:
        config_dict: dict[str, Any] = {}
        if self.config.gcs_service_account_path:
            config_dict["google_service_account_path"] = self.config.gcs_service_account_path
        return GCSStore.from_url(self._url("gs"), config=config_dict)

    def _init_azure(self) -> AzureStore:
        account = self.config.azure_storage_account
        if not account:
            raise StartupError("azure_storage_account is required")

        config_dict: dict[str, Any] = {"azure_storage_account_name": account}
        if self.config.azure_storage_key:
            config_dict["azure_storage_account_key"] = self.config.azure_storage_key
        elif self.config.azure_sas_token:
            config_dict["azure_storage_sas_key"] = self.config.azure_sas_token
        return AzureStore.from_url(self._url("az"), config=config_dict)

    def _get_endpoint(self, provider: str) -> str | None:
        """User-provided endpoint first, then the provider's regional default."""
        if self.config.storage_endpoint:
            return self.config.storage_endpoint

        if provider == "r2":
            self.logger.warning(
                "R2 requires PVSYNC_STORAGE_ENDPOINT with your account ID. "
                "Format: https://<account_id>.r2.cloudflarestorage.com"
            )
            return None

        if provider in REGIONAL_ENDPOINTS:
            template, default_region = REGIONAL_ENDPOINTS[provider]
            return template.format(region=self.config.storage_region or default_region)

        return None

    def _deliver(self, service_id: str, model_name: str, batch: Batch, request_id: int) -> None:
        path = batch_object_path(model_name, batch, request_id)
        try:
            self.store.put(path, encode_batch(batch, self.compression))
        except Exception as e:
            if _is_network_error(e):
                if not self.is_offline:
                    self.logger.warning(f"Network error - going offline: {e}")
                self.is_offline = True
            raise TransportError(f"upload of {path} failed: {e}") from e

        if self.is_offline:
            self.logger.info("Network restored - back online")
            self.is_offline = False
        self.logger.debug(f"Uploaded {len(batch)} readings to {path} for {service_id}")
