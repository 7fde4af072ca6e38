"""
Schedule and settings tests.
"""

import pytest
from pydantic import ValidationError

from pvsync_agent.config.settings import (
    AgentConfig,
    ScheduleConfig,
    StorageConfig,
    load_schedule_config,
)


def write_schedule(tmp_path, text):
    path = tmp_path / "pvdemo.conf"
    path.write_text(text)
    return path


def test_missing_schedule_file_uses_defaults(tmp_path, logger):
    config = load_schedule_config(tmp_path / "missing.conf", logger)
    assert config.sampling_interval_seconds == 10
    assert config.upload_interval_seconds == 30


@pytest.mark.parametrize("text", ["", "abc def", "5", "5 x", "1 2 3", "0 30", "-5 30", "5 0"])
def test_malformed_schedule_uses_defaults(tmp_path, logger, text):
    config = load_schedule_config(write_schedule(tmp_path, text), logger)
    assert (config.sampling_interval_seconds, config.upload_interval_seconds) == (10, 30)


def test_valid_schedule(tmp_path, logger):
    config = load_schedule_config(write_schedule(tmp_path, "5 60\n"), logger)
    assert (config.sampling_interval_seconds, config.upload_interval_seconds) == (5, 60)
    assert not config.intervals_equal


def test_sampling_clamped_to_upload(tmp_path, logger):
    config = load_schedule_config(write_schedule(tmp_path, "5 3"), logger)
    assert config.sampling_interval_seconds == 3
    assert config.upload_interval_seconds == 3
    assert config.intervals_equal


def test_schedule_is_immutable():
    config = ScheduleConfig(sampling_interval_seconds=1, upload_interval_seconds=2)
    with pytest.raises(ValidationError):
        config.sampling_interval_seconds = 5


def test_schedule_rejects_non_positive_interval():
    with pytest.raises(ValidationError):
        ScheduleConfig(sampling_interval_seconds=0, upload_interval_seconds=2)


def test_agent_config_from_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PVSYNC_RECORD_PATH", str(tmp_path / "rec.txt"))
    monkeypatch.setenv("PVSYNC_TRANSPORT", "MEMORY")

    config = AgentConfig()

    assert config.record_path == tmp_path / "rec.txt"
    assert config.transport == "memory"
    assert config.model_name == "SensingData"


def test_agent_config_rejects_unknown_transport(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValidationError):
        AgentConfig(transport="carrier-pigeon")


def test_storage_provider_validated(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    assert StorageConfig(storage_provider="GCS").storage_provider == "gcs"
    with pytest.raises(ValidationError):
        StorageConfig(storage_provider="dropbox")
