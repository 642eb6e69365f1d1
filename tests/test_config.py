import logging

import pytest

from fingerprinter.config import AppConfig, AudioConfig, HashConfig
from fingerprinter.logging_config import set_level, setup_logger


@pytest.fixture(autouse=True)
def restore_log_levels():
    yield
    set_level("INFO")


def test_defaults():
    config = AppConfig.from_env({})

    assert config.environment == "dev"
    assert config.debug is True
    assert config.port == 5000
    assert config.database.storage_prefix == "songs"
    assert config.audio == AudioConfig()
    assert config.hashing == HashConfig()


def test_values_from_environment():
    config = AppConfig.from_env(
        {
            "ENVIRONMENT": "production",
            "PORT": "8080",
            "LOG_LEVEL": "warning",
            "DATABASE_PATH": "/tmp/fp.sqlite3",
            "STORAGE_PATH": "/tmp/objects",
            "S3_BUCKET": "uploads",
        }
    )

    assert config.debug is False
    assert config.port == 8080
    assert config.log_level == "WARNING"
    assert config.database.db_path == "/tmp/fp.sqlite3"
    assert config.database.storage_path == "/tmp/objects"
    assert config.database.storage_prefix == "uploads"


def test_pipeline_constants():
    audio = AudioConfig()
    hashing = HashConfig()

    assert (audio.target_sample_rate, audio.window_size, audio.hop_size) == (16000, 2048, 512)
    assert audio.max_file_size == 10 * 1024 * 1024
    assert hashing.freq1_bits + hashing.freq2_bits + hashing.delta_bits == 32


def test_setup_logger_reads_level_from_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "error")

    logger = setup_logger("fingerprinter.tests.env_level")

    assert logger.level == logging.ERROR
    assert len(logger.handlers) == 1


def test_setup_logger_does_not_duplicate_handlers():
    first = setup_logger("fingerprinter.tests.dupes", level=logging.INFO)
    second = setup_logger("fingerprinter.tests.dupes", level=logging.INFO)

    assert first is second
    assert len(second.handlers) == 1


def test_set_level_applies_to_package_loggers():
    package_logger = setup_logger("fingerprinter.tests.set_level", level=logging.INFO)
    other_logger = setup_logger("elsewhere.tests.set_level", level=logging.INFO)

    set_level("WARNING")

    assert package_logger.level == logging.WARNING
    assert package_logger.handlers[0].level == logging.WARNING
    assert other_logger.level == logging.INFO


def test_main_applies_configured_log_level(monkeypatch):
    import main

    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setattr(main, "create_app", lambda config: FakeApp())

    main.main()

    assert logging.getLogger("fingerprinter.audio_utils").level == logging.ERROR


class FakeApp:
    def run(self, **kwargs):
        self.kwargs = kwargs
