"""Tests for kcore/config.py and kcore/result.py."""

import logging

import pytest

import kcore.config
from kcore import Err, Ok
from kcore.config import LOG_LEVEL_VAR, Settings, configure_logging, configure_logging_from_env


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(kcore.config, "load_dotenv", lambda: False)


@pytest.fixture
def kcore_logger():
    logger = logging.getLogger("kcore")
    level, handlers = logger.level, list(logger.handlers)
    yield logger
    logger.setLevel(level)
    logger.handlers = handlers


class TestSettings:
    def test_default(self, monkeypatch):
        monkeypatch.delenv(LOG_LEVEL_VAR, raising=False)
        assert Settings.from_env() == Ok(Settings(log_level="WARNING"))

    @pytest.mark.parametrize("raw", ["debug", " Info ", "ERROR"])
    def test_level_is_normalized(self, monkeypatch, raw):
        monkeypatch.setenv(LOG_LEVEL_VAR, raw)
        match Settings.from_env():
            case Ok(settings):
                assert settings.log_level == raw.strip().upper()
            case Err(error):
                pytest.fail(f"Unexpected error: {error}")

    def test_invalid_level(self, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_VAR, "LOUD")
        result = Settings.from_env()
        assert isinstance(result, Err)
        assert isinstance(result.error, ValueError)
        with pytest.raises(ValueError, match=LOG_LEVEL_VAR):
            result.unwrap()


class TestConfigureLogging:
    def test_sets_level(self, kcore_logger):
        logger = configure_logging(Settings(log_level="DEBUG"))
        assert logger is kcore_logger
        assert logger.level == logging.DEBUG
        assert logger.handlers

    def test_handler_added_once(self, kcore_logger):
        kcore_logger.handlers = []
        configure_logging()
        configure_logging()
        assert len(kcore_logger.handlers) == 1
        assert kcore_logger.level == logging.WARNING

    def test_from_env(self, monkeypatch, kcore_logger):
        monkeypatch.setenv(LOG_LEVEL_VAR, "info")
        assert configure_logging_from_env().level == logging.INFO

    def test_from_env_rejects_bad_level(self, monkeypatch, kcore_logger):
        monkeypatch.setenv(LOG_LEVEL_VAR, "LOUD")
        with pytest.raises(ValueError):
            configure_logging_from_env()
