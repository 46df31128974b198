"""Runtime settings, read from the environment.

The library never configures logging on import. Applications (and the test
suite) call ``configure_logging(Settings.from_env())`` when they want kcore's
diagnostics, e.g. the warnings emitted when unsafe predicate conversion
abstracts a #Ceil into a variable.

Recognized variables (a .env file in the working directory is honored):
  KCORE_LOG_LEVEL   DEBUG | INFO | WARNING | ERROR | CRITICAL  (default WARNING)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .result import Err, Ok, Result

LOG_LEVEL_VAR = "KCORE_LOG_LEVEL"
LOG_FORMAT = "%(name)s %(levelname)s: %(message)s"

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Result[Settings, Exception]:
        """Load settings from the environment and the .env file, if any."""
        load_dotenv()
        level = os.getenv(LOG_LEVEL_VAR)

        match level:
            case None:
                return Ok(cls())
            case str(name) if name.strip().upper() in _LEVELS:
                return Ok(cls(log_level=name.strip().upper()))
            case _:
                return Err(ValueError(f"{LOG_LEVEL_VAR} must be one of {', '.join(_LEVELS)}, got {level!r}"))


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    """Attach a stream handler to the ``kcore`` logger at the configured level."""
    settings = settings or Settings()
    logger = logging.getLogger("kcore")
    logger.setLevel(settings.log_level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


def configure_logging_from_env() -> logging.Logger:
    """configure_logging with settings from the environment; raises on bad settings."""
    return configure_logging(Settings.from_env().unwrap())
