"""Runtime settings for the batch driver and the upload app.

Every value comes from an environment variable, falling back to a default.
The 855 parser itself takes no configuration.
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "EDI855_"


@dataclass(frozen=True)
class Settings:
    db_path: Optional[str] = None
    job_id: str = "local"
    max_workers: int = 4
    log_level: str = "INFO"
    max_upload_mb: int = 50
    upload_dir: str = os.path.join(os.path.dirname(os.path.abspath(__file__)), "uploads")


def _env(name, default=None):
    value = os.environ.get(ENV_PREFIX + name)
    return default if value is None or value == "" else value


def _env_int(name, default):
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring invalid %s%s=%r, using %s", ENV_PREFIX, name, value, default)
        return default


def _env_log_level(name, default):
    value = _env(name, default).upper()
    if not isinstance(logging.getLevelName(value), int):
        logger.warning("Ignoring invalid %s%s=%r, using %s", ENV_PREFIX, name, value, default)
        return default
    return value


def load_settings():
    defaults = Settings()
    return Settings(
        db_path=_env("DB_PATH", defaults.db_path),
        job_id=_env("JOB_ID", defaults.job_id),
        max_workers=max(1, _env_int("MAX_WORKERS", defaults.max_workers)),
        log_level=_env_log_level("LOG_LEVEL", defaults.log_level),
        max_upload_mb=_env_int("MAX_UPLOAD_MB", defaults.max_upload_mb),
        upload_dir=_env("UPLOAD_DIR", defaults.upload_dir),
    )


def configure_logging(level="INFO", log_file=None):
    """Send log records to stdout (and optionally a file) at ``level``."""
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
