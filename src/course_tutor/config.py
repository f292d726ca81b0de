"""Settings file handling."""
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from course_tutor.errors import ConfigError

APP_DIR = Path.home() / ".course_tutor"
DEFAULT_CONFIG_PATH = str(APP_DIR / "config.yaml")
CONFIG_ENV_VAR = "COURSE_TUTOR_CONFIG"

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    db_path: str = str(APP_DIR / "tutor.db")
    course_path: str = str(APP_DIR / "course.json")
    time_limit_minutes: int = 20
    max_errors: int = 3
    log_file: Optional[str] = str(APP_DIR / "tutor.log")
    log_level: str = "INFO"


def config_path_from_env(default: str = DEFAULT_CONFIG_PATH) -> str:
    return os.environ.get(CONFIG_ENV_VAR) or default


def write_default_config(path: str) -> Settings:
    """Write a settings file holding the defaults and return them."""
    settings = Settings()
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(yaml.safe_dump(asdict(settings), sort_keys=False))
    logger.info("Created default settings file at %s", path)
    return settings


def _validate(settings: Settings) -> Settings:
    for name in ("time_limit_minutes", "max_errors"):
        value = getattr(settings, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    if not isinstance(logging.getLevelName(str(settings.log_level).upper()), int):
        raise ConfigError(f"Unknown log level: {settings.log_level!r}")
    settings.log_level = str(settings.log_level).upper()
    return settings


def load_settings(path: str = DEFAULT_CONFIG_PATH, create: bool = True) -> Settings:
    """Read settings from a YAML file, falling back to defaults when it is missing.

    Args:
        path: Location of the YAML settings file.
        create: Write a file holding the defaults if none exists.

    Returns:
        Validated Settings.
    """
    config_file = Path(path)
    if not config_file.exists():
        logger.warning("Settings file not found: %s", path)
        if create:
            return write_default_config(path)
        return Settings()

    try:
        data = yaml.safe_load(config_file.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse settings file {path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")

    known = {f.name for f in fields(Settings)}
    for key in sorted(set(data) - known):
        logger.warning("Ignoring unknown setting %r in %s", key, path)
    settings = Settings(**{k: v for k, v in data.items() if k in known})
    return _validate(settings)
