"""Konfiguration och loggning för Cargus Connector.

Konfigurationen läses från config/config.yaml. ${ENV_VAR} ersätts med
miljövariabler så att subscription key inte behöver ligga i filen.
"""

import logging
import logging.handlers
import os
import re
from pathlib import Path
from typing import Optional

import yaml

from .carriers.cargus import (
    DEFAULT_BASE_URL,
    DEFAULT_COUNTRY_ID,
    DEFAULT_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

_ENV_PATTERN = re.compile(r'\$\{(\w+)\}')

LOG_FILE_NAME = "cargus_connector"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
# Attribut som markerar handlers installerade av setup_logging
_HANDLER_MARK = "_cargus_connector_handler"


class ConfigError(ValueError):
    """Saknad eller ogiltig konfiguration."""


def load_config(path: Optional[Path] = None) -> dict:
    """Laddar YAML-konfiguration med miljövariabelersättning."""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise ConfigError(f"Konfigurationsfil saknas: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw = f.read()

    # Ersätt ${ENV_VAR} med miljövariabler (okända lämnas orörda)
    def replace_env(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    resolved = _ENV_PATTERN.sub(replace_env, raw)
    return yaml.safe_load(resolved) or {}


def load_cargus_config(config: dict) -> dict:
    """Validerar cargus-sektionen och fyller i standardvärden."""
    section = config.get("cargus")
    if not isinstance(section, dict):
        raise ConfigError("Sektionen 'cargus' saknas i konfigurationen")

    key = section.get("subscription_key")
    if not key or not isinstance(key, str):
        raise ConfigError("cargus.subscription_key saknas")
    if _ENV_PATTERN.fullmatch(key.strip()):
        raise ConfigError(
            f"cargus.subscription_key är inte satt (miljövariabel {key} saknas)"
        )

    return {
        "base_url": section.get("base_url", DEFAULT_BASE_URL),
        "subscription_key": key,
        "timeout_seconds": section.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
        "country_id": section.get("country_id", DEFAULT_COUNTRY_ID),
        "label_dir": section.get("label_dir", "."),
        "trace": section.get("trace", True),
    }


def _rotating_handler(path: Path, log_config: dict,
                      formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=log_config.get("max_file_size_mb", 10) * 1024 * 1024,
        backupCount=log_config.get("backup_count", 30),
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: dict) -> list:
    """Konfigurerar loggning med roterande filer.

    Handlers från ett tidigare anrop tas bort och stängs först, så att
    funktionen kan anropas igen (t.ex. efter omladdad konfiguration)
    utan dubbla loggposter.

    Loggfilerna heter <file_name>.log och <file_name>_errors.log, där
    file_name läses från logging.file_name (default "cargus_connector").

    Returns:
        De handlers som lades till på root-loggern.
    """
    log_config = config.get("logging", {})
    log_dir = Path(log_config.get("log_dir", "."))
    log_dir.mkdir(parents=True, exist_ok=True)
    base_name = log_config.get("file_name", LOG_FILE_NAME)
    level = getattr(logging, log_config.get("level", "INFO").upper())

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers = [_rotating_handler(log_dir / f"{base_name}.log",
                                  log_config, formatter)]
    error_handler = _rotating_handler(log_dir / f"{base_name}_errors.log",
                                      log_config, formatter)
    error_handler.setLevel(logging.ERROR)
    handlers.append(error_handler)

    if log_config.get("console_output", True):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        handlers.append(console)

    root = logging.getLogger()
    for old in [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]:
        root.removeHandler(old)
        old.close()

    root.setLevel(level)
    for handler in handlers:
        setattr(handler, _HANDLER_MARK, True)
        root.addHandler(handler)

    logger.debug(
        f"Loggning konfigurerad: nivå {logging.getLevelName(level)}, "
        f"{log_dir / base_name}.log"
    )
    return handlers
