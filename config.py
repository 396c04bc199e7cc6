"""Application configuration: YAML file merged over defaults, then environment overrides."""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import yaml

from store.gateway import InMemoryGateway, PersistenceGateway
from store.yaml_gateway import YamlFileGateway

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "finmodel.yaml"

BACKENDS = ("yaml", "memory")

DEFAULTS: Dict = {
    "storage": {
        "backend": "yaml",
        "data_dir": "data",
    },
    "persistence": {
        "debounce_seconds": 1.0,
    },
    "logging": {
        "level": "INFO",
    },
    "display": {
        "currency": "£",
    },
}

# env var -> (section, key)
ENV_OVERRIDES = {
    "FINMODEL_BACKEND": ("storage", "backend"),
    "FINMODEL_DATA_DIR": ("storage", "data_dir"),
    "FINMODEL_DEBOUNCE_SECONDS": ("persistence", "debounce_seconds"),
    "FINMODEL_LOG_LEVEL": ("logging", "level"),
    "FINMODEL_CURRENCY": ("display", "currency"),
}


@dataclass
class AppConfig:
    backend: str = "yaml"
    data_dir: Path = Path("data")
    debounce_seconds: float = 1.0
    log_level: str = "INFO"
    currency: str = "£"


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base; lists are replaced, not merged."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return an object (empty dict for empty files)."""
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _float_or_default(value, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid debounce interval {value!r}, using {default}")
        return default
    return number if number >= 0 else default


def _apply_env(settings: dict, environ: Mapping[str, str]) -> dict:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value not in (None, ""):
            settings = deep_merge(settings, {section: {key: value}})
    return settings


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> AppConfig:
    """
    Build the configuration.

    Order of precedence: environment > config file > DEFAULTS. A missing
    default config file is not an error; an explicit missing path is.
    """
    environ = os.environ if environ is None else environ
    settings = copy.deepcopy(DEFAULTS)

    if path is not None:
        settings = deep_merge(settings, load_yaml_file(Path(path)))
    elif Path(DEFAULT_CONFIG_FILE).exists():
        settings = deep_merge(settings, load_yaml_file(Path(DEFAULT_CONFIG_FILE)))

    settings = _apply_env(settings, environ)

    backend = str(settings["storage"]["backend"]).strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"Unknown storage backend {backend!r} (expected one of {', '.join(BACKENDS)})")

    default_delay = DEFAULTS["persistence"]["debounce_seconds"]
    return AppConfig(
        backend=backend,
        data_dir=Path(settings["storage"]["data_dir"]),
        debounce_seconds=_float_or_default(settings["persistence"]["debounce_seconds"], default_delay),
        log_level=str(settings["logging"]["level"]).upper(),
        currency=str(settings["display"]["currency"]),
    )


def configure_logging(config: AppConfig) -> None:
    level = getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def build_gateway(config: AppConfig) -> PersistenceGateway:
    if config.backend == "memory":
        return InMemoryGateway()
    return YamlFileGateway(config.data_dir)
