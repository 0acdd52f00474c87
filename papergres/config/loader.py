"""
Configuration file discovery and loading.

Files are YAML. String values may reference the environment as ${NAME} or
${NAME:-fallback}; PAPERGRES_* variables are applied afterwards by
PapergresConfig itself.
"""

import os
import re
from pathlib import Path
from typing import Any, Mapping

import structlog
import yaml

from papergres.config.models import PapergresConfig

logger = structlog.get_logger()

CONFIG_PATH_ENV = "PAPERGRES_CONFIG"

DEFAULT_CONFIG_PATHS = [
    Path("config/papergres.yaml"),
    Path("papergres.yaml"),
    Path.home() / ".papergres" / "papergres.yaml",
]

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<fallback>[^}]*))?\}")


def expand_env(value: Any) -> Any:
    """Replace ${NAME} and ${NAME:-fallback} in every string inside value."""
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group("name"), m.group("fallback") or ""),
            value,
        )
    if isinstance(value, Mapping):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def find_config_file() -> Path | None:
    """
    Locate the configuration file.

    $PAPERGRES_CONFIG wins when set; otherwise the first existing default
    path is used.
    """
    explicit = os.environ.get(CONFIG_PATH_ENV)
    if explicit:
        return Path(explicit)
    return next((path for path in DEFAULT_CONFIG_PATHS if path.is_file()), None)


def read_config_file(path: Path) -> dict[str, Any]:
    """
    Parse a YAML configuration file with environment references expanded.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the document is not a mapping
    """
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    document = yaml.safe_load(path.read_text()) or {}
    if not isinstance(document, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return expand_env(document)


def merge_settings(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base; nested sections merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_settings(current, value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_path: str | Path | None = None,
    override_values: Mapping[str, Any] | None = None,
) -> PapergresConfig:
    """
    Load papergres configuration.

    Args:
        config_path: YAML file to read; found with find_config_file() when None.
            Without any file, environment variables and defaults apply.
        override_values: Settings merged over the file (e.g. CLI options)

    Returns:
        Validated PapergresConfig

    Raises:
        FileNotFoundError: If the configuration file does not exist
        ValidationError: If configuration is invalid
    """
    path = Path(config_path) if config_path is not None else find_config_file()

    settings: dict[str, Any] = {}
    if path is not None:
        settings = read_config_file(path)
        logger.debug("config_loaded", path=str(path))

    if override_values:
        settings = merge_settings(settings, override_values)

    return PapergresConfig(**settings)
