"""Layered TOML loading for Tandem.

`config/default.toml` is required and `config/{TANDEM_ENV}.toml` is laid
over it. Tables merge key by key. Arrays of tables such as
`[[pacing.topics]]` merge by position, so an environment file can retune
the thresholds of the first few topics without repeating their prompt
text. Plain arrays like `api.cors_origins` are replaced.

An overlay cannot shorten an array of tables. Replace the whole list with
an environment variable instead, e.g. `TANDEM_PACING__TOPICS='[...]'`.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "TANDEM_CONFIG_DIR"
ENVIRONMENT_ENV = "TANDEM_ENV"
DEFAULT_FILE = "default.toml"


def get_config_dir() -> Path:
    """Locate the directory holding default.toml.

    TANDEM_CONFIG_DIR wins when set and must exist. Otherwise the working
    directory and its parents are searched for `config/default.toml`.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        path = Path(override)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {override}")
        return path

    cwd = Path.cwd()
    for base in [cwd, *cwd.parents][:5]:
        if (base / "config" / DEFAULT_FILE).exists():
            return base / "config"
    return Path("config")


def get_environment() -> str:
    return os.environ.get(ENVIRONMENT_ENV, "development")


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file does not exist
        tomllib.TOMLDecodeError: On invalid syntax
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    with file_path.open("rb") as f:
        return tomllib.load(f)


def _is_table_array(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(v, dict) for v in value)


def _merge_table_arrays(
    base: list[dict[str, Any]], overlay: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    merged = [deep_merge(b, o) for b, o in zip(base, overlay, strict=False)]
    merged.extend(base[len(overlay) :])
    merged.extend(overlay[len(base) :])
    return merged


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Lay `override` over `base` without mutating either."""
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        elif _is_table_array(current) and _is_table_array(value):
            result[key] = _merge_table_arrays(current, value)
        else:
            result[key] = value
    return result


def load_config() -> dict[str, Any]:
    """Merge default.toml with the current environment's overlay, if any."""
    config_dir = get_config_dir()
    default_path = config_dir / DEFAULT_FILE
    if not default_path.exists():
        raise FileNotFoundError(
            f"Default configuration file not found: {default_path}. "
            f"Create config/{DEFAULT_FILE} or set {CONFIG_DIR_ENV}."
        )

    config = load_toml(default_path)
    overlay = config_dir / f"{get_environment()}.toml"
    if overlay.exists():
        config = deep_merge(config, load_toml(overlay))
    return config
