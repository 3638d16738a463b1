# fastfiles/config/loader.py
"""
Handles loading and merging of configuration defaults from TOML files and the
environment, before command-line options are layered on top.
"""
import os
import toml
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import structlog

from fastfiles.exceptions import ConfigError

from .settings import IGNORE_PATTERN_ENV_VAR, WalkStrategy

log = structlog.get_logger(__name__)

PROJECT_CONFIG_FILENAMES = [".fastfiles.toml", "fastfiles.toml", "pyproject.toml"]
USER_CONFIG_DIR = Path.home() / ".config" / "fastfiles"
USER_CONFIG_FILE = USER_CONFIG_DIR / "config.toml"

# toml key -> (WalkOptions attribute, expected python type)
CONFIG_KEY_TO_OPTION_ATTR_MAP: Dict[str, Tuple[str, type]] = {
    "ignore": ("ignore_pattern", str),
    "ignore_globs": ("ignore_globs", list),
    "match": ("match_pattern", str),
    "skip_hidden": ("skip_hidden", bool),
    "async": ("strategy", bool),
    "workers": ("workers", int),
    "absolute": ("absolute", bool),
    "sort": ("sort", bool),
    "max": ("max_results", int),
    "directories": ("directories_only", bool),
    "progress": ("progress", bool),
}

def _load_toml_file_data(file_path: Path) -> Dict[str, Any]:
    if not file_path.is_file():
        return {}
    log.debug("loading_toml_config_file", path=str(file_path))
    try:
        data = toml.load(file_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"could not read config file {file_path}: {e}")
    if file_path.name == "pyproject.toml":
        return data.get("tool", {}).get("fastfiles", {})
    return data

def load_and_merge_configs(cwd: Optional[Path] = None) -> Dict[str, Any]:
    # user-global settings first, then the first project-local file found in cwd.
    merged: Dict[str, Any] = {}
    if USER_CONFIG_FILE.is_file():
        log.info("loading_user_global_config", path=str(USER_CONFIG_FILE))
        merged.update(_load_toml_file_data(USER_CONFIG_FILE))

    search_dir = cwd if cwd is not None else Path.cwd()
    for filename in PROJECT_CONFIG_FILENAMES:
        candidate = search_dir / filename
        if not candidate.is_file():
            continue
        project_settings = _load_toml_file_data(candidate)
        if project_settings:
            log.info("loading_project_local_config", path=str(candidate))
            merged.update(project_settings)
            break

    if not merged:
        log.debug("no_configuration_files_loaded")
    return merged

def config_to_option_values(raw: Dict[str, Any]) -> Dict[str, Any]:
    # converts raw toml values into WalkOptions keyword arguments, checking types.
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in CONFIG_KEY_TO_OPTION_ATTR_MAP:
            log.warning("unknown_config_key_ignored", key=key)
            continue
        attr, expected = CONFIG_KEY_TO_OPTION_ATTR_MAP[key]
        # bool is an int subclass; an int field must not silently accept true/false.
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ConfigError(
                f"config key '{key}' expects {expected.__name__}, got {type(value).__name__}"
            )
        if key == "async":
            values[attr] = WalkStrategy.CONCURRENT if value else WalkStrategy.SEQUENTIAL
        elif key == "ignore_globs":
            if not all(isinstance(g, str) for g in value):
                raise ConfigError("config key 'ignore_globs' expects a list of strings")
            values[attr] = tuple(value)
        else:
            values[attr] = value
    return values

def ignore_pattern_from_env(var_name: str = IGNORE_PATTERN_ENV_VAR) -> Optional[str]:
    # an unset or empty variable means "no override".
    value = os.environ.get(var_name)
    if not value:
        return None
    log.debug("ignore_pattern_from_environment", variable=var_name)
    return value
