"""
tiergate Configuration Loader.

Loads configuration from .tiergate/config.yaml and validates it against
the packaged JSON schema.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema
import yaml

from tiergate.errors import ConfigError
from tiergate.utils.repo import MARKER_DIR

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent.parent / "schemas" / "config.schema.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "version": 1,
    "aliases": {"@/": "src/", "~/": "src/"},
    "tsconfig": "tsconfig.json",
    "tiers_file": None,
    "workers": 0,
    "severity": "hard",
    "format": "table",
    "skip_dirs": [
        ".git", "node_modules", ".next", ".nuxt", "dist", "build",
        "coverage", ".turbo", ".vercel", "storybook-static", MARKER_DIR,
    ],
    "source_extensions": [".tsx", ".ts", ".jsx", ".js"],
    "interactive_components": [
        "Button", "IconButton", "Input", "Textarea", "Select", "Checkbox",
        "Switch", "RadioGroup", "Slider", "Combobox", "Listbox", "Menu",
        "DropdownMenu", "Dialog", "Tabs", "Link",
    ],
}


def config_path_for(repo_root: Path) -> Path:
    """Return the location of config.yaml for a repository."""
    return repo_root / MARKER_DIR / "config.yaml"


def load_tiergate_config(repo_root: Path, config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load .tiergate/config.yaml merged over DEFAULT_CONFIG.

    Args:
        repo_root: Repository root path
        config_path: Explicit config file (default: .tiergate/config.yaml)

    Returns:
        Validated configuration dict with defaults applied

    Raises:
        ConfigError: If the file cannot be parsed or fails schema validation.
            An explicit config_path that does not exist is also an error;
            a missing default file is not.

    Example config:
        aliases:
          "@/": src/
        workers: 4
        severity: hard
        interactive_components:
          - Button
          - Combobox
    """
    explicit = config_path is not None
    path = config_path or config_path_for(repo_root)

    if not path.exists():
        if explicit:
            raise ConfigError(f"Config not found: {path}")
        logger.debug("No config at %s, using defaults", path)
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(path, encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if not isinstance(user_config, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    validate_config(user_config, source=path)

    config = merge_config(DEFAULT_CONFIG, user_config)
    logger.debug("Loaded config from %s", path)
    return config


def merge_config(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge user config over defaults.

    Mappings merge key by key (so a user alias adds to the default aliases);
    every other value replaces the default outright.
    """
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Dict[str, Any], source: Optional[Path] = None) -> None:
    """
    Validate a config mapping against schemas/config.schema.json.

    Raises:
        ConfigError: With the offending key path and schema message.
    """
    with open(SCHEMA_PATH, encoding="utf-8") as f:
        schema = json.load(f)

    try:
        jsonschema.validate(config, schema)
    except jsonschema.ValidationError as e:
        where = " -> ".join(str(p) for p in e.path) or "<root>"
        origin = f"{source}: " if source else ""
        raise ConfigError(f"{origin}invalid config at {where}: {e.message}") from e


def resolve_tiers_file(repo_root: Path, config: Dict[str, Any]) -> Optional[Path]:
    """Return the user tier convention file, if one is configured."""
    tiers_file = config.get("tiers_file")
    if not tiers_file:
        return None
    path = Path(tiers_file)
    return path if path.is_absolute() else repo_root / path
