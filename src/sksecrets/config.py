"""
Profile configuration.

Profiles live in a YAML file (``~/.sksecrets.yaml`` by default, or
``$SKSECRETS_CONFIG``):

    profiles:
      dev:
        backend: file
        project_id: my-project
        location: ~/dev.secrets.sksecrets

The loaded config is passed explicitly to whatever needs it; nothing
reads it from module state.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from . import CONFIG_PATH
from .errors import ConfigurationError, FormatError, StoreIOError
from .models import Profile, SecretsConfig

logger = logging.getLogger("sksecrets.config")


def load_config(path: Optional[str | Path] = None) -> SecretsConfig:
    """Load and validate the profile file.

    Args:
        path: Config file. Defaults to ``CONFIG_PATH``.

    Returns:
        SecretsConfig: Profiles keyed by name, each carrying its name.

    Raises:
        ConfigurationError: If the file does not exist.
        FormatError: If it is not valid YAML or not a profile mapping.
    """
    config_path = Path(path or CONFIG_PATH).expanduser()
    if not config_path.exists():
        raise ConfigurationError(f"no config file at {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise FormatError(f"{config_path} is not valid YAML: {exc}") from exc

    try:
        config = SecretsConfig.model_validate(raw)
    except ValidationError as exc:
        raise FormatError(f"{config_path} has an invalid layout: {exc}") from exc

    for name, profile in config.profiles.items():
        profile.name = name
    logger.debug("Loaded %d profile(s) from %s", len(config.profiles), config_path)
    return config


def get_profile(config: SecretsConfig, name: str) -> Profile:
    """Look up a profile by name.

    Raises:
        ConfigurationError: If no such profile exists.
    """
    try:
        return config.profiles[name]
    except KeyError:
        raise ConfigurationError(
            f"no such profile [{name}], please check your config file"
        ) from None


def save_config(config: SecretsConfig, path: Optional[str | Path] = None) -> Path:
    """Write the profile file back out as YAML."""
    config_path = Path(path or CONFIG_PATH).expanduser()
    data = config.model_dump(mode="json", exclude_none=True)
    for profile in data.get("profiles", {}).values():
        profile.pop("name", None)
    try:
        config_path.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    except OSError as exc:
        raise StoreIOError(f"cannot write config {config_path}: {exc}") from exc
    logger.info("Saved %d profile(s) to %s", len(config.profiles), config_path)
    return config_path
