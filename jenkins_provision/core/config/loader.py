"""
Configuration loader — reads jenkins.yml into a RecipeConfig.

The file may be flat or wrap everything under a top-level ``jenkins:``
key, so it can share a file with other node settings:

    jenkins:
      mirror: http://mirrors.jenkins-ci.org
      server:
        port: 8080
        plugins: [git, greenballs]
      nginx:
        proxy: enable
        host_name: ci.example.com
      iptables_allow: enable
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from jenkins_provision.core.models.config import RecipeConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "jenkins.yml"


class ConfigError(Exception):
    """Raised when the recipe configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for jenkins.yml starting from the given directory, walking up.

    Returns:
        Path to jenkins.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        if current.parent == current:
            break
        current = current.parent

    return None


def parse_config(data: object, source: str = "<config>") -> RecipeConfig:
    """Validate already-parsed YAML data.

    Raises:
        ConfigError: If the data is not a mapping or fails validation.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    if "jenkins" in data:
        data = data["jenkins"] or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping under 'jenkins' in {source}")

    try:
        return RecipeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {source}: {e}") from e


def load_config(path: Path | None = None, required: bool = True) -> RecipeConfig:
    """Load and validate the recipe configuration.

    Args:
        path: Explicit path to jenkins.yml. If None, searches upward.
        required: If False, a missing file yields the default configuration.

    Raises:
        ConfigError: If the file is required and missing, or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        if not required:
            logger.info("No %s found — using defaults", CONFIG_FILE)
            return RecipeConfig()
        raise ConfigError(f"No {CONFIG_FILE} found. Create one or pass --config.")

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading recipe config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    config = parse_config(data, source=str(path))
    logger.info(
        "Loaded config from %s (%d plugins, proxy=%s)",
        path,
        len(config.server.plugins),
        config.nginx.proxy or "unset",
    )
    return config
