"""
Config check use case — validate jenkins.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from jenkins_provision.core.config.loader import ConfigError, find_config_file, load_config
from jenkins_provision.core.models.config import RecipeConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: RecipeConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "plugins": list(self.config.server.plugins) if self.config else [],
            "proxy": self.config.nginx.proxy if self.config else None,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate the recipe configuration and report issues."""
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.errors.append("No jenkins.yml found.")
        return result
    result.config_path = config_path

    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.config = config
    result.valid = True

    # ── Warnings (non-fatal) ──
    if config.nginx.proxy == "enable" and config.nginx.host_name == "localhost":
        result.warnings.append("Reverse proxy enabled but nginx.host_name is 'localhost'")
    if config.nginx.proxy == "enable" and config.server.port in config.nginx.listen_ports:
        result.warnings.append(
            f"nginx listens on the Jenkins port {config.server.port}; one of them will fail to bind"
        )
    if config.mirror.startswith("http://"):
        result.warnings.append("Mirror uses plain HTTP; package and plugin downloads are unauthenticated")

    return result
