"""
Recipe configuration — what the operator declares in jenkins.yml.

Every model here is frozen: configuration is read once at the start of
a run and never written back. Values computed during the run (public
key, resolved platform) live in the RunContext instead.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Toggle = Literal["enable", "disable"]

_PLUGIN_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class ServerConfig(BaseModel):
    """The Jenkins service account, home directory and plugins."""

    model_config = ConfigDict(frozen=True)

    user: str = "jenkins"
    group: str | None = None        # None = platform default
    home: str = "/var/lib/jenkins"
    port: int = Field(default=8080, ge=1, le=65535)
    plugins: tuple[str, ...] = ()
    use_head: bool = False
    service_name: str = "jenkins"

    @field_validator("plugins")
    @classmethod
    def _check_plugin_names(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for name in value:
            if not _PLUGIN_NAME_RE.match(name):
                raise ValueError(f"Invalid plugin name: {name!r}")
        return value

    @property
    def ssh_key_path(self) -> str:
        return f"{self.home}/.ssh/id_rsa"

    @property
    def plugins_dir(self) -> str:
        return f"{self.home}/plugins"


class ProxyConfig(BaseModel):
    """Optional nginx reverse proxy in front of Jenkins."""

    model_config = ConfigDict(frozen=True)

    proxy: Toggle | None = None
    www_redirect: Toggle = "enable"
    host_name: str = "localhost"
    host_aliases: tuple[str, ...] = ()
    listen_ports: tuple[int, ...] = (80,)
    client_max_body_size: str = "1024m"
    dir: str = "/etc/nginx"
    service_name: str = "nginx"

    @property
    def redirect_enabled(self) -> bool:
        return self.www_redirect != "disable"


class FirewallConfig(BaseModel):
    """Where iptables rule fragments live and how they are applied."""

    model_config = ConfigDict(frozen=True)

    rules_dir: str = "/etc/iptables.d"
    rule_name: str = "port_jenkins"
    rebuild_command: str = "/usr/sbin/rebuild-iptables"


class PackageConfig(BaseModel):
    """OS packages and repository details used around the install."""

    model_config = ConfigDict(frozen=True)

    # Debian: runtime dependencies of the jenkins .deb
    debian_packages: tuple[str, ...] = ("daemon", "default-jre-headless", "psmisc")

    # Ubuntu: repository based install
    ubuntu_prerequisites: tuple[str, ...] = ("curl",)
    java_package: str = "default-jre-headless"
    apt_source: str = "deb http://pkg.jenkins-ci.org/debian binary/"
    apt_source_file: str = "/etc/apt/sources.list.d/jenkins.list"
    ubuntu_key_url: str = "http://pkg.jenkins-ci.org/debian/jenkins-ci.org.key"


class RecipeConfig(BaseModel):
    """Root configuration for a provisioning run."""

    model_config = ConfigDict(frozen=True)

    mirror: str = "http://mirrors.jenkins-ci.org"
    server: ServerConfig = Field(default_factory=ServerConfig)
    nginx: ProxyConfig = Field(default_factory=ProxyConfig)
    iptables_allow: Toggle = "disable"
    firewall: FirewallConfig = Field(default_factory=FirewallConfig)
    packages: PackageConfig = Field(default_factory=PackageConfig)

    tmp_dir: str = "/tmp"
    socket_table_command: str = "netstat -lnt"
    drain_attempts: int = Field(default=10, ge=1)
    drain_interval: float = Field(default=1.0, ge=0)

    @field_validator("mirror")
    @classmethod
    def _strip_mirror(cls, value: str) -> str:
        return value.rstrip("/")
