"""
Shared test fixtures and configuration.

Recipe tests run against a real FilesystemAdapter rooted in tmp_path,
with shell and HTTP replaced by mocks. Owner and group are the current
user's, so ownership checks never need root.
"""

from __future__ import annotations

import functools
import grp
import os
import pwd
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from jenkins_provision.adapters.base import ExecutionContext
from jenkins_provision.adapters.mock import MockAdapter
from jenkins_provision.adapters.registry import AdapterRegistry
from jenkins_provision.adapters.shell.filesystem import FilesystemAdapter
from jenkins_provision.core.host import Host
from jenkins_provision.core.models.action import Receipt
from jenkins_provision.core.models.config import RecipeConfig
from jenkins_provision.core.recipe.context import RunContext
from jenkins_provision.core.recipe import platform as platform_module
from jenkins_provision.core.recipe.platform import resolve_platform

CURRENT_USER = pwd.getpwuid(os.getuid()).pw_name
CURRENT_GROUP = grp.getgrgid(os.getgid()).gr_name

PUBKEY = "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQC7test jenkins@ci"


class ServiceShell(MockAdapter):
    """Shell mock that remembers whether the jenkins service is up.

    ``service:status`` answers from that flag; ``service:stop`` and
    ``service:start`` flip it. With ``install_starts`` a successful
    ``package:install`` starts the service too, as dpkg maintainer
    scripts do on a fresh install. Everything else behaves like
    MockAdapter.
    """

    def __init__(self, running: bool = False, install_starts: bool = False):
        super().__init__(adapter_name="shell")
        self.running = running
        self.install_starts = install_starts

    def execute(self, context: ExecutionContext) -> Receipt:
        action_id = context.action.id
        if action_id == "service:status" and action_id not in self._responses:
            self._call_log.append(context)
            if self.running:
                return Receipt.success(adapter=self.name, action_id=action_id)
            return Receipt.failure(adapter=self.name, action_id=action_id, error="not running")
        if action_id == "service:stop":
            self.running = False
        elif action_id == "service:start":
            self.running = True
        receipt = super().execute(context)
        if action_id == "package:install" and receipt.ok and self.install_starts:
            self.running = True
        return receipt


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def config_data(tmp_path: Path) -> dict:
    """Raw config pointing every host path into tmp_path."""
    return {
        "server": {
            "user": CURRENT_USER,
            "group": CURRENT_GROUP,
            "home": str(tmp_path / "jenkins"),
        },
        "nginx": {"dir": str(tmp_path / "nginx")},
        "firewall": {"rules_dir": str(tmp_path / "iptables.d")},
        "packages": {"apt_source_file": str(tmp_path / "apt" / "jenkins.list")},
        "tmp_dir": str(tmp_path / "tmp"),
        "drain_interval": 0,
    }


@pytest.fixture
def config(config_data: dict) -> RecipeConfig:
    return RecipeConfig.model_validate(config_data)


@pytest.fixture
def pubkey() -> str:
    return PUBKEY


@pytest.fixture
def jenkins_home(config: RecipeConfig, pubkey: str) -> Path:
    """A home directory with an existing SSH keypair."""
    ssh_dir = Path(config.server.home) / ".ssh"
    ssh_dir.mkdir(parents=True)
    (ssh_dir / "id_rsa").write_text("PRIVATE\n")
    (ssh_dir / "id_rsa.pub").write_text(pubkey + "\n")
    return Path(config.server.home)


@pytest.fixture
def shell() -> ServiceShell:
    return ServiceShell()


@pytest.fixture
def http() -> MockAdapter:
    return MockAdapter(adapter_name="http")


@pytest.fixture
def registry(shell: ServiceShell, http: MockAdapter) -> AdapterRegistry:
    reg = AdapterRegistry()
    reg.register(shell)
    reg.register(FilesystemAdapter())
    reg.register(http)
    return reg


@pytest.fixture
def sleeps() -> list[float]:
    """Records drain-wait sleeps instead of sleeping."""
    return []


@pytest.fixture
def make_ctx(config: RecipeConfig, registry: AdapterRegistry, sleeps: list[float]):
    """Build a RunContext for a platform, optionally with another config or registry."""

    def _make(
        os_id: str = "debian",
        cfg: RecipeConfig | None = None,
        reg: AdapterRegistry | None = None,
        dry_run: bool = False,
    ) -> RunContext:
        cfg = cfg or config
        ctx = RunContext(
            config=cfg,
            host=Host(reg or registry, dry_run=dry_run),
            sleep=sleeps.append,
        )
        ctx.profile = resolve_platform(os_id, cfg.mirror)
        return ctx

    return _make


@pytest.fixture
def pid_files(tmp_path: Path, monkeypatch) -> dict[str, Path]:
    """Point the platform pid files into tmp_path (they do not exist yet)."""
    run = tmp_path / "run"
    paths = {"debian": run / "jenkins" / "jenkins.pid", "redhat": run / "jenkins.pid"}
    monkeypatch.setattr(platform_module, "DEBIAN_PID_FILE", str(paths["debian"]))
    monkeypatch.setattr(platform_module, "REDHAT_PID_FILE", str(paths["redhat"]))
    return paths


@pytest.fixture
def mirror(tmp_path: Path):
    """A local HTTP server over tmp_path/mirror. Yields (root dir, base URL)."""
    root = tmp_path / "mirror"
    root.mkdir()

    class QuietHandler(SimpleHTTPRequestHandler):
        def log_message(self, format, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), functools.partial(QuietHandler, directory=str(root)))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield root, f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
