"""
Jenkins provisioning — CLI entrypoint.

Usage:
    jenkins-provision --help
    jenkins-provision run --dry-run
    jenkins-provision config check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from jenkins_provision import __version__
from jenkins_provision.core.observability.logging_config import level_from_flags, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="jenkins-provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to jenkins.yml (default: auto-detect).",
)
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for state and audit files (default: .state next to jenkins.yml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    state_dir: str | None,
) -> None:
    """Provision a Jenkins server on Debian, Ubuntu or Red Hat hosts."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["state_dir"] = Path(state_dir) if state_dir else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(level=level_from_flags(debug=debug, verbose=verbose, quiet=quiet))


def _state_dir(ctx: click.Context) -> Path:
    from jenkins_provision.core.config.loader import find_config_file
    from jenkins_provision.core.persistence.state_file import default_state_dir

    if ctx.obj.get("state_dir"):
        return ctx.obj["state_dir"]
    return default_state_dir(ctx.obj.get("config_path") or find_config_file())


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--os", "os_id", default=None, help="Override the detected OS id.")
@click.option("--dry-run", is_flag=True, help="Probe the host but change nothing.")
@click.pass_context
def run(ctx: click.Context, as_json: bool, os_id: str | None, dry_run: bool) -> None:
    """Provision Jenkins on this host.

    Examples:

        jenkins-provision run

        jenkins-provision run --dry-run --os ubuntu
    """
    from jenkins_provision.core.use_cases.run import run_provision

    result = run_provision(
        config_path=ctx.obj.get("config_path"),
        os_id=os_id,
        dry_run=dry_run,
        state_dir=ctx.obj.get("state_dir"),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            sys.exit(1)
        return

    report = result.report
    if report is None:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    mode_label = "[dry-run] " if dry_run else ""
    click.secho(f"\n⚡ {mode_label}jenkins on {report.os_id or '?'}", fg="cyan", bold=True)
    click.echo(f"   Actions: {report.total} | changed: {report.changed} | skipped: {report.skipped}")
    click.echo()

    verbose = ctx.obj.get("verbose", False)
    for receipt in report.receipts:
        if receipt.failed:
            click.secho(f"   ✗ {receipt.action_id}", fg="red")
            if receipt.error:
                for line in receipt.error.split("\n")[:5]:
                    click.echo(f"     │ {line}")
        elif receipt.status == "skipped":
            if verbose or dry_run:
                click.secho(f"   ⊘ {receipt.action_id}", fg="yellow")
        elif receipt.changed:
            timing = f" ({receipt.duration_ms}ms)" if receipt.duration_ms else ""
            click.secho(f"   ✓ {receipt.action_id}", fg="green", nl=False)
            click.echo(timing)
        elif verbose:
            click.echo(f"   · {receipt.action_id}")

    click.echo()
    if report.cascade_fired:
        click.echo(f"   Cascade: {' → '.join(s.value for s in report.cascade_states[1:])}")
    if report.restarted_for_plugins:
        click.echo(f"   Restarted for plugins: {', '.join(report.plugins_changed) or 'newer files'}")
    if report.pubkey:
        click.echo(f"   🔑 {report.pubkey}")

    if result.error:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red", bold=True)
        sys.exit(1)

    click.secho(f"   Result: {report.status}", fg="green", bold=True)
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--os", "os_id", default=None, help="Override the detected OS id.")
@click.pass_context
def platform(ctx: click.Context, as_json: bool, os_id: str | None) -> None:
    """Show how Jenkins would be installed on this platform."""
    from jenkins_provision.core.config.loader import ConfigError, load_config
    from jenkins_provision.core.recipe.platform import UnsupportedPlatformError, detect_os_id, resolve_platform

    try:
        config = load_config(ctx.obj.get("config_path"), required=ctx.obj.get("config_path") is not None)
        profile = resolve_platform(os_id if os_id is not None else detect_os_id(), config.mirror)
    except (ConfigError, UnsupportedPlatformError) as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(profile.to_dict(), indent=2))
        return

    click.secho(f"\n🖥️  {profile.os_id} ({profile.family.value})", fg="cyan", bold=True)
    click.echo(f"   Backend:  {profile.package_backend}")
    click.echo(f"   Package:  {profile.package_source or 'apt repository'}")
    click.echo(f"   Pid file: {profile.pid_file}")
    click.echo(f"   Group:    {profile.default_group}")
    click.echo(f"   Install starts service: {'yes' if profile.install_starts_service else 'no'}")
    click.echo()


@cli.group()
def config() -> None:
    """Recipe configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate jenkins.yml configuration."""
    from jenkins_provision.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        cfg = result.config
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Mirror:  {cfg.mirror}")
        click.echo(f"   Port:    {cfg.server.port}")
        click.echo(f"   Plugins: {', '.join(cfg.server.plugins) or 'none'}")
        click.echo(f"   Proxy:   {cfg.nginx.proxy or 'unmanaged'}")
        click.echo(f"   Firewall: {cfg.iptables_allow}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


@cli.command()
@click.pass_context
def pubkey(ctx: click.Context) -> None:
    """Print the Jenkins service account's public key."""
    from jenkins_provision.core.persistence.state_file import DEFAULT_STATE_FILE, load_state

    state = load_state(_state_dir(ctx) / DEFAULT_STATE_FILE)
    if not state.pubkey:
        click.secho("❌ No public key recorded yet. Run 'jenkins-provision run' first.", fg="red")
        sys.exit(1)
    click.echo(state.pubkey)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--limit", "-n", default=10, show_default=True, help="Number of entries.")
@click.pass_context
def history(ctx: click.Context, as_json: bool, limit: int) -> None:
    """Show recent provisioning runs from the audit ledger."""
    from jenkins_provision.core.persistence.audit import AuditWriter

    entries = AuditWriter(state_dir=_state_dir(ctx)).read_recent(limit)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo("No runs recorded.")
        return

    for entry in entries:
        color = "green" if entry.status == "ok" else "red"
        click.secho(f"   {entry.status:<6}", fg=color, nl=False)
        click.echo(
            f" {entry.timestamp}  {entry.operation_type:<9} {entry.platform or '?':<7}"
            f" {entry.actions_changed}/{entry.actions_total} changed"
        )
        for err in entry.errors:
            click.echo(f"          │ {err}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
