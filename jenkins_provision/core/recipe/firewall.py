"""
Optional iptables rule opening the Jenkins port.

Rules are fragments in a rules directory, assembled into the live
ruleset by a rebuild command (the iptables cookbook layout). Adding or
removing a fragment triggers a rebuild; an unchanged fragment does not.
"""

from __future__ import annotations

import logging
import shlex

from jenkins_provision.core.recipe.context import RunContext

logger = logging.getLogger(__name__)


def render_port_rule(port: int) -> str:
    return f"# Port {port} for jenkins\n-A FWR -p tcp -m tcp --dport {port} -j ACCEPT\n"


def configure_firewall(ctx: RunContext) -> bool:
    """Add or remove the port rule per ``iptables_allow``. Returns True if the rule is enabled."""
    firewall = ctx.config.firewall
    rule_path = f"{firewall.rules_dir}/{firewall.rule_name}"
    allow = ctx.config.iptables_allow == "enable"

    if allow:
        receipt = ctx.host.fs(
            "firewall:rule",
            "write",
            rule_path,
            content=render_port_rule(ctx.config.server.port),
            mode=0o644,
        )
    else:
        receipt = ctx.host.fs("firewall:rule", "remove", rule_path)

    if receipt.changed:
        logger.info("Firewall rule %s changed, rebuilding", rule_path)
        ctx.host.run("firewall:rebuild", shlex.split(firewall.rebuild_command))
    return allow
