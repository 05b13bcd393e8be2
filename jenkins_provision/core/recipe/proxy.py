"""
Optional nginx reverse proxy in front of Jenkins.

The site file is rendered into ``sites-available`` and enabled by a
symlink in ``sites-enabled``, the Debian nginx layout. nginx is
restarted for a changed config only if the site was already live;
a freshly enabled site just needs a reload.
"""

from __future__ import annotations

import logging

from jenkins_provision.core.models.config import ProxyConfig
from jenkins_provision.core.recipe.context import RunContext

logger = logging.getLogger(__name__)

SITE_NAME = "jenkins.conf"


# ── Templates ───────────────────────────────────────────────────


_SITE_TEMPLATE = """\
# Managed by jenkins-provision. Local changes will be overwritten.
__REDIRECT_BLOCK__server {
__LISTEN__
    server_name __SERVER_NAMES__;

    client_max_body_size __MAX_UPLOAD_SIZE__;

    location / {
        proxy_set_header Host $http_host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_redirect off;
        proxy_read_timeout 90;
        proxy_pass http://127.0.0.1:__JENKINS_PORT__;
    }
}
"""

_REDIRECT_TEMPLATE = """\
server {
__LISTEN__
    server_name __HOST_NAME__;
    return 301 $scheme://www.__HOST_NAME__$request_uri;
}

"""


def render_proxy_config(
    host_name: str,
    host_aliases: tuple[str, ...] | list[str] = (),
    listen_ports: tuple[int, ...] | list[int] = (80,),
    www_redirect: bool = True,
    max_upload_size: str = "1024m",
    jenkins_port: int = 8080,
) -> str:
    """Render the nginx virtual host for Jenkins.

    With ``www_redirect`` an extra server block answers for the bare
    ``host_name`` and permanently redirects to ``www.<host_name>``, which
    the proxying block then serves.
    """
    listen = "\n".join(f"    listen {port};" for port in listen_ports)

    redirect = ""
    primary = host_name
    if www_redirect:
        primary = f"www.{host_name}"
        redirect = (
            _REDIRECT_TEMPLATE
            .replace("__LISTEN__", listen)
            .replace("__HOST_NAME__", host_name)
        )

    server_names = " ".join([primary, *host_aliases])

    return (
        _SITE_TEMPLATE
        .replace("__REDIRECT_BLOCK__", redirect)
        .replace("__LISTEN__", listen)
        .replace("__SERVER_NAMES__", server_names)
        .replace("__MAX_UPLOAD_SIZE__", max_upload_size)
        .replace("__JENKINS_PORT__", str(jenkins_port))
    )


# ── Site management ─────────────────────────────────────────────


def site_paths(nginx: ProxyConfig) -> tuple[str, str]:
    """(sites-available path, sites-enabled path) of the Jenkins site."""
    return (
        f"{nginx.dir}/sites-available/{SITE_NAME}",
        f"{nginx.dir}/sites-enabled/{SITE_NAME}",
    )


def enable_site(ctx: RunContext) -> bool:
    nginx = ctx.config.nginx
    available, enabled = site_paths(nginx)
    receipt = ctx.host.fs("proxy:enable", "symlink", enabled, target=available)
    if receipt.changed:
        ctx.host.run("proxy:reload", ["service", nginx.service_name, "reload"])
    return receipt.changed


def disable_site(ctx: RunContext) -> bool:
    nginx = ctx.config.nginx
    _, enabled = site_paths(nginx)
    receipt = ctx.host.fs("proxy:disable", "remove", enabled)
    if receipt.changed:
        ctx.host.run("proxy:reload", ["service", nginx.service_name, "reload"])
    return receipt.changed


def configure_proxy(ctx: RunContext) -> None:
    """Render and enable the proxy site, or disable it, per ``nginx.proxy``."""
    nginx = ctx.config.nginx
    if nginx.proxy is None:
        logger.debug("Reverse proxy not configured")
        return

    if nginx.proxy == "disable":
        disable_site(ctx)
        return

    available, enabled = site_paths(nginx)
    was_enabled = ctx.host.exists("proxy:site-enabled", enabled)

    content = render_proxy_config(
        host_name=nginx.host_name,
        host_aliases=nginx.host_aliases,
        listen_ports=nginx.listen_ports,
        www_redirect=nginx.redirect_enabled,
        max_upload_size=nginx.client_max_body_size,
        jenkins_port=ctx.config.server.port,
    )
    receipt = ctx.host.fs("proxy:site-config", "write", available, content=content, mode=0o644)

    if receipt.changed and was_enabled:
        ctx.host.run("proxy:restart", ["service", nginx.service_name, "restart"])

    enable_site(ctx)
