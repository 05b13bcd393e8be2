"""
Domain models — Pydantic types for the provisioning recipe.

All models are re-exported here for convenient access:

    from jenkins_provision.core.models import RecipeConfig, PlatformProfile, Receipt
"""

from jenkins_provision.core.models.action import Action, Receipt
from jenkins_provision.core.models.config import (
    FirewallConfig,
    PackageConfig,
    ProxyConfig,
    RecipeConfig,
    ServerConfig,
)
from jenkins_provision.core.models.platform import PlatformFamily, PlatformProfile
from jenkins_provision.core.models.state import NodeState, RunRecord

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # config.py
    "FirewallConfig",
    "PackageConfig",
    "ProxyConfig",
    "RecipeConfig",
    "ServerConfig",
    # platform.py
    "PlatformFamily",
    "PlatformProfile",
    # state.py
    "NodeState",
    "RunRecord",
]
