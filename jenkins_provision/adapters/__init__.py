"""Adapters — host bindings for shell commands, files and HTTP.

Public re-exports for convenient access.
"""

from jenkins_provision.adapters.base import Adapter, ExecutionContext
from jenkins_provision.adapters.mock import MockAdapter
from jenkins_provision.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
