"""
Module package initialization.
"""

from lib.exceptions import ValidationError

from .context import TestContext
from .network_policies import NetworkPolicyManager
from .pods import ContainerConfig, PodManager
from .routes import RouteManager
from .services import ServiceManager
from .ssh import SSHSession, SSHTarget, poll_ssh_connection
from .vms import VMManager

__all__ = [
    "ValidationError",
    "TestContext",
    "ContainerConfig",
    "PodManager",
    "ServiceManager",
    "RouteManager",
    "VMManager",
    "NetworkPolicyManager",
    "SSHTarget",
    "SSHSession",
    "poll_ssh_connection",
]
