"""
Library package for the OpenShift functional test harness.
"""

from ._version import __version__

from .exceptions import (
    ConfigurationError,
    FatalError,
    HarnessError,
    PredicateFailedError,
    ProvisionExhaustedError,
    RemoteCommandError,
    RetriesExhaustedError,
    TransientError,
    ValidationError,
    WaitCancelledError,
    WaitError,
    WaitTimeoutError,
)
from .kube_client import KubeClient
from .provisioning import ProvisioningAttempt, provision
from .readiness import (
    LoadBalancerReadiness,
    PodFailurePolicy,
    PodReadiness,
    RouteReadiness,
    TemplateInstanceReadiness,
    VirtualMachineReadiness,
)
from .resources import ResourceHandle, ResourceKind
from .utils import generate_random_name, resource_name, setup_logging
from .waiter import Clock, PollSpec, PredicateResult, Readiness, wait_for_condition

__all__ = [
    "__version__",
    "KubeClient",
    "HarnessError",
    "TransientError",
    "FatalError",
    "ConfigurationError",
    "ValidationError",
    "WaitError",
    "PredicateFailedError",
    "WaitTimeoutError",
    "RetriesExhaustedError",
    "WaitCancelledError",
    "ProvisionExhaustedError",
    "RemoteCommandError",
    "Clock",
    "PollSpec",
    "PredicateResult",
    "Readiness",
    "wait_for_condition",
    "ResourceHandle",
    "ResourceKind",
    "PodFailurePolicy",
    "PodReadiness",
    "VirtualMachineReadiness",
    "TemplateInstanceReadiness",
    "LoadBalancerReadiness",
    "RouteReadiness",
    "ProvisioningAttempt",
    "provision",
    "setup_logging",
    "generate_random_name",
    "resource_name",
]
