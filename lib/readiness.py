"""
Per-kind readiness predicates.

A predicate fetches the current state of one resource from the cluster and
classifies it as pending, ready or failed. Query problems (API errors, a
resource that is not visible yet) are raised as TransientError so the poll
engine keeps waiting; only the resource's own state can produce a failure.
"""

import functools
import logging
from enum import Enum
from typing import Any, Dict

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from lib.constants import TEMPLATE_INSTANCE_FAILED_CONDITION, TEMPLATE_INSTANCE_READY_CONDITION
from lib.exceptions import TransientError
from lib.kube_client import KubeClient
from lib.resources import ResourceHandle, ResourceKind
from lib.waiter import Predicate, PredicateResult


class PodFailurePolicy(Enum):
    """How a pod in phase Failed is classified."""

    RAISE = "raise"  # Failed ends the wait with an error
    ACCEPT = "accept"  # Failed is an expected terminal state, e.g. a denied connection


class ReadinessPredicate:
    """Base class: fetch the resource behind a handle and classify it."""

    kind: ResourceKind

    def __init__(self, client: KubeClient, logger: logging.Logger):
        self.client = client
        self.logger = logger

    def __call__(self, handle: ResourceHandle) -> PredicateResult:
        if handle.kind is not self.kind:
            raise ValueError(f"{type(self).__name__} cannot check {handle}")
        return self.classify(handle, self.fetch(handle))

    def fetch(self, handle: ResourceHandle) -> Dict[str, Any]:
        try:
            resource = self.client.get_resource(handle)
        except ApiException as e:
            raise TransientError(f"failed to query {handle}: {e.status} {e.reason}") from e
        except HTTPError as e:
            raise TransientError(f"failed to query {handle}: {e}") from e
        if resource is None:
            raise TransientError(f"{handle} not found")
        return resource

    def classify(self, handle: ResourceHandle, resource: Dict[str, Any]) -> PredicateResult:
        raise NotImplementedError

    def bind(self, handle: ResourceHandle) -> Predicate:
        """Return a zero-argument predicate for the poll engine."""
        return functools.partial(self, handle)


class PodReadiness(ReadinessPredicate):
    """Ready when the pod is Running or Succeeded."""

    kind = ResourceKind.POD

    def __init__(
        self,
        client: KubeClient,
        logger: logging.Logger,
        policy: PodFailurePolicy = PodFailurePolicy.RAISE,
    ):
        super().__init__(client, logger)
        self.policy = policy

    def classify(self, handle: ResourceHandle, resource: Dict[str, Any]) -> PredicateResult:
        phase = pod_phase(resource)

        if phase == "Running":
            return PredicateResult.ready(f"pod {handle.name} is running")
        if phase == "Succeeded":
            return PredicateResult.ready(f"pod {handle.name} completed successfully")
        if phase == "Failed":
            if self.policy is PodFailurePolicy.RAISE:
                return PredicateResult.failed(f"pod {handle.name} has failed")
            self.logger.warning("Pod %s has failed. Accepting it as a terminal state.", handle.name)
            return PredicateResult.ready(f"pod {handle.name} failed (accepted)")

        return PredicateResult.pending(f"phase={phase}")


class VirtualMachineReadiness(ReadinessPredicate):
    """Ready exactly when KubeVirt reports ``status.ready``."""

    kind = ResourceKind.VIRTUAL_MACHINE

    def classify(self, handle: ResourceHandle, resource: Dict[str, Any]) -> PredicateResult:
        status = resource.get("status") or {}
        if status.get("ready") is True:
            return PredicateResult.ready(f"VM {handle.name} is ready")
        return PredicateResult.pending(f"printableStatus={status.get('printableStatus', 'unknown')}")


class TemplateInstanceReadiness(ReadinessPredicate):
    """Ready when the named condition of the TemplateInstance is True."""

    kind = ResourceKind.TEMPLATE_INSTANCE

    def __init__(
        self,
        client: KubeClient,
        logger: logging.Logger,
        condition: str = TEMPLATE_INSTANCE_READY_CONDITION,
    ):
        super().__init__(client, logger)
        self.condition = condition

    def classify(self, handle: ResourceHandle, resource: Dict[str, Any]) -> PredicateResult:
        conditions = (resource.get("status") or {}).get("conditions") or []
        for condition in conditions:
            if condition.get("status") != "True":
                continue
            if condition.get("type") == self.condition:
                return PredicateResult.ready(f"TemplateInstance {handle.name} is {self.condition}")
            # The template instance controller never retries a failed instantiation
            if condition.get("type") == TEMPLATE_INSTANCE_FAILED_CONDITION:
                message = condition.get("message") or condition.get("reason") or "no message"
                return PredicateResult.failed(f"TemplateInstance {handle.name} failed to instantiate: {message}")
        return PredicateResult.pending(f"condition {self.condition} not yet True")


class LoadBalancerReadiness(ReadinessPredicate):
    """Ready once the service has at least one external address. Never fails."""

    kind = ResourceKind.SERVICE

    def classify(self, handle: ResourceHandle, resource: Dict[str, Any]) -> PredicateResult:
        address = external_address(resource)
        if address:
            return PredicateResult.ready(f"service {handle.name} has external address {address}", value=address)
        return PredicateResult.pending(f"waiting for service {handle.name} to get an external address")


class RouteReadiness(ReadinessPredicate):
    """Ready once the route has a host assigned."""

    kind = ResourceKind.ROUTE

    def classify(self, handle: ResourceHandle, resource: Dict[str, Any]) -> PredicateResult:
        host = (resource.get("spec") or {}).get("host")
        if host:
            return PredicateResult.ready(f"route {handle.name} has host {host}", value=host)
        return PredicateResult.pending(f"route {handle.name} has no assigned host")


def external_address(service: Dict[str, Any]) -> str:
    """Return the first LoadBalancer ingress IP or hostname of a service dict, or ''."""
    load_balancer = (service.get("status") or {}).get("load_balancer") or {}
    for ingress in load_balancer.get("ingress") or []:
        address = ingress.get("ip") or ingress.get("hostname")
        if address:
            return address
    return ""


def pod_phase(pod: Dict[str, Any]) -> str:
    """Return ``status.phase`` of a pod dict, 'Unknown' when unset."""
    return (pod.get("status") or {}).get("phase") or "Unknown"
