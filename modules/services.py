"""
Service provisioning: ClusterIP and LoadBalancer services in front of test pods.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from lib.constants import (
    CLUSTER_DOMAIN,
    SERVICE_IP_INTERVAL,
    SERVICE_IP_TIMEOUT,
    SERVICE_READY_INTERVAL,
    SERVICE_READY_TIMEOUT,
)
from lib.exceptions import TransientError, ValidationError
from lib.kube_client import KubeClient
from lib.readiness import LoadBalancerReadiness, external_address
from lib.resources import ResourceHandle, ResourceKind
from lib.validation import InputValidator
from lib.waiter import PollSpec, PredicateResult, wait_for_condition

logger = logging.getLogger("ocp_functional")

SERVICE_TYPES = ("ClusterIP", "NodePort", "LoadBalancer")
PROTOCOLS = ("TCP", "UDP")


def service_port(name: str, port: int, target_port: int, protocol: str = "TCP") -> Dict[str, Any]:
    """Build a service port entry. Unknown protocols fall back to TCP."""
    InputValidator.validate_port(port)
    InputValidator.validate_port(target_port, "target port")
    return {
        "name": name,
        "port": port,
        "targetPort": target_port,
        "protocol": protocol if protocol in PROTOCOLS else "TCP",
    }


def build_service_manifest(
    name: str,
    namespace: str,
    service_type: str,
    ports: List[Dict[str, Any]],
    selector: Optional[Dict[str, str]] = None,
    headless: bool = False,
) -> Dict[str, Any]:
    if service_type not in SERVICE_TYPES:
        raise ValidationError(f"Invalid service type: '{service_type}'. Must be one of: {', '.join(SERVICE_TYPES)}")
    if headless and service_type != "ClusterIP":
        raise ValidationError(f"Only ClusterIP services can be headless, got '{service_type}'")
    if selector is None:
        selector = {"app": name}
    InputValidator.validate_labels(selector)

    service_spec = {"type": service_type, "ports": list(ports), "selector": selector}
    if headless:
        service_spec["clusterIP"] = "None"
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "namespace": namespace},
        "spec": service_spec,
    }


def cluster_ip(service: Dict[str, Any]) -> str:
    """Return ``spec.cluster_ip`` of a service dict; '' for headless or unset."""
    ip = (service.get("spec") or {}).get("cluster_ip") or ""
    return "" if ip == "None" else ip


class ServiceManager:
    """Creates services and resolves their addresses in one namespace."""

    def __init__(self, client: KubeClient, namespace: str):
        self.client = client
        self.namespace = namespace

    def _handle(self, name: str) -> ResourceHandle:
        return ResourceHandle(ResourceKind.SERVICE, self.namespace, name)

    def create_service(
        self,
        name: str,
        service_type: str,
        ports: List[Dict[str, Any]],
        selector: Optional[Dict[str, str]] = None,
        spec: Optional[PollSpec] = None,
        cancel: Optional[threading.Event] = None,
        wait: bool = True,
        headless: bool = False,
    ) -> ResourceHandle:
        """
        Create a service; a LoadBalancer service is waited on until it has an
        external address unless ``wait`` is False.

        Args:
            name: Service name
            service_type: ClusterIP, NodePort or LoadBalancer
            ports: Entries built with ``service_port``
            selector: Pod selector; defaults to ``app=<name>``
            spec: Poll policy for the LoadBalancer wait
            cancel: Optional event aborting the wait
            wait: Wait for the LoadBalancer address before returning
            headless: Create a ClusterIP service without a cluster IP

        Returns:
            Handle of the created service
        """
        manifest = build_service_manifest(name, self.namespace, service_type, ports, selector, headless=headless)
        self.client.create_service(self.namespace, manifest)
        logger.info("Service %s of type %s created in namespace %s", name, service_type, self.namespace)

        handle = self._handle(name)
        if wait and service_type == "LoadBalancer":
            self.wait_for_external_ip(name, spec=spec, cancel=cancel)
        return handle

    def dns_name(self, name: str) -> str:
        """Cluster DNS name of a service in this namespace."""
        return f"{name}.{self.namespace}.svc.{CLUSTER_DOMAIN}"

    def wait_for_external_ip(
        self,
        name: str,
        spec: Optional[PollSpec] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """Wait for a LoadBalancer service to get an external address and return it."""
        spec = spec or PollSpec(interval=SERVICE_READY_INTERVAL, timeout=SERVICE_READY_TIMEOUT)
        predicate = LoadBalancerReadiness(self.client, logger)
        logger.info("Waiting for the LoadBalancer service %s to get an external IP...", name)
        address = wait_for_condition(
            f"external IP of service {self.namespace}/{name}",
            predicate.bind(self._handle(name)),
            spec,
            logger=logger,
            cancel=cancel,
        )
        logger.info("Service %s is ready with external IP: %s", name, address)
        return address

    def get_external_ip(self, name: str) -> str:
        """Return the LoadBalancer address of a service, or '' if none yet."""
        service = self.client.get_service(self.namespace, name)
        if service is None:
            return ""
        return external_address(service)

    def get_service_ip(self, name: str) -> str:
        """Return the cluster IP of a service, or '' if none."""
        service = self.client.get_service(self.namespace, name)
        if service is None:
            return ""
        return cluster_ip(service)

    def wait_for_service_ip(
        self,
        name: str,
        spec: Optional[PollSpec] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """Wait for a service to get a cluster IP and return it."""
        spec = spec or PollSpec(interval=SERVICE_IP_INTERVAL, timeout=SERVICE_IP_TIMEOUT)

        def _check() -> PredicateResult:
            try:
                ip = self.get_service_ip(name)
            except (ApiException, HTTPError) as e:
                raise TransientError(f"failed to query service {self.namespace}/{name}: {e}") from e
            if ip:
                return PredicateResult.ready(f"service {name} has cluster IP {ip}", value=ip)
            return PredicateResult.pending(f"service {name} has no cluster IP yet")

        return wait_for_condition(
            f"cluster IP of service {self.namespace}/{name}",
            _check,
            spec,
            logger=logger,
            cancel=cancel,
        )

    def delete_service(self, name: str) -> bool:
        return self.client.delete_resource(self._handle(name))
