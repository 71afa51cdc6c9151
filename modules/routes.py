"""
OpenShift routes exposing test services outside the cluster.
"""

import logging
import threading
from typing import Any, Dict, Optional, Union

from lib.constants import ROUTE_GROUP, ROUTE_READY_INTERVAL, ROUTE_READY_TIMEOUT, ROUTE_VERSION
from lib.exceptions import FatalError, ValidationError
from lib.kube_client import KubeClient
from lib.readiness import RouteReadiness
from lib.resources import ResourceHandle, ResourceKind
from lib.waiter import PollSpec, wait_for_condition

logger = logging.getLogger("ocp_functional")

TargetPort = Union[int, str]


def build_route_manifest(
    name: str,
    namespace: str,
    service: str,
    target_port: TargetPort,
    host: str = "",
) -> Dict[str, Any]:
    """Build a Route to ``service``; an empty host lets the router assign one."""
    # bool is an int subclass but never a valid port
    if isinstance(target_port, bool) or not isinstance(target_port, (int, str)):
        raise ValidationError(f"Unsupported type for route target port: {type(target_port).__name__}")

    spec: Dict[str, Any] = {
        "to": {"kind": "Service", "name": service},
        "port": {"targetPort": target_port},
    }
    if host:
        spec["host"] = host

    return {
        "apiVersion": f"{ROUTE_GROUP}/{ROUTE_VERSION}",
        "kind": "Route",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


class RouteManager:
    """Creates routes and resolves their URLs in one namespace."""

    def __init__(self, client: KubeClient, namespace: str):
        self.client = client
        self.namespace = namespace

    def _handle(self, name: str) -> ResourceHandle:
        return ResourceHandle(ResourceKind.ROUTE, self.namespace, name)

    def create_route(self, name: str, service: str, target_port: TargetPort, host: str = "") -> ResourceHandle:
        """Create a route for ``service`` on a numeric or named target port."""
        manifest = build_route_manifest(name, self.namespace, service, target_port, host)
        self.client.create_custom_resource(ROUTE_GROUP, ROUTE_VERSION, "routes", manifest, namespace=self.namespace)
        logger.info("Route %s for service %s created in namespace %s", name, service, self.namespace)
        return self._handle(name)

    def get_route_url(self, name: str) -> str:
        """
        Return ``http://<host>`` for a route.

        Raises:
            FatalError: If the route does not exist or has no host yet
        """
        route = self.client.get_resource(self._handle(name))
        if route is None:
            raise FatalError(f"Route {name} not found in namespace {self.namespace}")

        host = (route.get("spec") or {}).get("host")
        if not host:
            raise FatalError(f"Route {name} has no assigned host")

        url = f"http://{host}"
        logger.info("Route URL for %s: %s", name, url)
        return url

    def wait_for_route_url(
        self,
        name: str,
        spec: Optional[PollSpec] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """Wait for the router to assign a host and return the route URL."""
        spec = spec or PollSpec(interval=ROUTE_READY_INTERVAL, timeout=ROUTE_READY_TIMEOUT)
        predicate = RouteReadiness(self.client, logger)
        host = wait_for_condition(
            f"host of route {self.namespace}/{name}",
            predicate.bind(self._handle(name)),
            spec,
            logger=logger,
            cancel=cancel,
        )
        return f"http://{host}"

    def delete_route(self, name: str) -> bool:
        return self.client.delete_resource(self._handle(name))
