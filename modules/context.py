"""
Per-scenario test context: shared client, namespace, naming and cleanup.
"""

import logging
from typing import List, Optional

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from lib.exceptions import HarnessError
from lib.kube_client import KubeClient
from lib.resources import ResourceHandle
from lib.utils import generate_random_name, resource_name
from modules.network_policies import NetworkPolicyManager
from modules.pods import PodManager
from modules.routes import RouteManager
from modules.services import ServiceManager
from modules.vms import VMManager

logger = logging.getLogger("ocp_functional")


class TestContext:
    """
    Everything one scenario needs to create resources and clean them up.

    Every resource is named ``<prefix>-<role>-<random>`` with one random
    suffix per context, and every tracked handle is deleted by ``cleanup()``
    in reverse creation order.
    """

    # Not a pytest test class
    __test__ = False

    def __init__(self, client: KubeClient, namespace: str, random_name: Optional[str] = None):
        self.client = client
        self.namespace = namespace
        self.random_name = random_name or generate_random_name()
        self.pods = PodManager(client, namespace)
        self.services = ServiceManager(client, namespace)
        self.routes = RouteManager(client, namespace)
        self.vms = VMManager(client, namespace)
        self.network_policies = NetworkPolicyManager(client, namespace)
        self._tracked: List[ResourceHandle] = []

    def name(self, role: str = "") -> str:
        return resource_name(role, self.random_name)

    def track(self, handle: ResourceHandle) -> ResourceHandle:
        """Register a created resource for cleanup and return it."""
        self._tracked.append(handle)
        return handle

    @property
    def tracked(self) -> List[ResourceHandle]:
        return list(self._tracked)

    def cleanup(self) -> List[ResourceHandle]:
        """
        Delete tracked resources, newest first.

        A failed deletion is logged and does not stop the remaining ones.

        Returns:
            Handles whose deletion failed
        """
        failed: List[ResourceHandle] = []
        while self._tracked:
            handle = self._tracked.pop()
            try:
                self.client.delete_resource(handle)
            except (HarnessError, ApiException, HTTPError) as e:
                logger.error("Failed to delete %s: %s", handle, e)
                failed.append(handle)

        if failed:
            logger.warning("Cleanup left %s resource(s) behind", len(failed))
        else:
            logger.info("Successfully cleaned up resources.")
        return failed

    def __enter__(self) -> "TestContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()
