"""
Pod provisioning for functional tests.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from lib.constants import (
    DEFAULT_LABELS,
    DELETE_WAIT_INTERVAL,
    DELETE_WAIT_TIMEOUT,
    POD_CREATE_ATTEMPTS,
    POD_LOGS_INTERVAL,
    POD_LOGS_TIMEOUT,
    POD_READY_INTERVAL,
    POD_READY_TIMEOUT,
    POD_RETRY_INTERVAL,
    POD_RETRY_TIMEOUT,
)
from lib.exceptions import TransientError
from lib.kube_client import KubeClient
from lib.provisioning import provision
from lib.readiness import PodFailurePolicy, PodReadiness, pod_phase
from lib.resources import ResourceHandle, ResourceKind
from lib.utils import generate_random_name
from lib.validation import InputValidator
from lib.waiter import PollSpec, PredicateResult, wait_for_condition

logger = logging.getLogger("ocp_functional")


def resource_requirements(
    cpu_requests: str = "",
    cpu_limits: str = "",
    memory_requests: str = "",
    memory_limits: str = "",
) -> Dict[str, Dict[str, str]]:
    """Build a container ``resources`` block, omitting empty quantities."""
    requests = {"cpu": cpu_requests, "memory": memory_requests}
    limits = {"cpu": cpu_limits, "memory": memory_limits}
    return {
        "requests": {k: v for k, v in requests.items() if v},
        "limits": {k: v for k, v in limits.items() if v},
    }


@dataclass
class ContainerConfig:
    """Configuration of one container in a test pod."""

    name: str
    image: str
    command: List[str] = field(default_factory=list)
    args: List[str] = field(default_factory=list)
    resources: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def to_manifest(self) -> Dict[str, Any]:
        container: Dict[str, Any] = {"name": self.name, "image": self.image}
        if self.command:
            container["command"] = list(self.command)
        if self.args:
            container["args"] = list(self.args)
        if self.resources:
            container["resources"] = self.resources
        return container


def build_pod_manifest(
    name: str,
    namespace: str,
    containers: List[ContainerConfig],
    labels: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Build a pod manifest with ``restartPolicy: Never``."""
    if labels is None:
        labels = {**DEFAULT_LABELS, "app": name}
    InputValidator.validate_labels(labels)

    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "namespace": namespace, "labels": labels},
        "spec": {
            "containers": [c.to_manifest() for c in containers],
            "restartPolicy": "Never",
        },
    }


class PodManager:
    """Creates, waits for and inspects test pods in one namespace."""

    def __init__(self, client: KubeClient, namespace: str):
        self.client = client
        self.namespace = namespace

    def _handle(self, name: str) -> ResourceHandle:
        return ResourceHandle(ResourceKind.POD, self.namespace, name)

    def _create(self, name: str, containers: List[ContainerConfig], labels: Optional[Dict[str, str]]) -> ResourceHandle:
        logger.info("Starting Pod %s creation", name)
        self.client.create_pod(self.namespace, build_pod_manifest(name, self.namespace, containers, labels))
        logger.info("Pod %s created", name)
        return self._handle(name)

    def create_pod(
        self,
        name: str,
        containers: List[ContainerConfig],
        labels: Optional[Dict[str, str]] = None,
        wait: bool = True,
        spec: Optional[PollSpec] = None,
    ) -> ResourceHandle:
        """
        Create a pod, optionally waiting for it to run or complete.

        Args:
            name: Pod name; a random name is generated when empty
            containers: Container configurations
            labels: Pod labels; defaults to the harness labels plus ``app=<name>``
            wait: Wait until the pod is Running or Succeeded
            spec: Poll policy for the wait

        Returns:
            Handle of the created pod
        """
        if not name:
            name = generate_random_name()
            logger.info("Generated random Pod name: %s", name)

        handle = self._create(name, containers, labels)
        if wait:
            self.wait_for_pod_state(name, spec=spec)
            logger.info("Pod %s is ready", name)
        return handle

    def create_pod_with_retry(
        self,
        name: str,
        containers: List[ContainerConfig],
        labels: Optional[Dict[str, str]] = None,
        spec: Optional[PollSpec] = None,
        attempts: int = POD_CREATE_ATTEMPTS,
        cancel: Optional[threading.Event] = None,
    ) -> ResourceHandle:
        """
        Create a pod and wait for it; delete and recreate it when it fails.

        Raises:
            ProvisionExhaustedError: The pod never became ready in ``attempts`` tries
        """
        spec = spec or PollSpec(interval=POD_RETRY_INTERVAL, timeout=POD_RETRY_TIMEOUT)
        logger.info("Creating test pod %s with retry mechanism", name)
        return provision(
            lambda: self._create(name, containers, labels),
            PodReadiness(self.client, logger, PodFailurePolicy.RAISE),
            spec,
            attempts,
            delete=self.client.delete_resource,
            exists=self.client.resource_exists,
            logger=logger,
            cancel=cancel,
            description=f"pod {self.namespace}/{name}",
            delete_spec=PollSpec(interval=DELETE_WAIT_INTERVAL, timeout=DELETE_WAIT_TIMEOUT),
        )

    def wait_for_pod_state(
        self,
        name: str,
        spec: Optional[PollSpec] = None,
        policy: PodFailurePolicy = PodFailurePolicy.RAISE,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Wait for a pod to be Running or Succeeded (or Failed, under ACCEPT)."""
        spec = spec or PollSpec(interval=POD_READY_INTERVAL, timeout=POD_READY_TIMEOUT)
        predicate = PodReadiness(self.client, logger, policy)
        wait_for_condition(
            f"pod {self.namespace}/{name}",
            predicate.bind(self._handle(name)),
            spec,
            logger=logger,
            cancel=cancel,
        )

    def get_pod_logs(self, name: str) -> str:
        return self.client.get_pod_logs(self.namespace, name)

    def wait_for_pod_and_check_logs(
        self,
        name: str,
        substring: str,
        spec: Optional[PollSpec] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """
        Wait until the logs of a pod contain ``substring``.

        A Running pod is polled until the text shows up. A pod that finishes
        (Succeeded or Failed) without printing it fails the wait.

        Returns:
            The pod logs

        Raises:
            PredicateFailedError: The pod finished without ``substring`` in its logs
        """
        spec = spec or PollSpec(interval=POD_LOGS_INTERVAL, timeout=POD_LOGS_TIMEOUT)
        handle = self._handle(name)
        reader = PodReadiness(self.client, logger, PodFailurePolicy.ACCEPT)
        logger.info("Waiting for pod %s to complete and checking logs for substring: %s", name, substring)

        def _check() -> PredicateResult:
            phase = pod_phase(reader.fetch(handle))
            if phase not in ("Running", "Succeeded", "Failed"):
                return PredicateResult.pending(f"phase={phase}")
            try:
                logs = self.get_pod_logs(name)
            except (ApiException, HTTPError) as e:
                raise TransientError(f"failed to read logs of {handle}: {e}") from e
            if substring in logs:
                return PredicateResult.ready(f"found {substring!r} in logs of pod {name}", value=logs)
            if phase == "Running":
                return PredicateResult.pending(f"{substring!r} not in logs yet")
            return PredicateResult.failed(f"pod {name} finished ({phase}) without {substring!r} in its logs")

        return wait_for_condition(f"logs of pod {self.namespace}/{name}", _check, spec, logger=logger, cancel=cancel)

    def delete_pod(self, name: str) -> bool:
        return self.client.delete_resource(self._handle(name))
