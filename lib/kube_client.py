"""
Kubernetes client wrapper for the resources provisioned by functional tests.

Every call validates its Kubernetes names before reaching the API and is
retried on transient API failures (5xx, 429, connection errors).
"""

import logging
from typing import Any, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.exceptions import HTTPError

from lib.resources import CUSTOM_RESOURCE_COORDINATES, ResourceHandle, ResourceKind
from lib.validation import InputValidator

logger = logging.getLogger("ocp_functional")


def is_retryable_error(exception: BaseException) -> bool:
    """Check if exception is retryable."""
    if isinstance(exception, ApiException):
        # Retry on server errors (5xx) and too many requests (429)
        return 500 <= exception.status < 600 or exception.status == 429
    if isinstance(exception, HTTPError):
        return True
    return False


def _should_retry(exception: BaseException) -> bool:
    if not isinstance(exception, Exception):
        return False
    return is_retryable_error(exception)


# Standard retry decorator for API calls
retry_api_call = retry(
    retry=retry_if_exception(_should_retry),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    stop=stop_after_attempt(5),
    before_sleep=before_sleep_log(logger, logging.DEBUG),
    reraise=True,
)


def _load_config(context: Optional[str]) -> str:
    """Load in-cluster config when no context is requested, else kubeconfig."""
    if context is None:
        try:
            config.load_incluster_config()
            return "in-cluster"
        except config.ConfigException:
            logger.debug("In-cluster configuration not available, falling back to kubeconfig")
    # load_kube_config honours $KUBECONFIG and falls back to ~/.kube/config
    config.load_kube_config(context=context)
    return context or "default"


class KubeClient:
    """Wrapper for Kubernetes API clients with harness-specific helpers."""

    def __init__(
        self,
        context: Optional[str] = None,
        request_timeout: int = 30,
    ) -> None:
        """
        Initialize Kubernetes client.

        Args:
            context: Kubernetes context name; None tries in-cluster config first
            request_timeout: API request timeout in seconds
        """
        self.context = _load_config(context)

        # Per-instance configuration so parallel clients don't share state
        configuration = client.Configuration.get_default_copy()
        configuration.retries = 3

        api_client = client.ApiClient(configuration)
        self.core_v1 = client.CoreV1Api(api_client)
        self.networking_v1 = client.NetworkingV1Api(api_client)
        self.custom_api = client.CustomObjectsApi(api_client)

        self.core_v1.api_client.configuration.timeout = request_timeout
        self.networking_v1.api_client.configuration.timeout = request_timeout
        self.custom_api.api_client.configuration.timeout = request_timeout

        logger.info(
            "Initialized Kubernetes client for context: %s (timeout: %ss)",
            self.context,
            request_timeout,
        )

    @retry_api_call
    def verify_connection(self) -> None:
        """Check that the cluster answers by listing namespaces."""
        self.core_v1.list_namespace(limit=1)
        logger.info("Kubernetes connection verified for context: %s", self.context)

    # =============================
    # Pods (core/v1)
    # =============================
    @retry_api_call
    def create_pod(self, namespace: str, body: Dict[str, Any]) -> Dict:
        """Create a pod from a manifest dict.

        Raises:
            ValidationError: If namespace or pod name is invalid
        """
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(body.get("metadata", {}).get("name", ""), "pod")

        try:
            result = self.core_v1.create_namespaced_pod(namespace=namespace, body=body)
            return result.to_dict()
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to create pod %s/%s: %s", namespace, body["metadata"]["name"], e.reason)
            raise

    @retry_api_call
    def get_pod(self, namespace: str, name: str) -> Optional[Dict]:
        """Get a pod as dict or None if not found."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "pod")

        try:
            pod = self.core_v1.read_namespaced_pod(name=name, namespace=namespace)
            return pod.to_dict()
        except ApiException as e:
            if e.status == 404:
                return None
            if is_retryable_error(e):
                raise
            logger.error("Failed to get pod %s/%s: status=%s reason=%s", namespace, name, e.status, e.reason)
            raise

    @retry_api_call
    def list_pods(self, namespace: str, label_selector: Optional[str] = None) -> List[Dict]:
        """List pods in a namespace, optionally filtered by label selector."""
        InputValidator.validate_kubernetes_namespace(namespace)

        pods = self.core_v1.list_namespaced_pod(namespace=namespace, label_selector=label_selector)
        return [pod.to_dict() for pod in pods.items]

    @retry_api_call
    def get_pod_logs(self, namespace: str, name: str, container: Optional[str] = None) -> str:
        """Fetch the logs of a pod (first container unless ``container`` is given)."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "pod")

        kwargs: Dict[str, Any] = {"name": name, "namespace": namespace}
        if container:
            kwargs["container"] = container
        try:
            return self.core_v1.read_namespaced_pod_log(**kwargs)
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to fetch logs for pod %s/%s: %s", namespace, name, e.reason)
            raise

    @retry_api_call
    def delete_pod(self, namespace: str, name: str) -> bool:
        """Delete a pod; return False if it was already absent."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "pod")

        try:
            self.core_v1.delete_namespaced_pod(name=name, namespace=namespace)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            if is_retryable_error(e):
                raise
            logger.error("Failed to delete pod %s/%s: %s", namespace, name, e.reason)
            raise

    # =============================
    # Services (core/v1)
    # =============================
    @retry_api_call
    def create_service(self, namespace: str, body: Dict[str, Any]) -> Dict:
        """Create a service from a manifest dict."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(body.get("metadata", {}).get("name", ""), "service")

        try:
            result = self.core_v1.create_namespaced_service(namespace=namespace, body=body)
            return result.to_dict()
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to create service %s/%s: %s", namespace, body["metadata"]["name"], e.reason)
            raise

    @retry_api_call
    def get_service(self, namespace: str, name: str) -> Optional[Dict]:
        """Get a service as dict or None if not found."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "service")

        try:
            service = self.core_v1.read_namespaced_service(name=name, namespace=namespace)
            return service.to_dict()
        except ApiException as e:
            if e.status == 404:
                return None
            if is_retryable_error(e):
                raise
            logger.error("Failed to get service %s/%s: %s", namespace, name, e.reason)
            raise

    @retry_api_call
    def delete_service(self, namespace: str, name: str) -> bool:
        """Delete a service; return False if it was already absent."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "service")

        try:
            self.core_v1.delete_namespaced_service(name=name, namespace=namespace)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            if is_retryable_error(e):
                raise
            logger.error("Failed to delete service %s/%s: %s", namespace, name, e.reason)
            raise

    # =============================
    # NetworkPolicies (networking/v1)
    # =============================
    @retry_api_call
    def create_network_policy(self, namespace: str, body: Dict[str, Any]) -> Dict:
        """Create a NetworkPolicy from a manifest dict."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(body.get("metadata", {}).get("name", ""), "NetworkPolicy")

        try:
            result = self.networking_v1.create_namespaced_network_policy(namespace=namespace, body=body)
            return result.to_dict()
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to create NetworkPolicy %s/%s: %s", namespace, body["metadata"]["name"], e.reason)
            raise

    @retry_api_call
    def get_network_policy(self, namespace: str, name: str) -> Optional[Dict]:
        """Get a NetworkPolicy as dict or None if not found."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "NetworkPolicy")

        try:
            policy = self.networking_v1.read_namespaced_network_policy(name=name, namespace=namespace)
            return policy.to_dict()
        except ApiException as e:
            if e.status == 404:
                return None
            if is_retryable_error(e):
                raise
            raise

    @retry_api_call
    def delete_network_policy(self, namespace: str, name: str) -> bool:
        """Delete a NetworkPolicy; return False if it was already absent."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "NetworkPolicy")

        try:
            self.networking_v1.delete_namespaced_network_policy(name=name, namespace=namespace)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            if is_retryable_error(e):
                raise
            logger.error("Failed to delete NetworkPolicy %s/%s: %s", namespace, name, e.reason)
            raise

    # =============================
    # Custom resources (routes, KubeVirt, templates)
    # =============================
    @retry_api_call
    def get_custom_resource(
        self,
        group: str,
        version: str,
        plural: str,
        name: str,
        namespace: Optional[str] = None,
    ) -> Optional[Dict]:
        """
        Get a custom resource.

        Args:
            group: API group (e.g., 'kubevirt.io')
            version: API version (e.g., 'v1')
            plural: Resource plural (e.g., 'virtualmachines')
            name: Resource name
            namespace: Namespace (None for cluster-scoped)

        Returns:
            Resource dict or None if not found

        Raises:
            ValidationError: If resource name or namespace is invalid
        """
        try:
            InputValidator.validate_kubernetes_name(name, "custom resource")
            if namespace:
                InputValidator.validate_kubernetes_namespace(namespace)

            if namespace:
                resource = self.custom_api.get_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    name=name,
                )
            else:
                resource = self.custom_api.get_cluster_custom_object(
                    group=group, version=version, plural=plural, name=name
                )
            return resource
        except ApiException as e:
            if e.status == 404:
                return None
            if is_retryable_error(e):
                raise
            raise

    @retry_api_call
    def list_custom_resources(
        self,
        group: str,
        version: str,
        plural: str,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[Dict]:
        """List custom resources, following continue tokens."""
        items: List[Dict] = []
        continue_token: Optional[str] = None

        while True:
            try:
                if namespace:
                    result = self.custom_api.list_namespaced_custom_object(
                        group=group,
                        version=version,
                        namespace=namespace,
                        plural=plural,
                        label_selector=label_selector,
                        _continue=continue_token,
                    )
                else:
                    result = self.custom_api.list_cluster_custom_object(
                        group=group,
                        version=version,
                        plural=plural,
                        label_selector=label_selector,
                        _continue=continue_token,
                    )
            except ApiException as e:
                if e.status == 404:
                    return []
                raise

            items.extend(result.get("items", []))

            metadata = result.get("metadata") or {}
            continue_token = metadata.get("continue")

            if not continue_token:
                break

        return items

    @retry_api_call
    def patch_custom_resource(
        self,
        group: str,
        version: str,
        plural: str,
        name: str,
        patch: Dict[str, Any],
        namespace: Optional[str] = None,
    ) -> Dict:
        """Patch a custom resource (merge patch)."""
        InputValidator.validate_kubernetes_name(name, "custom resource")
        if namespace:
            InputValidator.validate_kubernetes_namespace(namespace)

        logger.debug("Patching %s/%s in %s with: %s", plural, name, namespace or "cluster scope", patch)

        try:
            if namespace:
                return self.custom_api.patch_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    name=name,
                    body=patch,
                )
            return self.custom_api.patch_cluster_custom_object(
                group=group, version=version, plural=plural, name=name, body=patch
            )
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to patch %s/%s: %s", plural, name, e.reason)
            raise

    @retry_api_call
    def create_custom_resource(
        self,
        group: str,
        version: str,
        plural: str,
        body: Dict[str, Any],
        namespace: Optional[str] = None,
    ) -> Dict:
        """Create a custom resource.

        Raises:
            ValidationError: If resource name or namespace is invalid
        """
        resource_name = body.get("metadata", {}).get("name")
        if resource_name:
            InputValidator.validate_kubernetes_name(resource_name, "custom resource")
        if namespace:
            InputValidator.validate_kubernetes_namespace(namespace)

        try:
            if namespace:
                return self.custom_api.create_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    body=body,
                )
            return self.custom_api.create_cluster_custom_object(group=group, version=version, plural=plural, body=body)
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to create %s %s: %s", plural, resource_name, e.reason)
            raise

    @retry_api_call
    def delete_custom_resource(
        self,
        group: str,
        version: str,
        plural: str,
        name: str,
        namespace: Optional[str] = None,
    ) -> bool:
        """Delete a custom resource; return False if it was already absent."""
        InputValidator.validate_kubernetes_name(name, "custom resource")
        if namespace:
            InputValidator.validate_kubernetes_namespace(namespace)

        try:
            if namespace:
                self.custom_api.delete_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    name=name,
                )
            else:
                self.custom_api.delete_cluster_custom_object(group=group, version=version, plural=plural, name=name)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            if is_retryable_error(e):
                raise
            logger.error("Failed to delete %s/%s: %s", plural, name, e.reason)
            raise

    # =============================
    # Handle-based dispatch
    # =============================
    def get_resource(self, handle: ResourceHandle) -> Optional[Dict]:
        """Fetch the current state of the resource behind ``handle``."""
        if handle.kind is ResourceKind.POD:
            return self.get_pod(handle.namespace, handle.name)
        if handle.kind is ResourceKind.SERVICE:
            return self.get_service(handle.namespace, handle.name)
        if handle.kind is ResourceKind.NETWORK_POLICY:
            return self.get_network_policy(handle.namespace, handle.name)
        group, version, plural = CUSTOM_RESOURCE_COORDINATES[handle.kind]
        return self.get_custom_resource(group, version, plural, handle.name, namespace=handle.namespace)

    def delete_resource(self, handle: ResourceHandle) -> bool:
        """Delete the resource behind ``handle``; return False if already absent."""
        logger.info("Deleting %s", handle)
        if handle.kind is ResourceKind.POD:
            return self.delete_pod(handle.namespace, handle.name)
        if handle.kind is ResourceKind.SERVICE:
            return self.delete_service(handle.namespace, handle.name)
        if handle.kind is ResourceKind.NETWORK_POLICY:
            return self.delete_network_policy(handle.namespace, handle.name)
        group, version, plural = CUSTOM_RESOURCE_COORDINATES[handle.kind]
        return self.delete_custom_resource(group, version, plural, handle.name, namespace=handle.namespace)

    def resource_exists(self, handle: ResourceHandle) -> bool:
        return self.get_resource(handle) is not None
