"""Unit tests for lib/kube_client.py.

Tests cover KubeClient initialization, per-kind CRUD operations and
handle-based dispatch.
"""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import config
from kubernetes.client.rest import ApiException
from tenacity import wait_none

from lib.exceptions import ValidationError
from lib.kube_client import KubeClient
from lib.resources import ResourceHandle, ResourceKind


@pytest.fixture
def mock_k8s_apis():
    """Mock Kubernetes API clients."""
    with patch("lib.kube_client.config.load_kube_config") as mock_config, patch(
        "lib.kube_client.config.load_incluster_config"
    ) as mock_incluster, patch("lib.kube_client.client.CustomObjectsApi") as mock_custom_cls, patch(
        "lib.kube_client.client.CoreV1Api"
    ) as mock_core_cls, patch(
        "lib.kube_client.client.NetworkingV1Api"
    ) as mock_networking_cls:

        yield {
            "config": mock_config,
            "incluster": mock_incluster,
            "custom_api": mock_custom_cls.return_value,
            "core_api": mock_core_cls.return_value,
            "networking_api": mock_networking_cls.return_value,
        }


@pytest.fixture
def kube_client(mock_k8s_apis):
    """Create a KubeClient instance with mocked APIs."""
    return KubeClient(context="test-context")


def pod_body(name="web"):
    return {"apiVersion": "v1", "kind": "Pod", "metadata": {"name": name, "namespace": "core"}}


@pytest.mark.unit
class TestKubeClientInit:
    def test_explicit_context_uses_kubeconfig(self, mock_k8s_apis):
        client = KubeClient(context="test-context")

        mock_k8s_apis["config"].assert_called_once_with(context="test-context")
        mock_k8s_apis["incluster"].assert_not_called()
        assert client.context == "test-context"

    def test_no_context_prefers_in_cluster(self, mock_k8s_apis):
        client = KubeClient()

        mock_k8s_apis["incluster"].assert_called_once()
        mock_k8s_apis["config"].assert_not_called()
        assert client.context == "in-cluster"

    def test_no_context_falls_back_to_kubeconfig(self, mock_k8s_apis):
        mock_k8s_apis["incluster"].side_effect = config.ConfigException("not in a pod")

        client = KubeClient()

        mock_k8s_apis["config"].assert_called_once_with(context=None)
        assert client.context == "default"

    def test_verify_connection(self, kube_client, mock_k8s_apis):
        kube_client.verify_connection()

        mock_k8s_apis["core_api"].list_namespace.assert_called_once_with(limit=1)


@pytest.mark.unit
class TestPods:
    def test_create_pod(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["core_api"].create_namespaced_pod.return_value.to_dict.return_value = {"metadata": {"name": "web"}}

        result = kube_client.create_pod("core", pod_body())

        assert result == {"metadata": {"name": "web"}}
        mock_k8s_apis["core_api"].create_namespaced_pod.assert_called_once_with(namespace="core", body=pod_body())

    def test_create_pod_invalid_name(self, kube_client, mock_k8s_apis):
        with pytest.raises(ValidationError):
            kube_client.create_pod("core", pod_body("Not_Valid"))

        mock_k8s_apis["core_api"].create_namespaced_pod.assert_not_called()

    def test_get_pod_not_found(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["core_api"].read_namespaced_pod.side_effect = ApiException(status=404)

        assert kube_client.get_pod("core", "web") is None

    def test_get_pod_forbidden_propagates(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["core_api"].read_namespaced_pod.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(ApiException):
            kube_client.get_pod("core", "web")

        assert mock_k8s_apis["core_api"].read_namespaced_pod.call_count == 1

    def test_get_pod_retries_server_errors(self, kube_client, mock_k8s_apis):
        pod = MagicMock()
        pod.to_dict.return_value = {"status": {"phase": "Running"}}
        mock_k8s_apis["core_api"].read_namespaced_pod.side_effect = [ApiException(status=503), pod]

        with patch.object(KubeClient.get_pod.retry, "wait", wait_none()):
            result = kube_client.get_pod("core", "web")

        assert result["status"]["phase"] == "Running"
        assert mock_k8s_apis["core_api"].read_namespaced_pod.call_count == 2

    def test_list_pods(self, kube_client, mock_k8s_apis):
        pod = MagicMock()
        pod.to_dict.return_value = {"metadata": {"name": "web"}}
        mock_k8s_apis["core_api"].list_namespaced_pod.return_value.items = [pod]

        assert kube_client.list_pods("core", label_selector="app=web") == [{"metadata": {"name": "web"}}]
        mock_k8s_apis["core_api"].list_namespaced_pod.assert_called_once_with(namespace="core", label_selector="app=web")

    def test_get_pod_logs_for_container(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["core_api"].read_namespaced_pod_log.return_value = "HTTP Response Code: 200"

        assert kube_client.get_pod_logs("core", "web", container="curl") == "HTTP Response Code: 200"
        mock_k8s_apis["core_api"].read_namespaced_pod_log.assert_called_once_with(
            name="web", namespace="core", container="curl"
        )

    def test_delete_pod_absent(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["core_api"].delete_namespaced_pod.side_effect = ApiException(status=404)

        assert kube_client.delete_pod("core", "web") is False


@pytest.mark.unit
class TestCustomResources:
    def test_get_custom_resource(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["custom_api"].get_namespaced_custom_object.return_value = {"metadata": {"name": "web"}}

        result = kube_client.get_custom_resource("route.openshift.io", "v1", "routes", "web", namespace="core")

        assert result == {"metadata": {"name": "web"}}
        mock_k8s_apis["custom_api"].get_namespaced_custom_object.assert_called_once_with(
            group="route.openshift.io",
            version="v1",
            namespace="core",
            plural="routes",
            name="web",
        )

    def test_get_custom_resource_not_found(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["custom_api"].get_namespaced_custom_object.side_effect = ApiException(status=404)

        assert kube_client.get_custom_resource("kubevirt.io", "v1", "virtualmachines", "rhel", namespace="core") is None

    def test_list_custom_resources_follows_continue_token(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["custom_api"].list_namespaced_custom_object.side_effect = [
            {"items": [{"metadata": {"name": "a"}}], "metadata": {"continue": "token"}},
            {"items": [{"metadata": {"name": "b"}}], "metadata": {}},
        ]

        items = kube_client.list_custom_resources("kubevirt.io", "v1", "virtualmachines", namespace="core")

        assert [i["metadata"]["name"] for i in items] == ["a", "b"]

    def test_create_custom_resource(self, kube_client, mock_k8s_apis):
        body = {"metadata": {"name": "rhel"}}

        kube_client.create_custom_resource("template.openshift.io", "v1", "templateinstances", body, namespace="core")

        mock_k8s_apis["custom_api"].create_namespaced_custom_object.assert_called_once_with(
            group="template.openshift.io",
            version="v1",
            namespace="core",
            plural="templateinstances",
            body=body,
        )

    def test_patch_custom_resource(self, kube_client, mock_k8s_apis):
        patch_body = {"spec": {"running": False}}

        kube_client.patch_custom_resource("kubevirt.io", "v1", "virtualmachines", "rhel", patch_body, namespace="core")

        mock_k8s_apis["custom_api"].patch_namespaced_custom_object.assert_called_once_with(
            group="kubevirt.io",
            version="v1",
            namespace="core",
            plural="virtualmachines",
            name="rhel",
            body=patch_body,
        )

    def test_delete_custom_resource_absent(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["custom_api"].delete_namespaced_custom_object.side_effect = ApiException(status=404)

        assert kube_client.delete_custom_resource("kubevirt.io", "v1", "virtualmachines", "rhel", namespace="core") is False


@pytest.mark.unit
class TestHandleDispatch:
    def test_get_resource_pod(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["core_api"].read_namespaced_pod.return_value.to_dict.return_value = {"kind": "Pod"}

        result = kube_client.get_resource(ResourceHandle(ResourceKind.POD, "core", "web"))

        assert result == {"kind": "Pod"}

    def test_get_resource_vm_instance(self, kube_client, mock_k8s_apis):
        kube_client.get_resource(ResourceHandle(ResourceKind.VIRTUAL_MACHINE_INSTANCE, "core", "rhel"))

        mock_k8s_apis["custom_api"].get_namespaced_custom_object.assert_called_once_with(
            group="kubevirt.io",
            version="v1",
            namespace="core",
            plural="virtualmachineinstances",
            name="rhel",
        )

    def test_delete_resource_network_policy(self, kube_client, mock_k8s_apis):
        assert kube_client.delete_resource(ResourceHandle(ResourceKind.NETWORK_POLICY, "core", "allow")) is True

        mock_k8s_apis["networking_api"].delete_namespaced_network_policy.assert_called_once_with(
            name="allow", namespace="core"
        )

    def test_delete_resource_route(self, kube_client, mock_k8s_apis):
        kube_client.delete_resource(ResourceHandle(ResourceKind.ROUTE, "core", "web"))

        mock_k8s_apis["custom_api"].delete_namespaced_custom_object.assert_called_once_with(
            group="route.openshift.io",
            version="v1",
            namespace="core",
            plural="routes",
            name="web",
        )

    def test_resource_exists(self, kube_client, mock_k8s_apis):
        mock_k8s_apis["core_api"].read_namespaced_service.side_effect = ApiException(status=404)

        assert kube_client.resource_exists(ResourceHandle(ResourceKind.SERVICE, "core", "lb")) is False
