#!/usr/bin/env python3
"""
Test cases for input validation in the functional test harness.
"""

import pytest

from lib.exceptions import ConfigurationError
from lib.validation import InputValidator, ValidationError


class MockArgs:
    """Mock arguments object for testing."""

    def __init__(self, **kwargs):
        defaults = {
            "context": None,
            "namespace": "core",
            "kind": "pod",
            "name": None,
            "image": "registry.example.com/httpd:latest",
            "template": "rhel8-4-az-a",
            "script": None,
            "interval": 15.0,
            "timeout": 300.0,
            "attempts": 3,
            "log_format": "text",
            "ssh_key": None,
            "read_file": None,
        }
        defaults.update(kwargs)
        for key, value in defaults.items():
            setattr(self, key, value)


@pytest.mark.unit
class TestKubernetesNames:
    @pytest.mark.parametrize(
        "name",
        ["web", "functional-test-server-ab12cd34", "a", "my.resource.name", "0pod"],
    )
    def test_valid_names(self, name):
        InputValidator.validate_kubernetes_name(name)

    @pytest.mark.parametrize("name", ["", "Web", "web_server", "-web", "web-", "a" * 254])
    def test_invalid_names(self, name):
        with pytest.raises(ValidationError):
            InputValidator.validate_kubernetes_name(name, "pod")

    def test_error_mentions_resource_type(self):
        with pytest.raises(ValidationError, match="pod"):
            InputValidator.validate_kubernetes_name("Bad", "pod")

    @pytest.mark.parametrize("namespace", ["core", "openshift", "test-ns-2"])
    def test_valid_namespaces(self, namespace):
        InputValidator.validate_kubernetes_namespace(namespace)

    @pytest.mark.parametrize("namespace", ["", "2core", "core.ns", "a" * 64, "Core"])
    def test_invalid_namespaces(self, namespace):
        with pytest.raises(ValidationError):
            InputValidator.validate_kubernetes_namespace(namespace)


@pytest.mark.unit
class TestLabels:
    def test_valid_labels(self):
        InputValidator.validate_labels(
            {"app": "web", "managed": "openshift-testing", "vm.kubevirt.io/name": "rhel", "empty": ""}
        )

    @pytest.mark.parametrize(
        "labels",
        [{"": "web"}, {"app": "-web"}, {"bad key": "x"}, {"app": "a" * 64}],
    )
    def test_invalid_labels(self, labels):
        with pytest.raises(ValidationError):
            InputValidator.validate_labels(labels)

    def test_none_is_allowed(self):
        InputValidator.validate_labels(None)


@pytest.mark.unit
class TestContextNames:
    @pytest.mark.parametrize(
        "name",
        ["primary", "default/api.example.com:6443/admin", "system:admin/api-ocp-cluster:6443", "a"],
    )
    def test_valid(self, name):
        InputValidator.validate_context_name(name)

    @pytest.mark.parametrize("name", ["", "my cluster", "/admin", "admin/"])
    def test_invalid(self, name):
        with pytest.raises(ValidationError):
            InputValidator.validate_context_name(name)


@pytest.mark.unit
class TestScalars:
    @pytest.mark.parametrize("port", [0, -1, 65536])
    def test_invalid_port(self, port):
        with pytest.raises(ValidationError):
            InputValidator.validate_port(port)

    def test_valid_port(self):
        InputValidator.validate_port(22)

    def test_positive_number(self):
        with pytest.raises(ValidationError, match="--interval"):
            InputValidator.validate_positive_number(0, "--interval")

    def test_non_empty_string(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_non_empty_string("   ", "--image")


@pytest.mark.unit
class TestCLIArgumentValidation:
    """Test CLI argument validation."""

    def test_valid_pod_args(self):
        InputValidator.validate_all_cli_args(MockArgs())

    def test_valid_vm_args(self):
        InputValidator.validate_all_cli_args(
            MockArgs(kind="vm", image=None, script="scripts/httpd.sh", ssh_key="~/.ssh/id_rsa", read_file="/tmp/out")
        )

    def test_pod_requires_image(self):
        with pytest.raises(ValidationError, match="--image"):
            InputValidator.validate_all_cli_args(MockArgs(image=None))

    def test_vm_requires_script(self):
        with pytest.raises(ValidationError, match="--script"):
            InputValidator.validate_all_cli_args(MockArgs(kind="vm"))

    def test_ssh_key_only_for_vm(self):
        with pytest.raises(ValidationError, match="--ssh-key"):
            InputValidator.validate_all_cli_args(MockArgs(ssh_key="id_rsa"))

    def test_read_file_requires_ssh_key(self):
        with pytest.raises(ValidationError, match="--read-file"):
            InputValidator.validate_all_cli_args(MockArgs(kind="vm", script="s.sh", read_file="/tmp/out"))

    def test_invalid_kind(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_all_cli_args(MockArgs(kind="container"))

    def test_invalid_attempts(self):
        with pytest.raises(ValidationError, match="--attempts"):
            InputValidator.validate_all_cli_args(MockArgs(attempts=0))

    def test_invalid_timeout(self):
        with pytest.raises(ValidationError, match="--timeout"):
            InputValidator.validate_all_cli_args(MockArgs(timeout=-1))

    def test_invalid_name(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_all_cli_args(MockArgs(name="Web_Server"))

    def test_validation_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            InputValidator.validate_all_cli_args(MockArgs(namespace="Bad"))
