"""
Pytest fixtures for E2E testing.

This module provides CLI option handling, a session KubeClient and per-test
TestContext fixtures that clean up everything a scenario created.
"""

import os
from dataclasses import dataclass

import pytest

from lib.constants import DEFAULT_NAMESPACE, DEFAULT_TEMPLATE_NAME
from lib.utils import setup_logging
from modules.context import TestContext


def pytest_addoption(parser):
    """Add E2E-specific command line options."""
    group = parser.getgroup("e2e", "E2E Testing Options")

    group.addoption(
        "--e2e-context",
        action="store",
        default=os.environ.get("E2E_CONTEXT", ""),
        help="Kubernetes context of the cluster under test (env: E2E_CONTEXT)",
    )

    group.addoption(
        "--e2e-namespace",
        action="store",
        default=os.environ.get("E2E_NAMESPACE", DEFAULT_NAMESPACE),
        help=f"Namespace scenarios run in (env: E2E_NAMESPACE, default: {DEFAULT_NAMESPACE})",
    )

    group.addoption(
        "--e2e-secondary-namespace",
        action="store",
        default=os.environ.get("E2E_SECONDARY_NAMESPACE", "test-4"),
        help="Second namespace for cross-namespace scenarios (env: E2E_SECONDARY_NAMESPACE, default: test-4)",
    )

    group.addoption(
        "--e2e-server-image",
        action="store",
        default=os.environ.get("E2E_SERVER_IMAGE", "registry.access.redhat.com/ubi8/httpd-24"),
        help="HTTP server image listening on port 80 (env: E2E_SERVER_IMAGE)",
    )

    group.addoption(
        "--e2e-client-image",
        action="store",
        default=os.environ.get("E2E_CLIENT_IMAGE", "curlimages/curl"),
        help="Image providing curl (env: E2E_CLIENT_IMAGE)",
    )

    group.addoption(
        "--e2e-vm-template",
        action="store",
        default=os.environ.get("E2E_VM_TEMPLATE", DEFAULT_TEMPLATE_NAME),
        help=f"Template VMs are instantiated from (env: E2E_VM_TEMPLATE, default: {DEFAULT_TEMPLATE_NAME})",
    )

    group.addoption(
        "--e2e-vm-script",
        action="store",
        default=os.environ.get("E2E_VM_SCRIPT", "scripts/httpd_install.sh"),
        help="Provisioning script run by cloud-init in VMs (env: E2E_VM_SCRIPT)",
    )


@dataclass(frozen=True)
class E2EConfig:
    context: str
    namespace: str
    secondary_namespace: str
    server_image: str
    client_image: str
    vm_template: str
    vm_script: str


@pytest.fixture(scope="session")
def e2e_config(request) -> E2EConfig:
    """Create E2E configuration from command line options."""
    return E2EConfig(
        context=request.config.getoption("--e2e-context"),
        namespace=request.config.getoption("--e2e-namespace"),
        secondary_namespace=request.config.getoption("--e2e-secondary-namespace"),
        server_image=request.config.getoption("--e2e-server-image"),
        client_image=request.config.getoption("--e2e-client-image"),
        vm_template=request.config.getoption("--e2e-vm-template"),
        vm_script=request.config.getoption("--e2e-vm-script"),
    )


@pytest.fixture(scope="session")
def kube_client(e2e_config: E2EConfig):
    """
    Create a KubeClient for the cluster under test.

    Tests using this fixture are skipped if no context is provided.
    """
    if not e2e_config.context:
        pytest.skip("--e2e-context not provided (required for real cluster tests)")

    from lib.kube_client import KubeClient

    setup_logging(verbose=True)
    client = KubeClient(context=e2e_config.context)
    try:
        client.verify_connection()
    except Exception as e:
        pytest.fail(f"Cannot connect to cluster with context {e2e_config.context}: {e}")
    return client


@pytest.fixture
def ctx(kube_client, e2e_config: E2EConfig):
    """TestContext in the primary namespace; tracked resources are deleted afterwards."""
    with TestContext(kube_client, e2e_config.namespace) as context:
        yield context


@pytest.fixture
def helper_ctx(kube_client, e2e_config: E2EConfig, ctx: TestContext):
    """TestContext in the secondary namespace sharing the random suffix of ``ctx``."""
    with TestContext(kube_client, e2e_config.secondary_namespace, random_name=ctx.random_name) as context:
        yield context
