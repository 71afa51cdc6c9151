#!/usr/bin/env python3
"""
OpenShift Functional Test Provisioner

Provisions a single test workload on an OpenShift cluster and waits until it
is usable:

- pod: created with retries and waited on until Running or Succeeded
- vm: instantiated from a template with a cloud-init provisioning script and
  waited on until ready; optionally exposed through a LoadBalancer SSH
  service, reached over SSH, and a remote file printed
"""

import argparse
import logging
import shlex
import sys
import threading
import time

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from lib import KubeClient, PollSpec, __version__, setup_logging
from lib.constants import (
    DEFAULT_NAMESPACE,
    DEFAULT_TEMPLATE_NAME,
    DEFAULT_TEMPLATE_NAMESPACE,
    EXIT_FAILURE,
    EXIT_INTERRUPT,
    EXIT_SUCCESS,
    POD_CREATE_ATTEMPTS,
    POD_RETRY_INTERVAL,
    POD_RETRY_TIMEOUT,
    SSH_DEFAULT_PORT,
    SSH_DEFAULT_USER,
    VM_DEFAULT_CPU_LIMIT,
    VM_DEFAULT_CPU_REQUEST,
    VM_DEFAULT_MEMORY,
)
from lib.exceptions import HarnessError
from lib.utils import format_duration
from lib.validation import InputValidator, ValidationError
from modules.context import TestContext
from modules.pods import ContainerConfig
from modules.services import service_port
from modules.ssh import SSHTarget, poll_ssh_connection
from modules.vms import vm_resource_requirements

# Label KubeVirt puts on the virt-launcher pod of a VM
VM_NAME_LABEL = "vm.kubevirt.io/name"


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="OpenShift Functional Test Provisioner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Provision a pod and wait until it runs
  %(prog)s --kind pod --image registry.example.com/httpd:latest

  # Provision a VM from the default template with a provisioning script
  %(prog)s --kind vm --script scripts/httpd_install.sh

  # Provision a VM, expose SSH through a LoadBalancer and print a file
  %(prog)s --kind vm --script scripts/setup.sh --ssh-key ~/.ssh/id_rsa --read-file /tmp/result.txt

  # Delete everything that was created once the checks are done
  %(prog)s --kind pod --image busybox --command "echo ok" --cleanup
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--context", help="Kubernetes context (default: in-cluster, then current kubeconfig context)")
    parser.add_argument(
        "--namespace",
        default=DEFAULT_NAMESPACE,
        help=f"Namespace to provision into (default: {DEFAULT_NAMESPACE})",
    )
    parser.add_argument("--kind", choices=["pod", "vm"], required=True, help="Kind of workload to provision")
    parser.add_argument("--name", help="Resource name (default: generated from a random suffix)")

    pod_group = parser.add_argument_group("Pod Options (used with --kind pod)")
    pod_group.add_argument("--image", help="Container image")
    pod_group.add_argument("--command", help="Container command, split with shell quoting rules")
    pod_group.add_argument(
        "--attempts",
        type=int,
        default=POD_CREATE_ATTEMPTS,
        help=f"Maximum create attempts (default: {POD_CREATE_ATTEMPTS})",
    )

    vm_group = parser.add_argument_group("VM Options (used with --kind vm)")
    vm_group.add_argument(
        "--template",
        default=DEFAULT_TEMPLATE_NAME,
        help=f"Template to instantiate (default: {DEFAULT_TEMPLATE_NAME})",
    )
    vm_group.add_argument(
        "--template-namespace",
        default=DEFAULT_TEMPLATE_NAMESPACE,
        help=f"Namespace holding the template (default: {DEFAULT_TEMPLATE_NAMESPACE})",
    )
    vm_group.add_argument("--script", help="Local script run by cloud-init on first boot")
    vm_group.add_argument("--cpu-request", default=VM_DEFAULT_CPU_REQUEST, help="VM CPU request")
    vm_group.add_argument("--cpu-limit", default=VM_DEFAULT_CPU_LIMIT, help="VM CPU limit")
    vm_group.add_argument("--memory", default=VM_DEFAULT_MEMORY, help="VM memory")
    vm_group.add_argument("--ssh-key", help="Private key; exposes SSH through a LoadBalancer and connects")
    vm_group.add_argument("--ssh-user", default=SSH_DEFAULT_USER, help=f"SSH user (default: {SSH_DEFAULT_USER})")
    vm_group.add_argument("--read-file", help="Remote file to print once SSH is reachable")

    parser.add_argument(
        "--interval",
        type=float,
        default=POD_RETRY_INTERVAL,
        help=f"Seconds between readiness checks (default: {POD_RETRY_INTERVAL})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=POD_RETRY_TIMEOUT,
        help=f"Readiness timeout in seconds per wait (default: {POD_RETRY_TIMEOUT})",
    )
    parser.add_argument("--cleanup", action="store_true", help="Delete created resources before exiting")

    # Logging
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (text or json)",
    )

    return parser.parse_args(argv)


def validate_args(args: argparse.Namespace, logger: logging.Logger) -> None:
    """Validate argument combinations and input values."""
    try:
        InputValidator.validate_all_cli_args(args)
    except ValidationError as e:
        logger.error("Validation error: %s", str(e))
        sys.exit(EXIT_FAILURE)


def run_pod(
    args: argparse.Namespace,
    ctx: TestContext,
    spec: PollSpec,
    cancel: threading.Event,
    logger: logging.Logger,
) -> None:
    name = args.name or ctx.name("pod")
    containers = [
        ContainerConfig(
            name="main",
            image=args.image,
            command=shlex.split(args.command) if args.command else [],
        )
    ]
    handle = ctx.pods.create_pod_with_retry(name, containers, spec=spec, attempts=args.attempts, cancel=cancel)
    ctx.track(handle)
    logger.info("Pod %s is ready", handle)


def run_vm(
    args: argparse.Namespace,
    ctx: TestContext,
    spec: PollSpec,
    cancel: threading.Event,
    logger: logging.Logger,
) -> None:
    name = args.name or ctx.name("vm")
    resources = vm_resource_requirements(args.cpu_request, args.cpu_limit, args.memory)

    handle = ctx.vms.create_vm(
        name,
        args.script,
        template_name=args.template,
        resources=resources,
        wait=False,
        template_namespace=args.template_namespace,
    )
    ctx.track(ctx.vms.template_instance_handle(name))
    ctx.track(handle)
    ctx.vms.wait_for_template_instance(name, cancel=cancel)
    ctx.vms.wait_for_vm_ready(name, spec=spec, cancel=cancel)
    logger.info("VM %s is ready", handle)

    if not args.ssh_key:
        return

    service_name = ctx.name("ssh")
    ctx.track(
        ctx.services.create_service(
            service_name,
            "LoadBalancer",
            [service_port("ssh", SSH_DEFAULT_PORT, SSH_DEFAULT_PORT)],
            selector={VM_NAME_LABEL: name},
            wait=False,
        )
    )
    address = ctx.services.wait_for_external_ip(service_name, cancel=cancel)

    target = SSHTarget(host=address, key_path=args.ssh_key, user=args.ssh_user)
    with poll_ssh_connection(target, logger=logger, cancel=cancel) as session:
        if args.read_file:
            content = session.read_file(args.read_file)
            logger.info("Content of %s:\n%s", args.read_file, content)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    # Set up logging early so validate_args can use logger
    logger = setup_logging(args.verbose, args.log_format)

    validate_args(args, logger)

    logger.info("OpenShift Functional Test Provisioner v%s", __version__)

    try:
        client = KubeClient(args.context)
        client.verify_connection()
    except Exception as exc:  # pragma: no cover - fatal init error
        logger.error("Failed to initialize Kubernetes client: %s", exc)
        sys.exit(EXIT_FAILURE)

    ctx = TestContext(client, args.namespace)
    spec = PollSpec(interval=args.interval, timeout=args.timeout)
    cancel = threading.Event()
    started = time.monotonic()

    try:
        if args.kind == "pod":
            run_pod(args, ctx, spec, cancel, logger)
        else:
            run_vm(args, ctx, spec, cancel, logger)
    except KeyboardInterrupt:
        cancel.set()
        logger.warning("Operation interrupted by user")
        _finish(args, ctx, logger)
        sys.exit(EXIT_INTERRUPT)
    except (HarnessError, ApiException, HTTPError) as exc:
        logger.error("✗ Provisioning failed: %s", exc, exc_info=args.verbose)
        _finish(args, ctx, logger)
        sys.exit(EXIT_FAILURE)

    logger.info("✓ Provisioning completed in %s", format_duration(time.monotonic() - started))
    _finish(args, ctx, logger)
    sys.exit(EXIT_SUCCESS)


def _finish(args: argparse.Namespace, ctx: TestContext, logger: logging.Logger) -> None:
    if args.cleanup:
        ctx.cleanup()
        return
    for handle in ctx.tracked:
        logger.info("Left in place: %s", handle)


if __name__ == "__main__":
    main()
