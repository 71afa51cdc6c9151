"""
KubeVirt virtual machines instantiated from OpenShift templates.

A VM is created by fetching a template, customizing its VirtualMachine object
(resources, run state, cloud-init provisioning script) and instantiating it
through a TemplateInstance.
"""

import copy
import logging
import threading
from typing import Any, Dict, Optional

import yaml
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from lib.constants import (
    CLOUD_INIT_HEADER,
    CLOUD_INIT_SCRIPT_PATH,
    CLOUD_INIT_SCRIPT_PERMISSIONS,
    DEFAULT_TEMPLATE_NAME,
    DEFAULT_TEMPLATE_NAMESPACE,
    TEMPLATE_GROUP,
    TEMPLATE_INSTANCE_INTERVAL,
    TEMPLATE_INSTANCE_TIMEOUT,
    TEMPLATE_VERSION,
    VM_DEFAULT_CPU_LIMIT,
    VM_DEFAULT_CPU_REQUEST,
    VM_DEFAULT_MEMORY,
    VM_POD_IP_INTERVAL,
    VM_POD_IP_TIMEOUT,
    VM_READY_INTERVAL,
    VM_READY_TIMEOUT,
)
from lib.exceptions import ConfigurationError, TransientError
from lib.kube_client import KubeClient
from lib.readiness import TemplateInstanceReadiness, VirtualMachineReadiness
from lib.resources import ResourceHandle, ResourceKind
from lib.waiter import PollSpec, PredicateResult, wait_for_condition
from modules.pods import resource_requirements

logger = logging.getLogger("ocp_functional")

TEMPLATE_NAME_PARAMETER = "NAME"


def read_script(path: str) -> str:
    """Read the provisioning script injected into the VM."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise ConfigurationError(f"Failed to read provisioning script {path}: {e}") from e


def merge_cloud_init(existing: str, script: str) -> str:
    """
    Add ``script`` to cloud-init user data.

    The script is written to a fixed path by a ``write_files`` entry and run
    by a ``runcmd`` entry, both placed ahead of the existing entries. Missing
    sections and a missing ``#cloud-config`` header are created.

    Raises:
        ConfigurationError: If the existing user data is not a YAML mapping
    """
    try:
        data = yaml.safe_load(existing or "") or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Existing cloud-init user data is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Existing cloud-init user data is not a mapping")

    write_files = data.get("write_files") or []
    write_files.insert(
        0,
        {
            "path": CLOUD_INIT_SCRIPT_PATH,
            "permissions": CLOUD_INIT_SCRIPT_PERMISSIONS,
            "content": script,
        },
    )
    data["write_files"] = write_files

    runcmd = data.get("runcmd") or []
    runcmd.insert(0, f"bash {CLOUD_INIT_SCRIPT_PATH}")
    data["runcmd"] = runcmd

    return f"{CLOUD_INIT_HEADER}\n" + yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def vm_resource_requirements(
    cpu_request: str = VM_DEFAULT_CPU_REQUEST,
    cpu_limit: str = VM_DEFAULT_CPU_LIMIT,
    memory: str = VM_DEFAULT_MEMORY,
) -> Dict[str, Dict[str, str]]:
    """VM domain resources; memory request and limit are always equal."""
    return resource_requirements(cpu_request, cpu_limit, memory, memory)


def customize_template(
    template: Dict[str, Any],
    vm_name: str,
    script: str,
    resources: Dict[str, Dict[str, str]],
) -> Dict[str, Any]:
    """
    Return a copy of ``template`` whose VirtualMachine objects run on creation
    with ``resources`` and ``script`` merged into their cloud-init.

    Raises:
        ConfigurationError: If the template contains no VirtualMachine
    """
    template = copy.deepcopy(template)

    # Server-side fields are rejected when the template is embedded in an instance
    metadata = template.get("metadata") or {}
    for key in ("resourceVersion", "uid", "creationTimestamp", "managedFields"):
        metadata.pop(key, None)

    found = False
    for obj in template.get("objects") or []:
        if obj.get("kind") != "VirtualMachine":
            continue
        found = True

        vm_spec = obj.setdefault("spec", {})
        # running and runStrategy are mutually exclusive
        vm_spec.pop("runStrategy", None)
        vm_spec["running"] = True

        pod_spec = vm_spec.setdefault("template", {}).setdefault("spec", {})
        pod_spec.setdefault("domain", {})["resources"] = resources

        for volume in pod_spec.get("volumes") or []:
            cloud_init = volume.get("cloudInitNoCloud")
            if cloud_init is not None:
                cloud_init["userData"] = merge_cloud_init(cloud_init.get("userData", ""), script)
                break
        else:
            logger.warning("VirtualMachine in template %s has no cloudInitNoCloud volume", metadata.get("name"))

    if not found:
        raise ConfigurationError(f"Template {metadata.get('name')} does not contain a VirtualMachine")

    for parameter in template.get("parameters") or []:
        if parameter.get("name") == TEMPLATE_NAME_PARAMETER:
            parameter.pop("generate", None)
            parameter.pop("from", None)
            parameter["value"] = vm_name

    return template


def build_template_instance(name: str, namespace: str, template: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "apiVersion": f"{TEMPLATE_GROUP}/{TEMPLATE_VERSION}",
        "kind": "TemplateInstance",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"template": template},
    }


def vm_pod_ip(vmi: Dict[str, Any]) -> str:
    """Return the IP of the first interface of a VMI dict, or ''."""
    for interface in (vmi.get("status") or {}).get("interfaces") or []:
        ip = interface.get("ipAddress")
        if ip:
            return ip
    return ""


class VMManager:
    """Creates, waits for and inspects template-based VMs in one namespace."""

    def __init__(self, client: KubeClient, namespace: str):
        self.client = client
        self.namespace = namespace

    def _handle(self, kind: ResourceKind, name: str) -> ResourceHandle:
        return ResourceHandle(kind, self.namespace, name)

    def template_instance_handle(self, name: str) -> ResourceHandle:
        return self._handle(ResourceKind.TEMPLATE_INSTANCE, name)

    def get_template(self, name: str, namespace: str = DEFAULT_TEMPLATE_NAMESPACE) -> Dict[str, Any]:
        template = self.client.get_custom_resource(TEMPLATE_GROUP, TEMPLATE_VERSION, "templates", name, namespace)
        if template is None:
            raise ConfigurationError(f"Template {namespace}/{name} not found")
        return template

    def create_vm(
        self,
        name: str,
        script_path: str,
        template_name: str = DEFAULT_TEMPLATE_NAME,
        resources: Optional[Dict[str, Dict[str, str]]] = None,
        wait: bool = True,
        spec: Optional[PollSpec] = None,
        template_namespace: str = DEFAULT_TEMPLATE_NAMESPACE,
        cancel: Optional[threading.Event] = None,
    ) -> ResourceHandle:
        """
        Instantiate a VM from a template with a provisioning script.

        Args:
            name: Name of the VM and of its TemplateInstance
            script_path: Local script run by cloud-init on first boot
            template_name: Template to instantiate
            resources: VM domain resources; defaults to ``vm_resource_requirements()``
            wait: Wait for the TemplateInstance to become Ready
            spec: Poll policy for that wait
            template_namespace: Namespace holding the template
            cancel: Optional event aborting the wait

        Returns:
            Handle of the VirtualMachine
        """
        script = read_script(script_path)
        template = self.get_template(template_name, template_namespace)
        customized = customize_template(template, name, script, resources or vm_resource_requirements())

        self.client.create_custom_resource(
            TEMPLATE_GROUP,
            TEMPLATE_VERSION,
            "templateinstances",
            build_template_instance(name, self.namespace, customized),
            namespace=self.namespace,
        )
        logger.info("TemplateInstance %s created from template %s", name, template_name)

        if wait:
            logger.info("Waiting for the VM %s to be created...", name)
            self.wait_for_template_instance(name, spec=spec, cancel=cancel)
            logger.info("VM %s has been created successfully.", name)
        return self._handle(ResourceKind.VIRTUAL_MACHINE, name)

    def wait_for_template_instance(
        self,
        name: str,
        spec: Optional[PollSpec] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        spec = spec or PollSpec(interval=TEMPLATE_INSTANCE_INTERVAL, timeout=TEMPLATE_INSTANCE_TIMEOUT)
        predicate = TemplateInstanceReadiness(self.client, logger)
        wait_for_condition(
            f"templateinstance {self.namespace}/{name}",
            predicate.bind(self._handle(ResourceKind.TEMPLATE_INSTANCE, name)),
            spec,
            logger=logger,
            cancel=cancel,
        )

    def wait_for_vm_ready(
        self,
        name: str,
        spec: Optional[PollSpec] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        spec = spec or PollSpec(interval=VM_READY_INTERVAL, timeout=VM_READY_TIMEOUT)
        predicate = VirtualMachineReadiness(self.client, logger)
        wait_for_condition(
            f"VM {self.namespace}/{name}",
            predicate.bind(self._handle(ResourceKind.VIRTUAL_MACHINE, name)),
            spec,
            logger=logger,
            cancel=cancel,
        )

    def get_vm_pod_ip(self, name: str) -> str:
        """Return the pod-network IP of a running VM, or '' if not known yet."""
        vmi = self.client.get_resource(self._handle(ResourceKind.VIRTUAL_MACHINE_INSTANCE, name))
        if vmi is None:
            return ""
        return vm_pod_ip(vmi)

    def wait_for_vm_pod_ip(
        self,
        name: str,
        spec: Optional[PollSpec] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        spec = spec or PollSpec(interval=VM_POD_IP_INTERVAL, timeout=VM_POD_IP_TIMEOUT)

        def _check() -> PredicateResult:
            try:
                ip = self.get_vm_pod_ip(name)
            except (ApiException, HTTPError) as e:
                raise TransientError(f"failed to query VMI {self.namespace}/{name}: {e}") from e
            if ip:
                return PredicateResult.ready(f"VM {name} has pod IP {ip}", value=ip)
            return PredicateResult.pending(f"VM {name} has no pod IP yet")

        return wait_for_condition(f"pod IP of VM {self.namespace}/{name}", _check, spec, logger=logger, cancel=cancel)

    def delete_vm(self, name: str) -> bool:
        """Delete the VM and the TemplateInstance it came from."""
        deleted = self.client.delete_resource(self._handle(ResourceKind.VIRTUAL_MACHINE, name))
        self.client.delete_resource(self._handle(ResourceKind.TEMPLATE_INSTANCE, name))
        return deleted

