"""Resource identity shared by the provider, predicates and provisioning loop."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from lib.constants import (
    KUBEVIRT_GROUP,
    KUBEVIRT_VERSION,
    ROUTE_GROUP,
    ROUTE_VERSION,
    TEMPLATE_GROUP,
    TEMPLATE_VERSION,
)


class ResourceKind(Enum):
    """Kinds of resources the harness provisions."""

    POD = "pod"
    SERVICE = "service"
    NETWORK_POLICY = "networkpolicy"
    ROUTE = "route"
    VIRTUAL_MACHINE = "virtualmachine"
    VIRTUAL_MACHINE_INSTANCE = "virtualmachineinstance"
    TEMPLATE_INSTANCE = "templateinstance"


# (group, version, plural) for kinds served through the custom objects API
CUSTOM_RESOURCE_COORDINATES: Dict[ResourceKind, Tuple[str, str, str]] = {
    ResourceKind.ROUTE: (ROUTE_GROUP, ROUTE_VERSION, "routes"),
    ResourceKind.VIRTUAL_MACHINE: (KUBEVIRT_GROUP, KUBEVIRT_VERSION, "virtualmachines"),
    ResourceKind.VIRTUAL_MACHINE_INSTANCE: (KUBEVIRT_GROUP, KUBEVIRT_VERSION, "virtualmachineinstances"),
    ResourceKind.TEMPLATE_INSTANCE: (TEMPLATE_GROUP, TEMPLATE_VERSION, "templateinstances"),
}


@dataclass(frozen=True)
class ResourceHandle:
    """Identifies one created resource for readiness checks and cleanup."""

    kind: ResourceKind
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind.value} {self.namespace}/{self.name}"
