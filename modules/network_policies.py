"""
Network policies used by the isolation scenarios.
"""

import logging
from typing import Any, Dict, List

from lib.kube_client import KubeClient
from lib.resources import ResourceHandle, ResourceKind
from lib.validation import InputValidator

logger = logging.getLogger("ocp_functional")

NAMESPACE_NAME_LABEL = "kubernetes.io/metadata.name"


def policy_port(port: int, protocol: str = "TCP") -> Dict[str, Any]:
    """Build a NetworkPolicy port entry. Unknown protocols fall back to TCP."""
    InputValidator.validate_port(port)
    return {"port": port, "protocol": protocol if protocol in ("TCP", "UDP") else "TCP"}


def build_namespace_allow_policy(name: str, namespace: str, ports: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build a policy selecting every pod in ``namespace`` that admits ingress on
    ``ports`` only from pods in other namespaces.
    """
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "podSelector": {"matchLabels": {}},
            "policyTypes": ["Ingress"],
            "ingress": [
                {
                    "ports": list(ports),
                    "from": [
                        {
                            "namespaceSelector": {
                                "matchExpressions": [
                                    {"key": NAMESPACE_NAME_LABEL, "operator": "NotIn", "values": [namespace]}
                                ]
                            }
                        }
                    ],
                }
            ],
        },
    }


class NetworkPolicyManager:
    def __init__(self, client: KubeClient, namespace: str):
        self.client = client
        self.namespace = namespace

    def create_namespace_allow_policy(self, name: str, ports: List[Dict[str, Any]]) -> ResourceHandle:
        self.client.create_network_policy(self.namespace, build_namespace_allow_policy(name, self.namespace, ports))
        logger.info("Successfully created NetworkPolicy %s in namespace %s", name, self.namespace)
        return ResourceHandle(ResourceKind.NETWORK_POLICY, self.namespace, name)

    def delete_network_policy(self, name: str) -> bool:
        return self.client.delete_resource(ResourceHandle(ResourceKind.NETWORK_POLICY, self.namespace, name))
