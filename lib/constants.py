"""Centralized constants for the functional test harness."""

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPT = 130

LOGGER_NAME = "ocp_functional"

# Namespaces
DEFAULT_NAMESPACE = "core"
DEFAULT_TEMPLATE_NAMESPACE = "openshift"
DEFAULT_TEMPLATE_NAME = "rhel8-4-az-a"

# Resource naming
TEST_PREFIX = "functional-test"
RANDOM_NAME_LENGTH = 8
RANDOM_NAME_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"

DEFAULT_LABELS = {"managed": "openshift-testing"}

# Pod waits (in seconds)
POD_READY_INTERVAL = 10
POD_READY_TIMEOUT = 120

POD_RETRY_INTERVAL = 15
POD_RETRY_TIMEOUT = 300
POD_CREATE_ATTEMPTS = 3

POD_LOGS_INTERVAL = 10
POD_LOGS_TIMEOUT = 180

# LoadBalancer / ClusterIP service waits
SERVICE_READY_INTERVAL = 5
SERVICE_READY_TIMEOUT = 120

SERVICE_IP_INTERVAL = 10
SERVICE_IP_TIMEOUT = 120

CLUSTER_DOMAIN = "cluster.local"

# Route waits
ROUTE_READY_INTERVAL = 10
ROUTE_READY_TIMEOUT = 120

# VM waits
TEMPLATE_INSTANCE_INTERVAL = 30
TEMPLATE_INSTANCE_TIMEOUT = 900

VM_READY_INTERVAL = 10
VM_READY_TIMEOUT = 600

VM_POD_IP_INTERVAL = 10
VM_POD_IP_TIMEOUT = 300

# Deletion visibility wait (provisioning loop cleanup)
DELETE_WAIT_INTERVAL = 2
DELETE_WAIT_TIMEOUT = 60

# SSH
SSH_DEFAULT_PORT = 22
SSH_DEFAULT_USER = "cloud-user"
SSH_CONNECT_TIMEOUT = 10
SSH_POLL_INTERVAL = 5
SSH_POLL_TIMEOUT = 120

# Cloud-init injection
CLOUD_INIT_HEADER = "#cloud-config"
CLOUD_INIT_SCRIPT_PATH = "/tmp/myscript.sh"
CLOUD_INIT_SCRIPT_PERMISSIONS = "0755"

# VM default resources
VM_DEFAULT_CPU_REQUEST = "500m"
VM_DEFAULT_CPU_LIMIT = "1000m"
VM_DEFAULT_MEMORY = "2Gi"

# API groups
KUBEVIRT_GROUP = "kubevirt.io"
KUBEVIRT_VERSION = "v1"
TEMPLATE_GROUP = "template.openshift.io"
TEMPLATE_VERSION = "v1"
ROUTE_GROUP = "route.openshift.io"
ROUTE_VERSION = "v1"

TEMPLATE_INSTANCE_READY_CONDITION = "Ready"
TEMPLATE_INSTANCE_FAILED_CONDITION = "InstantiateFailure"
