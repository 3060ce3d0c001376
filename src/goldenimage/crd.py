"""CRD schema constants and helpers."""

# CDI DataVolume
DV_GROUP = "cdi.kubevirt.io"
DV_VERSION = "v1beta1"
DV_PLURAL = "datavolumes"
DV_KIND = "DataVolume"
DV_API_VERSION = f"{DV_GROUP}/{DV_VERSION}"

# OVN-Kubernetes user-defined networks
OVN_GROUP = "k8s.ovn.org"
OVN_VERSION = "v1"
CUDN_PLURAL = "clusteruserdefinednetworks"
UDN_PLURAL = "userdefinednetworks"

# DataVolume phases (matching CDI)
PHASE_IMPORT_SCHEDULED = "ImportScheduled"
PHASE_IMPORT_IN_PROGRESS = "ImportInProgress"
PHASE_SUCCEEDED = "Succeeded"
PHASE_FAILED = "Failed"

# Network role that makes a UDN the namespace's primary network
ROLE_PRIMARY = "Primary"

# Label required on namespaces that use a primary UDN
PRIMARY_UDN_LABEL = "k8s.ovn.org/primary-user-defined-network"

# Forces CDI to bind the PVC without waiting for a consumer
BIND_IMMEDIATE_ANNOTATION = "cdi.kubevirt.io/storage.bind.immediate.requested"

# Ephemeral image server
SERVER_NAME = "golden-image-server"
SERVER_CONTAINER = "nginx"
SERVER_IMAGE = "nginx:alpine"
SERVER_PORT = 80
SERVER_ROOT = "/usr/share/nginx/html"
IMAGE_FILE_NAME = "disk.qcow2"
IMAGE_FILE_MODE = 0o644

# Polling
SERVER_READY_INTERVAL = 2
SERVER_READY_TIMEOUT = 120
DV_POLL_INTERVAL = 5
DV_TIMEOUT = 60 * 60
UPLOAD_TIMEOUT = 2 * 60 * 60

DEFAULT_PVC_SIZE = "10Gi"

# Upload orchestrator states
STATE_IDLE = "Idle"
STATE_DETECTING_NETWORK = "DetectingNetwork"
STATE_STANDARD_PATH = "StandardPath"
STATE_HTTP_PATH = "HTTPPath"
STATE_DONE = "Done"
STATE_FAILED = "Failed"
