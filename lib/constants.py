"""Centralized constants for Kubernetes preflight checks."""

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPT = 130

LOGGER_NAME = "k8s_preflight"

DEFAULT_NAMESPACE = "default"
NAMESPACE_ENV_VAR = "K8S_PREFLIGHT_NAMESPACE"

# Tooling
KUBECTL_BINARY_NAME = "kubectl"
HELM_BINARY_NAME = "helm"
MIN_HELM_VERSION = "3.0.0"
MIN_K8S_VERSION = "v1.18.0"

# API groups
RBAC_API_GROUP = "rbac.authorization.k8s.io"
RBAC_API_VERSION = "v1"
OPENSHIFT_API_GROUP = "security.openshift.io"
OPENSHIFT_API_VERSION = "v1"
STORAGE_SNAPSHOT_GROUP = "snapshot.storage.k8s.io"
API_EXTENSIONS_GROUP = "apiextensions.k8s.io"

VOLUME_SNAPSHOT_PLURAL = "volumesnapshots"
VOLUME_SNAPSHOT_CLASS_PLURAL = "volumesnapshotclasses"
CRD_PLURAL = "customresourcedefinitions"

DEFAULT_SNAPSHOT_CLASS_ANNOTATION = "snapshot.storage.kubernetes.io/is-default-class"

CSI_APIS = (
    "volumesnapshotclasses.snapshot.storage.k8s.io",
    "volumesnapshotcontents.snapshot.storage.k8s.io",
    "volumesnapshots.snapshot.storage.k8s.io",
)

# Run UID
UID_LENGTH = 6
UID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"

# Labels applied to every ephemeral resource
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "k8s-preflight"
RUN_UID_LABEL = "preflight-run"

# DNS check
DNS_POD_NAME_PREFIX = "test-dns-pod-"
DNS_CONTAINER_NAME = "dnsutils"
DNS_IMAGE = "gcr.io/kubernetes-e2e-test-images/dnsutils:1.3"
DNS_POD_COMMAND = ["sleep", "3600"]
DNS_RESOLUTION_COMMAND = ["nslookup", "kubernetes.default"]

# Volume snapshot check
SOURCE_PVC_NAME_PREFIX = "source-pvc-"
SOURCE_POD_NAME_PREFIX = "source-pod-"
VOLUME_SNAP_SRC_NAME_PREFIX = "snapshot-source-pvc-"
RESTORE_PVC_NAME_PREFIX = "restored-pvc-"
RESTORE_POD_NAME_PREFIX = "restored-pod-"
UNMOUNTED_VOLUME_SNAP_SRC_NAME_PREFIX = "unmounted-source-pvc-"
UNMOUNTED_RESTORE_PVC_NAME_PREFIX = "unmounted-restored-pvc-"
UNMOUNTED_RESTORE_POD_NAME_PREFIX = "unmounted-restored-pod-"

BUSYBOX_CONTAINER_NAME = "busybox"
BUSYBOX_IMAGE = "busybox"
VOLUME_MOUNT_NAME = "source-data"
VOLUME_MOUNT_PATH = "/demo/data"
SAMPLE_DATA = "pod preflight data"
SAMPLE_FILE = VOLUME_MOUNT_PATH + "/sample-file.txt"
SOURCE_POD_COMMAND = ["sh", "-c", f"echo '{SAMPLE_DATA}' > {SAMPLE_FILE} && sync && sleep 3000"]
RESTORE_POD_COMMAND = ["sh", "-c", "sleep 3000"]
RESTORE_DATA_CHECK_COMMAND = ["sh", "-c", f'[ "$(cat {SAMPLE_FILE})" = "{SAMPLE_DATA}" ]']

DEFAULT_PVC_STORAGE_REQUEST = "1Gi"

# Poll budgets (seconds)
POLL_INITIAL_DELAY = 1
POLL_MULTIPLIER = 2
POLL_MAX_DELAY = 30
POLL_MAX_ATTEMPTS = 30
POLL_MAX_DURATION = 600

# API request and exec timeouts (seconds)
DEFAULT_REQUEST_TIMEOUT = 30
POD_EXEC_TIMEOUT = 120
