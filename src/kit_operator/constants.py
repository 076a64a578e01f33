"""Constants for the KIT Operator."""

# API Group
API_GROUP = "kit.sh"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_CONTROL_PLANE = "ControlPlane"
KIND_SUBSTRATE = "Substrate"

# Plurals
PLURAL_CONTROL_PLANES = "controlplanes"
PLURAL_SUBSTRATES = "substrates"

# Labels
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"
LABEL_CLUSTER_NAME = f"{API_GROUP}/cluster-name"
LABEL_COMPONENT = f"{API_GROUP}/component"

# Tags applied to cloud resources
TAG_NAME = "Name"
TAG_OWNER = f"{API_GROUP}/owner"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "kit-operator"
CONTROLLER_NAME = "kit-operator"

# Phases
PHASE_PENDING = "Pending"
PHASE_PROVISIONING = "Provisioning"
PHASE_READY = "Ready"
PHASE_TERMINATING = "Terminating"

# Condition Types
COND_READY = "Ready"

# Condition Reasons
REASON_READY = "Ready"
REASON_PROVISIONING = "Provisioning"
REASON_WAITING = "WaitingForSubResources"
REASON_RECONCILE_FAILED = "ReconcileFailed"
REASON_TERMINATING = "Terminating"
REASON_FINALIZE_FAILED = "FinalizeFailed"

# Event Reasons
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_RECONCILE_SUCCEEDED = "ReconcileSucceeded"
EVENT_REASON_WAITING = "WaitingForSubResources"
EVENT_REASON_FINALIZE_STARTED = "FinalizeStarted"
EVENT_REASON_FINALIZE_FAILED = "FinalizeFailed"
EVENT_REASON_FINALIZED = "Finalized"

# Stage phases
STAGE_RECONCILE = "reconcile"
STAGE_FINALIZE = "finalize"

# Kubernetes namespaces and well-known names in the guest cluster
KUBE_SYSTEM = "kube-system"
KUBE_PROXY = "kube-proxy"
KUBE_PROXY_DAEMONSET_NAME = "kubeproxy-daemonset"

# Ports
APISERVER_PORT = 443
ETCD_CLIENT_PORT = 2379
ETCD_PEER_PORT = 2380
AUTHENTICATOR_PORT = 21362
