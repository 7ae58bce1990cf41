"""Constants used across the operator."""

# ServiceAccount annotation that opts an account into SPIRE management
MANAGED_SPIRE_ANNOTATION = "omegahome.net/managed-spire"

# ServiceAccount annotation holding the registry-assigned entry ID
SVID_ENTRY_ID_ANNOTATION = "omegahome.net/svid-entry-id"

# Finalizer blocking ServiceAccount removal until the entry is revoked
SPIRE_FINALIZER = "omegahome.net/spire-finalizer"

# Cluster metadata ConfigMap (kubeadm writes the cluster name here)
CLUSTER_INFO_CONFIGMAP = "kubeadm-config"
CLUSTER_INFO_NAMESPACE = "kube-system"
CLUSTER_INFO_KEY = "ClusterConfiguration"
SPIRE_TRUST_DOMAIN_ANNOTATION = "omega.k8s.io/spire-trustdomain"

# Secret holding the admin kubeconfig forwarded to the registry
ADMIN_KUBECONFIG_SECRET = "admin-kubeconfig"
ADMIN_KUBECONFIG_NAMESPACE = "kube-system"
ADMIN_KUBECONFIG_KEY = "kubeconfig"

# SPIRE registration API
SPIRE_API_SERVER = "omegaspire01.omegaworld.net"
SPIRE_API_PORT = 8080
SPIRE_ENTRIES_ADD_PATH = "/v1/entries/add"
SPIRE_ENTRIES_DELETE_PATH = "/v1/entries/delete"
