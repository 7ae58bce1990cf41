"""Kubernetes objects read and written by the operator.

- cluster_info: cluster name and trust domain from the kubeadm ConfigMap
- credentials: admin kubeconfig Secret forwarded to the registry
- service_account: get/update access to managed ServiceAccounts
"""
