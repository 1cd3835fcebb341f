"""
RBAC Module Functions
ServiceAccount, ClusterRole and ClusterRoleBinding manifests for fluentd
"""

from typing import Any, Dict, List

RBAC_API_GROUP = "rbac.authorization.k8s.io"

# Read access the fluentd kubernetes_metadata filter needs for log enrichment
DEFAULT_RULES = [
    {
        "apiGroups": [""],
        "resources": ["pods"],
        "verbs": ["get", "list", "watch"],
    },
    {
        "apiGroups": ["apps"],
        "resources": ["replicasets"],
        "verbs": ["get", "list", "watch"],
    },
]


def create_service_account_manifest(name: str, namespace: str,
                                    labels: Dict[str, str]) -> Dict[str, Any]:
    """
    Create ServiceAccount manifest for the log forwarder

    Args:
        name: ServiceAccount name
        namespace: Namespace the ServiceAccount lives in
        labels: Labels used for selection

    Returns:
        Kubernetes ServiceAccount manifest
    """
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels),
        },
    }


def create_cluster_role_manifest(name: str, labels: Dict[str, str],
                                 rules: List[Dict[str, List[str]]] = None) -> Dict[str, Any]:
    """
    Create ClusterRole manifest granting read access to pods and replicasets

    Args:
        name: ClusterRole name
        labels: Labels used for selection
        rules: Policy rules, defaults to DEFAULT_RULES

    Returns:
        Kubernetes ClusterRole manifest
    """
    rules = rules if rules is not None else DEFAULT_RULES

    return {
        "apiVersion": f"{RBAC_API_GROUP}/v1",
        "kind": "ClusterRole",
        "metadata": {
            "name": name,
            "labels": dict(labels),
        },
        "rules": [
            {key: list(values) for key, values in rule.items()}
            for rule in rules
        ],
    }


def create_cluster_role_binding_manifest(name: str, service_account: Dict[str, Any],
                                         cluster_role: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create ClusterRoleBinding manifest tying the ClusterRole to the ServiceAccount

    Subject and roleRef are copied from the given manifests, so the binding
    always points at the objects built alongside it.

    Args:
        name: ClusterRoleBinding name
        service_account: ServiceAccount manifest to bind
        cluster_role: ClusterRole manifest to bind

    Returns:
        Kubernetes ClusterRoleBinding manifest
    """
    return {
        "apiVersion": f"{RBAC_API_GROUP}/v1",
        "kind": "ClusterRoleBinding",
        "metadata": {
            "name": name,
        },
        "subjects": [
            {
                "kind": service_account["kind"],
                "name": service_account["metadata"]["name"],
                "namespace": service_account["metadata"]["namespace"],
            }
        ],
        "roleRef": {
            "kind": cluster_role["kind"],
            "name": cluster_role["metadata"]["name"],
            "apiGroup": RBAC_API_GROUP,
        },
    }


def create_rbac_manifests(name: str, namespace: str,
                          labels: Dict[str, str]) -> Dict[str, Dict[str, Any]]:
    """
    Create the RBAC manifests in dependency order

    Args:
        name: Name shared by the ServiceAccount, ClusterRole and binding
        namespace: ServiceAccount namespace
        labels: Labels used for selection

    Returns:
        Dict with service_account, cluster_role and cluster_role_binding manifests
    """
    service_account = create_service_account_manifest(name, namespace, labels)
    cluster_role = create_cluster_role_manifest(name, labels)
    cluster_role_binding = create_cluster_role_binding_manifest(name, service_account, cluster_role)

    return {
        "service_account": service_account,
        "cluster_role": cluster_role,
        "cluster_role_binding": cluster_role_binding,
    }
