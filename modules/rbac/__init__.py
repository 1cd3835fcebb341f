"""
RBAC Module
Identity and cluster-wide read permissions for the log forwarder
"""

from .functions import (
    create_service_account_manifest,
    create_cluster_role_manifest,
    create_cluster_role_binding_manifest,
    create_rbac_manifests,
)

__all__ = [
    "create_service_account_manifest",
    "create_cluster_role_manifest",
    "create_cluster_role_binding_manifest",
    "create_rbac_manifests",
]
