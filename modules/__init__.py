"""
Pulumi modules for the fluentd logging stack
Simple function-based approach following Pulumi best practices
"""

from .rbac import create_rbac_manifests
from .fluentd import create_fluentd_resources

__all__ = [
    "create_rbac_manifests",
    "create_fluentd_resources"
]
