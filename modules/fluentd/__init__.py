"""
Fluentd Module
DaemonSet forwarding container logs from every node to Elasticsearch
"""

from .functions import (
    load_fluentd_config,
    build_desired_state,
    apply_desired_state,
    create_fluentd_resources,
)

__all__ = [
    "load_fluentd_config",
    "build_desired_state",
    "apply_desired_state",
    "create_fluentd_resources",
]
