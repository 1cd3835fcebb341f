"""
Fluentd Logging Stack
Ships container logs from every node to Elasticsearch
"""
import pulumi
from config import get_config
from modules.fluentd import create_fluentd_resources

# Configuration
config = get_config()

# ConfigMap, RBAC and DaemonSet, submitted as one desired state
fluentd = create_fluentd_resources(**config.fluentd_settings)

# Exports
pulumi.export("name", fluentd["name"])
