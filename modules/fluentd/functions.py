"""
Fluentd Module Functions
Log forwarding DaemonSet shipping container logs to Elasticsearch

The desired state is built as plain Kubernetes API manifests first, then
handed to the Pulumi engine as one unit by apply_desired_state.
"""

import pulumi
import pulumi_kubernetes as k8s
from typing import Any, Dict, List, Optional, Union

from modules.rbac.functions import create_rbac_manifests

FLUENT_CONF_KEY = "fluent.conf"
FLUENTD_CONFIG_MOUNT_PATH = "/fluentd/etc"
FLUENTD_CONFIG_VOLUME = "fluentd-configmap-volume"
FLUENTD_FORWARD_PORT = 24224
DEFAULT_IMAGE = "fluent/fluentd-kubernetes-daemonset:v1-debian-elasticsearch"
DEFAULT_LABELS = {"app": "fluentd"}

# Host log directories read by the tail inputs
HOST_LOG_VOLUMES = [
    {"name": "varlog", "path": "/var/log", "read_only": False},
    {"name": "dockercontainerlogdirectory", "path": "/var/log/pods", "read_only": True},
]

CONTROL_PLANE_TAINTS = [
    "node-role.kubernetes.io/control-plane",
    "node-role.kubernetes.io/master",
]


def load_fluentd_config(path: str) -> str:
    """
    Read the fluentd configuration file verbatim

    Args:
        path: Path to fluent.conf

    Returns:
        File contents

    Raises:
        pulumi.RunError: If the file cannot be read
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        pulumi.log.error(f"Unable to read fluentd configuration {path}: {e}")
        raise pulumi.RunError(f"Unable to read fluentd configuration {path}: {e}") from e

    pulumi.log.info(f"Loaded fluentd configuration from {path} ({len(content)} bytes)")
    return content


def create_config_map_manifest(name: str, namespace: str, fluent_conf: str) -> Dict[str, Any]:
    """
    Create ConfigMap manifest holding fluent.conf

    Args:
        name: ConfigMap name
        namespace: ConfigMap namespace
        fluent_conf: fluentd configuration text

    Returns:
        Kubernetes ConfigMap manifest
    """
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": name,
            "namespace": namespace,
        },
        "data": {
            FLUENT_CONF_KEY: fluent_conf,
        },
    }


def create_fluentd_env(elasticsearch_host: str = "elasticsearch.monitoring",
                       elasticsearch_port: int = 9200,
                       elasticsearch_scheme: str = "http",
                       elasticsearch_ssl_verify: bool = False,
                       elasticsearch_user: str = "elastic",
                       elasticsearch_password: Union[str, 'pulumi.Output[str]'] = "changeme",
                       logstash_prefix: str = "fluentd",
                       logstash_index_name: str = "fluentd",
                       logstash_type_name: str = "access_log",
                       systemd_conf: str = "disable") -> List[Dict[str, Any]]:
    """Environment understood by the fluentd-kubernetes-daemonset image"""
    env = [
        ("FLUENT_ELASTICSEARCH_HOST", elasticsearch_host),
        ("FLUENT_ELASTICSEARCH_PORT", str(elasticsearch_port)),
        ("FLUENT_ELASTICSEARCH_SCHEME", elasticsearch_scheme),
        ("FLUENTD_SYSTEMD_CONF", systemd_conf),
        ("FLUENT_ELASTICSEARCH_SSL_VERIFY", "true" if elasticsearch_ssl_verify else "false"),
        ("FLUENT_ELASTICSEARCH_LOGSTASH_PREFIX", logstash_prefix),
        ("FLUENT_ELASTICSEARCH_LOGSTASH_INDEX_NAME", logstash_index_name),
        ("FLUENT_ELASTICSEARCH_LOGSTASH_TYPE_NAME", logstash_type_name),
        ("FLUENT_ELASTICSEARCH_USER", elasticsearch_user),
        ("FLUENT_ELASTICSEARCH_PASSWORD", elasticsearch_password),
    ]

    return [{"name": key, "value": value} for key, value in env] + [
        {
            "name": "K8S_NODE_NAME",
            "valueFrom": {
                "fieldRef": {
                    "fieldPath": "spec.nodeName",
                },
            },
        },
    ]


def create_daemon_set_manifest(name: str,
                               namespace: str,
                               labels: Dict[str, str],
                               service_account: Dict[str, Any],
                               config_map: Dict[str, Any],
                               env: List[Dict[str, Any]],
                               image: str = DEFAULT_IMAGE,
                               memory_limit: str = "200Mi",
                               cpu_request: str = "100m",
                               memory_request: str = "200Mi",
                               termination_grace_period_seconds: int = 30) -> Dict[str, Any]:
    """
    Create DaemonSet manifest running one fluentd pod per node

    Args:
        name: DaemonSet and container name
        namespace: DaemonSet namespace
        labels: Labels for the DaemonSet, its selector and pod template
        service_account: ServiceAccount manifest the pods run as
        config_map: ConfigMap manifest mounted at /fluentd/etc
        env: Container environment
        image: fluentd container image
        memory_limit: Container memory limit
        cpu_request: Container CPU request
        memory_request: Container memory request
        termination_grace_period_seconds: Pod termination grace period

    Returns:
        Kubernetes DaemonSet manifest
    """
    host_mounts = []
    for volume in HOST_LOG_VOLUMES:
        mount = {"name": volume["name"], "mountPath": volume["path"]}
        if volume["read_only"]:
            mount["readOnly"] = True
        host_mounts.append(mount)

    # /var/log, config, then /var/log/pods
    volume_mounts = [
        host_mounts[0],
        {
            "name": FLUENTD_CONFIG_VOLUME,
            "mountPath": FLUENTD_CONFIG_MOUNT_PATH,
        },
        *host_mounts[1:],
    ]

    volumes = [
        {"name": volume["name"], "hostPath": {"path": volume["path"]}}
        for volume in HOST_LOG_VOLUMES
    ]
    volumes.append({
        "name": FLUENTD_CONFIG_VOLUME,
        "configMap": {
            "name": config_map["metadata"]["name"],
            "items": [
                {"key": key, "path": key}
                for key in sorted(config_map["data"])
            ],
        },
    })

    container = {
        "name": name,
        "image": image,
        "env": env,
        "resources": {
            "limits": {
                "memory": memory_limit,
            },
            "requests": {
                "cpu": cpu_request,
                "memory": memory_request,
            },
        },
        "ports": [
            {
                "containerPort": FLUENTD_FORWARD_PORT,
                "name": f"{name}-{protocol.lower()}",
                "protocol": protocol,
            }
            for protocol in ("TCP", "UDP")
        ],
        "volumeMounts": volume_mounts,
    }

    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels),
        },
        "spec": {
            "selector": {
                "matchLabels": dict(labels),
            },
            "template": {
                "metadata": {
                    "labels": dict(labels),
                },
                "spec": {
                    "serviceAccountName": service_account["metadata"]["name"],
                    "tolerations": [
                        {"key": taint, "effect": "NoSchedule"}
                        for taint in CONTROL_PLANE_TAINTS
                    ],
                    "containers": [container],
                    "terminationGracePeriodSeconds": termination_grace_period_seconds,
                    "volumes": volumes,
                },
            },
        },
    }


def build_desired_state(fluent_conf: str,
                        name: str = "fluentd",
                        namespace: str = "monitoring",
                        labels: Dict[str, str] = None,
                        image: str = DEFAULT_IMAGE,
                        elasticsearch_host: str = "elasticsearch.monitoring",
                        elasticsearch_port: int = 9200,
                        elasticsearch_scheme: str = "http",
                        elasticsearch_ssl_verify: bool = False,
                        elasticsearch_user: str = "elastic",
                        elasticsearch_password: Union[str, 'pulumi.Output[str]'] = "changeme",
                        logstash_prefix: str = "fluentd",
                        logstash_index_name: str = "fluentd",
                        logstash_type_name: str = "access_log",
                        systemd_conf: str = "disable",
                        memory_limit: str = "200Mi",
                        cpu_request: str = "100m",
                        memory_request: str = "200Mi",
                        termination_grace_period_seconds: int = 30) -> Dict[str, Dict[str, Any]]:
    """
    Build the complete fluentd desired state

    Manifests are built in dependency order and every cross reference is a
    copy of the referenced manifest's metadata, so the same inputs always
    produce the same graph.

    Args:
        fluent_conf: fluentd configuration text
        name: Name shared by the ServiceAccount, RBAC objects and DaemonSet
        namespace: Namespace for namespaced objects
        labels: Selection labels, defaults to {"app": "fluentd"}

    Returns:
        Dict of manifests keyed config_map, service_account, cluster_role,
        cluster_role_binding and daemon_set
    """
    labels = labels or DEFAULT_LABELS

    config_map = create_config_map_manifest(f"{name}-configmap", namespace, fluent_conf)
    rbac = create_rbac_manifests(name, namespace, labels)

    env = create_fluentd_env(
        elasticsearch_host=elasticsearch_host,
        elasticsearch_port=elasticsearch_port,
        elasticsearch_scheme=elasticsearch_scheme,
        elasticsearch_ssl_verify=elasticsearch_ssl_verify,
        elasticsearch_user=elasticsearch_user,
        elasticsearch_password=elasticsearch_password,
        logstash_prefix=logstash_prefix,
        logstash_index_name=logstash_index_name,
        logstash_type_name=logstash_type_name,
        systemd_conf=systemd_conf,
    )

    daemon_set = create_daemon_set_manifest(
        name,
        namespace,
        labels,
        rbac["service_account"],
        config_map,
        env,
        image=image,
        memory_limit=memory_limit,
        cpu_request=cpu_request,
        memory_request=memory_request,
        termination_grace_period_seconds=termination_grace_period_seconds,
    )

    return {
        "config_map": config_map,
        "service_account": rbac["service_account"],
        "cluster_role": rbac["cluster_role"],
        "cluster_role_binding": rbac["cluster_role_binding"],
        "daemon_set": daemon_set,
    }


def create_kubernetes_provider(name: str, kubeconfig: str) -> k8s.Provider:
    """
    Create Kubernetes provider from an explicit kubeconfig

    Args:
        name: Provider name prefix
        kubeconfig: kubeconfig contents or path

    Returns:
        Kubernetes provider instance
    """
    return k8s.Provider(
        f"{name}-k8s-provider",
        kubeconfig=kubeconfig
    )


def apply_desired_state(desired_state: Dict[str, Dict[str, Any]],
                        provider: Optional[k8s.Provider] = None) -> Dict[str, Any]:
    """
    Submit the desired state to the Pulumi engine

    Args:
        desired_state: Manifests returned by build_desired_state
        provider: Kubernetes provider, the ambient one when omitted

    Returns:
        Dict with the DaemonSet name output and resource references
    """
    # Manifests are API-shaped dicts, camelCase keys pass through to the provider unchanged
    config_map = desired_state["config_map"]
    service_account = desired_state["service_account"]
    cluster_role = desired_state["cluster_role"]
    cluster_role_binding = desired_state["cluster_role_binding"]
    daemon_set = desired_state["daemon_set"]

    config_map_resource = k8s.core.v1.ConfigMap(
        config_map["metadata"]["name"],
        metadata=config_map["metadata"],
        data=config_map["data"],
        opts=pulumi.ResourceOptions(provider=provider)
    )

    service_account_resource = k8s.core.v1.ServiceAccount(
        service_account["metadata"]["name"],
        metadata=service_account["metadata"],
        opts=pulumi.ResourceOptions(provider=provider)
    )

    cluster_role_resource = k8s.rbac.v1.ClusterRole(
        cluster_role["metadata"]["name"],
        metadata=cluster_role["metadata"],
        rules=cluster_role["rules"],
        opts=pulumi.ResourceOptions(provider=provider)
    )

    cluster_role_binding_resource = k8s.rbac.v1.ClusterRoleBinding(
        cluster_role_binding["metadata"]["name"],
        metadata=cluster_role_binding["metadata"],
        subjects=cluster_role_binding["subjects"],
        role_ref=cluster_role_binding["roleRef"],
        opts=pulumi.ResourceOptions(
            provider=provider,
            depends_on=[service_account_resource, cluster_role_resource]
        )
    )

    daemon_set_resource = k8s.apps.v1.DaemonSet(
        daemon_set["metadata"]["name"],
        metadata=daemon_set["metadata"],
        spec=daemon_set["spec"],
        opts=pulumi.ResourceOptions(
            provider=provider,
            depends_on=[
                config_map_resource,
                service_account_resource,
                cluster_role_resource,
                cluster_role_binding_resource,
            ]
        )
    )

    return {
        "name": daemon_set_resource.metadata.name,
        "namespace": daemon_set["metadata"]["namespace"],
        # Keep references to resources for dependencies
        "_config_map": config_map_resource,
        "_service_account": service_account_resource,
        "_cluster_role": cluster_role_resource,
        "_cluster_role_binding": cluster_role_binding_resource,
        "_daemon_set": daemon_set_resource,
    }


def create_fluentd_resources(config_path: str = "fluent.conf",
                             name: str = "fluentd",
                             kubeconfig: Optional[str] = None,
                             **settings) -> Dict[str, Any]:
    """
    Create the fluentd logging stack

    The configuration file is read before anything is built, so a missing
    file aborts the program without submitting any resource.

    Args:
        config_path: Path to fluent.conf
        name: Name shared by the generated objects
        kubeconfig: Optional kubeconfig for an explicit provider
        **settings: Remaining build_desired_state keyword arguments

    Returns:
        Dict with all fluentd resources and outputs
    """
    fluent_conf = load_fluentd_config(config_path)

    desired_state = build_desired_state(fluent_conf, name=name, **settings)

    provider = None
    if kubeconfig:
        provider = create_kubernetes_provider(name, kubeconfig)

    result = apply_desired_state(desired_state, provider=provider)
    result["desired_state"] = desired_state
    result["_k8s_provider"] = provider
    return result
