"""
Configuration management for the fluentd logging deployment
"""

import pulumi
from typing import Dict, Union

DEFAULT_ELASTICSEARCH_PASSWORD = "changeme"
ELASTICSEARCH_SCHEMES = ("http", "https")


class Config:
    """Centralized configuration management for the fluentd DaemonSet"""

    def __init__(self):
        self.config = pulumi.Config()

        # Kubernetes Configuration
        self.namespace = self.config.get("namespace") or "monitoring"
        self.kubeconfig = self.config.get("kubeconfig")

        # Fluentd Configuration
        self.fluentd_config_path = self.config.get("fluentd_config_path") or "fluent.conf"
        self.fluentd_image = self.config.get("fluentd_image") or "fluent/fluentd-kubernetes-daemonset:v1-debian-elasticsearch"
        self.systemd_conf = self.config.get("systemd_conf") or "disable"
        self.termination_grace_period_seconds = self.config.get_int("termination_grace_period_seconds")
        if self.termination_grace_period_seconds is None:
            self.termination_grace_period_seconds = 30

        # Elasticsearch Configuration
        self.elasticsearch_host = self.config.get("elasticsearch_host") or "elasticsearch.monitoring"
        self.elasticsearch_port = self.config.get_int("elasticsearch_port")
        if self.elasticsearch_port is None:
            self.elasticsearch_port = 9200
        self.elasticsearch_scheme = self.config.get("elasticsearch_scheme") or "http"
        self.elasticsearch_ssl_verify = self.config.get_bool("elasticsearch_ssl_verify") or False
        self.elasticsearch_user = self.config.get("elasticsearch_user") or "elastic"
        self._elasticsearch_password = self.config.get_secret("elasticsearch_password")

        # Logstash index naming
        self.logstash_prefix = self.config.get("logstash_prefix") or "fluentd"
        self.logstash_index_name = self.config.get("logstash_index_name") or "fluentd"
        self.logstash_type_name = self.config.get("logstash_type_name") or "access_log"

        # Resource Management
        self.memory_limit = self.config.get("memory_limit") or "200Mi"
        self.cpu_request = self.config.get("cpu_request") or "100m"
        self.memory_request = self.config.get("memory_request") or "200Mi"

        self._validate()

    def _validate(self):
        if self.elasticsearch_scheme not in ELASTICSEARCH_SCHEMES:
            raise pulumi.RunError(
                f"elasticsearch_scheme must be one of {', '.join(ELASTICSEARCH_SCHEMES)}, "
                f"got '{self.elasticsearch_scheme}'"
            )
        if not 0 < self.elasticsearch_port < 65536:
            raise pulumi.RunError(f"elasticsearch_port out of range: {self.elasticsearch_port}")

    @property
    def elasticsearch_password(self) -> Union[str, 'pulumi.Output[str]']:
        """Get the Elasticsearch password, falling back to the image default"""
        if self._elasticsearch_password is None:
            pulumi.log.warn(
                "elasticsearch_password is not set, using the image default credentials"
            )
            return DEFAULT_ELASTICSEARCH_PASSWORD
        return self._elasticsearch_password

    @property
    def app_labels(self) -> Dict[str, str]:
        """Get the labels used to select fluentd resources"""
        return {"app": "fluentd"}

    @property
    def fluentd_settings(self) -> Dict[str, object]:
        """Get keyword arguments for create_fluentd_resources"""
        return {
            "config_path": self.fluentd_config_path,
            "namespace": self.namespace,
            "labels": self.app_labels,
            "image": self.fluentd_image,
            "elasticsearch_host": self.elasticsearch_host,
            "elasticsearch_port": self.elasticsearch_port,
            "elasticsearch_scheme": self.elasticsearch_scheme,
            "elasticsearch_ssl_verify": self.elasticsearch_ssl_verify,
            "elasticsearch_user": self.elasticsearch_user,
            "elasticsearch_password": self.elasticsearch_password,
            "logstash_prefix": self.logstash_prefix,
            "logstash_index_name": self.logstash_index_name,
            "logstash_type_name": self.logstash_type_name,
            "systemd_conf": self.systemd_conf,
            "memory_limit": self.memory_limit,
            "cpu_request": self.cpu_request,
            "memory_request": self.memory_request,
            "termination_grace_period_seconds": self.termination_grace_period_seconds,
            "kubeconfig": self.kubeconfig,
        }


def get_config() -> Config:
    """Get the global configuration instance"""
    return Config()
