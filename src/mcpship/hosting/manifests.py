"""Kubernetes manifest rendering for hosted MCP servers.

Rendering is pure: the same ``ManifestConfig`` always yields byte-identical
YAML. Every generated object is named ``mcp-{server_id}``.
"""

from __future__ import annotations

from typing import Any

import yaml

from mcpship.models.hosting import ManifestConfig, ManifestSet

CONTAINER_PORT = 3000
SERVICE_PORT = 80
HEALTH_PATH = "/health"
PROXY_TIMEOUT_SECONDS = "300"
APP_LABEL = "mcp-server"
MANAGED_BY = "mcpship"

# Set by the generator itself; caller-supplied values are ignored
RESERVED_ENV_VARS = frozenset({"MCP_SERVER_ID", "PORT"})

MANIFEST_FILES = ("deployment.yaml", "service.yaml", "ingress.yaml")
KUSTOMIZATION_FILE = "kustomization.yaml"


def resource_name(server_id: str) -> str:
    """Name shared by the Deployment, Service and Ingress of a server."""
    return f"mcp-{server_id}"


def tls_secret_name(server_id: str) -> str:
    return f"mcp-{server_id}-tls"


def env_secret_name(server_id: str) -> str:
    """Secret holding the values of a server's required env vars."""
    return f"mcp-{server_id}-env"


def server_host(server_id: str, domain: str) -> str:
    return f"{server_id}.{domain}"


def _dump(document: dict[str, Any]) -> str:
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)


def _selector(server_id: str) -> dict[str, str]:
    return {"app": APP_LABEL, "server-id": server_id}


class ManifestGenerator:
    """Render Deployment, Service, Ingress and kustomization YAML.

    Example:
        >>> generator = ManifestGenerator()
        >>> manifests = generator.generate_manifests(config)
        >>> print(manifests.deployment)
    """

    def generate_manifests(self, config: ManifestConfig) -> ManifestSet:
        """Render the three manifests for ``config``."""
        return ManifestSet(
            deployment=self.generate_deployment(config),
            service=self.generate_service(config),
            ingress=self.generate_ingress(config),
        )

    def generate_deployment(self, config: ManifestConfig) -> str:
        resources = config.resources
        env: list[dict[str, Any]] = [
            {"name": "MCP_SERVER_ID", "value": config.server_id},
            {"name": "PORT", "value": str(CONTAINER_PORT)},
        ]
        env.extend(
            {"name": name, "value": value}
            for name, value in config.env_vars.items()
            if name not in RESERVED_ENV_VARS
        )
        env.extend(
            {
                "name": name,
                "valueFrom": {
                    "secretKeyRef": {
                        "name": env_secret_name(config.server_id),
                        "key": name,
                    }
                },
            }
            for name in config.secret_env_names
            if name not in RESERVED_ENV_VARS and name not in config.env_vars
        )

        deployment = {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {
                "name": resource_name(config.server_id),
                "namespace": config.namespace,
                "labels": {
                    **_selector(config.server_id),
                    "server-name": config.server_name,
                },
            },
            "spec": {
                "replicas": config.replicas,
                "selector": {"matchLabels": _selector(config.server_id)},
                "template": {
                    "metadata": {"labels": _selector(config.server_id)},
                    "spec": {
                        "containers": [
                            {
                                "name": APP_LABEL,
                                "image": f"{config.docker_image}:{config.image_tag}",
                                "ports": [{"containerPort": CONTAINER_PORT}],
                                "resources": {
                                    "requests": {
                                        "cpu": resources.cpu_request,
                                        "memory": resources.memory_request,
                                    },
                                    "limits": {
                                        "cpu": resources.cpu_limit,
                                        "memory": resources.memory_limit,
                                    },
                                },
                                "env": env,
                                "livenessProbe": {
                                    "httpGet": {
                                        "path": HEALTH_PATH,
                                        "port": CONTAINER_PORT,
                                    },
                                    "initialDelaySeconds": 10,
                                    "periodSeconds": 30,
                                },
                                "readinessProbe": {
                                    "httpGet": {
                                        "path": HEALTH_PATH,
                                        "port": CONTAINER_PORT,
                                    },
                                    "initialDelaySeconds": 5,
                                    "periodSeconds": 10,
                                },
                            }
                        ]
                    },
                },
            },
        }
        return _dump(deployment)

    def generate_service(self, config: ManifestConfig) -> str:
        service = {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {
                "name": resource_name(config.server_id),
                "namespace": config.namespace,
                "labels": _selector(config.server_id),
            },
            "spec": {
                "type": "ClusterIP",
                "selector": _selector(config.server_id),
                "ports": [
                    {
                        "port": SERVICE_PORT,
                        "targetPort": CONTAINER_PORT,
                        "protocol": "TCP",
                    }
                ],
            },
        }
        return _dump(service)

    def generate_ingress(self, config: ManifestConfig) -> str:
        host = server_host(config.server_id, config.domain)
        ingress = {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": {
                "name": resource_name(config.server_id),
                "namespace": config.namespace,
                "labels": _selector(config.server_id),
                "annotations": {
                    "kubernetes.io/ingress.class": config.ingress_class,
                    "cert-manager.io/cluster-issuer": config.cluster_issuer,
                    "nginx.ingress.kubernetes.io/proxy-read-timeout": (
                        PROXY_TIMEOUT_SECONDS
                    ),
                    "nginx.ingress.kubernetes.io/proxy-send-timeout": (
                        PROXY_TIMEOUT_SECONDS
                    ),
                },
            },
            "spec": {
                "ingressClassName": config.ingress_class,
                "tls": [
                    {
                        "hosts": [host],
                        "secretName": tls_secret_name(config.server_id),
                    }
                ],
                "rules": [
                    {
                        "host": host,
                        "http": {
                            "paths": [
                                {
                                    "path": "/",
                                    "pathType": "Prefix",
                                    "backend": {
                                        "service": {
                                            "name": resource_name(config.server_id),
                                            "port": {"number": SERVICE_PORT},
                                        }
                                    },
                                }
                            ]
                        },
                    }
                ],
            },
        }
        return _dump(ingress)

    def generate_kustomization(self, server_id: str) -> str:
        """Render the kustomization listing the three manifest files."""
        kustomization = {
            "apiVersion": "kustomize.config.k8s.io/v1beta1",
            "kind": "Kustomization",
            "resources": list(MANIFEST_FILES),
            "commonLabels": {
                "managed-by": MANAGED_BY,
                "server-id": server_id,
            },
        }
        return _dump(kustomization)
