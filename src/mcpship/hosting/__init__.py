"""Kubernetes hosting: images, manifests, GitOps commits and lifecycle."""

from mcpship.hosting.gitops import GitOpsCommitter, manifest_files, server_dir
from mcpship.hosting.manifests import ManifestGenerator, resource_name
from mcpship.hosting.orchestrator import HostingOrchestrator
from mcpship.hosting.registry import (
    BuildResult,
    ContainerRegistryClient,
    get_oci_labels,
)

__all__ = [
    "BuildResult",
    "ContainerRegistryClient",
    "GitOpsCommitter",
    "HostingOrchestrator",
    "ManifestGenerator",
    "get_oci_labels",
    "manifest_files",
    "resource_name",
    "server_dir",
]
