"""mcpship - publish generated MCP servers and manage their lifecycle.

Targets:
- A new git-hosting repository (one atomic commit)
- A single-file snippet
- A Kubernetes-hosted service driven through a GitOps repository
"""

from mcpship.lib.errors import ConfigError, DeploymentError, McpShipError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigError",
    "DeploymentError",
    "McpShipError",
]
