"""Repository scaffolding added to published MCP servers.

Generates the ignore file, a CI workflow and an optional devcontainer
definition. These files are synthesized locally and never come from the
artifact store.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from jinja2 import Template

from mcpship.models.deployment import DeploymentFile

Language = Literal["typescript", "javascript", "python"]

GITIGNORE_PATH = ".gitignore"
CI_WORKFLOW_PATH = ".github/workflows/test.yml"
DEVCONTAINER_PATH = ".devcontainer/devcontainer.json"

GITIGNORE_CONTENT = """\
# Dependencies
node_modules/
__pycache__/
.venv/

# Build output
dist/
build/

# Environment files
.env
.env.local
.env.*.local

# IDE
.idea/
.vscode/
*.swp
*.swo

# OS files
.DS_Store
Thumbs.db

# Logs
*.log
npm-debug.log*
yarn-debug.log*
yarn-error.log*

# Test coverage
coverage/
.coverage

# TypeScript cache
*.tsbuildinfo
"""

# GitHub expressions are kept out of Jinja with raw blocks
CI_WORKFLOW_TEMPLATE = """\
name: Test {{ server_name }}

on:
  push:
    branches: [main, master]
  pull_request:
    branches: [main, master]

permissions:
  contents: read
  checks: write

jobs:
  test:
    runs-on: ubuntu-latest

    strategy:
      matrix:
        node-version: [{{ node_version }}]

    steps:
      - name: Checkout repository
        uses: actions/checkout@v4

      - name: Setup Node.js {% raw %}${{ matrix.node-version }}{% endraw %}
        uses: actions/setup-node@v4
        with:
          node-version: {% raw %}${{ matrix.node-version }}{% endraw %}
          cache: 'npm'

      - name: Install dependencies
        run: npm ci

      - name: Build
        run: npm run build

      - name: Run tests with coverage
        run: npm test -- --coverage --if-present
        continue-on-error: true

      - name: Upload coverage artifact
        uses: actions/upload-artifact@v4
        if: always()
        with:
          name: coverage-report
          path: coverage/
          retention-days: 30

      - name: Verify MCP server starts
        run: |
          timeout 5 node {{ entry_point }} --help || true
"""

_BASE_IMAGES: dict[str, str] = {
    "typescript": "mcr.microsoft.com/devcontainers/typescript-node:1-20",
    "javascript": "mcr.microsoft.com/devcontainers/typescript-node:1-20",
    "python": "mcr.microsoft.com/devcontainers/python:1-3.11",
}

_BASE_EXTENSIONS = [
    "streetsidesoftware.code-spell-checker",
    "EditorConfig.EditorConfig",
    "ms-azuretools.vscode-docker",
]

_EXTENSIONS: dict[str, list[str]] = {
    "typescript": [
        "ms-vscode.vscode-typescript-next",
        "esbenp.prettier-vscode",
        "dbaeumer.vscode-eslint",
    ],
    "javascript": ["esbenp.prettier-vscode", "dbaeumer.vscode-eslint"],
    "python": [
        "ms-python.python",
        "ms-python.vscode-pylance",
        "ms-python.black-formatter",
    ],
}

_POST_CREATE: dict[str, str] = {
    "typescript": "npm install && npm run build && npm test --if-present",
    "javascript": "npm install && npm run build && npm test --if-present",
    "python": "pip install -e . && python -m pytest || true",
}


def generate_gitignore() -> DeploymentFile:
    """Return the ``.gitignore`` for a generated server."""
    return DeploymentFile(path=GITIGNORE_PATH, content=GITIGNORE_CONTENT)


def generate_ci_workflow(
    server_name: str,
    *,
    node_version: str = "20.x",
    entry_point: str = "dist/index.js",
) -> DeploymentFile:
    """Return a GitHub Actions workflow that builds and smoke-tests the server."""
    content = Template(CI_WORKFLOW_TEMPLATE, keep_trailing_newline=True).render(
        server_name=server_name,
        node_version=node_version,
        entry_point=entry_point,
    )
    return DeploymentFile(path=CI_WORKFLOW_PATH, content=content)


def generate_devcontainer_config(
    server_name: str, language: Language = "typescript"
) -> dict[str, Any]:
    """Build the devcontainer.json structure for ``language``."""
    features: dict[str, Any] = {"ghcr.io/devcontainers/features/git:1": {}}
    settings: dict[str, Any] = {"editor.formatOnSave": True, "editor.tabSize": 2}

    if language == "python":
        features["ghcr.io/devcontainers/features/python:1"] = {"version": "3.11"}
        settings["editor.defaultFormatter"] = "ms-python.black-formatter"
        settings["python.analysis.typeCheckingMode"] = "basic"
    else:
        features["ghcr.io/devcontainers/features/node:1"] = {"version": "20"}
        settings["editor.defaultFormatter"] = "esbenp.prettier-vscode"
        settings["typescript.preferences.importModuleSpecifier"] = "relative"

    return {
        "name": f"{server_name} MCP Server",
        "image": _BASE_IMAGES[language],
        "features": features,
        "customizations": {
            "vscode": {
                "extensions": _BASE_EXTENSIONS + _EXTENSIONS[language],
                "settings": settings,
            }
        },
        "postCreateCommand": _POST_CREATE[language],
        "remoteUser": "vscode",
    }


def generate_devcontainer(
    server_name: str, language: Language = "typescript"
) -> DeploymentFile:
    """Return ``.devcontainer/devcontainer.json`` for a generated server."""
    config = generate_devcontainer_config(server_name, language)
    return DeploymentFile(path=DEVCONTAINER_PATH, content=json.dumps(config, indent=2))


def scaffold_repository(
    server_name: str,
    *,
    include_devcontainer: bool = False,
    language: Language = "typescript",
) -> list[DeploymentFile]:
    """Files appended to every repository deployment."""
    files = [generate_gitignore(), generate_ci_workflow(server_name)]
    if include_devcontainer:
        files.append(generate_devcontainer(server_name, language))
    return files
