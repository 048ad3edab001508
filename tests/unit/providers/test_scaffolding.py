"""Unit tests for generated repository scaffolding."""

from __future__ import annotations

import json

import yaml

from mcpship.deploy.orchestrator import with_scaffolding
from mcpship.models.deployment import DeploymentFile
from mcpship.providers.scaffolding import (
    CI_WORKFLOW_PATH,
    DEVCONTAINER_PATH,
    GITIGNORE_PATH,
    generate_ci_workflow,
    generate_devcontainer_config,
    scaffold_repository,
)


class TestScaffoldRepository:
    """Tests for scaffold_repository."""

    def test_default_files(self) -> None:
        paths = [f.path for f in scaffold_repository("weather")]

        assert paths == [GITIGNORE_PATH, CI_WORKFLOW_PATH]

    def test_with_devcontainer(self) -> None:
        files = scaffold_repository("weather", include_devcontainer=True)

        assert files[-1].path == DEVCONTAINER_PATH
        config = json.loads(files[-1].content)
        assert config["name"] == "weather MCP Server"

    def test_ci_workflow_is_valid_yaml(self) -> None:
        workflow = yaml.safe_load(generate_ci_workflow("weather").content)

        assert workflow["name"] == "Test weather"
        assert "test" in workflow["jobs"]

    def test_ci_workflow_keeps_expressions(self) -> None:
        """Workflow expressions survive template rendering."""
        assert "${{" in generate_ci_workflow("weather").content

    def test_python_devcontainer(self) -> None:
        config = generate_devcontainer_config("weather", "python")

        assert "python" in config["image"]
        assert "ms-python.python" in config["customizations"]["vscode"]["extensions"]


class TestWithScaffolding:
    """Tests for merging scaffolding into artifact files."""

    def test_artifact_files_win(self) -> None:
        own = DeploymentFile(path=".gitignore", content="custom\n")

        merged = with_scaffolding([own], "weather", include_devcontainer=False)

        gitignores = [f for f in merged if f.path == ".gitignore"]
        assert gitignores == [own]
        assert any(f.path == CI_WORKFLOW_PATH for f in merged)

    def test_python_project_gets_python_devcontainer(self) -> None:
        files = [DeploymentFile(path="server.py", content="")]

        merged = with_scaffolding(files, "weather", include_devcontainer=True)

        devcontainer = next(f for f in merged if f.path == DEVCONTAINER_PATH)
        assert "python" in json.loads(devcontainer.content)["image"]
