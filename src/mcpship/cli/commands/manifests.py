"""CLI command rendering a server's Kubernetes manifests without committing."""

from __future__ import annotations

import click

from mcpship.cli.errors import get_app, handle_deployment_errors
from mcpship.hosting.manifests import ManifestGenerator
from mcpship.lib.errors import ConfigError
from mcpship.lib.logging_config import get_logger
from mcpship.models.hosting import ManifestConfig

logger = get_logger(__name__)


@click.command()
@click.argument("server_id")
@click.option("--image", default=None, help="Image repository (for unknown servers)")
@click.option("--tag", default=None, help="Image tag")
@click.option("--name", default=None, help="Server name (for unknown servers)")
@click.option("--replicas", type=click.IntRange(min=0), default=None)
@click.option(
    "--kustomization/--no-kustomization",
    default=True,
    help="Also print the kustomization",
)
@click.pass_context
def manifests(
    ctx: click.Context,
    server_id: str,
    image: str | None,
    tag: str | None,
    name: str | None,
    replicas: int | None,
    kustomization: bool,
) -> None:
    """Print the manifests that would be committed for SERVER_ID.

    Known servers are rendered from their stored state; other ids need
    --image.

    Example:

        mcpship manifests weather-k3j9x0qa

        mcpship manifests demo-1 --image localhost:5000/demo-1 --replicas 0
    """
    with handle_deployment_errors():
        app = get_app(ctx)
        generator = ManifestGenerator()
        hosted = app.servers.get(server_id)

        if hosted is not None:
            config = app.hosting.manifest_config(hosted)
        elif image:
            config = ManifestConfig(
                server_id=server_id,
                server_name=name or server_id,
                docker_image=image,
                domain=app.settings.hosting.domain,
                namespace=app.settings.hosting.namespace,
            )
        else:
            raise ConfigError("image", f"Unknown server {server_id}; pass --image")

        overrides: dict[str, object] = {}
        if tag:
            overrides["image_tag"] = tag
        if replicas is not None:
            overrides["replicas"] = replicas
        if overrides:
            config = config.model_copy(update=overrides)

        rendered = generator.generate_manifests(config)
        documents = [rendered.deployment, rendered.service, rendered.ingress]
        if kustomization:
            documents.append(generator.generate_kustomization(server_id))

    click.echo("---\n".join(documents), nl=False)
