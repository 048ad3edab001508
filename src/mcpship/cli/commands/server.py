"""CLI commands for Kubernetes-hosted MCP servers.

Implements the 'mcpship server' command group.
"""

from __future__ import annotations

import sys

import click

from mcpship.cli.errors import EXIT_DEPLOYMENT_ERROR, get_app, handle_deployment_errors
from mcpship.lib.logging_config import get_logger
from mcpship.models.hosting import HostedServer, HostedServerStatus

logger = get_logger(__name__)

_STATUS_COLORS = {
    HostedServerStatus.RUNNING: "green",
    HostedServerStatus.STOPPED: "yellow",
    HostedServerStatus.FAILED: "red",
}


@click.group(name="server", invoke_without_command=True)
@click.pass_context
def server(ctx: click.Context) -> None:
    """Host MCP servers on the cluster through the GitOps repository.

    Example:

        mcpship server deploy 01J9Z3...

        mcpship server stop weather-k3j9x0qa
    """
    ctx.ensure_object(dict)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@server.command(name="deploy")
@click.argument("artifact_id")
@click.option("--user", "user_id", default=None, help="Owning user")
@click.option(
    "--env-var",
    "env_vars",
    multiple=True,
    help="Variable read from the server's env Secret (repeatable)",
)
@click.pass_context
def deploy_server(
    ctx: click.Context, artifact_id: str, user_id: str | None, env_vars: tuple[str, ...]
) -> None:
    """Build, push and deploy the latest deployment of ARTIFACT_ID.

    Without --env-var the variable names declared by the artifact are used.
    """
    with handle_deployment_errors():
        app = get_app(ctx)
        click.echo(f"Deploying artifact {artifact_id} to the cluster...")
        result = app.hosting.deploy_to_cloud(
            artifact_id, user_id=user_id, env_var_names=env_vars or None
        )

    if not result.success:
        click.secho(f"Error: {result.error}", fg="red", err=True)
        click.echo(f"  Server: {result.server_id} ({result.status.value})", err=True)
        sys.exit(EXIT_DEPLOYMENT_ERROR)

    click.secho("Server deployed!", fg="green", bold=True)
    click.echo(f"  Server:   {result.server_id}")
    click.echo(f"  Endpoint: {result.endpoint_url}")


@server.command()
@click.argument("server_id")
@click.pass_context
def stop(ctx: click.Context, server_id: str) -> None:
    """Scale SERVER_ID to zero replicas."""
    with handle_deployment_errors():
        hosted = get_app(ctx).hosting.stop_server(server_id)
    _display_server(hosted)


@server.command()
@click.argument("server_id")
@click.pass_context
def start(ctx: click.Context, server_id: str) -> None:
    """Scale a stopped SERVER_ID back to one replica."""
    with handle_deployment_errors():
        hosted = get_app(ctx).hosting.start_server(server_id)
    _display_server(hosted)


@server.command()
@click.argument("server_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, server_id: str, yes: bool) -> None:
    """Remove SERVER_ID's manifests and image."""
    if not yes:
        click.confirm(f"Delete server {server_id}?", abort=True)
    with handle_deployment_errors():
        hosted = get_app(ctx).hosting.delete_server(server_id)
    _display_server(hosted)


@server.command(name="list")
@click.option("--user", "user_id", default=None, help="Only this user's servers")
@click.pass_context
def list_servers(ctx: click.Context, user_id: str | None) -> None:
    """List servers that are not deleted."""
    with handle_deployment_errors():
        servers = get_app(ctx).hosting.list_servers(user_id)
    if not servers:
        click.echo("No servers found.")
        return
    for hosted in servers:
        _display_server(hosted)


def _display_server(hosted: HostedServer) -> None:
    status = click.style(
        f"{hosted.status.value:<9}", fg=_STATUS_COLORS.get(hosted.status)
    )
    click.echo(f"{hosted.server_id}  {status} {hosted.endpoint_url}")
    if hosted.status_message:
        click.echo(f"    {hosted.status_message}")
