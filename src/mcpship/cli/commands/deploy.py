"""CLI commands for repository and snippet deployments.

Implements the 'mcpship deploy' command group: publishing, retry, listing,
rollback, update and deletion of deployment records.
"""

from __future__ import annotations

import sys

import click

from mcpship.cli.errors import EXIT_DEPLOYMENT_ERROR, get_app, handle_deployment_errors
from mcpship.lib.errors import NotFoundError
from mcpship.lib.logging_config import get_logger
from mcpship.models.deployment import (
    DeleteResult,
    DeploymentFilters,
    DeploymentOptions,
    DeploymentRecord,
    DeploymentResult,
    DeploymentStatus,
    TargetType,
)

logger = get_logger(__name__)

DEFAULT_USER = "local"


@click.group(name="deploy", invoke_without_command=True)
@click.pass_context
def deploy(ctx: click.Context) -> None:
    """Publish artifacts and manage deployment records.

    Subcommands:

        repo      Publish to a new repository
        snippet   Publish as a single-file snippet
        retry     Retry a failed deployment
        list      List deployment records
        status    Show every attempt for an artifact
        rollback  Delete the resource of a failed deployment
        update    Re-publish a snippet in place
        delete    Delete a deployment and its resource

    Example:

        mcpship deploy snippet 01J9Z3...

        mcpship deploy repo 01J9Z3... --name weather-server --devcontainer
    """
    ctx.ensure_object(dict)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _publish_options(func):  # type: ignore[no-untyped-def]
    func = click.option(
        "--user",
        "user_id",
        default=DEFAULT_USER,
        show_default=True,
        help="Requesting user",
    )(func)
    func = click.option(
        "--private/--public",
        "is_private",
        default=None,
        help="Repository visibility / secret snippet (tier permitting)",
    )(func)
    func = click.option("--description", "-d", default=None, help="Description")(func)
    func = click.option(
        "--name", "-n", default=None, help="Override the server name"
    )(func)
    return click.argument("artifact_id")(func)


@deploy.command()
@_publish_options
@click.option("--devcontainer", is_flag=True, help="Add a devcontainer definition")
@click.pass_context
def repo(
    ctx: click.Context,
    artifact_id: str,
    name: str | None,
    description: str | None,
    is_private: bool | None,
    user_id: str,
    devcontainer: bool,
) -> None:
    """Publish ARTIFACT_ID to a new repository in a single commit."""
    options = DeploymentOptions(
        server_name=name,
        description=description,
        is_private=is_private,
        include_devcontainer=devcontainer,
    )
    with handle_deployment_errors():
        app = get_app(ctx)
        result = app.router.route(user_id, artifact_id, options, TargetType.REPO)
    _finish(result)


@deploy.command()
@_publish_options
@click.pass_context
def snippet(
    ctx: click.Context,
    artifact_id: str,
    name: str | None,
    description: str | None,
    is_private: bool | None,
    user_id: str,
) -> None:
    """Publish ARTIFACT_ID as a single-file snippet."""
    options = DeploymentOptions(
        server_name=name, description=description, is_private=is_private
    )
    with handle_deployment_errors():
        app = get_app(ctx)
        result = app.router.route(user_id, artifact_id, options, TargetType.SNIPPET)
    _finish(result)


@deploy.command()
@click.argument("deployment_id")
@click.option("--name", "-n", "new_name", default=None, help="New server name")
@click.option("--force", is_flag=True, help="Retry even if the error is not retryable")
@click.pass_context
def retry(
    ctx: click.Context, deployment_id: str, new_name: str | None, force: bool
) -> None:
    """Retry the failed deployment DEPLOYMENT_ID as a new attempt."""
    with handle_deployment_errors():
        app = get_app(ctx)
        result = app.orchestrator.retry_deployment(
            deployment_id, new_name=new_name, force_retry=force
        )
    _finish(result)


@deploy.command(name="list")
@click.option("--artifact", "artifact_id", default=None, help="Only this artifact")
@click.option(
    "--target",
    type=click.Choice([t.value for t in TargetType]),
    default=None,
    help="Only this target type",
)
@click.option(
    "--status",
    type=click.Choice([s.value for s in DeploymentStatus]),
    default=None,
    help="Only this status",
)
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def list_deployments(
    ctx: click.Context,
    artifact_id: str | None,
    target: str | None,
    status: str | None,
    page: int,
    limit: int,
) -> None:
    """List deployment records, newest first."""
    with handle_deployment_errors():
        app = get_app(ctx)
        result = app.orchestrator.list_deployments(
            DeploymentFilters(
                source_artifact_id=artifact_id,
                target_type=TargetType(target) if target else None,
                status=DeploymentStatus(status) if status else None,
                page=page,
                limit=limit,
            )
        )

    if not result.items:
        click.echo("No deployments found.")
        return
    for record in result.items:
        _display_record(record)
    click.echo(f"Page {result.page} ({len(result.items)} of {result.total})")


@deploy.command()
@click.argument("artifact_id")
@click.pass_context
def status(ctx: click.Context, artifact_id: str) -> None:
    """Show every deployment attempt for ARTIFACT_ID."""
    with handle_deployment_errors():
        app = get_app(ctx)
        records = app.orchestrator.get_deployment_status(artifact_id)
    if not records:
        click.echo(f"No deployments for artifact {artifact_id}.")
        return
    for record in records:
        _display_record(record)


@deploy.command()
@click.argument("deployment_id")
@click.option(
    "--reason", default="Manual rollback", show_default=True, help="Recorded reason"
)
@click.pass_context
def rollback(ctx: click.Context, deployment_id: str, reason: str) -> None:
    """Delete the repository or snippet created by DEPLOYMENT_ID."""
    with handle_deployment_errors():
        app = get_app(ctx)
        result = app.rollback.rollback(deployment_id, reason)

    if result.skipped:
        click.secho("Rollback already performed", fg="yellow")
    for resource in result.resources_deleted:
        click.echo(f"  Deleted {resource}")
    if not result.success:
        for error in result.errors:
            click.secho(f"  {error}", fg="red", err=True)
        sys.exit(EXIT_DEPLOYMENT_ERROR)
    click.secho("Rollback complete", fg="green")


@deploy.command()
@click.argument("deployment_id")
@click.option("--description", "-d", default=None, help="New description")
@click.pass_context
def update(ctx: click.Context, deployment_id: str, description: str | None) -> None:
    """Re-publish the snippet of DEPLOYMENT_ID with the artifact's files."""
    with handle_deployment_errors():
        app = get_app(ctx)
        result = app.orchestrator.update_snippet_deployment(deployment_id, description)
    _finish(result)


@deploy.command()
@click.argument("deployment_id")
@click.pass_context
def delete(ctx: click.Context, deployment_id: str) -> None:
    """Delete DEPLOYMENT_ID and its repository or snippet."""
    with handle_deployment_errors():
        app = get_app(ctx)
        record = app.orchestrator.get_deployment(deployment_id)
        if record is None:
            raise NotFoundError("Deployment", deployment_id)
        result: DeleteResult
        if record.target_type == TargetType.REPO:
            result = app.orchestrator.delete_repo_deployment(deployment_id)
        else:
            result = app.orchestrator.delete_snippet_deployment(deployment_id)

    if not result.success:
        click.secho(f"Error: {result.error}", fg="red", err=True)
        sys.exit(EXIT_DEPLOYMENT_ERROR)
    click.secho(f"Deleted deployment {deployment_id}", fg="green")


def _display_record(record: DeploymentRecord) -> None:
    color = {
        DeploymentStatus.SUCCESS: "green",
        DeploymentStatus.FAILED: "red",
        DeploymentStatus.PENDING: "yellow",
    }[record.status]
    url = record.urls.repository or record.urls.snippet or ""
    click.echo(
        f"{record.id}  {record.target_type.value:<8} "
        + click.style(f"{record.status.value:<8}", fg=color)
        + f" {record.created_at:%Y-%m-%d %H:%M}  {url}"
    )
    if record.error_code is not None:
        click.echo(f"    {record.error_code.value}: {record.error_message}")


def _finish(result: DeploymentResult) -> None:
    """Print a deployment result; exit 3 when it failed."""
    if result.success:
        click.secho("Deployment successful!", fg="green", bold=True)
        click.echo(f"  Deployment: {result.deployment_id}")
        urls = result.urls
        for label, value in (
            ("Repository", urls.repository),
            ("Clone", urls.clone),
            ("Codespace", urls.codespace),
            ("Snippet", urls.snippet),
            ("Raw", urls.snippet_raw),
        ):
            if value:
                click.echo(f"  {label + ':':<11} {value}")
        return

    click.secho(f"Error: {result.user_message or result.error}", fg="red", err=True)
    if result.deployment_id:
        click.echo(f"  Deployment: {result.deployment_id}", err=True)
    if result.error_code is not None:
        click.echo(f"  Code:       {result.error_code.value}", err=True)
    if result.retry_strategy is not None:
        click.echo(f"  Retry:      {result.retry_strategy.value}", err=True)
    if result.suggested_names:
        click.echo(f"  Try:        {', '.join(result.suggested_names)}", err=True)
    sys.exit(EXIT_DEPLOYMENT_ERROR)
