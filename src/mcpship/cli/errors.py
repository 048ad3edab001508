"""Shared error handling and application lookup for CLI commands."""

from __future__ import annotations

import sys
from collections.abc import Generator
from contextlib import contextmanager

import click

from mcpship.app import Application, build_application
from mcpship.config.settings import load_settings
from mcpship.lib.errors import (
    ConfigError,
    DeploymentError,
    DeploymentPermissionError,
    McpShipError,
)
from mcpship.lib.logging_config import get_logger

logger = get_logger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_DEPLOYMENT_ERROR = 3
EXIT_PERMISSION_DENIED = 4


@contextmanager
def handle_deployment_errors() -> Generator[None, None, None]:
    """Context manager for consistent error handling in CLI commands.

    Exit codes:
        2: Configuration error
        3: Deployment/execution error
        4: Permission denied by tier or quota
    """
    try:
        yield
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.field}: {e.message}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except DeploymentPermissionError as e:
        logger.error(f"Permission denied: {e}")
        click.secho(f"Error: {e.code}", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        if e.current_usage is not None and e.limit is not None:
            click.echo(f"  Usage: {e.current_usage}/{e.limit}", err=True)
        click.echo(f"  Upgrade: {e.upgrade_url}", err=True)
        sys.exit(EXIT_PERMISSION_DENIED)
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(EXIT_DEPLOYMENT_ERROR)
    except McpShipError as e:
        logger.error(f"Error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_DEPLOYMENT_ERROR)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_DEPLOYMENT_ERROR)


def get_app(ctx: click.Context) -> Application:
    """Return the Application stored on the context, building it on first use.

    Tests pre-populate ``ctx.obj["app"]`` to avoid touching the network.
    """
    ctx.ensure_object(dict)
    app = ctx.obj.get("app")
    if app is None:
        app = build_application(load_settings())
        ctx.obj["app"] = app
    return app
