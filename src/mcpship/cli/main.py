"""Entry point for the ``mcpship`` command."""

from __future__ import annotations

import click
from dotenv import load_dotenv

from mcpship import __version__
from mcpship.cli.commands.deploy import deploy
from mcpship.cli.commands.manifests import manifests
from mcpship.cli.commands.server import server
from mcpship.lib.logging_config import setup_logging


@click.group()
@click.version_option(__version__, prog_name="mcpship")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only report errors")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Load environment variables from this file (default: .env)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, quiet: bool, env_file: str | None) -> None:
    """Publish generated MCP servers to repositories, snippets or the cluster.

    Example:

        mcpship deploy snippet 01J9Z3...

        mcpship server deploy 01J9Z3...
    """
    ctx.ensure_object(dict)
    load_dotenv(env_file, override=False)
    setup_logging(verbose=verbose, quiet=quiet)


main.add_command(deploy)
main.add_command(server)
main.add_command(manifests)


if __name__ == "__main__":
    main()
