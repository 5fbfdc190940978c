"""
Command-line client for the Velociraptor API.

Usage:
    velociraptor-client --help

    # Server side query
    velociraptor-client query "SELECT * FROM info()"
    velociraptor-client query --org O123 --env Key=Value "SELECT Key FROM scope()"

    # Work on an endpoint
    velociraptor-client client C.1234567890abcdef query "SELECT * FROM info()"
    velociraptor-client client C.1234567890abcdef bash "uname -a"

    # Download a file
    velociraptor-client fetch --output-file out.zip downloads/C.123/F.456/host.zip

Options:
    --config PATH     API client config ("velociraptor config api_client")
    --instance NAME   Use ~/.config/velociraptor/apiclient-NAME.yaml
    --verbose, -v     Enable verbose output
    --debug, -d       Enable debug mode (detailed logging)
"""

from pathlib import Path
from typing import Optional

import typer

from velociraptor_api.cli import client
from velociraptor_api.cli.commands import endpoint_app, fetch, query
from velociraptor_api.cli.common import console
from velociraptor_api.core.exceptions import ApplicationError

app = typer.Typer(
    name="velociraptor-client",
    help="Velociraptor API client - server queries, endpoint commands, and downloads.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("query")(query)
app.add_typer(endpoint_app, name="client")
app.command("fetch")(fetch)


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help='Path to the API client config. You can generate such a file with "velociraptor config api_client"',
    ),
    instance: Optional[str] = typer.Option(None, "--instance", help="Server instance name"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output (INFO level logging)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug mode (DEBUG level logging)",
    ),
) -> None:
    """
    Velociraptor API client.

    Credentials are read from --config, or from the per-user config
    directory (apiclient.yaml, or apiclient-<instance>.yaml).
    """
    from velociraptor_api.core.logging import setup_logging

    try:
        if debug:
            setup_logging(level="DEBUG", format_type="console")
        elif verbose:
            setup_logging(level="INFO", format_type="console")
        else:
            setup_logging()
    except ApplicationError as e:
        console.print(f"[red]Error: {e.message}[/red]", highlight=False)
        raise typer.Exit(1)

    if config is not None and instance is not None:
        console.print("[red]Error: can't use config and instance simultaneously[/red]")
        raise typer.Exit(1)

    client.configure(config, instance)


if __name__ == "__main__":
    app()
