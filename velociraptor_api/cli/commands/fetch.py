"""
Fetch Command.

Downloads a file from the server to a local path.
"""

from pathlib import Path

import typer

from velociraptor_api.cli.client import get_api_client
from velociraptor_api.cli.common import run
from velociraptor_api.core.logging import get_logger, log_with_source

logger = get_logger(__name__)


def fetch(
    path: str = typer.Argument(
        ...,
        help="Name of (remote) file, usually in the form of "
        "downloads/C.XXXXXXXXXXXXXXXX/F.YYYYYYYYYYYYY/HOSTNAME-C.XXXXXXXXXXXXXXXX-F.YYYYYYYYYYYYY.zip",
    ),
    output_file: Path = typer.Option(..., "--output-file", help="Name of (local) output file"),
) -> None:
    """Fetch a file from server."""
    run(_fetch(path, output_file))


async def _fetch(path: str, output_file: Path) -> None:
    data = await get_api_client().fetch(path)
    output_file.write_bytes(data)
    log_with_source(
        logger, "cli", "info", "File fetched", path=path, output=str(output_file), size=len(data),
    )
