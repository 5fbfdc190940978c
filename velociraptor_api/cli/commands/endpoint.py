"""
Client (Endpoint) Commands.

Schedule work on one managed endpoint and wait for its results:

    velociraptor-client client C.1234 query "SELECT * FROM info()"
    velociraptor-client client C.1234 bash "uname -a"
    velociraptor-client client C.1234 cmd "ver"
    velociraptor-client client C.1234 powershell "Get-Date"
"""

import sys

import typer

from velociraptor_api.api.flows import ShellResult
from velociraptor_api.cli.client import get_api_client
from velociraptor_api.cli.common import echo_json, run
from velociraptor_api.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

app = typer.Typer(help="Execute command or VQL query on a client")

QUERY_ARTIFACT = "Generic.Client.VQL"
SHELL_ARTIFACTS = {
    "bash": "Linux.Sys.BashShell",
    "cmd": "Windows.System.CmdShell",
    "powershell": "Windows.System.PowerShell",
}


@app.callback()
def main(
    ctx: typer.Context,
    client: str = typer.Argument(..., help="Client ID"),
) -> None:
    """Execute command or VQL query on a client."""
    ctx.obj = client


@app.command()
def query(
    ctx: typer.Context,
    vql: str = typer.Argument(..., metavar="QUERY", help="The query to run"),
) -> None:
    """Issue a client side VQL query."""
    run(_query(ctx.obj, vql))


async def _query(client_id: str, vql: str) -> None:
    endpoint = get_api_client().new_client_unchecked(client_id)
    flow = await endpoint.schedule_flow(QUERY_ARTIFACT, vql)
    log_with_source(logger, "cli", "debug", "Flow scheduled", flow_id=str(flow))
    echo_json(await flow.fetch())


async def _shell(client_id: str, shell: str, command: str) -> None:
    endpoint = get_api_client().new_client_unchecked(client_id)
    flow = await endpoint.schedule_flow(SHELL_ARTIFACTS[shell], command)
    log_with_source(logger, "cli", "debug", "Flow scheduled", flow_id=str(flow))

    rows = await flow.fetch(row_type=ShellResult, check_log=False)
    output = ShellResult.fold(rows)
    sys.stdout.write(output.stdout)
    sys.stdout.flush()
    sys.stderr.write(output.stderr)
    sys.stderr.flush()


@app.command()
def bash(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Command to run"),
) -> None:
    """Issue a client shell command."""
    run(_shell(ctx.obj, "bash", command))


@app.command()
def cmd(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Command to run"),
) -> None:
    """Issue a client command using CMD.EXE."""
    run(_shell(ctx.obj, "cmd", command))


@app.command()
def powershell(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Command to run"),
) -> None:
    """Issue a client command using PowerShell."""
    run(_shell(ctx.obj, "powershell", command))
