"""
Server Query Command.

Runs a VQL query on the server and prints the rows as JSON.
"""

from typing import Optional

import typer

from velociraptor_api.cli.client import get_api_client
from velociraptor_api.cli.common import echo_json, parse_env, run


def query(
    vql: str = typer.Argument(..., metavar="QUERY", help="The query to run"),
    org: Optional[str] = typer.Option(None, "--org", help="Org ID to use"),
    env: Optional[list[str]] = typer.Option(
        None, "--env", help="Add query environment values in the form of Key=Value",
    ),
) -> None:
    """
    Issue a server side VQL query.

    Examples:
        velociraptor-client query "SELECT * FROM info()"
        velociraptor-client query --env Name=x "SELECT Name FROM scope()"
    """
    run(_query(vql, org, parse_env(env)))


async def _query(vql: str, org: str | None, env: list[tuple[str, str]]) -> None:
    api = get_api_client()
    result = await api.query(vql, api.default_options(env=env, org_id=org))
    echo_json(result)
