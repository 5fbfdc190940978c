"""
CLI Commands.

Organized by what the command talks to: the server, one endpoint, or the
server's download area.
"""

from velociraptor_api.cli.commands.endpoint import app as endpoint_app
from velociraptor_api.cli.commands.fetch import fetch
from velociraptor_api.cli.commands.query import query

__all__ = [
    "endpoint_app",
    "fetch",
    "query",
]
