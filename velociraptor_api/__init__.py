"""
Velociraptor API client.

- core/: Configuration, logging, exceptions, polling
- api/:  gRPC connection, VQL queries, flows, file downloads
- cli/:  Command-line front end (Typer + Rich)
"""

__version__ = "0.1.0"
