"""
CLI Client Module.

Command-line client built with Typer.

Architecture:
- CLI is a thin presentation layer
- All protocol logic lives in velociraptor_api.api
- Payloads on stdout, diagnostics and logs on stderr

Usage:
    velociraptor-client --help
    python cli.py query "SELECT * FROM info()"
"""
