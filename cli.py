#!/usr/bin/env python3
"""
Velociraptor API client CLI.

Runs the client from a source checkout. Installed copies provide the same
commands as `velociraptor-client`.

Usage:
    python cli.py --help
    python cli.py query "SELECT * FROM info()"
    python cli.py client C.1234567890abcdef bash "uname -a"
    python cli.py fetch --output-file out.zip downloads/C.123/F.456/host.zip
"""

import sys
from pathlib import Path

# Add project root to path for absolute imports
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from velociraptor_api.cli.main import app

if __name__ == "__main__":
    app()
