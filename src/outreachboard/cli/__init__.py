"""CLI package for outreachboard.

The Typer app is created in app.py; importing the command module registers
its commands on it.
"""

import outreachboard.cli.commands  # noqa: F401, E402
from outreachboard.cli.app import app

__all__ = ["app"]
