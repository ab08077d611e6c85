"""Command-line interface for interlock.

Provides commands for writing the default policy, inspecting it, and
checking values and resource references against it.
"""

from .main import cli, main

__all__ = ["cli", "main"]
