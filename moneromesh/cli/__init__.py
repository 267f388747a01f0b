"""
MoneroMesh Command Line Interface.

Serve the statistics API, fetch one-shot snapshots and check upstream
connectivity.
"""

from .main import cli, main

__all__ = ["cli", "main"]
