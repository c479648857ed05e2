"""Kusanagi command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``kusanagi`` script).
"""

from kusanagi.cli.main import cli

__all__ = ["cli"]
