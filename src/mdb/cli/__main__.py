#!/usr/bin/env python3
"""
CLI entry point for mdb.cli module.

This allows running: python -m mdb.cli
"""

from .main import cli

if __name__ == "__main__":
    cli()
