#!/usr/bin/env python3
"""Main entry point for the debate arena."""

from arena.main import cli

if __name__ == "__main__":
    cli()
