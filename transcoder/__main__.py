#!/usr/bin/env python3
"""
Entry point for the transcoder CLI.

Run with: python -m transcoder
"""

from .cli import cli

if __name__ == '__main__':
    cli()
