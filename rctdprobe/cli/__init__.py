"""
rctdprobe Command Line Interface module.
"""

from .commands import cli, main

__all__ = ["cli", "main"]
