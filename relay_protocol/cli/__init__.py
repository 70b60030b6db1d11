"""
Command-line entry point: run a hub bound to host:port
"""

from .hub import build_parser, main, run_hub

__all__ = [
    "build_parser",
    "main",
    "run_hub",
]
