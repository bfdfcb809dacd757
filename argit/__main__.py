"""Entry point for running argit as a module.

This module allows argit to be run as a Python module using the -m flag:
    python -m argit <archive> <command> [args...]
"""

from . import cli

if __name__ == "__main__":
    cli._main()
