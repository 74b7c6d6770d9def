"""
Entry point for running elktail as a Python module.

This module enables the package to be executed directly via:
    python -m elktail [options] [query terms...]
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
