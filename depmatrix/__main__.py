"""
Executable module for depmatrix.

Running:
    python -m depmatrix

is equivalent to:
    depmatrix
"""

from __future__ import annotations

import sys

from depmatrix.cli import main

if __name__ == "__main__":
    sys.exit(main())
