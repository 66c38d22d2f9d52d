"""Main entry point for running typecalc_pkg as a module.

This allows running typecalc with:
    python -m typecalc_pkg
    python -m typecalc_pkg -k "8/2="
    python -m typecalc_pkg -l "(2+3)/(5-1)"

This is equivalent to running:
    python -m typecalc_pkg.cli
"""

from __future__ import annotations

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())
