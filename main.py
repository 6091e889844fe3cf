#!/usr/bin/env python3
"""
Main entry point for the adaptive Z-order index.

Runs the command line interface from a source checkout.
"""

import sys
from pathlib import Path

# Add the src directory to the Python path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from adaptive_zindex.cli import main as cli_main


def main():
    """Main entry point."""
    cli_main()


if __name__ == "__main__":
    main()
