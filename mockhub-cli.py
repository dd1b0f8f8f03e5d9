#!/usr/bin/env python3
"""
MockHub - Programmable mock HTTP endpoints

This is a convenience wrapper that calls the packaged CLI.
The actual implementation is in src/mockhub/cli.py

Usage:
    python mockhub-cli.py serve mocks.yaml

For more information, see README.md
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from mockhub.cli import main

if __name__ == '__main__':
    main()
