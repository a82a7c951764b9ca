"""
Run the eremos demo.

Usage:
    python -m eremos.interface [--seed N] [--slot ID] [--tier T]
"""

import sys

from .cli import main

sys.exit(main())
