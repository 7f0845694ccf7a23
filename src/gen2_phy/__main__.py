"""
Allow running gen2_phy with python -m
"""

import sys

from .cli import main

if __name__ == '__main__':
    sys.exit(main())
