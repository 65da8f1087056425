"""
Entry point for running assetpipe as a module: python -m assetpipe
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
