"""
assetpipe - incremental asset builds driven by Assets.json manifests.

Usage:
    python -m assetpipe build
    python -m assetpipe rebuild
    python -m assetpipe watch
"""

__version__ = "0.1.0"
