"""
fingerprint_sync package

Provides the CLI entrypoint (`python -m fingerprint_sync`) that merges the
upstream technology fingerprints into the local corpus.
"""

from .cli import main

__all__ = ["main"]
