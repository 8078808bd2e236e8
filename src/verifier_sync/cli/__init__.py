"""Command-line interface for verifier-sync."""

from verifier_sync.cli.main import main as verifier_sync_main

__all__ = ["verifier_sync_main"]
