"""Sync engine for signing keys and the revocation list."""

from verifier_sync.sync.engine import SyncEngine
from verifier_sync.sync.keys import KeySynchronizer
from verifier_sync.sync.revocation import RevocationSynchronizer
from verifier_sync.sync.state import SyncProgress
from verifier_sync.sync.storage import KeyStore, RevocationStore

__all__ = [
    "SyncEngine",
    "KeySynchronizer",
    "RevocationSynchronizer",
    "SyncProgress",
    "KeyStore",
    "RevocationStore",
]
