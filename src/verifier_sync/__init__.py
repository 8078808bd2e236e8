"""
Verifier Sync - offline-capable sync of signing keys and revocation lists

Keeps a certificate verifier in sync with its issuing authority:

Signing keys:
- Resumable key-update stream driven by server resume tokens
- Local key store pruned to the authoritative key list
- Self-healing reset when the local store ends up empty

Revocation list:
- Chunked download, full snapshot or delta fragments
- Per-chunk checkpoint so an interrupted download resumes where it stopped
- Idempotent: re-running a cycle with no new version changes nothing

Example:
    from verifier_sync import SyncConfig, SyncEngine

    with SyncEngine(SyncConfig(data_dir="./data")) as engine:
        engine.sync()
        engine.is_revoked("uvci-digest")
"""

from verifier_sync.clients import RemoteApi, VerifierApiClient
from verifier_sync.config import SyncConfig
from verifier_sync.exceptions import (
    InconsistentStateError,
    NetworkFailureError,
    ParseFailureError,
    SyncError,
)
from verifier_sync.models import CertUpdate, CrlStatus, RevocationChunk, RevocationDelta
from verifier_sync.security import KeyCipher, PlainCipher
from verifier_sync.sync import (
    KeyStore,
    KeySynchronizer,
    RevocationStore,
    RevocationSynchronizer,
    SyncEngine,
    SyncProgress,
)

__version__ = "0.1.0"

__all__ = [
    # Engine
    "SyncEngine",
    "SyncConfig",
    "KeySynchronizer",
    "RevocationSynchronizer",
    # Storage
    "SyncProgress",
    "KeyStore",
    "RevocationStore",
    # Client
    "RemoteApi",
    "VerifierApiClient",
    # Models
    "CertUpdate",
    "CrlStatus",
    "RevocationChunk",
    "RevocationDelta",
    # Security
    "KeyCipher",
    "PlainCipher",
    # Errors
    "SyncError",
    "NetworkFailureError",
    "ParseFailureError",
    "InconsistentStateError",
]
