"""SyncEngine - orchestrates validation rules, key and revocation synchronization."""

import logging
import threading
from datetime import datetime
from typing import Any, Callable

from cryptography import x509

from verifier_sync.clients.base import RemoteApi
from verifier_sync.clients.http import VerifierApiClient
from verifier_sync.config import SyncConfig
from verifier_sync.exceptions import InconsistentStateError
from verifier_sync.security import KeyCipher, PlainCipher, decode_certificate
from verifier_sync.sync.keys import KeySynchronizer
from verifier_sync.sync.revocation import RevocationSynchronizer
from verifier_sync.sync.state import SyncProgress
from verifier_sync.sync.storage import KeyStore, RevocationStore

logger = logging.getLogger(__name__)


class SyncEngine:
    """Runs sync cycles against the verifier API.

    A cycle fetches validation rules (best effort), then the signing keys,
    then the revocation list. Only the key sync decides the cycle's outcome;
    revocation data is advisory and its failures are just logged. Cycles
    never overlap.

    Example:
        engine = SyncEngine(SyncConfig(data_dir="./data"))
        if engine.sync():
            cert = engine.get_certificate("kid")

        # Use as context manager for automatic cleanup
        with SyncEngine() as engine:
            engine.sync()
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        client: RemoteApi | None = None,
        cipher: KeyCipher | None = None,
    ):
        """Initialize sync engine.

        Args:
            config: Settings (defaults to SyncConfig())
            client: Remote API implementation (lazily created over HTTP if None)
            cipher: At-rest cipher for key material (identity if None)
        """
        self.config = config or SyncConfig()
        self.cipher = cipher or PlainCipher()
        self.progress = SyncProgress(self.config.state_file)
        self.key_store = KeyStore(self.config.db_path)
        self.revocation_store = RevocationStore(self.config.db_path)

        self._client = client
        self._owns_client = client is None
        self._cycle_lock = threading.RLock()
        self._syncing = False
        self._listeners: list[Callable[[bool], None]] = []
        self.last_result: dict[str, Any] = {}

    @property
    def client(self) -> RemoteApi:
        """Get or create the HTTP API client."""
        if self._client is None:
            self._client = VerifierApiClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                pool_connections=self.config.pool_connections,
                pool_maxsize=self.config.pool_maxsize,
                user_agent=self.config.user_agent,
            )
        return self._client

    def close(self):
        """Close the HTTP session (if owned) and database connections."""
        if self._owns_client and isinstance(self._client, VerifierApiClient):
            self._client.close()
        self.key_store.close()
        self.revocation_store.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def add_status_listener(self, callback: Callable[[bool], None]):
        """Register a callback receiving the in-progress flag of each cycle."""
        self._listeners.append(callback)

    def _publish(self, syncing: bool):
        self._syncing = syncing
        for callback in self._listeners:
            try:
                callback(syncing)
            except Exception as e:
                logger.warning(f"Status listener failed: {e}")

    # -------------------------------------------------------------------------
    # Sync cycle
    # -------------------------------------------------------------------------

    def sync(self) -> bool:
        """Run one sync cycle, waiting for any cycle already in progress.

        A call made from inside a running cycle on the same thread (e.g. by a
        status listener) is refused rather than nested.

        Returns:
            True if the key sync completed, False otherwise
        """
        with self._cycle_lock:
            if self._syncing:
                logger.warning("Sync already in progress on this thread, skipping nested cycle")
                return False
            self._publish(True)
            self.last_result = {
                "start_time": datetime.now().isoformat(),
                "end_time": None,
                "resets": 0,
            }
            try:
                success = self._run_with_reset(self.config.max_resets)
            except Exception as e:
                logger.error(f"Sync cycle failed: {e}")
                self.last_result["error"] = str(e)
                success = False
            finally:
                self._publish(False)

            self.last_result["success"] = success
            self.last_result["end_time"] = datetime.now().isoformat()
            return success

    def _run_with_reset(self, resets_left: int) -> bool:
        """Run cycles, resetting local state on inconsistency at most ``resets_left`` times."""
        while True:
            try:
                return self._run_cycle()
            except InconsistentStateError as e:
                if resets_left <= 0:
                    logger.error(f"Sync failed, local state still inconsistent: {e}")
                    self.last_result["error"] = str(e)
                    return False
                resets_left -= 1
                self.last_result["resets"] += 1
                logger.warning(f"{e}; resetting local state and retrying")
                self.reset()

    def _run_cycle(self) -> bool:
        self._fetch_validation_rules()

        try:
            self.last_result["keys"] = KeySynchronizer(
                self.client, self.progress, self.key_store, self.cipher
            ).sync()
        except InconsistentStateError:
            raise
        except Exception as e:
            logger.error(f"Key sync failed: {e}")
            self.last_result["error"] = str(e)
            return False

        try:
            self.last_result["revocation"] = RevocationSynchronizer(
                self.client, self.progress, self.revocation_store
            ).sync()
        except Exception as e:
            logger.error(f"Revocation sync failed: {e}")
            self.last_result["revocation"] = {"status": "failed", "error": str(e)}

        return True

    def _fetch_validation_rules(self):
        try:
            self.progress.validation_rules = self.client.get_validation_rules()
        except Exception as e:
            logger.warning(f"Could not fetch validation rules: {e}")

    def reset(self):
        """Clear all progress, keys and revoked ids."""
        with self._cycle_lock:
            self.progress.clear()
            self.key_store.clear()
            self.revocation_store.clear()
            logger.info("Local sync state cleared")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_certificate(self, kid: str) -> x509.Certificate | None:
        """Get the signing certificate for a KID.

        Args:
            kid: Key identifier

        Returns:
            Decoded certificate, or None if the KID is not stored
        """
        material = self.key_store.get(kid)
        if material is None:
            return None
        return decode_certificate(self.cipher.decrypt(material))

    def is_revoked(self, identifier: str) -> bool:
        """Check a certificate identifier against the revocation list."""
        return self.revocation_store.contains(identifier)

    def get_validation_rules(self) -> list[dict[str, Any]] | None:
        """Get the last fetched validation rules."""
        return self.progress.validation_rules

    def get_sync_status(self) -> dict:
        """Get current sync status.

        Returns:
            Dict with progress counters and store sizes
        """
        status = self.progress.to_dict()
        status.update({
            "syncing": self.is_syncing,
            "key_count": self.key_store.count(),
            "revoked_count": self.revocation_store.count(),
            "has_validation_rules": self.progress.validation_rules is not None,
        })
        return status
