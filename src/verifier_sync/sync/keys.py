"""Resumable download of the trusted signing keys."""

import logging
from datetime import datetime
from typing import Callable

from verifier_sync.clients.base import RemoteApi
from verifier_sync.exceptions import InconsistentStateError
from verifier_sync.security import KeyCipher, PlainCipher
from verifier_sync.sync.state import SyncProgress
from verifier_sync.sync.storage import KeyStore

logger = logging.getLogger(__name__)


class KeySynchronizer:
    """Pages through the key-update stream and reconciles the key store.

    One sync:
    1. Fetch the authoritative KID list.
    2. Page through key updates from the persisted resume token, storing
       keys whose KID is authoritative and discarding the rest.
    3. Prune the store down to the authoritative KIDs.

    Pruning only runs once pagination has finished, so a failed page never
    deletes keys that are still being transferred.
    """

    def __init__(
        self,
        api: RemoteApi,
        progress: SyncProgress,
        key_store: KeyStore,
        cipher: KeyCipher | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.api = api
        self.progress = progress
        self.key_store = key_store
        self.cipher = cipher or PlainCipher()
        self._clock = clock

    def sync(self) -> dict:
        """Run one key sync.

        Returns:
            Dict with sync statistics

        Raises:
            NetworkFailureError: If the status or any update page fails
            ParseFailureError: If a response is malformed
            InconsistentStateError: If the store is empty after pruning
        """
        stats = {
            "kids_valid": 0,
            "pages": 0,
            "keys_stored": 0,
            "keys_discarded": 0,
            "keys_pruned": 0,
        }

        valid_kids = set(self.api.get_cert_status())
        stats["kids_valid"] = len(valid_kids)

        if not valid_kids:
            logger.info("Authoritative key list is empty, restarting key stream")
            self.progress.resume_token = None

        self._fetch_updates(valid_kids, stats)

        stats["keys_pruned"] = self.key_store.delete_all_except(valid_kids)

        record_count = self.key_store.count()
        logger.info(f"Key store holds {record_count} keys")
        if record_count == 0:
            raise InconsistentStateError("Key store is empty after key sync")

        self.progress.date_last_fetch = self._clock()
        return stats

    def _fetch_updates(self, valid_kids: set[str], stats: dict):
        """Follow resume tokens until the server has no more pages."""
        token = self.progress.resume_token

        while True:
            update = self.api.get_cert_update(token)
            if update is None:
                break
            stats["pages"] += 1

            if update.kid in valid_kids:
                self.key_store.put(update.kid, self.cipher.encrypt(update.material))
                self.progress.resume_token = token
                stats["keys_stored"] += 1
                logger.debug(f"Stored key {update.kid}")
            else:
                stats["keys_discarded"] += 1
                logger.debug(f"Discarded key {update.kid}: not in authoritative list")

            next_token = update.next_resume_token
            if next_token is None:
                break
            if next_token == token:
                logger.warning(f"Server repeated resume token {token}, stopping pagination")
                break
            token = next_token
