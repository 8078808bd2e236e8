"""Chunked download and merge of the certificate revocation list."""

import logging

from verifier_sync.clients.base import RemoteApi
from verifier_sync.exceptions import NetworkFailureError, ParseFailureError
from verifier_sync.models import CrlStatus, RevocationChunk
from verifier_sync.sync.state import SyncProgress
from verifier_sync.sync.storage import RevocationStore

logger = logging.getLogger(__name__)


class RevocationSynchronizer:
    """Brings the revocation store up to the server's current version.

    The chunk counter in SyncProgress is the resumability checkpoint: it is
    advanced and persisted right after each chunk's batch lands, and the
    version is only marked done once every chunk has been applied.
    """

    def __init__(self, api: RemoteApi, progress: SyncProgress, store: RevocationStore):
        self.api = api
        self.progress = progress
        self.store = store

    def sync(self) -> dict:
        """Run one revocation sync.

        Returns:
            Dict with sync statistics. ``status`` is one of "up_to_date",
            "complete" or "partial" (a chunk failed, retried next cycle).
            ``abandoned_version`` is set when an unfinished version the
            server no longer serves was dropped for a full download.

        Raises:
            NetworkFailureError: If the status request fails
            ParseFailureError: If the status response is malformed
        """
        progress = self.progress
        start_version = progress.last_downloaded_version

        status = self.api.get_crl_status(start_version)
        logger.info(
            f"Revocation list: local version {start_version}, "
            f"server version {status.version}, {status.total_chunks} chunks"
        )

        stats = {
            "status": "up_to_date",
            "version": start_version,
            "chunks_applied": 0,
            "total_chunks": 0,
        }
        if status.version <= start_version:
            return stats

        version, total_chunks = self._select_target(status)
        stats["version"] = version
        stats["total_chunks"] = total_chunks

        if start_version == 0 and progress.last_downloaded_chunk == 0:
            leftover = self.store.count()
            if leftover:
                logger.warning(
                    f"Clearing {leftover} revoked ids of unknown version "
                    f"before full download of version {version}"
                )
                self.store.clear()

        while progress.last_downloaded_chunk < total_chunks:
            chunk_index = progress.last_downloaded_chunk + 1
            try:
                chunk = self._fetch_chunk(version, chunk_index)
            except (NetworkFailureError, ParseFailureError) as e:
                if version != status.version:
                    self._abandon(version, status.version, e)
                    stats = self.sync()
                    stats["abandoned_version"] = version
                    return stats
                logger.warning(
                    f"Revocation chunk {chunk_index}/{total_chunks} of version {version} "
                    f"failed, will retry next cycle: {e}"
                )
                stats["status"] = "partial"
                stats["error"] = str(e)
                return stats

            self.store.apply_batch(chunk.insertions, chunk.deletions)
            progress.last_downloaded_chunk = chunk_index
            stats["chunks_applied"] += 1
            logger.debug(
                f"Applied chunk {chunk_index}/{total_chunks}: "
                f"+{len(chunk.insertions)} -{len(chunk.deletions)}"
            )

        with progress.batch_updates():
            progress.last_downloaded_version = version
            progress.last_downloaded_chunk = 0

        logger.info(f"Revocation list now at version {version}")
        if start_version == 0:
            self._check_full_count()
        stats["status"] = "complete"
        return stats

    def _select_target(self, status: CrlStatus) -> tuple[int, int]:
        """Decide which version to download and persist its layout.

        A version that is already partly downloaded is finished first, using
        its persisted chunk count; the newer one is picked up next cycle. If
        a chunk of that version can no longer be fetched it is abandoned.

        Returns:
            Tuple of (version, total_chunks)
        """
        progress = self.progress
        in_flight = (
            progress.last_downloaded_chunk > 0
            and progress.current_version > progress.last_downloaded_version
            and progress.current_version != status.version
        )
        if in_flight:
            logger.info(
                f"Finishing revocation version {progress.current_version} "
                f"before moving to {status.version}"
            )
            return progress.current_version, progress.total_chunks

        with progress.batch_updates():
            progress.current_version = status.version
            progress.total_chunks = status.total_chunks
            progress.chunk_size_bytes = status.chunk_size_bytes
            progress.expected_adds = status.add_count
            progress.expected_deletes = status.delete_count
        return status.version, status.total_chunks

    def _fetch_chunk(self, version: int, chunk_index: int) -> RevocationChunk:
        chunk = self.api.get_revoke_list(version, chunk_index)
        if chunk.chunk is not None and chunk.chunk != chunk_index:
            raise ParseFailureError(f"Requested chunk {chunk_index}, got chunk {chunk.chunk}")
        return chunk

    def _check_full_count(self):
        expected = self.progress.expected_adds
        actual = self.store.count()
        if expected and actual != expected:
            logger.warning(
                f"Revocation store holds {actual} ids after full download, "
                f"server announced {expected}"
            )

    def _abandon(self, version: int, server_version: int, error: Exception):
        """Drop a partly applied version the server no longer serves.

        Its applied chunks cannot be reconciled with a delta, so the store
        and counters are cleared and the list is downloaded again in full.
        """
        logger.warning(
            f"Abandoning revocation version {version} (server now at {server_version}), "
            f"restarting from a full download: {error}"
        )
        self.store.clear()
        self.progress.clear_revocation()
