"""Remote API clients."""

from verifier_sync.clients.base import RemoteApi
from verifier_sync.clients.http import HEADER_KID, HEADER_RESUME_TOKEN, VerifierApiClient

__all__ = ["RemoteApi", "VerifierApiClient", "HEADER_KID", "HEADER_RESUME_TOKEN"]
