"""Pydantic models for the verifier API."""

from verifier_sync.models.api import (
    CertUpdate,
    CrlStatus,
    RevocationChunk,
    RevocationDelta,
)

__all__ = [
    "CertUpdate",
    "CrlStatus",
    "RevocationChunk",
    "RevocationDelta",
]
