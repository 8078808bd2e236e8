"""Base protocol for the remote verifier API."""

from typing import Any, Protocol, runtime_checkable

from verifier_sync.models import CertUpdate, CrlStatus, RevocationChunk


@runtime_checkable
class RemoteApi(Protocol):
    """Protocol defining what the synchronizers need from the server.

    VerifierApiClient implements it over HTTP; tests plug in an in-memory
    fake. Implementations raise NetworkFailureError for transport problems
    and ParseFailureError for malformed bodies.
    """

    def get_validation_rules(self) -> list[dict[str, Any]]:
        """Get the current validation rules document."""
        ...

    def get_cert_status(self) -> list[str]:
        """Get the authoritative list of valid key identifiers."""
        ...

    def get_cert_update(self, resume_token: int | None = None) -> CertUpdate | None:
        """Get one page of the key-update stream.

        Args:
            resume_token: Position to resume from, None for the beginning

        Returns:
            CertUpdate, or None if the server has nothing more to send
        """
        ...

    def get_crl_status(self, from_version: int) -> CrlStatus:
        """Get revocation list status relative to the client's version.

        Args:
            from_version: Last version fully downloaded by the client
        """
        ...

    def get_revoke_list(self, version: int, chunk: int) -> RevocationChunk:
        """Get one chunk of the revocation list.

        Args:
            version: Target revocation list version
            chunk: 1-based chunk index
        """
        ...
