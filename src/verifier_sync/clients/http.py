"""
Verifier API Client

HTTP client for the certificate authority's REST API: validation rules,
signing keys and the revocation list.
"""

import logging
from typing import Any

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from verifier_sync.exceptions import NetworkFailureError, ParseFailureError
from verifier_sync.models import CertUpdate, CrlStatus, RevocationChunk

logger = logging.getLogger(__name__)

HEADER_KID = "x-kid"
HEADER_RESUME_TOKEN = "x-resume-token"


class VerifierApiClient:
    """
    Client for the verifier REST API.

    Example:
        >>> client = VerifierApiClient()
        >>> kids = client.get_cert_status()
        >>> update = client.get_cert_update()
        >>> print(update.kid, update.next_resume_token)
    """

    BASE_URL = "https://get.dgc.gov.it/v1/dgc"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int = 30,
        session: requests.Session | None = None,
        pool_connections: int = 10,
        pool_maxsize: int = 10,
        user_agent: str = "verifier-sync/0.1.0",
    ):
        """
        Initialize verifier API client.

        Args:
            base_url: Override base API URL
            timeout: Request timeout in seconds
            session: Optional shared requests session
            pool_connections: Number of connection pools
            pool_maxsize: Max connections per pool
            user_agent: User-Agent header value
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self._owns_session = session is None

        self.session = session or self._create_session(pool_connections, pool_maxsize)
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/json",
        })

    @staticmethod
    def _create_session(pool_connections: int, pool_maxsize: int) -> requests.Session:
        """Create a session with connection pooling and no transport retries.

        Retrying is left to the next sync cycle, which resumes from the
        persisted checkpoint.
        """
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=pool_connections,
            pool_maxsize=pool_maxsize,
            max_retries=Retry(total=0),
        )
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def close(self):
        """Close the session if we own it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _request(
        self,
        endpoint: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> requests.Response:
        """Make GET request to API endpoint, mapping transport errors."""
        url = f"{self.base_url}/{endpoint}"
        try:
            response = self.session.get(
                url, params=params, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise NetworkFailureError(f"GET {endpoint} failed: HTTP {status}", status) from e
        except requests.RequestException as e:
            raise NetworkFailureError(f"GET {endpoint} failed: {type(e).__name__}") from e
        return response

    def _get_json(self, endpoint: str, params: dict | None = None) -> Any:
        response = self._request(endpoint, params)
        try:
            return response.json()
        except ValueError as e:
            raise ParseFailureError(f"Invalid JSON from {endpoint}: {e}") from e

    # -------------------------------------------------------------------------
    # Validation Rules
    # -------------------------------------------------------------------------

    def get_validation_rules(self) -> list[dict[str, Any]]:
        """Get the validation rules document."""
        data = self._get_json("settings")
        if not isinstance(data, list):
            raise ParseFailureError("Validation rules must be a JSON array")
        return data

    # -------------------------------------------------------------------------
    # Signing Keys
    # -------------------------------------------------------------------------

    def get_cert_status(self) -> list[str]:
        """
        Get the authoritative list of valid key identifiers.

        Returns:
            List of KIDs
        """
        data = self._get_json("signercertificate/status")
        if not isinstance(data, list) or not all(isinstance(kid, str) for kid in data):
            raise ParseFailureError("Key status must be a JSON array of strings")
        return data

    def get_cert_update(self, resume_token: int | None = None) -> CertUpdate | None:
        """
        Get one page of the key-update stream.

        Args:
            resume_token: Position to resume from, None for the beginning

        Returns:
            CertUpdate, or None when the server answers without content
        """
        headers = {}
        if resume_token is not None:
            headers[HEADER_RESUME_TOKEN] = str(resume_token)

        response = self._request("signercertificate/update", headers=headers)
        if response.status_code != 200:
            logger.debug(f"Key update stream ended with HTTP {response.status_code}")
            return None

        next_token = response.headers.get(HEADER_RESUME_TOKEN)
        try:
            return CertUpdate(
                kid=response.headers.get(HEADER_KID),
                material=response.content,
                next_resume_token=int(next_token) if next_token else None,
            )
        except ValueError as e:
            raise ParseFailureError(f"Invalid resume token header: {next_token!r}") from e

    # -------------------------------------------------------------------------
    # Revocation List
    # -------------------------------------------------------------------------

    def get_crl_status(self, from_version: int) -> CrlStatus:
        """
        Get revocation list status.

        Args:
            from_version: Last version fully downloaded by the client

        Returns:
            CrlStatus with target version and chunk layout
        """
        data = self._get_json("drl/check", {"version": from_version})
        try:
            return CrlStatus.model_validate(data)
        except ValidationError as e:
            raise ParseFailureError(f"Invalid revocation status: {e}") from e

    def get_revoke_list(self, version: int, chunk: int) -> RevocationChunk:
        """
        Get one chunk of the revocation list.

        Args:
            version: Target version
            chunk: 1-based chunk index

        Returns:
            RevocationChunk with either a full fragment or a delta
        """
        data = self._get_json("drl", {"version": version, "chunk": chunk})
        try:
            return RevocationChunk.model_validate(data)
        except ValidationError as e:
            raise ParseFailureError(f"Invalid revocation chunk {chunk}: {e}") from e
