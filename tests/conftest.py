"""Pytest configuration and shared fixtures for verifier-sync tests."""

import pytest

from verifier_sync.config import SyncConfig
from verifier_sync.exceptions import NetworkFailureError
from verifier_sync.models import CertUpdate, CrlStatus, RevocationChunk
from verifier_sync.sync import KeyStore, RevocationStore, SyncEngine, SyncProgress


def pytest_addoption(parser):
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires network)",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires network)"
    )


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


class FakeRemoteApi:
    """In-memory RemoteApi.

    Keys are served as a resume-token chain: the request without a token
    returns the first key with next token 1, token 1 returns the second key
    with next token 2, and so on; the last key carries no next token.
    """

    def __init__(self):
        self.rules = [{"name": "vaccine_end_day_complete", "type": "EU/1/20/1528", "value": "365"}]
        self.kids: list[str] = []
        self.updates: dict[int | None, CertUpdate] = {}
        self.crl_status = CrlStatus(version=0, total_chunks=0)
        self.chunks: dict[tuple[int, int], RevocationChunk] = {}
        self.failures: dict[tuple, Exception] = {}
        self.calls: list[tuple] = []

    def set_keys(self, keys: list[tuple[str, bytes]], kids: list[str] | None = None):
        """Serve ``keys`` as the update stream; ``kids`` defaults to all of them."""
        self.updates = {}
        for i, (kid, material) in enumerate(keys):
            token = i if i > 0 else None
            next_token = i + 1 if i + 1 < len(keys) else None
            self.updates[token] = CertUpdate(kid=kid, material=material, next_resume_token=next_token)
        self.kids = [kid for kid, _ in keys] if kids is None else kids

    def set_revocation(self, version: int, chunks: list[dict], add_count: int = 0):
        """Serve ``chunks`` (raw JSON dicts) as chunks 1..n of ``version``."""
        self.crl_status = CrlStatus(
            version=version,
            total_chunks=len(chunks),
            chunk_size_bytes=1000,
            add_count=add_count,
        )
        for i, data in enumerate(chunks, start=1):
            self.chunks[(version, i)] = RevocationChunk.model_validate(data)

    def _call(self, name: str, *args):
        self.calls.append((name, *args))
        key = (name, *args)
        if key in self.failures:
            raise self.failures[key]
        if (name,) in self.failures:
            raise self.failures[(name,)]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def get_validation_rules(self):
        self._call("get_validation_rules")
        return self.rules

    def get_cert_status(self):
        self._call("get_cert_status")
        return list(self.kids)

    def get_cert_update(self, resume_token=None):
        self._call("get_cert_update", resume_token)
        return self.updates.get(resume_token)

    def get_crl_status(self, from_version):
        self._call("get_crl_status", from_version)
        return self.crl_status

    def get_revoke_list(self, version, chunk):
        self._call("get_revoke_list", version, chunk)
        try:
            return self.chunks[(version, chunk)]
        except KeyError:
            raise NetworkFailureError(f"no chunk {chunk} for version {version}", 404)


@pytest.fixture
def fake_api():
    return FakeRemoteApi()


@pytest.fixture
def progress(tmp_path):
    return SyncProgress(tmp_path / ".sync_state.json")


@pytest.fixture
def key_store():
    store = KeyStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def revocation_store():
    store = RevocationStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def engine(tmp_path, fake_api):
    engine = SyncEngine(SyncConfig(data_dir=tmp_path), client=fake_api)
    yield engine
    engine.close()
