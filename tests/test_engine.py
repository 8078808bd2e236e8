"""Tests for the SyncEngine orchestrator."""

import base64
import threading
import time
from datetime import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from verifier_sync.config import SyncConfig
from verifier_sync.exceptions import NetworkFailureError, ParseFailureError
from verifier_sync.sync import SyncEngine


def make_certificate_material(common_name: str = "Test DSC") -> bytes:
    """Build a self-signed certificate encoded the way the key stream serves it."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(1234)
        .not_valid_before(datetime(2024, 1, 1))
        .not_valid_after(datetime(2030, 1, 1))
        .sign(key, hashes.SHA256())
    )
    return base64.b64encode(cert.public_bytes(serialization.Encoding.DER))


@pytest.fixture
def ready_api(fake_api):
    fake_api.set_keys([("A", b"a"), ("B", b"b")])
    fake_api.set_revocation(1, [{"revokedUcvi": ["r1", "r2"]}])
    return fake_api


class TestSyncCycle:
    """Tests for SyncEngine.sync."""

    def test_successful_cycle(self, engine, ready_api):
        assert engine.sync() is True

        assert engine.key_store.kids() == {"A", "B"}
        assert engine.is_revoked("r1")
        assert engine.get_validation_rules() == ready_api.rules
        assert engine.last_result["success"] is True
        assert engine.last_result["revocation"]["status"] == "complete"

    def test_call_order(self, engine, ready_api):
        engine.sync()
        order = []
        for call in ready_api.calls:
            if call[0] not in order:
                order.append(call[0])
        assert order == [
            "get_validation_rules",
            "get_cert_status",
            "get_cert_update",
            "get_crl_status",
            "get_revoke_list",
        ]

    def test_rules_failure_is_not_fatal(self, engine, ready_api):
        ready_api.failures[("get_validation_rules",)] = NetworkFailureError("offline")
        assert engine.sync() is True
        assert engine.get_validation_rules() is None

    def test_key_failure_fails_cycle_and_skips_revocation(self, engine, ready_api):
        ready_api.failures[("get_cert_status",)] = NetworkFailureError("offline")

        assert engine.sync() is False
        assert ready_api.count("get_crl_status") == 0
        assert "offline" in engine.last_result["error"]

    def test_revocation_failure_does_not_fail_cycle(self, engine, ready_api):
        ready_api.failures[("get_crl_status",)] = ParseFailureError("bad status")

        assert engine.sync() is True
        assert engine.last_result["revocation"]["status"] == "failed"
        assert engine.key_store.count() == 2

    def test_partial_revocation_still_succeeds(self, engine, ready_api):
        ready_api.failures[("get_revoke_list", 1, 1)] = NetworkFailureError("timeout")
        assert engine.sync() is True
        assert engine.last_result["revocation"]["status"] == "partial"

    def test_cycles_do_not_overlap(self, engine, ready_api):
        active = []
        overlaps = []
        original = ready_api.get_cert_status

        def slow_status():
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
            time.sleep(0.05)
            active.pop()
            return original()

        ready_api.get_cert_status = slow_status
        threads = [threading.Thread(target=engine.sync) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []
        assert ready_api.count("get_validation_rules") == 3
        assert engine.key_store.count() == 2

    def test_unexpected_error_is_reported(self, engine, ready_api):
        ready_api.failures[("get_cert_update", None)] = RuntimeError("boom")
        assert engine.sync() is False
        assert engine.last_result["success"] is False


class TestSelfHeal:
    """Tests for the bounded reset-and-retry on an empty key store."""

    def test_single_reset_then_gives_up(self, engine, fake_api):
        fake_api.set_keys([])
        fake_api.set_revocation(1, [{"revokedUcvi": ["r1"]}])

        assert engine.sync() is False

        assert fake_api.count("get_cert_status") == 2
        assert engine.last_result["resets"] == 1
        assert fake_api.count("get_crl_status") == 0

    def test_reset_clears_all_local_state(self, engine, fake_api):
        engine.revocation_store.apply_batch(insertions=["stale"])
        engine.progress.last_downloaded_version = 3
        fake_api.set_keys([])

        engine.sync()

        assert engine.revocation_store.count() == 0
        assert engine.progress.last_downloaded_version == 0

    def test_recovers_on_retry(self, engine, fake_api):
        fake_api.set_keys([("A", b"a"), ("B", b"b")])
        engine.progress.resume_token = 1
        # Resuming at token 1 skips A and B is no longer valid: first pass ends empty.
        fake_api.kids = ["A"]

        assert engine.sync() is True

        assert engine.last_result["resets"] == 1
        assert engine.key_store.kids() == {"A"}

    def test_no_reset_allowed(self, tmp_path, fake_api):
        fake_api.set_keys([])
        with SyncEngine(SyncConfig(data_dir=tmp_path, max_resets=0), client=fake_api) as engine:
            assert engine.sync() is False
        assert fake_api.count("get_cert_status") == 1


class TestStatus:
    """Tests for status publication and queries."""

    def test_listener_sees_in_progress_flag(self, engine, ready_api):
        events = []
        engine.add_status_listener(events.append)

        engine.sync()

        assert events == [True, False]
        assert engine.is_syncing is False

    def test_listener_cannot_start_nested_cycle(self, engine, ready_api):
        nested = []

        def listener(syncing):
            if syncing:
                nested.append(engine.sync())

        engine.add_status_listener(listener)

        assert engine.sync() is True
        assert nested == [False]
        assert ready_api.count("get_cert_status") == 1
        assert engine.last_result["success"] is True

    def test_listener_sees_flag_cleared_on_failure(self, engine, ready_api):
        events = []
        engine.add_status_listener(events.append)
        ready_api.failures[("get_cert_status",)] = NetworkFailureError("offline")

        engine.sync()

        assert events == [True, False]

    def test_sync_status(self, engine, ready_api):
        engine.sync()
        status = engine.get_sync_status()

        assert status["key_count"] == 2
        assert status["revoked_count"] == 2
        assert status["last_downloaded_version"] == 1
        assert status["date_last_fetch"] is not None
        assert status["syncing"] is False

    def test_reset(self, engine, ready_api):
        engine.sync()
        engine.reset()
        status = engine.get_sync_status()
        assert status["key_count"] == 0
        assert status["revoked_count"] == 0
        assert status["resume_token"] is None

    def test_get_certificate(self, engine, fake_api):
        fake_api.set_keys([("A", make_certificate_material("Signer A"))])
        engine.sync()

        cert = engine.get_certificate("A")

        assert cert.serial_number == 1234
        assert cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "Signer A"
        assert engine.get_certificate("missing") is None

    def test_get_certificate_rejects_garbage(self, engine, fake_api):
        fake_api.set_keys([("A", b"not a certificate!")])
        engine.sync()
        with pytest.raises(ParseFailureError):
            engine.get_certificate("A")

    def test_state_survives_restart(self, tmp_path, ready_api):
        config = SyncConfig(data_dir=tmp_path)
        with SyncEngine(config, client=ready_api) as engine:
            engine.sync()

        with SyncEngine(config, client=ready_api) as engine:
            assert engine.is_revoked("r2")
            assert engine.progress.last_downloaded_version == 1
            assert engine.key_store.count() == 2
