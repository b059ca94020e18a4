"""Tests for refresh token rotation and reuse detection.

Covers:
- rotation keeps the family and changes the jti
- single use and reuse detection
- blast radius of a violation (whole family)
- record expiry independent of the used/revoked flags
- forged tokens whose signature verifies
- concurrent presentation of one token
"""

import threading
from dataclasses import replace

import jwt
import pytest

from models.errors import StorageUnavailable
from models.refresh_token import TokenState
from services.errors import InvalidToken, MalformedToken, TokenInvalidated, TokenReuseDetected
from services import build_auth_service


def _decode(settings, raw):
    return jwt.decode(
        raw,
        settings.refresh_secret,
        algorithms=[settings.algorithm],
        issuer=settings.issuer,
    )


def _forge(settings, payload):
    return jwt.encode(payload, settings.refresh_secret, algorithm=settings.algorithm)


def _family_states(store, family_id):
    return {r.jti: r.state for r in store.list_family(family_id)}


class TestLoginAndIssue:
    def test_login_starts_family_with_one_issued_record(self, service, store):
        tokens = service.login("user-1", {"roles": ["user"]})

        record = store.get_by_jti(tokens["jti"])
        assert record.family_id == tokens["family_id"]
        assert record.user_id == "user-1"
        assert record.state is TokenState.ISSUED

    def test_raw_token_is_not_stored(self, service, store):
        tokens = service.login("user-1", {})

        record = store.get_by_jti(tokens["jti"])
        assert record.fingerprint_hash != tokens["refresh_token"]
        assert tokens["refresh_token"] not in record.fingerprint_hash

    def test_each_login_gets_a_new_family(self, service):
        first = service.login("user-1", {})
        second = service.login("user-1", {})

        assert first["family_id"] != second["family_id"]

    def test_register_has_login_contract(self, service, store):
        tokens = service.register("user-9", {"email": "a@b.c"})

        assert set(tokens) == {"access_token", "refresh_token", "family_id", "jti"}
        assert store.get_by_jti(tokens["jti"]).state is TokenState.ISSUED

    def test_refresh_token_payload_carries_family_and_claims(self, service, settings):
        tokens = service.login("user-1", {"roles": ["user"]})

        payload = _decode(settings, tokens["refresh_token"])
        assert payload["sub"] == "user-1"
        assert payload["fam"] == tokens["family_id"]
        assert payload["jti"] == tokens["jti"]
        assert payload["claims"] == {"roles": ["user"]}

    def test_access_token_uses_its_own_secret(self, service, settings):
        tokens = service.login("user-1", {"roles": ["user"]})

        decoded = service.decode_access_token(tokens["access_token"])
        assert decoded["sub"] == "user-1"
        assert decoded["exp"] - decoded["iat"] == settings.access_ttl_seconds
        with pytest.raises(jwt.InvalidSignatureError):
            _decode(settings, tokens["access_token"])


class TestRotation:
    def test_refresh_keeps_family_and_changes_jti(self, service, store):
        tokens = service.login("user-1", {"roles": ["user"]})

        rotated = service.refresh(tokens["refresh_token"])

        assert rotated["family_id"] == tokens["family_id"]
        assert rotated["jti"] != tokens["jti"]
        assert rotated["refresh_token"] != tokens["refresh_token"]
        assert store.get_by_jti(tokens["jti"]).state is TokenState.USED
        assert store.get_by_jti(rotated["jti"]).state is TokenState.ISSUED

    def test_chain_of_rotations_is_linear(self, service, store):
        tokens = service.login("user-1", {})
        current = tokens
        for _ in range(3):
            current = service.refresh(current["refresh_token"])

        states = _family_states(store, tokens["family_id"])
        assert len(states) == 4
        assert list(states.values()).count(TokenState.ISSUED) == 1
        assert states[current["jti"]] is TokenState.ISSUED

    def test_claims_are_carried_forward(self, service, settings):
        tokens = service.login("user-1", {"roles": ["admin"]})

        rotated = service.refresh(tokens["refresh_token"])

        assert _decode(settings, rotated["refresh_token"])["claims"] == {"roles": ["admin"]}
        assert service.decode_access_token(rotated["access_token"])["claims"] == {"roles": ["admin"]}


class TestReuseDetection:
    def test_example_scenario(self, service, store):
        """login -> refresh(r1) -> refresh(r1) again -> refresh(r2) fails too."""
        first = service.login("user-1", {})
        second = service.refresh(first["refresh_token"])

        with pytest.raises(TokenReuseDetected) as exc:
            service.refresh(first["refresh_token"])
        assert exc.value.family_id == first["family_id"]

        with pytest.raises(TokenInvalidated):
            service.refresh(second["refresh_token"])

        states = _family_states(store, first["family_id"])
        assert set(states.values()) == {TokenState.REVOKED}

    def test_single_use(self, service):
        tokens = service.login("user-1", {})
        service.refresh(tokens["refresh_token"])

        with pytest.raises(TokenInvalidated):
            service.refresh(tokens["refresh_token"])

    def test_violation_leaves_other_families_alone(self, service):
        victim = service.login("user-1", {})
        bystander = service.login("user-1", {})
        service.refresh(victim["refresh_token"])

        with pytest.raises(TokenReuseDetected):
            service.refresh(victim["refresh_token"])

        assert service.refresh(bystander["refresh_token"])["family_id"] == bystander["family_id"]

    def test_revoked_record_is_rejected_and_family_revoked(self, service, store):
        tokens = service.login("user-1", {})
        _, sibling_jti = service.issuer.issue_refresh_token("user-1", {}, tokens["family_id"])
        store.revoke_token(tokens["jti"])

        with pytest.raises(TokenInvalidated) as exc:
            service.refresh(tokens["refresh_token"])
        assert not isinstance(exc.value, TokenReuseDetected)
        assert store.get_by_jti(sibling_jti).revoked

    def test_unknown_jti_revokes_claimed_family(self, service, store, settings):
        tokens = service.login("user-1", {})
        payload = _decode(settings, tokens["refresh_token"])
        payload["jti"] = "never-issued"

        with pytest.raises(TokenInvalidated):
            service.refresh(_forge(settings, payload))

        assert store.get_by_jti(tokens["jti"]).revoked

    def test_owner_mismatch_is_a_violation(self, service, store, settings):
        tokens = service.login("user-1", {})
        payload = _decode(settings, tokens["refresh_token"])
        payload["sub"] = "user-2"

        with pytest.raises(TokenInvalidated):
            service.refresh(_forge(settings, payload))

        assert store.get_by_jti(tokens["jti"]).revoked

    def test_fingerprint_mismatch_is_reported_as_reuse(self, service, store, settings):
        tokens = service.login("user-1", {"roles": ["user"]})
        payload = _decode(settings, tokens["refresh_token"])
        payload["claims"] = {"roles": ["admin"]}

        with pytest.raises(TokenReuseDetected):
            service.refresh(_forge(settings, payload))

        record = store.get_by_jti(tokens["jti"])
        assert record.revoked
        assert not record.used


class TestRejectedBeforeStore:
    """Tokens that cannot be trusted never touch the store."""

    def test_bad_signature(self, service, store, settings):
        tokens = service.login("user-1", {})
        payload = _decode(settings, tokens["refresh_token"])
        forged = jwt.encode(payload, "attacker-secret-0123456789abcdef0123", algorithm=settings.algorithm)

        with pytest.raises(InvalidToken):
            service.refresh(forged)

        assert store.get_by_jti(tokens["jti"]).state is TokenState.ISSUED

    def test_garbage(self, service):
        with pytest.raises(InvalidToken):
            service.refresh("garbage")

    def test_empty(self, service):
        with pytest.raises(InvalidToken):
            service.refresh("")

    def test_access_token_is_not_a_refresh_token(self, service):
        tokens = service.login("user-1", {})

        with pytest.raises(InvalidToken):
            service.refresh(tokens["access_token"])

    def test_missing_family_is_malformed(self, service, store, settings):
        tokens = service.login("user-1", {})
        payload = _decode(settings, tokens["refresh_token"])
        del payload["fam"]

        with pytest.raises(MalformedToken):
            service.refresh(_forge(settings, payload))

        assert store.get_by_jti(tokens["jti"]).state is TokenState.ISSUED

    def test_missing_jti_is_malformed(self, service, settings):
        tokens = service.login("user-1", {})
        payload = _decode(settings, tokens["refresh_token"])
        del payload["jti"]

        with pytest.raises(MalformedToken):
            service.refresh(_forge(settings, payload))

    def test_expired_signature(self, service, store, settings, clock):
        clock.advance(days=-40)
        tokens = service.login("user-1", {})
        clock.advance(days=40)

        with pytest.raises(InvalidToken):
            service.refresh(tokens["refresh_token"])

        assert store.get_by_jti(tokens["jti"]).state is TokenState.ISSUED


class TestRecordExpiry:
    def test_expired_record_is_rejected_even_if_pristine(self, service, store, clock):
        tokens = service.login("user-1", {})
        # the JWT is still valid by wall clock; only the stored expiry has passed
        clock.advance(days=31)

        with pytest.raises(TokenInvalidated):
            service.refresh(tokens["refresh_token"])

        assert store.get_by_jti(tokens["jti"]).state is TokenState.REVOKED


class TestHmacFingerprints:
    def test_rotation_with_hmac_scheme(self, settings, storage, clock):
        hmac_settings = replace(settings, fingerprint_scheme="hmac")
        service = build_auth_service(hmac_settings, storage, clock=clock)
        tokens = service.login("user-1", {})

        rotated = service.refresh(tokens["refresh_token"])

        assert rotated["family_id"] == tokens["family_id"]
        with pytest.raises(TokenReuseDetected):
            service.refresh(tokens["refresh_token"])


class TestStorageFailures:
    def test_storage_unavailable_propagates(self, service, store, monkeypatch):
        tokens = service.login("user-1", {})

        def _down(jti):
            raise StorageUnavailable("Token store unavailable")

        monkeypatch.setattr(store, "get_by_jti", _down)

        with pytest.raises(StorageUnavailable):
            service.refresh(tokens["refresh_token"])


class TestConcurrency:
    def test_parallel_refresh_has_exactly_one_winner(self, service, store):
        tokens = service.login("user-1", {})
        workers = 8
        barrier = threading.Barrier(workers)
        results, errors = [], []
        lock = threading.Lock()

        def attempt():
            barrier.wait()
            try:
                rotated = service.refresh(tokens["refresh_token"])
            except TokenInvalidated as exc:
                with lock:
                    errors.append(exc)
            else:
                with lock:
                    results.append(rotated)

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert len(results) == 1
        assert len(errors) == workers - 1
        states = _family_states(store, tokens["family_id"])
        assert len(states) == 2
        assert set(states.values()) == {TokenState.REVOKED}

    def test_lost_race_is_reported_as_reuse(self, service, store, monkeypatch):
        """A token consumed between the lookup and the conditional update."""
        tokens = service.login("user-1", {})
        original_get = store.get_by_jti

        def get_then_consume(jti):
            record = original_get(jti)
            store.mark_used(jti)
            return record

        monkeypatch.setattr(store, "get_by_jti", get_then_consume)

        with pytest.raises(TokenReuseDetected):
            service.refresh(tokens["refresh_token"])

        monkeypatch.setattr(store, "get_by_jti", original_get)
        assert store.get_by_jti(tokens["jti"]).revoked
        assert len(store.list_family(tokens["family_id"])) == 1
