"""
Tests for SessionStore and KeyRing.
"""

import pytest

from sentinel_vault.auth.sessions import KeyRing, SessionStore, hash_session_token
from sentinel_vault.core.errors import Unauthorized

DAY = 24 * 60 * 60
KEY = b"k" * 32


@pytest.fixture
def user_id(repos):
    return repos.users.create("carol", "carol@x.com", "verifier", "salt").id


@pytest.fixture
def store(repos, clock):
    return SessionStore(
        repos.sessions,
        idle_seconds=DAY,
        absolute_seconds=7 * DAY,
        clock=clock.now,
    )


class TestSessionStore:
    def test_create_persists_only_hash(self, store, repos, user_id):
        session = store.create(user_id, KEY)
        assert session.token
        assert session.id_hash == hash_session_token(session.token)

        record = repos.sessions.get(session.id_hash)
        assert record.user_id == user_id
        assert repos.sessions.get(session.token) is None

    def test_validate(self, store, user_id):
        session = store.create(user_id, KEY)
        loaded = store.validate(session.token)
        assert loaded.user_id == user_id
        assert loaded.token is None

    def test_tokens_unique(self, store, user_id):
        tokens = {store.create(user_id).token for _ in range(10)}
        assert len(tokens) == 10

    @pytest.mark.parametrize("token", [None, "", "not-a-real-token"])
    def test_invalid_token(self, store, token):
        with pytest.raises(Unauthorized):
            store.validate(token)

    def test_idle_expiry(self, store, clock, user_id):
        session = store.create(user_id, KEY)
        clock.advance(DAY + 1)
        with pytest.raises(Unauthorized):
            store.validate(session.token)
        assert len(store.keyring) == 0

    def test_use_slides_expiry(self, store, clock, user_id):
        session = store.create(user_id, KEY)
        for _ in range(3):
            clock.advance(DAY - 60)
            store.validate(session.token)
        assert store.vault_key(session) == KEY

    def test_absolute_lifetime_caps_sliding(self, store, clock, user_id):
        session = store.create(user_id, KEY)
        for _ in range(7):
            clock.advance(DAY - 60)
            store.validate(session.token)
        clock.advance(DAY)
        with pytest.raises(Unauthorized):
            store.validate(session.token)

    def test_revoke(self, store, user_id):
        session = store.create(user_id, KEY)
        assert store.revoke(session) is True
        assert store.revoke(session) is False
        with pytest.raises(Unauthorized):
            store.validate(session.token)
        with pytest.raises(Unauthorized):
            store.vault_key(session)

    def test_revoke_all(self, store, user_id):
        first = store.create(user_id, KEY)
        second = store.create(user_id, KEY)
        revoked = store.revoke_all(user_id)
        assert set(revoked) == {first.id_hash, second.id_hash}
        assert len(store.keyring) == 0

    def test_purge_expired(self, store, clock, user_id):
        old = store.create(user_id, KEY)
        clock.advance(DAY + 1)
        fresh = store.create(user_id, KEY)
        assert store.purge_expired() == [old.id_hash]
        assert store.validate(fresh.token).id_hash == fresh.id_hash

    def test_key_lost_after_restart(self, repos, clock, user_id):
        session = SessionStore(repos.sessions, clock=clock.now).create(user_id, KEY)
        restarted = SessionStore(repos.sessions, clock=clock.now)

        assert restarted.validate(session.token).user_id == user_id
        with pytest.raises(Unauthorized) as exc_info:
            restarted.vault_key(session)
        assert "log in again" in exc_info.value.public_message


class TestKeyRing:
    def test_put_get_discard(self, store, user_id):
        ring = KeyRing()
        session = store.create(user_id)
        ring.put(session, KEY)
        assert ring.get(session) == KEY
        ring.discard(session.id_hash, "unknown")
        with pytest.raises(Unauthorized):
            ring.get(session)

    def test_clear(self, store, user_id):
        ring = KeyRing()
        ring.put(store.create(user_id), KEY)
        ring.put(store.create(user_id), KEY)
        assert len(ring) == 2
        ring.clear()
        assert len(ring) == 0
