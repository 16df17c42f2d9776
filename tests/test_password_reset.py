"""
Tests for ResetTokenService and the notifiers.
"""

import logging
import threading

import pytest

from sentinel_vault.auth.notifier import LoggingNotifier, OutboxNotifier
from sentinel_vault.auth.password_reset import ResetTokenService, hash_reset_token
from sentinel_vault.core.errors import InvalidOrExpiredToken

HOUR = 60 * 60


@pytest.fixture
def user_id(repos):
    return repos.users.create("dave", "dave@x.com", "verifier", "salt").id


@pytest.fixture
def tokens(repos, clock):
    return ResetTokenService(repos.reset_tokens, ttl_seconds=HOUR, clock=clock.now)


class TestResetTokenService:
    def test_issue_stores_only_hash(self, tokens, repos, user_id):
        token = tokens.issue(user_id)
        assert len(token) == 64
        assert repos.reset_tokens.get_by_hash(token) is None
        assert repos.reset_tokens.get_by_hash(hash_reset_token(token)).user_id == user_id

    def test_verify_does_not_consume(self, tokens, user_id):
        token = tokens.issue(user_id)
        assert tokens.verify(token).user_id == user_id
        assert tokens.verify(token).user_id == user_id

    @pytest.mark.parametrize("token", [None, "", "deadbeef" * 8])
    def test_unknown_token(self, tokens, token):
        with pytest.raises(InvalidOrExpiredToken):
            tokens.verify(token)

    def test_expires_after_ttl(self, tokens, clock, user_id):
        token = tokens.issue(user_id)
        clock.advance(HOUR - 1)
        tokens.verify(token)
        clock.advance(1)
        with pytest.raises(InvalidOrExpiredToken):
            tokens.verify(token)

    def test_single_use(self, tokens, user_id):
        token = tokens.issue(user_id)
        row = tokens.verify(token)
        tokens.consume(row)
        with pytest.raises(InvalidOrExpiredToken):
            tokens.consume(row)
        with pytest.raises(InvalidOrExpiredToken):
            tokens.verify(token)

    def test_new_token_invalidates_previous(self, tokens, user_id):
        first = tokens.issue(user_id)
        second = tokens.issue(user_id)
        with pytest.raises(InvalidOrExpiredToken):
            tokens.verify(first)
        assert tokens.verify(second).user_id == user_id

    def test_concurrent_consume_exactly_one_wins(self, tokens, user_id):
        row = tokens.verify(tokens.issue(user_id))
        outcomes = []
        lock = threading.Lock()

        def worker():
            try:
                tokens.consume(row)
                result = "ok"
            except InvalidOrExpiredToken:
                result = "rejected"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert outcomes.count("ok") == 1

    def test_purge_expired(self, tokens, clock, repos, user_id):
        used = tokens.issue(user_id)
        tokens.consume(tokens.verify(used))
        live = tokens.issue(user_id)
        assert tokens.purge_expired() == 1

        clock.advance(HOUR + 1)
        assert tokens.purge_expired() == 1
        assert repos.reset_tokens.get_by_hash(hash_reset_token(live)) is None


class TestNotifiers:
    def test_outbox_last_for(self):
        outbox = OutboxNotifier()
        outbox.send_reset_link("a@x.com", "t1", "http://h/reset-password/t1")
        outbox.send_reset_link("a@x.com", "t2", "http://h/reset-password/t2")
        outbox.send_reset_link("b@x.com", "t3", "http://h/reset-password/t3")
        assert outbox.last_for("A@x.com").token == "t2"
        assert outbox.last_for("c@x.com") is None

    def test_logging_notifier_never_logs_token(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="sentinel_vault.auth.notifier"):
            LoggingNotifier().send_reset_link(
                "someone@example.org", "secret-token", "http://h/reset-password/secret-token"
            )
        assert "example.org" in caplog.text
        assert "secret-token" not in caplog.text
        assert "someone" not in caplog.text
