"""
Tests for the breach oracle clients and ReuseAndBreachDetector.

httpx is mocked; no network access.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from sentinel_vault.core.errors import BreachCheckUnavailable
from sentinel_vault.vault.breach import (
    DisabledBreachOracle,
    INITIAL_BACKOFF_SEC,
    MAX_RETRY_WAIT_SEC,
    PwnedPasswordsClient,
    RangeCache,
    StaticBreachOracle,
    retry_after_seconds,
    sha1_hex,
)
from sentinel_vault.vault.health import ReuseAndBreachDetector

# SHA-1("password") = 5BAA61E4C9B93F3F0682250B6CF8331B7EE68FD8
PASSWORD_PREFIX = "5BAA6"
PASSWORD_SUFFIX = "1E4C9B93F3F0682250B6CF8331B7EE68FD8"


def _mock_response(status_code=200, text="", headers=None):
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status_code
    resp.text = text
    resp.headers = headers or {}
    return resp


def _range_body(*lines):
    return "\r\n".join(lines)


class TestSha1:
    def test_known_digest(self):
        assert sha1_hex("password") == PASSWORD_PREFIX + PASSWORD_SUFFIX


class TestPwnedPasswordsClient:
    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_breached(self, mock_request):
        mock_request.return_value = _mock_response(
            text=_range_body("0018A45C4D1DEF81644B54AB7F969B88D65:1", f"{PASSWORD_SUFFIX}:3861493")
        )
        assert PwnedPasswordsClient().check_breach("password") is True

    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_only_prefix_sent(self, mock_request):
        mock_request.return_value = _mock_response(text="")
        PwnedPasswordsClient(base_url="https://example.test/range/").check_breach("password")

        method, url = mock_request.call_args[0]
        assert method == "GET"
        assert url == f"https://example.test/range/{PASSWORD_PREFIX}"
        assert "password" not in url
        assert PASSWORD_SUFFIX not in url
        assert mock_request.call_args[1]["headers"]["Add-Padding"] == "true"

    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_not_breached(self, mock_request):
        mock_request.return_value = _mock_response(
            text=_range_body("0018A45C4D1DEF81644B54AB7F969B88D65:1")
        )
        assert PwnedPasswordsClient().check_breach("password") is False

    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_padding_entries_ignored(self, mock_request):
        mock_request.return_value = _mock_response(text=f"{PASSWORD_SUFFIX}:0")
        assert PwnedPasswordsClient().check_breach("password") is False

    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_malformed_lines_skipped(self, mock_request):
        mock_request.return_value = _mock_response(
            text=_range_body("garbage", "ABC:notanumber", "", f"{PASSWORD_SUFFIX}:2")
        )
        assert PwnedPasswordsClient().check_breach("password") is True

    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_prefix_cached(self, mock_request):
        mock_request.return_value = _mock_response(text=f"{PASSWORD_SUFFIX}:2")
        client = PwnedPasswordsClient()
        client.check_breach("password")
        client.check_breach("password")
        assert mock_request.call_count == 1

    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_empty_password_not_sent(self, mock_request):
        assert PwnedPasswordsClient().check_breach("") is False
        mock_request.assert_not_called()

    @patch("sentinel_vault.vault.breach.time.sleep")
    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_retries_then_succeeds(self, mock_request, mock_sleep):
        mock_request.side_effect = [
            httpx.ConnectError("boom"),
            _mock_response(status_code=503),
            _mock_response(text=f"{PASSWORD_SUFFIX}:5"),
        ]
        assert PwnedPasswordsClient(max_retries=3).check_breach("password") is True
        assert mock_request.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("sentinel_vault.vault.breach.time.sleep")
    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_network_failure_unavailable(self, mock_request, mock_sleep):
        mock_request.side_effect = httpx.ConnectError("down")
        with pytest.raises(BreachCheckUnavailable):
            PwnedPasswordsClient(max_retries=2).check_breach("password")
        assert mock_request.call_count == 2

    @patch("sentinel_vault.vault.breach.time.sleep")
    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_rate_limited_honours_retry_after(self, mock_request, mock_sleep):
        mock_request.side_effect = [
            _mock_response(status_code=429, headers={"Retry-After": "2"}),
            _mock_response(text=""),
        ]
        assert PwnedPasswordsClient().check_breach("password") is False
        mock_sleep.assert_called_once_with(2.0)

    @pytest.mark.parametrize(
        "retry_after, expected_sleep",
        [
            ("Wed, 21 Oct 2015 07:28:00 GMT", 0.0),
            ("Wed, 21 Oct 2099 07:28:00 GMT", MAX_RETRY_WAIT_SEC),
            ("soon", INITIAL_BACKOFF_SEC),
        ],
    )
    @patch("sentinel_vault.vault.breach.time.sleep")
    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_retry_after_http_date(self, mock_request, mock_sleep, retry_after, expected_sleep):
        mock_request.side_effect = [
            _mock_response(status_code=503, headers={"Retry-After": retry_after}),
            _mock_response(text=f"{PASSWORD_SUFFIX}:1"),
        ]
        assert PwnedPasswordsClient().check_breach("password") is True
        mock_sleep.assert_called_once_with(expected_sleep)

    @patch("sentinel_vault.vault.breach.time.sleep")
    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_retry_after_date_then_exhausted(self, mock_request, mock_sleep):
        mock_request.return_value = _mock_response(
            status_code=503, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}
        )
        with pytest.raises(BreachCheckUnavailable):
            PwnedPasswordsClient(max_retries=2).check_breach("password")
        assert mock_request.call_count == 2

    @patch("sentinel_vault.vault.breach.time.sleep")
    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_range_refetched_after_ttl(self, mock_request, mock_sleep):
        now = [1000.0]
        cache = RangeCache(ttl=60, clock=lambda: now[0])
        mock_request.side_effect = [
            _mock_response(text=""),
            _mock_response(text=f"{PASSWORD_SUFFIX}:7"),
        ]
        client = PwnedPasswordsClient(cache=cache)
        assert client.check_breach("password") is False

        now[0] += 59
        assert client.check_breach("password") is False
        assert mock_request.call_count == 1

        now[0] += 1
        assert client.check_breach("password") is True
        assert mock_request.call_count == 2

    @patch("sentinel_vault.vault.breach.time.sleep")
    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_client_error_not_retried(self, mock_request, mock_sleep):
        mock_request.return_value = _mock_response(status_code=400)
        with pytest.raises(BreachCheckUnavailable):
            PwnedPasswordsClient().check_breach("password")
        assert mock_request.call_count == 1
        mock_sleep.assert_not_called()

    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_min_occurrences(self, mock_request):
        mock_request.return_value = _mock_response(text=f"{PASSWORD_SUFFIX}:3")
        assert PwnedPasswordsClient(min_occurrences=10).check_breach("password") is False


class TestOfflineOracles:
    def test_static(self):
        oracle = StaticBreachOracle(["password123"])
        assert oracle.check_breach("password123") is True
        assert oracle.check_breach("Tr0ub4dor&3") is False

    def test_disabled_is_unknown(self):
        with pytest.raises(BreachCheckUnavailable):
            DisabledBreachOracle().check_breach("anything")


class _Rec:
    def __init__(self, id, secret):
        self.id = id
        self.secret = secret


class TestReuseAndBreachDetector:
    def test_find_reused_counts_records(self):
        records = [_Rec("a", "same"), _Rec("b", "same"), _Rec("c", "unique")]
        assert ReuseAndBreachDetector.find_reused(records) == {"a", "b"}

    def test_groups(self):
        records = [
            _Rec("a", "x"),
            _Rec("b", "x"),
            _Rec("c", "y"),
            _Rec("d", "y"),
            _Rec("e", "y"),
            _Rec("f", "z"),
        ]
        groups = ReuseAndBreachDetector.reuse_groups(records)
        assert sorted(sorted(g) for g in groups) == [["a", "b"], ["c", "d", "e"]]
        assert len(ReuseAndBreachDetector.find_reused(records)) == 5

    def test_undecryptable_records_skipped(self):
        records = [_Rec("a", None), _Rec("b", None), _Rec("c", "x")]
        assert ReuseAndBreachDetector.find_reused(records) == set()

    def test_no_records(self):
        assert ReuseAndBreachDetector.find_reused([]) == set()

    def test_check_breach_delegates(self):
        detector = ReuseAndBreachDetector(StaticBreachOracle(["letmein"]))
        assert detector.check_breach("letmein") is True
        assert detector.check_breach("Tr0ub4dor&3") is False

    def test_unexpected_oracle_error_wrapped(self):
        oracle = MagicMock()
        oracle.check_breach.side_effect = RuntimeError("bug")
        with pytest.raises(BreachCheckUnavailable):
            ReuseAndBreachDetector(oracle).check_breach("x")

    def test_check_records_unknown_on_unavailable(self):
        detector = ReuseAndBreachDetector(DisabledBreachOracle())
        status = detector.check_records([_Rec("a", "x"), _Rec("b", None)])
        assert status == {"a": None}

    def test_check_records_one_lookup_per_secret(self):
        oracle = MagicMock()
        oracle.check_breach.return_value = True
        detector = ReuseAndBreachDetector(oracle)
        status = detector.check_records([_Rec("a", "x"), _Rec("b", "x"), _Rec("c", "y")])
        assert status == {"a": True, "b": True, "c": True}
        assert oracle.check_breach.call_count == 2


class TestRetryAfterSeconds:
    def test_delta_seconds(self):
        assert retry_after_seconds("3", 0.5) == 3.0
        assert retry_after_seconds(" 1.5 ", 0.5) == 1.5

    def test_missing_or_invalid(self):
        assert retry_after_seconds(None, 0.5) == 0.5
        assert retry_after_seconds("", 0.5) == 0.5
        assert retry_after_seconds("later", 0.5) == 0.5

    def test_negative_clamped(self):
        assert retry_after_seconds("-4", 0.5) == 0.0

    def test_past_date_is_zero(self):
        assert retry_after_seconds("Wed, 21 Oct 2015 07:28:00 GMT", 0.5) == 0.0

    def test_future_date(self):
        assert retry_after_seconds("Wed, 21 Oct 2099 07:28:00 GMT", 0.5) > 3600


class TestRangeCache:
    def test_expires(self):
        now = [0.0]
        cache = RangeCache(ttl=10, clock=lambda: now[0])
        cache.set("AAAAA", {"X": 1})
        assert cache.get("AAAAA") == {"X": 1}
        now[0] = 10.0
        assert cache.get("AAAAA") is None
        assert len(cache) == 0

    def test_evicts_least_recently_used(self):
        cache = RangeCache(max_entries=2)
        cache.set("AAAAA", {})
        cache.set("BBBBB", {})
        cache.get("AAAAA")
        cache.set("CCCCC", {})

        assert len(cache) == 2
        assert "AAAAA" in cache
        assert "BBBBB" not in cache
        assert "CCCCC" in cache

    @patch("sentinel_vault.vault.breach.httpx.request")
    def test_client_cache_bounded(self, mock_request):
        mock_request.return_value = _mock_response(text="")
        client = PwnedPasswordsClient(cache=RangeCache(max_entries=3))
        for i in range(10):
            client.check_breach(f"password-{i}")
        assert len(client.cache) <= 3
