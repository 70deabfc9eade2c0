"""
Unit Tests for Binance Request Signing

These tests verify that:
- Signatures are deterministic HMAC-SHA256 lowercase hex
- The canonical query keeps caller order and appends timestamp once
- signature is always the final parameter
- The signed bytes are exactly the transmitted prefix

Run with:
    pytest tests/unit/test_signing.py -v
"""

import hashlib
import hmac

from exchanges.binance.signing import (
    build_signed_query,
    canonical_params,
    canonical_query_string,
    parse_query,
    sign,
)


SECRET = "NhqPtmdSJYdKjVHjA7PZj4Mge3R5YNiP1e3UZjInClVN65XAbvqqM6A7H5fATj0j"


class TestSign:
    """Tests for sign()"""

    def test_sign_is_deterministic(self):
        """Signing the same string twice yields the same signature"""
        query = "symbol=BTCUSDT&side=BUY&timestamp=1704110400000"
        assert sign(query, SECRET) == sign(query, SECRET)

    def test_sign_matches_hmac_sha256_hex(self):
        """Verify signature is lowercase hex HMAC-SHA256"""
        query = "symbol=BTCUSDT&timestamp=1"
        expected = hmac.new(SECRET.encode(), query.encode(), hashlib.sha256).hexdigest()

        signature = sign(query, SECRET)

        assert signature == expected
        assert len(signature) == 64
        assert signature == signature.lower()

    def test_binance_documented_example(self):
        """Reproduce the signature from the Binance API documentation"""
        query = (
            "symbol=LTCBTC&side=BUY&type=LIMIT&timeInForce=GTC&quantity=1"
            "&price=0.1&recvWindow=5000&timestamp=1499827319559"
        )
        assert sign(query, SECRET) == "c8db56825ae71d6d79447849e617115f4a920fa2acdcab2b053c4b2838bd6b71"

    def test_different_secret_changes_signature(self):
        query = "symbol=BTCUSDT&timestamp=1"
        assert sign(query, SECRET) != sign(query, "other-secret")


class TestCanonicalParams:
    """Tests for canonical parameter ordering"""

    def test_preserves_insertion_order_and_appends_timestamp(self):
        pairs = canonical_params({"symbol": "BTCUSDT", "side": "BUY"}, 1704110400000)

        assert pairs == [("symbol", "BTCUSDT"), ("side", "BUY"), ("timestamp", "1704110400000")]

    def test_drops_none_values(self):
        pairs = canonical_params({"symbol": None}, 5)
        assert pairs == [("timestamp", "5")]

    def test_renders_booleans_lowercase(self):
        pairs = canonical_params({"reduceOnly": True}, 5)
        assert ("reduceOnly", "true") in pairs

    def test_caller_timestamp_and_signature_are_discarded(self):
        pairs = canonical_params({"timestamp": 1, "signature": "forged", "symbol": "ETHUSDT"}, 99)

        keys = [key for key, _ in pairs]
        assert keys == ["symbol", "timestamp"]
        assert dict(pairs)["timestamp"] == "99"

    def test_empty_params(self):
        assert canonical_query_string(canonical_params(None, 7)) == "timestamp=7"


class TestBuildSignedQuery:
    """Tests for build_signed_query()"""

    def test_contains_timestamp_once_and_signature_last(self):
        query = build_signed_query({"symbol": "BTCUSDT", "side": "BUY"}, SECRET, timestamp=1704110400000)

        keys = [part.split("=", 1)[0] for part in query.split("&")]
        assert keys == ["symbol", "side", "timestamp", "signature"]
        assert keys.count("timestamp") == 1
        assert keys[-1] == "signature"

    def test_signature_covers_exactly_the_sent_prefix(self):
        query = build_signed_query({"symbol": "BTCUSDT", "quantity": "0.01"}, SECRET, timestamp=42)

        signed_part, _, signature = query.rpartition("&signature=")
        assert signed_part == "symbol=BTCUSDT&quantity=0.01&timestamp=42"
        assert signature == sign(signed_part, SECRET)

    def test_uses_current_time_when_no_timestamp(self, monkeypatch):
        monkeypatch.setattr(
            "exchanges.binance.signing.current_utc_timestamp",
            lambda milliseconds=False: 1704110400123
        )

        query = build_signed_query({}, SECRET)

        assert parse_query(query)["timestamp"] == "1704110400123"

    def test_same_inputs_same_query(self):
        first = build_signed_query({"symbol": "BTCUSDT"}, SECRET, timestamp=1)
        second = build_signed_query({"symbol": "BTCUSDT"}, SECRET, timestamp=1)
        assert first == second

    def test_values_are_url_encoded_before_signing(self):
        query = build_signed_query({"symbols": '["BTCUSDT","ETHUSDT"]'}, SECRET, timestamp=1)

        signed_part = query.rpartition("&signature=")[0]
        assert signed_part.startswith("symbols=%5B%22BTCUSDT%22%2C%22ETHUSDT%22%5D&")
