"""
Binance Request Signing

Binance authenticates SIGNED endpoints with an HMAC-SHA256 of the query string:

    symbol=BTCUSDT&side=BUY&type=MARKET&quantity=0.01&timestamp=1704110400000
        -> hmac_sha256(secret, ^^^).hexdigest()
        -> ...&timestamp=1704110400000&signature=<64 lowercase hex chars>

The signature must cover exactly the bytes sent, in the same order, so the
signed string built here is the string transmitted; nothing downstream may
re-encode or reorder it.

API Documentation:
    https://binance-docs.github.io/apidocs/futures/en/#signed-trade-and-user_data-endpoint-security
"""

import hashlib
import hmac
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from core.utils.time import current_utc_timestamp


RESERVED_PARAMS = ("timestamp", "signature")


def _render_value(value: Any) -> str:
    # Binance expects lowercase booleans ("reduceOnly=true")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def canonical_params(params: Optional[Mapping[str, Any]], timestamp: int) -> List[Tuple[str, str]]:
    """
    Build the ordered parameter sequence that gets signed.

    Caller parameters keep their insertion order, None values are dropped,
    and `timestamp` is appended last. A caller-supplied `timestamp` or
    `signature` is discarded so each occurs exactly once.
    """
    pairs = [
        (str(key), _render_value(value))
        for key, value in (params or {}).items()
        if value is not None and key not in RESERVED_PARAMS
    ]
    pairs.append(("timestamp", str(timestamp)))
    return pairs


def canonical_query_string(pairs: List[Tuple[str, str]]) -> str:
    return urlencode(pairs)


def sign(query_string: str, secret_key: str) -> str:
    """HMAC-SHA256 of the query string keyed by the secret, as lowercase hex."""
    return hmac.new(
        secret_key.encode("utf-8"),
        query_string.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


def build_signed_query(
    params: Optional[Mapping[str, Any]],
    secret_key: str,
    timestamp: Optional[int] = None
) -> str:
    """
    Produce the full signed query string, `signature` as the final parameter.

    Args:
        params: Caller parameters in the order they should be sent
        secret_key: Binance secret key
        timestamp: Millisecond epoch; defaults to the current wall clock

    Returns:
        str: "k1=v1&...&timestamp=<ms>&signature=<hex>"
    """
    if timestamp is None:
        timestamp = current_utc_timestamp(milliseconds=True)

    query = canonical_query_string(canonical_params(params, timestamp))
    return f"{query}&signature={sign(query, secret_key)}"


def parse_query(query: str) -> Dict[str, str]:
    """Split a signed query string back into a dict (for logging and tests)."""
    result: Dict[str, str] = {}
    for part in query.split("&"):
        if not part:
            continue
        key, _, value = part.partition("=")
        result[key] = value
    return result
