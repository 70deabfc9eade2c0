"""
Binance Signed REST Client

This module provides an async HTTP client for Binance's authenticated
(SIGNED) REST endpoints. It handles:
- Canonical query construction with a millisecond `timestamp`
- HMAC-SHA256 signing, `signature` appended as the final parameter
- The `X-MBX-APIKEY` header
- Error normalization (ConfigurationError, TransportError, RemoteApiError)

Requests are never retried; every failure is returned to the caller as-is.

API Documentation:
    https://binance-docs.github.io/apidocs/futures/en/

Usage:
    async with BinanceTradingClient() as client:
        positions = await client.get_positions()
        await client.set_leverage("BTCUSDT", 10)
"""

import asyncio
import json
import time
from typing import Any, Dict, List, Mapping, Optional, Union

import aiohttp
from yarl import URL

from core.config import Settings, settings as default_settings
from core.errors import RemoteApiError, TransportError
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import Credentials, Order, OrderRequest
from exchanges.binance.signing import build_signed_query, parse_query


def filter_open_positions(positions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Keep only positions with a non-zero `positionAmt`.

    /fapi/v2/account lists every symbol, flat ones included, so this filter is
    required rather than cosmetic. Entries without a parseable amount are
    dropped.

    Example:
        >>> filter_open_positions([{"positionAmt": "0"}, {"positionAmt": "0.5"}, {"positionAmt": "-1"}])
        [{'positionAmt': '0.5'}, {'positionAmt': '-1'}]
    """
    open_positions = []
    for position in positions:
        try:
            amount = float(position.get("positionAmt", 0))
        except (TypeError, ValueError):
            continue
        if amount != 0:
            open_positions.append(position)
    return open_positions


class BinanceTradingClient:
    """
    Async client for Binance SIGNED REST endpoints.

    Attributes:
        config: Settings providing base URLs, timeout and (by default) credentials
        credentials: Explicit credentials; when None they are read from config
        session: aiohttp ClientSession for HTTP requests
        logger: Logger instance

    Example:
        >>> async with BinanceTradingClient() as client:
        ...     info = await client.get_account()
        ...     print(info["totalWalletBalance"])

    Notes:
        - Missing credentials fail with ConfigurationError before any request
        - The signed query string is sent verbatim (no client re-encoding)
        - Use as async context manager for session cleanup
    """

    API_KEY_HEADER = "X-MBX-APIKEY"

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        config: Optional[Settings] = None
    ):
        self.config = config or default_settings
        self.credentials = credentials
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = get_logger(__name__)

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self.logger.debug("BinanceTradingClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.logger.debug("BinanceTradingClient session closed")

    # ============================================
    # Signed Request Execution
    # ============================================

    def _resolve_credentials(self) -> Credentials:
        if self.credentials is None:
            # raises ConfigurationError when keys are missing
            self.credentials = self.config.credentials()
        return self.credentials

    def _base_url(self, is_futures: bool) -> str:
        base = self.config.binance_futures_base_url if is_futures else self.config.binance_spot_base_url
        return base.rstrip("/")

    async def execute(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        is_futures: bool = True
    ) -> Any:
        """
        Sign and send one request, returning the decoded JSON body unchanged.

        Args:
            method: HTTP method (GET, POST, DELETE, PUT)
            path: Endpoint path (e.g., "/fapi/v1/order")
            params: Request parameters in the order they should be signed
            is_futures: Use the futures base URL (default) or the spot one

        Returns:
            Decoded JSON response

        Raises:
            ConfigurationError: Credentials missing (no request is made)
            TransportError: Network failure, DNS failure or timeout
            RemoteApiError: Exchange returned a non-2xx response
        """
        credentials = self._resolve_credentials()

        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        method = method.upper()
        query = build_signed_query(params, credentials.secret_key.get_secret_value())
        # encoded=True keeps yarl from re-quoting the signed bytes
        url = URL(f"{self._base_url(is_futures)}{path}?{query}", encoded=True)
        headers = {self.API_KEY_HEADER: credentials.api_key}

        request_kwargs: Dict[str, Any] = {"headers": headers}
        if self.config.request_timeout:
            request_kwargs["timeout"] = aiohttp.ClientTimeout(total=self.config.request_timeout)

        log_api_request("binance", method, path, parse_query(query))
        started = time.monotonic()

        try:
            async with self.session.request(method, url, **request_kwargs) as resp:
                text = await resp.text()
                status = resp.status
        except asyncio.TimeoutError:
            self.logger.error(f"Timeout on {method} {path}")
            raise TransportError(f"Timed out calling Binance {method} {path}")
        except aiohttp.ClientError as e:
            self.logger.error(f"Request failed on {method} {path}: {e}")
            raise TransportError(f"Failed to reach Binance {method} {path}: {e}")

        log_api_response("binance", method, path, status, time.monotonic() - started)
        return self._handle_response(method, path, status, text)

    def _handle_response(self, method: str, path: str, status: int, text: str) -> Any:
        try:
            data = json.loads(text) if text else {}
        except json.JSONDecodeError:
            data = None

        if 200 <= status < 300:
            if data is None:
                raise RemoteApiError(
                    f"Binance returned a non-JSON body for {method} {path}",
                    status_code=status,
                    body=text
                )
            return data

        body = data if data is not None else text
        if isinstance(body, dict) and "msg" in body:
            message = f"Binance rejected {method} {path}: {body['msg']}"
        else:
            message = f"Binance returned HTTP {status} for {method} {path}"

        self.logger.error(f"HTTP {status} on {method} {path}: {body}")
        raise RemoteApiError(message, status_code=status, body=body)

    # ============================================
    # API Methods
    # ============================================

    async def set_leverage(self, symbol: str, leverage: int) -> Dict[str, Any]:
        """
        Set initial leverage for a symbol.

        Binance Endpoint:
            POST /fapi/v1/leverage

        Response Format:
            {"leverage": 21, "maxNotionalValue": "1000000", "symbol": "BTCUSDT"}
        """
        return await self.execute("POST", "/fapi/v1/leverage", {
            "symbol": symbol.upper(),
            "leverage": leverage
        })

    async def get_account(self) -> Dict[str, Any]:
        """
        Fetch futures account information (balances, assets, positions).

        Binance Endpoint:
            GET /fapi/v2/account
        """
        return await self.execute("GET", "/fapi/v2/account")

    async def get_positions(self) -> List[Dict[str, Any]]:
        """
        Fetch open positions only (non-zero positionAmt).

        Binance Endpoint:
            GET /fapi/v2/account -> "positions"
        """
        account = await self.get_account()
        return filter_open_positions(account.get("positions") or [])

    async def place_order(
        self,
        order: Union[OrderRequest, Order]
    ) -> Dict[str, Any]:
        """
        Place a MARKET, LIMIT (GTC) or STOP_MARKET order.

        An OrderRequest is resolved to its variant first; see
        OrderRequest.to_order() for the inference rules.

        Binance Endpoint:
            POST /fapi/v1/order
        """
        if isinstance(order, OrderRequest):
            order = order.to_order()

        self.logger.info(f"Placing {order.type} {order.side} {order.quantity} {order.symbol}")
        return await self.execute("POST", "/fapi/v1/order", order.to_params())

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List open orders, optionally for one symbol.

        Binance Endpoint:
            GET /fapi/v1/openOrders
        """
        return await self.execute("GET", "/fapi/v1/openOrders", {
            "symbol": symbol.upper() if symbol else None
        })

    async def cancel_order(self, symbol: str, order_id: Union[int, str]) -> Dict[str, Any]:
        """
        Cancel an open order.

        Binance Endpoint:
            DELETE /fapi/v1/order
        """
        return await self.execute("DELETE", "/fapi/v1/order", {
            "symbol": symbol.upper(),
            "orderId": order_id
        })

    async def get_exchange_info(self) -> Dict[str, Any]:
        """
        Fetch exchange metadata (symbols, filters, rate limits).

        Binance Endpoint:
            GET /fapi/v1/exchangeInfo
        """
        return await self.execute("GET", "/fapi/v1/exchangeInfo")

    async def get_ticker_price(self, symbol: Optional[str] = None) -> Any:
        """
        Fetch latest price for one symbol (dict) or all symbols (list).

        Binance Endpoint:
            GET /fapi/v1/ticker/price
        """
        return await self.execute("GET", "/fapi/v1/ticker/price", {
            "symbol": symbol.upper() if symbol else None
        })
