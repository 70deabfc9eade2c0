"""
Binance Kline Stream Client

This module provides one async WebSocket connection to a symbol-scoped
Binance Futures market stream. It handles:
- Opening the connection ({symbol}@kline_{interval})
- Parsing text frames as JSON
- Reporting server close (normal end of iteration) and error frames (TransportError)
- Graceful shutdown

There is no reconnect here. When a connection ends the caller decides what
happens next; the subscription manager lets the symbol go quiet until the
next explicit start.

WebSocket Documentation:
    https://binance-docs.github.io/apidocs/futures/en/#kline-candlestick-streams

Usage:
    async with create_kline_stream("BTCUSDT", "1m") as stream:
        await stream.connect()
        async for message in stream.listen():
            print(message["k"]["c"])
"""

import aiohttp
import json
from typing import AsyncGenerator, Dict, Any, Optional

from core.config import settings
from core.errors import TransportError
from core.logging import get_logger


class BinanceKlineStream:
    """
    Async WebSocket client for a single Binance Futures stream.

    Attributes:
        base_url: Binance Futures WebSocket base URL
        symbol: Trading pair (lowercase, e.g., "btcusdt")
        stream: Stream name (e.g., "kline_1m")
        session: aiohttp ClientSession for WebSocket
        ws: Active WebSocket connection
        logger: Logger instance

    Notes:
        - Symbol is automatically lowercased (Binance requirement)
        - close() is safe to call multiple times and from another task
    """

    def __init__(self, symbol: str, stream: str, base_url: Optional[str] = None):
        self.symbol = symbol.lower()
        self.stream = stream
        self.base_url = (base_url or settings.binance_ws_url).rstrip("/")

        self.session: Optional[aiohttp.ClientSession] = None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None

        self.logger = get_logger(__name__)

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.symbol}@{self.stream}"

    @property
    def closed(self) -> bool:
        return self.ws is None or self.ws.closed

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self.logger.debug(f"BinanceKlineStream session created for {self.symbol}@{self.stream}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # WebSocket Connection Management
    # ============================================

    async def connect(self) -> None:
        """
        Establish the WebSocket connection.

        Raises:
            RuntimeError: If session not initialized
            TransportError: If the handshake fails
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        self.logger.info(f"Connecting to {self.url}")

        try:
            self.ws = await self.session.ws_connect(self.url, heartbeat=30)
        except (aiohttp.ClientError, OSError) as e:
            self.logger.error(f"Failed to connect to {self.url}: {e}")
            raise TransportError(f"Failed to connect to {self.url}: {e}")

        self.logger.info(f"Connected to {self.symbol}@{self.stream}")

    async def close(self) -> None:
        """Close WebSocket connection and session without draining pending frames."""
        if self.ws and not self.ws.closed:
            await self.ws.close()
            self.logger.debug(f"WebSocket closed for {self.symbol}@{self.stream}")

        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug(f"Session closed for {self.symbol}@{self.stream}")

    # ============================================
    # Message Streaming
    # ============================================

    async def listen(self) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Yield parsed JSON messages in delivery order until the connection ends.

        Returns normally when the server (or close()) ends the connection.

        Raises:
            RuntimeError: If connect() was not called
            TransportError: On a WebSocket error frame
        """
        if self.ws is None:
            raise RuntimeError("WebSocket not connected. Call connect() first.")

        async for msg in self.ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                except json.JSONDecodeError as e:
                    self.logger.error(f"Failed to parse JSON: {msg.data[:100]}... Error: {e}")
                    continue
                yield data

            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"WebSocket error on {self.symbol}@{self.stream}: {self.ws.exception()}")

            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                break

            else:
                self.logger.debug(f"Received message type: {msg.type}")

        self.logger.info(f"WebSocket listener stopped for {self.symbol}@{self.stream}")


# ============================================
# Convenience Stream Builders
# ============================================

def create_kline_stream(symbol: str, interval: Optional[str] = None) -> BinanceKlineStream:
    """
    Create a client for the kline/candlestick stream of one symbol.

    Example:
        >>> create_kline_stream("BTCUSDT", "1m").url
        'wss://fstream.binance.com/ws/btcusdt@kline_1m'
    """
    return BinanceKlineStream(symbol, f"kline_{interval or settings.kline_interval}")
