"""
Unit Tests for Binance Kline Stream Client

These tests verify that BinanceKlineStream:
- Builds symbol-scoped stream URLs
- Parses and yields messages in order
- Ends on close frames and raises TransportError on error frames
- Closes gracefully and idempotently

Run with:
    pytest tests/unit/test_ws_client.py -v
"""

import json

import aiohttp
import pytest
from aiohttp import WSMsgType
from unittest.mock import AsyncMock, patch

from core.errors import TransportError
from exchanges.binance.ws_client import BinanceKlineStream, create_kline_stream


# ============================================
# Mock WebSocket Helpers
# ============================================

class MockWSMessage:
    """Mock aiohttp WebSocket message"""

    def __init__(self, msg_type, data=None):
        self.type = msg_type
        self.data = data


class MockWebSocket:
    """Mock aiohttp ClientWebSocketResponse replaying a fixed list of frames"""

    def __init__(self, messages, error=None):
        self._messages = list(messages)
        self._error = error
        self.closed = False
        self.close_calls = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._messages:
            raise StopAsyncIteration
        return self._messages.pop(0)

    async def close(self):
        self.close_calls += 1
        self.closed = True

    def exception(self):
        return self._error


def text(payload):
    return MockWSMessage(WSMsgType.TEXT, json.dumps(payload))


async def collect(stream):
    return [message async for message in stream.listen()]


# ============================================
# Tests for Connection Management
# ============================================

class TestConnectionManagement:
    """Tests for WebSocket connection lifecycle"""

    def test_url_is_symbol_scoped_and_lowercase(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m", base_url="wss://fstream.binance.com/ws")

        assert stream.symbol == "btcusdt"
        assert stream.url == "wss://fstream.binance.com/ws/btcusdt@kline_1m"

    def test_create_kline_stream(self):
        stream = create_kline_stream("ETHUSDT", "5m")

        assert stream.stream == "kline_5m"
        assert stream.url.endswith("/ethusdt@kline_5m")

    @pytest.mark.asyncio
    async def test_connect_raises_without_session(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")

        with pytest.raises(RuntimeError, match="not initialized"):
            await stream.connect()

    @pytest.mark.asyncio
    async def test_connect_uses_stream_url(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m", base_url="wss://example.test/ws")

        async with stream:
            with patch.object(stream.session, "ws_connect", AsyncMock(return_value=MockWebSocket([]))) as mock_connect:
                await stream.connect()

        assert mock_connect.call_args[0][0] == "wss://example.test/ws/btcusdt@kline_1m"

    @pytest.mark.asyncio
    async def test_connect_failure_raises_transport_error(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")
        failing = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))

        async with stream:
            with patch.object(stream.session, "ws_connect", failing):
                with pytest.raises(TransportError, match="refused"):
                    await stream.connect()

    @pytest.mark.asyncio
    async def test_context_exit_closes_socket_and_session(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")
        ws = MockWebSocket([])

        async with stream:
            with patch.object(stream.session, "ws_connect", AsyncMock(return_value=ws)):
                await stream.connect()

        assert ws.closed is True
        assert stream.session.closed is True
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")
        ws = MockWebSocket([])

        async with stream:
            with patch.object(stream.session, "ws_connect", AsyncMock(return_value=ws)):
                await stream.connect()
            await stream.close()
            await stream.close()

        assert ws.close_calls == 1


# ============================================
# Tests for Message Streaming
# ============================================

class TestMessageStreaming:
    """Tests for listen()"""

    @pytest.mark.asyncio
    async def test_listen_requires_connect(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")

        with pytest.raises(RuntimeError, match="not connected"):
            await collect(stream)

    @pytest.mark.asyncio
    async def test_listen_yields_parsed_json_in_order(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")
        stream.ws = MockWebSocket([
            text({"e": "kline", "k": {"c": "1"}}),
            text({"e": "kline", "k": {"c": "2"}}),
        ])

        messages = await collect(stream)

        assert [m["k"]["c"] for m in messages] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_listen_skips_invalid_json(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")
        stream.ws = MockWebSocket([
            MockWSMessage(WSMsgType.TEXT, "invalid json{{{"),
            text({"e": "kline", "valid": True}),
        ])

        messages = await collect(stream)

        assert messages == [{"e": "kline", "valid": True}]

    @pytest.mark.asyncio
    async def test_listen_stops_on_closed(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")
        stream.ws = MockWebSocket([
            MockWSMessage(WSMsgType.CLOSED, None),
            text({"e": "kline"}),
        ])

        assert await collect(stream) == []

    @pytest.mark.asyncio
    async def test_listen_raises_on_error_frame(self):
        stream = BinanceKlineStream("BTCUSDT", "kline_1m")
        stream.ws = MockWebSocket(
            [text({"e": "kline"}), MockWSMessage(WSMsgType.ERROR, None)],
            error=ConnectionResetError("reset by peer")
        )

        received = []
        with pytest.raises(TransportError, match="reset by peer"):
            async for message in stream.listen():
                received.append(message)

        assert received == [{"e": "kline"}]
