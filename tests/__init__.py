"""
Test Suite

Structure:
- tests/unit/: Tests for signing, the signed REST client, kline streams,
  the subscription manager, the bot orchestration and the HTTP routes

No test talks to Binance: HTTP sessions, WebSockets and streams are mocked.

Uses pytest with pytest-asyncio for testing async functionality.
"""
