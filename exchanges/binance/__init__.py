"""
Binance Connector

- signing: Canonical query string construction and HMAC-SHA256 signatures
- api_client: BinanceTradingClient, the signed REST client (leverage, account,
  positions, orders, exchange info, ticker)
- ws_client: BinanceKlineStream, one kline stream connection per symbol
"""

from exchanges.binance.api_client import BinanceTradingClient, filter_open_positions
from exchanges.binance.ws_client import BinanceKlineStream, create_kline_stream

__all__ = [
    "BinanceTradingClient",
    "BinanceKlineStream",
    "create_kline_stream",
    "filter_open_positions",
]
