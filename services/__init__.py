"""
Services Package

Long-lived pieces that sit between the HTTP layer and the exchange clients:
- subscription_manager: one kline stream per symbol, with atomic teardown
- strategy: strategy callback contract and the default candle logger
- trading_bot: bot start/stop (leverage + subscriptions)
"""
