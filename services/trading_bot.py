"""
Trading Bot Orchestration

Start: set leverage on every symbol, then stream candles for all of them.
Stop: tear every stream down.

Leverage is set sequentially and the first failure aborts the start before
any stream is opened; the error propagates to the HTTP layer unchanged.
"""

from typing import Any, Callable, Dict, Optional

from core.logging import get_logger
from core.schemas import BotStartRequest
from exchanges.binance.api_client import BinanceTradingClient
from services.strategy import get_strategy
from services.subscription_manager import SubscriptionManager


ClientFactory = Callable[[], BinanceTradingClient]


class TradingBot:
    """Glue between the signed REST client and the subscription manager."""

    def __init__(self, subscriptions: SubscriptionManager, client_factory: ClientFactory = BinanceTradingClient):
        self.subscriptions = subscriptions
        self._client_factory = client_factory
        self._config: Optional[BotStartRequest] = None
        self._logger = get_logger(__name__)

    @property
    def running(self) -> bool:
        return self._config is not None

    async def start(self, request: BotStartRequest) -> None:
        self._logger.info(
            f"Starting bot: strategy={request.strategy} symbols={request.symbols} "
            f"leverage={request.leverage} risk={request.risk_percent}%"
        )

        async with self._client_factory() as client:
            for symbol in request.symbols:
                await client.set_leverage(symbol, request.leverage)
                self._logger.info(f"Leverage set to {request.leverage}x for {symbol}")

        await self.subscriptions.start_all(request.symbols, strategy=get_strategy(request.strategy))
        self._config = request

    async def stop(self) -> None:
        await self.subscriptions.stop_all()
        if self._config is not None:
            self._logger.info("Bot stopped")
        self._config = None

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "config": self._config.model_dump(by_alias=True) if self._config else None,
            "subscriptions": self.subscriptions.snapshot(),
        }
