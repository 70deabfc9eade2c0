"""
Subscription Manager

Keeps at most one live kline stream per symbol and relays each candle update
to the strategy callback.

Each subscription is driven by its own asyncio task (one actor per symbol)
that walks the state machine:

    connecting -> open -> closed
                       -> errored
    connecting --------> errored

Closed and errored subscriptions are removed from the mapping and never
reconnected; the symbol stays quiet until the next start_all().

Locking:
    - _control_lock serializes start_all()/stop_all() against each other
    - _lock guards every mutation of the symbol -> Subscription mapping

stop_all() never holds _lock while awaiting the actors, since each actor
takes _lock once more on the way out.
"""

import asyncio
import inspect
from typing import Callable, Dict, Iterable, List, Optional

from core.logging import get_logger, log_websocket_event
from core.schemas import CandleUpdate, SubscriptionState
from exchanges.binance.ws_client import BinanceKlineStream, create_kline_stream
from services.strategy import StrategyCallback, log_candle


StreamFactory = Callable[[str], BinanceKlineStream]


class Subscription:
    """
    One symbol's stream: its state, connection handle and driving task.

    Owned by SubscriptionManager; callers only read it.
    """

    def __init__(self, symbol: str):
        self.symbol = symbol
        self.state = SubscriptionState.CONNECTING
        self.stream: Optional[BinanceKlineStream] = None
        self.task: Optional[asyncio.Task] = None
        self.messages = 0

    def __repr__(self) -> str:
        return f"Subscription(symbol={self.symbol!r}, state={self.state.value}, messages={self.messages})"


class SubscriptionManager:
    """
    Owner of all live market-data subscriptions.

    Example:
        >>> manager = SubscriptionManager(strategy=my_callback)
        >>> await manager.start_all(["BTCUSDT", "ETHUSDT"])
        >>> manager.snapshot()
        {'BTCUSDT': 'open', 'ETHUSDT': 'open'}
        >>> await manager.stop_all()
    """

    def __init__(
        self,
        strategy: Optional[StrategyCallback] = None,
        stream_factory: Optional[StreamFactory] = None
    ) -> None:
        self.strategy: StrategyCallback = strategy or log_candle
        self._stream_factory: StreamFactory = stream_factory or create_kline_stream
        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = asyncio.Lock()
        self._control_lock = asyncio.Lock()
        self._logger = get_logger(__name__)

    # ============================================
    # Introspection
    # ============================================

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, symbol: str) -> bool:
        return symbol.upper() in self._subscriptions

    def symbols(self) -> List[str]:
        return list(self._subscriptions)

    def get(self, symbol: str) -> Optional[Subscription]:
        return self._subscriptions.get(symbol.upper())

    def snapshot(self) -> Dict[str, str]:
        """Symbol -> state value, for status endpoints."""
        return {symbol: sub.state.value for symbol, sub in self._subscriptions.items()}

    # ============================================
    # Start / Stop
    # ============================================

    async def start_all(self, symbols: Iterable[str], strategy: Optional[StrategyCallback] = None) -> None:
        """
        Replace every current subscription with one per symbol.

        All existing streams are stopped first, so a symbol's old entry is
        always gone before its new entry is added.
        """
        async with self._control_lock:
            await self._stop_all()

            if strategy is not None:
                self.strategy = strategy

            ordered: List[str] = []
            for symbol in symbols:
                symbol = symbol.strip().upper()
                if symbol and symbol not in ordered:
                    ordered.append(symbol)

            async with self._lock:
                for symbol in ordered:
                    sub = Subscription(symbol)
                    self._subscriptions[symbol] = sub
                    sub.task = asyncio.create_task(self._run(sub), name=f"kline_{symbol}")

            self._logger.info(f"Started {len(ordered)} subscription(s): {', '.join(ordered)}")

    async def stop_all(self) -> None:
        """Close every tracked stream regardless of state and clear the mapping. No-op when empty."""
        async with self._control_lock:
            await self._stop_all()

    async def _stop_all(self) -> None:
        async with self._lock:
            subs = list(self._subscriptions.values())
            self._subscriptions.clear()

        if not subs:
            return

        self._logger.info(f"Stopping {len(subs)} subscription(s)")
        for sub in subs:
            if sub.stream is not None:
                try:
                    await sub.stream.close()
                except Exception as e:
                    self._logger.warning(f"Error closing stream for {sub.symbol}: {e}")
            if sub.task is not None:
                sub.task.cancel()

        await asyncio.gather(*(sub.task for sub in subs if sub.task is not None), return_exceptions=True)

        for sub in subs:
            if not sub.state.is_terminal:
                sub.state = SubscriptionState.CLOSED

    # ============================================
    # Per-Symbol Actor
    # ============================================

    async def _run(self, sub: Subscription) -> None:
        final_state = SubscriptionState.CLOSED
        try:
            stream = self._stream_factory(sub.symbol)
            async with stream:
                sub.stream = stream
                await stream.connect()
                await self._mark_open(sub)

                async for message in stream.listen():
                    await self._dispatch(sub, message)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            final_state = SubscriptionState.ERRORED
            log_websocket_event("binance", "error", sub.symbol, details=str(e))
        finally:
            await self._finish(sub, final_state)

    async def _mark_open(self, sub: Subscription) -> None:
        async with self._lock:
            if self._subscriptions.get(sub.symbol) is sub:
                sub.state = SubscriptionState.OPEN
        log_websocket_event("binance", "connected", sub.symbol)

    async def _finish(self, sub: Subscription, state: SubscriptionState) -> None:
        async with self._lock:
            sub.state = state
            # a newer subscription for the same symbol must survive
            if self._subscriptions.get(sub.symbol) is sub:
                del self._subscriptions[sub.symbol]
        if state == SubscriptionState.CLOSED:
            log_websocket_event("binance", "closed", sub.symbol)

    async def _dispatch(self, sub: Subscription, message: Dict) -> None:
        if not isinstance(message, dict) or message.get("e") != "kline":
            self._logger.debug(f"Ignoring non-kline message on {sub.symbol}")
            return

        try:
            candle = CandleUpdate.from_kline_event(message, symbol=sub.symbol)
        except ValueError as e:
            self._logger.warning(f"Skipping malformed kline on {sub.symbol}: {e}")
            return

        sub.messages += 1
        try:
            result = self.strategy(candle)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._logger.error(f"Strategy failed on {sub.symbol} candle: {e}")
