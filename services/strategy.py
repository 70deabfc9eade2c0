"""
Strategy Callbacks

A strategy is any callable that receives a CandleUpdate. It may be a plain
function or a coroutine function; the subscription manager awaits the result
when needed. Decision logic is supplied from outside; the only built-in
strategy logs what it sees.
"""

from typing import Awaitable, Callable, Dict, Optional, Union

from core.logging import get_logger
from core.schemas import CandleUpdate


StrategyCallback = Callable[[CandleUpdate], Union[Awaitable[None], None]]

logger = get_logger(__name__)


def log_candle(candle: CandleUpdate) -> None:
    """Log the candle: closed candles at INFO, in-progress updates at DEBUG."""
    message = (
        f"{candle.symbol} {candle.interval} "
        f"O={candle.open} H={candle.high} L={candle.low} C={candle.close} V={candle.volume}"
    )
    if candle.is_closed:
        logger.info(f"Candle closed: {message}")
    else:
        logger.debug(f"Price update: {message}")


_STRATEGIES: Dict[str, StrategyCallback] = {
    "log": log_candle,
}


def register_strategy(name: str, callback: StrategyCallback) -> None:
    _STRATEGIES[name.lower()] = callback


def get_strategy(name: Optional[str]) -> StrategyCallback:
    """
    Resolve a strategy by name.

    Unknown names fall back to `log_candle` so the UI may send whatever label
    it shows the user.
    """
    if name and name.lower() in _STRATEGIES:
        return _STRATEGIES[name.lower()]
    if name:
        logger.warning(f"Unknown strategy '{name}', using candle logger")
    return log_candle
