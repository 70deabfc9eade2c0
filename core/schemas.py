"""
Relay Data Schemas

This module defines the Pydantic models exchanged between the HTTP layer,
the signed request builder and the subscription manager.

Models:
    - Credentials: Frozen API key / secret pair used for signing
    - SubscriptionState: Lifecycle of one symbol's stream
    - CandleUpdate: Parsed kline event handed to the strategy callback
    - MarketOrder / LimitOrder / StopMarketOrder: Tagged order variants
    - OrderRequest: Order body as sent by the UI, resolved to one variant
    - BotStartRequest: Body of POST /api/bot/start

Order Type Inference:
    The UI sends {symbol, side, quantity, price?, stopPrice?}. The variant is
    picked by which optional fields are present:

        stopPrice given   -> STOP_MARKET (price is dropped if also given)
        price given       -> LIMIT, timeInForce=GTC
        neither           -> MARKET
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, SecretStr, field_validator, ConfigDict

from core.utils.time import to_utc_datetime


def to_decimal_string(value: Union[str, int, float, Decimal]) -> str:
    """
    Render a numeric value the way Binance expects it in a query string.

    Floats go through str() first so 0.1 stays "0.1", and the result is never
    in scientific notation ("1e-05" -> "0.00001").

    Raises:
        ValueError: If the value is not a finite positive number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")
    if not number.is_finite() or number <= 0:
        raise ValueError(f"Must be a positive number: {value!r}")
    return format(number.normalize(), "f")


# ============================================
# Credentials
# ============================================

class Credentials(BaseModel):
    """
    Binance API credentials.

    Loaded once from settings and never logged: the api_key is excluded from
    repr and the secret is a SecretStr.
    """

    api_key: str = Field(..., min_length=1, repr=False)
    secret_key: SecretStr

    model_config = ConfigDict(frozen=True)

    @field_validator("secret_key")
    @classmethod
    def validate_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("secret_key must not be empty")
        return v


# ============================================
# Streaming Schemas
# ============================================

class SubscriptionState(str, Enum):
    """Lifecycle of one symbol's stream: connecting -> open -> closed | errored."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (SubscriptionState.CLOSED, SubscriptionState.ERRORED)


class CandleUpdate(BaseModel):
    """
    Live candle update from a Binance kline stream.

    Transient: built per message, passed to the strategy callback, discarded.

    Binance kline event:
        {
          "e": "kline", "E": 1638747660000, "s": "BTCUSDT",
          "k": {"t": ..., "i": "1m", "o": "0.0010", "h": "0.0025",
                "l": "0.0015", "c": "0.0020", "v": "1000", "x": false, ...}
        }
    """

    symbol: str
    interval: str
    event_time: Optional[datetime] = None
    open: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    low: float = Field(..., ge=0)
    close: float = Field(..., ge=0)
    volume: float = Field(..., ge=0)
    is_closed: bool

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def from_kline_event(cls, message: Dict[str, Any], symbol: Optional[str] = None) -> "CandleUpdate":
        """
        Parse a raw kline event.

        Raises:
            ValueError: If the message is not a kline event or is malformed
        """
        kline = message.get("k") if isinstance(message, dict) else None
        if not isinstance(kline, dict):
            raise ValueError("Message is not a kline event")

        try:
            event_time = message.get("E")
            return cls(
                symbol=kline.get("s") or message.get("s") or symbol or "",
                interval=kline.get("i", ""),
                event_time=to_utc_datetime(int(event_time)) if event_time is not None else None,
                open=float(kline["o"]),
                high=float(kline["h"]),
                low=float(kline["l"]),
                close=float(kline["c"]),
                volume=float(kline["v"]),
                is_closed=bool(kline["x"]),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed kline event: {e}")


# ============================================
# Order Schemas
# ============================================

OrderSide = Literal["BUY", "SELL"]


class BaseOrder(BaseModel):
    """Fields shared by every order variant."""

    symbol: str
    side: OrderSide
    quantity: str
    reduce_only: Optional[bool] = None

    def to_params(self) -> Dict[str, str]:
        """
        Render the order as ordered Binance query parameters.

        Subclasses extend the base parameters; insertion order is the order
        the parameters are signed and sent in.
        """
        params = {
            "symbol": self.symbol,
            "side": self.side,
            "type": self.type,
            "quantity": self.quantity,
        }
        params.update(self._extra_params())
        if self.reduce_only is not None:
            params["reduceOnly"] = "true" if self.reduce_only else "false"
        return params

    def _extra_params(self) -> Dict[str, str]:
        return {}


class MarketOrder(BaseOrder):
    type: Literal["MARKET"] = "MARKET"


class LimitOrder(BaseOrder):
    type: Literal["LIMIT"] = "LIMIT"
    price: str
    time_in_force: Literal["GTC"] = "GTC"

    def _extra_params(self) -> Dict[str, str]:
        return {"price": self.price, "timeInForce": self.time_in_force}


class StopMarketOrder(BaseOrder):
    type: Literal["STOP_MARKET"] = "STOP_MARKET"
    stop_price: str

    def _extra_params(self) -> Dict[str, str]:
        return {"stopPrice": self.stop_price}


Order = Annotated[Union[MarketOrder, LimitOrder, StopMarketOrder], Field(discriminator="type")]


class OrderRequest(BaseModel):
    """
    Order body as posted by the UI.

    `type` is accepted for compatibility with the UI but the variant is always
    inferred from price/stopPrice; see `to_order()`.

    Example:
        >>> OrderRequest(symbol="btcusdt", side="buy", quantity=0.01, price=42000).to_order()
        LimitOrder(symbol='BTCUSDT', side='BUY', quantity='0.01', ..., price='42000', time_in_force='GTC')
    """

    symbol: str = Field(..., min_length=1)
    side: OrderSide
    type: Optional[str] = None
    quantity: str
    price: Optional[str] = None
    stop_price: Optional[str] = Field(default=None, alias="stopPrice")
    reduce_only: Optional[bool] = Field(default=None, alias="reduceOnly")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("symbol", "side", mode="before")
    @classmethod
    def uppercase(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v: Any) -> str:
        return to_decimal_string(v)

    @field_validator("price", "stop_price", mode="before")
    @classmethod
    def validate_optional_price(cls, v: Any) -> Optional[str]:
        # An empty price box arrives as None, "", 0 or "0"
        if isinstance(v, str):
            v = v.strip()
        if v is None or v == "" or v == 0:
            return None
        if isinstance(v, str):
            try:
                if Decimal(v) == 0:
                    return None
            except InvalidOperation:
                raise ValueError(f"Not a number: {v!r}")
        return to_decimal_string(v)

    def to_order(self) -> Union[MarketOrder, LimitOrder, StopMarketOrder]:
        common = {
            "symbol": self.symbol,
            "side": self.side,
            "quantity": self.quantity,
            "reduce_only": self.reduce_only,
        }
        if self.stop_price is not None:
            return StopMarketOrder(stop_price=self.stop_price, **common)
        if self.price is not None:
            return LimitOrder(price=self.price, **common)
        return MarketOrder(**common)


# ============================================
# Bot Control Schemas
# ============================================

class BotStartRequest(BaseModel):
    """Body of POST /api/bot/start. Every field is required."""

    strategy: str = Field(..., min_length=1)
    symbols: List[str] = Field(..., min_length=1)
    leverage: int = Field(..., ge=1, le=125)
    risk_percent: float = Field(..., gt=0, le=100, alias="riskPercent")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("symbols")
    @classmethod
    def normalize_symbols(cls, v: List[str]) -> List[str]:
        """Uppercase, strip, and de-duplicate preserving order."""
        seen: List[str] = []
        for symbol in v:
            symbol = symbol.strip().upper()
            if not symbol:
                raise ValueError("symbols must not contain empty entries")
            if symbol not in seen:
                seen.append(symbol)
        return seen
