"""
FastAPI Application - Futures Trading Relay

Relays trading commands and market data between the UI and Binance USD-M
Futures. Routes validate the request body and hand already-parsed values to
the signed REST client or the subscription manager.

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 3000

Docs:
    - Swagger: http://localhost:3000/docs
    - ReDoc: http://localhost:3000/redoc
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings, validate_configuration
from core.errors import RelayError, ValidationError
from core.logging import logger
from core.schemas import BotStartRequest, OrderRequest
from exchanges.binance.api_client import BinanceTradingClient
from services.subscription_manager import SubscriptionManager
from services.trading_bot import TradingBot


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("=== Application Starting ===")
    validate_configuration()
    app.state.subscriptions = SubscriptionManager()
    app.state.bot = TradingBot(app.state.subscriptions)
    logger.info("=== Started Successfully ===")

    yield

    logger.info("=== Shutting Down ===")
    try:
        await app.state.bot.stop()
        logger.info("=== Shutdown Complete ===")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Futures Trading Relay",
    description=(
        "Signed REST relay and candle streaming for Binance USD-M Futures.\n\n"
        "## Bot\n"
        "- `POST /api/bot/start` - Set leverage and stream candles for symbols\n"
        "- `POST /api/bot/stop` - Stop all streams\n"
        "- `GET /api/bot/status` - Running config and stream states\n\n"
        "## Trading\n"
        "- `GET /api/positions` - Open (non-zero) positions\n"
        "- `GET /api/account` - Account information\n"
        "- `POST /api/order` - Place MARKET / LIMIT / STOP_MARKET order\n"
        "- `GET /api/orders` - Open orders (optional ?symbol=)\n"
        "- `DELETE /api/order` - Cancel order (?symbol=&orderId=)\n"
        "- `GET /api/exchangeInfo` - Exchange metadata\n"
        "- `GET /api/ticker` - Latest price (optional ?symbol=)\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"]
)


# ============================================
# Error Handlers
# ============================================

@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed ({exc.kind}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    error = ValidationError("Missing required parameters", body=errors)
    logger.warning(f"{request.method} {request.url.path} rejected: {errors}")
    return JSONResponse(status_code=error.status_code, content=error.to_response())


# ============================================
# Dependencies
# ============================================

async def get_trading_client() -> AsyncGenerator[BinanceTradingClient, None]:
    async with BinanceTradingClient() as client:
        yield client


def get_bot(request: Request) -> TradingBot:
    return request.app.state.bot


# ============================================
# System Endpoints
# ============================================

@app.get("/health", tags=["System"])
async def health_check(bot: TradingBot = Depends(get_bot)):
    """Liveness plus credential and stream status (no exchange call)."""
    return {
        "status": "ok",
        "credentials_configured": settings.has_credentials,
        "subscriptions": bot.subscriptions.snapshot()
    }


# ============================================
# Bot Endpoints
# ============================================

@app.post("/api/bot/start", tags=["Bot"])
async def start_bot(body: BotStartRequest, bot: TradingBot = Depends(get_bot)):
    """Set leverage for each symbol, then start candle streams."""
    await bot.start(body)
    return {"success": True, "message": "Bot started successfully"}


@app.post("/api/bot/stop", tags=["Bot"])
async def stop_bot(bot: TradingBot = Depends(get_bot)):
    """Stop all candle streams."""
    await bot.stop()
    return {"success": True, "message": "Bot stopped"}


@app.get("/api/bot/status", tags=["Bot"])
async def bot_status(bot: TradingBot = Depends(get_bot)):
    return {"success": True, **bot.status()}


# ============================================
# Trading Endpoints
# ============================================

@app.get("/api/positions", tags=["Trading"])
async def get_positions(client: BinanceTradingClient = Depends(get_trading_client)):
    """Open positions only (positionAmt != 0)."""
    positions = await client.get_positions()
    return {"success": True, "positions": positions}


@app.get("/api/account", tags=["Trading"])
async def get_account(client: BinanceTradingClient = Depends(get_trading_client)):
    account = await client.get_account()
    return {"success": True, "account": account}


@app.post("/api/order", tags=["Trading"])
async def place_order(body: OrderRequest, client: BinanceTradingClient = Depends(get_trading_client)):
    """
    Place an order. Type is inferred: stopPrice -> STOP_MARKET,
    price -> LIMIT (GTC), otherwise MARKET.
    """
    order = await client.place_order(body)
    return {"success": True, "order": order}


@app.get("/api/orders", tags=["Trading"])
async def get_orders(
    symbol: Optional[str] = Query(default=None, description="Filter by symbol (e.g., BTCUSDT)"),
    client: BinanceTradingClient = Depends(get_trading_client)
):
    orders = await client.get_open_orders(symbol)
    return {"success": True, "orders": orders}


@app.delete("/api/order", tags=["Trading"])
async def cancel_order(
    symbol: str = Query(..., min_length=1, description="Trading pair (e.g., BTCUSDT)"),
    order_id: int = Query(..., alias="orderId", description="Binance order id"),
    client: BinanceTradingClient = Depends(get_trading_client)
):
    result = await client.cancel_order(symbol, order_id)
    return {"success": True, "result": result}


@app.get("/api/exchangeInfo", tags=["Market Data"])
async def get_exchange_info(client: BinanceTradingClient = Depends(get_trading_client)):
    info = await client.get_exchange_info()
    return {"success": True, "exchangeInfo": info}


@app.get("/api/ticker", tags=["Market Data"])
async def get_ticker(
    symbol: Optional[str] = Query(default=None, description="Trading pair (e.g., BTCUSDT)"),
    client: BinanceTradingClient = Depends(get_trading_client)
):
    ticker = await client.get_ticker_price(symbol)
    return {"success": True, "ticker": ticker}
