"""
HTTP ingress for TradingView-style webhooks.

Endpoints:
- POST /webhook    validate payload -> Signal -> TradingService.execute
- GET  /health     liveness
- GET  /positions  current non-zero positions (debugging)

The TradingService (and its single exchange client) is created and started in
the app lifespan, so every request reuses the same initialized client.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Literal, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from src.config.config import Config
from src.constants import EXPECTED_EXCHANGE
from src.domain.models import DesiredPosition, OrderDirection, Signal
from src.exceptions import ValidationError
from src.monitoring.logger import get_logger
from src.services.trading_service import TradingService

logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class WebhookPayload(BaseModel):
    """Inbound alert body. Field names follow the alert template."""
    model_config = ConfigDict(extra="ignore")

    exchange: str = ""
    strategy: str = ""
    market: str = Field(min_length=1)
    sizeByLeverage: Decimal = Field(gt=0)
    reverse: bool = False
    order: str = Field(min_length=1)
    position: Literal["flat", "long", "short"]
    prevPosition: Optional[str] = None
    price: Optional[str] = None

    def to_signal(self) -> Signal:
        try:
            reference_price = Decimal(self.price) if self.price else None
        except InvalidOperation:
            reference_price = None  # template placeholder or junk; display only
        order = self.order.strip().lower()
        return Signal(
            market=self.market,
            desired_position=DesiredPosition(self.position),
            leverage=self.sizeByLeverage,
            reference_price=reference_price,
            strategy=self.strategy,
            exchange=self.exchange,
            order_hint=OrderDirection(order) if order in ("buy", "sell") else None,
        )


def parse_webhook(body: dict, expected_exchange: str = EXPECTED_EXCHANGE) -> Signal:
    """
    Validate a webhook body.

    Raises:
        ValidationError: missing fields, bad values or wrong exchange
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    if not body.get("market") or not body.get("order") or not body.get("position"):
        raise ValidationError("Missing required fields: market, order, or position")
    if body.get("exchange") != expected_exchange:
        raise ValidationError(f"Invalid exchange: {body.get('exchange')}. Expected: {expected_exchange}")
    try:
        payload = WebhookPayload.model_validate(body)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(f"Invalid fields: {fields}") from e
    return payload.to_signal()


def create_app(config: Optional[Config] = None, service: Optional[TradingService] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        config: Loaded configuration (required unless `service` is given)
        service: Pre-built service, mainly for tests
    """
    if service is None and config is None:
        raise ValueError("create_app needs a config or a service")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = service or TradingService.from_config(config)
        await svc.start()
        await svc.log_account_status()
        app.state.service = svc
        try:
            yield
        finally:
            await svc.stop()

    app = FastAPI(title="Hyperliquid Signal Executor", lifespan=lifespan)
    expected_exchange = config.exchange.name if config is not None else EXPECTED_EXCHANGE

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": _now()}

    @app.post("/webhook")
    async def webhook(request: Request):
        try:
            body = await request.json()
        except ValueError:
            body = None
        logger.info("Received webhook", body=body)

        try:
            signal = parse_webhook(body, expected_exchange)
        except ValidationError as e:
            logger.warning("Webhook rejected", error=str(e))
            return JSONResponse(status_code=400, content={"success": False, "error": str(e)})

        svc: TradingService = request.app.state.service
        try:
            result = await svc.execute(signal)
        except Exception as e:
            logger.error("Webhook error", error=str(e), error_type=type(e).__name__)
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": str(e), "timestamp": _now()},
            )

        return {
            "success": True,
            "message": "Trade executed successfully" if result.executed else "No action needed",
            "action": result.action.value,
            "size": str(result.size),
            "timestamp": _now(),
        }

    @app.get("/positions")
    async def positions(request: Request):
        svc: TradingService = request.app.state.service
        try:
            current = await svc.positions()
        except Exception as e:
            return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
        return {
            "success": True,
            "positions": [
                {
                    "coin": p.instrument,
                    "side": p.side.value.upper(),
                    "size": float(p.size),
                    "entryPrice": float(p.entry_price),
                    "unrealizedPnl": float(p.unrealized_pnl),
                    "leverage": float(p.leverage),
                }
                for p in current
            ],
            "count": len(current),
        }

    return app
