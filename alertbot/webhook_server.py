"""FastAPI server for alert submissions and Telegram webhooks."""

import hmac
import logging
import math
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Config
from .services.alert_service import AlertError, AlertService, DeliveryError, MissingFields, RateLimited

logger = logging.getLogger(__name__)

NOT_FOUND_BODY = {
    "error": "Not found",
    "details": "The requested endpoint does not exist",
}


def verify_webhook_secret(received: str, expected: str) -> bool:
    """Compare the secret path segment in constant time."""
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


def create_app(config: Config, alert_service: AlertService, bot: Optional[Any] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration
        alert_service: AlertService instance handling /api/alert
        bot: Bot instance receiving webhook updates (None disables the route)

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Client Alert Bot",
        description="Relays Ethereum client alerts to registered Telegram chats",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(NOT_FOUND_BODY, status_code=404)
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/alert")
    async def submit_alert(request: Request) -> JSONResponse:
        """Accept an alert from client software and forward it to Telegram.

        Body: ``{"ens": ..., "message": ..., "alertType": ...}``
        """
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse({"error": "Invalid JSON payload"}, status_code=400)

        try:
            if not isinstance(payload, dict):
                raise MissingFields()
            await alert_service.submit(payload)
        except RateLimited as e:
            return JSONResponse(
                e.to_dict(),
                status_code=e.status_code,
                headers={"Retry-After": str(math.ceil(e.retry_after))},
            )
        except AlertError as e:
            return JSONResponse(e.to_dict(), status_code=e.status_code)
        except Exception as e:
            logger.error("Error in /api/alert endpoint: %s", e, exc_info=True)
            return JSONResponse(DeliveryError().to_dict(), status_code=500)

        return JSONResponse({"success": True, "message": "Alert sent successfully"})

    @app.post("/webhook/{secret}")
    async def telegram_webhook(secret: str, request: Request) -> JSONResponse:
        """Receive a Telegram update pushed to our webhook URL."""
        if bot is None or not bot.uses_webhook:
            return JSONResponse(NOT_FOUND_BODY, status_code=404)

        if not verify_webhook_secret(secret, config.telegram.webhook_path_secret()):
            logger.warning("Webhook call with wrong secret path")
            return JSONResponse(NOT_FOUND_BODY, status_code=404)

        try:
            data = await request.json()
            await bot.process_webhook_update(data)
        except Exception as e:
            logger.error("Failed to process webhook update: %s", e, exc_info=True)
            return JSONResponse({"error": "Failed to process update"}, status_code=500)

        return JSONResponse({"ok": True})

    return app
