"""Validation and dispatch of alerts submitted by client software."""

import logging
from typing import Any, Optional

from ..config import AlertConfig
from ..identifiers import ResolutionFailed, is_valid_identifier
from .delivery_service import DeliveryFailed, DeliveryService
from .rate_limit_service import RateLimitService
from .registration_service import RegistrationService, StoreUnavailable

logger = logging.getLogger(__name__)

IDENTIFIER_FIELD = "ens"
REQUIRED_FIELDS = [IDENTIFIER_FIELD, "message", "alertType"]


class AlertError(Exception):
    """An alert submission that can't be delivered, with its HTTP shape."""

    status_code = 500
    error = "Internal server error"
    details: Optional[str] = None

    def __init__(self, details: Optional[str] = None):
        super().__init__(details or self.error)
        if details is not None:
            self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class MissingFields(AlertError):
    status_code = 400
    error = "Missing required fields"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "required": REQUIRED_FIELDS}


class InvalidIdentifierFormat(AlertError):
    status_code = 400
    error = "Invalid identifier format"
    details = "Identifier must be a valid ENS name or Ethereum address"


class MessageTooLong(AlertError):
    status_code = 400
    error = "Message too long"


class AlertTypeTooLong(AlertError):
    status_code = 400
    error = "Alert type too long"


class RateLimited(AlertError):
    status_code = 429

    def __init__(self, error: str, retry_after: float):
        super().__init__()
        self.error = error
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error}


class IdentifierNotFound(AlertError):
    status_code = 404
    error = "Identifier not found"
    details = "This ENS name or address is not registered. Use /start in Telegram to register."


class DeliveryError(AlertError):
    status_code = 500
    error = "Internal server error"
    details = "Failed to send alert. Please try again later."


def _field(payload: dict[str, Any], name: str) -> Optional[str]:
    value = payload.get(name)
    if isinstance(value, str) and value:
        return value
    return None


class AlertService:
    """Run one alert submission through validation, throttling, lookup and delivery."""

    def __init__(
        self,
        config: AlertConfig,
        registrations: RegistrationService,
        rate_limiter: RateLimitService,
        delivery: DeliveryService,
    ):
        self.config = config
        self.registrations = registrations
        self.rate_limiter = rate_limiter
        self.delivery = delivery

    async def submit(self, payload: dict[str, Any]) -> int:
        """Validate and deliver an alert.

        Checks run in a fixed order and the first failure wins.

        Args:
            payload: Decoded request body with ``ens`` (or ``identifier``),
                ``message`` and ``alertType``.

        Returns:
            The chat ID the alert was delivered to.

        Raises:
            AlertError: One subclass per failure kind.
        """
        identifier = _field(payload, IDENTIFIER_FIELD) or _field(payload, "identifier")
        message = _field(payload, "message")
        alert_type = _field(payload, "alertType")

        if not identifier or not message or not alert_type:
            raise MissingFields()

        if not is_valid_identifier(identifier):
            raise InvalidIdentifierFormat()

        if len(message) > self.config.max_message_length:
            raise MessageTooLong(
                f"Message must be {self.config.max_message_length} characters or less"
            )

        if len(alert_type) > self.config.max_alert_type_length:
            raise AlertTypeTooLong(
                f"Alert type must be {self.config.max_alert_type_length} characters or less"
            )

        decision = await self.rate_limiter.hit(identifier)
        if not decision.allowed:
            raise RateLimited(
                f"Too many alerts from this identifier. Maximum {self.rate_limiter.describe()}.",
                retry_after=decision.reset_after,
            )

        try:
            chat_id = await self.registrations.find_by_identifier(identifier)
        except ResolutionFailed as e:
            if e.unreachable:
                logger.error("ENS resolver unavailable for %s: %s", identifier, e.reason)
                raise DeliveryError() from e
            logger.info("Alert for unresolvable identifier %s: %s", identifier, e.reason)
            raise IdentifierNotFound() from e
        except StoreUnavailable as e:
            logger.error("Registration lookup failed for %s: %s", identifier, e, exc_info=True)
            raise DeliveryError() from e

        if chat_id is None:
            logger.warning("Alert attempt with unregistered identifier: %s", identifier)
            raise IdentifierNotFound()

        try:
            await self.delivery.send_alert(chat_id, alert_type, message)
        except DeliveryFailed as e:
            logger.error("Failed to deliver alert for %s: %s", identifier, e)
            raise DeliveryError() from e

        logger.info("Alert sent successfully for %s", identifier)
        return chat_id
