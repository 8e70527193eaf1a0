"""Service layer for business logic and database operations."""

from .alert_service import AlertError, AlertService
from .database import DatabaseService, init_db_service
from .delivery_service import DeliveryFailed, DeliveryService
from .rate_limit_service import RateLimitService
from .registration_service import RegistrationService, StoreUnavailable

__all__ = [
    "AlertError",
    "AlertService",
    "DatabaseService",
    "DeliveryFailed",
    "DeliveryService",
    "RateLimitService",
    "RegistrationService",
    "StoreUnavailable",
    "init_db_service",
]
