"""Shared fixtures and in-process fakes."""

from typing import Optional

import pytest
import pytest_asyncio
from telegram.error import TelegramError

from alertbot.conversation import ConversationMachine, ConversationService, ConversationStateStore
from alertbot.services.database import DatabaseService
from alertbot.services.delivery_service import DeliveryService
from alertbot.services.registration_service import RegistrationService

# EIP-55 reference vectors
CHECKSUM_ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
CHECKSUM_ADDRESS_2 = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
VITALIK_ADDRESS = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"


class FakeResolver:
    """Resolve names from a dict; names in ``failing`` raise like a network error."""

    def __init__(self, names: Optional[dict[str, str]] = None, failing: Optional[set[str]] = None):
        self.names = names or {}
        self.failing = failing or set()
        self.calls: list[str] = []

    async def resolve(self, name: str) -> Optional[str]:
        self.calls.append(name)
        if name in self.failing:
            raise ConnectionError("rpc unreachable")
        return self.names.get(name)


class FakeTelegramBot:
    """Records send_message calls the way telegram.Bot would receive them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def send_message(self, chat_id: int, text: str, **kwargs) -> None:
        if self.fail:
            raise TelegramError("Forbidden: bot was blocked by the user")
        self.sent.append({"chat_id": chat_id, "text": text, **kwargs})

    def sent_to(self, chat_id: int) -> list[str]:
        return [m["text"] for m in self.sent if m["chat_id"] == chat_id]


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver({"vitalik.eth": "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"})


@pytest_asyncio.fixture
async def db_service(tmp_path):
    service = DatabaseService(tmp_path / "alerts.db")
    await service.initialize()
    try:
        yield service
    finally:
        await service.close()


@pytest.fixture
def registrations(db_service, resolver) -> RegistrationService:
    return RegistrationService(db_service, resolver)


@pytest.fixture
def telegram_bot() -> FakeTelegramBot:
    return FakeTelegramBot()


@pytest.fixture
def delivery(telegram_bot) -> DeliveryService:
    return DeliveryService(telegram_bot, timeout=1.0)


@pytest.fixture
def states() -> ConversationStateStore:
    return ConversationStateStore()


@pytest.fixture
def conversation(registrations, states) -> ConversationService:
    return ConversationService(ConversationMachine(registrations), states)
