"""Per-chat conversation state machine for registration, change and opt-out.

Every inbound chat message goes through :meth:`ConversationMachine.dispatch`,
which looks at the chat's current state and the message and returns the
replies to send plus the chat's next state. Recognised slash commands always
start over from ``Idle``: whatever flow was pending is dropped ("last command
wins"). Unknown slash commands leave the pending flow untouched.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Union

from . import messages
from .command_router import CommandRouter, CommandType, ParsedCommand
from .identifiers import (
    IdentifierKind,
    InvalidAddress,
    ResolutionFailed,
    classify,
    normalize_address,
    resolve_name,
)
from .services.registration_service import RegistrationService, StoreUnavailable

logger = logging.getLogger(__name__)

CONFIRMATIONS = frozenset({"y", "yes"})


@dataclass(frozen=True)
class Idle:
    """No flow in progress."""


@dataclass(frozen=True)
class AwaitingRegistration:
    """/start was sent by an unregistered chat; waiting for an identifier."""


@dataclass(frozen=True)
class AwaitingChange:
    """/change was sent; waiting for the replacement identifier."""

    old_address: str
    old_ens: Optional[str] = None

    @property
    def old_identifier(self) -> str:
        return self.old_ens or self.old_address


@dataclass(frozen=True)
class AwaitingDeleteConfirmation:
    """/stop was sent; waiting for y/yes."""

    address: str
    ens: Optional[str] = None

    @property
    def identifier(self) -> str:
        return self.ens or self.address


ConversationState = Union[Idle, AwaitingRegistration, AwaitingChange, AwaitingDeleteConfirmation]

IDLE = Idle()


@dataclass
class Transition:
    """Replies to send and the state the chat ends up in."""

    next_state: ConversationState
    replies: list[str] = field(default_factory=list)


class ConversationStateStore:
    """Pending conversation state for every chat, with one lock per chat.

    Chats without an entry are ``Idle``. Locks are created on demand and
    dropped once nobody holds or waits for them.
    """

    def __init__(self) -> None:
        self._states: dict[int, ConversationState] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}

    def get(self, chat_id: int) -> ConversationState:
        return self._states.get(chat_id, IDLE)

    def set(self, chat_id: int, state: ConversationState) -> None:
        if isinstance(state, Idle):
            self._states.pop(chat_id, None)
        else:
            self._states[chat_id] = state

    @asynccontextmanager
    async def locked(self, chat_id: int) -> AsyncIterator[None]:
        """Serialize handling of messages from one chat."""
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = self._locks[chat_id] = asyncio.Lock()
        self._lock_users[chat_id] = self._lock_users.get(chat_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[chat_id] -= 1
            if self._lock_users[chat_id] == 0:
                del self._lock_users[chat_id]
                del self._locks[chat_id]


class ConversationMachine:
    """Transition function of the registration conversation."""

    def __init__(self, registrations: RegistrationService, router: Optional[CommandRouter] = None):
        self.registrations = registrations
        self.router = router or CommandRouter()

    async def dispatch(self, chat_id: int, state: ConversationState, text: Optional[str]) -> Transition:
        """Handle one inbound message for a chat in ``state``.

        Args:
            chat_id: Telegram chat ID.
            state: The chat's current conversation state.
            text: Message text (None for non-text messages).

        Returns:
            Transition with replies and the next state.
        """
        command = self.router.parse_command(text)
        if command is not None:
            if not command.is_known:
                logger.info("Unknown command /%s from chatId %s", command.name, chat_id)
                return Transition(state, [messages.unknown_command()])
            logger.info("/%s command received from chatId %s", command.name, chat_id)
            return await self._on_command(chat_id, command)

        if isinstance(state, AwaitingDeleteConfirmation):
            return await self._confirm_deletion(chat_id, state, text or "")
        if isinstance(state, AwaitingChange):
            return await self._change_identifier(chat_id, state, text)
        if isinstance(state, AwaitingRegistration):
            return await self._register_identifier(chat_id, state, text)

        logger.debug("Ignoring freeform message from idle chatId %s", chat_id)
        return Transition(IDLE)

    async def _on_command(self, chat_id: int, command: ParsedCommand) -> Transition:
        if command.command_type is CommandType.HELP:
            return Transition(IDLE, [messages.help_text()])

        try:
            registration = await self.registrations.find_by_chat(chat_id)
        except StoreUnavailable as e:
            logger.error("Error in /%s command: %s", command.name, e, exc_info=True)
            return Transition(IDLE, [messages.something_went_wrong()])

        if command.command_type is CommandType.START:
            if registration is not None:
                return Transition(IDLE, [messages.welcome_back(registration.identifier)])
            logger.info("Waiting for ENS/address from chatId %s", chat_id)
            return Transition(AwaitingRegistration(), [messages.welcome()])

        if command.command_type is CommandType.SHOW:
            if registration is None:
                return Transition(IDLE, [messages.not_registered_show()])
            return Transition(IDLE, [messages.show(registration.identifier)])

        if command.command_type is CommandType.CHANGE:
            if registration is None:
                return Transition(IDLE, [messages.not_registered_change()])
            logger.info("Waiting for new identifier from chatId %s", chat_id)
            return Transition(
                AwaitingChange(old_address=registration.address, old_ens=registration.ens),
                [messages.change_prompt(registration.identifier)],
            )

        if command.command_type is CommandType.STOP:
            if registration is None:
                return Transition(IDLE, [messages.not_registered_stop()])
            logger.info("Waiting for deletion confirmation from chatId %s", chat_id)
            return Transition(
                AwaitingDeleteConfirmation(address=registration.address, ens=registration.ens),
                [messages.stop_prompt(registration.identifier)],
            )

        raise ValueError(f"Unhandled command type: {command.command_type}")

    async def _resolve(self, state: ConversationState, raw: Optional[str]):
        """Turn user input into ``(ens, address)`` or a Transition that keeps ``state``."""
        if not raw or not raw.strip():
            return None, Transition(state, [messages.invalid_input()])

        identifier = raw.strip()
        if classify(identifier) is IdentifierKind.NAME:
            try:
                address = await resolve_name(identifier, self.registrations.resolver)
            except ResolutionFailed as e:
                logger.info("Could not resolve %s: %s", identifier, e.reason)
                return None, Transition(state, [messages.resolution_failed(identifier)])
            return (identifier, address), None

        try:
            address = normalize_address(identifier)
        except InvalidAddress:
            return None, Transition(state, [messages.invalid_address(identifier)])
        return (None, address), None

    async def _register_identifier(
        self, chat_id: int, state: AwaitingRegistration, text: Optional[str]
    ) -> Transition:
        resolved, retry = await self._resolve(state, text)
        if retry is not None:
            return retry
        ens, address = resolved

        try:
            await self.registrations.save(ens, address, chat_id)
        except StoreUnavailable as e:
            logger.error("Error handling identifier input: %s", e, exc_info=True)
            return Transition(IDLE, [messages.something_went_wrong("/start")])

        logger.info("Registered %s (%s) for chatId %s", ens or address, address, chat_id)
        return Transition(IDLE, [messages.registered(ens, address)])

    async def _change_identifier(self, chat_id: int, state: AwaitingChange, text: Optional[str]) -> Transition:
        resolved, retry = await self._resolve(state, text)
        if retry is not None:
            return retry
        ens, address = resolved

        # Old first: if old == new the save below still leaves the new record
        try:
            await self.registrations.delete(state.old_address)
            await self.registrations.save(ens, address, chat_id)
        except StoreUnavailable as e:
            logger.error("Error handling address change: %s", e, exc_info=True)
            return Transition(IDLE, [messages.something_went_wrong("/change")])

        logger.info(
            "Changed from %s to %s (%s) for chatId %s",
            state.old_address,
            ens or address,
            address,
            chat_id,
        )
        return Transition(IDLE, [messages.changed(state.old_identifier, ens, address)])

    async def _confirm_deletion(
        self, chat_id: int, state: AwaitingDeleteConfirmation, text: str
    ) -> Transition:
        if text.strip().lower() not in CONFIRMATIONS:
            logger.info("Deletion cancelled by chatId %s", chat_id)
            return Transition(IDLE, [messages.deletion_cancelled()])

        try:
            await self.registrations.delete(state.address)
        except StoreUnavailable as e:
            logger.error("Error handling deletion confirmation: %s", e, exc_info=True)
            return Transition(IDLE, [messages.something_went_wrong("/stop")])

        logger.info("Deleted registration %s for chatId %s", state.identifier, chat_id)
        return Transition(IDLE, [messages.opted_out(state.identifier)])


class ConversationService:
    """Apply the conversation machine to inbound messages, one chat at a time."""

    def __init__(self, machine: ConversationMachine, states: Optional[ConversationStateStore] = None):
        self.machine = machine
        self.states = states or ConversationStateStore()

    async def handle_message(self, chat_id: int, text: Optional[str]) -> list[str]:
        """Process one inbound message and return the replies to send."""
        async with self.states.locked(chat_id):
            state = self.states.get(chat_id)
            try:
                transition = await self.machine.dispatch(chat_id, state, text)
            except Exception as e:
                logger.error("Error handling message from chatId %s: %s", chat_id, e, exc_info=True)
                transition = Transition(IDLE, [messages.something_went_wrong()])
            self.states.set(chat_id, transition.next_state)
        return transition.replies
