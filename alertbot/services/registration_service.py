"""Service for managing address-to-chat registrations."""

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ..identifiers import (
    IdentifierKind,
    InvalidAddress,
    NameResolver,
    classify,
    normalize_address,
    resolve_name,
)
from ..orm.registration import Registration
from .database import DatabaseService

logger = logging.getLogger(__name__)


class StoreUnavailable(Exception):
    """Raised when the registration database cannot be reached."""


class RegistrationService:
    """Service for storing and looking up registrations.

    Storage failures surface as :class:`StoreUnavailable` and are never
    retried here.
    """

    def __init__(self, db_service: DatabaseService, resolver: NameResolver):
        self.db_service = db_service
        self.resolver = resolver

    async def save(self, ens: Optional[str], address: str, chat_id: int) -> Registration:
        """Store a registration keyed by address, replacing any previous one."""
        address = normalize_address(address)
        try:
            async with self.db_service.session() as session:
                # Replace in one transaction so createdAt is reassigned
                await session.execute(delete(Registration).where(Registration.address == address))
                registration = Registration(address=address, ens=ens, chat_id=chat_id)
                session.add(registration)
                await session.commit()
                await session.refresh(registration)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to save registration for {address}") from e

        logger.info("Saved registration %s for chatId %s", ens or address, chat_id)
        return registration

    async def find_by_identifier(self, identifier: str) -> Optional[int]:
        """Return the chat bound to an ENS name or address, if any.

        Raises:
            ResolutionFailed: If ``identifier`` is a name that doesn't resolve.
            StoreUnavailable: If the database can't be queried.
        """
        if classify(identifier) is IdentifierKind.NAME:
            address = await resolve_name(identifier, self.resolver)
        else:
            try:
                address = normalize_address(identifier)
            except InvalidAddress:
                return None

        registration = await self.get(address)
        return registration.chat_id if registration else None

    async def get(self, address: str) -> Optional[Registration]:
        """Fetch the registration stored under a normalized address."""
        try:
            async with self.db_service.session() as session:
                return await session.get(Registration, address)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to read registration for {address}") from e

    async def find_by_chat(self, chat_id: int) -> Optional[Registration]:
        """Return the registration for a chat.

        Duplicates are tolerated; the oldest one wins.
        """
        try:
            async with self.db_service.session() as session:
                result = await session.execute(
                    select(Registration)
                    .where(Registration.chat_id == chat_id)
                    .order_by(Registration.created_at, Registration.address)
                    .limit(1)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to look up registration for chatId {chat_id}") from e

    async def delete(self, address: str) -> None:
        """Remove the registration for an address. Missing rows are not an error."""
        address = address.lower()
        try:
            async with self.db_service.session() as session:
                result = await session.execute(
                    delete(Registration).where(Registration.address == address)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to delete registration for {address}") from e

        if result.rowcount:
            logger.info("Deleted registration %s", address)
        else:
            logger.debug("No registration to delete for %s", address)
