"""Registration model binding an Ethereum address to a Telegram chat."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Registration(Base):
    """One operator identity that receives alerts in one chat.

    Column names follow the stored document shape
    ``{ens, address, chatId, createdAt}`` so exported rows stay compatible
    with migration tooling.
    """

    __tablename__ = "registrations"

    # Canonical lowercase 0x-prefixed address
    address: Mapped[str] = mapped_column(String(42), primary_key=True)
    ens: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    chat_id: Mapped[int] = mapped_column("chatId", BigInteger, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    @property
    def identifier(self) -> str:
        """The identifier shown to the user: the ENS name when known, else the address."""
        return self.ens or self.address

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Registration(address={self.address}, ens={self.ens}, "
            f"chat_id={self.chat_id})>"
        )
