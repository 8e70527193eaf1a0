"""Identifier classification, address normalization and ENS resolution."""

import asyncio
import logging
from enum import Enum
from typing import Optional, Protocol

from ens.exceptions import InvalidName
from eth_utils import (
    is_address,
    is_checksum_address,
    is_checksum_formatted_address,
    to_normalized_address,
)
from web3 import AsyncHTTPProvider, AsyncWeb3

logger = logging.getLogger(__name__)

NAME_SEPARATOR = "."
MIN_NAME_LENGTH = 3  # names must be strictly longer than this


class IdentifierKind(Enum):
    """How an identifier submitted by a user should be interpreted."""

    NAME = "name"
    ADDRESS = "address"


class InvalidAddress(ValueError):
    """Raised when a string is not a valid Ethereum address."""


class ResolutionFailed(Exception):
    """Raised when an ENS name cannot be resolved to an address.

    ``unreachable`` is set when the resolver itself failed (network error,
    timeout) rather than answering that the name has no address.
    """

    def __init__(self, name: str, reason: str = "no address record", unreachable: bool = False):
        super().__init__(f"Failed to resolve {name}: {reason}")
        self.name = name
        self.reason = reason
        self.unreachable = unreachable


class NameResolver(Protocol):
    """Anything that can turn an ENS name into an address."""

    async def resolve(self, name: str) -> Optional[str]:
        ...


def classify(identifier: str) -> IdentifierKind:
    """Classify an identifier as an ENS-style name or an address."""
    if identifier and NAME_SEPARATOR in identifier and len(identifier) > MIN_NAME_LENGTH:
        return IdentifierKind.NAME
    return IdentifierKind.ADDRESS


def normalize_address(raw: str) -> str:
    """Validate an Ethereum address and return its canonical lowercase form.

    All-lowercase and all-uppercase hex is accepted as-is; mixed case must
    carry a valid EIP-55 checksum.

    Raises:
        InvalidAddress: If the format or checksum is wrong.
    """
    if not isinstance(raw, str) or not is_address(raw):
        raise InvalidAddress(f"Invalid Ethereum address: {raw!r}")
    if is_checksum_formatted_address(raw) and not is_checksum_address(raw):
        raise InvalidAddress(f"Bad EIP-55 checksum: {raw!r}")
    return to_normalized_address(raw)


def is_valid_identifier(identifier: str) -> bool:
    """Check whether an identifier is a plausible ENS name or a valid address."""
    if not isinstance(identifier, str):
        return False
    if classify(identifier) is IdentifierKind.NAME:
        return len(identifier) > MIN_NAME_LENGTH
    try:
        normalize_address(identifier)
    except InvalidAddress:
        return False
    return True


async def resolve_name(name: str, resolver: NameResolver) -> str:
    """Resolve an ENS name through ``resolver`` and return the lowercase address.

    Every failure mode (unknown name, network error, timeout, malformed
    answer) is reported as :class:`ResolutionFailed`. Errors raised by the
    resolver are marked ``unreachable``.
    """
    try:
        address = await resolver.resolve(name)
    except ResolutionFailed:
        raise
    except Exception as e:
        logger.warning("ENS lookup for %s failed: %s", name, e)
        raise ResolutionFailed(name, str(e) or type(e).__name__, unreachable=True) from e

    if not address:
        raise ResolutionFailed(name)

    try:
        return normalize_address(address)
    except InvalidAddress as e:
        raise ResolutionFailed(name, "resolver returned a malformed address") from e


class ENSResolver:
    """Resolve ENS names against an Ethereum JSON-RPC endpoint."""

    def __init__(self, rpc_url: str, timeout: float = 10.0):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))

    async def resolve(self, name: str) -> Optional[str]:
        """Look up the address record for ``name``.

        Results are never cached: ownership of a name can change between
        lookups.
        """
        logger.debug("Resolving ENS name %s via %s", name, self.rpc_url)
        try:
            address = await asyncio.wait_for(self.w3.ens.address(name), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ResolutionFailed(name, f"timed out after {self.timeout}s", unreachable=True) from e
        except InvalidName:
            logger.info("%s is not a valid ENS name", name)
            return None

        if address is None:
            logger.info("ENS name %s has no address record", name)
            return None
        return str(address).lower()
