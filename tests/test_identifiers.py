"""Tests for identifier classification, normalization and resolution."""

import asyncio
from types import SimpleNamespace

import pytest
from ens.exceptions import InvalidName

from alertbot.identifiers import (
    ENSResolver,
    IdentifierKind,
    InvalidAddress,
    ResolutionFailed,
    classify,
    is_valid_identifier,
    normalize_address,
    resolve_name,
)
from conftest import CHECKSUM_ADDRESS, FakeResolver


class TestClassify:
    def test_name_with_dot(self):
        assert classify("vitalik.eth") is IdentifierKind.NAME

    def test_subdomain(self):
        assert classify("node.operator.eth") is IdentifierKind.NAME

    @pytest.mark.parametrize("text", ["", "abc", "0xabc", CHECKSUM_ADDRESS, "no-separator-here"])
    def test_no_separator_is_address(self, text):
        assert classify(text) is IdentifierKind.ADDRESS

    def test_too_short_dotted_is_address(self):
        assert classify("a.b") is IdentifierKind.ADDRESS


class TestNormalizeAddress:
    def test_checksummed_address_lowercased(self):
        assert normalize_address(CHECKSUM_ADDRESS) == CHECKSUM_ADDRESS.lower()

    def test_lowercase_accepted(self):
        lower = "0x" + "ab" * 20
        assert normalize_address(lower) == lower

    def test_uppercase_hex_accepted(self):
        upper = "0x" + CHECKSUM_ADDRESS[2:].upper()
        assert normalize_address(upper) == CHECKSUM_ADDRESS.lower()

    def test_idempotent(self):
        once = normalize_address(CHECKSUM_ADDRESS)
        assert normalize_address(once) == once

    def test_bad_checksum_rejected(self):
        # One letter flipped from the EIP-55 reference vector
        with pytest.raises(InvalidAddress):
            normalize_address("0x5AAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")

    def test_bad_checksum_last_digit_rejected(self):
        with pytest.raises(InvalidAddress, match="checksum"):
            normalize_address("0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAee")

    def test_bad_checksum_not_a_valid_identifier(self):
        assert not is_valid_identifier("0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAee")

    @pytest.mark.parametrize(
        "raw",
        ["", "0x1234", "0x" + "g" * 40, "0x" + "a" * 41, "vitalik.eth", None],
    )
    def test_malformed_rejected(self, raw):
        with pytest.raises(InvalidAddress):
            normalize_address(raw)


class TestIsValidIdentifier:
    def test_ens_name(self):
        assert is_valid_identifier("vitalik.eth")

    def test_checksum_address(self):
        assert is_valid_identifier(CHECKSUM_ADDRESS)

    def test_garbage(self):
        assert not is_valid_identifier("hello")

    def test_short_dotted(self):
        assert not is_valid_identifier("a.b")

    def test_non_string(self):
        assert not is_valid_identifier(12345)


class TestResolveName:
    @pytest.mark.asyncio
    async def test_returns_lowercase_address(self):
        resolver = FakeResolver({"vitalik.eth": "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"})
        address = await resolve_name("vitalik.eth", resolver)
        assert address == "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"

    @pytest.mark.asyncio
    async def test_unknown_name(self):
        with pytest.raises(ResolutionFailed) as exc_info:
            await resolve_name("nobody.eth", FakeResolver())
        assert exc_info.value.name == "nobody.eth"
        assert exc_info.value.unreachable is False

    @pytest.mark.asyncio
    async def test_network_error_converted(self):
        resolver = FakeResolver(failing={"vitalik.eth"})
        with pytest.raises(ResolutionFailed) as exc_info:
            await resolve_name("vitalik.eth", resolver)
        assert "rpc unreachable" in exc_info.value.reason
        assert exc_info.value.unreachable is True

    @pytest.mark.asyncio
    async def test_malformed_answer(self):
        resolver = FakeResolver({"odd.eth": "not-an-address"})
        with pytest.raises(ResolutionFailed):
            await resolve_name("odd.eth", resolver)

    @pytest.mark.asyncio
    async def test_no_caching(self):
        resolver = FakeResolver({"vitalik.eth": CHECKSUM_ADDRESS})
        await resolve_name("vitalik.eth", resolver)
        await resolve_name("vitalik.eth", resolver)
        assert resolver.calls == ["vitalik.eth", "vitalik.eth"]


class TestENSResolver:
    def _resolver_with(self, address_fn, timeout=1.0) -> ENSResolver:
        resolver = ENSResolver("http://localhost:8545", timeout=timeout)
        resolver.w3 = SimpleNamespace(ens=SimpleNamespace(address=address_fn))
        return resolver

    @pytest.mark.asyncio
    async def test_lowercases_result(self):
        async def address(name):
            return CHECKSUM_ADDRESS

        resolver = self._resolver_with(address)
        assert await resolver.resolve("vitalik.eth") == CHECKSUM_ADDRESS.lower()

    @pytest.mark.asyncio
    async def test_missing_record(self):
        async def address(name):
            return None

        resolver = self._resolver_with(address)
        assert await resolver.resolve("nobody.eth") is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def address(name):
            await asyncio.sleep(5)

        resolver = self._resolver_with(address, timeout=0.05)
        with pytest.raises(ResolutionFailed) as exc_info:
            await resolver.resolve("slow.eth")
        assert "timed out" in exc_info.value.reason
        assert exc_info.value.unreachable is True

    @pytest.mark.asyncio
    async def test_invalid_name_has_no_record(self):
        async def address(name):
            raise InvalidName(f"{name} is not a valid name")

        resolver = self._resolver_with(address)
        assert await resolver.resolve("bad..eth") is None
