"""
Tests for address normalization and multisig group addresses.
"""
import hashlib

import pytest
from web3 import Web3

from mxw_sdk import errors
from mxw_sdk.constants import ADDRESS_ZERO
from mxw_sdk.utils.address import (
    bech32_decode, bech32_encode, get_address, get_multisig_address, is_address
)
from mxw_sdk.utils.signing_key import SigningKey

from conftest import TEST_PRIVATE_KEY

OWNER = SigningKey(TEST_PRIVATE_KEY).address


def test_address_zero_is_twenty_zero_bytes():
    assert bech32_decode(ADDRESS_ZERO) == ("mxw", b"\x00" * 20)
    assert bech32_encode("mxw", b"\x00" * 20) == ADDRESS_ZERO


def test_bech32_decode_rejects_garbage():
    with pytest.raises(errors.ValidationError) as exc_info:
        bech32_decode("mxw1notanaddress")
    assert exc_info.value.code == errors.INVALID_ADDRESS


@pytest.mark.parametrize("address", [OWNER, "kyc1abc", "mxwvaloper1abc"])
def test_get_address_keeps_bech32(address):
    """Known bech32 prefixes are returned as is"""
    assert get_address(address) == address


def test_get_address_checksums_hex():
    raw = "ab" * 20
    checksummed = Web3.to_checksum_address("0x" + raw)
    assert get_address(raw) == checksummed
    assert get_address("0x" + raw.upper()) == checksummed
    assert get_address(checksummed) == checksummed


def test_get_address_rejects_bad_checksum():
    checksummed = Web3.to_checksum_address("0x" + "ab" * 20)
    index = next(i for i, c in enumerate(checksummed) if i >= 2 and c.isalpha())
    broken = checksummed[:index] + checksummed[index].swapcase() + checksummed[index + 1:]

    with pytest.raises(errors.ValidationError) as exc_info:
        get_address(broken)
    assert exc_info.value.code == errors.INVALID_ADDRESS


@pytest.mark.parametrize("value", ["cosmos1abc", "0x1234", "", None, 42])
def test_is_address_rejects(value):
    assert is_address(value) is False


def test_is_address_accepts():
    assert is_address(OWNER)
    assert is_address("0x" + "12" * 20)


def test_multisig_address_derivation():
    """The group address hashes the owner bytes with the big endian sequence"""
    _, owner_bytes = bech32_decode(OWNER)
    expected = bech32_encode("mxw", hashlib.sha256(owner_bytes + (5).to_bytes(8, "big")).digest()[:20])

    assert get_multisig_address(OWNER, 5) == expected
    assert get_multisig_address(OWNER, "5") == expected
    assert get_multisig_address(OWNER, 6) != expected
    assert bech32_decode(expected)[0] == "mxw"
