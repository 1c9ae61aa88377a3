"""
Address helpers for bech32 account, validator and KYC addresses.
"""
import hashlib
import re
from typing import Tuple, Union

import bech32
from web3 import Web3

from .. import errors
from ..constants import ADDRESS_PREFIX, KYC_ADDRESS_PREFIX, VAL_OPERATOR_ADDRESS_PREFIX

_HEX_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")
_MIXED_CASE_RE = re.compile(r"([A-F].*[a-f])|([a-f].*[A-F])")

_KNOWN_PREFIXES = (ADDRESS_PREFIX, KYC_ADDRESS_PREFIX, VAL_OPERATOR_ADDRESS_PREFIX)


def bech32_encode(prefix: str, data: bytes) -> str:
    words = bech32.convertbits(data, 8, 5)
    return bech32.bech32_encode(prefix, words)


def bech32_decode(address: str) -> Tuple[str, bytes]:
    """
    Decode a bech32 address into its prefix and raw bytes.

    Raises:
        ValidationError: INVALID_ADDRESS if the string is not valid bech32
    """
    prefix, words = bech32.bech32_decode(address)
    if prefix is None or words is None:
        errors.throw_error("invalid bech32 address", errors.INVALID_ADDRESS, {"value": address})
    data = bech32.convertbits(words, 5, 8, False)
    if data is None:
        errors.throw_error("invalid bech32 address", errors.INVALID_ADDRESS, {"value": address})
    return prefix, bytes(data)


def get_address(address: str) -> str:
    """
    Normalize an address.

    Bech32 addresses with a known prefix are returned as is. A 40 character
    hex address is returned in checksum form; a mixed-case input must carry a
    valid checksum.

    Raises:
        ValidationError: INVALID_ADDRESS for anything else
    """
    result = None

    if isinstance(address, str):
        if address.startswith(_KNOWN_PREFIXES):
            result = address
        elif _HEX_ADDRESS_RE.match(address):
            if not address.startswith("0x"):
                address = "0x" + address
            result = Web3.to_checksum_address(address.lower())

            # It is a checksummed address with a bad checksum
            if _MIXED_CASE_RE.search(address[2:]) and result != address:
                errors.throw_error("bad address checksum", errors.INVALID_ADDRESS, {"value": address})

    if not result:
        errors.throw_error("invalid address", errors.INVALID_ADDRESS, {"value": address})

    return result


def is_address(address: str) -> bool:
    try:
        get_address(address)
        return True
    except errors.ValidationError:
        return False


def get_multisig_address(owner: str, sequence: Union[int, str]) -> str:
    """
    Derive the group account address created by ``owner`` at ``sequence``.

    The address is the first 20 bytes of sha256(owner bytes || uint64 sequence).
    This derivation is not checked against a node; when the chain reports a
    different group address, load it with ``MultiSigWallet.from_group_address``.
    """
    _, owner_bytes = bech32_decode(get_address(owner))
    payload = owner_bytes + int(sequence).to_bytes(8, "big")
    return bech32_encode(ADDRESS_PREFIX, hashlib.sha256(payload).digest()[:20])
