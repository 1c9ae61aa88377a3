"""
SigningKey wraps a secp256k1 key pair and exposes the addresses derived from it.
"""
import re
from typing import Union

from .. import errors
from .secp256k1 import (
    BytesLike, KeyPair, Signature, compute_address, compute_hex_address, to_bytes
)

_BARE_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class SigningKey:
    """
    A private key able to sign 32 byte digests.

    Attributes:
        private_key: 0x-prefixed hex private key
        public_key: Uncompressed public key (0x04...)
        compressed_public_key: Compressed public key (0x02.../0x03...)
        public_key_type: Public key type name used on the chain
        address: bech32 account address
        hex_address: Checksummed hex form of the account address
    """

    def __init__(self, private_key: Union["SigningKey", BytesLike]):
        if isinstance(private_key, SigningKey):
            private_key = private_key.private_key

        # A lot of common tools do not prefix private keys with a 0x
        if isinstance(private_key, str) and _BARE_HEX_KEY_RE.match(private_key):
            private_key = "0x" + private_key

        try:
            key_bytes = to_bytes(private_key)
        except errors.MxwError as error:
            errors.throw_error("invalid private key", errors.INVALID_ARGUMENT, {
                "arg": "privateKey", "reason": error.reason, "value": "[REDACTED]",
            })

        if len(key_bytes) != 32:
            errors.throw_error("invalid private key", errors.INVALID_ARGUMENT, {
                "arg": "privateKey", "length": len(key_bytes), "value": "[REDACTED]",
            })

        self._key_pair = KeyPair(key_bytes)
        self.private_key = self._key_pair.private_key
        self.public_key = self._key_pair.public_key
        self.public_key_type = self._key_pair.public_key_type
        self.compressed_public_key = self._key_pair.compressed_public_key
        self.address = compute_address(self.public_key)
        self.hex_address = compute_hex_address(self.address)

    def sign_digest(self, digest: BytesLike) -> Signature:
        return self._key_pair.sign(digest)

    def __repr__(self) -> str:
        return f"SigningKey(address={self.address!r})"
