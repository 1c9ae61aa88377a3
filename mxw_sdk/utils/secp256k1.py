"""
secp256k1 key pairs, signatures and address derivation.
"""
import hashlib
import re
from dataclasses import dataclass
from typing import Optional, Union

from Crypto.Hash import RIPEMD160
from eth_keys import keys

from .. import errors
from ..constants import ADDRESS_PREFIX
from .address import bech32_decode, bech32_encode, get_address

# Order of the SECP256K1 elliptic curve (N value)
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2

_RAW_ADDRESS_RE = re.compile(r"^(0x)?([0-9a-fA-F]{40}|[0-9a-fA-F]{64})$")

BytesLike = Union[bytes, bytearray, str]


def to_bytes(value: BytesLike) -> bytes:
    """Convert a 0x-prefixed (or bare) hex string or bytes-like value into bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        try:
            return bytes.fromhex(text)
        except ValueError:
            pass
    errors.throw_error("invalid arrayify value", errors.INVALID_ARGUMENT, {"arg": "value", "value": value})


def hexlify(data: bytes) -> str:
    return "0x" + bytes(data).hex()


@dataclass
class Signature:
    """A low-s secp256k1 signature."""
    r: str
    s: str
    recovery_param: int

    @property
    def v(self) -> int:
        return 27 + self.recovery_param

    def to_bytes(self) -> bytes:
        return to_bytes(self.r) + to_bytes(self.s)


def join_signature(signature: Signature, include_recovery_param: bool = True) -> str:
    data = signature.to_bytes()
    if include_recovery_param:
        data += bytes([signature.v])
    return hexlify(data)


def split_signature(signature: Union[Signature, BytesLike]) -> Signature:
    if isinstance(signature, Signature):
        return signature
    data = to_bytes(signature)
    if len(data) not in (64, 65):
        errors.throw_error("invalid signature", errors.INVALID_ARGUMENT, {"arg": "signature", "value": signature})
    recovery_param = 0
    if len(data) == 65:
        v = data[64]
        recovery_param = v - 27 if v >= 27 else v
    return Signature(r=hexlify(data[:32]), s=hexlify(data[32:64]), recovery_param=recovery_param)


class KeyPair:
    """A secp256k1 private key with its derived public key forms."""

    public_key_type = "PubKeySecp256k1"

    def __init__(self, private_key: BytesLike):
        self._key = keys.PrivateKey(to_bytes(private_key))
        self.private_key = hexlify(self._key.to_bytes())
        self.public_key = hexlify(b"\x04" + self._key.public_key.to_bytes())
        self.compressed_public_key = hexlify(self._key.public_key.to_compressed_bytes())

    def sign(self, digest: BytesLike) -> Signature:
        """
        Sign a 32 byte digest.

        The signature is normalized to the lower half of the curve order, with
        the recovery parameter flipped accordingly.
        """
        signature = self._key.sign_msg_hash(to_bytes(digest))
        r, s, recovery_param = signature.r, signature.s, signature.v
        if s > SECP256K1_HALF_N:
            s = SECP256K1_N - s
            recovery_param ^= 1
        return Signature(
            r=hexlify(r.to_bytes(32, "big")),
            s=hexlify(s.to_bytes(32, "big")),
            recovery_param=recovery_param,
        )


def _public_key_from_bytes(data: bytes) -> keys.PublicKey:
    if len(data) == 33:
        return keys.PublicKey.from_compressed_bytes(data)
    if len(data) == 65:
        return keys.PublicKey(data[1:])
    if len(data) == 64:
        return keys.PublicKey(data)
    errors.throw_error("invalid public or private key", errors.INVALID_ARGUMENT, {"arg": "key", "value": "[REDACTED]"})


def compute_public_key(key: BytesLike, compressed: bool = False) -> str:
    """Derive the (optionally compressed) public key from a private or public key."""
    data = to_bytes(key)
    if len(data) == 32:
        pair = KeyPair(data)
        return pair.compressed_public_key if compressed else pair.public_key

    public_key = _public_key_from_bytes(data)
    if compressed:
        return hexlify(public_key.to_compressed_bytes())
    return hexlify(b"\x04" + public_key.to_bytes())


def hash160(data: bytes) -> bytes:
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def compute_address(key: BytesLike, prefix: Optional[str] = None) -> str:
    """
    Compute the bech32 address of a key.

    A 20 or 32 byte hex string is treated as the raw address bytes; anything
    else is treated as a public or private key and hashed.
    """
    data = None
    if isinstance(key, str) and _RAW_ADDRESS_RE.match(key):
        data = to_bytes(key)
    if data is None:
        data = hash160(to_bytes(compute_public_key(key, True)))
    return get_address(bech32_encode(prefix or ADDRESS_PREFIX, data))


def compute_hex_address(address: str) -> str:
    _, data = bech32_decode(address)
    return get_address(hexlify(data))


def recover_public_key(digest: BytesLike, signature: Union[Signature, BytesLike],
                       recovery_param: Optional[int] = None) -> str:
    sig = split_signature(signature)
    if recovery_param is not None:
        sig = Signature(r=sig.r, s=sig.s, recovery_param=recovery_param)
    recovered = keys.Signature(vrs=(
        sig.recovery_param,
        int.from_bytes(to_bytes(sig.r), "big"),
        int.from_bytes(to_bytes(sig.s), "big"),
    )).recover_public_key_from_msg_hash(to_bytes(digest))
    return hexlify(b"\x04" + recovered.to_bytes())


def recover_address(digest: BytesLike, signature: Union[Signature, BytesLike],
                    recovery_param: Optional[int] = None) -> str:
    return compute_address(recover_public_key(digest, signature, recovery_param))


def hash_message(message: BytesLike) -> bytes:
    data = message.encode("utf-8") if isinstance(message, str) else bytes(message)
    return hashlib.sha256(data).digest()


def verify_message(message: BytesLike, signature: Union[Signature, BytesLike]) -> str:
    """Return the address that signed ``message``."""
    return recover_address(hash_message(message), signature)
