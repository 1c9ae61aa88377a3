"""
Utilities shared by the providers and signers: canonical encoding, addresses,
keys, units and transaction encoding.
"""
from .address import get_address, get_multisig_address, is_address
from .misc import canonical_json, canonicalize
from .secp256k1 import compute_address, compute_public_key, hash_message, verify_message
from .signing_key import SigningKey
from .transaction import get_transaction_request, parse, populate_transaction, serialize
from .units import format_mxw, format_units, parse_mxw, parse_units

__all__ = [
    'SigningKey',
    'canonical_json',
    'canonicalize',
    'compute_address',
    'compute_public_key',
    'format_mxw',
    'format_units',
    'get_address',
    'get_multisig_address',
    'get_transaction_request',
    'hash_message',
    'is_address',
    'parse',
    'parse_mxw',
    'parse_units',
    'populate_transaction',
    'serialize',
    'verify_message',
]
