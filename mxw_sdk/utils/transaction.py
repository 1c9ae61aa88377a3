"""
Transaction serialization, parsing and population.
"""
import base64
import binascii
import hashlib
import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

from .. import errors
from .messages import build_transaction_request
from .misc import canonical_json, to_int
from .properties import check_properties, resolve_properties, shallow_copy
from .secp256k1 import BytesLike, Signature, split_signature, to_bytes

logger = logging.getLogger(__name__)

PUBLIC_KEY_TYPE = "tendermint/PubKeySecp256k1"

ALLOWED_TRANSACTION_KEYS: Dict[str, bool] = {
    "type": True, "value": True, "nonce": True, "chainId": True, "fee": True,
    "check_tx": True, "deliver_tx": True, "hash": True, "height": True, "accountNumber": True,
}

ALLOWED_TRANSACTION_VALUE_KEYS: Dict[str, bool] = {
    "type": True, "msg": True, "fee": True, "signatures": True, "memo": True,
}


def check_transaction(transaction: Any) -> None:
    """Reject transactions carrying unknown top-level or ``value`` keys."""
    check_properties(transaction, ALLOWED_TRANSACTION_KEYS)
    if transaction.get("value"):
        check_properties(transaction["value"], ALLOWED_TRANSACTION_VALUE_KEYS)


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def serialize(
    unsigned_transaction: Dict[str, Any],
    signature: Optional[Union[Signature, BytesLike]] = None,
    public_key: Optional[BytesLike] = None
) -> str:
    """
    Encode a transaction as base64 JSON.

    Without a signature the transaction is encoded as is. With one, the
    ``type`` and ``value`` of the transaction are copied, the signature is
    appended to ``value.signatures`` and the envelope is canonicalized.

    Args:
        unsigned_transaction: Transaction request
        signature: secp256k1 signature over the signing payload
        public_key: Compressed public key of the signer

    Returns:
        Base64 encoded transaction

    Raises:
        ValidationError: INVALID_ARGUMENT for unknown keys or a missing ``value``
    """
    check_transaction(unsigned_transaction)

    if not signature:
        return _b64encode(json.dumps(unsigned_transaction, separators=(",", ":")).encode("utf-8"))

    if not unsigned_transaction.get("value"):
        errors.throw_error("invalid unsigned transaction", errors.INVALID_ARGUMENT, {
            "arg": "unsignedTransaction",
            "value": unsigned_transaction,
        })

    value = shallow_copy(unsigned_transaction["value"])
    transaction = {
        "type": unsigned_transaction.get("type") or "",
        "value": value,
    }

    signatures = list(value.get("signatures") or [])
    signatures.append({
        # Key naming follows the node's amino JSON
        "pub_key": {
            "type": PUBLIC_KEY_TYPE,
            "value": _b64encode(to_bytes(public_key)) if public_key else None,
        },
        "signature": _b64encode(split_signature(signature).to_bytes()),
    })
    value["signatures"] = signatures

    return _b64encode(canonical_json(transaction).encode("utf-8"))


def _handle_number(value: Any) -> Optional[int]:
    if value == "0x":
        return 0
    if value is None or value == "":
        return None
    return to_int(value)


def parse(raw_transaction: Union[str, Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Decode a base64 encoded (or already decoded) transaction.

    For an encoded transaction ``hash`` is the SHA-256 of the encoded text.
    It only correlates the transaction locally; the chain reports its own
    hash once the transaction is broadcast.

    Raises:
        ValidationError: INVALID_ARGUMENT for undecodable input or unknown keys
    """
    tx: Dict[str, Any] = {}

    if isinstance(raw_transaction, str):
        encoded = raw_transaction
        try:
            tx["hash"] = "0x" + hashlib.sha256(encoded.encode("utf-8")).hexdigest()
            raw_transaction = json.loads(base64.b64decode(encoded, validate=True).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError):
            errors.throw_error("invalid raw transaction", errors.INVALID_ARGUMENT, {
                "arg": "rawTransaction",
                "value": encoded,
            })

    check_transaction(raw_transaction)

    if raw_transaction.get("type"):
        tx["type"] = raw_transaction["type"]
        tx["value"] = raw_transaction.get("value")
        return tx

    check_tx = raw_transaction.get("check_tx")
    if check_tx:
        tx["checkTransaction"] = {
            "gasWanted": _handle_number(check_tx.get("gasWanted")),
            "gasUsed": _handle_number(check_tx.get("gasUsed")),
        }

    deliver_tx = raw_transaction.get("deliver_tx")
    if deliver_tx:
        tx["deliverTransaction"] = {
            "log": deliver_tx.get("log"),
            "gasWanted": _handle_number(deliver_tx.get("gasWanted")),
            "gasUsed": _handle_number(deliver_tx.get("gasUsed")),
            "tags": [{"key": tag.get("key"), "value": tag.get("value")} for tag in deliver_tx.get("tags") or []],
        }

    tx["hash"] = raw_transaction.get("hash")
    tx["blockNumber"] = _handle_number(raw_transaction.get("height"))
    return tx


def populate_transaction(transaction: Dict[str, Any], provider: Any, from_address: Any) -> Dict[str, Any]:
    """
    Fill in ``nonce`` and ``chainId`` and resolve every deferred field.

    Args:
        transaction: Transaction request with a ``fee``
        provider: Provider used to query the nonce and network
        from_address: Sender address (or a Future of it)

    Returns:
        A resolved copy of the transaction

    Raises:
        ValidationError: INVALID_ARGUMENT without a provider, MISSING_FEES
            without a fee
    """
    # Imported here, the providers depend on this module
    from ..providers.base_provider import Provider

    if not isinstance(provider, Provider):
        errors.throw_error("missing provider", errors.INVALID_ARGUMENT, {"argument": "provider", "value": provider})

    check_transaction(transaction)

    tx = shallow_copy(transaction)

    if tx.get("fee") is None:
        errors.throw_error("missing fee", errors.MISSING_FEES, {})
    if tx.get("nonce") is None:
        tx["nonce"] = provider.get_transaction_count(from_address)
    if tx.get("chainId") is None:
        tx["chainId"] = provider.get_network().chain_id

    return resolve_properties(tx)


def get_transaction_request(route: Optional[str], transaction_type: Optional[str],
                            overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return build_transaction_request(route, transaction_type, overrides)
