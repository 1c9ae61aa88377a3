"""
Normalization of raw node payloads into application-facing records.

Each checker validates a payload with :func:`check_format`, then camelizes
its keys and renames the fields whose node names are unhelpful (``height``
becomes ``blockNumber``, ``tx_result`` becomes ``result`` and so on).
"""
import base64
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from ..constants import VAL_OPERATOR_ADDRESS_PREFIX
from ..utils.misc import (
    allow_null_or_empty, array_of, check_address, check_any, check_big_number,
    check_boolean, check_format, check_hash, check_hex, check_hex_address, check_number,
    check_string, check_timestamp
)
from ..utils.properties import camelize
from ..utils.secp256k1 import compute_address

logger = logging.getLogger(__name__)


def _renamer(names: Dict[str, str]) -> Callable[[str, int, Any], str]:
    def rename(name: str, depth: int, obj: Any) -> str:
        return names.get(name, name)
    return rename


def _decode_base64(value: str) -> str:
    return base64.b64decode(value).decode("utf-8")


def check_key_value(data: Any) -> Dict[str, Any]:
    return check_format({
        "key": check_string,
        "value": allow_null_or_empty(check_string, None),
    }, data)


def check_type_attribute(data: Any) -> Dict[str, Any]:
    return check_format({
        "type": check_string,
        "attributes": allow_null_or_empty(array_of(check_key_value)),
    }, data)


def check_alias_state(data: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "Name": check_string,
        "Approved": check_boolean,
        "Owner": check_string,
        "Metadata": check_string,
        "Fee": check_big_number,
    }, data), _renamer({
        "Name": "name",
        "Approved": "approved",
        "Owner": "owner",
        "Metadata": "metadata",
        "Fee": "fee",
    }))


def check_token_state(data: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "Flags": check_number,
        "Name": check_string,
        "Symbol": check_string,
        "Decimals": check_number,
        "TotalSupply": check_big_number,
        "MaxSupply": check_big_number,
        "Owner": check_string,
        "NewOwner": check_string,
        "Metadata": check_string,
    }, data), _renamer({
        "Flags": "flags",
        "Name": "name",
        "Symbol": "symbol",
        "Decimals": "decimals",
        "TotalSupply": "totalSupply",
        "MaxSupply": "maxSupply",
        "Owner": "owner",
        "NewOwner": "newOwner",
        "Metadata": "metadata",
    }))


def check_nf_token_state(data: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "Flags": check_number,
        "Name": check_string,
        "Symbol": check_string,
        "Owner": check_address,
        "NewOwner": check_address,
        "Metadata": allow_null_or_empty(check_string),
        "Properties": allow_null_or_empty(check_string),
        "TransferLimit": check_big_number,
        "MintLimit": check_big_number,
        "TotalSupply": check_big_number,
        "EndorserList": allow_null_or_empty(array_of(check_address), []),
        "EndorserListLimit": check_big_number,
    }, data), _renamer({
        "Flags": "flags",
        "Name": "name",
        "Symbol": "symbol",
        "Owner": "owner",
        "NewOwner": "newOwner",
        "Metadata": "metadata",
        "Properties": "properties",
        "TransferLimit": "transferLimit",
        "MintLimit": "mintLimit",
        "TotalSupply": "totalSupply",
        "EndorserList": "endorserList",
        "EndorserListLimit": "endorserListLimit",
    }))


def check_nf_token_item_state(data: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "Owner": allow_null_or_empty(check_string),
        "ID": check_string,
        "Metadata": allow_null_or_empty(check_string),
        "Properties": allow_null_or_empty(check_string),
        "Frozen": check_boolean,
        "TransferLimit": check_big_number,
    }, data), _renamer({
        "Owner": "owner",
        "ID": "id",
        "Metadata": "metadata",
        "Properties": "properties",
        "Frozen": "frozen",
        "TransferLimit": "transferLimit",
    }))


def check_token_account_state(data: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "Owner": check_string,
        "Frozen": check_boolean,
        "Balance": check_big_number,
    }, data), _renamer({
        "Owner": "owner",
        "Frozen": "frozen",
        "Balance": "balance",
    }))


def check_multisig_pending_tx(data: Any) -> Dict[str, Any]:
    # Messages are signed again as they are, so keys keep their wire names
    return check_format({
        "id": check_number,
        "tx": {
            "msg": array_of(check_any),
            "fee": check_any,
            "memo": allow_null_or_empty(check_string, ""),
            "signatures": allow_null_or_empty(array_of(check_any), []),
        },
    }, data)


def check_account_state(data: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "type": check_string,
        "value": check_any,
    }, data))


def check_status(data: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "node_info": {
            "protocol_version": {
                "p2p": check_number,
                "block": check_number,
                "app": check_number,
            },
            "id": check_hex,
            "listen_addr": check_string,
            "network": check_string,
            "version": check_string,
            "channels": check_number,
            "moniker": check_string,
            "other": {
                "tx_index": check_string,
                "rpc_address": check_string,
            },
        },
        "sync_info": {
            "latest_block_hash": check_hash,
            "latest_app_hash": check_hash,
            "latest_block_height": check_number,
            "latest_block_time": check_timestamp,
            "catching_up": check_boolean,
        },
        "validator_info": {
            "address": check_hex_address,
            "pub_key": {
                "type": check_string,
                "value": check_string,
            },
            "voting_power": check_number,
        },
    }, data), _renamer({
        "listenAddr": "listenAddress",
        "latestBlockHeight": "latestBlockNumber",
    }))


def check_transaction_fee_amount(amount: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "amount": check_big_number,
        "denom": check_string,
    }, amount))


def check_transaction_fee(fee: Any) -> Dict[str, Any]:
    return camelize(check_format({
        "amount": array_of(check_transaction_fee_amount),
        "gas": check_big_number,
    }, fee))


def check_transaction_log(data: Any) -> Dict[str, Any]:
    """
    Normalize one entry of a transaction log.

    The ``log`` text becomes ``info``. When it holds JSON with the
    transaction hash and nonce those are extracted, otherwise the text is
    kept as ``info.message``.
    """
    if isinstance(data, str):
        data = json.loads(data)

    log = camelize(check_format({
        "success": check_boolean,
        "log": check_string,
    }, data), _renamer({"log": "info"}))

    if log.get("info"):
        try:
            log["info"] = check_format({
                "hash": check_hash,
                "nonce": check_big_number,
            }, json.loads(log["info"]))
        except ValueError:
            log["info"] = {
                "hash": None,
                "nonce": None,
                "message": log["info"],
            }
    return log


def _parse_logs(text: Any) -> List[Dict[str, Any]]:
    logs = json.loads(text)
    if not isinstance(logs, list):
        return []
    return [check_transaction_log(log) for log in logs]


def _lift_log_info(record: Dict[str, Any], logs: List[Dict[str, Any]]) -> None:
    """Move ``nonce`` and ``hash`` of the first log entry onto ``record``."""
    if not logs:
        return
    info = logs[0].get("info")
    if not isinstance(info, dict):
        return

    nonce = info.get("nonce")
    if nonce is not None and nonce >= 0:
        record["nonce"] = nonce
        del info["nonce"]

    if info.get("hash"):
        record["hash"] = info.pop("hash")


def check_transaction_event(data: Any) -> Dict[str, Any]:
    """
    Decode a ``system`` event attribute.

    The attribute key is the base64 encoded emitter address and the value a
    base64 encoded JSON object with the event hash and parameters.
    """
    kv = check_key_value(data)
    value = kv.get("value")
    if isinstance(value, str):
        value = json.loads(_decode_base64(value))

    event = camelize(check_format({
        "hash": check_string,
        "params": allow_null_or_empty(array_of(check_string)),
    }, value))
    event["address"] = check_address(_decode_base64(kv["key"]))
    event["hash"] = "0x" + event["hash"]
    return event


def check_transaction_events(data: Any) -> List[Dict[str, Any]]:
    groups = allow_null_or_empty(array_of(check_type_attribute))(data)
    events = []

    if isinstance(groups, list):
        for group in groups:
            # Only system events are decoded
            if group["type"] == "system":
                for attribute in group.get("attributes") or []:
                    events.append(check_transaction_event(attribute))
    return events


def _index_events(events: Any, transaction_index: int) -> List[Dict[str, Any]]:
    indexed = []
    if isinstance(events, list):
        for event in events:
            if event.get("hash"):
                event["transactionIndex"] = transaction_index
                event["eventIndex"] = len(indexed)
                indexed.append(event)
    return indexed


def check_deliver_transaction(value: Any) -> Optional[Dict[str, Any]]:
    """
    Normalize a ``deliver_tx`` entry of a block.

    Returns:
        The transaction, or None for a failed transaction (no hash in its log)
    """
    transaction = camelize(check_format({
        "log": allow_null_or_empty(check_string),
        "events": check_transaction_events,
    }, value), _renamer({"log": "logs"}))

    try:
        transaction["logs"] = _parse_logs(transaction.get("logs"))
        _lift_log_info(transaction, transaction["logs"])
    except (TypeError, ValueError):
        transaction["logs"] = None

    if not transaction.get("hash"):
        return None
    return transaction


def check_block(data: Any) -> Dict[str, Any]:
    """
    Normalize ``block_results``.

    Failed transactions are dropped, the remaining ones get consecutive
    ``transactionIndex`` values and their events an ``eventIndex``.
    """
    block = camelize(check_format({
        "height": check_number,
        "results": {
            "deliver_tx": allow_null_or_empty(array_of(check_deliver_transaction)),
        },
    }, data), _renamer({
        "height": "blockNumber",
        "deliverTx": "transactions",
        "key": "address",
        "value": "event",
    }))

    results = block.setdefault("results", {})
    transactions = results.get("transactions")
    if not isinstance(transactions, list):
        results["transactions"] = []
        return block

    kept = [transaction for transaction in transactions if transaction]
    if len(kept) != len(transactions):
        logger.debug(f"Block {block.get('blockNumber')}: discarded {len(transactions) - len(kept)} failed transactions")

    for transaction_index, transaction in enumerate(kept):
        transaction["transactionIndex"] = transaction_index
        transaction["events"] = _index_events(transaction.get("events"), transaction_index)
    results["transactions"] = kept
    return block


def check_block_info(data: Any) -> Optional[Dict[str, Any]]:
    """Extract the header of a ``block`` response."""
    data = camelize(check_format({
        "block": {
            "header": {
                "height": check_number,
                "time": check_timestamp,
                "total_txs": check_number,
                "proposer_address": check_string,
            },
        },
    }, data), _renamer({
        "height": "blockNumber",
        "time": "blockTime",
        "totalTxs": "totalTransactions",
    }))

    header = data.get("block", {}).get("header")
    if not header:
        return None
    header = dict(header)
    header["proposerAddress"] = compute_address(header["proposerAddress"], VAL_OPERATOR_ADDRESS_PREFIX)
    return header


def check_transaction_receipt(transaction: Any) -> Optional[Dict[str, Any]]:
    """
    Normalize a ``decoded_tx`` response into a transaction receipt.

    Returns:
        The receipt, or None when no transaction hash could be determined
    """
    receipt = camelize(check_format({
        "hash": check_hash,
        "height": check_number,
        "status": check_number,
        "index": check_number,
        "tx_result": {
            "log": check_string,
            "events": check_transaction_events,
        },
        "tx": check_string,
    }, transaction), _renamer({
        "txResult": "result",
        "tx": "payload",
        "height": "blockNumber",
        "log": "logs",
        "key": "address",
        "value": "event",
    }))

    result = receipt.get("result")
    if result:
        result["events"] = _index_events(result.get("events"), 0)

        if result.get("logs"):
            try:
                result["logs"] = _parse_logs(result["logs"])
                _lift_log_info(receipt, result["logs"])
            except (TypeError, ValueError):
                result["logs"] = None

    if receipt.get("payload"):
        try:
            receipt["payload"] = json.loads(receipt["payload"])
        except ValueError:
            pass

    if not receipt.get("hash"):
        return None
    return receipt


__all__ = [
    "check_account_state",
    "check_alias_state",
    "check_block",
    "check_block_info",
    "check_deliver_transaction",
    "check_key_value",
    "check_multisig_pending_tx",
    "check_nf_token_item_state",
    "check_nf_token_state",
    "check_status",
    "check_token_account_state",
    "check_token_state",
    "check_transaction_event",
    "check_transaction_events",
    "check_transaction_fee",
    "check_transaction_log",
    "check_transaction_receipt",
    "check_type_attribute",
]
