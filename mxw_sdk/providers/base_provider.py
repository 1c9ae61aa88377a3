"""
Provider base classes.

:class:`Provider` declares the query surface used by signers and wallets.
:class:`BaseProvider` implements it on top of a single ``perform(method,
params)`` hook, and adds the block poller that drives events and
confirmation tracking.
"""
import base64
import concurrent.futures
import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .. import errors
from ..constants import ADDRESS_PREFIX
from ..utils._rate_limited_log import rate_limited_log
from ..utils.address import bech32_decode, get_address
from ..utils.misc import (
    array_of, canonical_json, check_format, check_hash, check_string, hex_data_length, is_hex_string,
    is_undefined_or_null_or_empty, to_int
)
from ..utils.networks import Network, Networkish, get_network
from ..utils.properties import camelize
from ..utils.secp256k1 import compute_address
from ..utils.transaction import get_transaction_request, parse as parse_transaction
from ..utils.web import POLL_AGAIN, poll
from . import formatter

Listener = Callable[..., Any]
BlockTag = Union[str, int, None]

# Emitted transaction entries older than this many blocks are forgotten
EMITTED_EXPIRY_BLOCKS = 12


@dataclass(frozen=True)
class NamedTopic:
    """A plain event name such as ``block``, ``error`` or ``rpc``."""
    name: str

    @property
    def tag(self) -> str:
        return self.name


@dataclass(frozen=True)
class BlockTopic(NamedTopic):
    name: str = "block"


@dataclass(frozen=True)
class TransactionTopic:
    """Fires with the receipt once the transaction is in a block."""
    hash: str

    @property
    def tag(self) -> str:
        return f"tx:{self.hash}"


@dataclass(frozen=True)
class AddressTopic:
    """Fires with the new balance whenever the balance of the address changes."""
    address: str

    @property
    def tag(self) -> str:
        return f"address:{self.address}"


Topic = Union[NamedTopic, TransactionTopic, AddressTopic]
EventType = Union[Topic, str]


def _is_account_address(value: str) -> bool:
    if not value.startswith(ADDRESS_PREFIX + "1"):
        return False
    try:
        bech32_decode(value)
    except errors.ValidationError:
        return False
    return True


def get_event_topic(event_name: EventType) -> Topic:
    """
    Convert an event name into a topic.

    A 20 byte hex string or a bech32 account address watches a balance, a 32
    byte hex string watches a transaction and any other string without a
    colon is a named event.

    Raises:
        ValidationError: INVALID_ARGUMENT for anything else
    """
    if isinstance(event_name, (NamedTopic, TransactionTopic, AddressTopic)):
        return event_name

    if isinstance(event_name, str):
        if hex_data_length(event_name) == 20:
            return AddressTopic(compute_address(event_name))
        if _is_account_address(event_name):
            return AddressTopic(event_name)

        name = event_name.lower()
        if hex_data_length(name) == 32:
            return TransactionTopic(name)
        if name == "block":
            return BlockTopic()
        if ":" not in name:
            return NamedTopic(name)

    errors.throw_error(f"invalid event - {event_name}", errors.INVALID_ARGUMENT, {"arg": "eventName", "value": event_name})


@dataclass
class _Event:
    topic: Topic
    listener: Listener
    once: bool


def check_block_tag(block_tag: BlockTag) -> str:
    """
    Normalize a block tag to a decimal height string; "0" means latest.

    Raises:
        ValidationError: INVALID_ARGUMENT for an unparsable tag
    """
    if block_tag is None or block_tag in ("earliest", "latest", "pending"):
        return "0"

    if is_hex_string(block_tag):
        return str(int(block_tag[2:] or "0", 16))

    try:
        return str(int(block_tag))
    except (TypeError, ValueError):
        errors.throw_error("invalid blockTag", errors.INVALID_ARGUMENT, {"arg": "blockTag", "value": block_tag})


class TransactionResponse(dict):
    """
    A broadcast transaction.

    Holds the parsed transaction (``type``, ``value``, ``hash``) and can
    wait for its inclusion.
    """

    def __init__(self, provider: "BaseProvider", transaction: Dict[str, Any]):
        super().__init__(transaction)
        self._provider = provider

    @property
    def hash(self) -> Optional[str]:
        return self.get("hash")

    def wait(self, confirmations: int = 1, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """
        Wait until the transaction has ``confirmations`` confirmations.

        Returns:
            The receipt, or None when ``confirmations`` is 0 and the
            transaction is not known yet

        Raises:
            ProtocolError: CALL_EXCEPTION when the transaction failed
        """
        provider = self._provider
        tag = f"t:{self.hash}"

        # The transaction must exist, so a missing receipt means "not yet"
        if confirmations != 0:
            provider._mark_emitted(tag, "pending")

        receipt = provider.wait_for_transaction(self.hash, confirmations, timeout=timeout)
        if receipt is None and confirmations == 0:
            return None

        # No longer pending, the poller may expire it
        provider._mark_emitted(tag, receipt.get("blockNumber"))

        if receipt.get("status") == 0:
            errors.throw_error("transaction failed", errors.CALL_EXCEPTION, {
                "transaction_hash": self.hash,
                "transaction": dict(self),
            })
        return receipt


class Provider(ABC):
    """Read and broadcast access to an mxw chain."""

    @abstractmethod
    def get_network(self) -> Network:
        pass

    @abstractmethod
    def get_block_number(self) -> int:
        pass

    @abstractmethod
    def get_block(self, block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_account_state(self, address_or_name: str, block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_balance(self, address_or_name: str, block_tag: BlockTag = None) -> int:
        pass

    @abstractmethod
    def get_transaction_count(self, address_or_name: str, block_tag: BlockTag = None) -> int:
        pass

    @abstractmethod
    def get_account_number(self, address_or_name: str, block_tag: BlockTag = None) -> int:
        pass

    @abstractmethod
    def get_transaction_request(self, route: str, transaction_type: str,
                                overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_transaction_fee(self, route: Optional[str], transaction_type: Optional[str],
                            overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        pass

    @abstractmethod
    def send_transaction(self, signed_transaction: str,
                         overrides: Optional[Dict[str, Any]] = None) -> TransactionResponse:
        pass

    @abstractmethod
    def get_transaction_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def wait_for_transaction(self, transaction_hash: str, confirmations: Optional[int] = 1,
                             timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def check_transaction_receipt(self, receipt: Any, code: Optional[str] = None,
                                  message: Optional[str] = None,
                                  params: Optional[Dict[str, Any]] = None) -> errors.MxwError:
        pass

    @abstractmethod
    def resolve_name(self, name: str, block_tag: BlockTag = None) -> str:
        pass

    @abstractmethod
    def lookup_address(self, address: str, block_tag: BlockTag = None) -> Optional[str]:
        pass

    @abstractmethod
    def on(self, event_name: EventType, listener: Listener) -> "Provider":
        pass

    @abstractmethod
    def once(self, event_name: EventType, listener: Listener) -> "Provider":
        pass

    @abstractmethod
    def emit(self, event_name: EventType, *args: Any) -> bool:
        pass

    @abstractmethod
    def listener_count(self, event_name: Optional[EventType] = None) -> int:
        pass

    @abstractmethod
    def listeners(self, event_name: EventType) -> List[Listener]:
        pass

    @abstractmethod
    def remove_all_listeners(self, event_name: Optional[EventType] = None) -> "Provider":
        pass

    @abstractmethod
    def remove_listener(self, event_name: EventType, listener: Listener) -> "Provider":
        pass

    def add_event_listener(self, event_name: EventType, listener: Listener) -> "Provider":
        return self.on(event_name, listener)


class BaseProvider(Provider):
    """
    Provider logic shared by every transport.

    Subclasses implement :meth:`perform` (and :meth:`check_response_log`),
    everything else is built on top of them.

    Args:
        network: Network (or a Future resolving to one); defaults to homestead
        logger: Optional logger instance
    """

    def __init__(self, network: Union[Networkish, "Future[Network]", None] = None,
                 logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()

        if isinstance(network, Future):
            self._ready: "Future[Network]" = network
        else:
            known_network = get_network("homestead" if network is None else network)
            if known_network is None:
                errors.throw_error("invalid network", errors.INVALID_ARGUMENT, {"arg": "network", "value": network})
            self._ready = Future()
            self._ready.set_result(known_network)

        self._last_block_number = -2

        # Balances being watched for changes
        self._balances: Dict[str, int] = {}

        self._events: List[_Event] = []

        self._polling_interval = 4.0
        self._poller: Optional[threading.Thread] = None
        self._poller_stop: Optional[threading.Event] = None

        # What was emitted, so a node that has not indexed it yet does not
        # make it look absent:
        #   block    - the most recent emitted block
        #   t:<hash> - block of an emitted transaction, or "pending"
        self._emitted: Dict[str, Union[int, str, None]] = {"block": -2}

        self._fast_block_number: Optional[int] = None
        self._fast_block_number_future: Optional["Future[int]"] = None
        self._fast_query_date = 0.0

    # Network

    @property
    def network(self) -> Network:
        return self.get_network()

    def get_network(self) -> Network:
        return self._ready.result()

    @property
    def block_number(self) -> Optional[int]:
        return self._fast_block_number

    # Transport hooks

    def perform(self, method: str, params: Dict[str, Any]) -> Any:
        errors.throw_error(f"{method} not implemented", errors.NOT_IMPLEMENTED, {"operation": method})

    def check_response_log(self, method: str, result: Any, code: Optional[str] = None,
                           message: Optional[str] = None,
                           params: Optional[Dict[str, Any]] = None) -> errors.MxwError:
        errors.throw_error(f"{method} not implemented", errors.NOT_IMPLEMENTED, {"operation": method})

    # Blocks and status

    def get_block_number(self) -> int:
        """
        Return the latest block height.

        Raises:
            ProtocolError: UNEXPECTED_RESULT for a missing or non-positive height
        """
        self.get_network()
        result = self.perform("getBlockNumber", {})
        try:
            value = to_int(result) if result else 0
        except ValueError:
            value = 0
        if value <= 0:
            errors.throw_error("invalid response - getBlockNumber", errors.UNEXPECTED_RESULT, {"result": result})
        self._set_fast_block_number(value)
        return value

    def get_status(self) -> Dict[str, Any]:
        self.get_network()
        return formatter.check_status(self.perform("getStatus", {}))

    def get_block(self, block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        """
        Fetch a block with its transactions, header and timestamp.

        A block that is not available yet is waited for, block by block. A
        height the poller has already seen pass that still has no data
        resolves to None.

        Args:
            block_tag: Height, hex height or "latest"
        """
        self.get_network()
        block_number = int(check_block_tag(block_tag))
        if block_number == 0:
            return self.get_block(self.get_block_number())

        def fetch_block():
            block = self.perform("getBlock", {"blockTag": str(block_number)})
            info = self.perform("getBlockInfo", {"blockTag": str(block_number)})
            # The timestamp is only carried by the header of the next block
            next_info = self.perform("getBlockInfo", {"blockTag": str(block_number + 1)})

            if is_undefined_or_null_or_empty(block) or is_undefined_or_null_or_empty(info):
                with self._lock:
                    emitted_block = self._emitted["block"]
                if block_number <= emitted_block:
                    return None
                return POLL_AGAIN

            result = formatter.check_block(block)
            block_info = formatter.check_block_info(info) or {}
            block_info["blockTime"] = None
            if not is_undefined_or_null_or_empty(next_info):
                next_block_info = formatter.check_block_info(next_info)
                if next_block_info:
                    block_info["blockTime"] = next_block_info.get("blockTime")

            result.update(block_info)
            return result

        return poll(fetch_block, once_block=self)

    # Accounts

    def get_account_state(self, address_or_name: str, block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        self.get_network()
        address = self.resolve_name(address_or_name)
        result = self.perform("getAccountState", {"address": address, "blockTag": check_block_tag(block_tag)})
        if result:
            result = formatter.check_account_state(result)
        return result

    def get_account_number(self, address_or_name: str, block_tag: BlockTag = None) -> int:
        state = self.get_account_state(address_or_name, block_tag)
        if state and state.get("value") and state["value"].get("accountNumber"):
            return to_int(state["value"]["accountNumber"])
        return 0

    def get_balance(self, address_or_name: str, block_tag: BlockTag = None) -> int:
        state = self.get_account_state(address_or_name, block_tag)
        if state and state.get("value"):
            coins = state["value"].get("coins") or []
            if coins and coins[0].get("amount"):
                return to_int(coins[0]["amount"])
        return 0

    def get_transaction_count(self, address_or_name: str, block_tag: BlockTag = None) -> int:
        state = self.get_account_state(address_or_name, block_tag)
        if state and state.get("value") and state["value"].get("sequence"):
            return to_int(state["value"]["sequence"])
        return 0

    # Tokens

    def get_token_state(self, symbol: str, block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        self.get_network()
        result = self.perform("getTokenState", {"symbol": symbol, "blockTag": check_block_tag(block_tag)})
        if result:
            result = formatter.check_token_state(result)
        return result

    def get_token_list(self, block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        self.get_network()
        result = self.perform("getTokenList", {"blockTag": check_block_tag(block_tag)})
        if result:
            result = camelize(check_format({
                "fungible": array_of(check_string),
                "nonfungible": array_of(check_string),
            }, result))
        return result

    def get_token_account_state(self, symbol: str, address_or_name: str,
                                block_tag: BlockTag = None) -> Dict[str, Any]:
        self.get_network()
        address = self.resolve_name(address_or_name)
        result = self.perform("getTokenAccountState", {
            "symbol": symbol,
            "address": address,
            "blockTag": check_block_tag(block_tag),
        })
        if result:
            return formatter.check_token_account_state(result)
        return {"owner": address, "frozen": False, "balance": 0}

    def get_token_account_balance(self, symbol: str, address_or_name: str, block_tag: BlockTag = None) -> int:
        state = self.get_token_account_state(symbol, address_or_name, block_tag)
        return state.get("balance") or 0

    def get_nf_token_state(self, symbol: str, block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        self.get_network()
        result = self.perform("getNFTokenState", {"symbol": symbol, "blockTag": check_block_tag(block_tag)})
        if result:
            result = formatter.check_nf_token_state(result)
        return result

    def get_nf_token_item_state(self, symbol: str, item_id: str,
                                block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        self.get_network()
        result = self.perform("getNFTokenItemState", {
            "symbol": symbol,
            "itemID": item_id,
            "blockTag": check_block_tag(block_tag),
        })
        if result:
            result = formatter.check_nf_token_item_state(result)
        return result

    # Names and KYC

    def get_alias_state(self, address: str, block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        self.get_network()
        result = self.perform("getAliasState", {"address": address, "blockTag": check_block_tag(block_tag)})
        if result:
            return formatter.check_alias_state(result)
        return None

    def is_whitelisted(self, address_or_name: str, block_tag: BlockTag = None) -> bool:
        self.get_network()
        return self.perform("isWhitelisted", {"address": address_or_name, "blockTag": check_block_tag(block_tag)})

    def get_kyc_address(self, address_or_name: str, block_tag: BlockTag = None) -> str:
        self.get_network()
        return self.perform("getKycAddress", {"address": address_or_name, "blockTag": check_block_tag(block_tag)})

    def resolve_name(self, name: str, block_tag: BlockTag = None) -> str:
        """
        Resolve an alias to an address; addresses are returned as is.

        Raises:
            ValidationError: INVALID_ADDRESS when the name does not resolve
        """
        try:
            return get_address(name)
        except errors.ValidationError:
            pass

        self.get_network()
        address = self.perform("resolveName", {"name": name, "blockTag": check_block_tag(block_tag)})
        if not address:
            errors.throw_error("invalid address", errors.INVALID_ADDRESS, {"value": name})
        return address

    def lookup_address(self, address: str, block_tag: BlockTag = None) -> Optional[str]:
        address = get_address(address)
        self.get_network()
        return self.perform("lookupAddress", {"address": address, "blockTag": check_block_tag(block_tag)})

    # Multisig

    def get_multisig_pending_tx(self, group_address: str, tx_id: Any,
                                block_tag: BlockTag = None) -> Optional[Dict[str, Any]]:
        self.get_network()
        result = self.perform("getMultiSigPendingTx", {
            "address": group_address,
            "txID": str(tx_id),
            "blockTag": check_block_tag(block_tag),
        })
        if result:
            return formatter.check_multisig_pending_tx(result)
        return None

    # Transactions

    def get_transaction_request(self, route: str, transaction_type: str,
                                overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return get_transaction_request(route, transaction_type, overrides)

    def get_transaction_fee(self, route: Optional[str], transaction_type: Optional[str],
                            overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Quote the fee of a transaction.

        Args:
            route: Assembler route, unused when ``overrides["tx"]`` is given
            transaction_type: Assembler transaction type
            overrides: Message parameters, or ``{"tx": request}`` for an
                already assembled request
        """
        self.get_network()
        if overrides and overrides.get("tx"):
            tx = overrides["tx"]
        else:
            tx = get_transaction_request(route, transaction_type, overrides)

        unsigned = base64.b64encode(canonical_json(tx).encode("utf-8")).decode("ascii")
        fee = self.perform("getTransactionFee", {"unsignedTransaction": unsigned})
        return formatter.check_transaction_fee(fee)

    def get_transaction_fee_setting(self, transaction_type: str) -> Any:
        self.get_network()
        return self.perform("getTransactionFeeSetting", {
            "path": f"/custom/fee/get_msg_fee_setting/{transaction_type}",
            "blockTag": check_block_tag(None),
        })

    def send_transaction(self, signed_transaction: str,
                         overrides: Optional[Dict[str, Any]] = None) -> TransactionResponse:
        """
        Broadcast a signed transaction.

        Args:
            signed_transaction: Base64 encoded signed transaction
            overrides: ``{"async": True}`` returns without waiting for CheckTx

        Returns:
            The transaction response

        Raises:
            MxwError: the classified broadcast failure, with ``transaction``
                (and ``transaction_hash`` when known) attached
        """
        self.get_network()
        method = "sendTransactionAsync" if overrides and overrides.get("async") else "sendTransaction"
        try:
            result = self.perform(method, {"signedTransaction": signed_transaction})
        except errors.MxwError as error:
            error.transaction = parse_transaction(signed_transaction)
            response = getattr(error, "response", None)
            if isinstance(response, dict) and response.get("hash"):
                error.transaction_hash = response["hash"]
            raise

        response = self._wrap_transaction(parse_transaction(signed_transaction),
                                          result.get("hash"), result.get("blockNumber"))
        self.logger.info(f"Transaction sent: {response.hash}")
        return response

    def _wrap_transaction(self, tx: Dict[str, Any], hash: Optional[str] = None,
                          block_number: Optional[int] = None) -> TransactionResponse:
        if hash is not None:
            if hex_data_length(hash) != 32:
                errors.throw_error("invalid response - sendTransaction", errors.INVALID_ARGUMENT, {
                    "expected_hash": tx.get("hash"),
                    "returned_hash": hash,
                })

            # The node hashes the amino encoding, which cannot be reproduced
            # here, so the reported hash replaces the local one.
            tx["hash"] = hash.lower()

        if not tx.get("blockNumber") and block_number:
            tx["blockNumber"] = block_number

        return TransactionResponse(self, tx)

    def get_transaction(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return self.get_transaction_receipt(transaction_hash)

    def _fetch_transaction_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        result = self.perform("getTransactionReceipt", {"transactionHash": transaction_hash})
        if result is None:
            return None
        return formatter.check_transaction_receipt(result)

    def get_transaction_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a transaction receipt with its confirmation count.

        A transaction this provider knows to be pending is waited for, block
        by block; an unknown one resolves to None.
        """
        self.get_network()
        transaction_hash = check_hash(transaction_hash, True)

        def fetch_receipt():
            receipt = self._fetch_transaction_receipt(transaction_hash)
            if receipt is None:
                with self._lock:
                    emitted = self._emitted.get(f"t:{transaction_hash}")
                if emitted is None:
                    return None
                return POLL_AGAIN

            if receipt.get("blockNumber") is None:
                receipt["confirmations"] = 0
            elif receipt.get("confirmations") is None:
                # Pessimistic, the fast block number may lag behind
                block_number = self._get_fast_block_number()
                receipt["confirmations"] = max(1, block_number - receipt["blockNumber"] + 1)
            return receipt

        return poll(fetch_receipt, once_block=self)

    def check_transaction_receipt(self, receipt: Any, code: Optional[str] = None,
                                  message: Optional[str] = None,
                                  params: Optional[Dict[str, Any]] = None) -> errors.MxwError:
        return self.check_response_log("", receipt, code, message, params)

    def wait_for_transaction(self, transaction_hash: str, confirmations: Optional[int] = 1,
                             timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """
        Wait until a transaction has at least ``confirmations`` confirmations.

        Args:
            transaction_hash: 0x-prefixed transaction hash
            confirmations: Required confirmations, 0 returns immediately
            timeout: Seconds to wait for further confirmations

        Raises:
            MxwTimeoutError: TIMEOUT when ``timeout`` elapses first
        """
        if confirmations is None:
            confirmations = 1

        receipt = self.get_transaction_receipt(transaction_hash)
        if confirmations == 0 or (receipt and receipt.get("confirmations", 0) >= confirmations):
            return receipt

        confirmed: "Future[Dict[str, Any]]" = Future()

        def handler(receipt):
            if receipt.get("confirmations", 0) < confirmations:
                return
            self.remove_listener(transaction_hash, handler)
            if not confirmed.done():
                confirmed.set_result(receipt)

        self.on(transaction_hash, handler)
        try:
            return confirmed.result(timeout)
        except concurrent.futures.TimeoutError:
            self.remove_listener(transaction_hash, handler)
            errors.throw_error("timeout", errors.TIMEOUT, {"transaction_hash": transaction_hash, "timeout": timeout})

    def _mark_emitted(self, tag: str, value: Union[int, str, None]) -> None:
        with self._lock:
            self._emitted[tag] = value

    # Events

    def _add_event_listener(self, event_name: EventType, listener: Listener, once: bool) -> None:
        event = _Event(topic=get_event_topic(event_name), listener=listener, once=once)
        with self._lock:
            self._events.append(event)
        self.polling = True

    def on(self, event_name: EventType, listener: Listener) -> "BaseProvider":
        self._add_event_listener(event_name, listener, False)
        return self

    def once(self, event_name: EventType, listener: Listener) -> "BaseProvider":
        self._add_event_listener(event_name, listener, True)
        return self

    def emit(self, event_name: EventType, *args: Any) -> bool:
        """
        Call every listener of ``event_name`` with ``args``.

        Listeners run on the calling thread; a failing listener is logged
        and does not affect the others.

        Returns:
            True if at least one listener was called
        """
        topic = get_event_topic(event_name)
        with self._lock:
            matched = [event for event in self._events if event.topic == topic]
            self._events = [event for event in self._events if not (event.topic == topic and event.once)]
            idle = len(self._events) == 0

        if idle:
            self.polling = False

        for event in matched:
            try:
                event.listener(*args)
            except Exception as e:
                self.logger.warning(f"Listener for {topic.tag} failed: {e}")

        return len(matched) > 0

    def listener_count(self, event_name: Optional[EventType] = None) -> int:
        with self._lock:
            if event_name is None:
                return len(self._events)
            topic = get_event_topic(event_name)
            return len([event for event in self._events if event.topic == topic])

    def listeners(self, event_name: EventType) -> List[Listener]:
        topic = get_event_topic(event_name)
        with self._lock:
            return [event.listener for event in self._events if event.topic == topic]

    def remove_all_listeners(self, event_name: Optional[EventType] = None) -> "BaseProvider":
        with self._lock:
            if event_name is None:
                self._events = []
            else:
                topic = get_event_topic(event_name)
                self._events = [event for event in self._events if event.topic != topic]
            idle = len(self._events) == 0

        if idle:
            self.polling = False
        return self

    def remove_listener(self, event_name: EventType, listener: Listener) -> "BaseProvider":
        topic = get_event_topic(event_name)
        with self._lock:
            for index, event in enumerate(self._events):
                if event.topic == topic and event.listener == listener:
                    del self._events[index]
                    break
            idle = len(self._events) == 0

        if idle:
            self.polling = False
        return self

    # Polling

    @property
    def polling(self) -> bool:
        return self._poller is not None

    @polling.setter
    def polling(self, value: bool) -> None:
        with self._lock:
            if value and self._poller is None:
                self._start_poller()
            elif not value and self._poller is not None:
                self._stop_poller()

    def _start_poller(self) -> None:
        stop = threading.Event()
        self._poller_stop = stop
        self._poller = threading.Thread(target=self._poll_loop, args=(stop,), name="mxw-block-poller", daemon=True)
        self._poller.start()
        self.logger.debug("Block poller started")

    def _stop_poller(self) -> None:
        if self._poller_stop is not None:
            self._poller_stop.set()
        self._poller = None
        self._poller_stop = None
        self.logger.debug("Block poller stopped")

    def _poll_loop(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self._do_poll()
            except Exception as e:
                rate_limited_log(f"Block poll failed: {e}", "error", 60, self.logger)
            stop.wait(self._polling_interval)

    @property
    def polling_interval(self) -> float:
        return self._polling_interval

    @polling_interval.setter
    def polling_interval(self, value: float) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            errors.throw_error("invalid polling interval", errors.INVALID_ARGUMENT, {
                "arg": "pollingInterval",
                "value": value,
            })
        self._polling_interval = value

    def reset_events_block(self, block_number: int) -> None:
        """Rewind the poller so blocks from ``block_number`` on are emitted again."""
        with self._lock:
            self._last_block_number = block_number - 1
            self._emitted["block"] = block_number - 1
        if self.polling:
            self._do_poll()

    def _do_poll(self) -> None:
        """
        Run one poll cycle.

        Emits ``block`` for each new height, then re-checks every watched
        transaction and address. A failed block number query and failures of
        a single watch are emitted as ``error`` events.
        """
        try:
            block_number = self.get_block_number()
        except errors.MxwError as e:
            rate_limited_log(f"Unable to poll block number: {e.reason}", "warning", 60, self.logger)
            self.emit("error", e)
            return

        with self._lock:
            if block_number == self._last_block_number:
                return

            # First cycle only announces the current block
            if self._emitted["block"] == -2:
                self._emitted["block"] = block_number - 1
            new_blocks = range(self._emitted["block"] + 1, block_number + 1)

            if self._emitted["block"] != block_number:
                self._emitted["block"] = block_number
                for key in list(self._emitted.keys()):
                    if key == "block":
                        continue
                    emitted = self._emitted[key]
                    # Pending transactions are expired by TransactionResponse.wait
                    if emitted == "pending" or emitted is None:
                        continue
                    if block_number - emitted > EMITTED_EXPIRY_BLOCKS:
                        del self._emitted[key]

            if self._last_block_number == -2:
                self._last_block_number = block_number - 1

            topics = []
            for event in self._events:
                if event.topic not in topics:
                    topics.append(event.topic)

        self.logger.debug(f"Poll cycle at block {block_number}, {len(topics)} topics")

        for height in new_blocks:
            self.emit(BlockTopic(), height)

        new_balances: Dict[str, int] = {}
        for topic in topics:
            if isinstance(topic, TransactionTopic):
                self._poll_transaction(topic, block_number)
            elif isinstance(topic, AddressTopic):
                self._poll_balance(topic, new_balances)

        with self._lock:
            self._last_block_number = block_number
            self._balances = new_balances

    def _poll_transaction(self, topic: TransactionTopic, block_number: int) -> None:
        try:
            receipt = self._fetch_transaction_receipt(topic.hash)
        except errors.MxwError as e:
            self.emit("error", e)
            return

        if not receipt or receipt.get("blockNumber") is None:
            return

        receipt["hash"] = receipt["hash"].lower()
        receipt["confirmations"] = max(1, block_number - receipt["blockNumber"] + 1)
        self._mark_emitted(f"t:{topic.hash}", receipt["blockNumber"])
        self.emit(topic, receipt)

    def _poll_balance(self, topic: AddressTopic, new_balances: Dict[str, int]) -> None:
        address = topic.address
        with self._lock:
            last_balance = self._balances.get(address)
        if last_balance is not None:
            new_balances[address] = last_balance

        try:
            balance = self.get_balance(address, "latest")
        except errors.MxwError as e:
            self.emit("error", e)
            return

        if last_balance is not None and balance == last_balance:
            return
        new_balances[address] = balance
        self.emit(topic, balance)

    # Fast block number

    def _get_fast_block_number(self) -> int:
        """
        Return a recent block number without querying on every call.

        The cached value is refreshed once it is older than twice the
        polling interval; concurrent callers share one query.
        """
        with self._lock:
            now = time.monotonic()
            stale = now - self._fast_query_date > 2 * self._polling_interval
            owner = stale or self._fast_block_number_future is None
            if owner:
                self._fast_query_date = now
                future: "Future[int]" = Future()
                self._fast_block_number_future = future
            else:
                future = self._fast_block_number_future

        if owner:
            try:
                block_number = self.get_block_number()
            except errors.MxwError as e:
                future.set_exception(e)
                raise
            with self._lock:
                if self._fast_block_number is None or block_number > self._fast_block_number:
                    self._fast_block_number = block_number
                future.set_result(self._fast_block_number)

        return future.result()

    def _set_fast_block_number(self, block_number: int) -> None:
        with self._lock:
            # Older block, maybe a stale request
            if self._fast_block_number is not None and block_number < self._fast_block_number:
                return

            self._fast_query_date = time.monotonic()

            if self._fast_block_number is None or block_number > self._fast_block_number:
                self._fast_block_number = block_number
                future: "Future[int]" = Future()
                future.set_result(block_number)
                self._fast_block_number_future = future
