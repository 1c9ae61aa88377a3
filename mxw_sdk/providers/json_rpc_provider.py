"""
Provider talking to a Tendermint node over JSON-RPC.
"""
import base64
import binascii
import json
import logging
from concurrent.futures import Future
from typing import Any, Dict, List, Optional, Tuple, Union

import requests

from .. import errors
from ..utils.misc import is_undefined_or_null, is_undefined_or_null_or_empty
from ..utils.networks import Network, Networkish, get_network
from ..utils.secp256k1 import to_bytes
from ..utils.web import ConnectionInfo, create_session, fetch_json
from .base_provider import BaseProvider

# Known chain errors, matched against the raw log text in order.
# (log fragment, message, code)
_RESPONSE_LOG_ERRORS: List[Tuple[str, str, str]] = [
    ('"codespace":"mxw","code":1000,', "KYC registration is required", errors.KYC_REQUIRED),
    ('"codespace":"mxw","code":1001,', "Duplicated KYC", errors.EXISTS),
    ('"codespace":"sdk","code":5,', "insufficient funds", errors.INSUFFICIENT_FUNDS),
    ('"codespace":"sdk","code":10,', "insufficient funds", errors.INSUFFICIENT_FUNDS),
    ('"codespace":"sdk","code":14,', "insufficient fees", errors.INSUFFICIENT_FEES),
    ('"codespace":"sdk","code":11,', "invalid amount", errors.NUMERIC_FAULT),
    ('"codespace":"sdk","code":4,', "signature verification failed", errors.SIGNATURE_FAILED),
    ('"codespace":"mxw","code":2001,', "token exists", errors.EXISTS),
    ('"codespace":"mxw","code":2002,', "token not found", errors.NOT_FOUND),
    ('"codespace":"mxw","code":2003,', "token is already approved", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2004,', "token is frozen", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2005,', "token already unfrozen", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2006,', "invalid token", errors.NOT_AVAILABLE),
    ('"codespace":"mxw","code":2007,', "token account is frozen", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2008,', "token account already unfrozen", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2009,', "invalid token minter", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2099,', "exceeded maximum token supply", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2100,', "insufficient token", errors.INSUFFICIENT_FUNDS),
    ('"codespace":"mxw","code":2101,', "invalid token action", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2102,', "invalid new token owner", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2103,', "invalid token owner", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":2104,', "token ownership is already approved", errors.EXISTS),
    ('"codespace":"mxw","code":3001,', "fee setting not found", errors.MISSING_FEES),
    ('"codespace":"mxw","code":3002,', "token fee setting not found", errors.MISSING_FEES),
    ('"codespace":"mxw","code":4001,', "alias in used", errors.EXISTS),
    ('"codespace":"mxw","code":4002,', "no such pending alias", errors.NOT_FOUND),
    ('"codespace":"mxw","code":4003,', "not allowed to create alias", errors.NOT_ALLOWED),
    ('"codespace":"mxw","code":4004,', "alias not found", errors.NOT_FOUND),
    ('"codespace":"mxw","code":4005,', "could not resolve address", errors.NOT_FOUND),
    ("Height must be less than or equal to the current blockchain height", "block not found", errors.NOT_FOUND),
    ("Could not find results for height #", "block not found", errors.NOT_FOUND),
]

# abci_query response codes meaning "nothing stored under this key"
_ABSENT_QUERY_CODES = (6, 7)

_EMPTY_KYC_ADDRESS = "0" * 64


def get_result(payload: Dict[str, Any]) -> Any:
    """Extract the JSON-RPC result, or the error object when there is one."""
    if payload.get("error"):
        return payload["error"]
    return payload.get("result")


def _extract_log(result: Any) -> str:
    if not isinstance(result, dict):
        return ""

    tx_result = result.get("tx_result")
    if isinstance(tx_result, dict) and tx_result.get("log"):
        return tx_result["log"]
    if result.get("log"):
        return result["log"]
    if result.get("data"):
        return result["data"]
    response = result.get("response")
    if isinstance(response, dict) and response.get("log"):
        return response["log"]

    # Normalized receipt, the chain log is kept as the message of the first entry
    receipt_result = result.get("result")
    logs = receipt_result.get("logs") if isinstance(receipt_result, dict) else None
    if isinstance(logs, list) and logs and isinstance(logs[0], dict):
        info = logs[0].get("info")
        if isinstance(info, dict) and info.get("message"):
            return info["message"]
    return ""


def _log_info(log: Any) -> Dict[str, Any]:
    """Best-effort structured view of a log: code, codespace and message."""
    info: Dict[str, Any] = {"code": -1, "codespace": "", "message": "", "log": log}
    parsed = log
    # Logs are sometimes JSON encoded more than once
    while isinstance(parsed, str):
        try:
            parsed = json.loads(parsed)
        except ValueError:
            break
    if isinstance(parsed, dict):
        info["code"] = -1 if is_undefined_or_null_or_empty(parsed.get("code")) else parsed["code"]
        info["codespace"] = parsed.get("codespace") or ""
        info["message"] = parsed.get("message") or ""
    return info


def check_response_log(method: str, result: Any, code: Optional[str] = None,
                       message: Optional[str] = None,
                       params: Optional[Dict[str, Any]] = None) -> errors.MxwError:
    """
    Classify a chain response into an SDK error.

    The error is returned, not raised, so callers can decide whether a
    rejection is fatal.

    Args:
        method: Operation that produced the response
        result: Raw node response
        code: Code to use when the log is not recognized
        message: Message to use when the log carries none
        params: Extra context for the error

    Returns:
        The matching MxwError
    """
    params = params or {}
    log = _extract_log(result)
    if not isinstance(log, str):
        log = json.dumps(log)

    if log:
        if log.startswith("Tx (") and ") not found" in log:
            return errors.create_error("transaction not found", errors.NOT_FOUND, {
                "operation": method,
                "response": result,
            })

        for fragment, reason, error_code in _RESPONSE_LOG_ERRORS:
            if fragment in log:
                return errors.create_error(reason, error_code, {"operation": method, "response": result, **params})

    try:
        parsed = json.loads(log)
        message = f"{parsed['code']}: {parsed['message']}"
    except (ValueError, TypeError, KeyError):
        pass

    return errors.create_error(message or "invalid json response", code or errors.UNEXPECTED_RESULT, {
        "operation": method,
        "response": result,
        **params,
    })


class JsonRpcProvider(BaseProvider):
    """
    Provider backed by a Tendermint RPC endpoint.

    Args:
        url: Node URL or ConnectionInfo (default http://localhost:26657)
        network: Network of the node; detected through ``abci_info`` when
            omitted
        logger: Optional logger instance
        session: Optional requests session, a retrying one is created otherwise
    """

    def __init__(self, url: Union[str, ConnectionInfo, Dict[str, Any], None] = None,
                 network: Optional[Networkish] = None,
                 logger: Optional[logging.Logger] = None,
                 session: Optional[requests.Session] = None):
        # A single network name instead of a URL
        if isinstance(url, str) and network is None and get_network(url) is not None:
            network = url
            url = None

        if isinstance(url, ConnectionInfo):
            connection = url
        elif isinstance(url, dict):
            connection = ConnectionInfo(**url)
        else:
            connection = ConnectionInfo(url=url or "http://localhost:26657")

        if not connection.timeout or connection.timeout < 0:
            connection.timeout = 60
        self.connection = connection
        self._session = session or create_session(connection.retry_count)

        if network is not None:
            super().__init__(network, logger=logger)
            self._detect = False
        else:
            super().__init__(Future(), logger=logger)
            self._detect = True

        if connection.polling_interval:
            self.polling_interval = connection.polling_interval

    def get_network(self) -> Network:
        """Return the network, querying the node for it on first use."""
        if self._detect and not self._ready.done():
            with self._lock:
                if not self._ready.done():
                    self._ready.set_result(self._detect_network())
        return self._ready.result()

    def _detect_network(self) -> Network:
        result = self.send("abci_info", [])
        chain_id: Any = 0
        if isinstance(result, dict) and isinstance(result.get("response"), dict) and result["response"].get("data"):
            chain_id = result["response"]["data"]

        network = get_network(chain_id)
        if network is None:
            network = Network(name="unknown", chain_id=str(chain_id))
        self.logger.debug(f"Detected network {network.name} ({network.chain_id})")
        return network

    def send(self, method: str, params: List[Any]) -> Any:
        """
        Send a raw JSON-RPC request.

        Emits ``rpc`` events before the request and after the response.

        Returns:
            The ``result`` member, or the ``error`` member of the response
        """
        request = {
            "method": method,
            "params": params,
            "id": 42,
            "jsonrpc": "2.0",
        }

        self.emit("rpc", {"action": "request", "request": request, "provider": self})
        self.logger.debug(f"RPC request {method} {params}")

        result = fetch_json(self.connection, json.dumps(request), get_result, self._session)

        self.emit("rpc", {"action": "response", "request": request, "response": result, "provider": self})
        return result

    def check_response_log(self, method: str, result: Any, code: Optional[str] = None,
                           message: Optional[str] = None,
                           params: Optional[Dict[str, Any]] = None) -> errors.MxwError:
        error = check_response_log(method, result, code, message, params)
        self.emit("responseLog", {
            "action": "checkResponseLog",
            "response": result,
            "info": _log_info(_extract_log(result)),
            "code": error.code,
        })
        return error

    def _abci_query(self, path: str, block_tag: Any) -> Any:
        return self.send("abci_query", [path, "", block_tag, None])

    def _query_value(self, method: str, path: str, block_tag: Any,
                     decode_json: bool = True, absent: bool = False) -> Any:
        result = self._abci_query(path, block_tag)
        response = result.get("response") if isinstance(result, dict) else None
        if response:
            if response.get("value"):
                try:
                    value = base64.b64decode(response["value"]).decode("utf-8")
                    return json.loads(value) if decode_json else value
                except (binascii.Error, UnicodeDecodeError, ValueError):
                    pass
            elif absent and response.get("code") in _ABSENT_QUERY_CODES:
                return None
        raise self.check_response_log(method, result)

    def _broadcast(self, method: str, rpc_method: str, signed_transaction: str) -> Dict[str, Any]:
        result = self.send(rpc_method, [signed_transaction])
        if isinstance(result, dict) and result.get("code") == 0 and result.get("hash"):
            result["hash"] = "0x" + result["hash"]
            return result
        raise self.check_response_log(method, result)

    def _get_block_data(self, method: str, rpc_method: str, member: str, block_tag: str) -> Any:
        if block_tag == "0":
            block_tag = str(self.get_block_number())

        result = self.send(rpc_method, [block_tag])
        if not isinstance(result, dict) or not result.get(member):
            error = self.check_response_log(method, result)
            if error.code != errors.NOT_FOUND:
                raise error
            return None
        return result

    def perform(self, method: str, params: Dict[str, Any]) -> Any:
        """
        Run a provider operation against the node.

        Raises:
            InfrastructureError: NOT_IMPLEMENTED for an unknown operation
            MxwError: the classified node error otherwise
        """
        block_tag = params.get("blockTag")

        if method == "sendTransaction":
            return self._broadcast(method, "encode_and_broadcast_tx_sync", params["signedTransaction"])

        if method == "sendTransactionAsync":
            return self._broadcast(method, "encode_and_broadcast_tx_async", params["signedTransaction"])

        if method in ("getTransaction", "getTransactionReceipt"):
            tx_hash = base64.b64encode(to_bytes(params["transactionHash"])).decode("ascii")
            result = self.send("decoded_tx", [tx_hash, None])
            tx_result = result.get("tx_result") if isinstance(result, dict) else None
            if isinstance(tx_result, dict) and tx_result.get("log"):
                try:
                    logs = json.loads(tx_result["log"])
                except ValueError:
                    logs = None
                if logs is not None:
                    result["status"] = 0
                    if isinstance(logs, list) and logs and isinstance(logs[0], dict) and logs[0].get("success") is True:
                        result["status"] = 1
                    return result

            error = self.check_response_log(method, result)
            if error.code == errors.NOT_FOUND:
                return None
            raise error

        if method == "getTransactionFee":
            return self.send("query_fee", [params["unsignedTransaction"]])

        if method == "getTransactionFeeSetting":
            return self._query_value(method, params["path"], block_tag)

        if method == "getBlock":
            return self._get_block_data(method, "block_results", "results", block_tag)

        if method == "getBlockInfo":
            return self._get_block_data(method, "block", "block", block_tag)

        if method == "getBlockNumber":
            return self.send("latest_block_height", [])

        if method == "isWhitelisted":
            result = self.send("is_whitelisted", [params["address"]])
            if not is_undefined_or_null_or_empty(result):
                return result
            raise self.check_response_log(method, result)

        if method == "getKycAddress":
            result = self._abci_query(f"/custom/kyc/get_kyc_address/{params['address']}", block_tag)
            response = result.get("response") if isinstance(result, dict) else None
            if response:
                try:
                    value = ""
                    if not is_undefined_or_null(response.get("value")):
                        value = base64.b64decode(response["value"]).decode("utf-8")
                    return value or _EMPTY_KYC_ADDRESS
                except (binascii.Error, UnicodeDecodeError):
                    pass
            raise self.check_response_log(method, result)

        if method == "getTokenState":
            return self._query_value(method, f"/custom/token/token_data/{params['symbol']}", block_tag)

        if method == "getTokenList":
            return self._query_value(method, "/custom/token/list-token-symbol", block_tag)

        if method == "getTokenAccountState":
            path = f"/custom/token/account/{params['symbol']}/{params['address']}"
            return self._query_value(method, path, block_tag)

        if method == "getNFTokenState":
            return self._query_value(method, f"/custom/nonFungible/token_data/{params['symbol']}", block_tag)

        if method == "getNFTokenItemState":
            path = f"/custom/nonFungible/item_data/{params['symbol']}/{params['itemID']}"
            return self._query_value(method, path, block_tag)

        if method == "getAccountState":
            result = self.send("account", [params["address"]])
            if result:
                try:
                    return json.loads(result)
                except (TypeError, ValueError):
                    return None
            raise self.check_response_log(method, result)

        if method == "resolveName":
            path = f"/custom/nameservice/resolve/{params['name']}"
            return self._query_value(method, path, block_tag, decode_json=False, absent=True)

        if method == "lookupAddress":
            path = f"/custom/nameservice/whois/{params['address']}"
            return self._query_value(method, path, block_tag, decode_json=False, absent=True)

        if method == "getAliasState":
            path = f"/custom/nameservice/pending/{params['address']}"
            return self._query_value(method, path, block_tag, absent=True)

        if method == "getMultiSigPendingTx":
            path = f"/custom/auth/get_multisig_pending_tx/{params['address']}/{params['txID']}"
            return self._query_value(method, path, block_tag, absent=True)

        if method == "getStatus":
            return self.send("status", [])

        errors.throw_error(f"{method} not implemented", errors.NOT_IMPLEMENTED, {"operation": method})
