"""
Pytest fixtures for the mxw SDK tests.
"""
import base64
import json
import threading
import time

import pytest

from mxw_sdk import errors
from mxw_sdk.providers import BaseProvider, JsonRpcProvider, check_response_log
from mxw_sdk.utils import _rate_limited_log
from mxw_sdk.wallet import Wallet

TEST_PRIVATE_KEY = "0x" + "11" * 32
TEST_OTHER_PRIVATE_KEY = "0x" + "22" * 32
TEST_TX_HASH = "0x" + "ab" * 32
TEST_RPC_URL = "http://node.test:26657"

TEST_FEE = {
    "amount": [{"amount": "100000000", "denom": "cin"}],
    "gas": "0",
}


# Make time.sleep instantaneous so polling back-off doesn't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_rate_limited_log():
    _rate_limited_log.reset()
    yield
    _rate_limited_log.reset()


def _manual_start_poller(self):
    # Poll cycles are driven by the tests through _do_poll
    self._poller_stop = threading.Event()
    self._poller = threading.Thread(target=lambda: None)


class FakeProvider(BaseProvider):
    """BaseProvider answering from a table of canned results instead of a node."""

    def __init__(self, responses=None, network="testnet"):
        super().__init__(network)
        self.responses = dict(responses or {})
        self.calls = []

    def perform(self, method, params):
        self.calls.append((method, dict(params)))
        if method not in self.responses:
            errors.throw_error(f"{method} not implemented", errors.NOT_IMPLEMENTED, {"operation": method})
        response = self.responses[method]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response

    def check_response_log(self, method, result, code=None, message=None, params=None):
        return check_response_log(method, result, code, message, params)

    _start_poller = _manual_start_poller

    def calls_of(self, method):
        return [params for name, params in self.calls if name == method]


def account_state(address, account_number="7", sequence="3", balance="1000"):
    """Raw ``account`` payload as the node returns it."""
    return {
        "type": "cosmos-sdk/Account",
        "value": {
            "address": address,
            "coins": [{"denom": "cin", "amount": balance}],
            "public_key": None,
            "account_number": account_number,
            "sequence": sequence,
        },
    }


def raw_receipt(tx_hash=TEST_TX_HASH, height="10", status=1, log=None):
    """Raw ``decoded_tx`` payload of an included transaction."""
    if log is None:
        log = json.dumps([{"success": status == 1, "log": ""}])
    return {
        "hash": tx_hash[2:].upper(),
        "height": height,
        "index": 0,
        "status": status,
        "tx_result": {"log": log, "events": []},
        "tx": json.dumps({"type": "cosmos-sdk/StdTx", "value": {"memo": ""}}),
    }


def b64(text):
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.fixture
def provider():
    """Provider on the alloys test network with no canned results."""
    return FakeProvider()


@pytest.fixture
def wallet(provider):
    """Wallet connected to the fake provider."""
    return Wallet(TEST_PRIVATE_KEY, provider)


@pytest.fixture
def other_wallet():
    return Wallet(TEST_OTHER_PRIVATE_KEY)


@pytest.fixture
def funded_provider(provider, wallet):
    """Fake provider able to carry a transfer of ``wallet`` through to its receipt."""
    provider.responses.update({
        "getTransactionFee": dict(TEST_FEE),
        "getAccountState": lambda params: account_state(params["address"]),
        "sendTransaction": {"hash": TEST_TX_HASH},
        "getTransactionReceipt": lambda params: raw_receipt(params["transactionHash"]),
        "getBlockNumber": "12",
    })
    return provider


@pytest.fixture
def json_rpc_provider(monkeypatch):
    """JSON-RPC provider on the alloys test network whose poller never runs."""
    monkeypatch.setattr(JsonRpcProvider, "_start_poller", _manual_start_poller)
    return JsonRpcProvider(TEST_RPC_URL, "testnet")


def rpc_responder(results):
    """
    Build a requests_mock callback answering JSON-RPC calls by method.

    Each entry of ``results`` is a result value, or a callable taking the
    request params and returning one.
    """
    def respond(request, context):
        body = request.json()
        result = results[body["method"]]
        if callable(result):
            result = result(body["params"])
        return {"jsonrpc": "2.0", "id": body["id"], "result": result}
    return respond
