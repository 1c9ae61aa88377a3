"""
Tests for the provider query surface, on top of canned node results.
"""
import base64
import threading

import pytest

from mxw_sdk import errors
from mxw_sdk.providers import BaseProvider, TransactionResponse, check_block_tag
from mxw_sdk.utils.misc import canonical_json
from mxw_sdk.utils.networks import Network
from mxw_sdk.utils.transaction import get_transaction_request, serialize

from conftest import TEST_FEE, TEST_TX_HASH, FakeProvider, account_state, raw_receipt

ADDRESS = "mxw1j4yh2gfumy8d327n0uvztg9075fjzd59vxf9ae"


def block_results(height):
    return {"height": str(height), "results": {"deliver_tx": None}}


def block_header(height):
    return {
        "block": {
            "header": {
                "height": str(height),
                "time": f"2020-01-01T00:00:{height:02d}Z",
                "total_txs": "7",
                "proposer_address": "AB" * 20,
            },
        },
    }


@pytest.mark.parametrize("tag,expected", [
    (None, "0"),
    ("latest", "0"),
    ("pending", "0"),
    ("earliest", "0"),
    (12, "12"),
    ("12", "12"),
    ("0x1f", "31"),
])
def test_check_block_tag(tag, expected):
    assert check_block_tag(tag) == expected


def test_check_block_tag_rejects_garbage():
    with pytest.raises(errors.ValidationError) as exc_info:
        check_block_tag("yesterday")
    assert exc_info.value.code == errors.INVALID_ARGUMENT


def test_network():
    provider = FakeProvider(network="testnet")
    assert provider.network == Network(name="alloys", chain_id="alloys")
    assert BaseProvider().get_network().chain_id == "maxonrow"


def test_unknown_network():
    with pytest.raises(errors.ValidationError) as exc_info:
        FakeProvider(network="nowhere")
    assert exc_info.value.code == errors.INVALID_ARGUMENT


def test_base_provider_has_no_transport():
    with pytest.raises(errors.InfrastructureError) as exc_info:
        BaseProvider().get_block_number()
    assert exc_info.value.code == errors.NOT_IMPLEMENTED


class TestBlocks:
    """Tests for block number and block queries."""

    def test_get_block_number(self, provider):
        provider.responses["getBlockNumber"] = "15"
        assert provider.get_block_number() == 15
        assert provider.block_number == 15

    @pytest.mark.parametrize("result", [None, "0", "abc"])
    def test_get_block_number_invalid(self, provider, result):
        provider.responses["getBlockNumber"] = result
        with pytest.raises(errors.ProtocolError) as exc_info:
            provider.get_block_number()
        assert exc_info.value.code == errors.UNEXPECTED_RESULT

    def test_get_block(self, provider):
        """The block time is taken from the header of the next block"""
        provider.responses.update({
            "getBlock": lambda params: block_results(params["blockTag"]),
            "getBlockInfo": lambda params: block_header(int(params["blockTag"])),
        })

        block = provider.get_block(12)

        assert block["blockNumber"] == 12
        assert block["blockTime"] == "2020-01-01T00:00:13Z"
        assert block["totalTransactions"] == 7
        assert block["proposerAddress"].startswith("mxwvaloper1")
        assert block["results"] == {"transactions": []}

    def test_get_block_without_next_header(self, provider):
        provider.responses.update({
            "getBlock": lambda params: block_results(params["blockTag"]),
            "getBlockInfo": lambda params: block_header(12) if params["blockTag"] == "12" else None,
        })
        assert provider.get_block("0xc")["blockTime"] is None

    def test_get_latest_block(self, provider):
        provider.responses.update({
            "getBlockNumber": "20",
            "getBlock": lambda params: block_results(params["blockTag"]),
            "getBlockInfo": lambda params: block_header(int(params["blockTag"])),
        })
        assert provider.get_block("latest")["blockNumber"] == 20

    def test_get_block_already_passed_without_data(self, provider):
        """A height the poller has seen pass that has no data is absent"""
        provider.responses.update({"getBlock": None, "getBlockInfo": None})
        provider._mark_emitted("block", 20)

        assert provider.get_block(12) is None

    def test_get_block_waits_for_future_height(self, provider):
        """A height not reached yet is retried on every new block"""
        attempts = []

        def get_block(params):
            attempts.append(params["blockTag"])
            return block_results(12) if len(attempts) >= 3 else None

        provider.responses.update({
            "getBlock": get_block,
            "getBlockInfo": lambda params: block_header(int(params["blockTag"])),
        })

        stop = threading.Event()

        def ticker():
            height = 12
            while not stop.wait(0.01):
                provider.emit("block", height)
                height += 1

        thread = threading.Thread(target=ticker, daemon=True)
        thread.start()
        try:
            block = provider.get_block(12)
        finally:
            stop.set()
            thread.join()

        assert block["blockNumber"] == 12
        assert len(attempts) == 3


class TestAccounts:
    """Tests for account, token and name queries."""

    def test_account_queries(self, provider):
        provider.responses["getAccountState"] = lambda params: account_state(params["address"], balance="5000")

        state = provider.get_account_state(ADDRESS)
        assert state["value"]["accountNumber"] == "7"
        assert provider.get_balance(ADDRESS) == 5000
        assert provider.get_transaction_count(ADDRESS) == 3
        assert provider.get_account_number(ADDRESS) == 7
        assert provider.calls_of("getAccountState")[0] == {"address": ADDRESS, "blockTag": "0"}

    def test_unknown_account(self, provider):
        provider.responses["getAccountState"] = None
        assert provider.get_account_state(ADDRESS) is None
        assert provider.get_balance(ADDRESS) == 0
        assert provider.get_transaction_count(ADDRESS) == 0
        assert provider.get_account_number(ADDRESS) == 0

    def test_resolve_name(self, provider):
        """Addresses resolve to themselves, aliases through the node"""
        provider.responses["resolveName"] = lambda params: ADDRESS if params["name"] == "alice" else None

        assert provider.resolve_name(ADDRESS) == ADDRESS
        assert provider.calls == []
        assert provider.resolve_name("alice") == ADDRESS

        with pytest.raises(errors.ValidationError) as exc_info:
            provider.resolve_name("bob")
        assert exc_info.value.code == errors.INVALID_ADDRESS

    def test_lookup_address(self, provider):
        provider.responses["lookupAddress"] = "alice"
        assert provider.lookup_address(ADDRESS, 5) == "alice"
        assert provider.calls_of("lookupAddress") == [{"address": ADDRESS, "blockTag": "5"}]

    def test_kyc_queries(self, provider):
        provider.responses.update({"isWhitelisted": True, "getKycAddress": "kyc1abc"})
        assert provider.is_whitelisted(ADDRESS) is True
        assert provider.get_kyc_address(ADDRESS) == "kyc1abc"

    def test_token_account_state_default(self, provider):
        provider.responses["getTokenAccountState"] = None
        assert provider.get_token_account_state("TT", ADDRESS) == {"owner": ADDRESS, "frozen": False, "balance": 0}
        assert provider.get_token_account_balance("TT", ADDRESS) == 0

    def test_token_account_balance(self, provider):
        provider.responses["getTokenAccountState"] = {"Owner": ADDRESS, "Frozen": False, "Balance": "250"}
        assert provider.get_token_account_balance("TT", ADDRESS) == 250

    def test_token_list(self, provider):
        provider.responses["getTokenList"] = {"fungible": ["TT"], "nonfungible": ["CARD"]}
        assert provider.get_token_list() == {"fungible": ["TT"], "nonfungible": ["CARD"]}

    def test_nf_token_item_state(self, provider):
        provider.responses["getNFTokenItemState"] = {
            "ID": "item-1",
            "Owner": ADDRESS,
            "Metadata": "",
            "Properties": "p",
            "Frozen": False,
            "TransferLimit": "0",
        }
        item = provider.get_nf_token_item_state("CARD", "item-1")
        assert item == {"id": "item-1", "owner": ADDRESS, "properties": "p", "frozen": False, "transferLimit": 0}
        assert provider.calls_of("getNFTokenItemState")[0]["itemID"] == "item-1"

    def test_alias_state_absent(self, provider):
        provider.responses["getAliasState"] = None
        assert provider.get_alias_state(ADDRESS) is None

    def test_multisig_pending_tx(self, provider):
        provider.responses["getMultiSigPendingTx"] = {
            "id": "2",
            "tx": {"msg": [], "fee": TEST_FEE, "memo": "", "signatures": []},
        }
        assert provider.get_multisig_pending_tx(ADDRESS, 2)["id"] == 2
        assert provider.calls_of("getMultiSigPendingTx")[0] == {"address": ADDRESS, "txID": "2", "blockTag": "0"}

        provider.responses["getMultiSigPendingTx"] = None
        assert provider.get_multisig_pending_tx(ADDRESS, 3) is None


class TestTransactions:
    """Tests for fees, broadcasting and receipts."""

    def test_get_transaction_fee(self, provider):
        """The fee query carries the canonical request, base64 encoded"""
        provider.responses["getTransactionFee"] = TEST_FEE
        tx = get_transaction_request("bank", "bank-send", {"from": ADDRESS, "to": ADDRESS, "value": 1})

        fee = provider.get_transaction_fee("bank", "bank-send", {"from": ADDRESS, "to": ADDRESS, "value": 1})
        assert fee == {"amount": [{"amount": 100000000, "denom": "cin"}], "gas": 0}

        provider.get_transaction_fee(None, None, {"tx": tx})
        queries = provider.calls_of("getTransactionFee")
        assert len(queries) == 2
        for query in queries:
            assert base64.b64decode(query["unsignedTransaction"]).decode("utf-8") == canonical_json(tx)

    def test_get_transaction_fee_setting(self, provider):
        provider.responses["getTransactionFeeSetting"] = {"min": [{"amount": "1", "denom": "cin"}]}
        provider.get_transaction_fee_setting("bank-send")
        assert provider.calls_of("getTransactionFeeSetting")[0]["path"] == "/custom/fee/get_msg_fee_setting/bank-send"

    def test_send_transaction(self, provider):
        """The hash reported by the node identifies the transaction"""
        provider.responses["sendTransaction"] = {"hash": TEST_TX_HASH.upper().replace("0X", "0x"), "blockNumber": 9}
        signed = serialize({"type": "cosmos-sdk/StdTx", "value": {"msg": [], "memo": ""}})

        response = provider.send_transaction(signed)

        assert isinstance(response, TransactionResponse)
        assert response.hash == TEST_TX_HASH
        assert response["blockNumber"] == 9
        assert response["type"] == "cosmos-sdk/StdTx"

    def test_send_transaction_async(self, provider):
        provider.responses["sendTransactionAsync"] = {"hash": TEST_TX_HASH}
        signed = serialize({"type": "cosmos-sdk/StdTx", "value": {"msg": [], "memo": ""}})
        provider.send_transaction(signed, {"async": True})
        assert provider.calls[0][0] == "sendTransactionAsync"

    def test_send_transaction_rejects_bad_hash(self, provider):
        provider.responses["sendTransaction"] = {"hash": "0x1234"}
        signed = serialize({"type": "cosmos-sdk/StdTx", "value": {"msg": [], "memo": ""}})
        with pytest.raises(errors.ValidationError) as exc_info:
            provider.send_transaction(signed)
        assert exc_info.value.code == errors.INVALID_ARGUMENT

    def test_send_transaction_failure_carries_transaction(self, provider):
        provider.responses["sendTransaction"] = errors.create_error("insufficient funds", errors.INSUFFICIENT_FUNDS, {
            "response": {"hash": "AB" * 32, "code": 5},
        })
        signed = serialize({"type": "cosmos-sdk/StdTx", "value": {"msg": [], "memo": ""}})

        with pytest.raises(errors.ChainRejectionError) as exc_info:
            provider.send_transaction(signed)
        assert exc_info.value.transaction["type"] == "cosmos-sdk/StdTx"
        assert exc_info.value.transaction_hash == "AB" * 32

    def test_get_transaction_receipt(self, provider):
        """Confirmations count the including block itself"""
        provider.responses.update({
            "getTransactionReceipt": raw_receipt(TEST_TX_HASH, height="10"),
            "getBlockNumber": "12",
        })

        receipt = provider.get_transaction_receipt(TEST_TX_HASH)

        assert receipt["blockNumber"] == 10
        assert receipt["confirmations"] == 3
        assert provider.get_transaction(TEST_TX_HASH)["hash"] == TEST_TX_HASH

    def test_unknown_transaction_receipt(self, provider):
        provider.responses["getTransactionReceipt"] = None
        assert provider.get_transaction_receipt(TEST_TX_HASH) is None

    def test_wait_for_transaction_without_confirmations(self, provider):
        provider.responses["getTransactionReceipt"] = None
        assert provider.wait_for_transaction(TEST_TX_HASH, 0) is None

    def test_wait_for_transaction_timeout(self, provider):
        """Waiting for more confirmations than available times out"""
        provider.responses.update({
            "getTransactionReceipt": raw_receipt(TEST_TX_HASH, height="10"),
            "getBlockNumber": "10",
        })

        with pytest.raises(errors.MxwTimeoutError) as exc_info:
            provider.wait_for_transaction(TEST_TX_HASH, 5, timeout=0.05)
        assert exc_info.value.code == errors.TIMEOUT
        assert provider.listener_count(TEST_TX_HASH) == 0

    def test_wait_for_transaction_confirmed_by_poller(self, provider):
        provider.responses.update({
            "getTransactionReceipt": raw_receipt(TEST_TX_HASH, height="10"),
            "getBlockNumber": "10",
        })
        result = {}

        def wait():
            result["receipt"] = provider.wait_for_transaction(TEST_TX_HASH, 2, timeout=5)

        thread = threading.Thread(target=wait)
        thread.start()
        while provider.listener_count(TEST_TX_HASH) == 0 and thread.is_alive():
            thread.join(0.01)

        provider.responses["getBlockNumber"] = "11"
        provider._do_poll()
        thread.join()

        assert result["receipt"]["confirmations"] == 2

    def test_transaction_response_wait(self, provider):
        provider.responses.update({
            "getTransactionReceipt": raw_receipt(TEST_TX_HASH, height="10"),
            "getBlockNumber": "12",
        })
        response = TransactionResponse(provider, {"hash": TEST_TX_HASH})

        assert response.wait()["status"] == 1
        assert provider._emitted[f"t:{TEST_TX_HASH}"] == 10

    def test_transaction_response_wait_failed(self, provider):
        provider.responses.update({
            "getTransactionReceipt": raw_receipt(TEST_TX_HASH, height="10", status=0),
            "getBlockNumber": "12",
        })
        response = TransactionResponse(provider, {"hash": TEST_TX_HASH, "type": "cosmos-sdk/StdTx"})

        with pytest.raises(errors.ProtocolError) as exc_info:
            response.wait()
        assert exc_info.value.code == errors.CALL_EXCEPTION
        assert exc_info.value.transaction_hash == TEST_TX_HASH

    def test_check_transaction_receipt(self, provider):
        receipt = {"hash": TEST_TX_HASH, "status": 0}
        error = provider.check_transaction_receipt(receipt, errors.CALL_EXCEPTION, "transfer failed")
        assert error.code == errors.CALL_EXCEPTION
        assert error.reason == "transfer failed"


def test_polling_interval(provider):
    provider.polling_interval = 0.5
    assert provider.polling_interval == 0.5
    for value in (0, -1, "fast", True):
        with pytest.raises(errors.ValidationError):
            provider.polling_interval = value


def test_status(provider):
    provider.responses["getStatus"] = {
        "node_info": {
            "protocol_version": {"p2p": "7", "block": "10", "app": "0"},
            "id": "ab" * 20,
            "listen_addr": "tcp://0.0.0.0:26656",
            "network": "alloys",
            "version": "0.32.1",
            "channels": "4020212223303800",
            "moniker": "node",
            "other": {"tx_index": "on", "rpc_address": "tcp://0.0.0.0:26657"},
        },
        "sync_info": {
            "latest_block_hash": "CD" * 32,
            "latest_app_hash": "EF" * 32,
            "latest_block_height": "120",
            "latest_block_time": "2020-01-01T00:00:00Z",
            "catching_up": False,
        },
        "validator_info": {
            "address": "AB" * 20,
            "pub_key": {"type": "tendermint/PubKeyEd25519", "value": "key"},
            "voting_power": "10",
        },
    }

    status = provider.get_status()

    assert status["nodeInfo"]["listenAddress"] == "tcp://0.0.0.0:26656"
    assert status["syncInfo"]["latestBlockNumber"] == 120
    assert status["syncInfo"]["latestBlockHash"] == "0x" + "cd" * 32
    assert status["validatorInfo"]["votingPower"] == 10
