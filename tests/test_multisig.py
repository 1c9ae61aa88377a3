"""
Tests for multisig group accounts.
"""
import pytest

from mxw_sdk import errors
from mxw_sdk.multisig import MultiSigWallet
from mxw_sdk.providers import TransactionResponse
from mxw_sdk.utils.address import get_multisig_address
from mxw_sdk.utils.signing_key import SigningKey

from conftest import TEST_FEE, TEST_PRIVATE_KEY, TEST_TX_HASH, account_state

GROUP = get_multisig_address(SigningKey(TEST_PRIVATE_KEY).address, 1)


def group_state(address=GROUP, account_number="9", counter="2"):
    """Raw ``account`` payload of a group account."""
    state = account_state(address, account_number=account_number, sequence="0")
    state["value"]["multisig"] = {"threshold": "2", "counter": counter, "signers": [], "pending": {}}
    return state


@pytest.fixture
def group_provider(funded_provider):
    """Funded provider that also knows the group account."""
    funded_provider.responses["getAccountState"] = lambda params: (
        group_state() if params["address"] == GROUP else account_state(params["address"])
    )
    return funded_provider


@pytest.fixture
def group(group_provider, wallet):
    return MultiSigWallet.from_group_address(GROUP, wallet)


class TestConstruction:
    """Tests for building and loading group wallets."""

    def test_requires_group_address(self, wallet):
        with pytest.raises(errors.ValidationError) as exc_info:
            MultiSigWallet("", wallet)
        assert exc_info.value.code == errors.MISSING_ARGUMENT

    def test_requires_signer_or_provider(self):
        with pytest.raises(errors.ValidationError) as exc_info:
            MultiSigWallet(GROUP, "http://localhost:26657")
        assert exc_info.value.code == errors.INVALID_ARGUMENT

    def test_from_group_address(self, group, wallet):
        assert group.address == GROUP
        assert group.signer is wallet
        assert group.multisig_account_state["value"]["accountNumber"] == "9"
        assert group.multisig_account_state["value"]["multisig"]["counter"] == "2"

    def test_read_only(self, group_provider):
        group = MultiSigWallet.from_group_address(GROUP, group_provider)
        assert group.signer is None
        assert group.get_balance() == 1000
        assert group.get_account_number() == 9

    def test_state_not_available(self, provider, wallet):
        provider.responses["getAccountState"] = None
        with pytest.raises(errors.StateError) as exc_info:
            MultiSigWallet.from_group_address(GROUP, wallet)
        assert exc_info.value.code == errors.NOT_AVAILABLE

    def test_state_of_another_account(self, provider, wallet, other_wallet):
        provider.responses["getAccountState"] = lambda params: account_state(other_wallet.address)
        with pytest.raises(errors.ProtocolError) as exc_info:
            MultiSigWallet(GROUP, wallet).get_state()
        assert exc_info.value.code == errors.UNEXPECTED_RESULT

    @pytest.mark.parametrize("method", ["get_public_key_type", "get_compressed_public_key"])
    def test_no_public_key(self, group, method):
        with pytest.raises(errors.InfrastructureError) as exc_info:
            getattr(group, method)()
        assert exc_info.value.code == errors.NOT_IMPLEMENTED

    def test_no_message_signing(self, group):
        with pytest.raises(errors.InfrastructureError) as exc_info:
            group.sign_message("hello")
        assert exc_info.value.code == errors.NOT_IMPLEMENTED


class TestGroupTransactions:
    """Tests for submitting and confirming group transactions."""

    def test_transfer(self, group, group_provider, wallet, other_wallet):
        """The group transaction is signed with the group account and wrapped for the signer"""
        payloads = []

        response = group.transfer(other_wallet.address, 1, {"logSignaturePayload": payloads.append})

        assert isinstance(response, TransactionResponse)
        assert response.hash == TEST_TX_HASH

        internal, outer = payloads
        assert (internal["account_number"], internal["sequence"]) == ("9", "2")
        assert internal["msgs"][0]["value"]["from_address"] == GROUP

        assert (outer["account_number"], outer["sequence"]) == ("7", "3")
        message = outer["msgs"][0]
        assert message["type"] == "auth/createMutiSigTx"
        assert message["value"]["groupAddress"] == GROUP
        assert message["value"]["sender"] == wallet.address
        std_tx = message["value"]["stdTx"]
        assert std_tx["msg"] == internal["msgs"]
        assert len(std_tx["signatures"]) == 1

        assert wallet.get_nonce() == 3
        assert len(group_provider.calls_of("sendTransaction")) == 1

    def test_requires_loaded_state(self, group_provider, wallet, other_wallet):
        group = MultiSigWallet(GROUP, wallet)
        with pytest.raises(errors.StateError) as exc_info:
            group.transfer(other_wallet.address, 1)
        assert exc_info.value.code == errors.NOT_INITIALIZED

    def test_confirm_transaction(self, group, group_provider, wallet, other_wallet):
        pending_msg = {
            "type": "mxw/msgSend",
            "value": {
                "amount": [{"amount": "1", "denom": "cin"}],
                "from_address": GROUP,
                "to_address": other_wallet.address,
            },
        }
        group_provider.responses["getMultiSigPendingTx"] = {
            "id": "1",
            "tx": {"msg": [pending_msg], "fee": TEST_FEE, "memo": "", "signatures": []},
        }
        payloads = []

        response = group.send_confirm_transaction(1, {"sendOnly": True, "logSignaturePayload": payloads.append})

        assert isinstance(response, TransactionResponse)
        assert group_provider.calls_of("getMultiSigPendingTx")[0]["txID"] == "1"

        internal, outer = payloads
        assert internal["msgs"] == [pending_msg]
        assert (internal["account_number"], internal["sequence"]) == ("9", "2")

        message = outer["msgs"][0]
        assert message["type"] == "auth/signMutiSigTx"
        assert message["value"]["txId"] == "1"
        assert message["value"]["sender"] == wallet.address
        assert len(message["value"]["signature"]) == 1

    def test_confirm_and_wait(self, group, group_provider):
        group_provider.responses["getMultiSigPendingTx"] = {
            "id": "1",
            "tx": {"msg": [], "fee": TEST_FEE, "memo": "", "signatures": []},
        }
        receipt = group.send_confirm_transaction(1)
        assert receipt["status"] == 1

    def test_pending_tx_not_available(self, group, group_provider):
        group_provider.responses["getMultiSigPendingTx"] = None
        with pytest.raises(errors.StateError) as exc_info:
            group.get_pending_tx(5)
        assert exc_info.value.code == errors.NOT_AVAILABLE

    def test_pending_tx_requires_signer(self, group_provider):
        group = MultiSigWallet.from_group_address(GROUP, group_provider)
        with pytest.raises(errors.StateError) as exc_info:
            group.get_pending_tx(5)
        assert exc_info.value.code == errors.NOT_INITIALIZED


class TestGroupAccounts:
    """Tests for creating and updating group accounts."""

    def test_create_send_only(self, funded_provider, wallet, other_wallet):
        payloads = []

        response = MultiSigWallet.create(
            {"owner": "", "threshold": 2, "signers": [wallet.address, other_wallet.address]},
            wallet,
            {"sendOnly": True, "logSignaturePayload": payloads.append},
        )

        assert isinstance(response, TransactionResponse)
        assert payloads[0]["msgs"] == [{
            "type": "auth/createMultiSigAccount",
            "value": {
                "owner": wallet.address,
                "threshold": "2",
                "signers": [wallet.address, other_wallet.address],
            },
        }]

    def test_create(self, funded_provider, wallet, other_wallet):
        """The group address follows from the owner and its next sequence"""
        group = MultiSigWallet.create(
            '{"owner": "", "threshold": 1, "signers": ["%s"]}' % other_wallet.address,
            wallet,
        )

        assert isinstance(group, MultiSigWallet)
        assert group.address == get_multisig_address(wallet.address, 4)
        assert group.signer is wallet

    def test_create_requires_signer(self, funded_provider):
        with pytest.raises(errors.ValidationError) as exc_info:
            MultiSigWallet.create({"owner": "", "threshold": 1, "signers": []}, funded_provider)
        assert exc_info.value.code == errors.MISSING_ARGUMENT

    def test_update(self, funded_provider, wallet, other_wallet):
        payloads = []

        receipt = MultiSigWallet.update(
            {"owner": "", "groupAddress": GROUP, "threshold": 1, "signers": [other_wallet.address]},
            wallet,
            {"logSignaturePayload": payloads.append},
        )

        assert receipt["status"] == 1
        assert payloads[0]["msgs"] == [{
            "type": "auth/updateMultiSigAccount",
            "value": {
                "owner": wallet.address,
                "groupAddress": GROUP,
                "newThreshold": "1",
                "newSigners": [other_wallet.address],
            },
        }]
