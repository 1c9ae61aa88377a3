"""
Multisig group accounts.

A :class:`MultiSigWallet` acts for a group account. Transactions of the group
are signed by one of its signers with the group account number and multisig
counter, then wrapped into a message that the signer sends from their own
account. Other signers confirm the pending transaction the same way.
"""
import json
import logging
from typing import Any, Dict, Optional, Union

from . import errors
from .constants import SMALLEST_UNIT_NAME
from .providers.base_provider import BlockTag, Provider, TransactionResponse
from .signer import Signer
from .utils.address import get_multisig_address
from .utils.messages import STD_TX_TYPE
from .utils.misc import check_any, check_big_number, check_format, check_number, check_string
from .utils.properties import check_properties
from .utils.transaction import parse as parse_transaction, populate_transaction

logger = logging.getLogger(__name__)


def _wait_for_receipt(provider: Provider, response: TransactionResponse, overrides: Dict[str, Any],
                      method: str, failure: str) -> Dict[str, Any]:
    confirmations = int(overrides["confirmations"]) if overrides.get("confirmations") else None
    receipt = provider.wait_for_transaction(response.hash, confirmations)
    if receipt and receipt.get("status") == 1:
        return receipt
    raise provider.check_transaction_receipt(receipt, errors.CALL_EXCEPTION, failure, {
        "method": method,
        "receipt": receipt,
    })


def _load_properties(properties: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(properties, str):
        properties = json.loads(properties)
    return dict(properties) if isinstance(properties, dict) else properties


class MultiSigWallet(Signer):
    """
    Signer for a multisig group account.

    Args:
        group_address: Address of the group account
        signer_or_provider: A signer of the group (required to send), or a
            provider for read-only access
        logger: Optional logger instance

    Raises:
        ValidationError: MISSING_ARGUMENT without a group address,
            INVALID_ARGUMENT when ``signer_or_provider`` is neither
    """

    def __init__(self, group_address: str, signer_or_provider: Union[Signer, Provider],
                 logger: Optional[logging.Logger] = None):
        super().__init__()
        self.logger = logger or logging.getLogger(__name__)

        if not group_address:
            errors.throw_error("group address is required", errors.MISSING_ARGUMENT, {"arg": "group address"})
        self.group_address = group_address

        if isinstance(signer_or_provider, Signer):
            self.signer: Optional[Signer] = signer_or_provider
            self.provider = signer_or_provider.provider
        elif isinstance(signer_or_provider, Provider):
            self.signer = None
            self.provider = signer_or_provider
        else:
            errors.throw_error("invalid signer or provider", errors.INVALID_ARGUMENT, {
                "arg": "signerOrProvider",
                "value": signer_or_provider,
            })

        self._multisig_account_state: Optional[Dict[str, Any]] = None
        self._account_number: Optional[int] = None

    @property
    def multisig_account_state(self) -> Optional[Dict[str, Any]]:
        return self._multisig_account_state

    @property
    def address(self) -> str:
        return self.group_address

    @property
    def hex_address(self) -> str:
        return ""

    def _require_signer(self, action: str) -> Signer:
        if not self.signer:
            errors.throw_error(f"{action} require signer", errors.NOT_INITIALIZED, {"arg": "signer"})
        return self.signer

    def _require_provider(self) -> Provider:
        if not self.provider:
            errors.throw_error("missing provider", errors.NOT_INITIALIZED, {"argument": "provider"})
        return self.provider

    # Identity

    def get_address(self) -> str:
        return self.address

    def get_hex_address(self) -> str:
        return self.hex_address

    def get_public_key_type(self) -> str:
        errors.throw_error("multisig wallet does not have public key", errors.NOT_IMPLEMENTED, {})

    def get_compressed_public_key(self) -> str:
        errors.throw_error("multisig wallet does not have public key", errors.NOT_IMPLEMENTED, {})

    def sign_message(self, message: Any, exclude_recovery_param: bool = False) -> str:
        errors.throw_error("multisig wallet does not have private key for signing", errors.NOT_IMPLEMENTED, {})

    def get_nonce(self) -> Optional[int]:
        return self._require_signer("get nonce").get_nonce()

    def clear_nonce(self) -> None:
        self._require_signer("clear nonce").clear_nonce()

    # Signing

    def sign(self, transaction: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> str:
        return self._require_signer("sign multisig transaction").sign(transaction, overrides)

    def _sign_internal(self, transaction: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Sign a group transaction with the group account number and multisig counter."""
        signer = self._require_signer("sign multisig transaction")

        state = self._multisig_account_state
        if not state:
            errors.throw_error("multisig account state not found", errors.NOT_INITIALIZED, {
                "arg": "multisigAccountState",
            })

        overrides = dict(overrides or {})
        overrides["accountNumber"] = state["value"]["accountNumber"]
        overrides["nonce"] = state["value"]["multisig"]["counter"]

        return parse_transaction(signer.sign(transaction, overrides))

    def _send_raw(self, transaction: Dict[str, Any], overrides: Dict[str, Any]) -> TransactionResponse:
        provider = self._require_provider()
        signer = self._require_signer("send multisig transaction")

        tx = populate_transaction(transaction, provider, signer.get_address())

        # The outer transaction is signed with the signer's own account
        overrides = {key: value for key, value in overrides.items() if key not in ("accountNumber", "nonce")}

        signed_transaction = self.sign(tx, overrides)
        try:
            return provider.send_transaction(signed_transaction, overrides)
        except Exception:
            self.clear_nonce()
            raise

    def send_transaction(self, transaction: Dict[str, Any],
                         overrides: Optional[Dict[str, Any]] = None) -> TransactionResponse:
        """
        Submit a transaction of the group account for confirmation.

        Args:
            transaction: Transaction request of the group, with its fee
            overrides: ``memo`` and ``fee`` of the outer transaction plus the
                signing options of the signer

        Returns:
            The response of the outer ``auth-createMutiSigTx`` transaction
        """
        provider = self._require_provider()
        signer = self._require_signer("create multisig transaction")
        overrides = overrides or {}

        signer_address = signer.get_address()
        internal = populate_transaction(transaction, provider, self.group_address)
        signed_internal = self._sign_internal(internal, overrides)
        signed_internal.pop("hash", None)

        group_address = provider.resolve_name(self.group_address)
        tx = provider.get_transaction_request("multisig", "auth-createMutiSigTx", {
            "groupAddress": group_address,
            "stdTx": signed_internal["value"],
            "sender": signer_address,
            "memo": overrides.get("memo") or "",
        })
        tx["fee"] = overrides.get("fee") or provider.get_transaction_fee(None, None, {"tx": tx})

        self.logger.debug(f"Submitting multisig transaction for {group_address}")
        return self._send_raw(tx, overrides)

    def send_confirm_transaction(self, transaction_id: Any, overrides: Optional[Dict[str, Any]] = None) -> Any:
        """
        Confirm a pending transaction of the group.

        Returns:
            The receipt, or the transaction response with ``sendOnly``

        Raises:
            StateError: NOT_AVAILABLE when the pending transaction is unknown
            ProtocolError: CALL_EXCEPTION when the confirmation failed
        """
        provider = self._require_provider()
        signer = self._require_signer("confirm multisig transaction")
        overrides = overrides or {}

        signer_address = signer.get_address()
        group_address = provider.resolve_name(self.group_address)

        pending = self.get_pending_tx(str(transaction_id))
        pending_tx = pending["tx"]
        internal = populate_transaction({
            "type": STD_TX_TYPE,
            "value": {
                "msg": pending_tx["msg"],
                "memo": pending_tx.get("memo") or "",
            },
            "fee": pending_tx.get("fee"),
        }, provider, group_address)
        signed_pending = self._sign_internal(internal, overrides)

        tx = provider.get_transaction_request("multisig", "auth-signMutiSigTx", {
            "groupAddress": group_address,
            "txId": transaction_id,
            "sender": signer_address,
            "signature": signed_pending["value"]["signatures"],
            "memo": overrides.get("memo") or "",
        })
        tx["fee"] = overrides.get("fee") or provider.get_transaction_fee(None, None, {"tx": tx})

        response = self._send_raw(tx, overrides)
        if overrides.get("sendOnly"):
            return response
        return _wait_for_receipt(provider, response, overrides, "auth-signMutiSigTx",
                                 "confirm multisig transaction failed")

    def transfer(self, address_or_name: str, value: Any, overrides: Optional[Dict[str, Any]] = None) -> TransactionResponse:
        """Submit a transfer out of the group account for confirmation."""
        provider = self._require_provider()
        overrides = overrides or {}

        address = provider.resolve_name(address_or_name)
        transaction = provider.get_transaction_request("bank", "bank-send", {
            "from": self.group_address,
            "to": address,
            "value": value,
            "memo": overrides.get("memo") or "",
            "denom": overrides.get("denom") or SMALLEST_UNIT_NAME,
        })
        transaction["fee"] = provider.get_transaction_fee(None, None, {"tx": transaction})

        # The fee override belongs to the outer transaction
        return self.send_transaction(transaction, overrides)

    # Group account

    @classmethod
    def create(cls, properties: Union[str, Dict[str, Any]], signer: Signer,
               overrides: Optional[Dict[str, Any]] = None) -> Union[TransactionResponse, "MultiSigWallet"]:
        """
        Create a group account owned by ``signer``.

        Args:
            properties: ``{"owner", "threshold", "signers"}``; the owner is
                replaced with the signer address
            signer: Owner of the new group account
            overrides: ``sendOnly``, ``confirmations`` and signing options

        Returns:
            The new MultiSigWallet, or the transaction response with ``sendOnly``
        """
        if not isinstance(signer, Signer):
            errors.throw_error("create multisig wallet transaction require signer", errors.MISSING_ARGUMENT, {
                "arg": "signer",
            })
        overrides = overrides or {}
        provider = signer.provider

        properties = _load_properties(properties)
        check_properties(properties, {"owner": True, "threshold": True, "signers": True}, True)

        signer_address = signer.get_address()
        properties["owner"] = signer_address
        multisig = check_format({
            "owner": check_string,
            "threshold": check_number,
            "signers": check_any,
        }, properties)

        transaction = provider.get_transaction_request("multisig", "auth-createMultiSigAccount", {
            "owner": multisig["owner"],
            "threshold": multisig["threshold"],
            "signers": multisig["signers"],
        })
        transaction["fee"] = provider.get_transaction_fee(None, None, {"tx": transaction})

        response = signer.send_transaction(transaction, overrides)
        group_address = get_multisig_address(signer_address, signer.get_nonce() + 1)
        logger.info(f"Multisig group address: {group_address}")

        if overrides.get("sendOnly"):
            return response
        _wait_for_receipt(provider, response, overrides, "auth-createMultiSigAccount",
                          "create multisig wallet failed")
        return cls(group_address, signer)

    @classmethod
    def update(cls, properties: Union[str, Dict[str, Any]], signer: Signer,
               overrides: Optional[Dict[str, Any]] = None) -> Any:
        """Change the threshold and signers of a group account."""
        if not isinstance(signer, Signer):
            errors.throw_error("update multisig wallet transaction require signer", errors.MISSING_ARGUMENT, {
                "arg": "signer",
            })
        overrides = overrides or {}
        provider = signer.provider

        properties = _load_properties(properties)
        check_properties(properties, {"owner": True, "groupAddress": True, "threshold": True, "signers": True}, True)

        properties["owner"] = signer.get_address()
        multisig = check_format({
            "owner": check_string,
            "groupAddress": check_string,
            "threshold": check_big_number,
            "signers": check_any,
        }, properties)

        transaction = provider.get_transaction_request("multisig", "auth-updateMultiSigAccount", multisig)
        transaction["fee"] = provider.get_transaction_fee(None, None, {"tx": transaction})

        response = signer.send_transaction(transaction, overrides)
        if overrides.get("sendOnly"):
            return response
        return _wait_for_receipt(provider, response, overrides, "auth-updateMultiSigAccount",
                                 "update multisig wallet failed")

    @classmethod
    def from_group_address(cls, group_address: str, signer_or_provider: Union[Signer, Provider],
                           overrides: Optional[Dict[str, Any]] = None) -> "MultiSigWallet":
        wallet = cls(group_address, signer_or_provider)
        wallet.refresh(overrides)
        return wallet

    def get_pending_tx(self, tx_id: Any, block_tag: BlockTag = None,
                       overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Fetch a pending transaction of the group.

        Raises:
            StateError: NOT_AVAILABLE when there is no such transaction
        """
        self._require_signer("query multisig pending tx")
        result = self._require_provider().get_multisig_pending_tx(self.group_address, tx_id, block_tag)
        if not result:
            errors.throw_error("Pending tx is not available", errors.NOT_AVAILABLE, {"arg": "groupAddress"})
        return result

    def refresh(self, overrides: Optional[Dict[str, Any]] = None) -> "MultiSigWallet":
        self._multisig_account_state = self.get_state(None, {**(overrides or {}), "queryOnly": True})
        return self

    def get_state(self, block_tag: BlockTag = None, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Fetch the group account state.

        Raises:
            StateError: NOT_AVAILABLE when the account does not exist
            ProtocolError: UNEXPECTED_RESULT when the node returns another account
        """
        result = self._require_provider().get_account_state(self.group_address, block_tag)
        if not result:
            errors.throw_error("Group account state is not available", errors.NOT_AVAILABLE, {"arg": "groupAddress"})
        if result.get("value", {}).get("address") != self.group_address:
            errors.throw_error("Group account address mismatch", errors.UNEXPECTED_RESULT, {
                "expected": self.group_address,
                "returned": result,
            })
        if not (overrides and overrides.get("queryOnly")):
            self._multisig_account_state = result
        return result

    def get_balance(self, block_tag: BlockTag = None) -> int:
        return self._require_provider().get_balance(self.group_address, block_tag)

    def get_account_number(self, block_tag: BlockTag = None) -> int:
        provider = self._require_provider()
        if not self._account_number:
            self._account_number = provider.get_account_number(self.group_address, block_tag)
        return self._account_number
