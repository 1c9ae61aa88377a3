"""
Private key wallet.

A :class:`Wallet` signs transactions with a secp256k1 key and, when connected
to a provider, populates and broadcasts them.
"""
import hashlib
import logging
import os
from typing import Any, Dict, Optional, Union

from . import errors
from .constants import SMALLEST_UNIT_NAME
from .providers.base_provider import BlockTag, Provider, TransactionResponse
from .signer import Signer
from .utils.misc import canonical_json, canonicalize, is_undefined_or_null_or_empty, to_int
from .utils.properties import check_properties, resolve_properties, shallow_copy
from .utils.secp256k1 import BytesLike, hash_message, join_signature
from .utils.signing_key import SigningKey
from .utils.transaction import populate_transaction, serialize


class Wallet(Signer):
    """
    Wallet backed by a private key.

    Args:
        private_key: Hex private key or SigningKey
        provider: Optional provider for queries and broadcasting
        logger: Optional logger instance
    """

    def __init__(self, private_key: Union[SigningKey, BytesLike], provider: Optional[Provider] = None,
                 logger: Optional[logging.Logger] = None):
        super().__init__()
        self.logger = logger or logging.getLogger(__name__)
        self.signing_key = private_key if isinstance(private_key, SigningKey) else SigningKey(private_key)
        self.provider = provider
        self._account_number: Optional[int] = None

    @property
    def address(self) -> str:
        return self.signing_key.address

    @property
    def hex_address(self) -> str:
        return self.signing_key.hex_address

    @property
    def private_key(self) -> str:
        return self.signing_key.private_key

    @property
    def public_key(self) -> str:
        return self.signing_key.compressed_public_key

    @property
    def public_key_type(self) -> str:
        return self.signing_key.public_key_type

    @property
    def compressed_public_key(self) -> str:
        return self.signing_key.compressed_public_key

    @property
    def extended_public_key(self) -> str:
        return self.signing_key.public_key

    def __repr__(self) -> str:
        return f"Wallet(address={self.address!r})"

    def connect(self, provider: Provider) -> "Wallet":
        """Return a new wallet with the same key connected to ``provider``."""
        if not isinstance(provider, Provider):
            errors.throw_error("invalid provider", errors.INVALID_ARGUMENT, {"argument": "provider", "value": provider})
        return Wallet(self.signing_key, provider, logger=self.logger)

    @classmethod
    def create_random(cls, provider: Optional[Provider] = None) -> "Wallet":
        return cls("0x" + os.urandom(32).hex(), provider)

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
        return self.public_key_type

    def get_compressed_public_key(self) -> str:
        return self.compressed_public_key

    def get_alias(self) -> Optional[str]:
        return self._require_provider().lookup_address(self.address)

    def get_alias_state(self) -> Optional[Dict[str, Any]]:
        return self._require_provider().get_alias_state(self.address)

    # Account queries

    def get_balance(self, block_tag: BlockTag = None) -> int:
        return self._require_provider().get_balance(self.address, block_tag)

    def get_account_number(self, block_tag: BlockTag = None) -> int:
        """Account number of this wallet; it never changes, so it is cached."""
        provider = self._require_provider()
        if not self._account_number:
            self._account_number = provider.get_account_number(self.address, block_tag)
        return self._account_number

    def get_transaction_count(self, block_tag: BlockTag = None) -> int:
        return self._require_provider().get_transaction_count(self.address, block_tag)

    def is_whitelisted(self, block_tag: BlockTag = None) -> bool:
        return self._require_provider().is_whitelisted(self.address, block_tag)

    def get_kyc_address(self, block_tag: BlockTag = None) -> str:
        return self._require_provider().get_kyc_address(self.address, block_tag)

    # Signing

    def sign(self, transaction: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> str:
        """
        Sign a transaction request.

        Args:
            transaction: Populated transaction request
            overrides: Signing options:
                accountNumber/nonce: sign with these instead (both required),
                    used for multisig internal transactions
                bulkSend: continue after the last issued sequence
                logSignaturePayload: called with the signing payload
                logSignedTransaction: called with the encoded transaction

        Returns:
            The base64 encoded signed transaction

        Raises:
            ValidationError: MISSING_ARGUMENT for a missing nonce, account
                number or message list
        """
        overrides = overrides or {}

        tx = shallow_copy(transaction)
        if tx.get("nonce") is None:
            tx["nonce"] = self.get_transaction_count("pending")
        if tx.get("accountNumber") is None:
            tx["accountNumber"] = self.get_account_number()
        tx = resolve_properties(tx)

        value = tx.get("value")
        if tx.get("nonce") is None or tx.get("accountNumber") is None or not value \
                or not isinstance(value.get("msg"), list):
            errors.throw_error("missing transaction field", errors.MISSING_ARGUMENT, {"argument": "value", "value": tx})

        value = shallow_copy(value)
        if not value.get("fee"):
            value["fee"] = tx.get("fee")
        tx["value"] = value

        if not is_undefined_or_null_or_empty(overrides.get("accountNumber")) \
                and not is_undefined_or_null_or_empty(overrides.get("nonce")):
            account_number = overrides["accountNumber"]
            sequence = overrides["nonce"]
        else:
            account_number = tx["accountNumber"]
            sequence = self._sequence.next(tx["nonce"], bool(overrides.get("bulkSend")))
            tx["nonce"] = sequence

        payload = canonicalize({
            "account_number": str(to_int(account_number)),
            "chain_id": tx.get("chainId"),
            "fee": tx.get("fee"),
            "memo": value.get("memo"),
            "msgs": value["msg"],
            "sequence": str(to_int(sequence)),
        })

        if callable(overrides.get("logSignaturePayload")):
            overrides["logSignaturePayload"](payload)

        digest = hashlib.sha256(canonical_json(payload).encode("utf-8")).digest()
        signature = self.signing_key.sign_digest(digest)
        signed_transaction = serialize(tx, signature, self.compressed_public_key)

        if callable(overrides.get("logSignedTransaction")):
            overrides["logSignedTransaction"](signed_transaction)

        self.logger.debug(f"Signed transaction for {self.address} with sequence {sequence}")
        return signed_transaction

    def sign_message(self, message: BytesLike, exclude_recovery_param: bool = False) -> str:
        """Sign sha256(message); returns 0x r||s||v (or r||s)."""
        signature = self.signing_key.sign_digest(hash_message(message))
        return join_signature(signature, not exclude_recovery_param)

    # Sending

    def send_transaction(self, transaction: Dict[str, Any],
                         overrides: Optional[Dict[str, Any]] = None) -> TransactionResponse:
        """
        Populate, sign and broadcast a transaction.

        The issued sequence is forgotten when the broadcast fails, so the next
        transaction queries it again.
        """
        provider = self._require_provider()

        tx = populate_transaction(transaction, provider, self.address)
        signed_transaction = self.sign(tx, overrides)
        try:
            return provider.send_transaction(signed_transaction, overrides)
        except Exception:
            self.clear_nonce()
            raise

    def _send_and_wait(self, transaction: Dict[str, Any], overrides: Optional[Dict[str, Any]],
                       method: str, failure: str) -> Any:
        provider = self._require_provider()
        overrides = overrides or {}

        response = self.send_transaction(transaction, overrides)
        if overrides.get("sendOnly"):
            return response

        confirmations = int(overrides["confirmations"]) if overrides.get("confirmations") else None
        receipt = provider.wait_for_transaction(response.hash, confirmations)
        if receipt and receipt.get("status") == 1:
            return receipt
        raise provider.check_transaction_receipt(receipt, errors.CALL_EXCEPTION, failure, {
            "method": method,
            "receipt": receipt,
        })

    def transfer(self, address_or_name: str, value: Any, overrides: Optional[Dict[str, Any]] = None) -> Any:
        """
        Send ``value`` cin to an address or alias.

        Args:
            address_or_name: Recipient address or alias
            value: Amount in the smallest unit
            overrides: ``memo``, ``denom``, ``fee``, ``sendOnly``,
                ``confirmations`` and the signing options of :meth:`sign`

        Returns:
            The receipt, or the transaction response with ``sendOnly``

        Raises:
            ProtocolError: CALL_EXCEPTION when the transfer failed on chain
            ChainRejectionError: when the receipt log carries a known chain
                rejection code
        """
        provider = self._require_provider()
        overrides = overrides or {}

        address = provider.resolve_name(address_or_name)
        transaction = provider.get_transaction_request("bank", "bank-send", {
            "from": self.address,
            "to": address,
            "value": value,
            "memo": overrides.get("memo") or "",
            "denom": overrides.get("denom") or SMALLEST_UNIT_NAME,
        })
        transaction["fee"] = overrides.get("fee") or provider.get_transaction_fee(None, None, {"tx": transaction})

        return self._send_and_wait(transaction, overrides, "mxw/msgSend", "transfer failed")

    def create_alias(self, name: str, app_fee: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> Any:
        """
        Apply for an alias.

        Args:
            name: Alias to apply for
            app_fee: Application fee ``{"to": address, "value": amount}``

        Raises:
            ValidationError: MISSING_FEES for a zero application fee
        """
        provider = self._require_provider()
        overrides = overrides or {}

        check_properties(app_fee, {"to": True, "value": True}, True)
        if to_int(app_fee["value"]) <= 0:
            errors.throw_error("create alias transaction require non-zero application fee", errors.MISSING_FEES, {
                "value": app_fee,
            })

        transaction = provider.get_transaction_request("nameservice", "nameservice-createAlias", {
            "appFeeTo": app_fee["to"],
            "appFeeValue": str(app_fee["value"]),
            "name": name,
            "owner": self.address,
            "memo": overrides.get("memo") or "",
        })
        transaction["fee"] = provider.get_transaction_fee(None, None, {"tx": transaction})

        return self._send_and_wait(transaction, overrides, "nameservice/createAlias", "create alias failed")
