"""
Transaction assembler.

Every message the chain accepts is a member of :class:`MessageKind`. Each kind
owns a pydantic parameter model, which validates the caller's overrides, and
a builder that maps the validated parameters onto the wire message. The
assembled request is always a ``cosmos-sdk/StdTx`` envelope with an empty fee.
"""
import logging
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, BeforeValidator, Field
from pydantic import ValidationError as PydanticValidationError

from .. import errors
from ..constants import SMALLEST_UNIT_NAME
from .misc import (
    allow_null_or_empty, array_of, check_address, check_big_number_string,
    check_boolean, check_number, check_string
)

logger = logging.getLogger(__name__)

STD_TX_TYPE = "cosmos-sdk/StdTx"


class MessageKind(str, Enum):
    """Supported ``route/transactionType`` pairs."""

    BANK_SEND = "bank/bank-send"

    KYC_WHITELIST = "kyc/kyc-whitelist"
    KYC_REVOKE_WHITELIST = "kyc/kyc-revokeWhitelist"
    KYC_BIND = "kyc/kyc-bind"
    KYC_UNBIND = "kyc/kyc-unbind"

    NAMESERVICE_SET_ALIAS_STATUS = "nameservice/nameservice-setAliasStatus"
    NAMESERVICE_CREATE_ALIAS = "nameservice/nameservice-createAlias"

    TOKEN_CREATE = "token/token-createFungibleToken"
    TOKEN_SET_STATUS = "token/token-setFungibleTokenStatus"
    TOKEN_SET_ACCOUNT_STATUS = "token/token-setFungibleTokenAccountStatus"
    TOKEN_TRANSFER = "token/token-transferFungibleToken"
    TOKEN_MINT = "token/token-mintFungibleToken"
    TOKEN_BURN = "token/token-burnFungibleToken"
    TOKEN_FREEZE = "token/token-freezeFungibleToken"
    TOKEN_UNFREEZE = "token/token-unfreezeFungibleToken"
    TOKEN_TRANSFER_OWNERSHIP = "token/token-transferFungibleTokenOwnership"
    TOKEN_ACCEPT_OWNERSHIP = "token/token-acceptFungibleTokenOwnership"

    NFT_CREATE = "nonFungible/createNonFungibleToken"
    NFT_SET_STATUS = "nonFungible/setNonFungibleTokenStatus"
    NFT_MINT_ITEM = "nonFungible/mintNonFungibleItem"
    NFT_TRANSFER_ITEM = "nonFungible/transferNonFungibleItem"
    NFT_TRANSFER_OWNERSHIP = "nonFungible/transferNonFungibleTokenOwnership"
    NFT_BURN_ITEM = "nonFungible/burnNonFungibleItem"
    NFT_ENDORSEMENT = "nonFungible/endorsement"
    NFT_SET_ITEM_STATUS = "nonFungible/setNonFungibleItemStatus"
    NFT_UPDATE_ITEM_METADATA = "nonFungible/updateItemMetadata"
    NFT_ACCEPT_OWNERSHIP = "nonFungible/acceptNonFungibleTokenOwnership"
    NFT_UPDATE_METADATA = "nonFungible/updateNFTMetadata"
    NFT_BURN = "nonFungible/burnNonFungibleToken"

    MULTISIG_CREATE_ACCOUNT = "multisig/auth-createMultiSigAccount"
    MULTISIG_UPDATE_ACCOUNT = "multisig/auth-updateMultiSigAccount"
    MULTISIG_CREATE_TX = "multisig/auth-createMutiSigTx"
    MULTISIG_SIGN_TX = "multisig/auth-signMutiSigTx"

    @property
    def route(self) -> str:
        return self.value.split("/", 1)[0]

    @property
    def transaction_type(self) -> str:
        return self.value.split("/", 1)[1]

    @classmethod
    def lookup(cls, route: Optional[str], transaction_type: Optional[str]) -> "MessageKind":
        """
        Find the kind for a route and transaction type.

        Raises:
            InfrastructureError: NOT_IMPLEMENTED for an unsupported pair
        """
        try:
            return cls(f"{route}/{transaction_type}")
        except ValueError:
            errors.throw_error(f"Not implemented: {route}/{transaction_type}", errors.NOT_IMPLEMENTED, {
                "route": route,
                "transaction_type": transaction_type,
            })


Address = Annotated[str, BeforeValidator(check_address)]
String = Annotated[str, BeforeValidator(check_string)]
BigNumberString = Annotated[str, BeforeValidator(check_big_number_string)]
Number = Annotated[int, BeforeValidator(check_number)]
Boolean = Annotated[bool, BeforeValidator(check_boolean)]
# Absent, null and empty all become ""
OptionalString = Annotated[str, BeforeValidator(allow_null_or_empty(check_string, ""))]
AddressList = Annotated[List[str], BeforeValidator(array_of(check_address))]


class _Params(BaseModel):
    memo: OptionalString = ""

    class Config:
        populate_by_name = True
        extra = "ignore"


class BankSendParams(_Params):
    from_: Address = Field(..., alias="from")
    to: Address
    value: BigNumberString
    denom: Annotated[str, BeforeValidator(allow_null_or_empty(check_string, SMALLEST_UNIT_NAME))] = SMALLEST_UNIT_NAME


class WhitelistParams(_Params):
    kyc_data: Any = Field(..., alias="kycData")
    owner: Address


class StatusParams(_Params):
    """Parameters of the signed-payload status messages."""
    payload: Any
    signatures: Any
    owner: Address


class KycBindParams(_Params):
    from_: Address = Field(..., alias="from")
    to: Address
    kyc_address: String = Field(..., alias="kycAddress")


class CreateAliasParams(_Params):
    app_fee_to: String = Field(..., alias="appFeeTo")
    app_fee_value: BigNumberString = Field(..., alias="appFeeValue")
    name: String
    owner: Address


class CreateTokenParams(CreateAliasParams):
    decimals: Number
    fixed_supply: Boolean = Field(..., alias="fixedSupply")
    metadata: OptionalString = ""
    symbol: String
    max_supply: BigNumberString = Field(..., alias="maxSupply")


class TokenTransferParams(_Params):
    symbol: String
    from_: Address = Field(..., alias="from")
    to: Address
    value: BigNumberString


class TokenMintParams(_Params):
    symbol: String
    owner: Address
    to: Address
    value: BigNumberString


class TokenBurnParams(_Params):
    symbol: String
    from_: Address = Field(..., alias="from")
    value: BigNumberString


class TokenFreezeParams(_Params):
    symbol: String
    target: Address
    owner: Address


class OwnershipTransferParams(_Params):
    symbol: String
    from_: Address = Field(..., alias="from")
    to: Address


class OwnershipAcceptParams(_Params):
    symbol: String
    from_: Address = Field(..., alias="from")


class CreateNFTParams(CreateAliasParams):
    metadata: OptionalString = ""
    properties: OptionalString = ""
    symbol: String


class MintItemParams(_Params):
    item_id: String = Field(..., alias="itemID")
    symbol: String
    owner: Address
    to: Address
    metadata: OptionalString = ""
    properties: OptionalString = ""


class TransferItemParams(_Params):
    symbol: String
    from_: String = Field(..., alias="from")
    to: String
    item_id: String = Field(..., alias="itemID")


class NFTOwnershipTransferParams(_Params):
    symbol: String
    from_: String = Field(..., alias="from")
    to: String


class ItemParams(_Params):
    symbol: String
    from_: Address = Field(..., alias="from")
    item_id: String = Field(..., alias="itemID")


class UpdateItemMetadataParams(ItemParams):
    metadata: OptionalString = ""


class UpdateNFTMetadataParams(OwnershipAcceptParams):
    metadata: OptionalString = ""


class CreateMultiSigAccountParams(_Params):
    owner: Address
    threshold: Number
    signers: AddressList


class UpdateMultiSigAccountParams(_Params):
    owner: Address
    group_address: Address = Field(..., alias="groupAddress")
    threshold: Number
    signers: AddressList


class CreateMultiSigTxParams(_Params):
    group_address: Address = Field(..., alias="groupAddress")
    std_tx: Any = Field(..., alias="stdTx")
    sender: Address


class SignMultiSigTxParams(_Params):
    group_address: Address = Field(..., alias="groupAddress")
    tx_id: BigNumberString = Field(..., alias="txId")
    signature: Any
    sender: Address


Builder = Callable[[Any], Dict[str, Any]]

# kind -> (wire message type, parameter model, builder)
MESSAGE_BUILDERS: Dict[MessageKind, Tuple[str, Type[_Params], Builder]] = {}


def _message(kind: MessageKind, message_type: str, params_model: Type[_Params]):
    def decorator(builder: Builder) -> Builder:
        MESSAGE_BUILDERS[kind] = (message_type, params_model, builder)
        return builder
    return decorator


def _fee(params: CreateAliasParams) -> Dict[str, str]:
    return {"to": params.app_fee_to, "value": params.app_fee_value}


@_message(MessageKind.BANK_SEND, "mxw/msgSend", BankSendParams)
def _bank_send(params: BankSendParams) -> Dict[str, Any]:
    return {
        "amount": [{"amount": params.value, "denom": params.denom}],
        "from_address": params.from_,
        "to_address": params.to,
    }


@_message(MessageKind.KYC_WHITELIST, "kyc/whitelist", WhitelistParams)
def _kyc_whitelist(params: WhitelistParams) -> Dict[str, Any]:
    return {"kycData": params.kyc_data, "owner": params.owner}


@_message(MessageKind.KYC_REVOKE_WHITELIST, "kyc/revokeWhitelist", StatusParams)
@_message(MessageKind.NAMESERVICE_SET_ALIAS_STATUS, "nameservice/setAliasStatus", StatusParams)
@_message(MessageKind.TOKEN_SET_STATUS, "token/setFungibleTokenStatus", StatusParams)
@_message(MessageKind.TOKEN_SET_ACCOUNT_STATUS, "token/setFungibleTokenAccountStatus", StatusParams)
@_message(MessageKind.NFT_SET_STATUS, "nonFungible/setNonFungibleTokenStatus", StatusParams)
@_message(MessageKind.NFT_SET_ITEM_STATUS, "nonFungible/setNonFungibleItemStatus", StatusParams)
def _set_status(params: StatusParams) -> Dict[str, Any]:
    return {"payload": params.payload, "signatures": params.signatures, "owner": params.owner}


@_message(MessageKind.KYC_BIND, "kyc/kycBind", KycBindParams)
@_message(MessageKind.KYC_UNBIND, "kyc/kycUnbind", KycBindParams)
def _kyc_bind(params: KycBindParams) -> Dict[str, Any]:
    return {"from": params.from_, "kycAddress": params.kyc_address, "to": params.to}


@_message(MessageKind.NAMESERVICE_CREATE_ALIAS, "nameservice/createAlias", CreateAliasParams)
def _create_alias(params: CreateAliasParams) -> Dict[str, Any]:
    return {"fee": _fee(params), "name": params.name, "owner": params.owner}


@_message(MessageKind.TOKEN_CREATE, "token/createFungibleToken", CreateTokenParams)
def _create_token(params: CreateTokenParams) -> Dict[str, Any]:
    return {
        "decimals": str(params.decimals),
        "fee": _fee(params),
        "fixedSupply": params.fixed_supply,
        "metadata": params.metadata,
        "name": params.name,
        "owner": params.owner,
        "symbol": params.symbol,
        "maxSupply": params.max_supply,
    }


@_message(MessageKind.TOKEN_TRANSFER, "token/transferFungibleToken", TokenTransferParams)
def _transfer_token(params: TokenTransferParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "from": params.from_, "to": params.to, "value": params.value}


@_message(MessageKind.TOKEN_MINT, "token/mintFungibleToken", TokenMintParams)
def _mint_token(params: TokenMintParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "owner": params.owner, "to": params.to, "value": params.value}


@_message(MessageKind.TOKEN_BURN, "token/burnFungibleToken", TokenBurnParams)
def _burn_token(params: TokenBurnParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "from": params.from_, "value": params.value}


@_message(MessageKind.TOKEN_FREEZE, "token/freezeFungibleToken", TokenFreezeParams)
@_message(MessageKind.TOKEN_UNFREEZE, "token/unfreezeFungibleToken", TokenFreezeParams)
def _freeze_token(params: TokenFreezeParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "target": params.target, "owner": params.owner}


@_message(MessageKind.TOKEN_TRANSFER_OWNERSHIP, "token/transferFungibleTokenOwnership", OwnershipTransferParams)
@_message(MessageKind.NFT_TRANSFER_OWNERSHIP, "nonFungible/transferNonFungibleTokenOwnership",
          NFTOwnershipTransferParams)
def _transfer_ownership(params: OwnershipTransferParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "from": params.from_, "to": params.to}


@_message(MessageKind.TOKEN_ACCEPT_OWNERSHIP, "token/acceptFungibleTokenOwnership", OwnershipAcceptParams)
@_message(MessageKind.NFT_ACCEPT_OWNERSHIP, "nonFungible/acceptNonFungibleTokenOwnership", OwnershipAcceptParams)
def _accept_ownership(params: OwnershipAcceptParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "from": params.from_}


@_message(MessageKind.NFT_CREATE, "nonFungible/createNonFungibleToken", CreateNFTParams)
def _create_nft(params: CreateNFTParams) -> Dict[str, Any]:
    return {
        "fee": _fee(params),
        "metadata": params.metadata,
        "properties": params.properties,
        "name": params.name,
        "owner": params.owner,
        "symbol": params.symbol,
    }


@_message(MessageKind.NFT_MINT_ITEM, "nonFungible/mintNonFungibleItem", MintItemParams)
def _mint_item(params: MintItemParams) -> Dict[str, Any]:
    return {
        "itemID": params.item_id,
        "symbol": params.symbol,
        "owner": params.owner,
        "to": params.to,
        "properties": params.properties,
        "metadata": params.metadata,
    }


@_message(MessageKind.NFT_TRANSFER_ITEM, "nonFungible/transferNonFungibleItem", TransferItemParams)
def _transfer_item(params: TransferItemParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "from": params.from_, "to": params.to, "itemID": params.item_id}


@_message(MessageKind.NFT_BURN_ITEM, "nonFungible/burnNonFungibleItem", ItemParams)
@_message(MessageKind.NFT_ENDORSEMENT, "nonFungible/endorsement", ItemParams)
@_message(MessageKind.NFT_BURN, "nonFungible/burnNonFungibleToken", ItemParams)
def _item(params: ItemParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "from": params.from_, "itemID": params.item_id}


@_message(MessageKind.NFT_UPDATE_ITEM_METADATA, "nonFungible/updateItemMetadata", UpdateItemMetadataParams)
def _update_item_metadata(params: UpdateItemMetadataParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "from": params.from_, "itemID": params.item_id, "metadata": params.metadata}


@_message(MessageKind.NFT_UPDATE_METADATA, "nonFungible/updateNFTMetadata", UpdateNFTMetadataParams)
def _update_nft_metadata(params: UpdateNFTMetadataParams) -> Dict[str, Any]:
    return {"symbol": params.symbol, "from": params.from_, "metadata": params.metadata}


@_message(MessageKind.MULTISIG_CREATE_ACCOUNT, "auth/createMultiSigAccount", CreateMultiSigAccountParams)
def _create_multisig_account(params: CreateMultiSigAccountParams) -> Dict[str, Any]:
    return {"owner": params.owner, "threshold": str(params.threshold), "signers": params.signers}


@_message(MessageKind.MULTISIG_UPDATE_ACCOUNT, "auth/updateMultiSigAccount", UpdateMultiSigAccountParams)
def _update_multisig_account(params: UpdateMultiSigAccountParams) -> Dict[str, Any]:
    return {
        "owner": params.owner,
        "groupAddress": params.group_address,
        "newThreshold": str(params.threshold),
        "newSigners": params.signers,
    }


@_message(MessageKind.MULTISIG_CREATE_TX, "auth/createMutiSigTx", CreateMultiSigTxParams)
def _create_multisig_tx(params: CreateMultiSigTxParams) -> Dict[str, Any]:
    return {"groupAddress": params.group_address, "stdTx": params.std_tx, "sender": params.sender}


@_message(MessageKind.MULTISIG_SIGN_TX, "auth/signMutiSigTx", SignMultiSigTxParams)
def _sign_multisig_tx(params: SignMultiSigTxParams) -> Dict[str, Any]:
    return {
        "groupAddress": params.group_address,
        "txId": params.tx_id,
        "signature": params.signature,
        "sender": params.sender,
    }


def _field_key(params_model: Type[_Params], loc: Tuple[Any, ...]) -> str:
    if not loc:
        return ""
    name = str(loc[0])
    field = params_model.model_fields.get(name)
    if field is not None and field.alias:
        return field.alias
    return name


def _validate(kind: MessageKind, params_model: Type[_Params], overrides: Mapping[str, Any]) -> _Params:
    try:
        return params_model.model_validate(dict(overrides))
    except PydanticValidationError as error:
        detail = error.errors()[0]
        key = _field_key(params_model, detail.get("loc", ()))
        if detail.get("type") == "missing":
            errors.throw_error(f"missing object key {key}", errors.MISSING_ARGUMENT, {
                "key": key,
                "kind": kind.value,
            })
        reason = detail.get("msg", "invalid value")
        errors.throw_error(f"invalid format object key {key}: {reason}", errors.INVALID_FORMAT, {
            "key": key,
            "value": overrides.get(key),
            "kind": kind.value,
        })


def build_message(kind: MessageKind, overrides: Optional[Mapping[str, Any]] = None) -> Tuple[Dict[str, Any], str]:
    """
    Validate ``overrides`` for ``kind`` and build its wire message.

    Returns:
        The ``{type, value}`` message and the memo
    """
    if overrides is None:
        overrides = {}
    if not isinstance(overrides, Mapping):
        errors.throw_error("invalid overrides", errors.INVALID_ARGUMENT, {"arg": "overrides", "value": overrides})

    message_type, params_model, builder = MESSAGE_BUILDERS[kind]
    params = _validate(kind, params_model, overrides)
    return {"type": message_type, "value": builder(params)}, params.memo


def build_transaction_request(route: Optional[str], transaction_type: Optional[str],
                              overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Assemble an unsigned transaction request.

    Args:
        route: Module route, e.g. ``"token"``
        transaction_type: Message type within the route, e.g. ``"token-mintFungibleToken"``
        overrides: Message parameters

    Returns:
        ``{type: "cosmos-sdk/StdTx", value: {msg: [...], memo}, fee: None}``

    Raises:
        InfrastructureError: NOT_IMPLEMENTED for an unsupported route and type
        ValidationError: MISSING_ARGUMENT or INVALID_FORMAT for bad parameters
    """
    kind = MessageKind.lookup(route, transaction_type)
    message, memo = build_message(kind, overrides)
    logger.debug(f"Assembled {kind.value} as {message['type']}")
    return {
        "type": STD_TX_TYPE,
        "value": {
            "msg": [message],
            "memo": memo,
        },
        "fee": None,
    }
