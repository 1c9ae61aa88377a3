"""
Typed views of the records returned by providers.

Providers return plain dicts with camelCase keys; these models validate
them for callers who prefer attribute access, e.g.
``TransactionReceipt.model_validate(provider.get_transaction_receipt(h))``.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class FeeAmount(BaseModel):
    """One coin of a fee"""
    amount: int
    denom: str


class TransactionFee(BaseModel):
    """Fee quoted by the node"""
    amount: List[FeeAmount]
    gas: int


class TransactionEvent(BaseModel):
    """Decoded system event of a transaction"""
    address: str
    hash: str
    params: Optional[List[str]] = None
    transaction_index: Optional[int] = Field(None, alias="transactionIndex")
    event_index: Optional[int] = Field(None, alias="eventIndex")

    class Config:
        populate_by_name = True


class TransactionLog(BaseModel):
    success: bool
    # Decoded hash and nonce, or the raw text when the log is not JSON
    info: Any = None


class TransactionResult(BaseModel):
    logs: Optional[List[TransactionLog]] = None
    events: List[TransactionEvent] = Field(default_factory=list)


class TransactionReceipt(BaseModel):
    """Receipt of an included transaction"""
    hash: str
    block_number: int = Field(..., alias="blockNumber")
    status: int
    index: Optional[int] = None
    nonce: Optional[int] = None
    confirmations: Optional[int] = None
    result: Optional[TransactionResult] = None
    payload: Optional[Any] = None

    class Config:
        populate_by_name = True


class BlockTransaction(BaseModel):
    hash: str
    nonce: Optional[int] = None
    transaction_index: int = Field(..., alias="transactionIndex")
    logs: Optional[List[TransactionLog]] = None
    events: List[TransactionEvent] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class BlockResults(BaseModel):
    transactions: List[BlockTransaction] = Field(default_factory=list)


class BlockInfo(BaseModel):
    """Header fields of a block"""
    block_number: int = Field(..., alias="blockNumber")
    block_time: Optional[str] = Field(None, alias="blockTime")
    total_transactions: Optional[int] = Field(None, alias="totalTransactions")
    proposer_address: Optional[str] = Field(None, alias="proposerAddress")

    class Config:
        populate_by_name = True


class Block(BlockInfo):
    """Block with its successful transactions"""
    results: BlockResults = Field(default_factory=BlockResults)


class AccountState(BaseModel):
    type: str
    value: Dict[str, Any]


class TokenState(BaseModel):
    flags: int
    name: str
    symbol: str
    decimals: int
    total_supply: int = Field(..., alias="totalSupply")
    max_supply: int = Field(..., alias="maxSupply")
    owner: str
    new_owner: str = Field(..., alias="newOwner")
    metadata: str

    class Config:
        populate_by_name = True


class NFTokenState(BaseModel):
    flags: int
    name: str
    symbol: str
    owner: str
    new_owner: str = Field(..., alias="newOwner")
    metadata: Optional[str] = None
    properties: Optional[str] = None
    transfer_limit: int = Field(..., alias="transferLimit")
    mint_limit: int = Field(..., alias="mintLimit")
    total_supply: int = Field(..., alias="totalSupply")
    endorser_list: List[str] = Field(default_factory=list, alias="endorserList")
    endorser_list_limit: int = Field(..., alias="endorserListLimit")

    class Config:
        populate_by_name = True


class NFTokenItemState(BaseModel):
    id: str
    owner: Optional[str] = None
    metadata: Optional[str] = None
    properties: Optional[str] = None
    frozen: bool
    transfer_limit: int = Field(..., alias="transferLimit")

    class Config:
        populate_by_name = True


class TokenAccountState(BaseModel):
    owner: str
    frozen: bool
    balance: int


class AliasState(BaseModel):
    name: str
    approved: bool
    owner: str
    metadata: str
    fee: int
