"""
Providers for the mxw SDK.

A provider gives read access to the chain, broadcasts signed transactions
and emits block, transaction and balance events.
"""
from .base_provider import (
    AddressTopic, BaseProvider, BlockTopic, NamedTopic, Provider, TransactionResponse,
    TransactionTopic, check_block_tag, get_event_topic
)
from .json_rpc_provider import JsonRpcProvider, check_response_log

__all__ = [
    'AddressTopic',
    'BaseProvider',
    'BlockTopic',
    'JsonRpcProvider',
    'NamedTopic',
    'Provider',
    'TransactionResponse',
    'TransactionTopic',
    'check_block_tag',
    'check_response_log',
    'get_event_topic',
]
