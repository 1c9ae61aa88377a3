"""
mxw SDK - build, sign and submit transactions on the mxw blockchain.
"""
from .version import __version__
from .errors import (
    MxwError, ValidationError, ProtocolError, ChainRejectionError,
    InfrastructureError, MxwConnectionError, MxwTimeoutError, StateError
)
from .multisig import MultiSigWallet
from .providers import BaseProvider, JsonRpcProvider, Provider, TransactionResponse
from .signer import Signer
from .utils.networks import Network, get_network
from .wallet import Wallet

__all__ = [
    "Wallet",
    "MultiSigWallet",
    "Signer",
    "Provider",
    "BaseProvider",
    "JsonRpcProvider",
    "TransactionResponse",
    "Network",
    "get_network",
    "MxwError",
    "ValidationError",
    "ProtocolError",
    "ChainRejectionError",
    "InfrastructureError",
    "MxwConnectionError",
    "MxwTimeoutError",
    "StateError",
    "__version__",
]
