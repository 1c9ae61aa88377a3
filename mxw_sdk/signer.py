"""
Abstract signer and the sequence allocator shared by signer implementations.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .utils.misc import to_int

logger = logging.getLogger(__name__)


class SequenceAllocator:
    """
    Hands out account sequence numbers for signing.

    Normally the sequence queried from the chain is used as is. In bulk send
    mode several transactions are signed before any of them is included, so
    the allocator keeps counting from the last issued sequence instead.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.last_issued: Optional[int] = None

    def next(self, queried: Any, bulk_send: bool = False) -> int:
        """
        Return the sequence to sign with and record it as issued.

        Args:
            queried: Sequence reported by the chain
            bulk_send: Continue after the last issued sequence when it is not
                behind the chain

        Returns:
            The sequence to use
        """
        sequence = to_int(queried)
        with self._lock:
            if bulk_send and self.last_issued is not None and self.last_issued >= sequence:
                sequence = self.last_issued + 1
            self.last_issued = sequence
        return sequence

    def clear(self) -> None:
        with self._lock:
            self.last_issued = None


class Signer(ABC):
    """
    Base class for anything able to sign and send transactions.

    Attributes:
        provider: Provider used for queries and broadcasting, may be None
    """

    provider: Any = None

    def __init__(self):
        self._sequence = SequenceAllocator()

    @property
    def address(self) -> str:
        return self.get_address()

    @abstractmethod
    def get_address(self) -> str:
        pass

    @abstractmethod
    def get_hex_address(self) -> str:
        pass

    @abstractmethod
    def get_public_key_type(self) -> str:
        pass

    @abstractmethod
    def get_compressed_public_key(self) -> str:
        pass

    @abstractmethod
    def sign_message(self, message: Any, exclude_recovery_param: bool = False) -> str:
        pass

    @abstractmethod
    def sign(self, transaction: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> str:
        """
        Sign a transaction request.

        Returns:
            The base64 encoded signed transaction
        """
        pass

    @abstractmethod
    def send_transaction(self, transaction: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> Any:
        pass

    def get_nonce(self) -> Optional[int]:
        """Last sequence this signer signed with."""
        return self._sequence.last_issued

    def clear_nonce(self) -> None:
        self._sequence.clear()
