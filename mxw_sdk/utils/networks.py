"""
Known mxw networks.
"""
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from .. import errors


@dataclass(frozen=True)
class Network:
    name: str
    chain_id: str


Networkish = Union[Network, Mapping[str, Any], str, int]

_HOMESTEAD = Network(name="maxonrow", chain_id="maxonrow")
_TESTNET = Network(name="alloys", chain_id="alloys")

NETWORKS: Dict[str, Network] = {
    "unspecified": Network(name="unspecified", chain_id="0"),
    "homestead": _HOMESTEAD,
    "mainnet": _HOMESTEAD,
    "testnet": _TESTNET,
}


def _lookup(name: str) -> Optional[Network]:
    network = NETWORKS.get(name)
    if network is not None:
        return network
    for known in NETWORKS.values():
        if known.chain_id == name:
            return known
    return None


def get_network(network: Optional[Networkish]) -> Optional[Network]:
    """
    Convert a network name, chain id or network mapping into a Network.

    Args:
        network: A name ("homestead", "testnet", ...), a chain id
            ("alloys", 0, ...), a Network or a mapping with ``name`` and
            ``chain_id``/``chainId``

    Returns:
        The resolved Network, or None for an unknown name or None input

    Raises:
        ValidationError: INVALID_ARGUMENT when a known name is paired with
            a different chain id
    """
    if network is None:
        return None

    if isinstance(network, Network):
        network = {"name": network.name, "chain_id": network.chain_id}

    if isinstance(network, bool):
        errors.throw_error("invalid network", errors.INVALID_ARGUMENT, {"arg": "network", "value": network})

    if isinstance(network, int):
        for known in NETWORKS.values():
            if known.chain_id == str(network):
                return known
        return Network(name="unknown", chain_id=str(network))

    if isinstance(network, str):
        return _lookup(network)

    if not isinstance(network, Mapping):
        errors.throw_error("invalid network", errors.INVALID_ARGUMENT, {"arg": "network", "value": network})

    name = network.get("name")
    chain_id = network.get("chain_id", network.get("chainId"))
    known = NETWORKS.get(name) if name else None

    # Not a standard network
    if known is None:
        if chain_id is None:
            errors.throw_error("invalid network", errors.INVALID_ARGUMENT, {"arg": "network", "value": dict(network)})
        return Network(name=name or "unknown", chain_id=str(chain_id))

    if chain_id not in (None, "") and str(chain_id) != known.chain_id:
        errors.throw_error("network chainId mismatch", errors.INVALID_ARGUMENT, {"arg": "network", "value": dict(network)})

    return Network(name=name, chain_id=known.chain_id)
