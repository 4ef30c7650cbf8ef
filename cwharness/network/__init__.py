"""Network backends and backend selection."""

from enum import Enum
from pathlib import Path

from cwharness.network.archway import ArchwayLocal
from cwharness.network.base import CleanScope, Memo, Network
from cwharness.network.handle import CompositeHandle, ContainerHandle, LifecycleHandle, ProcessHandle
from cwharness.network.neutron import NeutronLocal, NeutronTestnet


class Backend(str, Enum):
    """Selectable network backends."""
    ARCHWAY_LOCAL = "archway-local"
    NEUTRON_LOCAL = "neutron-local"
    NEUTRON_TESTNET = "neutron-testnet"


BACKENDS: dict[Backend, type[Network]] = {
    Backend.ARCHWAY_LOCAL: ArchwayLocal,
    Backend.NEUTRON_LOCAL: NeutronLocal,
    Backend.NEUTRON_TESTNET: NeutronTestnet,
}


def network_class(backend: Backend | str) -> type[Network]:
    return BACKENDS[Backend(backend)]


def get_network(backend: Backend | str, root: Path | None = None) -> Network:
    """Initialize ``backend``, resuming from persisted state when present."""
    return network_class(backend).initialize(root)


__all__ = [
    "ArchwayLocal",
    "Backend",
    "CleanScope",
    "CompositeHandle",
    "ContainerHandle",
    "LifecycleHandle",
    "Memo",
    "Network",
    "NeutronLocal",
    "NeutronTestnet",
    "ProcessHandle",
    "get_network",
    "network_class",
]
