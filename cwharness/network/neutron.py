"""Neutron backends: the public testnet and the local IBC topology."""

import logging
from pathlib import Path

from cwharness.config import settings
from cwharness.gas import ChainId, GasPrices, NodeAddress
from cwharness.network.base import Network
from cwharness.network.handle import CompositeHandle
from cwharness.network.topology import NEUTRON, Topology
from cwharness.pipeline import ChainCommand
from cwharness.shell import Command

logger = logging.getLogger(__name__)

REPO_URL = "https://github.com/neutron-org/neutron.git"
REPO_BRANCH = "main"

TESTNET_NODE = "https://rpc-t.neutron.nodestake.top:443"
TESTNET_CHAIN_ID = "pion-1"


class NeutronTestnet(Network):
    """Remote ``pion-1`` testnet driven by a locally built ``neutrond``."""

    state_path = ("neutron", "testnet")
    gas_prices = GasPrices.of(0.001, 0.002, 0.004, "untrn")

    def __init__(self, root: Path | None = None):
        super().__init__(root)
        self.src_path = self.root / "src"
        self.home_path = self.root / "data"
        self.bin_path = self.src_path / "build" / "neutrond"

    def is_initialized(self) -> bool:
        return self.src_path.exists()

    def bootstrap(self) -> None:
        logger.info("building neutrond in %s", self.src_path)
        Command.of(
            settings.git_bin, "clone", "--depth", "1", "--branch", REPO_BRANCH, REPO_URL, self.src_path
        ).run()
        Command.of(settings.make_bin, "build").in_dir(self.src_path).run()

    def command(self) -> ChainCommand:
        return ChainCommand(Command.of(self.bin_path, "--home", self.home_path))

    def chain_id(self) -> ChainId:
        return ChainId(TESTNET_CHAIN_ID)

    def node_address(self) -> NodeAddress:
        return NodeAddress(TESTNET_NODE)

    def state_paths(self) -> list[Path]:
        return [self.home_path]


class NeutronLocal(Network):
    """neutron and gaia chains relayed by hermes, with a query relayer.

    Transactions go to the neutron chain.
    """

    state_path = ("neutron", "local")
    gas_prices = GasPrices.of(0.01, 0.02, 0.04, NEUTRON.denom)

    def __init__(self, root: Path | None = None):
        super().__init__(root)
        self.topology = Topology(self.root)

    def is_initialized(self) -> bool:
        return self.topology.is_initialized()

    def bootstrap(self) -> None:
        self.topology.init()
        # Keys are recovered by the chain init sequence
        self._keys = self.load_keys()

    def command(self) -> ChainCommand:
        return self.topology.neutron.command()

    def chain_id(self) -> ChainId:
        return self.topology.neutron.chain_id()

    def node_address(self) -> NodeAddress:
        return self.topology.neutron.node_address()

    def start_local(self) -> CompositeHandle:
        return self.topology.start()

    def state_paths(self) -> list[Path]:
        return self.topology.state_paths()
