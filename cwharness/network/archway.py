"""Single-node Archway chain running in docker."""

import logging
from pathlib import Path

from cwharness.config import settings
from cwharness.gas import ChainId, GasPrices, NodeAddress
from cwharness.key import KeyringBackend
from cwharness.network.base import CleanScope, Memo, Network
from cwharness.network.handle import ContainerHandle
from cwharness.pipeline import ChainCommand
from cwharness.shell import Command

logger = logging.getLogger(__name__)

IMAGE = "ghcr.io/archway-network/archwayd:v1.0.0"
DEBUG_IMAGE = "ghcr.io/archway-network/archwayd-debug:v1.0.0"

CHAIN_ID = "localnet"
MONIKER = "archway-local"
DENOM = "stake"
CONTAINER_NAME = "cosmwasm_xtask_archwayd"

GENESIS_BALANCE = 1_000_000_000_000_000_000_000
GENTX_AMOUNT = 9_500_000_000_000_000_000
GENTX_GAS = 180_000_000_000_000_000

# (find, replace) applied to config/config.toml after bootstrap
CONFIG_PATCHES = [
    ("127.0.0.1", "0.0.0.0"),
    ("cors_allowed_origins = []", 'cors_allowed_origins = ["*"]'),
]


_SED_PATTERN_SPECIAL = "/.[]*^$\\"
_SED_REPLACEMENT_SPECIAL = "/&\\"


def _sed_escape(text: str, special: str) -> str:
    return "".join("\\" + c if c in special else c for c in text)


def _sed_expression(find: str, replace: str) -> str:
    pattern = _sed_escape(find, _SED_PATTERN_SPECIAL)
    replacement = _sed_escape(replace, _SED_REPLACEMENT_SPECIAL)
    return f"s/{pattern}/{replacement}/g"


class ArchwayLocal(Network):
    """``archwayd`` v1.0.0 in a container, with two funded test keys."""

    state_path = ("archway", "local")
    gas_prices = GasPrices.of(10, 100, 1000, DENOM)

    def __init__(self, root: Path | None = None):
        super().__init__(root)
        self._node_address: Memo[NodeAddress] = Memo()

    def docker(self, *args: str) -> Command:
        return Command.of(settings.docker_bin, *args)

    def prepare(self) -> None:
        self.docker("pull", IMAGE).run_quiet()

    def is_initialized(self) -> bool:
        return self.root.exists()

    def command(self) -> ChainCommand:
        return ChainCommand(
            self.docker(
                "run", "--rm", "--interactive",
                "--volume", f"{self.root.absolute()}:/home",
                "--volume", f"{Path.cwd()}:/work",
                "--workdir", "/work",
                IMAGE,
                "--home", "/home",
            )
        )

    def bootstrap(self) -> None:
        self.root.mkdir(parents=True)
        chain = self.command()
        chain.init_chain(MONIKER, CHAIN_ID)

        local0 = chain.add_key("local0", KeyringBackend.TEST)
        chain.add_genesis_account(local0, [(GENESIS_BALANCE, DENOM)])
        local1 = chain.add_key("local1", KeyringBackend.TEST)
        chain.add_genesis_account(local1, [(GENESIS_BALANCE, DENOM)])

        chain.gentx(local0, GENTX_AMOUNT, DENOM, CHAIN_ID, gas=GENTX_GAS)
        self._remember(local0)
        self._remember(local1)

        chain.collect_gentx()
        chain.validate_genesis()

        # Files under the home volume are owned by the container user
        self.docker("pull", DEBUG_IMAGE).run_quiet()
        for find, replace in CONFIG_PATCHES:
            self.docker(
                "run", "--rm", "--interactive",
                "--volume", f"{self.root.absolute()}:/home",
                "--entrypoint", "/bin/sed",
                DEBUG_IMAGE,
                "-i", _sed_expression(find, replace), "/home/config/config.toml",
            ).run()

    def chain_id(self) -> ChainId:
        return ChainId(CHAIN_ID)

    def node_address(self) -> NodeAddress:
        return self._node_address.get_or_init(self._inspect_node_address)

    def _inspect_node_address(self) -> NodeAddress:
        ip = self.docker(
            "inspect",
            "-f", "{{range .NetworkSettings.Networks}}{{.IPAddress}}{{end}}",
            CONTAINER_NAME,
        ).read()
        ip = ip.strip().strip("'")
        logger.debug("%s has address %s", CONTAINER_NAME, ip)
        return NodeAddress(f"tcp://{ip}:26657")

    def start_local(self) -> ContainerHandle:
        self.docker(
            "run", "--rm", "--detach",
            "--name", CONTAINER_NAME,
            "--volume", f"{self.root.absolute()}:/home",
            "--volume", f"{Path.cwd()}:/work",
            "--workdir", "/work",
            "--publish", "9090:9090",
            "--publish", "26657:26657",
            IMAGE,
            "start", "--home", "/home",
        ).run_quiet()
        logger.info("started container %s", CONTAINER_NAME)
        return ContainerHandle(CONTAINER_NAME)

    def clean(self, scope: CleanScope = CleanScope.STATE) -> None:
        # Chain state is root-owned, so it is removed from inside a container
        if not self.root.exists():
            return
        parent = self.root.absolute().parent
        self.docker(
            "run", "--rm", "--interactive",
            "--volume", f"{parent}:/work",
            "--workdir", "/work",
            "--entrypoint", "/bin/rm",
            DEBUG_IMAGE,
            "-rf", self.root.name,
        ).run()
