"""Two natively built chains bridged by an IBC relayer plus a query relayer.

Every component owns a set of paths under the topology root and checks its
own ``is_initialized`` predicate, so a partially set up topology resumes
where it stopped. Startup is strictly sequential:

    neutron -> gaia -> wait for neutron blocks -> wait for gaia blocks
    -> hermes (connection, channel, run loop) -> query relayer
"""

import logging
import shutil
import time
from collections.abc import Callable
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

from cwharness.config import settings
from cwharness.gas import ChainId, NodeAddress
from cwharness.key import Key, KeyringBackend
from cwharness.network.base import remove_path
from cwharness.network.handle import CompositeHandle, ProcessHandle
from cwharness.patch import find_and_replace_in_file
from cwharness.pipeline import ChainCommand
from cwharness.poll import wait_for_blocks_with
from cwharness.shell import Command

logger = logging.getLogger(__name__)

IBC_ATOM_DENOM = "uibcatom"
IBC_USDC_DENOM = "uibcusdc"
IBC_ATOM_TRACE = "ibc/27394FB092D2ECCD56123C74F36E4C1F926001CEADA9CA97EA622B25F41E5EB2"

GENESIS_ALLOCATION = 100_000_000_000_000

DEMO_MNEMONIC_1 = "banner spread envelope side kite person disagree path silver will brother under couch edit food venture squirrel civil budget number acquire point work mass"
DEMO_MNEMONIC_2 = "veteran try aware erosion drink dance decade comic dawn museum release episode original list ability owner size tuition surface ceiling depth seminar capable only"
DEMO_MNEMONIC_3 = "obscure canal because tomorrow tribe sibling describe satoshi kiwi upgrade bless empty math trend erosion oblige donate label birth chronic hazard ensure wreck shine"
VAL_MNEMONIC_1 = "clock post desk civil pottery foster expand merit dash seminar song memory figure uniform spice circle try happy obvious trash crime hybrid hood cushion"
VAL_MNEMONIC_2 = "angry twist harsh drastic left brass behave host shove marriage fall update business leg direct reward object ugly security warm tuna model broccoli choice"
RLY_MNEMONIC_1 = "alley afraid soup fall idea toss can goose become valve initial strong forward bright dish figure check leopard decide warfare hub unusual join cart"
RLY_MNEMONIC_2 = "record gift you once hip style during joke field prize dust unique length more pencil transfer quit train device arrive energy sort steak upset"

# Recovered into every chain's test keyring, in this order
WELL_KNOWN_KEYS = [
    ("local1", DEMO_MNEMONIC_1),
    ("local2", DEMO_MNEMONIC_2),
    ("local3", DEMO_MNEMONIC_3),
    ("val1", VAL_MNEMONIC_1),
    ("val2", VAL_MNEMONIC_2),
    ("rly1", RLY_MNEMONIC_1),
    ("rly2", RLY_MNEMONIC_2),
]

HERMES_CRATE = "ibc-relayer-cli"
HERMES_CRATE_BIN = "hermes"
HERMES_CRATE_VERSION = "1.6.0"
HERMES_CONFIG_IN_NEUTRON_SRC = Path("network", "hermes", "config.toml")

ICQ_REPO_URL = "https://github.com/neutron-org/neutron-query-relayer.git"
ICQ_REPO_BRANCH = "main"


@dataclass(frozen=True)
class ChainSpec:
    """Static parameters of one chain in the topology."""
    name: str
    repo_url: str
    repo_branch: str
    binary: str
    chain_id: str
    denom: str
    p2p_port: int
    rpc_port: int
    rest_port: int
    grpc_port: int
    grpc_web_port: int
    rosetta_port: int

    @property
    def node_address(self) -> NodeAddress:
        return NodeAddress(f"tcp://127.0.0.1:{self.rpc_port}")


NEUTRON = ChainSpec(
    name="neutron",
    repo_url="https://github.com/neutron-org/neutron.git",
    repo_branch="main",
    binary="neutrond",
    chain_id="test-1",
    denom="untrn",
    p2p_port=26656,
    rpc_port=26657,
    rest_port=1317,
    grpc_port=8090,
    grpc_web_port=8091,
    rosetta_port=8080,
)

GAIA = ChainSpec(
    name="gaia",
    repo_url="https://github.com/cosmos/gaia.git",
    repo_branch="v9.0.3",
    binary="gaiad",
    chain_id="test-2",
    denom="uatom",
    p2p_port=16656,
    rpc_port=16657,
    rest_port=1316,
    grpc_port=9090,
    grpc_web_port=9091,
    rosetta_port=8081,
)


def clone_and_build(
    root: Path,
    repo_url: str,
    branch: str,
    src: Path,
    binary: Path,
    make_target: str,
    before_build: Callable[[Path], None] | None = None,
) -> None:
    """Clone ``repo_url`` into ``src`` unless present, then build unless ``binary`` exists.

    Go binaries are installed into ``root/bin`` by pointing ``GOPATH`` at the
    topology root.
    """
    if not src.exists():
        Command.of(settings.git_bin, "clone", "--depth", "1", "--branch", branch, repo_url, src).run()

    if binary.exists():
        return

    if before_build is not None:
        before_build(src)

    (
        Command.of(settings.make_bin, make_target)
        .in_dir(src)
        .env(GOPATH=root, GOFLAGS="-modcacherw")  # writable module cache so clean can remove it
        .run()
    )


def init_chain(command: Callable[[], ChainCommand], home: Path, spec: ChainSpec) -> list[Key]:
    """Create a chain home with the well-known keys funded in genesis.

    Returns the recovered keys in ``WELL_KNOWN_KEYS`` order.
    """
    command().init_chain("test", spec.chain_id)

    keys = []
    for name, mnemonic in WELL_KNOWN_KEYS:
        key = command().recover_key(name, mnemonic, KeyringBackend.TEST)
        command().add_genesis_account(
            key,
            [
                (GENESIS_ALLOCATION, spec.denom),
                (GENESIS_ALLOCATION, IBC_ATOM_DENOM),
                (GENESIS_ALLOCATION, IBC_USDC_DENOM),
            ],
        )
        keys.append(key)

    find_and_replace_in_file(home / "config" / "config.toml", [
        ('timeout_commit = "5s"', 'timeout_commit = "1s"'),
        ('timeout_propose = "3s"', 'timeout_propose = "1s"'),
        ("index_all_keys = false", "index_all_keys = true"),
        ("tcp://0.0.0.0:26656", f"tcp://127.0.0.1:{spec.p2p_port}"),
        ("tcp://127.0.0.1:26657", f"tcp://127.0.0.1:{spec.rpc_port}"),
    ])
    find_and_replace_in_file(home / "config" / "app.toml", [
        ("enable = false", "enable = true"),
        ("swagger = false", "swagger = true"),
        ("prometheus-retention-time = 0", "prometheus-retention-time = 1000"),
        ('minimum-gas-prices = ""', f'minimum-gas-prices = "0.0025{spec.denom},0.0025{IBC_ATOM_TRACE}"'),
        ("tcp://0.0.0.0:1317", f"tcp://127.0.0.1:{spec.rest_port}"),
        ('address = ":8080"', f'address = ":{spec.rosetta_port}"'),
    ])
    find_and_replace_in_file(home / "config" / "genesis.json", [
        ('"denom": "stake"', f'"denom": "{spec.denom}"'),
        ('"mint_denom": "stake"', f'"mint_denom": "{spec.denom}"'),
        ('"bond_denom": "stake"', f'"bond_denom": "{spec.denom}"'),
    ])

    return keys


class ChainNode:
    """A Cosmos SDK chain built from source and run as a local process."""

    make_target = "install"

    def __init__(self, spec: ChainSpec, root: Path):
        self.spec = spec
        self.root = root
        self.src_path = root / spec.name / "src"
        self.home_path = root / spec.name / "data"
        self.bin_path = root / "bin" / spec.binary
        self.log_path = root / spec.name / f"{spec.binary}.log"

    def is_initialized(self) -> bool:
        return all(p.exists() for p in (self.src_path, self.home_path, self.bin_path))

    def command(self) -> ChainCommand:
        return ChainCommand(Command.of(self.bin_path, "--home", self.home_path))

    def node_address(self) -> NodeAddress:
        return self.spec.node_address

    def chain_id(self) -> ChainId:
        return ChainId(self.spec.chain_id)

    def before_build(self, src: Path) -> None:
        """Adjust the checkout before building."""

    def after_init(self, keys: list[Key]) -> None:
        """Chain-specific genesis adjustments."""

    def init(self) -> None:
        logger.info("initializing %s in %s", self.spec.name, self.home_path)
        clone_and_build(
            self.root,
            self.spec.repo_url,
            self.spec.repo_branch,
            self.src_path,
            self.bin_path,
            self.make_target,
            self.before_build,
        )
        remove_path(self.home_path)
        keys = init_chain(self.command, self.home_path, self.spec)
        self.after_init(keys)

    def start(self) -> ProcessHandle:
        logger.info("starting %s", self.spec.name)
        command = Command.of(
            self.bin_path,
            "start",
            "--log_level", "trace",
            "--log_format", "json",
            "--home", self.home_path,
            "--pruning=nothing",
            f"--grpc.address=127.0.0.1:{self.spec.grpc_port}",
            f"--grpc-web.address=127.0.0.1:{self.spec.grpc_web_port}",
            "--trace",
        ).env(HOME=self.root)
        return ProcessHandle.spawn(command, self.log_path, name=self.spec.binary)


class NeutronNode(ChainNode):
    make_target = "install-test-binary"

    def after_init(self, keys: list[Key]) -> None:
        Command.of(self.bin_path, "add-consumer-section", "--home", self.home_path).run()
        find_and_replace_in_file(self.home_path / "config" / "genesis.json", [
            ('"allow_messages": []', '"allow_messages": ["*"]'),
            ('"signed_blocks_window": "100"', '"signed_blocks_window": "140000"'),
            ('"min_signed_per_window": "0.500000000000000000"', '"min_signed_per_window": "0.050000000000000000"'),
            ('"slash_fraction_double_sign": "0.050000000000000000"', '"slash_fraction_double_sign": "0.010000000000000000"'),
            ('"slash_fraction_downtime": "0.010000000000000000"', '"slash_fraction_downtime": "0.000100000000000000"'),
            (
                '"minimum_gas_prices": []',
                f'"minimum_gas_prices": [{{"denom":"{IBC_ATOM_TRACE}","amount":"0"}},{{"denom":"untrn","amount":"0"}}]',
            ),
        ])


class GaiaNode(ChainNode):
    make_target = "install"

    #: Staked by the validator key (``val1``) in the genesis transaction
    validator_stake = 7_000_000_000

    def before_build(self, src: Path) -> None:
        # The version check rejects newer go toolchains
        find_and_replace_in_file(src / "Makefile", [
            ("$(BUILD_TARGETS): check_version go.sum $(BUILDDIR)/", "$(BUILD_TARGETS): go.sum $(BUILDDIR)/"),
        ])

    def after_init(self, keys: list[Key]) -> None:
        find_and_replace_in_file(self.home_path / "config" / "genesis.json", [
            (
                '"allow_messages": []',
                '"allow_messages": ["/cosmos.bank.v1beta1.MsgSend",'
                '"/cosmos.staking.v1beta1.MsgDelegate",'
                '"/cosmos.staking.v1beta1.MsgUndelegate"]',
            ),
        ])
        validator = keys[3]
        self.command().gentx(validator, self.validator_stake, self.spec.denom, self.spec.chain_id)
        self.command().collect_gentx()


class HermesRelayer:
    """IBC relayer between the two chains."""

    def __init__(self, root: Path, chain_a: ChainSpec = NEUTRON, chain_b: ChainSpec = GAIA):
        self.root = root
        self.chain_a = chain_a
        self.chain_b = chain_b
        self.home_path = root / ".hermes"
        self.config_path = self.home_path / "config.toml"
        self.bin_path = root / "bin" / HERMES_CRATE_BIN
        self.log_path = self.home_path / "hermes.log"

    def is_initialized(self) -> bool:
        return self.bin_path.exists() and self.home_path.exists()

    def command(self, *args: str) -> Command:
        return Command.of(self.bin_path, "--config", self.config_path, *args).env(HOME=self.root)

    def init(self, neutron_src: Path) -> None:
        logger.info("initializing hermes in %s", self.home_path)
        if not self.bin_path.exists():
            Command.of(
                settings.cargo_bin, "install", HERMES_CRATE,
                "--bin", HERMES_CRATE_BIN,
                "--version", HERMES_CRATE_VERSION,
                "--locked",
                "--root", self.root,
            ).run()

        remove_path(self.home_path)
        self.home_path.mkdir(parents=True)
        shutil.copyfile(neutron_src / HERMES_CONFIG_IN_NEUTRON_SRC, self.config_path)

        for index, (chain, mnemonic) in enumerate(
            [(self.chain_a, RLY_MNEMONIC_1), (self.chain_b, RLY_MNEMONIC_2)], start=1
        ):
            mnemonic_file = self.home_path / f"mnemonic{index}.txt"
            mnemonic_file.write_text(mnemonic)
            self.command("keys", "delete", "--chain", chain.chain_id, "--all").run()
            self.command(
                "keys", "add",
                "--key-name", f"testkey_{index}",
                "--chain", chain.chain_id,
                "--mnemonic-file", str(mnemonic_file),
            ).run()

    def start(self) -> ProcessHandle:
        """Create the connection and channel, then start relaying."""
        # Chains need a moment after their first block before hermes can connect
        time.sleep(settings.relayer_settle_delay)

        logger.info("hermes: creating connection %s <-> %s", self.chain_a.chain_id, self.chain_b.chain_id)
        ProcessHandle.spawn(
            self.command(
                "create", "connection",
                "--a-chain", self.chain_a.chain_id,
                "--b-chain", self.chain_b.chain_id,
            ),
            self.log_path,
            name="hermes create connection",
        ).wait()

        logger.info("hermes: creating transfer channel")
        ProcessHandle.spawn(
            self.command(
                "create", "channel",
                "--a-chain", self.chain_a.chain_id,
                "--a-connection", "connection-0",
                "--a-port", "transfer",
                "--b-port", "transfer",
            ),
            self.log_path,
            append=True,
            name="hermes create channel",
        ).wait()

        return ProcessHandle.spawn(self.command("start"), self.log_path, append=True, name="hermes")


class QueryRelayer:
    """Interchain query relayer serving the neutron chain."""

    def __init__(self, root: Path):
        self.root = root
        self.src_path = root / "icq_rly" / "src"
        self.bin_path = root / "bin" / "neutron_query_relayer"
        self.db_path = root / "icq_rly" / "db"
        self.log_path = root / "icq_rly" / "icq_rly.log"

    def is_initialized(self) -> bool:
        return self.src_path.exists() and self.bin_path.exists()

    def init(self) -> None:
        logger.info("initializing query relayer in %s", self.src_path)
        clone_and_build(self.root, ICQ_REPO_URL, ICQ_REPO_BRANCH, self.src_path, self.bin_path, "install")

    def environment(self, neutron: ChainNode, target: ChainNode) -> dict[str, str]:
        n, t = neutron.spec, target.spec
        return {
            "RELAYER_NEUTRON_CHAIN_CHAIN_PREFIX": "neutron",
            "RELAYER_NEUTRON_CHAIN_RPC_ADDR": f"tcp://127.0.0.1:{n.rpc_port}",
            "RELAYER_NEUTRON_CHAIN_REST_ADDR": f"http://127.0.0.1:{n.rest_port}",
            "RELAYER_NEUTRON_CHAIN_CHAIN_ID": n.chain_id,
            "RELAYER_NEUTRON_CHAIN_GAS_PRICES": f"0.5{n.denom}",
            "RELAYER_NEUTRON_CHAIN_SIGN_KEY_NAME": "local3",
            "RELAYER_NEUTRON_CHAIN_TIMEOUT": "1000s",
            "RELAYER_NEUTRON_CHAIN_GAS_ADJUSTMENT": "2.0",
            "RELAYER_NEUTRON_CHAIN_TX_BROADCAST_TYPE": "BroadcastTxCommit",
            "RELAYER_NEUTRON_CHAIN_CONNECTION_ID": "connection-0",
            "RELAYER_NEUTRON_CHAIN_CLIENT_ID": "07-tendermint-0",
            "RELAYER_NEUTRON_CHAIN_DEBUG": "true",
            "RELAYER_NEUTRON_CHAIN_KEY": "local1",
            "RELAYER_NEUTRON_CHAIN_ACCOUNT_PREFIX": "neutron",
            "RELAYER_NEUTRON_CHAIN_KEYRING_BACKEND": "test",
            "RELAYER_NEUTRON_CHAIN_OUTPUT_FORMAT": "json",
            "RELAYER_NEUTRON_CHAIN_SIGN_MODE_STR": "direct",
            "RELAYER_NEUTRON_CHAIN_ALLOW_KV_CALLBACKS": "true",
            "RELAYER_NEUTRON_CHAIN_HOME_DIR": str(neutron.home_path),
            "RELAYER_TARGET_CHAIN_RPC_ADDR": f"tcp://127.0.0.1:{t.rpc_port}",
            "RELAYER_TARGET_CHAIN_CHAIN_ID": t.chain_id,
            "RELAYER_TARGET_CHAIN_GAS_PRICES": f"0.5{t.denom}",
            "RELAYER_TARGET_CHAIN_TIMEOUT": "1000s",
            "RELAYER_TARGET_CHAIN_GAS_ADJUSTMENT": "1.0",
            "RELAYER_TARGET_CHAIN_CONNECTION_ID": "connection-0",
            "RELAYER_TARGET_CHAIN_CLIENT_ID": "07-tendermint-0",
            "RELAYER_TARGET_CHAIN_DEBUG": "true",
            "RELAYER_TARGET_CHAIN_KEYRING_BACKEND": "test",
            "RELAYER_TARGET_CHAIN_OUTPUT_FORMAT": "json",
            "RELAYER_TARGET_CHAIN_SIGN_MODE_STR": "direct",
            "RELAYER_TARGET_CHAIN_HOME_DIR": str(target.home_path),
            "RELAYER_REGISTRY_ADDRESSES": "",
            "RELAYER_ALLOW_TX_QUERIES": "true",
            "RELAYER_ALLOW_KV_CALLBACKS": "true",
            "RELAYER_MIN_KV_UPDATE_PERIOD": "1",
            "RELAYER_QUERIES_TASK_QUEUE_CAPACITY": "10000",
            "RELAYER_CHECK_SUBMITTED_TX_STATUS_DELAY": "10s",
            "RELAYER_WEBSERVER_PORT": "127.0.0.1:9999",
            "RELAYER_STORAGE_PATH": str(self.db_path),
        }

    def start(self, neutron: ChainNode, target: ChainNode) -> ProcessHandle:
        command = (
            Command.of(self.bin_path, "start")
            .envs(self.environment(neutron, target))
            .env(HOME=self.root)
        )
        return ProcessHandle.spawn(command, self.log_path, name="neutron_query_relayer")


class Topology:
    """neutron + gaia + hermes + query relayer under one root."""

    def __init__(self, root: Path):
        self.root = root
        self.neutron = NeutronNode(NEUTRON, root)
        self.gaia = GaiaNode(GAIA, root)
        self.hermes = HermesRelayer(root, NEUTRON, GAIA)
        self.query_relayer = QueryRelayer(root)

    def is_initialized(self) -> bool:
        return all(
            component.is_initialized()
            for component in (self.neutron, self.gaia, self.hermes, self.query_relayer)
        )

    def init(self) -> None:
        """Set up every component that is not set up yet, in dependency order."""
        if not self.neutron.is_initialized():
            self.neutron.init()
        if not self.gaia.is_initialized():
            self.gaia.init()
        if not self.hermes.is_initialized():
            self.hermes.init(self.neutron.src_path)
        if not self.query_relayer.is_initialized():
            self.query_relayer.init()

    def state_paths(self) -> list[Path]:
        """Chain homes and relayer state, leaving sources and binaries in place."""
        return [
            self.neutron.home_path,
            self.gaia.home_path,
            self.hermes.home_path,
            self.query_relayer.db_path,
        ]

    def start(self) -> CompositeHandle:
        """Start all processes; anything already started is stopped if a step fails."""
        with ExitStack() as stack:
            neutron = stack.enter_context(self.neutron.start())
            gaia = stack.enter_context(self.gaia.start())

            logger.info("waiting for neutron blocks")
            wait_for_blocks_with(self.neutron.command, self.neutron.node_address())
            logger.info("waiting for gaia blocks")
            wait_for_blocks_with(self.gaia.command, self.gaia.node_address())

            logger.info("starting hermes")
            hermes = stack.enter_context(self.hermes.start())
            logger.info("starting query relayer")
            query_relayer = stack.enter_context(self.query_relayer.start(self.neutron, self.gaia))

            stack.pop_all()

        return CompositeHandle([neutron, gaia, hermes, query_relayer], self.neutron.log_path)
