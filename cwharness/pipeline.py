"""Typed command pipeline over a chain daemon's CLI.

A ``ChainCommand`` wraps the base invocation of a daemon (a local binary or a
``docker run`` of an image) and narrows it into setup operations, a
transaction sub-pipeline (``tx``) or a query sub-pipeline (``query``).
Terminal operations run one process and parse its output.
"""

import logging
import os
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from cwharness.errors import DecodeError, TxExecuteError
from cwharness.gas import ChainId, Gas, NodeAddress, TxId
from cwharness.key import Key, KeyringBackend, RawKey, validate_mnemonic
from cwharness.shell import Command

logger = logging.getLogger(__name__)

TX_NOT_FOUND = "not found"
CONNECTION_REFUSED = "connection refused"


class Attribute(BaseModel):
    key: str
    value: str = ""


class Event(BaseModel):
    type: str
    attributes: list[Attribute] = Field(default_factory=list)


class TxLog(BaseModel):
    events: list[Event] = Field(default_factory=list)


class TxEnvelope(BaseModel):
    """Broadcast or query output of a transaction."""
    txhash: str
    code: int = 0
    raw_log: str = ""
    logs: list[TxLog] | None = None
    data: str = ""
    height: int = 0

    def attributes(self) -> Iterator[Attribute]:
        for log in self.logs or []:
            for event in log.events:
                yield from event.attributes


class SyncInfo(BaseModel):
    latest_block_height: int


class NodeStatus(BaseModel):
    """Subset of a node's ``status`` output."""
    sync_info: SyncInfo = Field(validation_alias=AliasChoices("SyncInfo", "sync_info"))

    @property
    def height(self) -> int:
        return self.sync_info.latest_block_height


class CodeInfo(BaseModel):
    creator: str
    data_hash: str = Field(validation_alias=AliasChoices("data_hash", "checksum"))


def parse_json(model: Any, text: str | bytes, what: str) -> Any:
    """Validate JSON ``text`` against ``model``, raising ``DecodeError``."""
    try:
        return TypeAdapter(model).validate_json(text)
    except ValidationError as e:
        raise DecodeError(f"invalid {what} output: {e}") from e


def _coins(coins: Iterable[tuple[int, str]]) -> str:
    return ",".join(f"{amount}{denom}" for amount, denom in coins)


class ChainCommand:
    """Raw daemon invocation, narrowed by its methods."""

    def __init__(self, command: Command):
        self.command = command

    def list_keys(self, backend: KeyringBackend) -> list[Key]:
        """List the keys stored in ``backend``."""
        out = self.command.args(
            "keys", "list", "--keyring-backend", backend.value, "--output", "json"
        ).read()
        raw_keys = parse_json(list[RawKey], out or "[]", "keys list")
        return [raw.with_backend(backend) for raw in raw_keys]

    def add_key(self, name: str, backend: KeyringBackend) -> Key:
        """Create a new key ``name`` in ``backend``."""
        out = self.command.args(
            "keys", "add", name, "--keyring-backend", backend.value, "--output", "json"
        ).read()
        return parse_json(RawKey, out, "keys add").with_backend(backend)

    def recover_key(self, name: str, mnemonic: str, backend: KeyringBackend) -> Key:
        """Recover ``name`` from ``mnemonic`` into ``backend``."""
        phrase = validate_mnemonic(mnemonic)
        out = (
            self.command.args(
                "keys", "add", name,
                "--keyring-backend", backend.value,
                "--recover",
                "--output", "json",
            )
            .stdin(phrase + "\n")
            .read()
        )
        return parse_json(RawKey, out, "keys add --recover").with_backend(backend)

    def init_chain(self, moniker: str, chain_id: ChainId | str) -> None:
        self.command.args("init", moniker, "--chain-id", chain_id).run_quiet()

    def add_genesis_account(self, key: Key, coins: Iterable[tuple[int, str]]) -> None:
        """Fund ``key`` in genesis with ``coins`` given as (amount, denom) pairs."""
        self.command.args(
            "add-genesis-account", key.name, _coins(coins),
            "--keyring-backend", key.backend.value,
        ).run_quiet()

    def gentx(
        self,
        key: Key,
        amount: int,
        denom: str,
        chain_id: ChainId | str,
        gas: int | None = None,
    ) -> None:
        """Create the validator's genesis transaction."""
        cmd = self.command.args("gentx", key.name, f"{amount}{denom}")
        if gas is not None:
            cmd = cmd.args("--gas", str(gas))
        cmd.args("--chain-id", chain_id, "--keyring-backend", key.backend.value).run_quiet()

    def collect_gentx(self) -> None:
        self.command.arg("collect-gentxs").run_quiet()

    def validate_genesis(self) -> None:
        self.command.arg("validate-genesis").run_quiet()

    def build_address(self, code_hash: str, creator: Key, salt: str) -> str:
        """Predict the address of a contract instantiated with ``salt``."""
        out = self.command.args(
            "query", "wasm", "build-address", code_hash, creator.address, salt.encode().hex()
        ).read()
        tokens = out.split()
        if not tokens:
            raise DecodeError("empty build-address output")
        return tokens[0]

    def tx(self, signer: Key, chain_id: ChainId, node: NodeAddress) -> "TxCommand":
        return TxCommand(self.command, signer, chain_id, node)

    def query(self, node: NodeAddress) -> "QueryCommand":
        return QueryCommand(self.command.args("--node", node))


class TxCommand:
    """Transaction sub-pipeline bound to a signer, chain id and node."""

    def __init__(self, command: Command, signer: Key, chain_id: ChainId, node: NodeAddress):
        self.command = command
        self.signer = signer
        self.chain_id = chain_id
        self.node = node

    def _ready(self, command: Command) -> "ReadyTxCommand":
        return ReadyTxCommand(
            command.args(
                "--from", self.signer.name,
                "--keyring-backend", self.signer.backend.value,
                "--chain-id", self.chain_id,
                "--node", self.node,
                "--yes",
            )
        )

    def wasm_store(self, path: str | os.PathLike) -> "ReadyTxCommand":
        return self._ready(self.command.args("tx", "wasm", "store", path))

    def wasm_instantiate(
        self,
        code_id: int,
        label: str,
        msg_json: str,
        admin: str | None = None,
    ) -> "ReadyTxCommand":
        cmd = self.command.args(
            "tx", "wasm", "instantiate", str(int(code_id)), msg_json, "--label", label
        )
        cmd = cmd.args("--admin", admin) if admin else cmd.arg("--no-admin")
        return self._ready(cmd)

    def wasm_execute(self, contract: str, msg_json: str) -> "ReadyTxCommand":
        return self._ready(self.command.args("tx", "wasm", "execute", str(contract), msg_json))


class ReadyTxCommand:
    """A fully addressed transaction waiting for gas and submission."""

    def __init__(self, command: Command):
        self.command = command

    def amount(self, value: int, denom: str) -> "ReadyTxCommand":
        return ReadyTxCommand(self.command.args("--amount", f"{value}{denom}"))

    def args(self, *extra: str) -> "ReadyTxCommand":
        """Append backend-specific flags such as ``--fees``."""
        return ReadyTxCommand(self.command.args(*extra))

    def execute(self, gas: Gas) -> TxId:
        """Broadcast and return the transaction id (not yet confirmed)."""
        cmd = self.command.args(
            "--gas", str(gas.units),
            "--gas-prices", str(gas.price),
            "--output", "json",
        )
        logger.info("%s", cmd)

        envelope: TxEnvelope = parse_json(TxEnvelope, cmd.read(), "tx broadcast")
        if envelope.code > 0:
            raise TxExecuteError(envelope.raw_log)

        return TxId(envelope.txhash)


class QueryCommand:
    """Query sub-pipeline bound to a node."""

    def __init__(self, command: Command):
        self.command = command

    def tx(self, tx_id: TxId) -> TxEnvelope | None:
        """Look up ``tx_id``; ``None`` while the node has not seen it yet."""
        result = self.command.args("query", "tx", tx_id, "--output", "json").output()

        if result.returncode != 0:
            stderr = result.stderr or ""
            if TX_NOT_FOUND in stderr:
                return None
            raise TxExecuteError(stderr)

        envelope: TxEnvelope = parse_json(TxEnvelope, result.stdout, "query tx")
        if envelope.code > 0:
            raise TxExecuteError(envelope.raw_log)

        return envelope

    def status(self) -> NodeStatus | None:
        """Node status; ``None`` while the RPC endpoint refuses connections."""
        result = self.command.arg("status").output()

        if result.returncode != 0:
            stderr = result.stderr or ""
            if CONNECTION_REFUSED in stderr:
                return None
            raise TxExecuteError(stderr)

        # Older daemons print status to stderr
        return parse_json(NodeStatus, result.stdout or result.stderr, "status")

    def wasm_smart(self, contract: str, msg_json: str) -> str:
        return self.command.args(
            "query", "wasm", "contract-state", "smart", str(contract), msg_json,
            "--output", "json",
        ).read()

    def code_info(self, code_id: int) -> CodeInfo:
        out = self.command.args(
            "query", "wasm", "code-info", str(int(code_id)), "--output", "json"
        ).read()
        return parse_json(CodeInfo, out, "code-info")
