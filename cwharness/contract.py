"""Transaction builder and executor for wasm store/instantiate/execute."""

import json
import logging
import os
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from cwharness.config import settings
from cwharness.errors import DecodeError, NoSignerError
from cwharness.gas import GasTier
from cwharness.key import Key
from cwharness.pipeline import ReadyTxCommand
from cwharness.poll import wait_for_tx
from cwharness.proto import CodeId, ContractAddress, ExecuteResponse, ResponseType, decode_tx_data

if TYPE_CHECKING:
    from cwharness.network.base import Network

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=ResponseType)
T = TypeVar("T")

PreSubmitHook = Callable[[ReadyTxCommand], ReadyTxCommand]


class TxKind(str, Enum):
    STORE = "store"
    INSTANTIATE = "instantiate"
    EXECUTE = "execute"


def encode_msg(msg: Any) -> str:
    """Serialize a contract message to compact JSON."""
    if isinstance(msg, BaseModel):
        msg = msg.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(msg, separators=(",", ":"))


class Transaction(Generic[R]):
    """A wasm transaction that decodes into ``R`` once confirmed.

    Configuration methods return ``self`` so calls can be chained:

        code_id = store("cw20_base.wasm").gas(5_000_000).send(network)
    """

    def __init__(
        self,
        kind: TxKind,
        response_type: type[R],
        *,
        path: Path | None = None,
        code_id: CodeId | int | None = None,
        label: str | None = None,
        contract: ContractAddress | str | None = None,
        msg: Any = None,
    ):
        self.kind = kind
        self.response_type = response_type
        self.path = path
        self.code_id = code_id
        self.label = label
        self.contract = contract
        self.msg = msg
        self.gas_units = settings.default_gas_units
        self.funds: tuple[int, str] | None = None
        self.admin_address: str | None = None
        self.hook: PreSubmitHook | None = None

    def gas(self, units: int) -> "Transaction[R]":
        self.gas_units = units
        return self

    def amount(self, value: int, denom: str) -> "Transaction[R]":
        """Attach funds sent along with the message."""
        self.funds = (value, denom)
        return self

    def admin(self, address: str) -> "Transaction[R]":
        if self.kind is not TxKind.INSTANTIATE:
            raise ValueError(f"admin can only be set on instantiate, not {self.kind.value}")
        self.admin_address = address
        return self

    def pre_submit_hook(self, hook: PreSubmitHook) -> "Transaction[R]":
        """Transform the prepared command right before submission."""
        self.hook = hook
        return self

    def _resolve_signer(self, network: "Network", signer: Key | None) -> Key:
        if signer is not None:
            return signer
        keys = network.keys()
        if not keys:
            raise NoSignerError(type(network).__name__)
        return keys[0]

    def _prepare(self, network: "Network", signer: Key) -> ReadyTxCommand:
        tx = network.command().tx(signer, network.chain_id(), network.node_address())
        if self.kind is TxKind.STORE:
            return tx.wasm_store(self.path)
        if self.kind is TxKind.INSTANTIATE:
            return tx.wasm_instantiate(int(self.code_id), self.label, encode_msg(self.msg), self.admin_address)
        return tx.wasm_execute(str(self.contract), encode_msg(self.msg))

    def send(self, network: "Network", signer: Key | None = None) -> R:
        """Sign, broadcast and wait for inclusion, then decode the response.

        Args:
            network: Target network.
            signer: Signing key; the network's first key when omitted.

        Returns:
            The decoded first message response of the confirmed transaction.
        """
        signer = self._resolve_signer(network, signer)
        gas = network.gas_price(GasTier.MEDIUM).units(self.gas_units)

        command = self._prepare(network, signer)
        if self.funds is not None:
            command = command.amount(*self.funds)
        if self.hook is not None:
            command = self.hook(command)

        tx_id = command.execute(gas)
        logger.info("%s tx %s submitted by %s", self.kind.value, tx_id, signer.name)

        envelope = wait_for_tx(network, tx_id)
        return decode_tx_data(envelope.data, self.response_type)

    def __repr__(self) -> str:
        return f"Transaction({self.kind.value}, gas={self.gas_units})"


def store(path: str | os.PathLike) -> Transaction[CodeId]:
    """Upload wasm bytecode from ``path``."""
    return Transaction(TxKind.STORE, CodeId, path=Path(path))


def instantiate(code_id: CodeId | int, label: str, msg: Any) -> Transaction[ContractAddress]:
    """Create a contract instance of ``code_id``."""
    return Transaction(TxKind.INSTANTIATE, ContractAddress, code_id=code_id, label=label, msg=msg)


def execute(contract: ContractAddress | str, msg: Any) -> Transaction[ExecuteResponse]:
    """Execute ``msg`` on ``contract``."""
    return Transaction(TxKind.EXECUTE, ExecuteResponse, contract=contract, msg=msg)


def query(
    network: "Network",
    contract: ContractAddress | str,
    msg: Any,
    response_type: type[T] = dict,
) -> T:
    """Run a smart query and decode the ``data`` member of its output."""
    out = network.command().query(network.node_address()).wasm_smart(str(contract), encode_msg(msg))
    try:
        data = json.loads(out)["data"]
        return TypeAdapter(response_type).validate_python(data)
    except (ValueError, KeyError, TypeError, ValidationError) as e:
        raise DecodeError(f"invalid smart query output: {e}") from e
