"""Demo deployment of a cw20 token: store, instantiate, mint and query."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field

from cwharness.contract import execute, instantiate, query, store
from cwharness.errors import NoSignerError
from cwharness.key import Key
from cwharness.network.base import Network
from cwharness.poll import wait_for_blocks
from cwharness.proto import CodeId, ContractAddress

logger = logging.getLogger(__name__)

DEFAULT_WASM = Path("examples", "cw20_base.wasm")
LABEL = "demo_cw20"
MINT_AMOUNT = 1_000_000_000_000


class MinterResponse(BaseModel):
    minter: str
    cap: str | None = None


class Cw20Coin(BaseModel):
    address: str
    amount: str


class Cw20InstantiateMsg(BaseModel):
    name: str
    symbol: str
    decimals: int
    initial_balances: list[Cw20Coin] = Field(default_factory=list)
    mint: MinterResponse | None = None


class Mint(BaseModel):
    recipient: str
    amount: str  # Uint128 travels as a decimal string


class Cw20MintMsg(BaseModel):
    mint: Mint


class BalanceQuery(BaseModel):
    address: str


class Cw20BalanceQuery(BaseModel):
    balance: BalanceQuery


class BalanceResponse(BaseModel):
    balance: int


@dataclass
class DeployResult:
    """Outcome of ``deploy_cw20``."""
    code_id: CodeId
    contract: ContractAddress
    balance: int


def deploy_cw20(
    network: Network,
    wasm_path: str | os.PathLike = DEFAULT_WASM,
    signer: Key | None = None,
    wait_for_node: bool = True,
) -> DeployResult:
    """Deploy cw20-base and mint to the signer.

    By default it first waits for the node to produce a new block; pass
    ``wait_for_node=False`` to submit straight away.

    Args:
        network: Initialized network with a running node.
        wasm_path: cw20-base bytecode.
        signer: Minter and recipient; the network's first key when omitted.
        wait_for_node: Poll ``status`` until the height advances before storing.

    Returns:
        Code id, contract address and the signer's balance after minting.
    """
    keys = network.keys()
    if signer is None:
        if not keys:
            raise NoSignerError(type(network).__name__)
        signer = keys[0]

    if wait_for_node:
        wait_for_blocks(network)

    code_id = store(wasm_path).send(network, signer)
    logger.info("stored cw20-base at code id %s", code_id)

    contract = instantiate(
        code_id,
        LABEL,
        Cw20InstantiateMsg(
            name="Demo",
            symbol="DEMO",
            decimals=6,
            mint=MinterResponse(minter=signer.address),
        ),
    ).send(network, signer)
    logger.info("instantiated cw20 DEMO at %s", contract)

    execute(
        contract,
        Cw20MintMsg(mint=Mint(recipient=signer.address, amount=str(MINT_AMOUNT))),
    ).send(network, signer)
    logger.info("minted %d uDEMO to %s", MINT_AMOUNT, signer.address)

    response = query(
        network,
        contract,
        Cw20BalanceQuery(balance=BalanceQuery(address=signer.address)),
        BalanceResponse,
    )
    return DeployResult(code_id=code_id, contract=contract, balance=response.balance)
