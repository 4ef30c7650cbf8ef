"""Tests for the demo cw20 deployment."""
import json

import pytest

from conftest import SIGNER, tx_data
from cwharness.deploy import LABEL, MINT_AMOUNT, deploy_cw20
from cwharness.errors import NoSignerError, TxExecuteError
from cwharness.key import Key, KeyringBackend
from cwharness.proto import (
    CodeId,
    ContractAddress,
    MsgExecuteContractResponse,
    MsgInstantiateContractResponse,
    MsgStoreCodeResponse,
)


def status(height: int) -> str:
    return json.dumps({"SyncInfo": {"latest_block_height": str(height)}})


def script_chain(fake_run, failing=None):
    fake_run.on("status", stdout=status(5))
    fake_run.on("status", stdout=status(6))

    for action, txhash, response in [
        ("store", "STORE", MsgStoreCodeResponse(code_id=1)),
        ("instantiate", "INST", MsgInstantiateContractResponse(address="wasm1cw20")),
        ("execute", "EXEC", MsgExecuteContractResponse(data=b"")),
    ]:
        broadcast = json.dumps({"txhash": txhash, "code": 0})
        if action == failing:
            broadcast = json.dumps({"txhash": "", "code": 2, "raw_log": "out of gas"})
        fake_run.on("tx", "wasm", action, stdout=broadcast)
        fake_run.on(
            "query", "tx", txhash,
            stdout=json.dumps({"txhash": txhash, "code": 0, "data": tx_data(response)}),
        )

    fake_run.on("contract-state", "smart", stdout=json.dumps({"data": {"balance": str(MINT_AMOUNT)}}))


def test_deploy_cw20(network, fake_run, sleeps):
    script_chain(fake_run)

    result = deploy_cw20(network, "artifacts/cw20_base.wasm")

    assert result.code_id == CodeId(1)
    assert result.contract == ContractAddress("wasm1cw20")
    assert result.balance == MINT_AMOUNT

    # Blocks are awaited before anything is submitted
    first_tx = next(i for i, c in enumerate(fake_run.calls) if c.has("tx", "wasm"))
    assert [c.argv[-1] for c in fake_run.calls[:first_tx]] == ["status", "status"]

    instantiate = fake_run.find("tx", "wasm", "instantiate")[0]
    assert instantiate.after("--label") == LABEL
    init_msg = json.loads(instantiate.argv[instantiate.argv.index("instantiate") + 2])
    assert init_msg == {
        "name": "Demo",
        "symbol": "DEMO",
        "decimals": 6,
        "initial_balances": [],
        "mint": {"minter": SIGNER.address},
    }
    assert "--no-admin" in instantiate.argv

    mint = fake_run.find("tx", "wasm", "execute")[0]
    assert mint.has("wasm1cw20")
    assert json.loads(mint.argv[mint.argv.index("wasm1cw20") + 1]) == {
        "mint": {"recipient": SIGNER.address, "amount": str(MINT_AMOUNT)},
    }

    smart = fake_run.find("contract-state", "smart")[0]
    assert json.loads(smart.argv[smart.argv.index("wasm1cw20") + 1]) == {"balance": {"address": SIGNER.address}}


def test_deploy_cw20_with_explicit_signer(network, fake_run, sleeps):
    script_chain(fake_run)
    other = Key("local1", "wasm1local1", KeyringBackend.TEST)

    deploy_cw20(network, signer=other)

    assert all(c.after("--from") == "local1" for c in fake_run.find("tx", "wasm"))
    assert fake_run.find("tx", "wasm", "store")[0].has("examples/cw20_base.wasm")


def test_deploy_cw20_without_keys(network, fake_run):
    network._keys = []
    with pytest.raises(NoSignerError):
        deploy_cw20(network)
    assert fake_run.calls == []


def test_deploy_cw20_stops_on_failed_tx(network, fake_run, sleeps):
    script_chain(fake_run, failing="instantiate")

    with pytest.raises(TxExecuteError, match="out of gas"):
        deploy_cw20(network)

    assert fake_run.find("tx", "wasm", "execute") == []


def test_deploy_cw20_skips_block_wait(network, fake_run, sleeps):
    script_chain(fake_run)

    result = deploy_cw20(network, wait_for_node=False)

    assert result.balance == MINT_AMOUNT
    assert fake_run.find("status") == []
