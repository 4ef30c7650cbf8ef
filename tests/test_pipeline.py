"""Tests for the daemon command pipeline."""
import json

import pytest

from cwharness.errors import CommandError, DecodeError, InvalidMnemonicError, TxExecuteError
from cwharness.gas import ChainId, GasPrice, NodeAddress, TxId
from cwharness.key import Key, KeyringBackend
from cwharness.network.topology import DEMO_MNEMONIC_1
from cwharness.pipeline import ChainCommand
from cwharness.shell import Command

NODE = NodeAddress("tcp://127.0.0.1:26657")
SIGNER = Key("local0", "wasm1local0", KeyringBackend.TEST)


@pytest.fixture
def chain(fake_run):
    return ChainCommand(Command.of("wasmd", "--home", "/h"))


def test_list_keys_stamps_backend(chain, fake_run):
    fake_run.on("keys", "list", stdout=json.dumps([
        {"name": "local0", "type": "local", "address": "wasm1a", "pubkey": "{}"},
        {"name": "local1", "type": "local", "address": "wasm1b", "pubkey": "{}"},
    ]))

    keys = chain.list_keys(KeyringBackend.OS)

    assert keys == [
        Key("local0", "wasm1a", KeyringBackend.OS),
        Key("local1", "wasm1b", KeyringBackend.OS),
    ]
    assert fake_run.calls[0].after("--keyring-backend") == "os"


def test_list_keys_empty_output(chain, fake_run):
    assert chain.list_keys(KeyringBackend.TEST) == []


def test_add_key(chain, fake_run):
    fake_run.on("keys", "add", "val", stdout='{"name":"val","address":"wasm1v","mnemonic":"..."}')
    assert chain.add_key("val", KeyringBackend.TEST) == Key("val", "wasm1v", KeyringBackend.TEST)


def test_recover_key_sends_mnemonic_on_stdin(chain, fake_run):
    fake_run.on("--recover", stdout='{"name":"local1","address":"wasm1x"}')

    key = chain.recover_key("local1", DEMO_MNEMONIC_1, KeyringBackend.TEST)

    assert key.address == "wasm1x"
    call = fake_run.calls[0]
    assert call.has("keys", "add", "local1", "--recover")
    assert call.input == DEMO_MNEMONIC_1 + "\n"


def test_recover_key_validates_before_spawning(chain, fake_run):
    with pytest.raises(InvalidMnemonicError):
        chain.recover_key("x", "definitely not valid", KeyringBackend.TEST)
    assert fake_run.calls == []


def test_add_key_bad_output(chain, fake_run):
    fake_run.on("keys", "add", stdout="not json")
    with pytest.raises(DecodeError):
        chain.add_key("val", KeyringBackend.TEST)


def test_genesis_setup_commands(chain, fake_run):
    chain.init_chain("archway-local", "localnet")
    chain.add_genesis_account(SIGNER, [(100, "untrn"), (5, "uibcatom")])
    chain.gentx(SIGNER, 7, "stake", "localnet", gas=180)
    chain.collect_gentx()
    chain.validate_genesis()

    argvs = [call.argv[3:] for call in fake_run.calls]
    assert argvs[0] == ["init", "archway-local", "--chain-id", "localnet"]
    assert argvs[1] == ["add-genesis-account", "local0", "100untrn,5uibcatom", "--keyring-backend", "test"]
    assert argvs[2] == ["gentx", "local0", "7stake", "--gas", "180", "--chain-id", "localnet", "--keyring-backend", "test"]
    assert argvs[3] == ["collect-gentxs"]
    assert argvs[4] == ["validate-genesis"]


def test_gentx_without_gas(chain, fake_run):
    chain.gentx(SIGNER, 7, "uatom", "test-2")
    assert "--gas" not in fake_run.calls[0].argv


def test_build_address_hex_encodes_salt(chain, fake_run):
    fake_run.on("build-address", stdout="wasm1predicted  extra\n")

    assert chain.build_address("ABCD", SIGNER, "salt") == "wasm1predicted"
    assert fake_run.calls[0].argv[-3:] == ["ABCD", "wasm1local0", "73616c74"]


def test_tx_store_flags(chain, fake_run):
    fake_run.on("tx", "wasm", "store", stdout='{"txhash":"HASH","code":0,"raw_log":"[]"}')

    tx_id = (
        chain.tx(SIGNER, ChainId("test-1"), NODE)
        .wasm_store("cw20_base.wasm")
        .execute(GasPrice(0.02, "untrn").units(100))
    )

    assert tx_id == TxId("HASH")
    call = fake_run.calls[0]
    assert call.after("--from") == "local0"
    assert call.after("--keyring-backend") == "test"
    assert call.after("--chain-id") == "test-1"
    assert call.after("--node") == str(NODE)
    assert call.after("--gas") == "100"
    assert call.after("--gas-prices") == "0.02untrn"
    assert call.after("--output") == "json"
    assert "--yes" in call.argv


def test_tx_rejected_broadcast_surfaces_raw_log(chain, fake_run):
    fake_run.on("tx", "wasm", "execute", stdout='{"txhash":"HASH","code":5,"raw_log":"insufficient funds"}')

    with pytest.raises(TxExecuteError) as exc_info:
        chain.tx(SIGNER, ChainId("test-1"), NODE).wasm_execute("wasm1c", "{}").execute(
            GasPrice(1, "stake").units(1)
        )

    assert exc_info.value.raw_log == "insufficient funds"
    assert str(exc_info.value) == "insufficient funds"


def test_broadcast_process_failure_is_command_error(chain, fake_run):
    fake_run.on("tx", "wasm", "execute", stderr="account not found", returncode=1)
    with pytest.raises(CommandError):
        chain.tx(SIGNER, ChainId("test-1"), NODE).wasm_execute("wasm1c", "{}").execute(
            GasPrice(1, "stake").units(1)
        )


def test_instantiate_admin_flags(chain, fake_run):
    tx = chain.tx(SIGNER, ChainId("test-1"), NODE)

    no_admin = tx.wasm_instantiate(3, "demo", "{}").command
    with_admin = tx.wasm_instantiate(3, "demo", "{}", admin="wasm1admin").command

    assert "--no-admin" in no_admin.argv
    assert "--admin" not in no_admin.argv
    assert with_admin.argv[with_admin.argv.index("--admin") + 1] == "wasm1admin"
    assert "--no-admin" not in with_admin.argv


def test_ready_tx_amount_and_extra_args(chain):
    ready = chain.tx(SIGNER, ChainId("test-1"), NODE).wasm_execute("wasm1c", "{}")
    argv = ready.amount(10, "untrn").args("--fees", "5untrn").command.argv
    assert argv[-4:] == ("--amount", "10untrn", "--fees", "5untrn")


def test_query_tx_not_found_is_none(chain, fake_run):
    fake_run.on("query", "tx", stderr="Error: tx (HASH) not found", returncode=1)
    assert chain.query(NODE).tx(TxId("HASH")) is None


def test_query_tx_other_failure_raises(chain, fake_run):
    fake_run.on("query", "tx", stderr="Error: post failed: EOF", returncode=1)

    with pytest.raises(TxExecuteError) as exc_info:
        chain.query(NODE).tx(TxId("HASH"))

    assert "EOF" in exc_info.value.raw_log


def test_query_tx_failed_on_chain_raises(chain, fake_run):
    fake_run.on("query", "tx", stdout='{"txhash":"HASH","code":11,"raw_log":"out of gas"}')
    with pytest.raises(TxExecuteError, match="out of gas"):
        chain.query(NODE).tx(TxId("HASH"))


def test_query_tx_success(chain, fake_run):
    fake_run.on("query", "tx", stdout=json.dumps({
        "txhash": "HASH",
        "height": "12",
        "code": 0,
        "data": "0A00",
        "logs": [{"events": [{"type": "wasm", "attributes": [{"key": "action", "value": "mint"}]}]}],
    }))

    envelope = chain.query(NODE).tx(TxId("HASH"))

    assert envelope.height == 12
    assert envelope.data == "0A00"
    assert [(a.key, a.value) for a in envelope.attributes()] == [("action", "mint")]
    assert fake_run.calls[0].argv[3:6] == ["--node", str(NODE), "query"]


def test_status_connection_refused_is_none(chain, fake_run):
    fake_run.on("status", stderr="dial tcp 127.0.0.1:26657: connect: connection refused", returncode=1)
    assert chain.query(NODE).status() is None


def test_status_other_failure_raises(chain, fake_run):
    fake_run.on("status", stderr="no such host", returncode=1)
    with pytest.raises(TxExecuteError):
        chain.query(NODE).status()


def test_status_parses_either_stream(chain, fake_run):
    fake_run.on("status", stderr='{"SyncInfo":{"latest_block_height":"7"}}')
    assert chain.query(NODE).status().height == 7

    fake_run.on("status", stdout='{"sync_info":{"latest_block_height":"8"}}')
    assert chain.query(NODE).status().height == 8


def test_wasm_smart_and_code_info(chain, fake_run):
    fake_run.on("contract-state", "smart", stdout='{"data":{"balance":"1"}}')
    fake_run.on("code-info", stdout='{"code_id":"3","creator":"wasm1c","data_hash":"AB"}')

    query = chain.query(NODE)
    assert json.loads(query.wasm_smart("wasm1contract", '{"balance":{}}')) == {"data": {"balance": "1"}}
    assert query.code_info(3).data_hash == "AB"
