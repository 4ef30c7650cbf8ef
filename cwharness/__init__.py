"""cwharness: CosmWasm test and deployment harness."""

from cwharness.contract import Transaction, execute, instantiate, query, store
from cwharness.errors import HarnessError, NoSignerError, TxExecuteError
from cwharness.gas import Gas, GasPrice, GasTier
from cwharness.key import Key, KeyringBackend
from cwharness.network import ArchwayLocal, Backend, NeutronLocal, NeutronTestnet, get_network
from cwharness.poll import wait_for_blocks, wait_for_tx
from cwharness.proto import CodeId, ContractAddress, ExecuteResponse

__version__ = "0.1.0"

__all__ = [
    "ArchwayLocal",
    "Backend",
    "CodeId",
    "ContractAddress",
    "ExecuteResponse",
    "Gas",
    "GasPrice",
    "GasTier",
    "HarnessError",
    "Key",
    "KeyringBackend",
    "NeutronLocal",
    "NeutronTestnet",
    "NoSignerError",
    "Transaction",
    "TxExecuteError",
    "execute",
    "get_network",
    "instantiate",
    "query",
    "store",
    "wait_for_blocks",
    "wait_for_tx",
]
