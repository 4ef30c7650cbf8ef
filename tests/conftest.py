"""
Pytest fixtures for the cwharness tests.

External programs are never spawned here: ``fake_run`` replaces
``subprocess.run`` as seen by ``cwharness.shell`` with a scripted runner
that answers by argv.
"""
import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from cwharness.config import settings
from cwharness.gas import ChainId, GasPrices, NodeAddress
from cwharness.key import Key, KeyringBackend
from cwharness.log import LOGGER_NAME
from cwharness.network.base import Network
from cwharness.pipeline import ChainCommand
from cwharness.proto import MsgData, TxMsgData
from cwharness.shell import Command


@dataclass
class Response:
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    raises: OSError | None = None


@dataclass
class Call:
    argv: list[str]
    kwargs: dict = field(default_factory=dict)

    @property
    def input(self):
        return self.kwargs.get("input")

    @property
    def env(self):
        return self.kwargs.get("env") or {}

    @property
    def cwd(self):
        return self.kwargs.get("cwd")

    def has(self, *tokens: str) -> bool:
        return _contains(self.argv, tokens)

    def after(self, flag: str) -> str:
        """Value following ``flag`` in argv."""
        return self.argv[self.argv.index(flag) + 1]


def _contains(argv, tokens) -> bool:
    """Whether ``tokens`` appear in ``argv`` in order (not necessarily adjacent)."""
    it = iter(argv)
    return all(any(arg == token for arg in it) for token in tokens)


class FakeRunner:
    """Scripted stand-in for ``subprocess.run``.

    ``on(*tokens, ...)`` registers a response for any argv containing the
    tokens in order; the most specific (longest) matching rule wins.
    Registering the same tokens again queues another response; the last
    queued response repeats forever. Unmatched commands succeed silently.
    """

    def __init__(self):
        self.calls: list[Call] = []
        self.rules: list[tuple[tuple[str, ...], list[Response]]] = []

    def on(self, *tokens: str, stdout="", stderr="", returncode=0, raises=None) -> "FakeRunner":
        response = Response(stdout, stderr, returncode, raises)
        for rule_tokens, queue in self.rules:
            if rule_tokens == tokens:
                queue.append(response)
                return self
        self.rules.append((tokens, [response]))
        return self

    def __call__(self, argv, **kwargs):
        argv = [str(a) for a in argv]
        self.calls.append(Call(argv, kwargs))

        matches = [(tokens, queue) for tokens, queue in self.rules if _contains(argv, tokens)]
        if not matches:
            return subprocess.CompletedProcess(argv, 0, "", "")

        _, queue = max(matches, key=lambda m: len(m[0]))
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if response.raises is not None:
            raise response.raises
        return subprocess.CompletedProcess(argv, response.returncode, response.stdout, response.stderr)

    def find(self, *tokens: str) -> list[Call]:
        return [call for call in self.calls if call.has(*tokens)]


@pytest.fixture(autouse=True)
def _state_dir(tmp_path, monkeypatch):
    """Keep every backend's state inside the test's temporary directory."""
    monkeypatch.setattr(settings, "state_dir", tmp_path / "state")


@pytest.fixture(autouse=True)
def _propagate_logs(monkeypatch):
    """Let caplog see package logs even after the CLI installed its rich handler."""
    monkeypatch.setattr(logging.getLogger(LOGGER_NAME), "propagate", True)


@pytest.fixture
def fake_run(monkeypatch):
    runner = FakeRunner()
    monkeypatch.setattr("cwharness.shell.subprocess.run", runner)
    return runner


@pytest.fixture
def sleeps(monkeypatch):
    """Make ``time.sleep`` instantaneous and record the requested delays."""
    recorded: list[float] = []
    monkeypatch.setattr(time, "sleep", lambda seconds: recorded.append(seconds))
    return recorded


class FakeNetwork(Network):
    """Network backed by a ``wasmd`` binary that only exists in ``fake_run``."""

    state_path = ("fake",)
    gas_prices = GasPrices.of(0.01, 0.02, 0.04, "untrn")

    def is_initialized(self) -> bool:
        return True

    def bootstrap(self) -> None:
        pass

    def command(self) -> ChainCommand:
        return ChainCommand(Command.of("wasmd", "--home", str(self.root)))

    def chain_id(self) -> ChainId:
        return ChainId("test-1")

    def node_address(self) -> NodeAddress:
        return NodeAddress("tcp://127.0.0.1:26657")


SIGNER = Key(name="local0", address="wasm1local0", backend=KeyringBackend.TEST)


@pytest.fixture
def network(fake_run, tmp_path):
    net = FakeNetwork(tmp_path / "fake")
    net._keys = [SIGNER]
    return net


def tx_data(response, legacy: bool = False) -> str:
    """Hex-encoded ``TxMsgData`` carrying ``response`` as its only frame."""
    frame = MsgData(msg_type="/cosmwasm.wasm.v1.Msg", data=response.SerializeToString())
    message = TxMsgData(data=[frame]) if legacy else TxMsgData(msg_responses=[frame])
    return message.SerializeToString().hex()


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path
