"""Tests for settings."""
from cwharness.config import Settings, backend_root, settings, state_root


def test_defaults(monkeypatch):
    monkeypatch.delenv("COSMWASM_ARTIFACTS_DIR", raising=False)
    s = Settings()
    assert s.tx_poll_interval == 0.25
    assert s.block_poll_interval == 0.5
    assert s.default_gas_units == 100_000_000
    assert s.artifacts_dir == "artifacts"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("CWHARNESS_TX_POLL_INTERVAL", "1.5")
    monkeypatch.setenv("CWHARNESS_LOG_LEVEL", "DEBUG")
    s = Settings()
    assert s.tx_poll_interval == 1.5
    assert s.log_level == "DEBUG"


def test_artifacts_dir_alias(monkeypatch):
    monkeypatch.setenv("COSMWASM_ARTIFACTS_DIR", "out/wasm")
    assert Settings().artifacts_dir == "out/wasm"


def test_state_root_override(tmp_path):
    assert state_root() == tmp_path / "state"
    assert backend_root("neutron", "local") == tmp_path / "state" / "neutron" / "local"


def test_state_root_default(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "state_dir", None)
    monkeypatch.chdir(tmp_path)
    assert state_root() == tmp_path / "target" / "cwharness"
