"""Configuration management for cwharness."""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global settings."""

    model_config = SettingsConfigDict(env_prefix="CWHARNESS_", populate_by_name=True)

    # State
    state_dir: Path | None = None  # defaults to <cwd>/target/cwharness

    # Polling
    tx_poll_interval: float = 0.25  # seconds
    block_poll_interval: float = 0.5  # seconds

    # Transactions
    default_gas_units: int = 100_000_000

    # Process lifecycle
    relayer_settle_delay: float = 5.0  # seconds
    kill_grace_period: float = 8.0  # seconds

    # External tools
    docker_bin: str = "docker"
    git_bin: str = "git"
    make_bin: str = "make"
    cargo_bin: str = "cargo"

    # Contract builds
    artifacts_dir: str = Field(
        default="artifacts",
        validation_alias=AliasChoices("COSMWASM_ARTIFACTS_DIR", "CWHARNESS_ARTIFACTS_DIR"),
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


def state_root() -> Path:
    """Root working directory holding every backend's persisted state."""
    if settings.state_dir is not None:
        return Path(settings.state_dir).absolute()
    return Path.cwd() / "target" / "cwharness"


def backend_root(*parts: str) -> Path:
    """State directory for one backend, e.g. ``backend_root("neutron", "local")``."""
    return state_root().joinpath(*parts)


# Global instance
settings = Settings()
