"""Uniform capability interface implemented by every network backend."""

import logging
import shutil
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import ClassVar, Generic, TypeVar

from cwharness.config import backend_root
from cwharness.errors import UnsupportedOperationError
from cwharness.gas import ChainId, GasPrice, GasPrices, GasTier, NodeAddress
from cwharness.key import Key, KeyringBackend
from cwharness.network.handle import LifecycleHandle
from cwharness.pipeline import ChainCommand

logger = logging.getLogger(__name__)

T = TypeVar("T")
N = TypeVar("N", bound="Network")


class CleanScope(str, Enum):
    """What ``Network.clean`` removes."""
    STATE = "state"  # chain and relayer state only
    ALL = "all"  # everything, including sources and binaries


class Memo(Generic[T]):
    """Get-or-compute-once cell; the first successful computation wins."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None
        self._set = False

    def get_or_init(self, compute: Callable[[], T]) -> T:
        if self._set:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if not self._set:
                self._value = compute()
                self._set = True
        return self._value  # type: ignore[return-value]

    @property
    def is_set(self) -> bool:
        return self._set


class Network(ABC):
    """A chain (or topology of chains) that transactions can be sent to.

    Construction is cheap and only computes paths; ``initialize`` bootstraps
    fresh state or resumes from what is already on disk.
    """

    #: Path segments of this backend's state under the state root
    state_path: ClassVar[tuple[str, ...]]
    gas_prices: ClassVar[GasPrices]

    def __init__(self, root: Path | None = None):
        self.root = Path(root) if root is not None else backend_root(*self.state_path)
        self._keys: list[Key] = []

    @classmethod
    def initialize(cls: type[N], root: Path | None = None) -> N:
        """Create an initialized instance, bootstrapping only if no state exists.

        A failed bootstrap leaves partial state on disk; the next call treats
        it as existing state and resumes.
        """
        network = cls(root)
        network.prepare()
        if network.is_initialized():
            logger.info("resuming %s from %s", cls.__name__, network.root)
            network._keys = network.load_keys()
        else:
            logger.info("bootstrapping %s in %s", cls.__name__, network.root)
            network._keys = []
            network.bootstrap()
        return network

    def prepare(self) -> None:
        """Work needed before both bootstrap and resume (e.g. pulling images)."""

    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether persisted state exists at the expected path."""
        ...

    @abstractmethod
    def bootstrap(self) -> None:
        """Create state from scratch, appending created keys via ``_remember``."""
        ...

    def load_keys(self) -> list[Key]:
        """Re-read the key inventory from persisted state."""
        return self.command().list_keys(KeyringBackend.TEST)

    @abstractmethod
    def command(self) -> ChainCommand:
        """Command pipeline bound to this network's daemon."""
        ...

    @abstractmethod
    def chain_id(self) -> ChainId:
        ...

    @abstractmethod
    def node_address(self) -> NodeAddress:
        ...

    def gas_price(self, tier: GasTier) -> GasPrice:
        return self.gas_prices.tier(tier)

    def keys(self) -> list[Key]:
        return list(self._keys)

    def _remember(self, key: Key) -> Key:
        self._keys.append(key)
        return key

    def add_key(self, name: str, backend: KeyringBackend = KeyringBackend.TEST) -> Key:
        """Generate a new key and add it to the inventory."""
        return self._remember(self.command().add_key(name, backend))

    def recover(
        self,
        name: str,
        mnemonic: str,
        backend: KeyringBackend = KeyringBackend.TEST,
    ) -> Key:
        """Recover a key from ``mnemonic`` and add it to the inventory."""
        return self._remember(self.command().recover_key(name, mnemonic, backend))

    def start_local(self) -> LifecycleHandle:
        """Start local processes; the returned handle stops them on release."""
        raise UnsupportedOperationError(f"{type(self).__name__} cannot be started locally")

    def clean(self, scope: CleanScope = CleanScope.STATE) -> None:
        """Remove persisted state; ``CleanScope.ALL`` removes the whole root."""
        targets = [self.root] if scope is CleanScope.ALL else self.state_paths()
        for path in targets:
            remove_path(path)

    def state_paths(self) -> list[Path]:
        """Paths removed by ``clean(CleanScope.STATE)``."""
        return [self.root]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(root={str(self.root)!r}, keys={len(self._keys)})"


def remove_path(path: Path) -> None:
    """Remove a file or directory tree; missing paths are ignored."""
    if path.is_dir() and not path.is_symlink():
        logger.info("removing %s", path)
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        logger.info("removing %s", path)
        path.unlink()
