"""Signing identities and keyring backends."""

from dataclasses import dataclass
from enum import Enum

from mnemonic import Mnemonic
from pydantic import BaseModel

from cwharness.errors import InvalidMnemonicError

_wordlist = Mnemonic("english")


class KeyringBackend(str, Enum):
    """Where a key's secret material lives."""
    OS = "os"
    TEST = "test"


class RawKey(BaseModel):
    """Key as printed by ``keys list`` / ``keys add`` (no backend information)."""
    name: str
    address: str

    def with_backend(self, backend: KeyringBackend) -> "Key":
        return Key(name=self.name, address=self.address, backend=backend)


@dataclass(frozen=True)
class Key:
    """A named signing identity stored in a keyring backend."""
    name: str
    address: str
    backend: KeyringBackend

    def __str__(self) -> str:
        return f"{self.name} {self.address} ({self.backend.value})"


def generate_mnemonic(strength: int = 256) -> str:
    """Generate a fresh BIP-39 mnemonic (24 words by default)."""
    return _wordlist.generate(strength=strength)


def validate_mnemonic(phrase: str) -> str:
    """Normalize whitespace and check the BIP-39 checksum."""
    normalized = " ".join(phrase.split())
    if not normalized or not _wordlist.check(normalized):
        raise InvalidMnemonicError("mnemonic failed BIP-39 validation")
    return normalized
