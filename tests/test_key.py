"""Tests for keys and mnemonics."""
import pytest

from cwharness.errors import InvalidMnemonicError
from cwharness.key import Key, KeyringBackend, RawKey, generate_mnemonic, validate_mnemonic
from cwharness.network.topology import DEMO_MNEMONIC_1, WELL_KNOWN_KEYS


def test_key_str():
    key = Key("local0", "archway1abc", KeyringBackend.TEST)
    assert str(key) == "local0 archway1abc (test)"


def test_key_is_immutable():
    key = Key("local0", "archway1abc", KeyringBackend.OS)
    with pytest.raises(AttributeError):
        key.name = "other"


def test_raw_key_with_backend():
    raw = RawKey.model_validate({"name": "a", "address": "addr", "type": "local", "pubkey": "{}"})
    assert raw.with_backend(KeyringBackend.OS) == Key("a", "addr", KeyringBackend.OS)


def test_generate_mnemonic_is_valid():
    phrase = generate_mnemonic()
    assert len(phrase.split()) == 24
    assert validate_mnemonic(phrase) == phrase


def test_generate_short_mnemonic():
    assert len(generate_mnemonic(strength=128).split()) == 12


def test_validate_mnemonic_normalizes_whitespace():
    messy = "  " + DEMO_MNEMONIC_1.replace(" ", "\n  ", 3) + "\n"
    assert validate_mnemonic(messy) == DEMO_MNEMONIC_1


@pytest.mark.parametrize("phrase", ["", "abandon " * 12, "not a mnemonic at all"])
def test_validate_mnemonic_rejects_invalid(phrase):
    with pytest.raises(InvalidMnemonicError):
        validate_mnemonic(phrase)


def test_well_known_mnemonics_are_valid():
    for _, phrase in WELL_KNOWN_KEYS:
        validate_mnemonic(phrase)
