import base64
import json
from pathlib import Path

import pytest

from account_multisig.config import ConfigurationError, SignerConfig
from account_multisig.identity import (
    ED25519_FLAG,
    Signer,
    address_from_public_key,
    load_keystore,
    resolve_signer_address,
)

SECRET_A = bytes(range(32))
SECRET_B = bytes(range(1, 33))


def _entry(secret: bytes) -> str:
    return base64.b64encode(bytes([ED25519_FLAG]) + secret).decode()


def _keystore(tmp_path: Path, entries) -> Path:
    path = tmp_path / "sui.keystore"
    path.write_text(json.dumps(entries))
    return path


def test_signer_address_is_derived_from_public_key():
    signer = Signer.from_secret(SECRET_A)

    assert len(signer.public_key) == 32
    assert signer.address == address_from_public_key(signer.public_key)
    assert signer.address.startswith("0x") and len(signer.address) == 66
    assert Signer.from_keystore_entry(_entry(SECRET_A)) == signer


def test_keystore_skips_unsupported_entries(tmp_path: Path):
    secp_entry = base64.b64encode(b"\x01" + SECRET_B).decode()
    path = _keystore(tmp_path, [_entry(SECRET_A), secp_entry, "not base64!"])

    signers = load_keystore(path)

    assert [s.address for s in signers] == [Signer.from_secret(SECRET_A).address]


def test_keystore_must_be_a_list(tmp_path: Path):
    path = tmp_path / "sui.keystore"
    path.write_text("{}")

    with pytest.raises(ConfigurationError, match="JSON list"):
        load_keystore(path)


def test_explicit_signer_wins(tmp_path: Path):
    config = SignerConfig(keystore=tmp_path / "absent", address=None)

    assert resolve_signer_address(config, "0xb0b") == "0x" + "b0b".rjust(64, "0")


def test_single_keystore_identity_is_used(tmp_path: Path):
    config = SignerConfig(keystore=_keystore(tmp_path, [_entry(SECRET_A)]))

    assert resolve_signer_address(config) == Signer.from_secret(SECRET_A).address


def test_ambiguous_keystore_needs_a_choice(tmp_path: Path):
    config = SignerConfig(keystore=_keystore(tmp_path, [_entry(SECRET_A), _entry(SECRET_B)]))

    with pytest.raises(ConfigurationError, match="holds 2"):
        resolve_signer_address(config)

    chosen = Signer.from_secret(SECRET_B).address
    assert resolve_signer_address(SignerConfig(keystore=config.keystore, address=chosen)) == chosen


def test_configured_signer_must_be_in_keystore(tmp_path: Path):
    config = SignerConfig(
        keystore=_keystore(tmp_path, [_entry(SECRET_A)]),
        address="0x" + "1".rjust(64, "0"),
    )

    with pytest.raises(ConfigurationError, match="not present"):
        resolve_signer_address(config)
