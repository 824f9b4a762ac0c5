"""Local signer identity backed by the ledger keystore file.

Only the address derivation is needed by the lifecycle engine; the private
key never leaves the external signer, but the keystore is the source of
truth for which addresses the operator controls.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .bcs import normalize_address
from .config import ConfigurationError, SignerConfig

logger = logging.getLogger(__name__)

ED25519_FLAG = 0x00


def address_from_public_key(public_key: bytes, flag: int = ED25519_FLAG) -> str:
    digest = hashlib.blake2b(bytes([flag]) + public_key, digest_size=32).digest()
    return "0x" + digest.hex()


@dataclass(frozen=True)
class Signer:
    """The operator's identity: an address plus its public key."""

    address: str
    public_key: bytes

    @classmethod
    def from_secret(cls, secret: bytes) -> "Signer":
        if len(secret) != 32:
            raise ConfigurationError(f"Ed25519 secret must be 32 bytes, got {len(secret)}")
        public_key = (
            Ed25519PrivateKey.from_private_bytes(secret)
            .public_key()
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
        )
        return cls(address_from_public_key(public_key), public_key)

    @classmethod
    def from_keystore_entry(cls, entry: str) -> "Signer":
        try:
            raw = base64.b64decode(entry, validate=True)
        except ValueError as exc:
            raise ConfigurationError("Keystore entry is not valid base64") from exc
        if not raw or raw[0] != ED25519_FLAG:
            raise ConfigurationError("Only Ed25519 keystore entries are supported")
        return cls.from_secret(raw[1:])


def load_keystore(path: Path) -> List[Signer]:
    """Read every Ed25519 identity from a JSON keystore file."""

    if not path.exists():
        raise ConfigurationError(f"Keystore not found: {path}")
    try:
        entries = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid keystore {path}: {exc}") from exc
    if not isinstance(entries, list):
        raise ConfigurationError(f"Expected {path} to contain a JSON list")
    signers = []
    for entry in entries:
        try:
            signers.append(Signer.from_keystore_entry(entry))
        except ConfigurationError as exc:
            logger.debug("Skipping keystore entry: %s", exc)
    return signers


def resolve_signer_address(config: SignerConfig, explicit: str | None = None) -> str:
    """Return the address acting as the current signer.

    An explicit address wins; otherwise the configured address, which must
    be present in the keystore when one exists; otherwise the keystore's
    only identity.
    """

    if explicit:
        return normalize_address(explicit)
    if config.address and not config.keystore.exists():
        return config.address
    signers = load_keystore(config.keystore)
    if config.address:
        if not any(signer.address == config.address for signer in signers):
            raise ConfigurationError(
                f"Signer {config.address} is not present in keystore {config.keystore}"
            )
        return config.address
    if len(signers) != 1:
        raise ConfigurationError(
            f"Keystore {config.keystore} holds {len(signers)} Ed25519 keys; "
            "choose one with --signer or signer.address"
        )
    return signers[0].address
