"""Shared configuration loader for account-multisig."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .bcs import normalize_address
from .catalog import USER_REGISTRY_ID
from .errors import ValidationError


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".account-multisig.yaml"
DEFAULT_KEYSTORE_PATH = Path.home() / ".sui" / "sui_config" / "sui.keystore"
_CONFIG_PATH_OVERRIDE: Path | None = None

NETWORK_URLS = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
    "localnet": "http://127.0.0.1:9000",
}
DEFAULT_NETWORK = "mainnet"


@dataclass
class RPCConfig:
    """Connection details for the ledger's JSON-RPC endpoint."""

    url: str = NETWORK_URLS[DEFAULT_NETWORK]
    timeout: float = 30.0
    gas_budget: int = 50_000_000

    @property
    def network(self) -> str | None:
        for name, url in NETWORK_URLS.items():
            if url == self.url:
                return name
        return None


@dataclass
class SignerConfig:
    keystore: Path = DEFAULT_KEYSTORE_PATH
    address: str | None = None


@dataclass
class ProtocolConfig:
    """Shared protocol objects used when creating accounts."""

    extensions: str | None = None
    fees: str | None = None
    registry: str = USER_REGISTRY_ID


@dataclass
class MultisigConfig:
    rpc: RPCConfig = field(default_factory=RPCConfig)
    account: str | None = None
    signer: SignerConfig = field(default_factory=SignerConfig)
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(file_config: Mapping[str, Any], name: str, path: Path) -> Mapping[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_number(raw: Any, kind: type, *, source: str) -> Any:
    if raw is None:
        return None
    try:
        value = kind(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {kind.__name__} in {source}: {raw}") from exc
    if value <= 0:
        raise ConfigurationError(f"Expected a positive value in {source}: {raw}")
    return value


def _coerce_address(raw: Any, *, source: str) -> str | None:
    if raw is None or raw == "":
        return None
    try:
        return normalize_address(str(raw))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid address in {source}: {raw}") from exc


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _resolve_url(raw_url: str | None, network: str | None) -> str | None:
    if raw_url:
        parsed = urlparse(raw_url)
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise ConfigurationError(f"Invalid RPC endpoint URL: {raw_url}")
        return raw_url
    if network:
        try:
            return NETWORK_URLS[network.strip().lower()]
        except KeyError as exc:
            raise ConfigurationError(
                f"Unknown network '{network}'; expected one of {', '.join(NETWORK_URLS)}"
            ) from exc
    return None


def load_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> MultisigConfig:
    """Load configuration from overrides, ``MULTISIG_*`` variables and YAML.

    Precedence is overrides, then environment, then the config file, then
    built-in defaults.
    """

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    rpc_section = _section(file_config, "rpc", path)
    signer_section = _section(file_config, "signer", path)
    protocol_section = _section(file_config, "protocol", path)
    account_section = file_config.get("account")
    if isinstance(account_section, dict):
        account_section = account_section.get("id")

    override_map = dict(overrides or {})

    url = _first_value(
        _resolve_url(override_map.get("url"), override_map.get("network")),
        _resolve_url(env_map.get("MULTISIG_RPC_URL"), env_map.get("MULTISIG_NETWORK")),
        _resolve_url(rpc_section.get("url"), rpc_section.get("network")),
        NETWORK_URLS[DEFAULT_NETWORK],
    )
    timeout = _first_value(
        _coerce_number(override_map.get("timeout"), float, source="overrides"),
        _coerce_number(env_map.get("MULTISIG_RPC_TIMEOUT"), float, source="environment"),
        _coerce_number(rpc_section.get("timeout"), float, source=f"{path} rpc.timeout"),
        30.0,
    )
    gas_budget = _first_value(
        _coerce_number(override_map.get("gas_budget"), int, source="overrides"),
        _coerce_number(env_map.get("MULTISIG_GAS_BUDGET"), int, source="environment"),
        _coerce_number(rpc_section.get("gas_budget"), int, source=f"{path} rpc.gas_budget"),
        50_000_000,
    )
    account = _first_value(
        _coerce_address(override_map.get("account"), source="overrides"),
        _coerce_address(env_map.get("MULTISIG_ACCOUNT"), source="environment"),
        _coerce_address(account_section, source=f"{path} account"),
    )
    signer_address = _first_value(
        _coerce_address(override_map.get("signer"), source="overrides"),
        _coerce_address(env_map.get("MULTISIG_SIGNER"), source="environment"),
        _coerce_address(signer_section.get("address"), source=f"{path} signer.address"),
    )
    keystore = _first_value(
        override_map.get("keystore"),
        env_map.get("MULTISIG_KEYSTORE"),
        signer_section.get("keystore"),
        DEFAULT_KEYSTORE_PATH,
    )

    protocol = {}
    for key in ("extensions", "fees", "registry"):
        protocol[key] = _first_value(
            _coerce_address(override_map.get(key), source="overrides"),
            _coerce_address(env_map.get(f"MULTISIG_{key.upper()}_ID"), source="environment"),
            _coerce_address(protocol_section.get(key), source=f"{path} protocol.{key}"),
        )
    if protocol["registry"] is None:
        protocol["registry"] = USER_REGISTRY_ID

    return MultisigConfig(
        rpc=RPCConfig(url=url, timeout=timeout, gas_budget=gas_budget),
        account=account,
        signer=SignerConfig(keystore=Path(keystore).expanduser(), address=signer_address),
        protocol=ProtocolConfig(**protocol),
    )
