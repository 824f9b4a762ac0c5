from pathlib import Path

import pytest

from account_multisig.catalog import USER_REGISTRY_ID
from account_multisig.config import (
    NETWORK_URLS,
    ConfigurationError,
    MultisigConfig,
    load_config,
)

ACCOUNT = "0x" + "ac".rjust(64, "0")


def _write(tmp_path: Path, text: str) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(text)
    return config_path


def test_load_config_reads_yaml(tmp_path: Path) -> None:
    config_path = _write(
        tmp_path,
        "rpc:\n"
        "  network: testnet\n"
        "  timeout: 12\n"
        "  gas_budget: 1000\n"
        "account:\n"
        "  id: '0xac'\n"
        "signer:\n"
        "  address: '0xb0b'\n"
        "  keystore: /tmp/custom.keystore\n",
    )

    config = load_config(config_path=config_path, env={})

    assert isinstance(config, MultisigConfig)
    assert config.rpc.url == NETWORK_URLS["testnet"]
    assert config.rpc.network == "testnet"
    assert config.rpc.timeout == 12.0
    assert config.rpc.gas_budget == 1000
    assert config.account == ACCOUNT
    assert config.signer.address.endswith("b0b")
    assert config.signer.keystore == Path("/tmp/custom.keystore")


def test_environment_beats_yaml_and_overrides_beat_environment(tmp_path: Path) -> None:
    config_path = _write(tmp_path, "rpc:\n  url: http://filehost:9000\naccount: '0x1'\n")
    env_map = {
        "MULTISIG_RPC_URL": "https://envhost:443",
        "MULTISIG_ACCOUNT": "0xac",
        "MULTISIG_RPC_TIMEOUT": "5",
    }

    config = load_config(config_path=config_path, env=env_map)
    assert config.rpc.url == "https://envhost:443"
    assert config.account == ACCOUNT
    assert config.rpc.timeout == 5.0

    config = load_config(
        config_path=config_path,
        env=env_map,
        overrides={"network": "localnet", "timeout": 2},
    )
    assert config.rpc.url == NETWORK_URLS["localnet"]
    assert config.rpc.timeout == 2.0


def test_missing_default_file_falls_back_to_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("account_multisig.config.DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")

    config = load_config(env={})

    assert config.rpc.url == NETWORK_URLS["mainnet"]
    assert config.account is None
    assert config.signer.address is None


def test_explicit_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(config_path=tmp_path / "absent.yaml", env={})


@pytest.mark.parametrize(
    "env_map, message",
    [
        ({"MULTISIG_NETWORK": "moonnet"}, "Unknown network"),
        ({"MULTISIG_RPC_URL": "ftp://node"}, "Invalid RPC endpoint"),
        ({"MULTISIG_GAS_BUDGET": "lots"}, "Invalid int"),
        ({"MULTISIG_RPC_TIMEOUT": "-1"}, "positive"),
        ({"MULTISIG_ACCOUNT": "0xnothex"}, "Invalid address"),
    ],
)
def test_invalid_values_are_reported(tmp_path: Path, env_map, message) -> None:
    config_path = _write(tmp_path, "{}\n")

    with pytest.raises(ConfigurationError, match=message):
        load_config(config_path=config_path, env=env_map)


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    config_path = _write(tmp_path, "- just\n- a list\n")

    with pytest.raises(ConfigurationError, match="mapping"):
        load_config(config_path=config_path, env={})


def test_protocol_objects_layer_like_other_settings(tmp_path: Path) -> None:
    config_path = _write(tmp_path, "protocol:\n  extensions: '0xe1'\n  fees: '0xfee'\n")

    config = load_config(config_path=config_path, env={"MULTISIG_FEES_ID": "0xf2"})

    assert config.protocol.extensions.endswith("e1")
    assert config.protocol.fees.endswith("f2")
    assert config.protocol.registry == USER_REGISTRY_ID

    config = load_config(config_path=config_path, env={}, overrides={"registry": "0x9"})
    assert config.protocol.registry.endswith("09")
