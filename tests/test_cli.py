import json

import pytest

from account_multisig import actions as act
from account_multisig import cli
from account_multisig.bcs import BcsWriter, normalize_address
from account_multisig.catalog import (
    ACCOUNT_ACTIONS,
    ACCOUNT_MULTISIG,
    ACCOUNT_PROTOCOL,
    default_catalog,
    role_for,
)
from account_multisig.codec import encode_action
from account_multisig.resolver import RawObject
from account_multisig.rpc_client import InsufficientGas

ACCOUNT = normalize_address("0xacc")
INTENTS_BAG = normalize_address("0x1b")
ACTIONS_BAG = normalize_address("0x2b")
A = normalize_address("0xa")
B = normalize_address("0xb")
SUI = "0x2::sui::SUI"
FAR_FUTURE = 4_000_000_000_000
VAULT_ROLE = role_for(ACCOUNT_ACTIONS, "vault_intents")
FEE_OBJECT = normalize_address("0xfee")


def _account_bytes() -> bytes:
    writer = BcsWriter().address(ACCOUNT)
    writer.sequence([("name", "Treasury DAO")], lambda w, kv: w.string(kv[0]).string(kv[1]))
    writer.sequence([], lambda w, dep: None)
    writer.boolean(False)
    writer.address(INTENTS_BAG).u64(1)
    writer.sequence([], lambda w, addr: w.address(addr))
    writer.sequence(
        [(A, 2, [VAULT_ROLE]), (B, 1, [])],
        lambda w, m: w.address(m[0]).u64(m[1]).sequence(m[2], lambda ww, r: ww.string(r)),
    )
    writer.u64(2)
    writer.sequence([(VAULT_ROLE, 2)], lambda w, role: w.string(role[0]).u64(role[1]))
    return writer.getvalue()


def _vault_field() -> RawObject:
    writer = BcsWriter().address("0xf0").string("treasury").address("0x7a")
    writer.sequence([(SUI, 1_000)], lambda w, coin: w.string(coin[0]).u64(coin[1]))
    return RawObject(
        "0xf0",
        "0x2::dynamic_field::Field<0xf4::vault::VaultKey, 0xf4::vault::Vault>",
        3,
        writer.getvalue(),
    )


def _intent_field() -> RawObject:
    move_type = default_catalog().intent_type("spend_and_transfer").move_type
    writer = BcsWriter().address("0xf1").string("pay")
    writer.string(move_type).string("pay").string("payroll")
    writer.address(ACCOUNT).address(A).u64(1)
    writer.sequence([1_000], lambda w, t: w.u64(t)).u64(FAR_FUTURE)
    writer.string(VAULT_ROLE).address(ACTIONS_BAG).u64(1)
    writer.u64(0).u64(0)
    writer.sequence([], lambda w, addr: w.address(addr))
    return RawObject("0xf1", "0x2::dynamic_field::Field<0x1::string::String, Intent>", 4, writer.getvalue())


def _action_field() -> RawObject:
    payload = encode_action(act.SpendAndTransfer("treasury", SUI, [100], [B]))
    writer = BcsWriter().address("0xf2").u64(0).bytes_(payload)
    return RawObject("0xf2", "0x2::dynamic_field::Field<u64, vector<u8>>", 4, writer.getvalue())


def _wallet() -> list:
    coin = BcsWriter().address("0xc1").u64(700).getvalue()
    return [
        RawObject("0xc1", f"0x2::coin::Coin<{SUI}>", 9, coin, "digest-c1"),
        RawObject("0xe2", "0x2::package::UpgradeCap", 9, BcsWriter().address("0xe2").getvalue(), "digest-e2"),
    ]


class StubClient:
    broadcasts: list = []

    def __init__(self, config) -> None:
        self.config = config
        self.fields = {
            ACCOUNT: [_vault_field()],
            INTENTS_BAG: [_intent_field()],
            ACTIONS_BAG: [_action_field()],
        }

    def get_object(self, object_id):
        if normalize_address(object_id) == FEE_OBJECT:
            data = BcsWriter().address(FEE_OBJECT).u64(100).address(B).getvalue()
            return RawObject(FEE_OBJECT, "0xd06d::fees::Fees", 2, data)
        return RawObject(ACCOUNT, f"{ACCOUNT_MULTISIG}::account::Account", 12, _account_bytes())

    def get_dynamic_field_objects(self, parent_id):
        return self.fields.get(normalize_address(parent_id), [])

    def get_owned_objects(self, owner):
        return _wallet() if normalize_address(owner) == A else []

    def get_reference_gas_price(self):
        return 750

    def execute_transaction(self, tx_bytes, signatures):
        if tx_bytes == "underfunded":
            raise InsufficientGas("InsufficientGas: budget 1000 below computation cost")
        self.broadcasts.append((self.config.gas_budget, tx_bytes, list(signatures)))
        return "5xDigest"


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    monkeypatch.setattr("account_multisig.config.DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")
    for name in (
        "MULTISIG_ACCOUNT",
        "MULTISIG_SIGNER",
        "MULTISIG_RPC_URL",
        "MULTISIG_NETWORK",
        "MULTISIG_GAS_BUDGET",
        "MULTISIG_EXTENSIONS_ID",
        "MULTISIG_FEES_ID",
        "MULTISIG_REGISTRY_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(StubClient, "broadcasts", [])
    monkeypatch.setattr(cli, "SuiRPCClient", StubClient)


def _run(capsys, *argv):
    cli.main(["--account", ACCOUNT, *argv])
    return json.loads(capsys.readouterr().out)


def test_show_prints_account_snapshot(capsys):
    data = _run(capsys, "show")

    assert data["name"] == "Treasury DAO"
    assert data["global_threshold"] == 2
    assert data["vaults"] == {"treasury": {normalize_address("0x2") + "::sui::SUI": 1_000}}


def test_proposals_lists_state_and_outcome(capsys):
    (proposal,) = _run(capsys, "proposals")

    assert proposal["key"] == "pay"
    assert proposal["state"] == "pending"
    assert proposal["outcome"]["total_weight"] == 0


def test_propose_prints_intent_and_request_transaction(capsys):
    data = _run(
        capsys,
        "--signer", A,
        "propose", "spend-and-transfer",
        "--key", "bonus",
        "--vault", "treasury",
        "--coin-type", SUI,
        "--amounts", "10,20",
        "--recipients", f"{A},{B}",
    )

    assert data["intent"]["key"] == "bonus"
    assert data["intent"]["creator"] == A
    targets = [call["target"] for call in data["transaction"]["calls"]]
    assert f"{ACCOUNT_PROTOCOL}::account::create_intent" in targets
    assert targets.count(f"{ACCOUNT_PROTOCOL}::intents::add_action") == 1


def test_propose_toggle_without_actions(capsys):
    data = _run(capsys, "--signer", B, "propose", "toggle-unverified", "--key", "toggle")

    assert data["intent"]["actions"] == []
    assert data["intent"]["required_roles"] == [role_for(ACCOUNT_PROTOCOL, "config")]


def test_approve_reports_state(capsys):
    data = _run(capsys, "--signer", B, "approve", "pay")

    assert data["state"] == "pending"
    assert data["outcome"]["approved"] == [B]
    assert data["transaction"]["calls"][0]["target"] == f"{ACCOUNT_MULTISIG}::multisig::approve_intent"


def test_lifecycle_errors_exit_with_message(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--account", ACCOUNT, "--signer", "0xd", "approve", "pay"])

    assert excinfo.value.code == 1
    assert "is not a member" in capsys.readouterr().err


def test_over_budget_propose_fails_before_submission(capsys):
    with pytest.raises(SystemExit):
        cli.main(
            [
                "--account", ACCOUNT, "--signer", A,
                "propose", "spend-and-vest",
                "--key", "big",
                "--vault", "treasury",
                "--coin-type", SUI,
                "--amount", "5000",
                "--vest-start", "0",
                "--vest-end", "10",
                "--recipient", B,
            ]
        )

    assert "holds 1000" in capsys.readouterr().err


def test_missing_account_is_reported(capsys):
    with pytest.raises(SystemExit):
        cli.main(["show"])

    assert "No account configured" in capsys.readouterr().err


def test_encode_and_decode_action(capsys):
    cli.main(["encode-action", "restrict_policy", '{"package_name": "core", "policy": "dep_only"}'])
    payload = capsys.readouterr().out.strip()

    assert payload == "0110" + "04" + b"core".hex() + "c0"

    cli.main(["decode-action", payload])
    assert json.loads(capsys.readouterr().out) == {
        "kind": "restrict_policy",
        "package_name": "core",
        "policy": "dep_only",
    }


def test_encode_action_rejects_bad_json(capsys):
    with pytest.raises(SystemExit):
        cli.main(["encode-action", "restrict_policy", "{not json"])

    assert "Invalid fields JSON" in capsys.readouterr().err


def test_parse_members_with_roles():
    members = cli._parse_members("0xa:2:admin+vault,0xb:1")

    assert members[0].roles == ("admin", "vault")
    assert members[1].weight == 1
    with pytest.raises(cli.CLIError):
        cli._parse_members("0xa")


def test_parse_members_and_roles_keep_ledger_role_names():
    (member,) = cli._parse_members(f"0xa:2:{VAULT_ROLE}")
    (role,) = cli._parse_roles(f"{VAULT_ROLE}:2")

    assert member.roles == (VAULT_ROLE,)
    assert (role.name, role.threshold) == (VAULT_ROLE, 2)


def test_transactions_carry_sender_budget_and_gas_price(capsys):
    data = _run(capsys, "--signer", A, "--gas-budget", "1234", "open-vault", "ops")

    assert data["sender"] == A
    assert data["gasBudget"] == 1234
    assert data["gasPrice"] == 750
    assert [call["target"] for call in data["calls"]][-1] == f"{ACCOUNT_ACTIONS}::vault::open"


def test_deposit_splits_from_the_signers_wallet(capsys):
    data = _run(capsys, "--signer", A, "deposit", "treasury", "--coin-type", SUI, "--amount", "300")

    kinds = [call.get("kind", "MoveCall") for call in data["calls"]]
    assert kinds == ["MoveCall", "SplitCoins", "MoveCall"]
    assert data["calls"][-1]["target"] == f"{ACCOUNT_ACTIONS}::vault::deposit"


def test_deposit_upgrade_cap_from_wallet(capsys):
    data = _run(capsys, "--signer", A, "deposit-upgrade-cap", "0xe2", "--package", "oracle")

    assert data["calls"][-1]["target"] == f"{ACCOUNT_ACTIONS}::package_upgrade::lock_cap"


def test_create_reports_fee_and_setup_calls(capsys, monkeypatch):
    monkeypatch.setenv("MULTISIG_EXTENSIONS_ID", "0xe1")
    monkeypatch.setenv("MULTISIG_FEES_ID", FEE_OBJECT)

    data = _run(
        capsys,
        "--signer", A,
        "create",
        "--name", "Ops",
        "--global-threshold", "2",
        "--members", f"{A}:2,{B}:1",
    )

    assert data["fee"] == 100
    targets = [call.get("target", call.get("kind")) for call in data["transaction"]["calls"]]
    assert targets[0] == f"{ACCOUNT_PROTOCOL}::user::new"
    assert f"{ACCOUNT_MULTISIG}::multisig::new_account" in targets
    assert targets.count(f"{ACCOUNT_MULTISIG}::multisig::join") == 1
    assert targets.count(f"{ACCOUNT_MULTISIG}::multisig::send_invite") == 1


def test_create_without_protocol_objects_is_reported(capsys):
    with pytest.raises(SystemExit):
        cli.main(["--signer", A, "create"])

    assert "MULTISIG_EXTENSIONS_ID" in capsys.readouterr().err


def test_broadcast_prints_digest(capsys):
    data = _run(capsys, "broadcast", "--tx-bytes", "AAAA", "--signature", "sig-a", "--signature", "sig-b")

    assert data == {"digest": "5xDigest"}
    assert StubClient.broadcasts == [(50_000_000, "AAAA", ["sig-a", "sig-b"])]


def test_broadcast_out_of_gas_points_at_the_budget_flag(capsys):
    with pytest.raises(SystemExit):
        cli.main(["broadcast", "--tx-bytes", "underfunded", "--signature", "sig-a"])

    err = capsys.readouterr().err
    assert "InsufficientGas" in err
    assert "--gas-budget" in err
