import pytest

from account_multisig import actions as act
from account_multisig.bcs import normalize_address, normalize_type_tag
from account_multisig.catalog import ACCOUNT_ACTIONS, ACCOUNT_PROTOCOL, role_for
from account_multisig.codec import decode_action
from account_multisig.errors import ArityMismatch, ResourceNotFound, ValidationError
from account_multisig.intents import ExecutionWindow, IntentBuilder
from account_multisig.resolver import (
    PERMISSION_BITS,
    AccountView,
    Cap,
    Currency,
    Kiosk,
    Member,
    OwnedObject,
    Package,
    Role,
    Vault,
)

SUI = normalize_type_tag("0x2::sui::SUI")
USDC = normalize_type_tag("0xdba3::usdc::USDC")
ALICE = normalize_address("0xa11ce")
BOB = normalize_address("0xb0b")
COIN = normalize_address("0xc01")
ADMIN_CAP = normalize_type_tag("0x5::treasury::AdminCap")
VAULT_ROLE = role_for(ACCOUNT_ACTIONS, "vault_intents")


@pytest.fixture()
def view() -> AccountView:
    return AccountView(
        account_id=normalize_address("0xacc"),
        version=7,
        global_threshold=2,
        members=(Member(ALICE, 2, frozenset({VAULT_ROLE})), Member(BOB, 1)),
        roles=(Role(VAULT_ROLE, 2),),
        vaults=(Vault("treasury", normalize_address("0x7a"), ((SUI, 1_000),)),),
        currencies=(
            Currency(
                SUI,
                cap_id=normalize_address("0xca9"),
                total_supply=5_000,
                max_supply=6_000,
                total_minted=5_000,
                permissions=PERMISSION_BITS["mint"] | PERMISSION_BITS["update_name"],
            ),
        ),
        caps=(Cap(ADMIN_CAP, normalize_address("0xadc")),),
        packages=(
            Package("core", normalize_address("0x9c"), normalize_address("0x9d"), 2, act.Policy.ADDITIVE),
        ),
        kiosks=(Kiosk("gallery", normalize_address("0x6a1"), normalize_address("0x6a2")),),
        owned=(
            OwnedObject(COIN, normalize_type_tag("0x2::coin::Coin<0x2::sui::SUI>"), 3, balance=50),
        ),
    )


@pytest.fixture()
def builder(view: AccountView) -> IntentBuilder:
    return IntentBuilder(None, view)


@pytest.fixture()
def window() -> ExecutionWindow:
    return ExecutionWindow.between(1_000, 10_000)


def test_add_action_returns_new_draft(builder, window):
    draft = builder.begin("pay-team", window)
    grown = builder.add_action(draft, act.SpendAndTransfer("treasury", SUI, [100, 200], [ALICE, BOB]))

    assert draft.actions == ()
    assert len(grown.actions) == 1


def test_mismatched_lists_fail_with_arity_mismatch(builder, window):
    draft = builder.begin("pay-team", window)

    with pytest.raises(ArityMismatch):
        builder.add_action(draft, act.SpendAndTransfer("treasury", SUI, [100, 200], [ALICE]))
    with pytest.raises(ArityMismatch):
        builder.add_action(draft, act.ListNfts("gallery", ["0x1", "0x2"], [5]))
    assert draft.actions == ()


def test_missing_vault_is_resource_not_found(builder, window):
    draft = builder.begin("pay-team", window)

    with pytest.raises(ResourceNotFound) as excinfo:
        builder.add_action(draft, act.SpendAndTransfer("reserve", SUI, [1], [ALICE]))

    assert excinfo.value.resource == "vault"
    assert excinfo.value.identifier == "reserve"


def test_coin_type_missing_from_vault_is_resource_not_found(builder, window):
    draft = builder.begin("pay-team", window)

    with pytest.raises(ResourceNotFound):
        builder.add_action(draft, act.SpendAndVest("treasury", USDC, 1, 0, 10, ALICE))


def test_spend_cannot_exceed_vault_balance(builder, window):
    draft = builder.begin("pay-team", window)

    with pytest.raises(ValidationError, match="holds 1000"):
        builder.add_action(draft, act.SpendAndTransfer("treasury", SUI, [600, 600], [ALICE, BOB]))


@pytest.mark.parametrize(
    "action",
    [
        act.SpendAndVest("treasury", SUI, 10, 500, 500, ALICE),
        act.MintAndVest(SUI, 10, 900, 100, ALICE),
        act.SpendAndTransfer("treasury", SUI, [0], [ALICE]),
        act.MintAndTransfer(SUI, [-1], [ALICE]),
    ],
)
def test_local_validation_fails_fast(builder, window, action):
    with pytest.raises(ValidationError):
        builder.add_action(builder.begin("bad", window), action)


def test_mint_respects_permissions_and_max_supply(builder, window):
    draft = builder.begin("mint", window)

    draft = builder.add_action(draft, act.MintAndTransfer(SUI, [500], [ALICE]))
    with pytest.raises(ValidationError, match="max supply"):
        builder.add_action(draft, act.MintAndTransfer(SUI, [1_500], [ALICE]))
    with pytest.raises(ValidationError, match="burn is disabled"):
        builder.add_action(draft, act.WithdrawAndBurn(SUI, COIN, 10))
    with pytest.raises(ResourceNotFound):
        builder.add_action(draft, act.MintAndTransfer(USDC, [1], [ALICE]))


def test_update_metadata_checks_each_changed_field(builder, window):
    draft = builder.begin("rename", window)

    builder.add_action(draft, act.UpdateMetadata(SUI, name="Sui"))
    with pytest.raises(ValidationError, match="update_symbol is disabled"):
        builder.add_action(draft, act.UpdateMetadata(SUI, name="Sui", symbol="SUI"))


def test_owned_objects_kiosks_and_caps_must_exist(builder, window):
    draft = builder.begin("misc", window)

    builder.add_action(draft, act.WithdrawAndTransfer([COIN], [BOB]))
    builder.add_action(draft, act.BorrowCap(ADMIN_CAP, "0x5::treasury::rotate"))
    with pytest.raises(ResourceNotFound):
        builder.add_action(draft, act.WithdrawAndTransfer(["0xdead"], [BOB]))
    with pytest.raises(ResourceNotFound):
        builder.add_action(draft, act.TakeNfts("attic", ["0x1"], BOB))
    with pytest.raises(ResourceNotFound):
        builder.add_action(draft, act.BorrowCap("0x5::treasury::OtherCap", "0x5::treasury::rotate"))
    with pytest.raises(ValidationError, match="holds 50"):
        builder.add_action(draft, act.WithdrawAndTransferToVault(SUI, COIN, 60, "treasury"))


def test_policy_can_only_become_more_restrictive(builder, window):
    draft = builder.begin("lock", window)

    builder.add_action(draft, act.RestrictPolicy("core", act.Policy.DEP_ONLY))
    with pytest.raises(ValidationError, match="not more restrictive"):
        builder.add_action(draft, act.RestrictPolicy("core", act.Policy.ADDITIVE))


def test_intent_type_restricts_action_kinds(builder, window):
    draft = builder.begin("vest", window, intent_type="spend_and_vest")

    with pytest.raises(ValidationError, match="does not accept"):
        builder.add_action(draft, act.SpendAndTransfer("treasury", SUI, [1], [ALICE]))


def test_config_multisig_validates_member_and_role_weights(builder, window):
    draft = builder.begin("reconfigure", window, intent_type="config_multisig")
    members = [act.MemberSpec(ALICE, 2, ("admin",)), act.MemberSpec(BOB, 1)]

    builder.add_action(draft, act.ConfigMultisig(3, members, [act.RoleSpec("admin", 2)]))
    with pytest.raises(ValidationError, match="exceeds holders"):
        builder.add_action(draft, act.ConfigMultisig(2, members, [act.RoleSpec("admin", 3)]))
    with pytest.raises(ValidationError, match="undefined roles"):
        builder.add_action(draft, act.ConfigMultisig(2, members, []))
    with pytest.raises(ValidationError, match="exceeds total weight"):
        builder.add_action(draft, act.ConfigMultisig(4, members, [act.RoleSpec("admin", 1)]))
    with pytest.raises(ValidationError, match="duplicate member"):
        builder.add_action(
            draft,
            act.ConfigMultisig(1, [act.MemberSpec(ALICE, 1), act.MemberSpec("0xa11ce", 1)]),
        )


def test_finalize_encodes_actions_and_required_roles(builder, window):
    draft = builder.begin("pay-team", window, description="monthly payroll")
    draft = builder.add_action(draft, act.SpendAndTransfer("treasury", SUI, [100], [ALICE]))
    draft = builder.add_action(draft, act.MintAndVest(SUI, 10, 0, 100, BOB))

    intent = builder.finalize(draft)

    assert intent.key == "pay-team"
    assert intent.required_roles == {VAULT_ROLE, role_for(ACCOUNT_ACTIONS, "currency_intents")}
    assert [decode_action(a.kind, p) for a, p in zip(intent.actions, intent.payloads)] == list(
        intent.actions
    )


def test_zero_actions_only_for_pure_configuration_intents(builder, window):
    with pytest.raises(ValidationError, match="at least one action"):
        builder.finalize(builder.begin("empty", window))

    intent = builder.finalize(builder.begin("toggle", window, intent_type="toggle_unverified_allowed"))
    assert intent.actions == ()
    assert intent.required_roles == {role_for(ACCOUNT_PROTOCOL, "config")}


@pytest.mark.parametrize(
    "times, expiration",
    [((), 10), ((5, 5), 10), ((7, 3), 10), ((1, 10), 10), ((-1,), 10)],
)
def test_execution_window_validation(times, expiration):
    with pytest.raises(ValidationError):
        ExecutionWindow(times, expiration)


def test_recurring_window_keeps_order():
    window = ExecutionWindow([100, 200, 300], 1_000)

    assert window.execution_times == (100, 200, 300)
    assert window.not_before == 100


def test_begin_requires_a_key(builder, window):
    with pytest.raises(ValidationError):
        builder.begin("  ", window)


@pytest.mark.parametrize("start, end", [("0", 100), (0, 100.5), (True, 100)])
def test_vesting_window_needs_integer_timestamps(builder, window, start, end):
    draft = builder.begin("vest", window, intent_type="spend_and_vest")

    with pytest.raises(ValidationError, match="must be an integer"):
        builder.add_action(draft, act.SpendAndVest("treasury", SUI, 10, start, end, BOB))
