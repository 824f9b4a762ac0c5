from dataclasses import dataclass
from typing import ClassVar

import pytest

from account_multisig import actions as act
from account_multisig.catalog import (
    ACCOUNT_ACTIONS,
    ACCOUNT_MULTISIG,
    ACCOUNT_PROTOCOL,
    EXECUTABLE,
    TOGGLE_UNVERIFIED_INTENT,
    ActionSpec,
    CallTemplate,
    ResultRef,
    build_default_catalog,
    default_catalog,
    request_templates,
    role_for,
)
from account_multisig.codec import STRING, Opt, decode_action, encode_action
from account_multisig.errors import UnknownActionKind, UnknownIntentType


@dataclass(frozen=True)
class RenameAccount(act.Action):
    kind: ClassVar[str] = "rename_account"

    name: str

    FIELDS: ClassVar = (("name", STRING),)


def _rename_spec(discriminant: int = 200, kind: str = "rename_account") -> ActionSpec:
    return ActionSpec(
        kind=kind,
        action_cls=RenameAccount,
        discriminant=discriminant,
        calls=lambda action: [CallTemplate("0x99::rename::execute", (ResultRef(EXECUTABLE),))],
        roles=frozenset({"config"}),
    )


def test_default_catalog_discriminants_are_unique_and_stable():
    catalog = default_catalog()
    discriminants = [catalog.lookup(kind).discriminant for kind in catalog.kinds()]

    assert len(set(discriminants)) == len(discriminants) == 17
    assert catalog.lookup("config_multisig").discriminant == 0
    assert catalog.lookup("restrict_policy").discriminant == 16


def test_lookup_unknown_kind():
    with pytest.raises(UnknownActionKind, match="Unknown action kind: teleport"):
        default_catalog().lookup("teleport")


def test_registered_kind_round_trips_without_touching_defaults():
    catalog = build_default_catalog()
    catalog.register(_rename_spec())

    data = encode_action(RenameAccount("treasury-v2"), catalog)

    assert decode_action("rename_account", data, catalog) == RenameAccount("treasury-v2")
    with pytest.raises(UnknownActionKind):
        default_catalog().lookup("rename_account")


def test_register_rejects_duplicate_kind_and_discriminant():
    catalog = build_default_catalog()
    catalog.register(_rename_spec())

    with pytest.raises(ValueError, match="already registered"):
        catalog.register(_rename_spec(discriminant=201))
    with pytest.raises(ValueError, match="Discriminant 200"):
        catalog.register(_rename_spec(kind="rename_again"))


def test_borrow_cap_threads_the_cap_through_use_and_return():
    action = act.BorrowCap("0x5::treasury::AdminCap", "0x5::treasury::rotate")
    calls = default_catalog().lookup("borrow_cap").required_calls(action)

    assert [call.target for call in calls] == [
        f"{ACCOUNT_ACTIONS}::access_control_intents::execute_borrow_cap",
        "0x5::treasury::rotate",
        f"{ACCOUNT_ACTIONS}::access_control::return_cap",
    ]
    assert calls[0].produces == "cap"
    assert ResultRef("cap") in calls[1].arguments
    assert ResultRef("cap") in calls[2].arguments
    assert calls[0].type_arguments[-1] == action.cap_type


def test_batched_actions_emit_one_call_per_recipient():
    action = act.SpendAndTransfer("treasury", "0x2::sui::SUI", [1, 2, 3], ["0xa", "0xb", "0xc"])

    calls = default_catalog().lookup("spend_and_transfer").required_calls(action)

    assert len(calls) == 3
    assert all(call.arguments[0] == ResultRef(EXECUTABLE) for call in calls)


def test_intent_types_map_back_from_move_types():
    catalog = default_catalog()
    for intent_type in catalog.intent_types():
        assert catalog.intent_type_for_move_type(intent_type.move_type) is intent_type

    with pytest.raises(UnknownIntentType):
        catalog.intent_type_for_move_type("0x1::nope::NopeIntent")


def test_required_roles_combine_intent_and_action_roles():
    catalog = default_catalog()

    generic = catalog.intent_type("generic")
    assert catalog.required_roles(generic, ["spend_and_transfer", "mint_and_vest"]) == {
        ACCOUNT_ACTIONS[2:] + "::vault_intents",
        ACCOUNT_ACTIONS[2:] + "::currency_intents",
    }
    toggle = catalog.intent_type(TOGGLE_UNVERIFIED_INTENT)
    assert catalog.required_roles(toggle, []) == {role_for(ACCOUNT_PROTOCOL, "config")}
    assert not toggle.requires_actions


def test_specific_intent_types_only_accept_their_kind():
    intent_type = default_catalog().intent_type("spend_and_vest")

    assert intent_type.accepts("spend_and_vest")
    assert not intent_type.accepts("spend_and_transfer")
    assert default_catalog().intent_type("generic").accepts("rename_account")


def test_roles_use_the_ledger_identifier():
    catalog = default_catalog()

    config = catalog.intent_type("config_multisig")
    assert config.role == "460632ef4e9e708658788229531b99f1f3285de06e1e50e98a22633c7e494867::config"
    assert config.role == role_for(ACCOUNT_MULTISIG, "config")
    assert catalog.lookup("config_multisig").roles == {config.role}
    assert catalog.intent_type("config_deps").role == role_for(ACCOUNT_PROTOCOL, "config")
    assert role_for("0x2", "vault") == "0" * 63 + "2::vault"


def test_create_intent_carries_the_ledger_role():
    intent_type = default_catalog().intent_type("spend_and_transfer")

    calls = request_templates(intent_type, "pay", "", [1], 2, [b"\x01"])

    create = next(call for call in calls if call.target.endswith("::account::create_intent"))
    role_arg = create.arguments[8]
    assert role_arg.value == ACCOUNT_ACTIONS[2:] + "::vault_intents"
    assert isinstance(role_arg.codec, Opt)
