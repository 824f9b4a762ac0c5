"""Action catalog: action kinds, intent types and their call templates.

The catalog is the only place that knows which ledger functions a kind of
action lowers to. Builders and the assembler stay generic; registering a
new :class:`ActionSpec` is enough to add an action kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

from . import actions as act
from .bcs import BcsWriter, normalize_address
from .codec import ADDRESS, BYTES, STRING, U64, FieldCodec, Opt, Vec, decode_fields, encode_fields
from .errors import CodecError, UnknownActionKind, UnknownIntentType

logger = logging.getLogger(__name__)

ACCOUNT_PROTOCOL = "0x10c87c29ea5d5674458652ababa246742a763f9deafed11608b7f0baea296484"
ACCOUNT_MULTISIG = "0x460632ef4e9e708658788229531b99f1f3285de06e1e50e98a22633c7e494867"
ACCOUNT_ACTIONS = "0xf477dbfad6ab1de1fdcb6042c0afeda2aa5bf12eb7ef42d280059fc8d6c36c94"
CLOCK_OBJECT_ID = normalize_address("0x6")
USER_REGISTRY_ID = normalize_address("0xa9ec2fd2c9ac1ed9cde4972da6014818c3343a1d65dc140a8d51567c20d8992e")

MULTISIG_CONFIG_TYPE = f"{ACCOUNT_MULTISIG}::multisig::Multisig"
MULTISIG_OUTCOME_TYPE = f"{ACCOUNT_MULTISIG}::multisig::Approvals"
ACCOUNT_GENERICS = (MULTISIG_CONFIG_TYPE, MULTISIG_OUTCOME_TYPE)

# Reserved result label bound by the execution prologue.
EXECUTABLE = "executable"


# Argument templates ------------------------------------------------------


class PureArg(NamedTuple):
    """A literal value serialized with ``codec`` when the call graph is built."""

    value: Any
    codec: FieldCodec

    def to_bytes(self) -> bytes:
        writer = BcsWriter()
        self.codec.write(writer, self.value)
        return writer.getvalue()


class ObjectArg(NamedTuple):
    """A named object handle resolved from the account snapshot."""

    handle: str


class ResultRef(NamedTuple):
    """The result of an earlier call in the same scope, by label."""

    label: str


ArgTemplate = Union[PureArg, ObjectArg, ResultRef]


@dataclass(frozen=True)
class CallTemplate:
    """One abstract ledger call."""

    target: str
    arguments: Tuple[ArgTemplate, ...] = ()
    type_arguments: Tuple[str, ...] = ()
    produces: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "type_arguments", tuple(self.type_arguments))


@dataclass(frozen=True)
class SplitTemplate:
    """Split ``amount`` off ``coin`` into a new coin bound to ``produces``."""

    coin: ArgTemplate
    amount: int
    produces: Optional[str] = None


@dataclass(frozen=True)
class MergeTemplate:
    """Merge ``sources`` into ``destination``."""

    destination: ArgTemplate
    sources: Tuple[ArgTemplate, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "sources", tuple(self.sources))


Template = Union[CallTemplate, SplitTemplate, MergeTemplate]

# Reserved handle for the transaction's gas coin.
GAS_HANDLE = "gas"


def role_for(package: str, module: str) -> str:
    """Return the role the ledger records for intents defined in ``package::module``.

    The ledger derives it from the intent witness type name, so the package
    address appears in full without its ``0x`` prefix.
    """

    return f"{normalize_address(package)[2:]}::{module}"


def account_object() -> ObjectArg:
    return ObjectArg("account")


def kiosk_object(name: str) -> ObjectArg:
    return ObjectArg(f"kiosk:{name}")


def owned_object(object_id: str) -> ObjectArg:
    return ObjectArg(f"object:{normalize_address(object_id)}")


def gas_coin() -> ObjectArg:
    return ObjectArg(GAS_HANDLE)


# Specs -------------------------------------------------------------------


@dataclass(frozen=True)
class ActionSpec:
    """Codec and call lowering for one action kind."""

    kind: str
    action_cls: type
    discriminant: int
    calls: Callable[[Any], Sequence[CallTemplate]]
    roles: FrozenSet[str] = frozenset()

    def encode(self, action: Any) -> bytes:
        if not isinstance(action, self.action_cls):
            raise CodecError(
                f"{self.kind} codec cannot encode {type(action).__name__}"
            )
        return encode_fields(action, self.discriminant)

    def decode(self, data: bytes) -> Any:
        return decode_fields(self.action_cls, self.discriminant, data)

    def required_calls(self, action: Any) -> List[CallTemplate]:
        return list(self.calls(action))

    def resources(self, action: Any) -> Tuple[act.ResourceRef, ...]:
        return tuple(action.resource_refs())


@dataclass(frozen=True)
class IntentType:
    """A category of intent.

    ``kinds`` restricts which action kinds may be added; ``None`` accepts
    any registered kind. ``requires_actions`` is False only for pure
    configuration intents whose effect is carried by the intent itself.
    """

    name: str
    move_type: str
    role: Optional[str] = None
    kinds: Optional[FrozenSet[str]] = None
    requires_actions: bool = True

    def accepts(self, kind: str) -> bool:
        return self.kinds is None or kind in self.kinds


class ActionCatalog:
    """Registry of action kinds and intent types."""

    def __init__(self) -> None:
        self._specs: Dict[str, ActionSpec] = {}
        self._by_discriminant: Dict[int, str] = {}
        self._intent_types: Dict[str, IntentType] = {}

    def register(self, spec: ActionSpec) -> ActionSpec:
        if spec.kind in self._specs:
            raise ValueError(f"Action kind '{spec.kind}' is already registered")
        if spec.discriminant in self._by_discriminant:
            raise ValueError(
                f"Discriminant {spec.discriminant} already used by "
                f"'{self._by_discriminant[spec.discriminant]}'"
            )
        if spec.discriminant < 0:
            raise ValueError("Discriminants must be non-negative")
        self._specs[spec.kind] = spec
        self._by_discriminant[spec.discriminant] = spec.kind
        logger.debug("Registered action kind %s (discriminant %d)", spec.kind, spec.discriminant)
        return spec

    def register_intent_type(self, intent_type: IntentType) -> IntentType:
        if intent_type.name in self._intent_types:
            raise ValueError(f"Intent type '{intent_type.name}' is already registered")
        self._intent_types[intent_type.name] = intent_type
        return intent_type

    def lookup(self, kind: str) -> ActionSpec:
        try:
            return self._specs[kind]
        except KeyError:
            raise UnknownActionKind(kind) from None

    def kind_for_discriminant(self, discriminant: int) -> str:
        try:
            return self._by_discriminant[discriminant]
        except KeyError:
            raise UnknownActionKind(f"#{discriminant}") from None

    def kinds(self) -> List[str]:
        return list(self._specs)

    def intent_type(self, name: str) -> IntentType:
        try:
            return self._intent_types[name]
        except KeyError:
            raise UnknownIntentType(name) from None

    def intent_types(self) -> List[IntentType]:
        return list(self._intent_types.values())

    def intent_type_for_move_type(self, move_type: str) -> IntentType:
        wanted = _strip_generics(move_type)
        for intent_type in self._intent_types.values():
            if _strip_generics(intent_type.move_type) == wanted:
                return intent_type
        raise UnknownIntentType(move_type)

    def required_roles(self, intent_type: IntentType, kinds: Iterable[str]) -> FrozenSet[str]:
        roles = set()
        if intent_type.role:
            roles.add(intent_type.role)
        for kind in kinds:
            roles.update(self.lookup(kind).roles)
        return frozenset(roles)


def _strip_generics(move_type: str) -> str:
    head = move_type.partition("<")[0].strip()
    pieces = head.split("::")
    if len(pieces) == 3:
        return f"{normalize_address(pieces[0])}::{pieces[1]}::{pieces[2]}"
    return head


# Lifecycle shapes --------------------------------------------------------


def request_templates(
    intent_type: IntentType,
    key: str,
    description: str,
    execution_times: Sequence[int],
    expiration_time: int,
    payloads: Sequence[bytes],
) -> List[CallTemplate]:
    """Create an intent on-chain and attach each encoded action payload."""

    calls = [
        CallTemplate(
            f"{ACCOUNT_MULTISIG}::multisig::authenticate",
            (account_object(),),
            produces="auth",
        ),
        CallTemplate(f"{ACCOUNT_MULTISIG}::multisig::empty_outcome", produces="outcome"),
        CallTemplate(
            f"{ACCOUNT_PROTOCOL}::account::create_intent",
            (
                account_object(),
                ResultRef("auth"),
                ResultRef("outcome"),
                PureArg(key, STRING),
                PureArg(description, STRING),
                PureArg(list(execution_times), Vec(U64)),
                PureArg(expiration_time, U64),
                PureArg(intent_type.move_type, STRING),
                PureArg(intent_type.role, Opt(STRING)),
                ObjectArg("clock"),
            ),
            ACCOUNT_GENERICS,
            produces="intent",
        ),
    ]
    for payload in payloads:
        calls.append(
            CallTemplate(
                f"{ACCOUNT_PROTOCOL}::intents::add_action",
                (ResultRef("intent"), PureArg(bytes(payload), BYTES)),
            )
        )
    calls.append(
        CallTemplate(
            f"{ACCOUNT_PROTOCOL}::account::insert_intent",
            (account_object(), ResultRef("intent")),
            ACCOUNT_GENERICS,
        )
    )
    return calls


def approval_templates(key: str, approve: bool = True) -> List[CallTemplate]:
    function = "approve_intent" if approve else "disapprove_intent"
    return [
        CallTemplate(
            f"{ACCOUNT_MULTISIG}::multisig::{function}",
            (account_object(), PureArg(key, STRING)),
        )
    ]


def delete_templates(key: str, action_count: int, expired: bool) -> List[CallTemplate]:
    """Remove an intent and drain its action bag.

    Expired intents can be removed by anyone; live ones need a member's
    authentication first.
    """

    calls: List[CallTemplate] = []
    if expired:
        calls.append(
            CallTemplate(
                f"{ACCOUNT_PROTOCOL}::account::delete_expired_intent",
                (account_object(), PureArg(key, STRING), ObjectArg("clock")),
                ACCOUNT_GENERICS,
                produces="expired",
            )
        )
    else:
        calls.append(
            CallTemplate(
                f"{ACCOUNT_MULTISIG}::multisig::authenticate",
                (account_object(),),
                produces="auth",
            )
        )
        calls.append(
            CallTemplate(
                f"{ACCOUNT_PROTOCOL}::account::cancel_intent",
                (ResultRef("auth"), account_object(), PureArg(key, STRING)),
                ACCOUNT_GENERICS,
                produces="expired",
            )
        )
    for _ in range(action_count):
        calls.append(
            CallTemplate(f"{ACCOUNT_PROTOCOL}::intents::remove_action", (ResultRef("expired"),))
        )
    calls.append(
        CallTemplate(f"{ACCOUNT_PROTOCOL}::intents::destroy_empty_expired", (ResultRef("expired"),))
    )
    return calls


def execution_prologue(key: str) -> List[CallTemplate]:
    return [
        CallTemplate(
            f"{ACCOUNT_MULTISIG}::multisig::execute_intent",
            (account_object(), PureArg(key, STRING), ObjectArg("clock")),
            produces=EXECUTABLE,
        )
    ]


def execution_epilogue() -> List[CallTemplate]:
    return [
        CallTemplate(
            f"{ACCOUNT_PROTOCOL}::account::confirm_execution",
            (account_object(), ResultRef(EXECUTABLE)),
            ACCOUNT_GENERICS,
        )
    ]


# Direct calls ------------------------------------------------------------
#
# Managed resources are opened, funded and closed by any member without an
# intent. Each shape starts by authenticating the signer against the account.


def _authenticate(account: ArgTemplate | None = None) -> CallTemplate:
    return CallTemplate(
        f"{ACCOUNT_MULTISIG}::multisig::authenticate",
        (account or account_object(),),
        produces="auth",
    )


def _authenticated(function: str, *extra: ArgTemplate, types: Sequence[str] = ()) -> List[CallTemplate]:
    return [
        _authenticate(),
        CallTemplate(
            f"{ACCOUNT_ACTIONS}::{function}",
            (ResultRef("auth"), account_object(), *extra),
            (*ACCOUNT_GENERICS, *types),
        ),
    ]


def open_vault_templates(name: str) -> List[CallTemplate]:
    return _authenticated("vault::open", PureArg(name, STRING))


def close_vault_templates(name: str) -> List[CallTemplate]:
    return _authenticated("vault::close", PureArg(name, STRING))


def deposit_templates(name: str, coin_type: str, coin_ids: Sequence[str], amount: int) -> List[Template]:
    """Merge the signer's ``coin_ids`` and deposit ``amount`` of them into vault ``name``."""

    if not coin_ids:
        raise ValueError("a deposit needs at least one coin")
    coins = [owned_object(coin_id) for coin_id in coin_ids]
    calls: List[Template] = [_authenticate()]
    if len(coins) > 1:
        calls.append(MergeTemplate(coins[0], coins[1:]))
    calls.append(SplitTemplate(coins[0], amount, produces="deposit"))
    calls.append(
        CallTemplate(
            f"{ACCOUNT_ACTIONS}::vault::deposit",
            (ResultRef("auth"), account_object(), PureArg(name, STRING), ResultRef("deposit")),
            (*ACCOUNT_GENERICS, coin_type),
        )
    )
    return calls


def deposit_cap_templates(cap_id: str, cap_type: str) -> List[CallTemplate]:
    return _authenticated("access_control::lock_cap", owned_object(cap_id), types=(cap_type,))


def deposit_treasury_cap_templates(
    cap_id: str, coin_type: str, max_supply: Optional[int]
) -> List[CallTemplate]:
    return _authenticated(
        "currency::lock_cap",
        owned_object(cap_id),
        PureArg(max_supply, Opt(U64)),
        types=(coin_type,),
    )


def deposit_upgrade_cap_templates(cap_id: str, package_name: str, delay_ms: int) -> List[CallTemplate]:
    return _authenticated(
        "package_upgrade::lock_cap",
        owned_object(cap_id),
        PureArg(package_name, STRING),
        PureArg(delay_ms, U64),
    )


ACCOUNT_TYPE = f"{ACCOUNT_PROTOCOL}::account::Account<{MULTISIG_CONFIG_TYPE}, {MULTISIG_OUTCOME_TYPE}>"
CREATION_CONFIG_KEY = "config_multisig"


def creation_templates(
    creator: str,
    fee_amount: int,
    name: str = "",
    config: Optional[act.ConfigMultisig] = None,
    user_id: Optional[str] = None,
) -> List[Template]:
    """Create, configure and share a new multisig account in one transaction.

    The creation fee is split off the gas coin. When ``config`` is given it is
    applied through an intent that is requested, approved, executed and
    cleaned up in place, since the creator is the sole member until then.
    Afterwards the creator joins the account through their user profile
    (``user_id``, or a new one transferred to them at the end) and every
    other member is sent an invite.
    """

    creator = normalize_address(creator)
    account = ResultRef("account")
    calls: List[Template] = []
    if user_id is None:
        calls.append(CallTemplate(f"{ACCOUNT_PROTOCOL}::user::new", produces="user"))
        user: ArgTemplate = ResultRef("user")
    else:
        user = owned_object(user_id)
    calls.append(SplitTemplate(gas_coin(), fee_amount, produces="fee_coin"))
    calls.append(
        CallTemplate(
            f"{ACCOUNT_MULTISIG}::multisig::new_account",
            (ObjectArg("extensions"), ObjectArg("fee"), ResultRef("fee_coin")),
            produces="account",
        )
    )

    if name:
        calls.append(_authenticate(account))
        calls.append(
            CallTemplate(
                f"{ACCOUNT_PROTOCOL}::config::edit_metadata",
                (ResultRef("auth"), account, PureArg(["name"], Vec(STRING)), PureArg([name], Vec(STRING))),
                ACCOUNT_GENERICS,
            )
        )

    members = [creator]
    if config is not None:
        key = PureArg(CREATION_CONFIG_KEY, STRING)
        members = [member.address for member in config.members]
        calls.extend(
            [
                _authenticate(account),
                CallTemplate(
                    f"{ACCOUNT_PROTOCOL}::intents::new_params",
                    (key, PureArg("", STRING), PureArg([0], Vec(U64)), PureArg(0, U64), ObjectArg("clock")),
                    produces="params",
                ),
                CallTemplate(f"{ACCOUNT_MULTISIG}::multisig::empty_outcome", produces="outcome"),
                CallTemplate(
                    f"{ACCOUNT_MULTISIG}::config::request_config_multisig",
                    (
                        ResultRef("auth"),
                        account,
                        ResultRef("params"),
                        ResultRef("outcome"),
                        PureArg(members, Vec(ADDRESS)),
                        PureArg([member.weight for member in config.members], Vec(U64)),
                        PureArg([list(member.roles) for member in config.members], Vec(Vec(STRING))),
                        PureArg(config.global_threshold, U64),
                        PureArg([role.name for role in config.roles], Vec(STRING)),
                        PureArg([role.threshold for role in config.roles], Vec(U64)),
                    ),
                ),
                CallTemplate(f"{ACCOUNT_MULTISIG}::multisig::approve_intent", (account, key)),
                CallTemplate(
                    f"{ACCOUNT_MULTISIG}::multisig::execute_intent",
                    (account, key, ObjectArg("clock")),
                    produces=EXECUTABLE,
                ),
                CallTemplate(
                    f"{ACCOUNT_MULTISIG}::config::execute_config_multisig",
                    (ResultRef(EXECUTABLE), account),
                ),
                CallTemplate(
                    f"{ACCOUNT_PROTOCOL}::account::confirm_execution",
                    (account, ResultRef(EXECUTABLE)),
                    ACCOUNT_GENERICS,
                ),
                CallTemplate(
                    f"{ACCOUNT_PROTOCOL}::account::destroy_empty_intent",
                    (account, key),
                    ACCOUNT_GENERICS,
                    produces="expired",
                ),
                CallTemplate(f"{ACCOUNT_MULTISIG}::config::delete_config_multisig", (ResultRef("expired"),)),
                CallTemplate(f"{ACCOUNT_PROTOCOL}::intents::destroy_empty_expired", (ResultRef("expired"),)),
            ]
        )

    for address in members:
        if address == creator:
            calls.append(CallTemplate(f"{ACCOUNT_MULTISIG}::multisig::join", (user, account)))
        else:
            calls.append(
                CallTemplate(
                    f"{ACCOUNT_MULTISIG}::multisig::send_invite", (account, PureArg(address, ADDRESS))
                )
            )
    calls.append(CallTemplate("0x2::transfer::public_share_object", (account,), (ACCOUNT_TYPE,)))
    if user_id is None:
        calls.append(
            CallTemplate(
                f"{ACCOUNT_PROTOCOL}::user::transfer",
                (ObjectArg("registry"), user, PureArg(creator, ADDRESS)),
            )
        )
    return calls


# Default kinds -----------------------------------------------------------


def _camel(kind: str) -> str:
    return "".join(part.capitalize() for part in kind.split("_"))


def _execute(package: str, module: str, kind: str, *extra: ArgTemplate, types: Sequence[str] = ()) -> CallTemplate:
    return CallTemplate(
        f"{package}::{module}::execute_{kind}",
        (ResultRef(EXECUTABLE), account_object(), *extra),
        (*ACCOUNT_GENERICS, *types),
    )


def _config_multisig_calls(action: act.ConfigMultisig) -> List[CallTemplate]:
    return [_execute(ACCOUNT_MULTISIG, "config", "config_multisig")]


def _config_deps_calls(action: act.ConfigDeps) -> List[CallTemplate]:
    return [_execute(ACCOUNT_PROTOCOL, "config", "config_deps")]


def _borrow_cap_calls(action: act.BorrowCap) -> List[CallTemplate]:
    # borrow -> use -> return, threaded through the "cap" result.
    return [
        CallTemplate(
            f"{ACCOUNT_ACTIONS}::access_control_intents::execute_borrow_cap",
            (ResultRef(EXECUTABLE), account_object()),
            (*ACCOUNT_GENERICS, action.cap_type),
            produces="cap",
        ),
        CallTemplate(action.target, (ResultRef("cap"),)),
        CallTemplate(
            f"{ACCOUNT_ACTIONS}::access_control::return_cap",
            (account_object(), ResultRef("cap"), ResultRef(EXECUTABLE)),
            (*ACCOUNT_GENERICS, action.cap_type),
        ),
    ]


def _disable_rules_calls(action: act.DisableRules) -> List[CallTemplate]:
    return [_execute(ACCOUNT_ACTIONS, "currency_intents", "disable_rules", types=(action.coin_type,))]


def _update_metadata_calls(action: act.UpdateMetadata) -> List[CallTemplate]:
    return [_execute(ACCOUNT_ACTIONS, "currency_intents", "update_metadata", types=(action.coin_type,))]


def _mint_and_transfer_calls(action: act.MintAndTransfer) -> List[CallTemplate]:
    return [
        _execute(ACCOUNT_ACTIONS, "currency_intents", "mint_and_transfer", types=(action.coin_type,))
        for _ in action.recipients
    ]


def _mint_and_vest_calls(action: act.MintAndVest) -> List[CallTemplate]:
    return [_execute(ACCOUNT_ACTIONS, "currency_intents", "mint_and_vest", types=(action.coin_type,))]


def _withdraw_and_burn_calls(action: act.WithdrawAndBurn) -> List[CallTemplate]:
    return [
        _execute(
            ACCOUNT_ACTIONS,
            "currency_intents",
            "withdraw_and_burn",
            owned_object(action.coin_id),
            types=(action.coin_type,),
        )
    ]


def _take_nfts_calls(action: act.TakeNfts) -> List[CallTemplate]:
    return [
        _execute(
            ACCOUNT_ACTIONS,
            "kiosk_intents",
            "take_nfts",
            kiosk_object(action.kiosk_name),
            PureArg(nft_id, ADDRESS),
        )
        for nft_id in action.nft_ids
    ]


def _list_nfts_calls(action: act.ListNfts) -> List[CallTemplate]:
    return [
        _execute(
            ACCOUNT_ACTIONS,
            "kiosk_intents",
            "list_nfts",
            kiosk_object(action.kiosk_name),
            PureArg(nft_id, ADDRESS),
        )
        for nft_id in action.nft_ids
    ]


def _withdraw_and_transfer_to_vault_calls(action: act.WithdrawAndTransferToVault) -> List[CallTemplate]:
    return [
        _execute(
            ACCOUNT_ACTIONS,
            "owned_intents",
            "withdraw_and_transfer_to_vault",
            owned_object(action.coin_id),
            types=(action.coin_type,),
        )
    ]


def _withdraw_and_transfer_calls(action: act.WithdrawAndTransfer) -> List[CallTemplate]:
    return [
        _execute(ACCOUNT_ACTIONS, "owned_intents", "withdraw_and_transfer", owned_object(object_id))
        for object_id in action.object_ids
    ]


def _withdraw_and_vest_calls(action: act.WithdrawAndVest) -> List[CallTemplate]:
    return [
        _execute(ACCOUNT_ACTIONS, "owned_intents", "withdraw_and_vest", owned_object(action.coin_id))
    ]


def _spend_and_transfer_calls(action: act.SpendAndTransfer) -> List[CallTemplate]:
    return [
        _execute(ACCOUNT_ACTIONS, "vault_intents", "spend_and_transfer", types=(action.coin_type,))
        for _ in action.recipients
    ]


def _spend_and_vest_calls(action: act.SpendAndVest) -> List[CallTemplate]:
    return [_execute(ACCOUNT_ACTIONS, "vault_intents", "spend_and_vest", types=(action.coin_type,))]


def _upgrade_package_calls(action: act.UpgradePackage) -> List[CallTemplate]:
    # The signer performs the module upload between ticket and commit.
    return [
        CallTemplate(
            f"{ACCOUNT_ACTIONS}::package_upgrade_intents::execute_upgrade_package",
            (ResultRef(EXECUTABLE), account_object(), ObjectArg("clock")),
            ACCOUNT_GENERICS,
            produces="ticket",
        ),
        CallTemplate(
            f"{ACCOUNT_ACTIONS}::package_upgrade_intents::execute_commit_upgrade",
            (ResultRef(EXECUTABLE), account_object(), ResultRef("ticket")),
            ACCOUNT_GENERICS,
        ),
    ]


def _restrict_policy_calls(action: act.RestrictPolicy) -> List[CallTemplate]:
    return [_execute(ACCOUNT_ACTIONS, "package_upgrade_intents", "restrict_policy")]


# kind -> (action class, package, intents module, lowering)
# Discriminants follow this order and are never reassigned. The required
# role is the intents module the kind lives in.
_DEFAULT_KINDS: Tuple[Tuple[type, str, str, Callable[[Any], List[CallTemplate]]], ...] = (
    (act.ConfigMultisig, ACCOUNT_MULTISIG, "config", _config_multisig_calls),
    (act.ConfigDeps, ACCOUNT_PROTOCOL, "config", _config_deps_calls),
    (act.BorrowCap, ACCOUNT_ACTIONS, "access_control_intents", _borrow_cap_calls),
    (act.DisableRules, ACCOUNT_ACTIONS, "currency_intents", _disable_rules_calls),
    (act.UpdateMetadata, ACCOUNT_ACTIONS, "currency_intents", _update_metadata_calls),
    (act.MintAndTransfer, ACCOUNT_ACTIONS, "currency_intents", _mint_and_transfer_calls),
    (act.MintAndVest, ACCOUNT_ACTIONS, "currency_intents", _mint_and_vest_calls),
    (act.WithdrawAndBurn, ACCOUNT_ACTIONS, "currency_intents", _withdraw_and_burn_calls),
    (act.TakeNfts, ACCOUNT_ACTIONS, "kiosk_intents", _take_nfts_calls),
    (act.ListNfts, ACCOUNT_ACTIONS, "kiosk_intents", _list_nfts_calls),
    (
        act.WithdrawAndTransferToVault,
        ACCOUNT_ACTIONS,
        "owned_intents",
        _withdraw_and_transfer_to_vault_calls,
    ),
    (act.WithdrawAndTransfer, ACCOUNT_ACTIONS, "owned_intents", _withdraw_and_transfer_calls),
    (act.WithdrawAndVest, ACCOUNT_ACTIONS, "owned_intents", _withdraw_and_vest_calls),
    (act.SpendAndTransfer, ACCOUNT_ACTIONS, "vault_intents", _spend_and_transfer_calls),
    (act.SpendAndVest, ACCOUNT_ACTIONS, "vault_intents", _spend_and_vest_calls),
    (act.UpgradePackage, ACCOUNT_ACTIONS, "package_upgrade_intents", _upgrade_package_calls),
    (act.RestrictPolicy, ACCOUNT_ACTIONS, "package_upgrade_intents", _restrict_policy_calls),
)

GENERIC_INTENT = "generic"
TOGGLE_UNVERIFIED_INTENT = "toggle_unverified_allowed"


def build_default_catalog() -> ActionCatalog:
    """Return a fresh catalog holding every built-in kind and intent type."""

    catalog = ActionCatalog()
    for discriminant, (action_cls, package, module, lowering) in enumerate(_DEFAULT_KINDS):
        kind = action_cls.kind
        role = role_for(package, module)
        catalog.register(
            ActionSpec(
                kind=kind,
                action_cls=action_cls,
                discriminant=discriminant,
                calls=lowering,
                roles=frozenset({role}),
            )
        )
        catalog.register_intent_type(
            IntentType(
                name=kind,
                move_type=f"{package}::{module}::{_camel(kind)}Intent",
                role=role,
                kinds=frozenset({kind}),
            )
        )
    catalog.register_intent_type(
        IntentType(
            name=GENERIC_INTENT,
            move_type=f"{ACCOUNT_PROTOCOL}::intents::GenericIntent",
        )
    )
    catalog.register_intent_type(
        IntentType(
            name=TOGGLE_UNVERIFIED_INTENT,
            move_type=f"{ACCOUNT_PROTOCOL}::config::ToggleUnverifiedAllowedIntent",
            role=role_for(ACCOUNT_PROTOCOL, "config"),
            kinds=frozenset(),
            requires_actions=False,
        )
    )
    return catalog


_DEFAULT: ActionCatalog | None = None


def default_catalog() -> ActionCatalog:
    """Return the shared built-in catalog.

    Callers that register their own kinds should start from
    :func:`build_default_catalog` instead of mutating the shared instance.
    """

    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = build_default_catalog()
    return _DEFAULT


def kind_label(kind: str) -> str:
    """Render ``mint_and_transfer`` as ``mint-and-transfer`` for the CLI."""

    return kind.replace("_", "-")
