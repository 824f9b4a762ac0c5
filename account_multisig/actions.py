"""Typed actions carried by multisig intents.

Each action is an immutable dataclass. ``FIELDS`` lists the payload schema
in declaration order; ``validate`` performs the local checks that do not
need chain state; ``resource_refs`` names the managed resources the action
touches so the builder can confirm them against the latest snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar, NamedTuple, Optional, Sequence, Tuple

from .bcs import ADDRESS_LENGTH, normalize_address, normalize_type_tag
from .codec import (
    ADDRESS,
    BOOL,
    BYTES,
    STRING,
    TYPE_TAG,
    U64,
    Enum,
    FieldCodec,
    Opt,
    Record,
    Vec,
    build_record,
)
from .errors import ArityMismatch, ValidationError


class Policy(IntEnum):
    """Package upgrade policies; they may only become more restrictive."""

    COMPATIBLE = 0
    ADDITIVE = 128
    DEP_ONLY = 192
    IMMUTABLE = 255

    @classmethod
    def parse(cls, raw: str | int) -> "Policy":
        if isinstance(raw, str) and not raw.strip().isdigit():
            key = raw.strip().upper().replace("-", "_")
            try:
                return cls[key]
            except KeyError as exc:
                raise ValidationError(f"Invalid policy: {raw}") from exc
        try:
            return cls(int(raw))
        except ValueError as exc:
            raise ValidationError(f"Invalid policy: {raw}") from exc


class ResourceRef(NamedTuple):
    """A managed resource an action depends on.

    ``kind`` is one of ``vault``, ``currency``, ``cap``, ``package``,
    ``kiosk`` or ``owned``. The optional fields narrow the check: a currency
    permission that must still be enabled, a coin type and amount that must
    be covered, or a package policy that must be stricter than the current one.
    """

    kind: str
    identifier: str
    permission: str | None = None
    coin_type: str | None = None
    amount: int = 0
    policy: int | None = None


def _set(obj: Any, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


def _addresses(values: Sequence[str]) -> Tuple[str, ...]:
    return tuple(normalize_address(value) for value in values)


def _require_positive(value: int, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{label} must be a positive integer, got {value!r}")


def _require_name(value: str, label: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} must be a non-empty string")


def _require_window(start: int, end: int) -> None:
    for label, value in (("start", start), ("end", end)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{label} timestamp must be an integer, got {value!r}")
    if start < 0:
        raise ValidationError(f"start timestamp must be non-negative, got {start}")
    if not start < end:
        raise ValidationError(f"start timestamp {start} must be before end timestamp {end}")


def _require_pairs(left: Sequence[Any], left_name: str, right: Sequence[Any], right_name: str) -> None:
    if len(left) != len(right):
        raise ArityMismatch(left_name, len(left), right_name, len(right))
    if not left:
        raise ValidationError(f"{left_name} must not be empty")


class Action:
    """Base class for catalog actions."""

    kind: ClassVar[str] = ""
    FIELDS: ClassVar[Tuple[Tuple[str, FieldCodec], ...]] = ()

    def validate(self) -> None:
        """Raise :class:`ValidationError` when the action is locally invalid."""

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Action":
        """Build an action from the mapping produced by :meth:`to_dict`."""

        return build_record(cls, cls.FIELDS, data)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind}
        for name, _ in self.FIELDS:
            data[name] = _jsonable(getattr(self, name))
        return data


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, IntEnum):
        return value.name.lower()
    if isinstance(value, tuple):
        return [_jsonable(item) for item in value]
    if hasattr(value, "_asdict"):
        return {key: _jsonable(item) for key, item in value._asdict().items()}
    if hasattr(value, "__dataclass_fields__"):
        return {key: _jsonable(getattr(value, key)) for key in value.__dataclass_fields__}
    return value


# Configuration ----------------------------------------------------------


@dataclass(frozen=True)
class MemberSpec:
    address: str
    weight: int
    roles: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _set(self, "address", normalize_address(self.address))
        _set(self, "roles", tuple(self.roles))


@dataclass(frozen=True)
class RoleSpec:
    name: str
    threshold: int


@dataclass(frozen=True)
class Dependency:
    name: str
    address: str
    version: int

    def __post_init__(self) -> None:
        _set(self, "address", normalize_address(self.address))


MEMBER = Record(MemberSpec, (("address", ADDRESS), ("weight", U64), ("roles", Vec(STRING))))
ROLE = Record(RoleSpec, (("name", STRING), ("threshold", U64)))
DEPENDENCY = Record(Dependency, (("name", STRING), ("address", ADDRESS), ("version", U64)))


@dataclass(frozen=True)
class ConfigMultisig(Action):
    """Replace the member set, the global threshold and the roles."""

    kind: ClassVar[str] = "config_multisig"

    global_threshold: int
    members: Tuple[MemberSpec, ...]
    roles: Tuple[RoleSpec, ...] = ()

    FIELDS: ClassVar = (
        ("global_threshold", U64),
        ("members", Vec(MEMBER)),
        ("roles", Vec(ROLE)),
    )

    def __post_init__(self) -> None:
        _set(self, "members", tuple(self.members))
        _set(self, "roles", tuple(self.roles))

    def validate(self) -> None:
        _require_positive(self.global_threshold, "global threshold")
        if not self.members:
            raise ValidationError("a multisig needs at least one member")
        seen: set[str] = set()
        for member in self.members:
            if member.address in seen:
                raise ValidationError(f"duplicate member {member.address}")
            seen.add(member.address)
            _require_positive(member.weight, f"weight of {member.address}")
        role_names = [role.name for role in self.roles]
        if len(set(role_names)) != len(role_names):
            raise ValidationError("role names must be unique")
        defined = set(role_names)
        for member in self.members:
            undefined = set(member.roles) - defined
            if undefined:
                raise ValidationError(
                    f"member {member.address} holds undefined roles: {', '.join(sorted(undefined))}"
                )
        total = sum(member.weight for member in self.members)
        if self.global_threshold > total:
            raise ValidationError(
                f"global threshold {self.global_threshold} exceeds total weight {total}"
            )
        for role in self.roles:
            _require_name(role.name, "role name")
            _require_positive(role.threshold, f"threshold of role {role.name}")
            holders = sum(m.weight for m in self.members if role.name in m.roles)
            if role.threshold > holders:
                raise ValidationError(
                    f"role {role.name} threshold {role.threshold} exceeds holders' weight {holders}"
                )


@dataclass(frozen=True)
class ConfigDeps(Action):
    """Replace the account's package dependency list."""

    kind: ClassVar[str] = "config_deps"

    deps: Tuple[Dependency, ...]

    FIELDS: ClassVar = (("deps", Vec(DEPENDENCY)),)

    def __post_init__(self) -> None:
        _set(self, "deps", tuple(self.deps))

    def validate(self) -> None:
        if not self.deps:
            raise ValidationError("at least one dependency is required")
        names = [dep.name for dep in self.deps]
        if len(set(names)) != len(names):
            raise ValidationError("dependency names must be unique")
        for dep in self.deps:
            _require_name(dep.name, "dependency name")
            _require_positive(dep.version, f"version of {dep.name}")


# Access control ---------------------------------------------------------


@dataclass(frozen=True)
class BorrowCap(Action):
    """Borrow a stored capability, pass it to ``target``, and return it."""

    kind: ClassVar[str] = "borrow_cap"

    cap_type: str
    target: str

    FIELDS: ClassVar = (("cap_type", TYPE_TAG), ("target", STRING))

    def __post_init__(self) -> None:
        _set(self, "cap_type", normalize_type_tag(self.cap_type))

    def validate(self) -> None:
        pieces = self.target.split("::")
        if len(pieces) != 3 or not all(piece.strip() for piece in pieces):
            raise ValidationError(
                f"target must look like <package>::<module>::<function>, got {self.target!r}"
            )
        normalize_address(pieces[0])

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (ResourceRef("cap", self.cap_type),)


# Currency ---------------------------------------------------------------


@dataclass(frozen=True)
class DisableRules(Action):
    """Permanently disable currency permissions."""

    kind: ClassVar[str] = "disable_rules"

    coin_type: str
    mint: bool = False
    burn: bool = False
    update_symbol: bool = False
    update_name: bool = False
    update_description: bool = False
    update_icon: bool = False

    FIELDS: ClassVar = (
        ("coin_type", TYPE_TAG),
        ("mint", BOOL),
        ("burn", BOOL),
        ("update_symbol", BOOL),
        ("update_name", BOOL),
        ("update_description", BOOL),
        ("update_icon", BOOL),
    )

    def __post_init__(self) -> None:
        _set(self, "coin_type", normalize_type_tag(self.coin_type))

    def validate(self) -> None:
        if not any(
            (self.mint, self.burn, self.update_symbol, self.update_name,
             self.update_description, self.update_icon)
        ):
            raise ValidationError("disable_rules must disable at least one permission")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (ResourceRef("currency", self.coin_type),)


@dataclass(frozen=True)
class UpdateMetadata(Action):
    kind: ClassVar[str] = "update_metadata"

    coin_type: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    description: Optional[str] = None
    icon_url: Optional[str] = None

    FIELDS: ClassVar = (
        ("coin_type", TYPE_TAG),
        ("name", Opt(STRING)),
        ("symbol", Opt(STRING)),
        ("description", Opt(STRING)),
        ("icon_url", Opt(STRING)),
    )

    def __post_init__(self) -> None:
        _set(self, "coin_type", normalize_type_tag(self.coin_type))

    def validate(self) -> None:
        if all(value is None for value in (self.name, self.symbol, self.description, self.icon_url)):
            raise ValidationError("update_metadata must change at least one field")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        refs = []
        for attr, permission in (
            ("name", "update_name"),
            ("symbol", "update_symbol"),
            ("description", "update_description"),
            ("icon_url", "update_icon"),
        ):
            if getattr(self, attr) is not None:
                refs.append(ResourceRef("currency", self.coin_type, permission=permission))
        return tuple(refs)


@dataclass(frozen=True)
class MintAndTransfer(Action):
    kind: ClassVar[str] = "mint_and_transfer"

    coin_type: str
    amounts: Tuple[int, ...]
    recipients: Tuple[str, ...]

    FIELDS: ClassVar = (
        ("coin_type", TYPE_TAG),
        ("amounts", Vec(U64)),
        ("recipients", Vec(ADDRESS)),
    )

    def __post_init__(self) -> None:
        _set(self, "coin_type", normalize_type_tag(self.coin_type))
        _set(self, "amounts", tuple(self.amounts))
        _set(self, "recipients", _addresses(self.recipients))

    def validate(self) -> None:
        _require_pairs(self.amounts, "amounts", self.recipients, "recipients")
        for amount in self.amounts:
            _require_positive(amount, "mint amount")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (
            ResourceRef(
                "currency", self.coin_type, permission="mint", amount=sum(self.amounts)
            ),
        )


@dataclass(frozen=True)
class MintAndVest(Action):
    kind: ClassVar[str] = "mint_and_vest"

    coin_type: str
    amount: int
    start: int
    end: int
    recipient: str

    FIELDS: ClassVar = (
        ("coin_type", TYPE_TAG),
        ("amount", U64),
        ("start", U64),
        ("end", U64),
        ("recipient", ADDRESS),
    )

    def __post_init__(self) -> None:
        _set(self, "coin_type", normalize_type_tag(self.coin_type))
        _set(self, "recipient", normalize_address(self.recipient))

    def validate(self) -> None:
        _require_positive(self.amount, "mint amount")
        _require_window(self.start, self.end)

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (ResourceRef("currency", self.coin_type, permission="mint", amount=self.amount),)


@dataclass(frozen=True)
class WithdrawAndBurn(Action):
    kind: ClassVar[str] = "withdraw_and_burn"

    coin_type: str
    coin_id: str
    amount: int

    FIELDS: ClassVar = (("coin_type", TYPE_TAG), ("coin_id", ADDRESS), ("amount", U64))

    def __post_init__(self) -> None:
        _set(self, "coin_type", normalize_type_tag(self.coin_type))
        _set(self, "coin_id", normalize_address(self.coin_id))

    def validate(self) -> None:
        _require_positive(self.amount, "burn amount")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (
            ResourceRef("currency", self.coin_type, permission="burn"),
            ResourceRef("owned", self.coin_id, coin_type=self.coin_type, amount=self.amount),
        )


# Kiosk ------------------------------------------------------------------


@dataclass(frozen=True)
class TakeNfts(Action):
    kind: ClassVar[str] = "take_nfts"

    kiosk_name: str
    nft_ids: Tuple[str, ...]
    recipient: str

    FIELDS: ClassVar = (
        ("kiosk_name", STRING),
        ("nft_ids", Vec(ADDRESS)),
        ("recipient", ADDRESS),
    )

    def __post_init__(self) -> None:
        _set(self, "nft_ids", _addresses(self.nft_ids))
        _set(self, "recipient", normalize_address(self.recipient))

    def validate(self) -> None:
        _require_name(self.kiosk_name, "kiosk name")
        if not self.nft_ids:
            raise ValidationError("at least one NFT id is required")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (ResourceRef("kiosk", self.kiosk_name),)


@dataclass(frozen=True)
class ListNfts(Action):
    kind: ClassVar[str] = "list_nfts"

    kiosk_name: str
    nft_ids: Tuple[str, ...]
    prices: Tuple[int, ...]

    FIELDS: ClassVar = (
        ("kiosk_name", STRING),
        ("nft_ids", Vec(ADDRESS)),
        ("prices", Vec(U64)),
    )

    def __post_init__(self) -> None:
        _set(self, "nft_ids", _addresses(self.nft_ids))
        _set(self, "prices", tuple(self.prices))

    def validate(self) -> None:
        _require_name(self.kiosk_name, "kiosk name")
        _require_pairs(self.nft_ids, "nft_ids", self.prices, "prices")
        for price in self.prices:
            _require_positive(price, "listing price")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (ResourceRef("kiosk", self.kiosk_name),)


# Owned objects ----------------------------------------------------------


@dataclass(frozen=True)
class WithdrawAndTransferToVault(Action):
    kind: ClassVar[str] = "withdraw_and_transfer_to_vault"

    coin_type: str
    coin_id: str
    amount: int
    vault_name: str

    FIELDS: ClassVar = (
        ("coin_type", TYPE_TAG),
        ("coin_id", ADDRESS),
        ("amount", U64),
        ("vault_name", STRING),
    )

    def __post_init__(self) -> None:
        _set(self, "coin_type", normalize_type_tag(self.coin_type))
        _set(self, "coin_id", normalize_address(self.coin_id))

    def validate(self) -> None:
        _require_positive(self.amount, "deposit amount")
        _require_name(self.vault_name, "vault name")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (
            ResourceRef("vault", self.vault_name),
            ResourceRef("owned", self.coin_id, coin_type=self.coin_type, amount=self.amount),
        )


@dataclass(frozen=True)
class WithdrawAndTransfer(Action):
    kind: ClassVar[str] = "withdraw_and_transfer"

    object_ids: Tuple[str, ...]
    recipients: Tuple[str, ...]

    FIELDS: ClassVar = (("object_ids", Vec(ADDRESS)), ("recipients", Vec(ADDRESS)))

    def __post_init__(self) -> None:
        _set(self, "object_ids", _addresses(self.object_ids))
        _set(self, "recipients", _addresses(self.recipients))

    def validate(self) -> None:
        _require_pairs(self.object_ids, "object_ids", self.recipients, "recipients")
        if len(set(self.object_ids)) != len(self.object_ids):
            raise ValidationError("an object can only be withdrawn once per action")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return tuple(ResourceRef("owned", object_id) for object_id in self.object_ids)


@dataclass(frozen=True)
class WithdrawAndVest(Action):
    kind: ClassVar[str] = "withdraw_and_vest"

    coin_id: str
    start: int
    end: int
    recipient: str

    FIELDS: ClassVar = (
        ("coin_id", ADDRESS),
        ("start", U64),
        ("end", U64),
        ("recipient", ADDRESS),
    )

    def __post_init__(self) -> None:
        _set(self, "coin_id", normalize_address(self.coin_id))
        _set(self, "recipient", normalize_address(self.recipient))

    def validate(self) -> None:
        _require_window(self.start, self.end)

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (ResourceRef("owned", self.coin_id),)


# Vault ------------------------------------------------------------------


@dataclass(frozen=True)
class SpendAndTransfer(Action):
    kind: ClassVar[str] = "spend_and_transfer"

    vault_name: str
    coin_type: str
    amounts: Tuple[int, ...]
    recipients: Tuple[str, ...]

    FIELDS: ClassVar = (
        ("vault_name", STRING),
        ("coin_type", TYPE_TAG),
        ("amounts", Vec(U64)),
        ("recipients", Vec(ADDRESS)),
    )

    def __post_init__(self) -> None:
        _set(self, "coin_type", normalize_type_tag(self.coin_type))
        _set(self, "amounts", tuple(self.amounts))
        _set(self, "recipients", _addresses(self.recipients))

    def validate(self) -> None:
        _require_name(self.vault_name, "vault name")
        _require_pairs(self.amounts, "amounts", self.recipients, "recipients")
        for amount in self.amounts:
            _require_positive(amount, "spend amount")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (
            ResourceRef(
                "vault", self.vault_name, coin_type=self.coin_type, amount=sum(self.amounts)
            ),
        )


@dataclass(frozen=True)
class SpendAndVest(Action):
    kind: ClassVar[str] = "spend_and_vest"

    vault_name: str
    coin_type: str
    amount: int
    start: int
    end: int
    recipient: str

    FIELDS: ClassVar = (
        ("vault_name", STRING),
        ("coin_type", TYPE_TAG),
        ("amount", U64),
        ("start", U64),
        ("end", U64),
        ("recipient", ADDRESS),
    )

    def __post_init__(self) -> None:
        _set(self, "coin_type", normalize_type_tag(self.coin_type))
        _set(self, "recipient", normalize_address(self.recipient))

    def validate(self) -> None:
        _require_name(self.vault_name, "vault name")
        _require_positive(self.amount, "spend amount")
        _require_window(self.start, self.end)

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (
            ResourceRef("vault", self.vault_name, coin_type=self.coin_type, amount=self.amount),
        )


# Package upgrades -------------------------------------------------------


@dataclass(frozen=True)
class UpgradePackage(Action):
    kind: ClassVar[str] = "upgrade_package"

    package_name: str
    digest: bytes = field(default=b"")

    FIELDS: ClassVar = (("package_name", STRING), ("digest", BYTES))

    def __post_init__(self) -> None:
        _set(self, "digest", bytes(self.digest))

    def validate(self) -> None:
        _require_name(self.package_name, "package name")
        if len(self.digest) != ADDRESS_LENGTH:
            raise ValidationError(
                f"package digest must be {ADDRESS_LENGTH} bytes, got {len(self.digest)}"
            )

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (ResourceRef("package", self.package_name),)


@dataclass(frozen=True)
class RestrictPolicy(Action):
    kind: ClassVar[str] = "restrict_policy"

    package_name: str
    policy: Policy

    FIELDS: ClassVar = (("package_name", STRING), ("policy", Enum(Policy)))

    def __post_init__(self) -> None:
        _set(self, "policy", Policy.parse(self.policy))

    def validate(self) -> None:
        _require_name(self.package_name, "package name")
        if self.policy == Policy.COMPATIBLE:
            raise ValidationError("restrict_policy cannot target the default compatible policy")

    def resource_refs(self) -> Tuple[ResourceRef, ...]:
        return (ResourceRef("package", self.package_name, policy=int(self.policy)),)


ACTION_TYPES: Tuple[type, ...] = (
    ConfigMultisig,
    ConfigDeps,
    BorrowCap,
    DisableRules,
    UpdateMetadata,
    MintAndTransfer,
    MintAndVest,
    WithdrawAndBurn,
    TakeNfts,
    ListNfts,
    WithdrawAndTransferToVault,
    WithdrawAndTransfer,
    WithdrawAndVest,
    SpendAndTransfer,
    SpendAndVest,
    UpgradePackage,
    RestrictPolicy,
)
