"""Read-only resolution of a multisig account's on-chain state.

:meth:`ObjectResolver.snapshot` fetches the account object, its dynamic
fields and the objects it owns, and decodes them into an immutable
:class:`AccountView`. Nothing is cached: each call hits the query client
again and returns a brand new view.

Dynamic fields are ``Field<K, V>`` objects whose contents start with the
field's own UID, followed by the key and the value. The key struct name
selects the decoder:

=====================  ============  ==========================================
key                    key fields    value fields
=====================  ============  ==========================================
``CapKey<T>``          ``bool``      ``address`` (stored cap id)
``TreasuryCapKey<T>``  ``bool``      ``address`` id, ``u64`` total supply
``CurrencyRulesKey``   ``bool``      ``option<u64>`` max supply, ``u64`` minted,
                                     ``u64`` burned, six permission ``bool``
``VaultKey``           ``string``    ``address`` id, ``vector<(string, u64)>``
``UpgradeCapKey``      ``string``    ``address`` cap id, ``address`` package,
                                     ``u64`` version, ``u8`` policy
``UpgradeRulesKey``    ``string``    ``u64`` upgrade delay (ms)
``KioskOwnerKey``      ``string``    ``address`` cap id, ``address`` kiosk id
=====================  ============  ==========================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple

from .actions import Dependency, Policy, ResourceRef
from .assembler import ObjectRef
from .bcs import BcsReader, base_type, normalize_address, normalize_type_tag, type_params
from .catalog import CLOCK_OBJECT_ID
from .errors import MalformedPayload, ResourceNotFound, ValidationError

logger = logging.getLogger(__name__)

PERMISSION_BITS = {
    "mint": 1 << 0,
    "burn": 1 << 1,
    "update_symbol": 1 << 2,
    "update_name": 1 << 3,
    "update_description": 1 << 4,
    "update_icon": 1 << 5,
}

COIN_TYPE_PREFIX = "0x0000000000000000000000000000000000000000000000000000000000000002::coin::Coin"


@dataclass(frozen=True)
class RawObject:
    """Object bytes as returned by the query collaborator."""

    object_id: str
    object_type: str
    version: int
    bcs: bytes
    digest: Optional[str] = None


class QueryClient(Protocol):
    def get_object(self, object_id: str) -> RawObject:
        ...

    def get_dynamic_field_objects(self, parent_id: str) -> List[RawObject]:
        ...

    def get_owned_objects(self, owner: str) -> List[RawObject]:
        ...


# Snapshot records --------------------------------------------------------


@dataclass(frozen=True)
class Member:
    address: str
    weight: int
    roles: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class Role:
    name: str
    threshold: int


@dataclass(frozen=True)
class Vault:
    name: str
    object_id: str
    coins: Tuple[Tuple[str, int], ...] = ()

    def balance(self, coin_type: str) -> int:
        wanted = normalize_type_tag(coin_type)
        return sum(amount for tag, amount in self.coins if tag == wanted)


@dataclass(frozen=True)
class Currency:
    coin_type: str
    cap_id: Optional[str] = None
    total_supply: int = 0
    max_supply: Optional[int] = None
    total_minted: int = 0
    total_burned: int = 0
    permissions: int = 0

    def can(self, permission: str) -> bool:
        return bool(self.permissions & PERMISSION_BITS[permission])


@dataclass(frozen=True)
class Cap:
    cap_type: str
    object_id: str


@dataclass(frozen=True)
class Package:
    name: str
    package_id: str
    cap_id: str
    version: int
    policy: Policy
    delay_ms: int = 0


@dataclass(frozen=True)
class Kiosk:
    name: str
    kiosk_id: str
    cap_id: str


@dataclass(frozen=True)
class OwnedObject:
    object_id: str
    object_type: str
    version: int
    digest: Optional[str] = None
    balance: Optional[int] = None

    @property
    def coin_type(self) -> Optional[str]:
        if base_type(self.object_type) != COIN_TYPE_PREFIX:
            return None
        params = type_params(self.object_type)
        return params[0] if params else None


@dataclass(frozen=True)
class AccountView:
    """Immutable snapshot of a multisig account at ``version``."""

    account_id: str
    version: int
    global_threshold: int
    members: Tuple[Member, ...]
    roles: Tuple[Role, ...] = ()
    metadata: Tuple[Tuple[str, str], ...] = ()
    deps: Tuple[Dependency, ...] = ()
    unverified_allowed: bool = False
    intents_bag_id: Optional[str] = None
    intent_count: int = 0
    locked: Tuple[str, ...] = ()
    vaults: Tuple[Vault, ...] = ()
    currencies: Tuple[Currency, ...] = ()
    caps: Tuple[Cap, ...] = ()
    packages: Tuple[Package, ...] = ()
    kiosks: Tuple[Kiosk, ...] = ()
    owned: Tuple[OwnedObject, ...] = ()

    @property
    def name(self) -> str:
        return dict(self.metadata).get("name", "")

    @property
    def total_weight(self) -> int:
        return sum(member.weight for member in self.members)

    def role_threshold(self, name: str) -> Optional[int]:
        for role in self.roles:
            if role.name == name:
                return role.threshold
        return None

    def is_member(self, address: str) -> bool:
        try:
            find_member(self, address)
        except ResourceNotFound:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account_id,
            "version": self.version,
            "name": self.name,
            "global_threshold": self.global_threshold,
            "members": [
                {"address": m.address, "weight": m.weight, "roles": sorted(m.roles)}
                for m in self.members
            ],
            "roles": {role.name: role.threshold for role in self.roles},
            "deps": [
                {"name": dep.name, "address": dep.address, "version": dep.version}
                for dep in self.deps
            ],
            "unverified_allowed": self.unverified_allowed,
            "intents": self.intent_count,
            "vaults": {
                vault.name: {tag: amount for tag, amount in vault.coins} for vault in self.vaults
            },
            "currencies": [
                {
                    "coin_type": c.coin_type,
                    "total_supply": c.total_supply,
                    "max_supply": c.max_supply,
                    "permissions": [p for p in PERMISSION_BITS if c.can(p)],
                }
                for c in self.currencies
            ],
            "caps": [cap.cap_type for cap in self.caps],
            "packages": [
                {
                    "name": p.name,
                    "package": p.package_id,
                    "version": p.version,
                    "policy": p.policy.name.lower(),
                    "delay_ms": p.delay_ms,
                }
                for p in self.packages
            ],
            "kiosks": {kiosk.name: kiosk.kiosk_id for kiosk in self.kiosks},
            "owned": [obj.object_id for obj in self.owned],
        }


# Lookups -----------------------------------------------------------------


def find_member(view: AccountView, address: str) -> Member:
    wanted = normalize_address(address)
    for member in view.members:
        if member.address == wanted:
            return member
    raise ResourceNotFound("member", wanted)


def find_vault(view: AccountView, name: str) -> Vault:
    for vault in view.vaults:
        if vault.name == name:
            return vault
    raise ResourceNotFound("vault", name)


def find_currency(view: AccountView, coin_type: str) -> Currency:
    wanted = normalize_type_tag(coin_type)
    for currency in view.currencies:
        if currency.coin_type == wanted:
            return currency
    raise ResourceNotFound("currency", wanted)


def find_cap(view: AccountView, cap_type: str) -> Cap:
    wanted = normalize_type_tag(cap_type)
    for cap in view.caps:
        if cap.cap_type == wanted:
            return cap
    raise ResourceNotFound("cap", wanted)


def find_package(view: AccountView, name: str) -> Package:
    for package in view.packages:
        if package.name == name:
            return package
    raise ResourceNotFound("package", name)


def find_kiosk(view: AccountView, name: str) -> Kiosk:
    for kiosk in view.kiosks:
        if kiosk.name == name:
            return kiosk
    raise ResourceNotFound("kiosk", name)


def find_owned(view: AccountView, object_id: str) -> OwnedObject:
    wanted = normalize_address(object_id)
    for obj in view.owned:
        if obj.object_id == wanted:
            return obj
    raise ResourceNotFound("owned object", wanted)


def check_resource(view: AccountView, ref: ResourceRef) -> None:
    """Confirm ``ref`` against the snapshot.

    Raises :class:`ResourceNotFound` when the resource is absent and
    :class:`ValidationError` when it exists but cannot serve the action.
    """

    if ref.kind == "vault":
        vault = find_vault(view, ref.identifier)
        if ref.coin_type is not None:
            wanted = normalize_type_tag(ref.coin_type)
            if not any(tag == wanted for tag, _ in vault.coins):
                raise ResourceNotFound(f"coin type in vault '{vault.name}'", wanted)
            available = vault.balance(wanted)
            if available < ref.amount:
                raise ValidationError(
                    f"vault '{vault.name}' holds {available} of {ref.coin_type}, "
                    f"{ref.amount} requested"
                )
    elif ref.kind == "currency":
        currency = find_currency(view, ref.identifier)
        if ref.permission and not currency.can(ref.permission):
            raise ValidationError(
                f"{ref.permission} is disabled for {currency.coin_type}"
            )
        if ref.permission == "mint" and currency.max_supply is not None:
            if currency.total_supply + ref.amount > currency.max_supply:
                raise ValidationError(
                    f"minting {ref.amount} would exceed max supply {currency.max_supply} "
                    f"of {currency.coin_type}"
                )
    elif ref.kind == "cap":
        find_cap(view, ref.identifier)
    elif ref.kind == "package":
        package = find_package(view, ref.identifier)
        if package.policy == Policy.IMMUTABLE:
            raise ValidationError(f"package '{package.name}' is immutable")
        if ref.policy is not None and ref.policy <= package.policy:
            raise ValidationError(
                f"policy {Policy(ref.policy).name.lower()} is not more restrictive than "
                f"{package.policy.name.lower()}"
            )
    elif ref.kind == "kiosk":
        find_kiosk(view, ref.identifier)
    elif ref.kind == "owned":
        obj = find_owned(view, ref.identifier)
        if ref.coin_type is not None and obj.coin_type is not None:
            if normalize_type_tag(ref.coin_type) != obj.coin_type:
                raise ValidationError(
                    f"object {obj.object_id} is a {obj.coin_type} coin, not {ref.coin_type}"
                )
        if ref.amount and obj.balance is not None and obj.balance < ref.amount:
            raise ValidationError(
                f"coin {obj.object_id} holds {obj.balance}, {ref.amount} requested"
            )
    else:
        raise ValidationError(f"Unknown resource kind: {ref.kind}")


def object_handles(view: AccountView) -> Dict[str, ObjectRef]:
    """Return the handle map the assembler resolves object arguments from."""

    handles: Dict[str, ObjectRef] = {
        "account": ObjectRef(view.account_id, view.version, shared=True),
        "clock": ObjectRef(CLOCK_OBJECT_ID, 1, shared=True, mutable=False),
    }
    for kiosk in view.kiosks:
        handles[f"kiosk:{kiosk.name}"] = ObjectRef(kiosk.kiosk_id, shared=True)
    for obj in view.owned:
        handles[f"object:{obj.object_id}"] = ObjectRef(obj.object_id, obj.version, obj.digest)
    return handles


# Decoding ----------------------------------------------------------------


def decode_account(raw: RawObject) -> Dict[str, Any]:
    """Decode the account object's fixed layout into keyword arguments."""

    reader = BcsReader(raw.bcs)
    reader.address()  # UID
    metadata = tuple(reader.sequence(lambda r: (r.string(), r.string())))
    deps = tuple(
        reader.sequence(lambda r: Dependency(r.string(), r.address(), r.u64()))
    )
    unverified_allowed = reader.boolean()
    intents_bag_id = reader.address()
    intent_count = reader.u64()
    locked = tuple(reader.sequence(lambda r: r.address()))
    members = tuple(
        reader.sequence(
            lambda r: Member(r.address(), r.u64(), frozenset(r.sequence(lambda rr: rr.string())))
        )
    )
    global_threshold = reader.u64()
    roles = tuple(reader.sequence(lambda r: Role(r.string(), r.u64())))
    reader.finish()
    return {
        "account_id": normalize_address(raw.object_id),
        "version": raw.version,
        "metadata": metadata,
        "deps": deps,
        "unverified_allowed": unverified_allowed,
        "intents_bag_id": intents_bag_id,
        "intent_count": intent_count,
        "locked": locked,
        "members": members,
        "global_threshold": global_threshold,
        "roles": roles,
    }


def split_field_type(object_type: str) -> Tuple[str, str]:
    """Return the ``(key, value)`` type parameters of a dynamic field type."""

    params = type_params(object_type)
    if not base_type(object_type).endswith("::dynamic_field::Field") or len(params) != 2:
        raise MalformedPayload(f"not a dynamic field: {object_type}")
    return params[0], params[1]


@dataclass
class _Collected:
    vaults: List[Vault] = field(default_factory=list)
    caps: List[Cap] = field(default_factory=list)
    treasuries: Dict[str, Tuple[str, int]] = field(default_factory=dict)
    rules: Dict[str, Tuple[Optional[int], int, int, int]] = field(default_factory=dict)
    upgrade_caps: Dict[str, Tuple[str, str, int, int]] = field(default_factory=dict)
    upgrade_rules: Dict[str, int] = field(default_factory=dict)
    kiosks: List[Kiosk] = field(default_factory=list)


def _read_permissions(reader: BcsReader) -> int:
    mask = 0
    for bit in PERMISSION_BITS.values():
        if reader.boolean():
            mask |= bit
    return mask


def _collect_field(raw: RawObject, out: _Collected) -> None:
    key_type, _ = split_field_type(raw.object_type)
    key_name = base_type(key_type).rsplit("::", 1)[-1]
    key_params = type_params(key_type)
    reader = BcsReader(raw.bcs)
    reader.address()  # field UID

    if key_name == "CapKey":
        reader.boolean()
        out.caps.append(Cap(normalize_type_tag(key_params[0]), reader.address()))
    elif key_name == "TreasuryCapKey":
        reader.boolean()
        out.treasuries[normalize_type_tag(key_params[0])] = (reader.address(), reader.u64())
    elif key_name == "CurrencyRulesKey":
        reader.boolean()
        tag = reader.u8()
        if tag not in (0, 1):
            raise MalformedPayload(f"invalid option tag {tag}")
        max_supply = reader.u64() if tag else None
        minted = reader.u64()
        burned = reader.u64()
        out.rules[normalize_type_tag(key_params[0])] = (
            max_supply,
            minted,
            burned,
            _read_permissions(reader),
        )
    elif key_name == "VaultKey":
        name = reader.string()
        vault_id = reader.address()
        coins = tuple(
            reader.sequence(lambda r: (normalize_type_tag(r.string()), r.u64()))
        )
        out.vaults.append(Vault(name, vault_id, coins))
    elif key_name == "UpgradeCapKey":
        name = reader.string()
        out.upgrade_caps[name] = (reader.address(), reader.address(), reader.u64(), reader.u8())
    elif key_name == "UpgradeRulesKey":
        name = reader.string()
        out.upgrade_rules[name] = reader.u64()
    elif key_name == "KioskOwnerKey":
        name = reader.string()
        cap_id = reader.address()
        out.kiosks.append(Kiosk(name, reader.address(), cap_id))
    else:
        logger.debug("Skipping unrecognised dynamic field %s (%s)", raw.object_id, key_type)
        return
    reader.finish()


def decode_owned_object(raw: RawObject) -> OwnedObject:
    object_type = normalize_type_tag(raw.object_type)
    balance = None
    if base_type(object_type) == COIN_TYPE_PREFIX and len(raw.bcs) == 40:
        reader = BcsReader(raw.bcs)
        reader.address()
        balance = reader.u64()
    return OwnedObject(normalize_address(raw.object_id), object_type, raw.version, raw.digest, balance)


def build_view(
    account: RawObject,
    fields: Sequence[RawObject] = (),
    owned: Sequence[RawObject] = (),
) -> AccountView:
    """Assemble an :class:`AccountView` from already fetched objects."""

    base = decode_account(account)
    collected = _Collected()
    for raw in fields:
        _collect_field(raw, collected)

    currencies = []
    for coin_type in sorted(set(collected.treasuries) | set(collected.rules)):
        cap_id, supply = collected.treasuries.get(coin_type, (None, 0))
        max_supply, minted, burned, permissions = collected.rules.get(coin_type, (None, 0, 0, 0))
        currencies.append(
            Currency(coin_type, cap_id, supply, max_supply, minted, burned, permissions)
        )

    packages = []
    for name, (cap_id, package_id, version, policy) in sorted(collected.upgrade_caps.items()):
        try:
            parsed_policy = Policy(policy)
        except ValueError as exc:
            raise MalformedPayload(f"package '{name}' has unknown policy {policy}") from exc
        packages.append(
            Package(name, package_id, cap_id, version, parsed_policy, collected.upgrade_rules.get(name, 0))
        )

    return AccountView(
        vaults=tuple(sorted(collected.vaults, key=lambda v: v.name)),
        currencies=tuple(currencies),
        caps=tuple(sorted(collected.caps, key=lambda c: c.cap_type)),
        packages=tuple(packages),
        kiosks=tuple(sorted(collected.kiosks, key=lambda k: k.name)),
        owned=tuple(decode_owned_object(raw) for raw in owned),
        **base,
    )


class ObjectResolver:
    """Fetch and decode account snapshots through a query client."""

    def __init__(self, query: QueryClient) -> None:
        self.query = query

    def snapshot(self, account_id: str) -> AccountView:
        account_id = normalize_address(account_id)
        account = self.query.get_object(account_id)
        fields = self.query.get_dynamic_field_objects(account_id)
        owned = self.query.get_owned_objects(account_id)
        view = build_view(account, fields, owned)
        logger.debug(
            "Resolved account %s at version %d: %d members, %d vaults, %d currencies, "
            "%d caps, %d packages, %d kiosks, %d owned objects",
            account_id,
            view.version,
            len(view.members),
            len(view.vaults),
            len(view.currencies),
            len(view.caps),
            len(view.packages),
            len(view.kiosks),
            len(view.owned),
        )
        return view
