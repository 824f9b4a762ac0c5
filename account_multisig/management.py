"""Managed resources: vaults and the capabilities an account stores.

These operations act on the account directly rather than through an
intent. Any member may open, fund or close a vault, or hand the account a
capability from their own wallet. Each method checks the request against
the account snapshot and the signer's wallet, then returns the call graph
for the external signer.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .assembler import CallGraph, ObjectRef, assemble_calls
from .bcs import base_type, normalize_address, normalize_type_tag, type_params
from .catalog import (
    Template,
    close_vault_templates,
    deposit_cap_templates,
    deposit_templates,
    deposit_treasury_cap_templates,
    deposit_upgrade_cap_templates,
    open_vault_templates,
)
from .errors import NotAMember, ResourceNotFound, ValidationError
from .resolver import (
    AccountView,
    OwnedObject,
    QueryClient,
    decode_owned_object,
    find_vault,
    object_handles,
)

logger = logging.getLogger(__name__)

SUI_FRAMEWORK = normalize_address("0x2")
TREASURY_CAP_TYPE = f"{SUI_FRAMEWORK}::coin::TreasuryCap"
UPGRADE_CAP_TYPE = f"{SUI_FRAMEWORK}::package::UpgradeCap"


def select_coins(coins: Iterable[OwnedObject], coin_type: str, amount: int) -> List[OwnedObject]:
    """Pick wallet coins of ``coin_type`` covering ``amount``, smallest first."""

    wanted = normalize_type_tag(coin_type)
    candidates = [coin for coin in coins if coin.coin_type == wanted and coin.balance]
    if not candidates:
        logger.warning("Wallet holds no %s coins", wanted)
        raise ResourceNotFound("wallet coin", wanted)

    selected: List[OwnedObject] = []
    total = 0
    for coin in sorted(candidates, key=lambda c: c.balance or 0):
        selected.append(coin)
        total += coin.balance or 0
        if total >= amount:
            break

    if total < amount:
        logger.warning("Insufficient %s in wallet: needed=%d, available=%d", wanted, amount, total)
        raise ValidationError(f"wallet holds {total} of {wanted}, {amount} requested")
    return selected


class AccountManager:
    """Open, fund and close the managed resources of one account snapshot."""

    def __init__(self, view: AccountView, query: QueryClient) -> None:
        self.view = view
        self.query = query

    def wallet(self, owner: str) -> List[OwnedObject]:
        owned = self.query.get_owned_objects(normalize_address(owner))
        return [decode_owned_object(raw) for raw in owned]

    def _require_member(self, signer: str) -> str:
        address = normalize_address(signer)
        if not self.view.is_member(address):
            raise NotAMember(address)
        return address

    def _wallet_object(self, owner: str, object_id: str) -> OwnedObject:
        wanted = normalize_address(object_id)
        for obj in self.wallet(owner):
            if obj.object_id == wanted:
                return obj
        raise ResourceNotFound(f"object in wallet of {owner}", wanted)

    def _graph(
        self, templates: Sequence[Template], wallet_objects: Sequence[OwnedObject] = ()
    ) -> CallGraph:
        handles: Dict[str, ObjectRef] = object_handles(self.view)
        for obj in wallet_objects:
            handles[f"object:{obj.object_id}"] = ObjectRef(obj.object_id, obj.version, obj.digest)
        return assemble_calls(templates, handles)

    # Vaults -------------------------------------------------------------

    def open_vault(self, name: str, signer: str) -> CallGraph:
        self._require_member(signer)
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("vault name must be a non-empty string")
        if any(vault.name == name for vault in self.view.vaults):
            raise ValidationError(f"vault '{name}' already exists")
        logger.info("Opening vault '%s' on %s", name, self.view.account_id)
        return self._graph(open_vault_templates(name))

    def deposit(self, name: str, coin_type: str, amount: int, signer: str) -> CallGraph:
        """Deposit ``amount`` of the signer's ``coin_type`` coins into vault ``name``."""

        owner = self._require_member(signer)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(f"deposit amount must be a positive integer, got {amount!r}")
        find_vault(self.view, name)
        coin_type = normalize_type_tag(coin_type)
        coins = select_coins(self.wallet(owner), coin_type, amount)
        logger.info(
            "Depositing %d of %s into vault '%s' from %d coins", amount, coin_type, name, len(coins)
        )
        return self._graph(
            deposit_templates(name, coin_type, [coin.object_id for coin in coins], amount),
            coins,
        )

    def close_vault(self, name: str, signer: str) -> CallGraph:
        self._require_member(signer)
        vault = find_vault(self.view, name)
        if any(amount for _, amount in vault.coins):
            raise ValidationError(f"vault '{name}' still holds coins; spend them before closing")
        logger.info("Closing vault '%s' on %s", name, self.view.account_id)
        return self._graph(close_vault_templates(name))

    # Capabilities --------------------------------------------------------

    def deposit_cap(self, cap_id: str, signer: str) -> CallGraph:
        owner = self._require_member(signer)
        cap = self._wallet_object(owner, cap_id)
        if any(stored.cap_type == cap.object_type for stored in self.view.caps):
            raise ValidationError(f"account already stores a {cap.object_type}")
        logger.info("Locking %s (%s) into %s", cap.object_id, cap.object_type, self.view.account_id)
        return self._graph(deposit_cap_templates(cap.object_id, cap.object_type), [cap])

    def deposit_treasury_cap(
        self, cap_id: str, signer: str, max_supply: Optional[int] = None
    ) -> CallGraph:
        owner = self._require_member(signer)
        cap = self._wallet_object(owner, cap_id)
        if base_type(cap.object_type) != TREASURY_CAP_TYPE:
            raise ValidationError(f"object {cap.object_id} is a {cap.object_type}, not a treasury cap")
        if max_supply is not None and (
            isinstance(max_supply, bool) or not isinstance(max_supply, int) or max_supply <= 0
        ):
            raise ValidationError(f"max supply must be a positive integer, got {max_supply!r}")
        coin_type = type_params(cap.object_type)[0]
        if any(currency.coin_type == coin_type and currency.cap_id for currency in self.view.currencies):
            raise ValidationError(f"account already manages {coin_type}")
        logger.info("Locking treasury cap of %s into %s", coin_type, self.view.account_id)
        return self._graph(deposit_treasury_cap_templates(cap.object_id, coin_type, max_supply), [cap])

    def deposit_upgrade_cap(
        self, cap_id: str, package_name: str, delay_ms: int, signer: str
    ) -> CallGraph:
        owner = self._require_member(signer)
        if not isinstance(package_name, str) or not package_name.strip():
            raise ValidationError("package name must be a non-empty string")
        if isinstance(delay_ms, bool) or not isinstance(delay_ms, int) or delay_ms < 0:
            raise ValidationError(f"upgrade delay must be a non-negative integer, got {delay_ms!r}")
        if any(package.name == package_name for package in self.view.packages):
            raise ValidationError(f"package '{package_name}' is already managed")
        cap = self._wallet_object(owner, cap_id)
        if base_type(cap.object_type) != UPGRADE_CAP_TYPE:
            raise ValidationError(f"object {cap.object_id} is a {cap.object_type}, not an upgrade cap")
        logger.info("Locking upgrade cap of '%s' into %s", package_name, self.view.account_id)
        return self._graph(deposit_upgrade_cap_templates(cap.object_id, package_name, delay_ms), [cap])
