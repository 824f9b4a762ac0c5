"""Create new multisig accounts.

:class:`MultisigBuilder` collects the name, members, roles and thresholds of
a new account and lowers them into a single creation transaction. Creating
an account costs the fee recorded in the protocol's fee object, which
:func:`fetch_fees` reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from . import actions as act
from .assembler import CallGraph, ObjectRef, assemble_calls
from .bcs import BcsReader, base_type, normalize_address
from .catalog import ACCOUNT_PROTOCOL, CLOCK_OBJECT_ID, USER_REGISTRY_ID, creation_templates
from .errors import ValidationError
from .resolver import OwnedObject, QueryClient, RawObject

logger = logging.getLogger(__name__)

USER_TYPE = f"{ACCOUNT_PROTOCOL}::user::User"


@dataclass(frozen=True)
class Fees:
    amount: int
    recipient: str


def decode_fees(raw: RawObject) -> Fees:
    reader = BcsReader(raw.bcs)
    reader.address()  # UID
    amount = reader.u64()
    recipient = reader.address()
    reader.finish()
    return Fees(amount, recipient)


def fetch_fees(query: QueryClient, fee_id: str) -> Fees:
    fees = decode_fees(query.get_object(normalize_address(fee_id)))
    logger.debug("Account creation fee is %d MIST, paid to %s", fees.amount, fees.recipient)
    return fees


def find_user(objects: Iterable[OwnedObject]) -> Optional[OwnedObject]:
    """Return the user profile among a wallet's objects, if it holds one."""

    for obj in objects:
        if base_type(obj.object_type) == USER_TYPE:
            return obj
    return None


@dataclass(frozen=True)
class ProtocolObjects:
    """Shared protocol objects a creation transaction reads."""

    extensions_id: str
    fee_id: str
    registry_id: str = USER_REGISTRY_ID

    def handles(self, user: Optional[OwnedObject] = None) -> Dict[str, ObjectRef]:
        handles = {
            "extensions": ObjectRef(normalize_address(self.extensions_id), shared=True, mutable=False),
            "fee": ObjectRef(normalize_address(self.fee_id), shared=True, mutable=False),
            "registry": ObjectRef(normalize_address(self.registry_id), shared=True),
            "clock": ObjectRef(CLOCK_OBJECT_ID, 1, shared=True, mutable=False),
        }
        if user is not None:
            handles[f"object:{user.object_id}"] = ObjectRef(user.object_id, user.version, user.digest)
        return handles


class MultisigBuilder:
    """Accumulate the configuration of a new account.

    Without members the creator becomes the only member with weight 1 and a
    global threshold of 1. Adding members, roles or a threshold replaces
    that default, so the resulting configuration must then be complete.
    """

    def __init__(self, creator: str) -> None:
        self.creator = normalize_address(creator)
        self.name = ""
        self.global_threshold: Optional[int] = None
        self.members: List[act.MemberSpec] = []
        self.roles: List[act.RoleSpec] = []

    def set_name(self, name: str) -> "MultisigBuilder":
        self.name = name
        return self

    def set_global_threshold(self, threshold: int) -> "MultisigBuilder":
        self.global_threshold = threshold
        return self

    def add_member(self, address: str, weight: int, roles: Sequence[str] = ()) -> "MultisigBuilder":
        self.members.append(act.MemberSpec(address, weight, tuple(roles)))
        return self

    def add_role(self, name: str, threshold: int) -> "MultisigBuilder":
        self.roles.append(act.RoleSpec(name, threshold))
        return self

    def config(self) -> Optional[act.ConfigMultisig]:
        if self.global_threshold is None and not self.members and not self.roles:
            return None
        if self.global_threshold is None:
            raise ValidationError("set a global threshold when configuring members or roles")
        config = act.ConfigMultisig(self.global_threshold, self.members, self.roles)
        config.validate()
        if not any(member.address == self.creator for member in config.members):
            logger.warning("Creator %s is not among the configured members", self.creator)
        return config

    def build(
        self,
        fees: Fees,
        objects: ProtocolObjects,
        user: Optional[OwnedObject] = None,
    ) -> CallGraph:
        """Return the creation transaction.

        ``user`` is the creator's existing profile; without one, a new
        profile is created and transferred to the creator.
        """

        config = self.config()
        templates = creation_templates(
            self.creator,
            fees.amount,
            name=self.name,
            config=config,
            user_id=user.object_id if user is not None else None,
        )
        graph = assemble_calls(templates, objects.handles(user))
        logger.info(
            "Built creation of '%s' for %s: %d members, %d calls",
            self.name,
            self.creator,
            len(config.members) if config else 1,
            len(graph.calls),
        )
        return graph
