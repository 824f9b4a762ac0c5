"""Proposal lifecycle: submit, approve, disapprove, execute and delete.

The engine tracks proposals for one account snapshot and produces the call
graph for each transition. The ledger remains the source of truth; callers
hand every graph to the external signer and rebuild the engine from chain
state (:meth:`ProposalEngine.from_chain`) whenever they need to resync.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from .assembler import CallGraph, ObjectRef, assemble, assemble_calls
from .bcs import BcsReader, normalize_address
from .catalog import (
    ActionCatalog,
    approval_templates,
    default_catalog,
    delete_templates,
    request_templates,
)
from .codec import decode_any
from .errors import (
    AlreadyApproved,
    DuplicateKey,
    ExecutionTimeNotReached,
    MalformedPayload,
    NotAMember,
    NotApproved,
    ProposalExpired,
    ProposalNotFound,
    ProposalNotPending,
    ThresholdNotMet,
    ValidationError,
)
from .intents import ExecutionWindow, Intent
from .resolver import AccountView, QueryClient, RawObject, object_handles

logger = logging.getLogger(__name__)


class ProposalState(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    EXECUTABLE = "executable"
    EXPIRED = "expired"
    EXECUTED = "executed"
    DELETED = "deleted"


OPEN_STATES = frozenset({ProposalState.PENDING, ProposalState.EXECUTABLE})
CLOSED_STATES = frozenset({ProposalState.EXECUTED, ProposalState.DELETED})


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Outcome:
    """Approval weights of a proposal against the account thresholds."""

    approved: Tuple[str, ...]
    total_weight: int
    global_threshold: int
    role_weights: Tuple[Tuple[str, int, int], ...] = ()

    @property
    def unmet_roles(self) -> List[str]:
        return [name for name, weight, threshold in self.role_weights if weight < threshold]

    @property
    def executable(self) -> bool:
        return self.total_weight >= self.global_threshold and not self.unmet_roles

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approved": list(self.approved),
            "total_weight": self.total_weight,
            "global_threshold": self.global_threshold,
            "roles": {
                name: {"weight": weight, "threshold": threshold}
                for name, weight, threshold in self.role_weights
            },
            "executable": self.executable,
        }


def compute_outcome(view: AccountView, approved: Sequence[str], required_roles: Sequence[str]) -> Outcome:
    """Weigh ``approved`` against the global threshold and each required role.

    Both the global threshold and every required role threshold must hold.
    A required role the account does not configure imposes no threshold.
    """

    weights = {member.address: member for member in view.members}
    approving = [weights[address] for address in approved if address in weights]
    role_weights = []
    for role in sorted(required_roles):
        threshold = view.role_threshold(role)
        if threshold is None:
            continue
        weight = sum(member.weight for member in approving if role in member.roles)
        role_weights.append((role, weight, threshold))
    return Outcome(
        approved=tuple(member.address for member in approving),
        total_weight=sum(member.weight for member in approving),
        global_threshold=view.global_threshold,
        role_weights=tuple(role_weights),
    )


@dataclass(frozen=True)
class Proposal:
    intent: Intent
    approved: Tuple[str, ...] = ()
    executions_done: int = 0
    closed: Optional[ProposalState] = None

    @property
    def key(self) -> str:
        return self.intent.key

    @property
    def next_execution_time(self) -> Optional[int]:
        times = self.intent.execution_times
        if self.executions_done >= len(times):
            return None
        return times[self.executions_done]


class ProposalRef(NamedTuple):
    account_id: str
    key: str


@dataclass(frozen=True)
class Submission:
    ref: ProposalRef
    intent: Intent
    graph: CallGraph


@dataclass(frozen=True)
class ApprovalResult:
    key: str
    state: ProposalState
    outcome: Outcome
    graph: CallGraph

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "state": self.state.value,
            "outcome": self.outcome.to_dict(),
            "transaction": self.graph.to_jsonable(),
        }


class ProposalEngine:
    """Drive proposals of one account through their lifecycle.

    ``clock`` returns the current time in milliseconds; expiration is only
    evaluated when a proposal is queried or acted upon.
    """

    def __init__(
        self,
        view: AccountView,
        catalog: ActionCatalog | None = None,
        clock: Callable[[], int] | None = None,
        proposals: Sequence[Proposal] = (),
    ) -> None:
        self.view = view
        self.catalog = catalog or default_catalog()
        self.clock = clock or now_ms
        self._proposals: Dict[str, Proposal] = {p.key: p for p in proposals}

    @classmethod
    def from_chain(
        cls,
        query: QueryClient,
        view: AccountView,
        catalog: ActionCatalog | None = None,
        clock: Callable[[], int] | None = None,
    ) -> "ProposalEngine":
        catalog = catalog or default_catalog()
        return cls(view, catalog, clock, load_proposals(query, view, catalog))

    # Queries ------------------------------------------------------------

    def get(self, key: str) -> Proposal:
        try:
            return self._proposals[key]
        except KeyError:
            raise ProposalNotFound(key) from None

    def proposals(self) -> List[Proposal]:
        return list(self._proposals.values())

    def outcome(self, key: str) -> Outcome:
        proposal = self.get(key)
        return compute_outcome(self.view, proposal.approved, sorted(proposal.intent.required_roles))

    def state(self, key: str, now: int | None = None) -> ProposalState:
        proposal = self.get(key)
        if proposal.closed is not None:
            return proposal.closed
        current = self.clock() if now is None else now
        if current >= proposal.intent.expiration_time:
            return ProposalState.EXPIRED
        if self.outcome(key).executable:
            return ProposalState.EXECUTABLE
        return ProposalState.PENDING

    def rebind(self, view: AccountView) -> None:
        """Swap in a refreshed snapshot, dropping approvals of removed members."""

        members = {member.address for member in view.members}
        for key, proposal in list(self._proposals.items()):
            kept = tuple(address for address in proposal.approved if address in members)
            if kept != proposal.approved:
                logger.warning(
                    "Dropping %d approvals on '%s' from former members",
                    len(proposal.approved) - len(kept),
                    key,
                )
                self._proposals[key] = replace(proposal, approved=kept)
        self.view = view

    # Transitions --------------------------------------------------------

    def _handles(self) -> Dict[str, ObjectRef]:
        return object_handles(self.view)

    def _require_member(self, signer: str) -> str:
        address = normalize_address(signer)
        if not self.view.is_member(address):
            raise NotAMember(address)
        return address

    def _require_open(self, key: str) -> ProposalState:
        state = self.state(key)
        if state not in OPEN_STATES:
            raise ProposalNotPending(key, state.value)
        return state

    def submit(self, intent: Intent, signer: str) -> Submission:
        creator = self._require_member(signer)
        existing = self._proposals.get(intent.key)
        if existing is not None and existing.closed is None:
            raise DuplicateKey(intent.key)
        intent = replace(intent, creator=creator, creation_time=self.clock())
        graph = assemble_calls(
            request_templates(
                intent.intent_type,
                intent.key,
                intent.description,
                intent.execution_times,
                intent.expiration_time,
                intent.payloads,
            ),
            self._handles(),
        )
        self._proposals[intent.key] = Proposal(intent)
        logger.info(
            "Submitted '%s' (%s, %d actions) by %s",
            intent.key,
            intent.intent_type.name,
            len(intent.actions),
            creator,
        )
        return Submission(ProposalRef(self.view.account_id, intent.key), intent, graph)

    def approve(self, key: str, signer: str) -> ApprovalResult:
        self._require_open(key)
        address = self._require_member(signer)
        proposal = self.get(key)
        if address in proposal.approved:
            raise AlreadyApproved(key, address)
        graph = assemble_calls(approval_templates(key, approve=True), self._handles())
        self._proposals[key] = replace(proposal, approved=proposal.approved + (address,))
        return self._approval_result(key, graph, "approved", address)

    def disapprove(self, key: str, signer: str) -> ApprovalResult:
        self._require_open(key)
        address = self._require_member(signer)
        proposal = self.get(key)
        if address not in proposal.approved:
            raise NotApproved(key, address)
        graph = assemble_calls(approval_templates(key, approve=False), self._handles())
        remaining = tuple(a for a in proposal.approved if a != address)
        self._proposals[key] = replace(proposal, approved=remaining)
        return self._approval_result(key, graph, "disapproved", address)

    def _approval_result(self, key: str, graph: CallGraph, verb: str, address: str) -> ApprovalResult:
        outcome = self.outcome(key)
        state = self.state(key)
        logger.info(
            "%s %s '%s': weight %d/%d, state %s",
            address,
            verb,
            key,
            outcome.total_weight,
            outcome.global_threshold,
            state.value,
        )
        return ApprovalResult(key, state, outcome, graph)

    def execute(
        self,
        key: str,
        signer: str,
        resolved: Mapping[str, ObjectRef] | None = None,
    ) -> CallGraph:
        self._require_member(signer)
        proposal = self.get(key)
        if proposal.closed is not None:
            raise ProposalNotPending(key, proposal.closed.value)
        now = self.clock()
        if now >= proposal.intent.expiration_time:
            logger.warning("Refusing to execute expired proposal '%s'", key)
            raise ProposalExpired(key, proposal.intent.expiration_time)
        outcome = self.outcome(key)
        if not outcome.executable:
            detail = f"weight {outcome.total_weight}/{outcome.global_threshold}"
            if outcome.unmet_roles:
                detail += f", roles below threshold: {', '.join(outcome.unmet_roles)}"
            raise ThresholdNotMet(f"Proposal '{key}' is not approved yet ({detail})")
        execution_time = proposal.next_execution_time
        if execution_time is None:
            raise ProposalNotPending(key, ProposalState.EXECUTED.value)
        if now < execution_time:
            raise ExecutionTimeNotReached(key, execution_time)

        graph = assemble(proposal.intent, resolved if resolved is not None else self._handles(), self.catalog)

        done = proposal.executions_done + 1
        closed = ProposalState.EXECUTED if done >= len(proposal.intent.execution_times) else None
        self._proposals[key] = replace(proposal, executions_done=done, closed=closed)
        logger.info(
            "Executing '%s' (%d/%d)", key, done, len(proposal.intent.execution_times)
        )
        return graph

    def delete(self, key: str, signer: str) -> CallGraph:
        proposal = self.get(key)
        state = self.state(key)
        if state in CLOSED_STATES:
            raise ProposalNotPending(key, state.value)
        expired = state == ProposalState.EXPIRED
        if not expired:
            self._require_member(signer)
        graph = assemble_calls(
            delete_templates(key, len(proposal.intent.actions), expired),
            self._handles(),
        )
        self._proposals[key] = replace(proposal, closed=ProposalState.DELETED)
        logger.info("Deleted '%s' (was %s)", key, state.value)
        return graph


# Chain decoding -----------------------------------------------------------


@dataclass(frozen=True)
class IntentRecord:
    """An intent as stored in the account's intents bag."""

    key: str
    move_type: str
    description: str
    account: str
    creator: str
    creation_time: int
    execution_times: Tuple[int, ...]
    expiration_time: int
    role: str
    actions_bag_id: str
    action_count: int
    approved: Tuple[str, ...]


def decode_intent_record(raw: RawObject) -> IntentRecord:
    """Decode a ``Field<String, Intent>`` entry of the intents bag."""

    reader = BcsReader(raw.bcs)
    reader.address()  # field UID
    reader.string()  # bag key, repeated inside the intent
    move_type = reader.string()
    key = reader.string()
    description = reader.string()
    account = reader.address()
    creator = reader.address()
    creation_time = reader.u64()
    execution_times = tuple(reader.sequence(lambda r: r.u64()))
    expiration_time = reader.u64()
    role = reader.string()
    actions_bag_id = reader.address()
    action_count = reader.u64()
    reader.u64()  # total weight, recomputed locally
    reader.u64()  # role weight, recomputed locally
    approved = tuple(reader.sequence(lambda r: r.address()))
    reader.finish()
    return IntentRecord(
        key=key,
        move_type=move_type,
        description=description,
        account=account,
        creator=creator,
        creation_time=creation_time,
        execution_times=execution_times,
        expiration_time=expiration_time,
        role=role,
        actions_bag_id=actions_bag_id,
        action_count=action_count,
        approved=approved,
    )


def decode_action_entry(raw: RawObject) -> Tuple[int, bytes]:
    """Decode a ``Field<u64, vector<u8>>`` entry of an actions bag."""

    reader = BcsReader(raw.bcs)
    reader.address()
    index = reader.u64()
    payload = reader.bytes_()
    reader.finish()
    return index, payload


def load_proposals(
    query: QueryClient,
    view: AccountView,
    catalog: ActionCatalog | None = None,
) -> List[Proposal]:
    """Read every intent of the account back into :class:`Proposal` objects."""

    catalog = catalog or default_catalog()
    if view.intents_bag_id is None:
        return []
    members = {member.address for member in view.members}
    proposals = []
    for raw in query.get_dynamic_field_objects(view.intents_bag_id):
        record = decode_intent_record(raw)
        entries = sorted(
            decode_action_entry(entry)
            for entry in query.get_dynamic_field_objects(record.actions_bag_id)
        )
        if len(entries) != record.action_count:
            raise MalformedPayload(
                f"intent '{record.key}' lists {record.action_count} actions, "
                f"found {len(entries)}"
            )
        payloads = tuple(payload for _, payload in entries)
        actions = tuple(decode_any(payload, catalog) for payload in payloads)
        intent_type = catalog.intent_type_for_move_type(record.move_type)
        try:
            window = ExecutionWindow(record.execution_times, record.expiration_time)
        except ValidationError as exc:
            raise MalformedPayload(f"intent '{record.key}' has an invalid window: {exc}") from exc
        intent = Intent(
            key=record.key,
            window=window,
            intent_type=intent_type,
            actions=actions,
            payloads=payloads,
            # The ledger enforces the role it recorded, not the catalog's view.
            required_roles=frozenset({record.role}) if record.role else frozenset(),
            description=record.description,
            creator=record.creator,
            creation_time=record.creation_time,
        )
        approved = tuple(address for address in record.approved if address in members)
        proposals.append(Proposal(intent, approved))
        logger.debug(
            "Loaded intent '%s' (%s) with %d actions and %d approvals",
            record.key,
            intent_type.name,
            len(actions),
            len(approved),
        )
    return proposals
