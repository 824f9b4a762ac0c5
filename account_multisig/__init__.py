"""Client-side intents for multisig smart accounts."""

from .actions import (
    Action,
    BorrowCap,
    ConfigDeps,
    ConfigMultisig,
    Dependency,
    DisableRules,
    ListNfts,
    MemberSpec,
    MintAndTransfer,
    MintAndVest,
    Policy,
    RestrictPolicy,
    RoleSpec,
    SpendAndTransfer,
    SpendAndVest,
    TakeNfts,
    UpdateMetadata,
    UpgradePackage,
    WithdrawAndBurn,
    WithdrawAndTransfer,
    WithdrawAndTransferToVault,
    WithdrawAndVest,
)
from .assembler import CallGraph, ObjectRef, assemble
from .catalog import ActionCatalog, ActionSpec, CallTemplate, IntentType, default_catalog, role_for
from .codec import decode_action, encode_action, peek_kind
from .creation import Fees, MultisigBuilder, fetch_fees
from .errors import (
    ArityMismatch,
    CodecError,
    LifecycleViolation,
    MalformedPayload,
    MultisigError,
    ResourceNotFound,
    UnknownActionKind,
    UnresolvedReference,
    ValidationError,
)
from .intents import Draft, ExecutionWindow, Intent, IntentBuilder
from .lifecycle import ProposalEngine, ProposalState, load_proposals
from .management import AccountManager
from .resolver import AccountView, ObjectResolver

__all__ = [
    "Action",
    "BorrowCap",
    "ConfigDeps",
    "ConfigMultisig",
    "Dependency",
    "DisableRules",
    "ListNfts",
    "MemberSpec",
    "MintAndTransfer",
    "MintAndVest",
    "Policy",
    "RestrictPolicy",
    "RoleSpec",
    "SpendAndTransfer",
    "SpendAndVest",
    "TakeNfts",
    "UpdateMetadata",
    "UpgradePackage",
    "WithdrawAndBurn",
    "WithdrawAndTransfer",
    "WithdrawAndTransferToVault",
    "WithdrawAndVest",
    "CallGraph",
    "ObjectRef",
    "assemble",
    "ActionCatalog",
    "ActionSpec",
    "CallTemplate",
    "IntentType",
    "default_catalog",
    "role_for",
    "decode_action",
    "encode_action",
    "peek_kind",
    "Fees",
    "MultisigBuilder",
    "fetch_fees",
    "ArityMismatch",
    "CodecError",
    "LifecycleViolation",
    "MalformedPayload",
    "MultisigError",
    "ResourceNotFound",
    "UnknownActionKind",
    "UnresolvedReference",
    "ValidationError",
    "Draft",
    "ExecutionWindow",
    "Intent",
    "IntentBuilder",
    "ProposalEngine",
    "ProposalState",
    "load_proposals",
    "AccountManager",
    "AccountView",
    "ObjectResolver",
]
