"""Error taxonomy shared by the builder, codec, resolver and lifecycle engine.

Every error is a :class:`MultisigError` so CLI callers can render a single
``error: ...`` line. None of these are retried internally; the only expected
caller-side recovery is refreshing the account snapshot after a
:class:`ResourceNotFound`.
"""

from __future__ import annotations


class MultisigError(RuntimeError):
    """Base class for all account-multisig failures."""


# Local validation --------------------------------------------------------


class ValidationError(MultisigError, ValueError):
    """Raised when an action or intent is malformed or out of range."""


class ArityMismatch(ValidationError):
    """Raised when paired lists (amounts vs recipients, ids vs prices) differ in length."""

    def __init__(self, left_name: str, left_len: int, right_name: str, right_len: int) -> None:
        super().__init__(
            f"{left_name} has {left_len} entries but {right_name} has {right_len}"
        )
        self.left_len = left_len
        self.right_len = right_len


# Snapshot lookups --------------------------------------------------------


class ResourceNotFound(MultisigError, LookupError):
    """Raised when a managed resource is absent from the current snapshot."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            f"{resource} '{identifier}' not found in account snapshot; refresh and retry"
        )
        self.resource = resource
        self.identifier = identifier


# Codec -------------------------------------------------------------------


class CodecError(MultisigError):
    """Raised when action bytes cannot be produced or read back."""


class MalformedPayload(CodecError):
    """Raised when bytes do not match the schema of the requested kind."""


class UnknownActionKind(CodecError, LookupError):
    """Raised when an action kind is not registered in the catalog."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown action kind: {kind}")
        self.kind = kind


UnknownKind = UnknownActionKind


class UnknownIntentType(CodecError, LookupError):
    """Raised when an intent type name or on-chain type is not registered."""

    def __init__(self, intent_type: str) -> None:
        super().__init__(f"Unknown intent type: {intent_type}")
        self.intent_type = intent_type


# Lifecycle ---------------------------------------------------------------


class LifecycleViolation(MultisigError):
    """Raised when an operation is invalid for the proposal's current state."""


class ProposalNotFound(LifecycleViolation, LookupError):
    def __init__(self, key: str) -> None:
        super().__init__(f"No proposal with key '{key}'")
        self.key = key


class DuplicateKey(LifecycleViolation):
    def __init__(self, key: str) -> None:
        super().__init__(f"A proposal with key '{key}' already exists")
        self.key = key


class NotAMember(LifecycleViolation):
    def __init__(self, address: str) -> None:
        super().__init__(f"{address} is not a member of this account")
        self.address = address


class AlreadyApproved(LifecycleViolation):
    def __init__(self, key: str, address: str) -> None:
        super().__init__(f"{address} already approved '{key}'")


class NotApproved(LifecycleViolation):
    def __init__(self, key: str, address: str) -> None:
        super().__init__(f"{address} has not approved '{key}'")


class ProposalNotPending(LifecycleViolation):
    def __init__(self, key: str, state: str) -> None:
        super().__init__(f"Proposal '{key}' is {state}, not pending")
        self.state = state


class ThresholdNotMet(LifecycleViolation):
    """Raised when execution is attempted before the approval thresholds hold."""


class ProposalExpired(LifecycleViolation):
    def __init__(self, key: str, expiration_time: int) -> None:
        super().__init__(f"Proposal '{key}' expired at {expiration_time}")
        self.expiration_time = expiration_time


Expired = ProposalExpired


class ExecutionTimeNotReached(LifecycleViolation):
    def __init__(self, key: str, execution_time: int) -> None:
        super().__init__(f"Proposal '{key}' cannot execute before {execution_time}")
        self.execution_time = execution_time


# Assembly ----------------------------------------------------------------


class UnresolvedReference(MultisigError, LookupError):
    """Raised when the assembler cannot find an object handle or call result."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"Unresolved reference: {reference}")
        self.reference = reference
