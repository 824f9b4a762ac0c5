"""Compose validated intents from catalog actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, FrozenSet, Optional, Sequence, Tuple

from .actions import Action
from .catalog import GENERIC_INTENT, ActionCatalog, IntentType, default_catalog
from .errors import ValidationError
from .resolver import AccountView, check_resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionWindow:
    """When an intent may run.

    ``execution_times`` are millisecond timestamps; a recurring intent lists
    several and is executed once per entry. Every execution time must fall
    strictly before ``expiration_time``.
    """

    execution_times: Tuple[int, ...]
    expiration_time: int

    def __post_init__(self) -> None:
        times = tuple(self.execution_times)
        object.__setattr__(self, "execution_times", times)
        if not times:
            raise ValidationError("at least one execution time is required")
        if any(isinstance(t, bool) or not isinstance(t, int) or t < 0 for t in times):
            raise ValidationError("execution times must be non-negative integers")
        if any(later <= earlier for earlier, later in zip(times, times[1:])):
            raise ValidationError("execution times must be strictly increasing")
        if times[-1] >= self.expiration_time:
            raise ValidationError(
                f"execution time {times[-1]} must be before expiration {self.expiration_time}"
            )

    @classmethod
    def between(cls, start: int, end: int) -> "ExecutionWindow":
        return cls((start,), end)

    @property
    def not_before(self) -> int:
        return self.execution_times[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_times": list(self.execution_times),
            "expiration_time": self.expiration_time,
        }


@dataclass(frozen=True)
class Draft:
    """An intent under construction. Each builder step returns a new draft."""

    name: str
    window: ExecutionWindow
    intent_type: IntentType
    description: str = ""
    actions: Tuple[Action, ...] = ()


@dataclass(frozen=True)
class Intent:
    key: str
    window: ExecutionWindow
    intent_type: IntentType
    actions: Tuple[Action, ...]
    payloads: Tuple[bytes, ...]
    required_roles: FrozenSet[str] = frozenset()
    description: str = ""
    creator: Optional[str] = None
    creation_time: Optional[int] = None

    @property
    def execution_times(self) -> Tuple[int, ...]:
        return self.window.execution_times

    @property
    def expiration_time(self) -> int:
        return self.window.expiration_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "type": self.intent_type.name,
            "description": self.description,
            "creator": self.creator,
            "creation_time": self.creation_time,
            "required_roles": sorted(self.required_roles),
            "actions": [action.to_dict() for action in self.actions],
            **self.window.to_dict(),
        }


class IntentBuilder:
    """Validate actions against a catalog and an account snapshot.

    Every check runs when an action is added so a failing draft never
    reaches the ledger; the snapshot is the caller's to refresh.
    """

    def __init__(self, catalog: ActionCatalog | None, view: AccountView) -> None:
        self.catalog = catalog or default_catalog()
        self.view = view

    def begin(
        self,
        name: str,
        window: ExecutionWindow,
        *,
        description: str = "",
        intent_type: str = GENERIC_INTENT,
    ) -> Draft:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("intent key must be a non-empty string")
        if not isinstance(window, ExecutionWindow):
            raise ValidationError("window must be an ExecutionWindow")
        return Draft(
            name=name,
            window=window,
            intent_type=self.catalog.intent_type(intent_type),
            description=description,
        )

    def add_action(self, draft: Draft, action: Action) -> Draft:
        spec = self.catalog.lookup(action.kind)
        if not isinstance(action, spec.action_cls):
            raise ValidationError(
                f"{type(action).__name__} is not a {spec.kind} action"
            )
        if not draft.intent_type.accepts(action.kind):
            raise ValidationError(
                f"intent type '{draft.intent_type.name}' does not accept {action.kind} actions"
            )
        action.validate()
        for ref in spec.resources(action):
            check_resource(self.view, ref)
        logger.debug("Added %s to draft '%s'", action.kind, draft.name)
        return replace(draft, actions=draft.actions + (action,))

    def add_actions(self, draft: Draft, actions: Sequence[Action]) -> Draft:
        for action in actions:
            draft = self.add_action(draft, action)
        return draft

    def finalize(self, draft: Draft) -> Intent:
        if not draft.actions and draft.intent_type.requires_actions:
            raise ValidationError(
                f"intent type '{draft.intent_type.name}' needs at least one action"
            )
        payloads = tuple(self.catalog.lookup(a.kind).encode(a) for a in draft.actions)
        return Intent(
            key=draft.name,
            window=draft.window,
            intent_type=draft.intent_type,
            actions=draft.actions,
            payloads=payloads,
            required_roles=self.catalog.required_roles(
                draft.intent_type, (a.kind for a in draft.actions)
            ),
            description=draft.description,
        )
