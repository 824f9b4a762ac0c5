"""Lower call templates into an ordered call graph for the external signer."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from .catalog import (
    GAS_HANDLE,
    ActionCatalog,
    MergeTemplate,
    ObjectArg,
    PureArg,
    ResultRef,
    SplitTemplate,
    Template,
    default_catalog,
    execution_epilogue,
    execution_prologue,
)
from .codec import U64
from .errors import UnresolvedReference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectRef:
    """A resolved ledger object.

    Shared objects carry no digest; ``version`` is then the version observed
    in the snapshot (or ``None`` when the signer should look it up).
    """

    object_id: str
    version: Optional[int] = None
    digest: Optional[str] = None
    shared: bool = False
    mutable: bool = True

    def to_jsonable(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": "object",
            "objectId": self.object_id,
            "shared": self.shared,
            "mutable": self.mutable,
        }
        if self.version is not None:
            data["version"] = self.version
        if self.digest is not None:
            data["digest"] = self.digest
        return data


class Input(NamedTuple):
    index: int


class Result(NamedTuple):
    index: int


@dataclass(frozen=True)
class GasCoin:
    """The coin paying for the transaction."""


Argument = Union[Input, Result, GasCoin]
GraphInput = Union[bytes, ObjectRef]


def _argument_json(arg: Argument) -> Any:
    if isinstance(arg, GasCoin):
        return "GasCoin"
    return {type(arg).__name__: arg.index}


@dataclass(frozen=True)
class MoveCall:
    target: str
    type_arguments: Tuple[str, ...]
    arguments: Tuple[Argument, ...]

    def to_jsonable(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "typeArguments": list(self.type_arguments),
            "arguments": [_argument_json(arg) for arg in self.arguments],
        }


@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: Tuple[Argument, ...]

    target = "SplitCoins"

    def to_jsonable(self) -> Dict[str, Any]:
        return {
            "kind": self.target,
            "coin": _argument_json(self.coin),
            "amounts": [_argument_json(arg) for arg in self.amounts],
        }


@dataclass(frozen=True)
class MergeCoins:
    destination: Argument
    sources: Tuple[Argument, ...]

    target = "MergeCoins"

    def to_jsonable(self) -> Dict[str, Any]:
        return {
            "kind": self.target,
            "destination": _argument_json(self.destination),
            "sources": [_argument_json(arg) for arg in self.sources],
        }


Command = Union[MoveCall, SplitCoins, MergeCoins]


@dataclass(frozen=True)
class CallGraph:
    """Ordered calls plus the de-duplicated inputs they reference."""

    inputs: Tuple[GraphInput, ...]
    calls: Tuple[Command, ...]

    def targets(self) -> List[str]:
        return [call.target for call in self.calls]

    def to_jsonable(self) -> Dict[str, Any]:
        inputs: List[Dict[str, Any]] = []
        for item in self.inputs:
            if isinstance(item, ObjectRef):
                inputs.append(item.to_jsonable())
            else:
                inputs.append({"type": "pure", "bytes": base64.b64encode(item).decode("ascii")})
        return {"inputs": inputs, "calls": [call.to_jsonable() for call in self.calls]}


class _GraphBuilder:
    def __init__(self, resolved: Mapping[str, ObjectRef]) -> None:
        self.resolved = resolved
        self.inputs: List[GraphInput] = []
        self.calls: List[Command] = []
        self._pure: Dict[bytes, int] = {}
        self._objects: Dict[str, int] = {}

    def _pure_input(self, data: bytes) -> Input:
        if data not in self._pure:
            self._pure[data] = len(self.inputs)
            self.inputs.append(data)
        return Input(self._pure[data])

    def _object_input(self, handle: str) -> Input:
        ref = self.resolved.get(handle)
        if ref is None:
            raise UnresolvedReference(f"object handle '{handle}'")
        if ref.object_id not in self._objects:
            self._objects[ref.object_id] = len(self.inputs)
            self.inputs.append(ref)
        return Input(self._objects[ref.object_id])

    def _argument(self, template: Any, scope: Mapping[str, int]) -> Argument:
        if isinstance(template, PureArg):
            return self._pure_input(template.to_bytes())
        if isinstance(template, ObjectArg):
            if template.handle == GAS_HANDLE:
                return GasCoin()
            return self._object_input(template.handle)
        if isinstance(template, ResultRef):
            if template.label not in scope:
                raise UnresolvedReference(f"result '{template.label}' used before it is produced")
            return Result(scope[template.label])
        raise TypeError(f"Unsupported argument template: {template!r}")

    def _command(self, template: Template, scope: Mapping[str, int]) -> Command:
        if isinstance(template, SplitTemplate):
            amount = self._argument(PureArg(template.amount, U64), scope)
            return SplitCoins(self._argument(template.coin, scope), (amount,))
        if isinstance(template, MergeTemplate):
            return MergeCoins(
                self._argument(template.destination, scope),
                tuple(self._argument(source, scope) for source in template.sources),
            )
        arguments = tuple(self._argument(arg, scope) for arg in template.arguments)
        return MoveCall(template.target, template.type_arguments, arguments)

    def emit(self, templates: Sequence[Template], scope: Dict[str, int]) -> None:
        for template in templates:
            command = self._command(template, scope)
            produces = getattr(template, "produces", None)
            if produces:
                scope[produces] = len(self.calls)
            self.calls.append(command)

    def build(self) -> CallGraph:
        return CallGraph(tuple(self.inputs), tuple(self.calls))


def assemble_calls(templates: Sequence[Template], resolved: Mapping[str, ObjectRef]) -> CallGraph:
    """Lower a flat template sequence sharing a single result scope."""

    builder = _GraphBuilder(resolved)
    builder.emit(templates, {})
    return builder.build()


def assemble(
    intent: Any,
    resolved: Mapping[str, ObjectRef],
    catalog: ActionCatalog | None = None,
) -> CallGraph:
    """Build the execution call graph for ``intent``.

    The prologue binds ``executable``; each action then sees a fresh result
    scope layered over it so labels such as ``cap`` never leak between
    actions. Calls are emitted strictly in action order.
    """

    catalog = catalog or default_catalog()
    builder = _GraphBuilder(resolved)
    outer: Dict[str, int] = {}
    builder.emit(execution_prologue(intent.key), outer)
    for position, action in enumerate(intent.actions):
        templates = catalog.lookup(action.kind).required_calls(action)
        logger.debug(
            "Lowering action %d (%s) into %d calls", position, action.kind, len(templates)
        )
        builder.emit(templates, dict(outer))
    builder.emit(execution_epilogue(), outer)
    graph = builder.build()
    logger.info(
        "Assembled execution of '%s': %d calls, %d inputs",
        intent.key,
        len(graph.calls),
        len(graph.inputs),
    )
    return graph
