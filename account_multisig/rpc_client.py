"""Typed JSON-RPC client for the ledger's full node API.

The client serves two roles: the query collaborator used by the object
resolver and proposal loader (raw object bytes, dynamic fields, owned
objects) and the broadcast collaborator that submits signed transactions.
It never retries; ledger failures are classified and surfaced as-is.
"""

from __future__ import annotations

import base64
import json
import logging
import uuid
from typing import Any, Dict, Iterator, List, Optional

import requests
from requests import RequestException, Response

from .config import RPCConfig, load_config
from .errors import ResourceNotFound
from .resolver import RawObject

logger = logging.getLogger(__name__)

MULTI_GET_LIMIT = 50
PAGE_LIMIT = 50


class RPCError(RuntimeError):
    """Raised when the node responds with a JSON-RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LedgerFailure(RuntimeError):
    """A transaction reached the ledger and failed."""

    def __init__(self, message: str, digest: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.digest = digest


class InsufficientGas(LedgerFailure):
    pass


class ExecutionAborted(LedgerFailure):
    pass


class ObjectVersionConflict(LedgerFailure):
    pass


def classify_failure(message: str, digest: str | None = None) -> LedgerFailure:
    """Map a ledger error string onto the matching :class:`LedgerFailure`."""

    lowered = message.lower()
    if "insufficientgas" in lowered or "insufficient gas" in lowered or "gasbalancetoolow" in lowered:
        return InsufficientGas(message, digest)
    if "moveabort" in lowered or "aborted" in lowered:
        return ExecutionAborted(message, digest)
    if (
        "objectversionunavailableforconsumption" in lowered
        or "not available for consumption" in lowered
        or "version mismatch" in lowered
        or "object version" in lowered
    ):
        return ObjectVersionConflict(message, digest)
    return LedgerFailure(message, digest)


def format_rpc_hint(error: RPCError | LedgerFailure | None) -> str | None:
    """Return a human-friendly hint for common ledger failures."""

    if error is None:
        return None
    if isinstance(error, InsufficientGas):
        return (
            "The transaction ran out of gas. Raise the gas budget with --gas-budget, "
            "MULTISIG_GAS_BUDGET or rpc.gas_budget, or fund the signer's gas coin."
        )
    if isinstance(error, ObjectVersionConflict):
        return (
            "An object changed since the account snapshot was taken. Refresh the account "
            "and rebuild the transaction."
        )
    if isinstance(error, ExecutionAborted):
        return (
            "The on-chain contract aborted. Check that the proposal is still executable "
            "and the account resources match the intent."
        )
    if isinstance(error, RPCError) and error.code == -32602:
        return "The node rejected the request parameters; check object ids and addresses."
    return None


def _raw_object(data: Dict[str, Any]) -> RawObject:
    bcs = data.get("bcs") or {}
    if bcs.get("dataType") not in (None, "moveObject"):
        raise RPCTransportError(f"Object {data.get('objectId')} is not a Move object")
    try:
        raw_bytes = base64.b64decode(bcs.get("bcsBytes", ""), validate=True)
    except ValueError as exc:
        raise RPCTransportError(f"Object {data.get('objectId')} has malformed BCS") from exc
    return RawObject(
        object_id=data["objectId"],
        object_type=bcs.get("type") or data.get("type", ""),
        version=int(data["version"]),
        bcs=raw_bytes,
        digest=data.get("digest"),
    )


class SuiRPCClient:
    """Thin JSON-RPC client; each helper maps to one node method."""

    def __init__(self, config: RPCConfig) -> None:
        self.config = config
        self._session = requests.Session()

    @classmethod
    def from_env(cls) -> "SuiRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_config().rpc)

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.config.url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self.config.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure the full node is reachable and MULTISIG_RPC_URL "
                "(or rpc.url in ~/.account-multisig.yaml) points to it."
            ) from exc
        try:
            self._raise_for_status(response)
        except requests.HTTPError as exc:
            raise RPCTransportError(
                "RPC server returned an HTTP error; check the URL and MULTISIG_RPC_* settings.",
                status_code=response.status_code,
            ) from exc
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if result.get("error"):
            error = result["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if not response.ok:
            try:
                err_body = response.json()
            except ValueError:
                err_body = response.text
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.error("RPC error body: %s", err_body)
            if response.status_code == 429:
                raise RPCTransportError(
                    "Rate limited (429) by the full node; use a dedicated endpoint via MULTISIG_RPC_URL.",
                    status_code=response.status_code,
                )
        response.raise_for_status()

    # Query collaborator -------------------------------------------------

    def get_object(self, object_id: str) -> RawObject:
        result = self.call("sui_getObject", [object_id, {"showBcs": True, "showType": True}])
        data = (result or {}).get("data")
        if not data:
            error = (result or {}).get("error") or {}
            logger.debug("Object %s unavailable: %s", object_id, error)
            raise ResourceNotFound("object", object_id)
        return _raw_object(data)

    def multi_get_objects(self, object_ids: List[str]) -> List[RawObject]:
        objects: List[RawObject] = []
        for start in range(0, len(object_ids), MULTI_GET_LIMIT):
            batch = object_ids[start : start + MULTI_GET_LIMIT]
            results = self.call(
                "sui_multiGetObjects", [batch, {"showBcs": True, "showType": True}]
            )
            for object_id, entry in zip(batch, results or []):
                data = (entry or {}).get("data")
                if not data:
                    raise ResourceNotFound("object", object_id)
                objects.append(_raw_object(data))
        return objects

    def _paged(self, method: str, params: list[Any]) -> Iterator[Dict[str, Any]]:
        cursor = None
        while True:
            page = self.call(method, [*params, cursor, PAGE_LIMIT]) or {}
            yield from page.get("data", [])
            if not page.get("hasNextPage"):
                return
            cursor = page.get("nextCursor")

    def get_dynamic_field_objects(self, parent_id: str) -> List[RawObject]:
        field_ids = [entry["objectId"] for entry in self._paged("suix_getDynamicFields", [parent_id])]
        logger.debug("Parent %s has %d dynamic fields", parent_id, len(field_ids))
        return self.multi_get_objects(field_ids)

    def get_owned_objects(self, owner: str) -> List[RawObject]:
        query = {"options": {"showBcs": True, "showType": True}}
        objects = []
        for entry in self._paged("suix_getOwnedObjects", [owner, query]):
            data = entry.get("data")
            if data and (data.get("bcs") or {}).get("dataType", "moveObject") == "moveObject":
                objects.append(_raw_object(data))
        return objects

    # Broadcast collaborator ---------------------------------------------

    def get_reference_gas_price(self) -> int:
        return int(self.call("suix_getReferenceGasPrice"))

    def execute_transaction(self, tx_bytes: str, signatures: List[str]) -> str:
        """Submit a signed transaction and return its digest.

        Raises a :class:`LedgerFailure` subclass when the node reports a
        failed execution.
        """

        try:
            result = self.call(
                "sui_executeTransactionBlock",
                [tx_bytes, signatures, {"showEffects": True}, "WaitForLocalExecution"],
            )
        except RPCError as exc:
            raise classify_failure(exc.message) from exc
        digest = result.get("digest")
        status = ((result.get("effects") or {}).get("status")) or {}
        if status.get("status") == "failure":
            failure = classify_failure(status.get("error", "unknown failure"), digest)
            logger.warning("Transaction %s failed: %s", digest, failure.message)
            raise failure
        logger.info("Executed transaction %s", digest)
        return digest
