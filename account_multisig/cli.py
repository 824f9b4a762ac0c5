"""Command-line interface for multisig account intents.

Every command resolves a fresh account snapshot, runs one builder, lifecycle
or management step and prints the resulting call graph as JSON for the
external signer, together with the sender, gas budget and reference gas
price. Signing happens elsewhere; `broadcast` submits the signed bytes.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Callable, Dict, NamedTuple, Sequence

from . import actions as act
from .assembler import CallGraph
from .catalog import TOGGLE_UNVERIFIED_INTENT, default_catalog, kind_label
from .codec import decode_any, decode_action, encode_action
from .config import ConfigurationError, MultisigConfig, load_config, set_default_config_path
from .creation import MultisigBuilder, ProtocolObjects, fetch_fees, find_user
from .errors import MultisigError
from .identity import resolve_signer_address
from .intents import ExecutionWindow, IntentBuilder
from .lifecycle import ProposalEngine, now_ms
from .management import AccountManager
from .resolver import AccountView, ObjectResolver, decode_owned_object
from .rpc_client import LedgerFailure, RPCError, RPCTransportError, SuiRPCClient, format_rpc_hint

logger = logging.getLogger(__name__)

DEFAULT_EXPIRATION_MS = 7 * 24 * 60 * 60 * 1000
MANAGEMENT_COMMANDS = frozenset(
    {
        "open-vault",
        "close-vault",
        "deposit",
        "deposit-cap",
        "deposit-treasury-cap",
        "deposit-upgrade-cap",
    }
)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


# Argument parsing helpers -------------------------------------------------


def _split_csv(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [segment.strip() for segment in raw.split(",") if segment.strip()]


def _parse_int(value: str, flag: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise CLIError(f"{flag} must be an integer, got {value!r}") from exc


def _parse_int_list(raw: str | None, flag: str) -> list[int]:
    values = _split_csv(raw)
    if not values:
        raise CLIError(f"{flag} must include at least one value")
    return [_parse_int(value, flag) for value in values]


def _parse_members(raw: str) -> list[act.MemberSpec]:
    """Parse ``address:weight[:role+role]`` entries."""

    members = []
    for piece in _split_csv(raw):
        parts = piece.split(":", 2)
        if len(parts) not in (2, 3):
            raise CLIError(f"Invalid member: {piece}. Expected address:weight[:role+role]")
        roles = tuple(role for role in parts[2].split("+") if role) if len(parts) == 3 else ()
        members.append(act.MemberSpec(parts[0], _parse_int(parts[1], "--members weight"), roles))
    if not members:
        raise CLIError("--members must include at least one member")
    return members


def _parse_roles(raw: str | None) -> list[act.RoleSpec]:
    roles = []
    for piece in _split_csv(raw):
        try:
            name, threshold = piece.rsplit(":", 1)
        except ValueError as exc:
            raise CLIError(f"Invalid role: {piece}. Expected name:threshold") from exc
        roles.append(act.RoleSpec(name, _parse_int(threshold, "--roles threshold")))
    return roles


def _parse_deps(raw: str) -> list[act.Dependency]:
    deps = []
    for piece in _split_csv(raw):
        parts = piece.split(":", 2)
        if len(parts) != 3:
            raise CLIError(f"Invalid dependency: {piece}. Expected name:address:version")
        deps.append(act.Dependency(parts[0], parts[1], _parse_int(parts[2], "--deps version")))
    return deps


def _parse_hex(raw: str, flag: str) -> bytes:
    value = raw[2:] if raw.startswith("0x") else raw
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise CLIError(f"{flag} must be hex encoded") from exc


# Action factories keyed by ``propose`` subcommand --------------------------


def _config_multisig(args: argparse.Namespace) -> act.Action:
    return act.ConfigMultisig(
        global_threshold=args.global_threshold,
        members=_parse_members(args.members),
        roles=_parse_roles(args.roles),
    )


def _config_deps(args: argparse.Namespace) -> act.Action:
    return act.ConfigDeps(deps=_parse_deps(args.deps))


def _borrow_cap(args: argparse.Namespace) -> act.Action:
    return act.BorrowCap(cap_type=args.cap_type, target=args.target)


def _disable_rules(args: argparse.Namespace) -> act.Action:
    return act.DisableRules(
        coin_type=args.coin_type,
        mint=args.mint,
        burn=args.burn,
        update_symbol=args.update_symbol,
        update_name=args.update_name,
        update_description=args.update_description,
        update_icon=args.update_icon,
    )


def _update_metadata(args: argparse.Namespace) -> act.Action:
    return act.UpdateMetadata(
        coin_type=args.coin_type,
        name=args.new_name,
        symbol=args.new_symbol,
        description=args.new_description,
        icon_url=args.new_icon_url,
    )


def _mint_and_transfer(args: argparse.Namespace) -> act.Action:
    return act.MintAndTransfer(
        coin_type=args.coin_type,
        amounts=_parse_int_list(args.amounts, "--amounts"),
        recipients=_split_csv(args.recipients),
    )


def _mint_and_vest(args: argparse.Namespace) -> act.Action:
    return act.MintAndVest(
        coin_type=args.coin_type,
        amount=args.amount,
        start=args.vest_start,
        end=args.vest_end,
        recipient=args.recipient,
    )


def _withdraw_and_burn(args: argparse.Namespace) -> act.Action:
    return act.WithdrawAndBurn(coin_type=args.coin_type, coin_id=args.coin_id, amount=args.amount)


def _take_nfts(args: argparse.Namespace) -> act.Action:
    return act.TakeNfts(
        kiosk_name=args.kiosk, nft_ids=_split_csv(args.nft_ids), recipient=args.recipient
    )


def _list_nfts(args: argparse.Namespace) -> act.Action:
    return act.ListNfts(
        kiosk_name=args.kiosk,
        nft_ids=_split_csv(args.nft_ids),
        prices=_parse_int_list(args.prices, "--prices"),
    )


def _withdraw_and_transfer_to_vault(args: argparse.Namespace) -> act.Action:
    return act.WithdrawAndTransferToVault(
        coin_type=args.coin_type, coin_id=args.coin_id, amount=args.amount, vault_name=args.vault
    )


def _withdraw_and_transfer(args: argparse.Namespace) -> act.Action:
    return act.WithdrawAndTransfer(
        object_ids=_split_csv(args.object_ids), recipients=_split_csv(args.recipients)
    )


def _withdraw_and_vest(args: argparse.Namespace) -> act.Action:
    return act.WithdrawAndVest(
        coin_id=args.coin_id, start=args.vest_start, end=args.vest_end, recipient=args.recipient
    )


def _spend_and_transfer(args: argparse.Namespace) -> act.Action:
    return act.SpendAndTransfer(
        vault_name=args.vault,
        coin_type=args.coin_type,
        amounts=_parse_int_list(args.amounts, "--amounts"),
        recipients=_split_csv(args.recipients),
    )


def _spend_and_vest(args: argparse.Namespace) -> act.Action:
    return act.SpendAndVest(
        vault_name=args.vault,
        coin_type=args.coin_type,
        amount=args.amount,
        start=args.vest_start,
        end=args.vest_end,
        recipient=args.recipient,
    )


def _upgrade_package(args: argparse.Namespace) -> act.Action:
    return act.UpgradePackage(package_name=args.package, digest=_parse_hex(args.digest, "--digest"))


def _restrict_policy(args: argparse.Namespace) -> act.Action:
    return act.RestrictPolicy(package_name=args.package, policy=act.Policy.parse(args.policy))


ACTION_FACTORIES: Dict[str, Callable[[argparse.Namespace], act.Action]] = {
    "config_multisig": _config_multisig,
    "config_deps": _config_deps,
    "borrow_cap": _borrow_cap,
    "disable_rules": _disable_rules,
    "update_metadata": _update_metadata,
    "mint_and_transfer": _mint_and_transfer,
    "mint_and_vest": _mint_and_vest,
    "withdraw_and_burn": _withdraw_and_burn,
    "take_nfts": _take_nfts,
    "list_nfts": _list_nfts,
    "withdraw_and_transfer_to_vault": _withdraw_and_transfer_to_vault,
    "withdraw_and_transfer": _withdraw_and_transfer,
    "withdraw_and_vest": _withdraw_and_vest,
    "spend_and_transfer": _spend_and_transfer,
    "spend_and_vest": _spend_and_vest,
    "upgrade_package": _upgrade_package,
    "restrict_policy": _restrict_policy,
}


# Parser -------------------------------------------------------------------


def _add_window_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--key", required=True, help="Unique intent key within the account")
    parser.add_argument("--description", default="", help="Free-form intent description")
    parser.add_argument(
        "--execution-times",
        default=None,
        help="Comma-separated execution timestamps in ms (default: now)",
    )
    parser.add_argument(
        "--expiration",
        type=int,
        default=None,
        help="Expiration timestamp in ms (default: one week after the last execution time)",
    )


def _add_vesting_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--vest-start", type=int, required=True, help="Vesting start (ms)")
    parser.add_argument("--vest-end", type=int, required=True, help="Vesting end (ms)")
    parser.add_argument("--recipient", required=True, help="Vesting recipient address")


def _configure_propose_parsers(propose: argparse.ArgumentParser) -> None:
    kinds = propose.add_subparsers(dest="action", required=True)

    def add(kind: str, help_text: str) -> argparse.ArgumentParser:
        sub = kinds.add_parser(kind_label(kind), help=help_text)
        _add_window_args(sub)
        sub.set_defaults(action_kind=kind)
        return sub

    sub = add("config_multisig", "replace members, weights, roles and the global threshold")
    sub.add_argument(
        "--members",
        required=True,
        help="address:weight[:role+role],... where a role is package::module",
    )
    sub.add_argument("--global-threshold", type=int, required=True)
    sub.add_argument("--roles", default=None, help="name:threshold,...")

    sub = add("config_deps", "replace the account's package dependencies")
    sub.add_argument("--deps", required=True, help="name:address:version,...")

    sub = kinds.add_parser("toggle-unverified", help="toggle whether unverified deps are allowed")
    _add_window_args(sub)
    sub.set_defaults(action_kind=None)

    sub = add("borrow_cap", "borrow a stored capability for one call")
    sub.add_argument("--cap-type", required=True)
    sub.add_argument("--target", required=True, help="package::module::function using the cap")

    sub = add("disable_rules", "permanently disable currency permissions")
    sub.add_argument("--coin-type", required=True)
    for flag in ("mint", "burn", "update-symbol", "update-name", "update-description", "update-icon"):
        sub.add_argument(f"--{flag}", action="store_true")

    sub = add("update_metadata", "update currency metadata")
    sub.add_argument("--coin-type", required=True)
    sub.add_argument("--new-name", default=None)
    sub.add_argument("--new-symbol", default=None)
    sub.add_argument("--new-description", default=None)
    sub.add_argument("--new-icon-url", default=None)

    for kind, help_text in (
        ("mint_and_transfer", "mint coins to several recipients"),
        ("spend_and_transfer", "spend vault coins to several recipients"),
    ):
        sub = add(kind, help_text)
        sub.add_argument("--coin-type", required=True)
        sub.add_argument("--amounts", required=True, help="Comma-separated amounts")
        sub.add_argument("--recipients", required=True, help="Comma-separated addresses")
        if kind == "spend_and_transfer":
            sub.add_argument("--vault", required=True)

    for kind, help_text in (
        ("mint_and_vest", "mint coins into a vesting stream"),
        ("spend_and_vest", "spend vault coins into a vesting stream"),
    ):
        sub = add(kind, help_text)
        sub.add_argument("--coin-type", required=True)
        sub.add_argument("--amount", type=int, required=True)
        _add_vesting_args(sub)
        if kind == "spend_and_vest":
            sub.add_argument("--vault", required=True)

    sub = add("withdraw_and_burn", "burn a coin owned by the account")
    sub.add_argument("--coin-type", required=True)
    sub.add_argument("--coin-id", required=True)
    sub.add_argument("--amount", type=int, required=True)

    sub = add("withdraw_and_transfer_to_vault", "deposit an owned coin into a vault")
    sub.add_argument("--coin-type", required=True)
    sub.add_argument("--coin-id", required=True)
    sub.add_argument("--amount", type=int, required=True)
    sub.add_argument("--vault", required=True)

    sub = add("withdraw_and_transfer", "transfer owned objects")
    sub.add_argument("--object-ids", required=True)
    sub.add_argument("--recipients", required=True)

    sub = add("withdraw_and_vest", "vest an owned coin")
    sub.add_argument("--coin-id", required=True)
    _add_vesting_args(sub)

    sub = add("upgrade_package", "authorize a package upgrade")
    sub.add_argument("--package", required=True)
    sub.add_argument("--digest", required=True, help="32-byte upgrade digest as hex")

    sub = add("restrict_policy", "restrict a package's upgrade policy")
    sub.add_argument("--package", required=True)
    sub.add_argument("--policy", required=True, help="additive, dep_only or immutable")

    sub = add("take_nfts", "take NFTs out of a kiosk")
    sub.add_argument("--kiosk", required=True)
    sub.add_argument("--nft-ids", required=True)
    sub.add_argument("--recipient", required=True)

    sub = add("list_nfts", "list kiosk NFTs for sale")
    sub.add_argument("--kiosk", required=True)
    sub.add_argument("--nft-ids", required=True)
    sub.add_argument("--prices", required=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multisig account intents CLI")
    parser.add_argument("--config", default=None, help="Path to the YAML config file")
    parser.add_argument("--rpc-url", default=None, help="Full node JSON-RPC URL")
    parser.add_argument("--network", default=None, help="mainnet, testnet, devnet or localnet")
    parser.add_argument("--account", default=None, help="Multisig account object id")
    parser.add_argument("--signer", default=None, help="Address acting as the current signer")
    parser.add_argument(
        "--gas-budget", type=int, default=None, help="Gas budget in MIST for emitted transactions"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("show", help="print the account snapshot")
    subparsers.add_parser("proposals", help="list proposals with their approval state")

    propose = subparsers.add_parser("propose", help="create an intent")
    _configure_propose_parsers(propose)

    for command, help_text in (
        ("approve", "approve a proposal"),
        ("disapprove", "withdraw an approval"),
        ("execute", "build the execution transaction of an approved proposal"),
        ("delete", "delete a proposal"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument("key", help="Proposal key")

    create = subparsers.add_parser("create", help="create a new multisig account")
    create.add_argument("--name", default="", help="Account name stored in its metadata")
    create.add_argument("--global-threshold", type=int, default=None)
    create.add_argument(
        "--members",
        default=None,
        help="address:weight[:role+role],... (default: the signer alone)",
    )
    create.add_argument("--roles", default=None, help="name:threshold,...")

    for command, help_text in (
        ("open-vault", "open an empty vault"),
        ("close-vault", "close an empty vault"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument("vault", help="Vault name")

    sub = subparsers.add_parser("deposit", help="deposit coins from the signer's wallet into a vault")
    sub.add_argument("vault", help="Vault name")
    sub.add_argument("--coin-type", required=True)
    sub.add_argument("--amount", type=int, required=True)

    sub = subparsers.add_parser("deposit-cap", help="store a capability object in the account")
    sub.add_argument("cap_id", help="Object id of the capability in the signer's wallet")

    sub = subparsers.add_parser("deposit-treasury-cap", help="hand a coin's treasury cap to the account")
    sub.add_argument("cap_id", help="Object id of the treasury cap in the signer's wallet")
    sub.add_argument("--max-supply", type=int, default=None, help="Optional cap on total supply")

    sub = subparsers.add_parser(
        "deposit-upgrade-cap", help="hand a package's upgrade cap to the account"
    )
    sub.add_argument("cap_id", help="Object id of the upgrade cap in the signer's wallet")
    sub.add_argument("--package", required=True, help="Name the package is managed under")
    sub.add_argument("--delay-ms", type=int, default=0, help="Delay between upgrade approval and commit")

    broadcast = subparsers.add_parser("broadcast", help="submit a signed transaction")
    broadcast.add_argument("--tx-bytes", required=True, help="Base64 transaction bytes")
    broadcast.add_argument(
        "--signature",
        action="append",
        required=True,
        help="Base64 serialized signature; repeat for each signer",
    )

    encode_parser = subparsers.add_parser("encode-action", help="encode an action from JSON")
    encode_parser.add_argument("kind", help="Action kind, e.g. spend_and_transfer")
    encode_parser.add_argument("fields", help="JSON object with the action fields")

    decode_parser = subparsers.add_parser("decode-action", help="decode a hex action payload")
    decode_parser.add_argument("payload", help="Hex encoded payload")
    decode_parser.add_argument("--kind", default=None, help="Expected action kind")
    return parser


# Commands -----------------------------------------------------------------


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=False))


def _load_config(args: argparse.Namespace) -> MultisigConfig:
    if args.config:
        set_default_config_path(args.config)
    overrides = {
        "url": args.rpc_url,
        "network": args.network,
        "account": args.account,
        "signer": args.signer,
        "gas_budget": args.gas_budget,
    }
    return load_config(overrides={k: v for k, v in overrides.items() if v is not None})


class Session(NamedTuple):
    config: MultisigConfig
    client: SuiRPCClient
    signer: str

    def transaction(self, graph: CallGraph) -> Dict[str, Any]:
        """Render ``graph`` with what the external signer needs to build it."""

        data = graph.to_jsonable()
        data["sender"] = self.signer
        data["gasBudget"] = self.config.rpc.gas_budget
        data["gasPrice"] = self.client.get_reference_gas_price()
        return data


def _session(args: argparse.Namespace) -> Session:
    config = _load_config(args)
    signer = resolve_signer_address(config.signer, args.signer)
    return Session(config, SuiRPCClient(config.rpc), signer)


def _context(args: argparse.Namespace) -> tuple[MultisigConfig, SuiRPCClient, AccountView]:
    config = _load_config(args)
    if not config.account:
        raise CLIError("No account configured; pass --account or set MULTISIG_ACCOUNT")
    client = SuiRPCClient(config.rpc)
    view = ObjectResolver(client).snapshot(config.account)
    return config, client, view


def _engine(args: argparse.Namespace) -> tuple[ProposalEngine, Session, AccountView]:
    config, client, view = _context(args)
    session = Session(config, client, resolve_signer_address(config.signer, args.signer))
    return ProposalEngine.from_chain(client, view), session, view


def _window(args: argparse.Namespace) -> ExecutionWindow:
    if args.execution_times:
        times = _parse_int_list(args.execution_times, "--execution-times")
    else:
        times = [now_ms()]
    expiration = args.expiration if args.expiration is not None else times[-1] + DEFAULT_EXPIRATION_MS
    return ExecutionWindow(tuple(times), expiration)


def cmd_show(args: argparse.Namespace) -> None:
    _, _, view = _context(args)
    _print_json(view.to_dict())


def cmd_proposals(args: argparse.Namespace) -> None:
    _, client, view = _context(args)
    engine = ProposalEngine.from_chain(client, view)
    proposals = engine.proposals()
    if not proposals:
        print("No proposals found.")
        return
    _print_json(
        [
            {
                **proposal.intent.to_dict(),
                "state": engine.state(proposal.key).value,
                "outcome": engine.outcome(proposal.key).to_dict(),
            }
            for proposal in proposals
        ]
    )


def cmd_propose(args: argparse.Namespace) -> None:
    engine, session, view = _engine(args)
    builder = IntentBuilder(engine.catalog, view)
    if args.action_kind is None:
        intent_type = TOGGLE_UNVERIFIED_INTENT
        actions: list[act.Action] = []
    else:
        intent_type = args.action_kind
        actions = [ACTION_FACTORIES[args.action_kind](args)]
    draft = builder.begin(args.key, _window(args), description=args.description, intent_type=intent_type)
    draft = builder.add_actions(draft, actions)
    submission = engine.submit(builder.finalize(draft), session.signer)
    _print_json(
        {
            "intent": submission.intent.to_dict(),
            "transaction": session.transaction(submission.graph),
        }
    )


def cmd_vote(args: argparse.Namespace) -> None:
    engine, session, _ = _engine(args)
    if args.command == "approve":
        result = engine.approve(args.key, session.signer)
    else:
        result = engine.disapprove(args.key, session.signer)
    _print_json({**result.to_dict(), "transaction": session.transaction(result.graph)})


def cmd_execute(args: argparse.Namespace) -> None:
    engine, session, _ = _engine(args)
    _print_json(session.transaction(engine.execute(args.key, session.signer)))


def cmd_delete(args: argparse.Namespace) -> None:
    engine, session, _ = _engine(args)
    _print_json(session.transaction(engine.delete(args.key, session.signer)))


def cmd_manage(args: argparse.Namespace) -> None:
    _, session, view = _engine(args)
    manager = AccountManager(view, session.client)
    signer = session.signer
    if args.command == "open-vault":
        graph = manager.open_vault(args.vault, signer)
    elif args.command == "close-vault":
        graph = manager.close_vault(args.vault, signer)
    elif args.command == "deposit":
        graph = manager.deposit(args.vault, args.coin_type, args.amount, signer)
    elif args.command == "deposit-cap":
        graph = manager.deposit_cap(args.cap_id, signer)
    elif args.command == "deposit-treasury-cap":
        graph = manager.deposit_treasury_cap(args.cap_id, signer, args.max_supply)
    else:
        graph = manager.deposit_upgrade_cap(args.cap_id, args.package, args.delay_ms, signer)
    _print_json(session.transaction(graph))


def cmd_create(args: argparse.Namespace) -> None:
    session = _session(args)
    protocol = session.config.protocol
    if not protocol.extensions or not protocol.fees:
        raise CLIError(
            "Creating an account needs the protocol's extensions and fees objects; "
            "set protocol.extensions and protocol.fees or MULTISIG_EXTENSIONS_ID and MULTISIG_FEES_ID"
        )
    builder = MultisigBuilder(session.signer).set_name(args.name)
    if args.global_threshold is not None:
        builder.set_global_threshold(args.global_threshold)
    if args.members:
        for member in _parse_members(args.members):
            builder.add_member(member.address, member.weight, member.roles)
    for role in _parse_roles(args.roles):
        builder.add_role(role.name, role.threshold)

    fees = fetch_fees(session.client, protocol.fees)
    wallet = [decode_owned_object(raw) for raw in session.client.get_owned_objects(session.signer)]
    graph = builder.build(
        fees,
        ProtocolObjects(protocol.extensions, protocol.fees, protocol.registry),
        find_user(wallet),
    )
    _print_json({"fee": fees.amount, "transaction": session.transaction(graph)})


def cmd_broadcast(args: argparse.Namespace) -> None:
    config = _load_config(args)
    digest = SuiRPCClient(config.rpc).execute_transaction(args.tx_bytes, args.signature)
    _print_json({"digest": digest})


def cmd_encode_action(args: argparse.Namespace) -> None:
    try:
        fields = json.loads(args.fields)
    except json.JSONDecodeError as exc:
        raise CLIError(f"Invalid fields JSON: {exc}") from exc
    if not isinstance(fields, dict):
        raise CLIError("Fields JSON must be an object")
    spec = default_catalog().lookup(args.kind)
    action = spec.action_cls.from_dict(fields)
    action.validate()
    print(encode_action(action).hex())


def cmd_decode_action(args: argparse.Namespace) -> None:
    data = bytes.fromhex(args.payload[2:] if args.payload.startswith("0x") else args.payload)
    action = decode_action(args.kind, data) if args.kind else decode_any(data)
    _print_json(action.to_dict())


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        if args.command == "show":
            cmd_show(args)
        elif args.command == "proposals":
            cmd_proposals(args)
        elif args.command == "propose":
            cmd_propose(args)
        elif args.command in {"approve", "disapprove"}:
            cmd_vote(args)
        elif args.command == "execute":
            cmd_execute(args)
        elif args.command == "delete":
            cmd_delete(args)
        elif args.command == "create":
            cmd_create(args)
        elif args.command in MANAGEMENT_COMMANDS:
            cmd_manage(args)
        elif args.command == "broadcast":
            cmd_broadcast(args)
        elif args.command == "encode-action":
            cmd_encode_action(args)
        elif args.command == "decode-action":
            cmd_decode_action(args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (RPCError, LedgerFailure) as exc:
        hint = format_rpc_hint(exc)
        parser.exit(1, f"error: {exc}\n" + (f"hint: {hint}\n" if hint else ""))
    except (CLIError, ConfigurationError, MultisigError, RPCTransportError, ValueError) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
