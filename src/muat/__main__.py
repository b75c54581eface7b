"""CLI entry point for muat.

A thin command-line wrapper over the library for exploring and debugging a
server by hand. Logging in stores the session (mode ``0600``) so that
later commands reuse it; every command that loads the stored session first
tries to refresh it.

Examples:
    ```bash
    muat pds create-account alice.local --password hunter2 --pds file://./pds
    muat pds login --identifier alice.local --password hunter2 --pds file://./pds
    muat pds create-record org.example.note -t org.example.note --json note.json
    muat pds list-records --collection org.example.note
    muat pds subscribe --json --filter org.example.
    muat --log-level DEBUG --config muat.yaml pds whoami
    ```
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from muat.backends.file import FileBackend
from muat.core.config import MuatConfig
from muat.core.exceptions import MuatError
from muat.core.logger import JsonFormatter, Logger, StructuredFormatter
from muat.core.metrics import start_metrics_server
from muat.models.at_uri import AtUri
from muat.models.auth import Credentials
from muat.models.did import Did
from muat.models.events import CommitEvent, HandleEvent, IdentityEvent, InfoEvent, RepoEvent
from muat.models.nsid import Nsid
from muat.models.pds_url import PdsUrl
from muat.models.record_value import RecordValue
from muat.models.rkey import Rkey
from muat.pds import Pds
from muat.session import Session
from muat.session_store import clear_session, load_session, save_session


DEFAULT_REMOTE_PDS = "https://bsky.social"
DEFAULT_LOCAL_PDS = "file://./pds"

logger = Logger("cli")


class CommandError(Exception):
    """A command cannot proceed; the message is shown to the user as is."""


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _success(msg: str) -> None:
    print(f"✓ {msg}")


def _failure(msg: str) -> None:
    print(f"✗ {msg}", file=sys.stderr)


def _field(label: str, value: object) -> None:
    print(f"{label}: {value}")


def _json(value: Any, *, pretty: bool = False) -> None:
    print(json.dumps(value, indent=2 if pretty else None, ensure_ascii=False))


def format_event(event: RepoEvent) -> str:
    """Human-readable rendering of one event (possibly several lines)."""
    match event:
        case CommitEvent():
            lines = [f"COMMIT {event.repo} {len(event.ops)} ops @ seq {event.seq}"]
            lines.extend(f"  {str(op.action).upper()} {op.path}" for op in event.ops)
            return "\n".join(lines)
        case IdentityEvent():
            return f"IDENTITY {event.did} @ seq {event.seq}"
        case HandleEvent():
            return f"HANDLE {event.did} -> {event.handle} @ seq {event.seq}"
        case InfoEvent():
            return f"INFO {event.name} {event.message or ''}".rstrip()
        case _:
            return f"UNKNOWN {event.kind}"


def matches_filter(event: RepoEvent, prefix: str | None) -> bool:
    """Commits pass when any operation path starts with *prefix*; other events always pass."""
    if prefix is None or not isinstance(event, CommitEvent):
        return True
    return any(op.path.startswith(prefix) for op in event.ops)


def print_event(event: RepoEvent, *, as_json: bool) -> None:
    """Print data events to stdout; info and undecoded frames go to stderr, text mode only."""
    if isinstance(event, (CommitEvent, IdentityEvent, HandleEvent)):
        if as_json:
            _json(event.to_dict())
        else:
            print(format_event(event))
    elif not as_json:
        print(format_event(event), file=sys.stderr)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _require_session(config: MuatConfig) -> Session:
    session = await load_session(config.session_store.path, config)
    if session is None:
        raise CommandError("No active session. Run 'muat pds login' first.")
    return session


def _local_pds(raw: str, action: str, config: MuatConfig) -> Pds:
    url = PdsUrl(raw)
    if not url.is_local:
        raise CommandError(
            f"Remote account {action} is not supported by this CLI. "
            f"For local development, use a file:// URL (e.g. {DEFAULT_LOCAL_PDS})."
        )
    return Pds.open(url, config)


def _record_uri(args: argparse.Namespace, session: Session) -> AtUri:
    """Record address from a positional AT URI or from --repo/--collection/--rkey."""
    if args.uri:
        return AtUri.parse(args.uri)
    if not args.collection or not args.rkey:
        raise CommandError("Either a URI or both --collection and --rkey are required")
    repo = Did(args.repo) if args.repo else session.did
    return AtUri(repo, Nsid(args.collection), Rkey(args.rkey))


def _read_json_input(source: str | None) -> Any:
    if source is None:
        return {}
    try:
        text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    except OSError as e:
        raise CommandError(f"Failed to read JSON from {source}: {e}") from e
    try:
        return json.loads(text)
    except ValueError as e:
        raise CommandError(f"Invalid JSON in {'stdin' if source == '-' else source}: {e}") from e


def _confirm(prompt: str) -> bool:
    print(f"{prompt} [y/N] ", end="", file=sys.stderr, flush=True)
    return sys.stdin.readline().strip().lower() == "y"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_login(args: argparse.Namespace, config: MuatConfig) -> int:
    print("Logging in...", file=sys.stderr)
    async with Pds.open(args.pds, config) as pds:
        session = await pds.login(Credentials(args.identifier, args.password))
        await save_session(session, config.session_store.path)
    _success("Logged in successfully")
    _field("DID", session.did)
    _field("PDS", session.pds)
    return 0


async def cmd_logout(args: argparse.Namespace, config: MuatConfig) -> int:
    if clear_session(config.session_store.path):
        _success("Logged out")
    else:
        print("No active session.", file=sys.stderr)
    return 0


async def cmd_whoami(args: argparse.Namespace, config: MuatConfig) -> int:
    session = await _require_session(config)
    try:
        _field("DID", session.did)
        _field("PDS", session.pds)
        _field("Backend", session.backend_kind)
    finally:
        await session.close()
    return 0


async def cmd_refresh_token(args: argparse.Namespace, config: MuatConfig) -> int:
    session = await _require_session(config)
    try:
        print("Refreshing session...", file=sys.stderr)
        await session.refresh()
        await save_session(session, config.session_store.path)
    finally:
        await session.close()
    _success("Session refreshed successfully")
    _field("DID", session.did)
    return 0


async def cmd_create_account(args: argparse.Namespace, config: MuatConfig) -> int:
    async with _local_pds(args.pds, "creation", config) as pds:
        output = await pds.create_account(args.handle, password=args.password)
    _field("DID", output.did)
    _field("Handle", output.handle)
    _field("PDS", args.pds)
    _success("Account created successfully")
    return 0


async def cmd_remove_account(args: argparse.Namespace, config: MuatConfig) -> int:
    did = Did(args.did)
    async with _local_pds(args.pds, "removal", config) as pds:
        backend = pds.backend
        if not isinstance(backend, FileBackend):
            raise CommandError("Account removal requires a file:// server")
        if await backend.get_account(did) is None:
            raise CommandError(f"Account {did} not found")

        suffix = " and all its records" if args.delete_records else ""
        if not args.force and not _confirm(f"This will remove account {did}{suffix}. Continue?"):
            print("Aborted.", file=sys.stderr)
            return 0

        await backend.remove_account(did, delete_records=args.delete_records)
    _success(f"Account {did} removed")
    return 0


async def cmd_create_record(args: argparse.Namespace, config: MuatConfig) -> int:
    collection = Nsid(args.collection)
    value = RecordValue.with_type(args.record_type, _read_json_input(args.json))
    session = await _require_session(config)
    try:
        uri = await session.create_record(collection, value)
    finally:
        await session.close()
    print(uri)
    _success(f"Created record: {uri}")
    return 0


async def cmd_get_record(args: argparse.Namespace, config: MuatConfig) -> int:
    session = await _require_session(config)
    try:
        record = await session.get_record(_record_uri(args, session))
    finally:
        await session.close()
    _json(record.value.to_dict(), pretty=True)
    return 0


async def cmd_list_records(args: argparse.Namespace, config: MuatConfig) -> int:
    session = await _require_session(config)
    try:
        repo = Did(args.repo) if args.repo else session.did
        page = await session.list_records(repo, Nsid(args.collection), args.limit, args.cursor)
    finally:
        await session.close()

    if not page.records:
        print("No records found.", file=sys.stderr)
        return 0
    for record in page.records:
        if args.pretty:
            _json(record.value.to_dict(), pretty=True)
        else:
            _json(record.to_dict())
    if page.cursor is not None:
        print(f"\nNext cursor: {page.cursor}", file=sys.stderr)
    return 0


async def cmd_delete_record(args: argparse.Namespace, config: MuatConfig) -> int:
    session = await _require_session(config)
    try:
        uri = _record_uri(args, session)
        await session.delete_record(uri)
    finally:
        await session.close()
    _success(f"Deleted record: {uri}")
    return 0


async def cmd_subscribe(args: argparse.Namespace, config: MuatConfig) -> int:
    session = await _require_session(config)
    metrics_server = await start_metrics_server(config.metrics)
    if config.metrics.enabled:
        logger.info(
            "metrics_server_started",
            host=config.metrics.host,
            port=config.metrics.port,
            path=config.metrics.path,
        )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async def consume() -> None:
        async for event in stream:
            if matches_filter(event, args.filter):
                print_event(event, as_json=args.json)

    try:
        print("Connecting to firehose...", file=sys.stderr)
        if args.cursor is not None:
            stream = await session.firehose_from(args.cursor)
        else:
            stream = await session.firehose()
        print("Press Ctrl+C to stop.\n", file=sys.stderr)

        async with stream:
            consumer = asyncio.create_task(consume())
            stopper = asyncio.create_task(stop.wait())
            done, _ = await asyncio.wait({consumer, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for task in (consumer, stopper):
                task.cancel()
            if consumer in done:
                consumer.result()
            else:
                logger.info("shutdown_signal")
    finally:
        await session.close()
        await metrics_server.stop()
    return 0


Command = Callable[[argparse.Namespace, MuatConfig], Awaitable[int]]

COMMANDS: dict[str, Command] = {
    "login": cmd_login,
    "logout": cmd_logout,
    "whoami": cmd_whoami,
    "refresh-token": cmd_refresh_token,
    "create-account": cmd_create_account,
    "remove-account": cmd_remove_account,
    "create-record": cmd_create_record,
    "get-record": cmd_get_record,
    "list-records": cmd_list_records,
    "delete-record": cmd_delete_record,
    "subscribe": cmd_subscribe,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_record_address(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("uri", nargs="?", help="AT URI (at://<did>/<collection>/<rkey>)")
    parser.add_argument("--repo", help="Repository DID (default: session DID)")
    parser.add_argument("--collection", help="Collection NSID (alternative to URI)")
    parser.add_argument("--rkey", help="Record key (alternative to URI)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="muat",
        description="AT Protocol PDS exploration tool",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("--config", type=Path, help="YAML configuration file")

    commands = parser.add_subparsers(dest="command", required=True)
    pds = commands.add_parser("pds", help="PDS (Personal Data Server) operations")
    sub = pds.add_subparsers(dest="pds_command", required=True)

    login = sub.add_parser("login", help="Create a session (login)")
    login.add_argument("--identifier", required=True, help="Handle or DID")
    login.add_argument("--password", required=True, help="Account or app password")
    login.add_argument(
        "--pds", default=DEFAULT_REMOTE_PDS, help=f"PDS URL (default: {DEFAULT_REMOTE_PDS})"
    )

    sub.add_parser("logout", help="Forget the stored session")
    sub.add_parser("whoami", help="Display the active session")
    sub.add_parser("refresh-token", help="Refresh the session tokens")

    create_account = sub.add_parser(
        "create-account", help="Create an account (local PDS only)"
    )
    create_account.add_argument("handle", help="Handle for the new account (e.g. alice.local)")
    create_account.add_argument("--password", required=True, help="Password for the new account")
    create_account.add_argument(
        "--pds", default=DEFAULT_LOCAL_PDS, help=f"PDS URL (default: {DEFAULT_LOCAL_PDS})"
    )

    remove_account = sub.add_parser("remove-account", help="Remove an account (local PDS only)")
    remove_account.add_argument("did", help="DID of the account to remove")
    remove_account.add_argument(
        "--delete-records", action="store_true", help="Also delete all its records"
    )
    remove_account.add_argument(
        "-f", "--force", action="store_true", help="Skip the confirmation prompt"
    )
    remove_account.add_argument(
        "--pds", default=DEFAULT_LOCAL_PDS, help=f"PDS URL (default: {DEFAULT_LOCAL_PDS})"
    )

    create_record = sub.add_parser("create-record", help="Create a record in a collection")
    create_record.add_argument("collection", help="Collection NSID (e.g. org.example.record)")
    create_record.add_argument(
        "-t", "--type", dest="record_type", required=True, help="Record $type"
    )
    create_record.add_argument("--json", help="JSON file with the record body (- for stdin)")

    get_record = sub.add_parser("get-record", help="Fetch a single record")
    _add_record_address(get_record)

    list_records = sub.add_parser("list-records", help="List records in a collection")
    list_records.add_argument("--repo", help="Repository DID (default: session DID)")
    list_records.add_argument("--collection", required=True, help="Collection NSID")
    list_records.add_argument("--limit", type=int, help="Maximum number of records")
    list_records.add_argument("--cursor", help="Pagination cursor")
    list_records.add_argument("--pretty", action="store_true", help="Pretty-print record values")

    delete_record = sub.add_parser("delete-record", help="Delete a record")
    _add_record_address(delete_record)

    subscribe = sub.add_parser("subscribe", help="Subscribe to repository events")
    subscribe.add_argument("--cursor", type=int, help="Resume after this sequence number")
    subscribe.add_argument("--json", action="store_true", help="Print events as JSON")
    subscribe.add_argument("--filter", help="Only commits touching paths with this prefix")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def setup_logging(level: str, *, json_logs: bool = False) -> None:
    """Install a single stderr handler on the root logger.

    ``Logger`` fields are rendered as ``key=value`` pairs, or as JSON
    object keys with *json_logs*.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if json_logs else StructuredFormatter())
    logging.root.handlers[:] = [handler]
    logging.root.setLevel(getattr(logging, level))


def load_config(path: Path | None) -> MuatConfig:
    if path is None:
        return MuatConfig()
    return MuatConfig.from_yaml(path)


async def main(argv: list[str] | None = None) -> int:
    """Parse arguments, load configuration and run one command."""
    args = parse_args(argv)
    setup_logging(args.log_level, json_logs=args.json_logs)

    try:
        config = load_config(args.config)
        return await COMMANDS[args.pds_command](args, config)
    except (CommandError, MuatError) as e:
        logger.debug("command_failed", command=args.pds_command, error=str(e))
        _failure(str(e))
        return 1
    except FileNotFoundError as e:
        _failure(str(e))
        return 1


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
