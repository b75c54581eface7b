"""
Unit tests for the command-line interface (__main__ module).

Tests:
- Argument parsing and defaults
- Event rendering and path filtering
- Logging setup
- File-engine commands end to end through main()
- Error reporting with exit code 1
"""

import io
import json
import logging
from pathlib import Path

import pytest

from muat.__main__ import (
    COMMANDS,
    DEFAULT_LOCAL_PDS,
    DEFAULT_REMOTE_PDS,
    build_parser,
    format_event,
    main,
    matches_filter,
    parse_args,
    print_event,
    setup_logging,
)
from muat.core.logger import JsonFormatter, StructuredFormatter
from muat.models import (
    CommitAction,
    CommitEvent,
    CommitOperation,
    HandleEvent,
    IdentityEvent,
    InfoEvent,
    UnknownEvent,
)


COMMIT = CommitEvent(
    repo="did:plc:abc",
    rev="r1",
    seq=3,
    time="2025-01-01T00:00:00+00:00",
    ops=(
        CommitOperation("org.test.record/k1", CommitAction.CREATE),
        CommitOperation("org.other.thing/k2", CommitAction.DELETE),
    ),
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() replaces the root handlers; put them back after each test."""
    handlers = logging.root.handlers[:]
    level = logging.root.level
    yield
    logging.root.handlers[:] = handlers
    logging.root.setLevel(level)


@pytest.fixture
def workspace(tmp_path):
    """Config file, session path and file:// server address inside tmp_path."""
    session_path = tmp_path / "session.json"
    config_path = tmp_path / "muat.yaml"
    config_path.write_text(
        "file:\n"
        "  scrypt_n: 16\n"
        "  poll_interval: 0.05\n"
        "session_store:\n"
        f"  path: {session_path}\n"
    )
    return {
        "config": str(config_path),
        "session": session_path,
        "pds": f"file://{tmp_path / 'pds'}",
        "dir": tmp_path,
    }


@pytest.fixture
def run(workspace):
    async def invoke(*argv: str) -> int:
        return await main(["--config", workspace["config"], "pds", *argv])

    return invoke


def _field(output: str, label: str) -> str:
    for line in output.splitlines():
        if line.startswith(f"{label}: "):
            return line.split(": ", 1)[1]
    raise AssertionError(f"{label} not found in {output!r}")


async def _account_and_login(run, workspace, capsys) -> str:
    code = await run(
        "create-account", "alice.local", "--password", "pw", "--pds", workspace["pds"]
    )
    assert code == 0
    did = _field(capsys.readouterr().out, "DID")
    assert (
        await run(
            "login", "--identifier", "alice.local", "--password", "pw", "--pds", workspace["pds"]
        )
        == 0
    )
    capsys.readouterr()
    return did


# =============================================================================
# Argument parsing
# =============================================================================


class TestParser:
    """Subcommands and defaults."""

    def test_every_command_has_a_parser(self):
        parser = build_parser()
        pds = parser._subparsers._group_actions[0].choices["pds"]
        choices = pds._subparsers._group_actions[0].choices
        assert set(choices) == set(COMMANDS)

    def test_login_defaults_to_remote(self):
        args = parse_args(["pds", "login", "--identifier", "a", "--password", "b"])
        assert args.pds == DEFAULT_REMOTE_PDS
        assert args.log_level == "WARNING"
        assert args.config is None

    def test_create_account_defaults_to_local(self):
        args = parse_args(["pds", "create-account", "alice.local", "--password", "pw"])
        assert args.pds == DEFAULT_LOCAL_PDS

    def test_global_options(self):
        args = parse_args(
            ["--log-level", "DEBUG", "--json-logs", "--config", "c.yaml", "pds", "whoami"]
        )
        assert args.log_level == "DEBUG"
        assert args.json_logs
        assert args.config == Path("c.yaml")

    def test_subscribe_options(self):
        args = parse_args(["pds", "subscribe", "--cursor", "5", "--json", "--filter", "org."])
        assert (args.cursor, args.json, args.filter) == (5, True, "org.")

    def test_create_record_requires_type(self):
        with pytest.raises(SystemExit):
            parse_args(["pds", "create-record", "org.test.record"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args(["pds"])


# =============================================================================
# Event output
# =============================================================================


class TestEventOutput:
    """Rendering, filtering and routing of subscription events."""

    def test_format_commit(self):
        assert format_event(COMMIT) == (
            "COMMIT did:plc:abc 2 ops @ seq 3\n"
            "  CREATE org.test.record/k1\n"
            "  DELETE org.other.thing/k2"
        )

    @pytest.mark.parametrize(
        ("event", "expected"),
        [
            (IdentityEvent("did:plc:abc", 4, "t"), "IDENTITY did:plc:abc @ seq 4"),
            (
                HandleEvent("did:plc:abc", "alice.test", 5, "t"),
                "HANDLE did:plc:abc -> alice.test @ seq 5",
            ),
            (InfoEvent("OutdatedCursor", "too old"), "INFO OutdatedCursor too old"),
            (InfoEvent("OutdatedCursor"), "INFO OutdatedCursor"),
            (UnknownEvent("binary:a2"), "UNKNOWN binary:a2"),
        ],
    )
    def test_format_other(self, event, expected):
        assert format_event(event) == expected

    def test_filter(self):
        assert matches_filter(COMMIT, None)
        assert matches_filter(COMMIT, "org.other.")
        assert not matches_filter(COMMIT, "com.example.")
        assert matches_filter(InfoEvent("x"), "com.example.")

    def test_print_commit_json(self, capsys):
        print_event(COMMIT, as_json=True)
        data = json.loads(capsys.readouterr().out)
        assert data["ops"][0] == {"path": "org.test.record/k1", "action": "create", "cid": None}

    def test_print_info_text_goes_to_stderr(self, capsys):
        print_event(InfoEvent("OutdatedCursor"), as_json=False)
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "INFO OutdatedCursor" in captured.err

    def test_print_unknown_json_dropped(self, capsys):
        print_event(UnknownEvent("binary:00"), as_json=True)
        captured = capsys.readouterr()
        assert captured.out == captured.err == ""


# =============================================================================
# Logging
# =============================================================================


class TestSetupLogging:
    """Root logger configuration."""

    def test_text(self):
        setup_logging("INFO")
        assert logging.root.level == logging.INFO
        assert len(logging.root.handlers) == 1
        assert isinstance(logging.root.handlers[0].formatter, StructuredFormatter)

    def test_json(self):
        setup_logging("DEBUG", json_logs=True)
        assert isinstance(logging.root.handlers[0].formatter, JsonFormatter)


# =============================================================================
# Commands
# =============================================================================


class TestAccountCommands:
    """Account creation, login and session commands."""

    async def test_login_whoami_logout(self, run, workspace, capsys):
        did = await _account_and_login(run, workspace, capsys)
        assert workspace["session"].exists()

        assert await run("whoami") == 0
        out = capsys.readouterr().out
        assert _field(out, "DID") == did
        assert _field(out, "Backend") == "file"

        assert await run("refresh-token") == 0
        assert "Session refreshed successfully" in capsys.readouterr().out

        assert await run("logout") == 0
        assert "Logged out" in capsys.readouterr().out
        assert not workspace["session"].exists()

        assert await run("logout") == 0
        assert "No active session." in capsys.readouterr().err

    async def test_whoami_without_session(self, run, capsys):
        assert await run("whoami") == 1
        assert "No active session" in capsys.readouterr().err

    async def test_login_wrong_password(self, run, workspace, capsys):
        await run("create-account", "alice.local", "--password", "pw", "--pds", workspace["pds"])
        code = await run(
            "login", "--identifier", "alice.local", "--password", "nope", "--pds", workspace["pds"]
        )
        assert code == 1
        assert "✗" in capsys.readouterr().err
        assert not workspace["session"].exists()

    async def test_create_account_remote_rejected(self, run, capsys):
        code = await run(
            "create-account", "alice.test", "--password", "pw", "--pds", "https://pds.example"
        )
        assert code == 1
        assert "not supported" in capsys.readouterr().err

    async def test_remove_account(self, run, workspace, capsys):
        did = await _account_and_login(run, workspace, capsys)
        assert await run("remove-account", did, "--force", "--pds", workspace["pds"]) == 0
        assert f"Account {did} removed" in capsys.readouterr().out

        assert await run("remove-account", did, "--force", "--pds", workspace["pds"]) == 1
        assert "not found" in capsys.readouterr().err

    async def test_remove_account_aborted(self, run, workspace, capsys, monkeypatch):
        did = await _account_and_login(run, workspace, capsys)
        monkeypatch.setattr("sys.stdin", io.StringIO("n\n"))
        assert await run("remove-account", did, "--pds", workspace["pds"]) == 0
        assert "Aborted." in capsys.readouterr().err

        assert await run("whoami") == 0


class TestRecordCommands:
    """Record commands against the stored session."""

    async def test_record_lifecycle(self, run, workspace, capsys):
        did = await _account_and_login(run, workspace, capsys)
        body = workspace["dir"] / "note.json"
        body.write_text(json.dumps({"text": "hello"}))

        code = await run(
            "create-record", "org.test.record", "-t", "org.test.record", "--json", str(body)
        )
        assert code == 0
        uri = capsys.readouterr().out.splitlines()[0]
        assert uri.startswith(f"at://{did}/org.test.record/")

        assert await run("get-record", uri) == 0
        assert json.loads(capsys.readouterr().out) == {"$type": "org.test.record", "text": "hello"}

        assert await run("list-records", "--collection", "org.test.record") == 0
        listed = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [r["uri"] for r in listed] == [uri]

        rkey = uri.rsplit("/", 1)[1]
        assert await run("delete-record", "--collection", "org.test.record", "--rkey", rkey) == 0
        assert f"Deleted record: {uri}" in capsys.readouterr().out

        assert await run("list-records", "--collection", "org.test.record") == 0
        assert "No records found." in capsys.readouterr().err

    async def test_create_record_invalid_json(self, run, workspace, capsys):
        await _account_and_login(run, workspace, capsys)
        body = workspace["dir"] / "bad.json"
        body.write_text("{not json")
        code = await run(
            "create-record", "org.test.record", "-t", "org.test.record", "--json", str(body)
        )
        assert code == 1
        assert "Invalid JSON" in capsys.readouterr().err

    async def test_get_record_needs_address(self, run, workspace, capsys):
        await _account_and_login(run, workspace, capsys)
        assert await run("get-record", "--collection", "org.test.record") == 1
        assert "Either a URI" in capsys.readouterr().err

    async def test_get_record_missing(self, run, workspace, capsys):
        did = await _account_and_login(run, workspace, capsys)
        assert await run("get-record", f"at://{did}/org.test.record/nope") == 1
        assert capsys.readouterr().err.startswith("✗")


class TestConfigErrors:
    """Configuration problems reported before any command runs."""

    async def test_missing_config_file(self, tmp_path, capsys):
        code = await main(["--config", str(tmp_path / "absent.yaml"), "pds", "whoami"])
        assert code == 1
        assert "absent.yaml" in capsys.readouterr().err

    async def test_invalid_config(self, tmp_path, capsys):
        config = tmp_path / "bad.yaml"
        config.write_text("file:\n  scrypt_n: 3\n")
        assert await main(["--config", str(config), "pds", "whoami"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err
