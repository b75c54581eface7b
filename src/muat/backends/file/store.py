"""
Synchronous on-disk store behind the ``file://`` engine.

Directory layout under the server root::

    <root>/pds/accounts/<did dir>/account.json
    <root>/pds/repos/<did dir>/collections/<nsid>/<rkey>.json
    <root>/pds/firehose.jsonl
    <root>/pds/firehose.lock

A DID directory name is the DID with every ``:`` replaced by ``_``
(``did_plc_abc``), since Windows rejects ``:`` in path segments.

Records are written to ``<rkey>.tmp`` and renamed over ``<rkey>.json``,
so a concurrent reader sees either the previous file or the new one and
never a partial write. Every mutation appends one line to the firehose
log after the file operation has completed.

All filesystem failures surface as
[StorageIOError][muat.core.exceptions.StorageIOError]. The store is
blocking; [FileBackend][muat.backends.file.backend.FileBackend] moves each
call onto a worker thread.
"""

from __future__ import annotations

import json
import shutil
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

import xxhash

from muat.core.exceptions import (
    MuatError,
    OtherInputError,
    ProtocolError,
    StorageIOError,
)
from muat.core.logger import Logger
from muat.models.at_uri import AtUri
from muat.models.constants import FirehoseOp
from muat.models.did import Did
from muat.models.firehose import FirehoseLogEntry
from muat.models.nsid import Nsid
from muat.models.record import ListRecordsOutput, LocalAccount, Record
from muat.models.record_value import RecordValue
from muat.models.rkey import Rkey
from muat.utils.passwords import hash_password

from .firehose import FirehoseLog


CID_PREFIX: Final[str] = "bafylocal"
DEFAULT_LIST_LIMIT: Final[int] = 50

logger = Logger("muat.file.store")


def generate_rkey() -> Rkey:
    """Record key from the current time: lowercase hex of Unix microseconds."""
    return Rkey(format(time.time_ns() // 1000, "x"))


def generate_did() -> Did:
    """Fresh ``did:plc:`` identifier from 24 random hex digits."""
    return Did(f"did:plc:{uuid.uuid4().hex[:24]}")


def did_dir_name(did: Did) -> str:
    """Filesystem-safe directory name for *did*."""
    return str(did).replace(":", "_")


def content_id(data: bytes) -> str:
    """Content fingerprint of a serialized record. Not a real CID."""
    return CID_PREFIX + xxhash.xxh3_64_hexdigest(data)


@contextmanager
def _io(action: str, path: Path) -> Iterator[None]:
    try:
        yield
    except OSError as e:
        raise StorageIOError(f"cannot {action} {path}: {e}") from e


class FileStore:
    """Records, accounts and firehose log of one server root.

    Args:
        root: Directory given by the ``file://`` URL. Nothing is created
            until the first write.
        default_list_limit: Page size used when ``list_records`` gets no limit.
        scrypt_n: Cost parameter for account password hashes.
    """

    def __init__(
        self,
        root: Path,
        *,
        default_list_limit: int = DEFAULT_LIST_LIMIT,
        scrypt_n: int = 2**14,
    ) -> None:
        self.root = root
        self.pds_dir = root / "pds"
        self.accounts_dir = self.pds_dir / "accounts"
        self.repos_dir = self.pds_dir / "repos"
        self.firehose = FirehoseLog(self.pds_dir)
        self._default_list_limit = default_list_limit
        self._scrypt_n = scrypt_n

    # -- Paths ------------------------------------------------------------

    def account_dir(self, did: Did) -> Path:
        return self.accounts_dir / did_dir_name(did)

    def account_path(self, did: Did) -> Path:
        return self.account_dir(did) / "account.json"

    def repo_dir(self, did: Did) -> Path:
        return self.repos_dir / did_dir_name(did)

    def collection_dir(self, repo: Did, collection: Nsid) -> Path:
        return self.repo_dir(repo) / "collections" / str(collection)

    def record_path(self, uri: AtUri) -> Path:
        return self.collection_dir(uri.repo, uri.collection) / f"{uri.rkey}.json"

    # -- Records ----------------------------------------------------------

    def create_record(
        self,
        repo: Did,
        collection: Nsid,
        value: RecordValue,
        rkey: Rkey | None = None,
    ) -> AtUri:
        """Write a record and log a ``create`` entry.

        An existing record with the same key is replaced.
        """
        uri = AtUri(repo, collection, rkey if rkey is not None else generate_rkey())
        path = self.record_path(uri)
        tmp_path = path.with_suffix(".tmp")
        data = json.dumps(value.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")

        with _io("create", path.parent):
            path.parent.mkdir(parents=True, exist_ok=True)
        with _io("write", path):
            tmp_path.write_bytes(data)
            tmp_path.replace(path)

        self.firehose.append(uri, FirehoseOp.CREATE)
        logger.debug("record_created", uri=str(uri), size=len(data))
        return uri

    def get_record(self, uri: AtUri) -> Record:
        """Read one record.

        Raises:
            ProtocolError: 404 ``RecordNotFound`` if no such file exists.
            OtherInputError: If the stored file is not valid JSON.
            InvalidRecordValueError: If the stored object lacks ``$type``.
        """
        path = self.record_path(uri)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise ProtocolError(404, "RecordNotFound", f"Record not found: {uri}") from None
        except OSError as e:
            raise StorageIOError(f"cannot read {path}: {e}") from e
        return self._decode_record(uri, data)

    def list_records(
        self,
        repo: Did,
        collection: Nsid,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> ListRecordsOutput:
        """List a collection in ascending key order.

        The page starts at the first key strictly greater than *cursor*; a
        cursor past the last key yields an empty page. The returned cursor
        is the last key of a full page and ``None`` otherwise. Files whose
        stem is not a valid record key are skipped.
        """
        limit = self._default_list_limit if limit is None else limit
        if limit < 1:
            raise OtherInputError(f"limit must be positive, got {limit}")

        directory = self.collection_dir(repo, collection)
        try:
            names = sorted(p.name for p in directory.iterdir() if p.suffix == ".json")
        except FileNotFoundError:
            return ListRecordsOutput()
        except OSError as e:
            raise StorageIOError(f"cannot list {directory}: {e}") from e

        stems = [name.removesuffix(".json") for name in names]
        if cursor is not None:
            stems = [stem for stem in stems if stem > cursor]

        records: list[Record] = []
        for stem in stems:
            if len(records) >= limit:
                break
            if not Rkey.is_valid(stem):
                logger.debug("record_skipped", directory=str(directory), name=stem)
                continue
            uri = AtUri(repo, collection, Rkey(stem))
            try:
                records.append(self.get_record(uri))
            except ProtocolError:
                # removed between listing and reading
                continue

        next_cursor = str(records[-1].uri.rkey) if len(records) == limit else None
        return ListRecordsOutput(records=tuple(records), cursor=next_cursor)

    def delete_record(self, uri: AtUri) -> bool:
        """Remove a record and log a ``delete`` entry.

        Returns:
            ``True`` if a file was removed. Deleting a missing record is a
            silent no-op and appends nothing to the log.
        """
        path = self.record_path(uri)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(f"cannot delete {path}: {e}") from e

        self.firehose.append(uri, FirehoseOp.DELETE)
        logger.debug("record_deleted", uri=str(uri))
        return True

    @staticmethod
    def _decode_record(uri: AtUri, data: bytes) -> Record:
        try:
            obj = json.loads(data)
        except ValueError as e:
            raise OtherInputError(f"stored record {uri} is not valid JSON: {e}") from e
        return Record(uri=uri, cid=content_id(data), value=RecordValue(obj))

    # -- Accounts ---------------------------------------------------------

    def create_account(self, handle: str, password: str | None) -> LocalAccount:
        """Create an account with a fresh DID.

        Raises:
            OtherInputError: If *handle* is empty or *password* is missing.
            ProtocolError: 400 ``HandleNotAvailable`` if the handle is taken.
        """
        if not handle:
            raise OtherInputError("handle cannot be empty")
        if not password:
            raise OtherInputError("password is required for local accounts")
        if self.find_account_by_handle(handle) is not None:
            raise ProtocolError(400, "HandleNotAvailable", f"Handle already taken: {handle}")

        account = LocalAccount(
            did=generate_did(),
            handle=handle,
            created_at=datetime.now(UTC).isoformat(),
            password_hash=hash_password(password, n=self._scrypt_n),
        )
        path = self.account_path(account.did)
        with _io("write", path):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(account.to_dict(), indent=2), encoding="utf-8")

        logger.info("account_created", did=str(account.did), handle=handle)
        return account

    def get_account(self, did: Did) -> LocalAccount | None:
        """Load an account, or ``None`` if it does not exist."""
        return self._read_account(self.account_path(did))

    @staticmethod
    def _read_account(path: Path) -> LocalAccount | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageIOError(f"cannot read {path}: {e}") from e
        try:
            return LocalAccount.from_dict(json.loads(text))
        except ValueError as e:
            raise OtherInputError(f"account file {path} is not valid JSON: {e}") from e

    def list_accounts(self) -> list[LocalAccount]:
        """All readable accounts, ordered by DID. Broken entries are skipped.

        The DID is taken from each ``account.json``, not from the directory name.
        """
        try:
            entries = sorted(self.accounts_dir.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageIOError(f"cannot list {self.accounts_dir}: {e}") from e

        accounts: list[LocalAccount] = []
        for entry in entries:
            try:
                account = self._read_account(entry / "account.json")
            except MuatError as e:
                logger.debug("account_skipped", path=str(entry), error=str(e))
                continue
            if account is not None:
                accounts.append(account)
        accounts.sort(key=lambda a: str(a.did))
        return accounts

    def find_account_by_handle(self, handle: str) -> LocalAccount | None:
        for account in self.list_accounts():
            if account.handle == handle:
                return account
        return None

    def remove_account(self, did: Did, *, delete_records: bool = False) -> None:
        """Delete an account directory, and its repository when *delete_records*.

        Removing records this way does not write firehose entries.

        Raises:
            ProtocolError: 404 ``AccountNotFound`` if there is no such account.
        """
        account_dir = self.account_dir(did)
        if not account_dir.is_dir():
            raise ProtocolError(404, "AccountNotFound", f"Account not found: {did}")

        with _io("remove", account_dir):
            shutil.rmtree(account_dir)

        repo_dir = self.repo_dir(did)
        if delete_records and repo_dir.exists():
            with _io("remove", repo_dir):
                shutil.rmtree(repo_dir)

        logger.info("account_removed", did=str(did), delete_records=delete_records)

    # -- Firehose ---------------------------------------------------------

    def read_firehose(self) -> list[FirehoseLogEntry]:
        """Every entry currently in the log, oldest first."""
        return self.firehose.read_all()
