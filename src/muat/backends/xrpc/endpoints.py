"""XRPC method identifiers used by the network engine."""

from typing import Final


CREATE_SESSION: Final[str] = "com.atproto.server.createSession"
REFRESH_SESSION: Final[str] = "com.atproto.server.refreshSession"
GET_SESSION: Final[str] = "com.atproto.server.getSession"
CREATE_ACCOUNT: Final[str] = "com.atproto.server.createAccount"
DELETE_ACCOUNT: Final[str] = "com.atproto.server.deleteAccount"

LIST_RECORDS: Final[str] = "com.atproto.repo.listRecords"
GET_RECORD: Final[str] = "com.atproto.repo.getRecord"
CREATE_RECORD: Final[str] = "com.atproto.repo.createRecord"
DELETE_RECORD: Final[str] = "com.atproto.repo.deleteRecord"

SUBSCRIBE_REPOS: Final[str] = "com.atproto.sync.subscribeRepos"
