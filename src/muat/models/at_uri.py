"""Resource URI addressing one record: ``at://<did>/<nsid>/<rkey>``."""

from __future__ import annotations

from dataclasses import dataclass

from muat.core.exceptions import InvalidAtUriError, InvalidInputError

from ._validation import validate_instance
from .did import Did
from .nsid import Nsid
from .rkey import Rkey


@dataclass(frozen=True, slots=True)
class AtUri:
    """Record address composed of an owner, a collection and a key.

    Constructing from already-validated parts never fails. Parsing a string
    with [parse()][muat.models.at_uri.AtUri.parse] re-validates every
    component and reports any failure as an
    [InvalidAtUriError][muat.core.exceptions.InvalidAtUriError].

    Examples:
        ```python
        uri = AtUri.parse("at://did:plc:abc/app.bsky.feed.post/3k2a")
        uri.repo          # Did('did:plc:abc')
        uri.rkey.value    # '3k2a'
        AtUri(uri.repo, uri.collection, Rkey("other"))
        ```
    """

    repo: Did
    collection: Nsid
    rkey: Rkey

    PREFIX = "at://"

    def __post_init__(self) -> None:
        validate_instance(self.repo, Did, "repo")
        validate_instance(self.collection, Nsid, "collection")
        validate_instance(self.rkey, Rkey, "rkey")

    @classmethod
    def parse(cls, value: str) -> AtUri:
        """Parse and validate an ``at://`` URI string.

        Raises:
            InvalidAtUriError: If the prefix, shape, or any component is invalid.
        """
        validate_instance(value, str, "value")
        if not value.startswith(cls.PREFIX):
            raise InvalidAtUriError(value, "must start with 'at://'")

        parts = value[len(cls.PREFIX) :].split("/", 2)
        if len(parts) != 3:  # noqa: PLR2004
            raise InvalidAtUriError(value, "must have format 'at://<repo>/<collection>/<rkey>'")
        raw_repo, raw_collection, raw_rkey = parts

        try:
            repo = Did(raw_repo)
        except InvalidInputError:
            raise InvalidAtUriError(value, f"invalid DID: {raw_repo}") from None
        try:
            collection = Nsid(raw_collection)
        except InvalidInputError:
            raise InvalidAtUriError(value, f"invalid NSID: {raw_collection}") from None
        try:
            rkey = Rkey(raw_rkey)
        except InvalidInputError:
            raise InvalidAtUriError(value, f"invalid rkey: {raw_rkey}") from None

        return cls(repo, collection, rkey)

    def __str__(self) -> str:
        return f"{self.PREFIX}{self.repo}/{self.collection}/{self.rkey}"
