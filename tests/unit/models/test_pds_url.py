"""
Unit tests for models.pds_url module.

Tests:
- Network addresses (HTTPS, loopback HTTP, normalization)
- File addresses (absolute and relative roots)
- Rejected addresses
- XRPC endpoint construction
"""

from pathlib import Path

import pytest

from muat.core.exceptions import InvalidPdsUrlError
from muat.models import PdsUrl


class TestNetworkUrls:
    """https:// and loopback http:// addresses."""

    def test_https(self):
        pds = PdsUrl("https://bsky.social")
        assert pds.scheme == "https"
        assert pds.host == "bsky.social"
        assert pds.is_network
        assert not pds.is_local
        assert pds.to_file_path() is None

    def test_trailing_slash_normalized(self):
        assert str(PdsUrl("https://bsky.social/")) == "https://bsky.social"
        assert PdsUrl("https://bsky.social/") == PdsUrl("https://bsky.social")

    def test_host_lowercased(self):
        assert PdsUrl("https://BSKY.Social").host == "bsky.social"

    def test_port(self):
        pds = PdsUrl("https://pds.example:8443")
        assert pds.port == 8443

    @pytest.mark.parametrize(
        "url", ["http://localhost:2583", "http://127.0.0.1:2583", "http://[::1]:2583"]
    )
    def test_http_loopback_allowed(self, url):
        assert PdsUrl(url).scheme == "http"

    def test_xrpc_url(self):
        pds = PdsUrl("https://bsky.social/")
        assert (
            pds.xrpc_url("com.atproto.server.createSession")
            == "https://bsky.social/xrpc/com.atproto.server.createSession"
        )


class TestFileUrls:
    """file:// addresses."""

    def test_absolute(self):
        pds = PdsUrl("file:///var/lib/pds")
        assert pds.is_local
        assert not pds.is_network
        assert pds.to_file_path() == Path("/var/lib/pds")

    def test_relative_current(self):
        assert PdsUrl("file://./pds").to_file_path() == Path("pds")

    def test_relative_parent(self):
        assert PdsUrl("file://../pds").to_file_path() == Path("../pds")


class TestRejected:
    """Invalid addresses raise InvalidPdsUrlError."""

    @pytest.mark.parametrize(
        ("url", "reason"),
        [
            ("bsky.social", "absolute URL"),
            ("http://example.com", "must use HTTPS"),
            ("ftp://example.com", "must use HTTPS"),
            ("file://", "must have a path"),
        ],
    )
    def test_invalid(self, url, reason):
        with pytest.raises(InvalidPdsUrlError, match=reason):
            PdsUrl(url)

    def test_non_string(self):
        with pytest.raises(TypeError):
            PdsUrl(None)
