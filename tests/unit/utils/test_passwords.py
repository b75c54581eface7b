"""
Unit tests for utils.passwords module.
"""

import pytest

from muat.utils import hash_password, verify_password


N = 2**4


class TestPasswords:
    """Scrypt hashing and verification."""

    def test_hash_format(self):
        encoded = hash_password("hunter2", n=N)
        parts = encoded.split("$")
        assert parts[0] == "scrypt"
        assert parts[1:4] == ["16", "8", "1"]
        assert "hunter2" not in encoded

    def test_verify(self):
        encoded = hash_password("hunter2", n=N)
        assert verify_password("hunter2", encoded)
        assert not verify_password("hunter3", encoded)

    def test_salted(self):
        assert hash_password("same", n=N) != hash_password("same", n=N)

    @pytest.mark.parametrize(
        "encoded",
        [
            "",
            "plain-text",
            "bcrypt$16$8$1$AAAA$AAAA",
            "scrypt$x$8$1$AAAA$AAAA",
            "scrypt$16$8$1$not base64!$AAAA",
            "scrypt$15$8$1$AAAA$AAAA",
        ],
    )
    def test_malformed_never_matches(self, encoded):
        assert not verify_password("anything", encoded)
