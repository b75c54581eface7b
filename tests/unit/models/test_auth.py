"""
Unit tests for models.auth module.

Tests:
- Secrets never appear in repr() or str()
- expose() returns the raw value
- LoginResult type checking
"""

import pytest

from muat.models import AccessToken, Credentials, Did, LoginResult, RefreshToken


class TestCredentials:
    """Login credentials."""

    def test_repr_redacts_password(self):
        creds = Credentials("alice.test", "hunter2")
        assert "hunter2" not in repr(creds)
        assert "alice.test" in repr(creds)

    def test_type_checked(self):
        with pytest.raises(TypeError):
            Credentials("alice.test", None)


class TestTokens:
    """Access and refresh tokens."""

    @pytest.mark.parametrize("token_cls", [AccessToken, RefreshToken])
    def test_redacted(self, token_cls):
        token = token_cls("secret-jwt")
        assert "secret-jwt" not in repr(token)
        assert "secret-jwt" not in str(token)
        assert repr(token) == f"{token_cls.__name__}([REDACTED])"
        assert token.expose() == "secret-jwt"

    def test_equality(self):
        assert AccessToken("a") == AccessToken("a")
        assert AccessToken("a") != AccessToken("b")

    def test_frozen(self):
        token = AccessToken("a")
        with pytest.raises(AttributeError):
            token.value = "b"


class TestLoginResult:
    """Login result validation."""

    def test_valid(self):
        result = LoginResult(
            Did("did:plc:abc"), "alice.test", AccessToken("a"), RefreshToken("r")
        )
        assert result.access.expose() == "a"
        assert "secret" not in repr(
            LoginResult(Did("did:plc:abc"), "alice", AccessToken("secret"), RefreshToken("secret"))
        )

    def test_swapped_tokens_rejected(self):
        with pytest.raises(TypeError):
            LoginResult(Did("did:plc:abc"), "alice", RefreshToken("r"), AccessToken("a"))
