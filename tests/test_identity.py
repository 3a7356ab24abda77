"""
Tests for the identity guard and the auth service client.
"""

import json

import httpx
import pytest

from foundry.core.errors import (
    AuthenticationError,
    NotAuthorizedError,
    NotFoundError,
    NotOwnerError,
)
from foundry.core.identity import (
    AuthServiceClient,
    require_controller,
    require_mutable,
    require_owned,
    require_principal,
)


class _Record:
    def __init__(self, record_id: str, owner: str) -> None:
        self.id = record_id
        self.owner = owner


def _auth_transport(answer: dict, status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/validate_access_token"
        body = json.loads(request.content)
        assert "access_token" in body
        return httpx.Response(status, json=answer)

    return httpx.MockTransport(handler)


class TestRequirePrincipal:
    """Tests for caller validation."""

    def test_strips_whitespace(self) -> None:
        assert require_principal("  alice ") == "alice"

    @pytest.mark.parametrize("caller", [None, "", "   ", "anonymous", "2vxsx-fae"])
    def test_missing_or_anonymous_rejected(self, caller: str | None) -> None:
        with pytest.raises(AuthenticationError, match="Authentication required"):
            require_principal(caller)

    def test_inner_whitespace_rejected(self) -> None:
        with pytest.raises(AuthenticationError, match="whitespace"):
            require_principal("al ice")

    def test_too_long_rejected(self) -> None:
        with pytest.raises(AuthenticationError, match="too long"):
            require_principal("a" * 129)


class TestOwnership:
    """Tests for visibility and mutability checks."""

    def test_owner_sees_record(self) -> None:
        record = _Record("cap-1", "alice")
        assert require_owned(record, "alice", "capture", "cap-1") is record

    def test_foreign_record_is_not_found(self) -> None:
        """A record owned by someone else looks exactly like a missing one."""
        record = _Record("cap-1", "alice")
        with pytest.raises(NotFoundError) as foreign:
            require_owned(record, "bob", "capture", "cap-1")
        with pytest.raises(NotFoundError) as missing:
            require_owned(None, "bob", "capture", "cap-1")
        assert str(foreign.value) == str(missing.value)

    def test_visible_foreign_record_is_not_owner(self) -> None:
        record = _Record("tpl-1", "alice")
        with pytest.raises(NotOwnerError):
            require_mutable(record, "bob", "template", "tpl-1", visible=True)
        with pytest.raises(NotFoundError):
            require_mutable(record, "bob", "template", "tpl-1", visible=False)

    def test_controller_check(self) -> None:
        require_controller(["admin"], "admin")
        with pytest.raises(NotAuthorizedError):
            require_controller(["admin"], "alice")


class TestAuthServiceClient:
    """Tests for access token validation against the auth service."""

    def test_ok_answer_returns_principal(self) -> None:
        client = AuthServiceClient(
            "https://auth.test/", transport=_auth_transport({"ok": "alice"})
        )
        assert client.validate_access_token("token-1") == "alice"
        client.close()

    def test_err_answer_rejected(self) -> None:
        client = AuthServiceClient(
            "https://auth.test", transport=_auth_transport({"err": "expired"})
        )
        with pytest.raises(AuthenticationError, match="expired"):
            client.validate_access_token("token-1")

    def test_http_error_rejected(self) -> None:
        client = AuthServiceClient(
            "https://auth.test", transport=_auth_transport({}, status=500)
        )
        with pytest.raises(AuthenticationError, match="Failed to call auth service"):
            client.validate_access_token("token-1")

    def test_malformed_answer_rejected(self) -> None:
        client = AuthServiceClient("https://auth.test", transport=_auth_transport({"ok": 5}))
        with pytest.raises(AuthenticationError, match="malformed"):
            client.validate_access_token("token-1")

    def test_anonymous_principal_rejected(self) -> None:
        client = AuthServiceClient(
            "https://auth.test", transport=_auth_transport({"ok": "2vxsx-fae"})
        )
        with pytest.raises(AuthenticationError):
            client.validate_access_token("token-1")

    def test_empty_token_rejected_without_call(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("auth service should not be called")

        client = AuthServiceClient("https://auth.test", transport=httpx.MockTransport(handler))
        with pytest.raises(AuthenticationError, match="required"):
            client.validate_access_token("")
