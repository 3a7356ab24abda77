"""
Identity Guard.

Resolves the calling principal for every operation and decides whether a
record is visible to or mutable by that principal. Authentication itself is
delegated to an external auth service; this module only validates the
principal it is handed or asks the configured service to turn an access
token into one.

Visibility rules:
- Owners see and mutate their own records.
- Public templates are readable by every authenticated principal.
- Everything else is reported as not found, so record existence never leaks.
"""

from __future__ import annotations

import logging
from typing import Protocol, TypeVar

import httpx

from foundry.core.errors import (
    AuthenticationError,
    NotAuthorizedError,
    NotFoundError,
    NotOwnerError,
)

logger = logging.getLogger(__name__)

# Textual forms of the anonymous identity (the IC anonymous principal and a
# plain sentinel). Neither may own records.
ANONYMOUS_PRINCIPALS = frozenset({"2vxsx-fae", "anonymous"})

MAX_PRINCIPAL_LENGTH = 128


class OwnedRecord(Protocol):
    """Anything with an id and an owning principal."""

    @property
    def id(self) -> str: ...

    @property
    def owner(self) -> str: ...


R = TypeVar("R", bound=OwnedRecord)


def require_principal(caller: str | None) -> str:
    """
    Validate a resolved caller principal.

    Args:
        caller: Principal text supplied by the transport layer

    Returns:
        The normalized principal (surrounding whitespace removed)

    Raises:
        AuthenticationError: If the caller is missing, anonymous, or malformed
    """
    if caller is None:
        raise AuthenticationError("Authentication required")
    principal = caller.strip()
    if not principal or principal in ANONYMOUS_PRINCIPALS:
        raise AuthenticationError("Authentication required")
    if len(principal) > MAX_PRINCIPAL_LENGTH:
        raise AuthenticationError("Principal identifier is too long")
    if any(ch.isspace() for ch in principal):
        raise AuthenticationError("Principal identifier may not contain whitespace")
    return principal


def is_owner(record: OwnedRecord, caller: str) -> bool:
    return record.owner == caller


def require_owned(record: R | None, caller: str, kind: str, record_id: str) -> R:
    """
    Return ``record`` if the caller owns it.

    A missing record and a record owned by someone else are indistinguishable
    to the caller: both raise NotFoundError.
    """
    if record is None or record.owner != caller:
        raise NotFoundError(kind, record_id)
    return record


def require_mutable(record: R | None, caller: str, kind: str, record_id: str, visible: bool) -> R:
    """
    Return ``record`` if the caller may mutate it.

    ``visible`` says whether the record is readable by non-owners (public
    templates). A visible record owned by someone else raises NotOwnerError;
    an invisible one raises NotFoundError.
    """
    if record is None:
        raise NotFoundError(kind, record_id)
    if record.owner != caller:
        if visible:
            raise NotOwnerError(kind, record_id)
        raise NotFoundError(kind, record_id)
    return record


def require_controller(controllers: list[str], caller: str) -> None:
    """Raise NotAuthorizedError unless ``caller`` is an administrative principal."""
    if caller not in controllers:
        raise NotAuthorizedError("Unauthorized: only controllers can perform this action")


class AuthServiceClient:
    """
    Client for the external auth service.

    The service exposes ``POST {base_url}/validate_access_token`` which takes
    ``{"access_token": "..."}`` and answers ``{"ok": "<principal>"}`` or
    ``{"err": "<reason>"}``.

    Example:
        >>> client = AuthServiceClient("https://auth.example.test")
        >>> principal = client.validate_access_token(token)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def validate_access_token(self, access_token: str) -> str:
        """
        Exchange an access token for the principal it was issued to.

        Raises:
            AuthenticationError: If the token is empty, rejected, or the
                service cannot be reached
        """
        if not access_token:
            raise AuthenticationError("Access token is required")

        try:
            response = self._client.post(
                "/validate_access_token", json={"access_token": access_token}
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Auth service call failed: {e}")
            raise AuthenticationError(f"Failed to call auth service: {e}") from e
        except ValueError as e:
            raise AuthenticationError("Auth service returned a malformed response") from e

        if not isinstance(payload, dict):
            raise AuthenticationError("Auth service returned a malformed response")
        if "err" in payload:
            raise AuthenticationError(f"Session validation failed: {payload['err']}")
        if "ok" not in payload or not isinstance(payload["ok"], str):
            raise AuthenticationError("Auth service returned a malformed response")
        return require_principal(payload["ok"])

    def close(self) -> None:
        self._client.close()
