"""Bearer-token authentication for the HTTP surface."""

from __future__ import annotations

from collections.abc import Mapping

from career_assistant.exceptions import UnauthorizedError


class TokenAuthenticator:
    """Resolves ``Authorization: Bearer <token>`` headers to owner ids."""

    def __init__(self, tokens: Mapping[str, str]):
        self._tokens = dict(tokens)

    def authenticate(self, authorization: str | None) -> str:
        """Return the owner id for the header, or raise UnauthorizedError."""
        if not authorization:
            raise UnauthorizedError("Unauthorized")
        scheme, _, token = authorization.partition(" ")
        owner_id = self._tokens.get(token.strip()) if scheme.lower() == "bearer" else None
        if not owner_id:
            raise UnauthorizedError("Unauthorized")
        return owner_id
