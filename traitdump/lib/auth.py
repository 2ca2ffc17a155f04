"""Authentication for the graph query endpoint.

The TraitBank proxy expects ``Authorization: JWT <token>``. Bearer tokens
and unauthenticated endpoints (local test servers) are also supported.

Token values may use ${VAR_NAME} references, expanded at request time so a
config file can name the variable rather than hold the secret.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from traitdump.lib.env import expand_env_vars

logger = logging.getLogger(__name__)

__all__ = [
    "AuthType",
    "AuthConfig",
    "build_auth_headers",
    "read_token_file",
]


class AuthType(Enum):
    NONE = "none"
    JWT = "jwt"
    BEARER = "bearer"

    @property
    def scheme(self) -> Optional[str]:
        """Word that precedes the token in the Authorization header."""
        return {"jwt": "JWT", "bearer": "Bearer"}.get(self.value)


@dataclass(frozen=True)
class AuthConfig:
    """Credentials for the query endpoint.

    Examples:
        AuthConfig(token="${TRAITBANK_TOKEN}")
        AuthConfig(auth_type=AuthType.BEARER, token="abc")
        AuthConfig(auth_type=AuthType.NONE)
    """

    auth_type: AuthType = AuthType.JWT
    token: Optional[str] = None

    def __post_init__(self) -> None:
        if self.auth_type.scheme and not self.token:
            raise ValueError(f"{self.auth_type.value} authentication needs a token")

    def authorization(self) -> Optional[str]:
        """Authorization header value, or None for an open endpoint.

        Raises:
            KeyError: If the token names an unset environment variable
            ValueError: If the token expands to nothing
        """
        scheme = self.auth_type.scheme
        if scheme is None:
            return None
        token = expand_env_vars(self.token or "", strict=True).strip()
        if not token:
            raise ValueError("Token is empty after expanding environment variables")
        return f"{scheme} {token}"


def read_token_file(path: str) -> str:
    """Token stored in a file such as ~/.eol/api.token, whitespace stripped."""
    return Path(path).expanduser().read_text(encoding="utf-8").strip()


def build_auth_headers(
    config: Optional[AuthConfig],
    *,
    extra_headers: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Request headers for a query: JSON accept, credentials, then extras."""
    headers: Dict[str, str] = {"Accept": "application/json"}

    authorization = config.authorization() if config is not None else None
    if authorization:
        headers["Authorization"] = authorization
        logger.debug("Using %s authentication", config.auth_type.value)
    else:
        logger.debug("Querying without credentials")

    for name, value in (extra_headers or {}).items():
        headers[name] = expand_env_vars(value)

    return headers
