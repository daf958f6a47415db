"""Bearer token gate applied to every protected request."""

import logging
import secrets
from typing import Optional, Union

from neon_gateway.errors import InvalidCredential, MissingCredential, StartupError

logger = logging.getLogger("neon-gateway.auth")

BEARER_PREFIX = b"Bearer "


def extract_bearer_token(scope: dict) -> Optional[bytes]:
    """Extract the raw Bearer token bytes from request headers."""
    headers = dict(scope.get("headers", []))
    auth_header = headers.get(b"authorization", b"")
    if auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):] or None
    return None


class AuthGate:
    """Accepts a request only when it carries the configured secret exactly."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise StartupError("AuthGate requires a non-empty secret")
        self._secret = secret.encode("utf-8")

    def check_token(self, token: Optional[Union[bytes, str]]) -> None:
        if not token:
            logger.warning("Auth warning: missing token")
            raise MissingCredential()
        if isinstance(token, str):
            token = token.encode("utf-8")
        # headers arrive as raw bytes; the secret is compared in its UTF-8 form
        if not secrets.compare_digest(token, self._secret):
            logger.warning("Auth warning: invalid token")
            raise InvalidCredential()

    def check(self, scope: dict) -> None:
        """Raise MissingCredential or InvalidCredential unless the request is authorized."""
        self.check_token(extract_bearer_token(scope))
