"""Process configuration read from the environment at startup."""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from neon_gateway.errors import StartupError

logger = logging.getLogger("neon-gateway.config")

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_NEON_API_BASE_URL = "https://console.neon.tech/api/v2"
DEFAULT_NEON_API_TIMEOUT = 30.0

BINDING_STREAM = "stream"
BINDING_SYNC = "sync"
KNOWN_BINDINGS = (BINDING_STREAM, BINDING_SYNC)


@dataclass(frozen=True)
class Settings:
    auth_token: str
    neon_api_key: str = ""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    neon_api_base_url: str = DEFAULT_NEON_API_BASE_URL
    neon_api_timeout: float = DEFAULT_NEON_API_TIMEOUT
    bindings: Tuple[str, ...] = KNOWN_BINDINGS
    log_level: str = "INFO"

    @property
    def streaming_enabled(self) -> bool:
        return BINDING_STREAM in self.bindings

    @property
    def sync_enabled(self) -> bool:
        return BINDING_SYNC in self.bindings

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Raises StartupError when AUTH_TOKEN is missing or a value cannot be
        parsed. The gateway never runs unauthenticated.
        """
        env = os.environ if environ is None else environ

        auth_token = env.get("AUTH_TOKEN", "").strip()
        if not auth_token:
            raise StartupError("Environment variable 'AUTH_TOKEN' is not set.")

        neon_api_key = env.get("NEON_API_KEY", "").strip()
        if not neon_api_key:
            logger.warning("NEON_API_KEY environment variable is not set. Upstream calls will fail.")

        return cls(
            auth_token=auth_token,
            neon_api_key=neon_api_key,
            host=env.get("HOST", DEFAULT_HOST),
            port=_parse_number("PORT", env.get("PORT"), DEFAULT_PORT, int),
            neon_api_base_url=env.get("NEON_API_BASE_URL", DEFAULT_NEON_API_BASE_URL).rstrip("/"),
            neon_api_timeout=_parse_number(
                "NEON_API_TIMEOUT", env.get("NEON_API_TIMEOUT"), DEFAULT_NEON_API_TIMEOUT, float
            ),
            bindings=parse_bindings(env.get("GATEWAY_BINDINGS")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )


def _parse_number(name, raw, default, cast):
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise StartupError(f"Environment variable '{name}' must be a number, got {raw!r}") from None
    if value <= 0:
        raise StartupError(f"Environment variable '{name}' must be positive, got {raw!r}")
    return value


def parse_bindings(raw: Optional[str]) -> Tuple[str, ...]:
    """Parse a comma separated binding list such as ``stream,sync``."""
    if raw is None or raw.strip() == "":
        return KNOWN_BINDINGS
    names = tuple(dict.fromkeys(part.strip().lower() for part in raw.split(",") if part.strip()))
    unknown = [name for name in names if name not in KNOWN_BINDINGS]
    if unknown:
        raise StartupError(
            f"Unknown binding(s) in GATEWAY_BINDINGS: {', '.join(unknown)} "
            f"(expected any of: {', '.join(KNOWN_BINDINGS)})"
        )
    if not names:
        raise StartupError("GATEWAY_BINDINGS must enable at least one binding")
    return names
