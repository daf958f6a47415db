"""Register the gateway with the Claude desktop client."""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from neon_gateway import SERVER_NAME

logger = logging.getLogger("neon-gateway.init")

MCP_NEON_SERVER = "neon"


def claude_config_path(platform: str = sys.platform, environ: Optional[Mapping[str, str]] = None,
                       home: Optional[Path] = None) -> Path:
    """Location of claude_desktop_config.json for the given platform."""
    env = os.environ if environ is None else environ
    if platform == "win32":
        return Path(env.get("APPDATA", "")) / "Claude" / "claude_desktop_config.json"
    home = home or Path.home()
    return home / "Library" / "Application Support" / "Claude" / "claude_desktop_config.json"


def server_entry(neon_api_key: str) -> Dict[str, Any]:
    return {
        "command": SERVER_NAME,
        "args": ["start"],
        "env": {"NEON_API_KEY": neon_api_key},
    }


def write_claude_config(neon_api_key: str, config_path: Optional[Path] = None) -> Path:
    """Add or replace the neon server entry, keeping every other configured server."""
    config_path = config_path or claude_config_path()

    if not config_path.parent.exists():
        logger.info("Creating Claude config directory %s", config_path.parent)
        config_path.parent.mkdir(parents=True, exist_ok=True)

    existing: Dict[str, Any] = {"mcpServers": {}}
    if config_path.exists():
        existing = json.loads(config_path.read_text(encoding="utf-8"))

    servers = dict(existing.get("mcpServers") or {})
    if MCP_NEON_SERVER in servers:
        logger.info("Replacing existing Neon MCP config")
    servers[MCP_NEON_SERVER] = server_entry(neon_api_key)

    new_config = dict(existing)
    new_config["mcpServers"] = servers
    config_path.write_text(json.dumps(new_config, indent=2), encoding="utf-8")

    logger.info("Config written to: %s", config_path)
    logger.info("The Neon MCP server will start automatically the next time you open Claude.")
    return config_path
