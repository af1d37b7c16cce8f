"""MCP server entry point for Sony WH-1000XM4 headphones.

Exposes tools and resources via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from mcp.server.fastmcp import FastMCP

from .config import XM4Config, load_config
from .models.state import AncMode
from .protocol.commands import MODE_NAMES, mode_from_name
from .session import HeadphoneSession

logger = logging.getLogger(__name__)

CONFIG_ENV = "SONY_XM4_CONFIG"
ADDRESS_ENV = "SONY_XM4_ADDRESS"
AUTO_CONNECT_DELAY_S = 1.0

# Global session state
_config: XM4Config = XM4Config()
_session: HeadphoneSession | None = None


def _load_settings() -> XM4Config:
    cfg = load_config(os.environ.get(CONFIG_ENV))
    address = os.environ.get(ADDRESS_ENV)
    if address:
        cfg.device.address = address
    return cfg


def _ensure_session() -> HeadphoneSession:
    global _session
    if _session is None:
        _session = HeadphoneSession(config=_config.session, discovery=_config.discovery)
    return _session


def _get_session() -> HeadphoneSession:
    """Get the connected session, raising if not connected."""
    if _session is None or not _session.is_connected:
        raise RuntimeError(
            "Not connected to headphones. Use the 'connect' tool first."
        )
    return _session


async def _auto_connect() -> None:
    await asyncio.sleep(AUTO_CONNECT_DELAY_S)
    session = _ensure_session()
    if not await session.connect(_config.device.address, _config.device.channel):
        logger.warning("Auto-connect failed: %s", session.connection_error)


@asynccontextmanager
async def lifespan(_server: FastMCP) -> AsyncIterator[None]:
    """Auto-connect on startup when configured; disconnect on shutdown."""
    task = None
    if _config.device.auto_connect and _config.device.address:
        task = asyncio.create_task(_auto_connect())
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
        if _session is not None:
            _session.disconnect()


mcp = FastMCP(
    "sony-xm4",
    instructions="MCP server for Sony WH-1000XM4 headphones (noise cancelling, battery, DSEE)",
    lifespan=lifespan,
)


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
async def connect(address: str | None = None, channel: int | None = None) -> dict[str, Any]:
    """Open the RFCOMM control channel to the headphones.

    Args:
        address: Bluetooth MAC address (defaults to the configured one).
        channel: RFCOMM channel (discovered over SDP when omitted).
    """
    session = _ensure_session()
    if session.is_connected or session.is_connecting:
        return {
            "connected": session.is_connected,
            "message": f"Already {session.state.value}",
            "address": session.address,
        }

    address = address or _config.device.address
    if not address:
        return {"error": "No address given and none configured"}
    if channel is None:
        channel = _config.device.channel

    if not await session.connect(address, channel):
        return {"connected": False, "error": session.connection_error or "Connection failed"}

    return {
        "connected": True,
        "address": session.address,
        "channel": session.channel,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the headphones."""
    if _session is not None:
        _session.disconnect()
    return {"disconnected": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report connection state, ANC mode, battery and DSEE.

    Values reflect the last reports from the headphones; use
    refresh_status to query them again.
    """
    if _session is None:
        return {"state": "disconnected"}
    return _session.status()


@mcp.tool()
def refresh_status() -> dict[str, Any]:
    """Ask the headphones for their current ANC mode and battery level."""
    session = _get_session()
    session.request_status()
    return {"requested": True}


# ─── CONTROL TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def set_mode(mode: str) -> dict[str, Any]:
    """Set the noise cancelling mode.

    Args:
        mode: One of nc, noise_cancelling, ambient, wind, off.
    """
    try:
        anc_mode = mode_from_name(mode)
    except ValueError as e:
        return {"error": str(e)}

    session = _get_session()
    session.set_mode(anc_mode)
    return {"mode": anc_mode.value, "mode_name": anc_mode.display_name}


@mcp.tool()
def cycle_mode() -> dict[str, Any]:
    """Switch to the next mode in the configured cycle order."""
    session = _get_session()
    mode = session.cycle_mode(_config.device.cycle_modes)
    if mode is None:
        return {"error": "Cycle order needs at least two valid modes"}
    return {"mode": mode.value, "mode_name": mode.display_name}


@mcp.tool()
def set_dsee(enabled: bool) -> dict[str, Any]:
    """Enable or disable DSEE upscaling.

    Args:
        enabled: True to enable.
    """
    session = _get_session()
    session.set_dsee(enabled)
    return {"dsee_enabled": enabled}


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("xm4://modes")
def modes_resource() -> dict[str, Any]:
    """Available ANC modes and the configured cycle order."""
    return {
        "modes": [
            {"id": m.value, "name": m.display_name}
            for m in AncMode
            if m is not AncMode.UNKNOWN
        ],
        "aliases": {name: m.value for name, m in MODE_NAMES.items()},
        "cycle_order": list(_config.device.cycle_modes),
    }


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    global _config
    _config = _load_settings()
    logging.basicConfig(level=getattr(logging, _config.logging.level.upper(), logging.INFO))
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
