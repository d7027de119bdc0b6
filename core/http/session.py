"""HTTP session management for aiohttp.

One ``aiohttp.ClientSession`` is shared per process and per event loop.
Geocoding, map matching and token requests all go through it unless a
caller injects its own session.
"""

from __future__ import annotations

import asyncio
import logging
import os

import aiohttp

from core.constants import (
    HTTP_CONNECTION_LIMIT,
    HTTP_TIMEOUT_CONNECT,
    HTTP_TIMEOUT_SOCK_READ,
    HTTP_TIMEOUT_TOTAL,
    HTTP_USER_AGENT,
)

logger = logging.getLogger(__name__)


class SessionState:
    """State container for the shared session to avoid bare globals."""

    session: aiohttp.ClientSession | None = None
    owner_pid: int | None = None
    owner_loop: asyncio.AbstractEventLoop | None = None


def _is_stale(current_pid: int, current_loop: asyncio.AbstractEventLoop) -> bool:
    session = SessionState.session
    if session is None or session.closed:
        return True
    if SessionState.owner_pid != current_pid:
        logger.debug(
            "Discarding session inherited from process %s in process %s",
            SessionState.owner_pid,
            current_pid,
        )
        return True
    owner_loop = SessionState.owner_loop
    if owner_loop is not current_loop or owner_loop.is_closed():
        logger.info("Detected event loop change. Creating new session.")
        return True
    return False


async def get_session() -> aiohttp.ClientSession:
    """Get or create the shared aiohttp ClientSession.

    Sessions inherited across a fork or bound to a different event loop
    are dropped and replaced.

    Returns:
        Shared aiohttp ClientSession for the current process and loop.
    """
    current_pid = os.getpid()
    current_loop = asyncio.get_running_loop()

    if not _is_stale(current_pid, current_loop):
        return SessionState.session

    stale = SessionState.session
    if (
        stale is not None
        and not stale.closed
        and SessionState.owner_pid == current_pid
        and SessionState.owner_loop is current_loop
    ):
        await stale.close()

    timeout = aiohttp.ClientTimeout(
        total=HTTP_TIMEOUT_TOTAL,
        connect=HTTP_TIMEOUT_CONNECT,
        sock_read=HTTP_TIMEOUT_SOCK_READ,
    )
    connector = aiohttp.TCPConnector(
        limit=HTTP_CONNECTION_LIMIT,
        enable_cleanup_closed=True,
    )
    SessionState.session = aiohttp.ClientSession(
        timeout=timeout,
        headers={"User-Agent": HTTP_USER_AGENT, "Accept": "application/json"},
        connector=connector,
    )
    SessionState.owner_pid = current_pid
    SessionState.owner_loop = current_loop
    logger.debug("Created new aiohttp session for process %s", current_pid)
    return SessionState.session


async def cleanup_session() -> None:
    """Close the shared session for the current process."""
    session = SessionState.session
    if session is not None and not session.closed:
        try:
            await session.close()
            logger.info("Closed aiohttp session for process %s", os.getpid())
        except Exception as e:
            logger.warning("Error closing session: %s", e)

    SessionState.session = None
    SessionState.owner_pid = None
    SessionState.owner_loop = None
