"""Process-wide holder for the active chain session."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .selector import ChainSession, EndpointSelector

logger = logging.getLogger(__name__)


class ChainSessionHolder:
    """
    Accessor for the single active (Connection, SigningIdentity) pair.

    Acquisition is single-flight: concurrent callers that all find the same
    session dead wait on one re-acquisition and then share its result. A
    session is replaced wholesale, never mutated. Replaced sessions are
    retired rather than closed so in-flight calls on them can finish; they
    are closed together with the holder.
    """

    def __init__(self, selector: EndpointSelector):
        self._selector = selector
        self._session: Optional[ChainSession] = None
        self._lock = asyncio.Lock()
        self._retired: List[ChainSession] = []

    @property
    def current(self) -> Optional[ChainSession]:
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    @property
    def selector(self) -> EndpointSelector:
        return self._selector

    async def get(self) -> ChainSession:
        """Return the live session, acquiring one if none exists."""
        session = self._session
        if session is not None:
            return session
        return await self.reacquire(None)

    async def reacquire(self, stale: Optional[ChainSession]) -> ChainSession:
        """
        Replace ``stale`` with a freshly probed session.

        If another caller already swapped ``stale`` out, the newer session is
        returned without probing again. On failure the held session is left
        untouched and the selector's error propagates.
        """
        async with self._lock:
            current = self._session
            if current is not None and current is not stale:
                return current

            session = await self._selector.acquire()
            self._session = session
            if current is not None:
                self._retired.append(current)
                logger.info(
                    f"Replaced RPC session {current.connection.endpoint.masked_url} "
                    f"-> {session.connection.endpoint.masked_url}"
                )
            return session

    async def close(self) -> None:
        """Close the active and all retired sessions."""
        async with self._lock:
            sessions = self._retired + ([self._session] if self._session else [])
            self._session = None
            self._retired = []
        for session in sessions:
            try:
                await session.close()
            except Exception as e:
                logger.warning(f"Error closing RPC session: {e}")
