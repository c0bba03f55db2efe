"""
Async HTTP transport for the ingestion and provisioning endpoints.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp
import structlog

from ..config import TransportSettings
from .exceptions import TransportError

logger = structlog.get_logger(__name__)

# Request modes. A no-cors request is fire-and-forget: its response is
# never read, only its status is reported back.
CORS = "cors"
NO_CORS = "no-cors"


class AiohttpTransport:
    """
    HTTP transport backed by a shared aiohttp session.

    Handles:
    - Posting JSON batches to the ingestion endpoint
    - Fetching the provisioning document, optionally bypassing caches
    """

    def __init__(self, settings: TransportSettings) -> None:
        self.settings = settings
        self.session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    async def start(self) -> None:
        """Open the HTTP session on the running loop."""
        loop = asyncio.get_running_loop()
        if self.session is not None and not self.session.closed:
            if self._session_loop is loop:
                return
            # A session cannot be closed once its loop is gone
            logger.debug("Discarding HTTP session from a previous event loop")
            self.session = None

        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            headers={"User-Agent": self.settings.user_agent},
        )
        self._session_loop = loop
        logger.debug("HTTP transport started")

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self.session:
            if self._session_loop is asyncio.get_running_loop():
                await self.session.close()
            self.session = None
            self._session_loop = None
        logger.debug("HTTP transport stopped")

    async def _get_session(self) -> aiohttp.ClientSession:
        if (
            self.session is None
            or self.session.closed
            or self._session_loop is not asyncio.get_running_loop()
        ):
            await self.start()
        assert self.session is not None
        return self.session

    async def post(self, url: str, body: str, mode: str = CORS) -> int:
        """
        POST a JSON body.

        Returns:
            The response status code.

        Raises:
            TransportError: the request never produced a response.
        """
        session = await self._get_session()
        headers = {"Content-Type": "application/json"}

        try:
            async with session.post(url, data=body.encode("utf-8"), headers=headers) as response:
                if mode == NO_CORS:
                    return response.status

                if response.status >= 400 and response.status != 410:
                    error_text = await response.text()
                    logger.debug(
                        "Ingestion endpoint returned error",
                        status=response.status,
                        error=error_text[:200],
                    )
                return response.status

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"POST to ingestion endpoint failed: {e or type(e).__name__}",
                details={"url": url, "mode": mode},
            ) from e

    async def fetch_json(self, url: str, reload: bool = False) -> Any:
        """
        GET a JSON document; reload bypasses any intermediate cache.

        Raises:
            TransportError: the request failed or answered with an error status.
        """
        session = await self._get_session()
        headers: Dict[str, str] = {}
        if reload:
            headers = {"Cache-Control": "no-cache", "Pragma": "no-cache"}

        try:
            async with session.get(url, headers=headers) as response:
                if response.status >= 400:
                    raise TransportError(
                        "Provisioning request returned error status",
                        status_code=response.status,
                        details={"url": url},
                    )
                return await response.json(content_type=None)

        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise TransportError(
                f"Provisioning request failed: {e or type(e).__name__}",
                details={"url": url},
            ) from e
