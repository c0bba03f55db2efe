"""
Host environment boundary.

The server logger needs four things from whatever it runs inside: the
attributes of the top-level document element (where the provisioning URL
lives), the current location, a teardown hook, and a best-effort send that
can run while the host is going away.
"""

import asyncio
import atexit
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Set, Tuple

import aiohttp
import structlog

from ..config import HostSettings, TransportSettings

logger = structlog.get_logger(__name__)

# Attribute on the top-level element holding the provisioning URL
DATA_LOGGING_ENDPOINT_ATTRIBUTE = "data-logging-endpoint"

ExitCallback = Callable[[], None]


class Host(Protocol):
    """Interface the server logger and client expect from their host."""

    supports_best_effort: bool

    def root_attributes(self) -> Optional[Mapping[str, str]]:
        """Attributes of the top-level element, None when there is none."""
        ...

    def location(self) -> Optional[str]:
        ...

    def on_exit(self, callback: ExitCallback) -> None:
        ...

    def send_best_effort(self, url: str, body: str) -> None:
        ...


class InMemoryHost:
    """
    Host stub for tests and embedding.

    Exit callbacks run when exit() is called; best-effort sends are
    recorded in ``beacons`` instead of hitting the network.
    """

    def __init__(
        self,
        attributes: Optional[Mapping[str, str]] = None,
        location: Optional[str] = None,
        supports_best_effort: bool = True,
    ) -> None:
        self.attributes: Optional[Dict[str, str]] = dict(attributes) if attributes is not None else None
        self.href = location
        self.supports_best_effort = supports_best_effort
        self.beacons: List[Tuple[str, str]] = []
        self._exit_callbacks: List[ExitCallback] = []

    def root_attributes(self) -> Optional[Mapping[str, str]]:
        return self.attributes

    def location(self) -> Optional[str]:
        return self.href

    def on_exit(self, callback: ExitCallback) -> None:
        self._exit_callbacks.append(callback)

    def send_best_effort(self, url: str, body: str) -> None:
        self.beacons.append((url, body))

    def exit(self) -> None:
        """Simulate host teardown."""
        for callback in list(self._exit_callbacks):
            callback()


class ProcessHost:
    """
    Host backed by the current Python process.

    Attributes and location come from settings; teardown is interpreter
    exit via atexit.
    """

    def __init__(self, settings: HostSettings, transport_settings: TransportSettings) -> None:
        self.settings = settings
        self.transport_settings = transport_settings
        self.supports_best_effort = True
        self._tasks: Set[asyncio.Task[None]] = set()

    def root_attributes(self) -> Optional[Mapping[str, str]]:
        attributes: Dict[str, str] = {}
        if self.settings.provisioning_url:
            attributes[DATA_LOGGING_ENDPOINT_ATTRIBUTE] = self.settings.provisioning_url
        return attributes

    def location(self) -> Optional[str]:
        return self.settings.location

    def on_exit(self, callback: ExitCallback) -> None:
        atexit.register(callback)

    def send_best_effort(self, url: str, body: str) -> None:
        """
        Send without waiting for the outcome.

        Scheduled on the running loop when there is one; otherwise (for
        example from an atexit hook) run to completion under a short timeout.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._post(url, body))
            return

        task = loop.create_task(self._post(url, body))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _post(self, url: str, body: str) -> None:
        timeout = aiohttp.ClientTimeout(total=self.transport_settings.exit_timeout_seconds)
        headers = {
            "Content-Type": "text/plain;charset=UTF-8",
            "User-Agent": self.transport_settings.user_agent,
        }
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, data=body.encode("utf-8"), headers=headers) as response:
                    logger.debug("Best-effort send completed", status=response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Best-effort send failed", url=url, error=str(e))
