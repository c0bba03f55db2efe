"""
Batching server logger.

Features:
- Size-triggered batches sent immediately, oldest entries first
- Trailing flush of whatever remains after a quiet period
- Lazily provisioned ingestion endpoint, shared by every dispatch and
  re-provisioned once when the backend reports it gone (410)
- Best-effort send of the remaining buffer when the host exits

The logger is not bound to one event loop. Timers and dispatch tasks go to
whichever loop is running at the time; entries submitted with no running
loop stay buffered until a later submit or flush runs under one, or until
the host exits.
"""

import asyncio
import functools
from http import HTTPStatus
from typing import Iterable, List, Optional, Set

import structlog

from ..models.log_entry import EndpointLease, EntryLike, batch_preview, serialize_entries
from .exceptions import ProvisioningError
from .host import DATA_LOGGING_ENDPOINT_ATTRIBUTE, Host
from .metrics import MetricsCollector
from .transport import CORS, NO_CORS, AiohttpTransport

logger = structlog.get_logger(__name__)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ServerLogger:
    """
    Buffers log entries and ships them to the ingestion endpoint.

    All state lives on one thread; the only suspension points are endpoint
    provisioning and batch transmission.
    """

    def __init__(
        self,
        batch_size: int,
        batch_time_seconds: float,
        transport: AiohttpTransport,
        host: Host,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.batch_size = batch_size
        self.batch_time = batch_time_seconds
        self.transport = transport
        self.host = host
        self.metrics = metrics

        self._logs: List[EntryLike] = []
        self._batch_timer: Optional[asyncio.TimerHandle] = None
        # Resolved lease, or the provisioning task that will produce one
        self._lease: Optional[EndpointLease] = None
        self._provisioning: Optional[asyncio.Task[EndpointLease]] = None
        self._dispatches: Set[asyncio.Task[None]] = set()

        host.on_exit(self.on_unload)

        logger.info(
            "Server logger initialized",
            batch_size=batch_size,
            batch_time_seconds=batch_time_seconds,
        )

    @property
    def pending(self) -> List[EntryLike]:
        """Entries buffered and not yet dispatched."""
        return list(self._logs)

    @property
    def timer_armed(self) -> bool:
        return self._batch_timer is not None

    @property
    def lease(self) -> Optional[EndpointLease]:
        return self._lease

    def submit(self, entries: Iterable[EntryLike]) -> None:
        """
        Buffer entries, sending full batches right away.

        A partial batch left over is sent batch_time seconds after the last
        submit, unless more entries complete it first.
        """
        self._cancel_timer()
        self._logs.extend(entries)

        loop = _running_loop()
        if loop is None:
            logger.debug("No running event loop, entries buffered", pending=len(self._logs))
            return

        self._ensure_lease(loop)
        while len(self._logs) >= self.batch_size:
            batch = self._logs[:self.batch_size]
            self._logs = self._logs[self.batch_size:]
            self._dispatch(loop, batch, trigger="size")

        if self._logs:
            self._batch_timer = loop.call_later(self.batch_time, self._flush_trailing)

    def flush(self) -> None:
        """Dispatch everything buffered now instead of waiting for the timer."""
        self._cancel_timer()
        if not self._logs:
            return

        loop = _running_loop()
        if loop is None:
            return

        self._ensure_lease(loop)
        batch, self._logs = self._logs, []
        self._dispatch(loop, batch, trigger="flush")

    async def drain(self) -> None:
        """Wait for every in-flight dispatch to finish."""
        while self._dispatches:
            await asyncio.gather(*list(self._dispatches), return_exceptions=True)

    async def aclose(self) -> None:
        """Flush, wait for in-flight sends and release the transport."""
        self.flush()
        await self.drain()
        await self.transport.stop()

    def _cancel_timer(self) -> None:
        if self._batch_timer is not None:
            self._batch_timer.cancel()
            self._batch_timer = None

    def _flush_trailing(self) -> None:
        self._batch_timer = None
        if not self._logs:
            return
        batch, self._logs = self._logs, []
        self._dispatch(asyncio.get_running_loop(), batch, trigger="timer")

    def _dispatch(self, loop: asyncio.AbstractEventLoop, batch: List[EntryLike], trigger: str) -> None:
        if self.metrics:
            self.metrics.record_batch(trigger, len(batch))

        task = loop.create_task(self._send(batch))
        self._dispatches.add(task)
        task.add_done_callback(self._dispatches.discard)

    async def _send(self, batch: List[EntryLike]) -> None:
        body = serialize_entries(batch)
        try:
            lease = await self._await_lease()

            status = await self.transport.post(lease.url, body, mode=CORS)
            if self.metrics:
                self.metrics.record_response(status)

            if status == HTTPStatus.GONE:
                # Endpoint has expired, refresh it and resend once
                logger.info("Logging endpoint expired, re-provisioning", endpoint=lease.url)
                lease = await self._refresh_lease(lease)
                await self.transport.post(lease.url, body, mode=NO_CORS)
            elif not 200 <= status < 300:
                logger.warning(
                    "Ingestion endpoint rejected batch",
                    status=status,
                    entries_count=len(batch),
                )
            else:
                logger.debug("Batch shipped", entries_count=len(batch))

        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self.metrics:
                self.metrics.record_delivery_failure()
            logger.error(
                "Failed to ship log batch",
                error=str(e),
                error_type=type(e).__name__,
                entries_count=len(batch),
                entries=batch_preview(batch),
            )

    def _ensure_lease(self, loop: asyncio.AbstractEventLoop) -> None:
        """Make sure a lease is resolved or being provisioned on loop."""
        if self._lease is not None:
            return
        if self._provisioning_on(loop) is None and self._lease is None:
            self._provisioning = self._start_provisioning(loop, reload=False)

    def _provisioning_on(self, loop: Optional[asyncio.AbstractEventLoop]) -> "Optional[asyncio.Task[EndpointLease]]":
        """
        The in-flight provisioning task if it belongs to loop.

        A task left behind by another loop is dropped; if it had already
        produced a lease, that lease is kept.
        """
        task = self._provisioning
        if task is None or task.get_loop() is loop:
            return task

        self._provisioning = None
        if task.done() and not task.cancelled() and task.exception() is None:
            self._lease = task.result()
        return None

    async def _await_lease(self) -> EndpointLease:
        self._ensure_lease(asyncio.get_running_loop())
        if self._lease is not None:
            return self._lease
        assert self._provisioning is not None
        return await asyncio.shield(self._provisioning)

    async def _refresh_lease(self, expired: EndpointLease) -> EndpointLease:
        # Another dispatch may already have replaced the expired lease
        if self._lease is expired:
            self._lease = None
            self._provisioning = self._start_provisioning(asyncio.get_running_loop(), reload=True)
        return await self._await_lease()

    def _start_provisioning(self, loop: asyncio.AbstractEventLoop, reload: bool) -> "asyncio.Task[EndpointLease]":
        task = loop.create_task(self._provision(reload))
        task.add_done_callback(self._on_provisioned)
        return task

    def _on_provisioned(self, task: "asyncio.Task[EndpointLease]") -> None:
        current = self._provisioning is task
        if current:
            self._provisioning = None

        if task.cancelled():
            # Loop shut down mid-flight, the next submit provisions again
            logger.debug("Logging endpoint provisioning cancelled")
            return

        error = task.exception()
        if error is None:
            if current:
                self._lease = task.result()
            if self.metrics:
                self.metrics.record_provision("success")
            logger.debug("Logging endpoint provisioned", endpoint=task.result().url)
            return

        if self.metrics:
            self.metrics.record_provision("failure")
        logger.error(
            "Logging endpoint provisioning failed",
            error=str(error),
            error_type=type(error).__name__,
        )

    async def _provision(self, reload: bool) -> EndpointLease:
        attributes = self.host.root_attributes()
        if attributes is None:
            raise ProvisioningError(
                f"Failed to locate top-level element for {DATA_LOGGING_ENDPOINT_ATTRIBUTE}"
            )

        provision_url = attributes.get(DATA_LOGGING_ENDPOINT_ATTRIBUTE)
        if not provision_url:
            raise ProvisioningError(
                f"Missing {DATA_LOGGING_ENDPOINT_ATTRIBUTE} attribute on top-level element"
            )

        document = await self.transport.fetch_json(provision_url, reload=reload)
        endpoint = document.get("Endpoint") if isinstance(document, dict) else None
        if not isinstance(endpoint, str) or not endpoint:
            raise ProvisioningError(
                "Logging endpoint missing or empty, logging is disabled",
                details={"provisioning_url": provision_url},
            )

        return EndpointLease(url=endpoint)

    def on_unload(self) -> None:
        """
        Host teardown hook.

        Hands the remaining buffer to the host's best-effort send, once the
        lease is known. While a loop is still running and no lease is
        resolved or in flight the entries are not sent. When no loop is
        left, the endpoint is provisioned synchronously first.
        """
        self._cancel_timer()
        if not self._logs:
            return
        if not self.host.supports_best_effort:
            return

        loop = _running_loop()
        task = self._provisioning_on(loop) if self._lease is None else None
        if self._lease is None and task is None and loop is not None:
            logger.debug("No logging endpoint on exit, entries not sent", entries_count=len(self._logs))
            return

        batch, self._logs = self._logs, []
        if self.metrics:
            self.metrics.record_batch("unload", len(batch))

        body = serialize_entries(batch)
        if self._lease is not None:
            self._deliver_on_exit(self._lease.url, body, len(batch))
        elif task is not None:
            if task.done():
                self._send_on_exit(body, len(batch), task)
            else:
                task.add_done_callback(
                    functools.partial(self._send_on_exit, body, len(batch))
                )
        else:
            lease = self._provision_blocking(len(batch))
            if lease is not None:
                self._deliver_on_exit(lease.url, body, len(batch))

    def _send_on_exit(self, body: str, entries_count: int, lease_task: "asyncio.Task[EndpointLease]") -> None:
        if lease_task.cancelled() or lease_task.exception() is not None:
            logger.error("Unable to send entries on exit, no logging endpoint", entries_count=entries_count)
            return
        self._deliver_on_exit(lease_task.result().url, body, entries_count)

    def _deliver_on_exit(self, url: str, body: str, entries_count: int) -> None:
        try:
            self.host.send_best_effort(url, body)
        except Exception as e:
            logger.error(
                "Failed to send entries on exit",
                error=str(e),
                entries_count=entries_count,
            )

    def _provision_blocking(self, entries_count: int) -> Optional[EndpointLease]:
        try:
            lease = asyncio.run(self._provision_detached())
        except Exception as e:
            if self.metrics:
                self.metrics.record_provision("failure")
            logger.error(
                "Unable to send entries on exit, no logging endpoint",
                entries_count=entries_count,
                error=str(e),
            )
            return None

        if self.metrics:
            self.metrics.record_provision("success")
        self._lease = lease
        return lease

    async def _provision_detached(self) -> EndpointLease:
        # The transport session opened here closes with this throwaway loop
        try:
            return await self._provision(reload=False)
        finally:
            await self.transport.stop()
