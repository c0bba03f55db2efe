"""
Integration tests for the aiohttp transport and the process host against
a local aiohttp server.
"""

import asyncio
from typing import Any, Dict, List

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from logrelay.config import HostSettings, TransportSettings
from logrelay.core.exceptions import TransportError
from logrelay.core.host import DATA_LOGGING_ENDPOINT_ATTRIBUTE, ProcessHost
from logrelay.core.server_logger import ServerLogger
from logrelay.core.transport import NO_CORS, AiohttpTransport


class IngestApp:
    """Minimal provisioning and ingestion service."""

    def __init__(self) -> None:
        self.received: List[Dict[str, Any]] = []
        self.provision_headers: List[Dict[str, str]] = []
        self.ingest_status = 200
        self.app = web.Application()
        self.app.router.add_get("/provision", self.provision)
        self.app.router.add_get("/broken", self.broken)
        self.app.router.add_post("/ingest", self.ingest)

    async def provision(self, request: web.Request) -> web.Response:
        self.provision_headers.append(dict(request.headers))
        return web.json_response({"Endpoint": str(request.url.with_path("/ingest").with_query(None))})

    async def broken(self, request: web.Request) -> web.Response:
        return web.Response(status=503, text="unavailable")

    async def ingest(self, request: web.Request) -> web.Response:
        self.received.append(
            {
                "body": await request.text(),
                "content_type": request.headers.get("Content-Type"),
                "user_agent": request.headers.get("User-Agent"),
            }
        )
        return web.Response(status=self.ingest_status, text="error detail")


class TestAiohttpTransport:

    @pytest.mark.asyncio
    async def test_post_returns_status(self) -> None:
        service = IngestApp()
        async with TestServer(service.app) as server:
            transport = AiohttpTransport(TransportSettings())
            try:
                status = await transport.post(str(server.make_url("/ingest")), '[{"message":"1"}]')
            finally:
                await transport.stop()

        assert status == 200
        assert service.received[0]["body"] == '[{"message":"1"}]'
        assert service.received[0]["content_type"] == "application/json"
        assert service.received[0]["user_agent"] == "logrelay/0.1.0"

    @pytest.mark.asyncio
    async def test_error_status_is_returned_not_raised(self) -> None:
        service = IngestApp()
        service.ingest_status = 410
        async with TestServer(service.app) as server:
            transport = AiohttpTransport(TransportSettings())
            try:
                gone = await transport.post(str(server.make_url("/ingest")), "[]")
                service.ingest_status = 500
                failed = await transport.post(str(server.make_url("/ingest")), "[]", mode=NO_CORS)
            finally:
                await transport.stop()

        assert (gone, failed) == (410, 500)

    @pytest.mark.asyncio
    async def test_fetch_json_bypasses_cache_on_reload(self) -> None:
        service = IngestApp()
        async with TestServer(service.app) as server:
            transport = AiohttpTransport(TransportSettings())
            try:
                first = await transport.fetch_json(str(server.make_url("/provision")))
                await transport.fetch_json(str(server.make_url("/provision")), reload=True)
            finally:
                await transport.stop()

        assert first["Endpoint"].endswith("/ingest")
        assert "Cache-Control" not in service.provision_headers[0]
        assert service.provision_headers[1]["Cache-Control"] == "no-cache"

    @pytest.mark.asyncio
    async def test_fetch_json_error_status_raises(self) -> None:
        service = IngestApp()
        async with TestServer(service.app) as server:
            transport = AiohttpTransport(TransportSettings())
            try:
                with pytest.raises(TransportError) as exc_info:
                    await transport.fetch_json(str(server.make_url("/broken")))
            finally:
                await transport.stop()

        assert exc_info.value.status_code == 503
        assert exc_info.value.error_code == "transport_error"

    @pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(self) -> None:
        service = IngestApp()
        async with TestServer(service.app) as server:
            url = str(server.make_url("/ingest"))

        transport = AiohttpTransport(TransportSettings(timeout_seconds=2.0))
        try:
            with pytest.raises(TransportError):
                await transport.post(url, "[]")
        finally:
            await transport.stop()

    def test_session_reopened_under_new_event_loop(self) -> None:
        received: List[List[Dict[str, Any]]] = []
        transport = AiohttpTransport(TransportSettings())

        async def post_once(stop: bool) -> int:
            # Each loop gets its own server; the transport outlives both
            service = IngestApp()
            received.append(service.received)
            async with TestServer(service.app) as server:
                try:
                    return await transport.post(str(server.make_url("/ingest")), "[]")
                finally:
                    if stop:
                        await transport.stop()

        assert asyncio.run(post_once(stop=False)) == 200
        assert asyncio.run(post_once(stop=True)) == 200
        assert [len(requests) for requests in received] == [1, 1]
        assert transport.session is None


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_server_logger_ships_batch_over_http(self) -> None:
        service = IngestApp()
        async with TestServer(service.app) as server:
            transport = AiohttpTransport(TransportSettings())
            host = ProcessHost(
                HostSettings(provisioning_url=str(server.make_url("/provision"))),
                TransportSettings(),
            )
            server_logger = ServerLogger(2, 5.0, transport, host)
            server_logger.submit([{"message": "1"}, {"message": "2"}])
            await server_logger.aclose()

        assert [request["body"] for request in service.received] == ['[{"message":"1"},{"message":"2"}]']

    @pytest.mark.asyncio
    async def test_process_host_best_effort_send(self) -> None:
        service = IngestApp()
        async with TestServer(service.app) as server:
            host = ProcessHost(HostSettings(), TransportSettings())
            host.send_best_effort(str(server.make_url("/ingest")), '[{"message":"bye"}]')
            for _ in range(50):
                if service.received:
                    break
                await asyncio.sleep(0.02)

        assert service.received[0]["body"] == '[{"message":"bye"}]'
        assert service.received[0]["content_type"] == "text/plain;charset=UTF-8"

    def test_process_host_attributes_from_settings(self) -> None:
        host = ProcessHost(
            HostSettings(provisioning_url="https://logs.example.com/provision", location="worker-1"),
            TransportSettings(),
        )
        assert host.root_attributes() == {
            DATA_LOGGING_ENDPOINT_ATTRIBUTE: "https://logs.example.com/provision"
        }
        assert host.location() == "worker-1"

        assert ProcessHost(HostSettings(), TransportSettings()).root_attributes() == {}
