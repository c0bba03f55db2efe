"""
Pytest configuration and shared fixtures.

Contains the in-memory transport, hosts and server logger used across
the unit tests.
"""

import os
from typing import Any, Dict, List, Optional, Tuple

import pytest

from logrelay.config import reload_settings
from logrelay.core.host import DATA_LOGGING_ENDPOINT_ATTRIBUTE, InMemoryHost
from logrelay.core.metrics import MetricsCollector
from logrelay.core.server_logger import ServerLogger

PROVISIONING_URL = "/test/provisioning/endpoint"
BATCH_TIME = 0.2


class FakeTransport:
    """
    Records every request instead of touching the network.

    Provisioning answers {"Endpoint": "/test/endpoint/<n>"}, counting up
    per call; posts answer the next scripted status (200 once exhausted).
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.statuses: List[int] = []
        self.default_status = 200
        self.provision_documents: Optional[List[Any]] = None
        self.post_error: Optional[Exception] = None
        self._provision_count = 0
        self.stopped = False

    async def post(self, url: str, body: str, mode: str = "cors") -> int:
        self.calls.append(("post", url, {"body": body, "mode": mode}))
        if self.post_error is not None:
            raise self.post_error
        if self.statuses:
            return self.statuses.pop(0)
        return self.default_status

    async def fetch_json(self, url: str, reload: bool = False) -> Any:
        self.calls.append(("fetch", url, {"reload": reload}))
        if self.provision_documents is not None:
            return self.provision_documents.pop(0)
        document = {"Endpoint": f"/test/endpoint/{self._provision_count}"}
        self._provision_count += 1
        return document

    async def stop(self) -> None:
        self.stopped = True

    @property
    def posts(self) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [call for call in self.calls if call[0] == "post"]

    @property
    def fetches(self) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [call for call in self.calls if call[0] == "fetch"]


class RecordingSink:
    """Stand-in server logger recording each submit call."""

    def __init__(self) -> None:
        self.batches: List[List[Any]] = []

    def submit(self, entries: List[Any]) -> None:
        self.batches.append(list(entries))

    @property
    def entries(self) -> List[Any]:
        return [entry for batch in self.batches for entry in batch]


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> None:
    """Isolate every test from config files and LOGRELAY_* env vars."""
    for key in list(os.environ):
        if key.startswith("LOGRELAY_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    reload_settings()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def host() -> InMemoryHost:
    return InMemoryHost(
        attributes={DATA_LOGGING_ENDPOINT_ATTRIBUTE: PROVISIONING_URL},
        location="https://app.example.com/page",
    )


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def server_logger(transport: FakeTransport, host: InMemoryHost, metrics: MetricsCollector) -> ServerLogger:
    """Server logger with batch size 3 and a short trailing flush."""
    return ServerLogger(
        batch_size=3,
        batch_time_seconds=BATCH_TIME,
        transport=transport,  # type: ignore[arg-type]
        host=host,
        metrics=metrics,
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
