"""Shared test fixtures."""

from pathlib import Path

import pytest

from src.notifications.channels import SendResult
from src.scheduler.store import SchedulerStore


class FakeGateway:
    """In-memory MessagingGateway. Accepts every address unless told otherwise."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.rejected: set[str] = set()
        self.reject_all = False

    @property
    def name(self) -> str:
        return "fake"

    async def send(self, address: str, text: str) -> SendResult:
        if self.reject_all or address in self.rejected:
            return SendResult(success=False, error="HTTP 400: not on WhatsApp", address=address)
        self.sent.append((address, text))
        return SendResult(success=True, message_id=f"m{len(self.sent)}", address=address)


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("src.config.settings.turso_database_url", "")


@pytest.fixture
def _fast_retry(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make dispatcher backoff delays zero."""
    monkeypatch.setattr("src.config.settings.send_retry_base_seconds", 0.0)
    monkeypatch.setattr("src.config.settings.send_retry_max_seconds", 0.0)


@pytest.fixture
def store(tmp_path: Path, _no_turso: None) -> SchedulerStore:
    """A SchedulerStore backed by a temp database, installed as the singleton."""
    SchedulerStore._reset()
    s = SchedulerStore(db_path=tmp_path / "test.db")
    SchedulerStore._instance = s
    yield s
    SchedulerStore._reset()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
