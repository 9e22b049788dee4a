"""Shared fixtures."""

import json
from typing import Optional

import pytest

from autoledger.agents import ExtractionClient
from autoledger.config import get_settings
from autoledger.config.settings import AppSettings
from autoledger.models.transaction import ExtractionRequest


class FakeExtractionClient(ExtractionClient):
    """Returns a canned response and records every request."""

    def __init__(self, response=None, error: Optional[Exception] = None):
        if isinstance(response, dict):
            response = json.dumps(response, ensure_ascii=False)
        self.response = response
        self.error = error
        self.requests: list[ExtractionRequest] = []

    async def generate(self, request: ExtractionRequest) -> Optional[str]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


class RecordingAuditStorage:
    """Minimal audit store that keeps events in memory."""

    def __init__(self):
        self.events = []

    async def append_event(self, event) -> bool:
        self.events.append(event)
        return True

    @property
    def event_types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch, tmp_path):
    """Keep tests independent of the developer's .env and ledger file."""
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        max_upload_size_mb=1,
        supported_image_types="image/jpeg,image/png",
    )


@pytest.fixture
def audit_storage() -> RecordingAuditStorage:
    return RecordingAuditStorage()
