from __future__ import annotations

from typing import Dict, List, Optional, Union

import pytest

import download_ovh_logs


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", reason: str = "OK") -> None:
        self.status_code = status_code
        self.content = content
        self.reason = reason
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Stands in for requests.Session; unknown URLs answer 200 with the URL as body."""

    def __init__(self, responses: Optional[Dict[str, Union[FakeResponse, BaseException]]] = None) -> None:
        self.responses = responses or {}
        self.calls: List[str] = []
        self.timeouts: List[float] = []
        self.auth = None
        self.closed = False

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append(url)
        self.timeouts.append(timeout)
        result = self.responses.get(url)
        if isinstance(result, BaseException):
            raise result
        if result is None:
            return FakeResponse(200, url.encode("utf-8"))
        return result

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def patched_session(monkeypatch, fake_session):
    monkeypatch.setattr(download_ovh_logs.requests, "Session", lambda: fake_session)
    return fake_session
