from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest

SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from project_utility.config.settings import ConsoleSettings  # noqa: E402

INGESTION_BASE_URL = "https://ingestion.test"
EXTENSION_VERSION = "1.2.3"

Responder = Callable[[httpx.Request], httpx.Response]


class FakeIngestionServer:
    """In-memory ingestion endpoint served through `httpx.MockTransport`."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._overrides: Dict[Tuple[str, str], Responder] = {}
        self._issued = 0

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def respond(self, method: str, path: str, status_code: int, body: str = "") -> None:
        self._overrides[(method, path)] = lambda request: httpx.Response(status_code, text=body)

    def fail_with(self, method: str, path: str, exc: Exception) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc

        self._overrides[(method, path)] = _raise

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [req for req in self.requests if req.method == method and req.url.path == path]

    def body(self, request: httpx.Request) -> Any:
        return json.loads(request.content.decode("utf-8"))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        override = self._overrides.get((request.method, request.url.path))
        if override is not None:
            return override(request)
        if request.method == "POST" and request.url.path == "/token":
            self._issued += 1
            return httpx.Response(200, json={"accessToken": f"token-{self._issued}"})
        return httpx.Response(200, text="")


@pytest.fixture()
def ingestion_server() -> FakeIngestionServer:
    return FakeIngestionServer()


@pytest.fixture()
def extension_dist(tmp_path: Path) -> Path:
    root = tmp_path / "otel-extension"
    (root / "dist").mkdir(parents=True)
    (root / "package.json").write_text(json.dumps({"name": "otel-extension", "version": EXTENSION_VERSION}), encoding="utf-8")
    (root / "dist" / "extension.zip").write_bytes(b"PK\x05\x06" + b"\x00" * 18)
    return root


@pytest.fixture()
def settings_factory(extension_dist: Path) -> Callable[..., ConsoleSettings]:
    def _factory(**overrides: Any) -> ConsoleSettings:
        values: Dict[str, Any] = {
            "ingestion_url_override": INGESTION_BASE_URL,
            "access_key": "access-key-123",
            "extension_dist_path": extension_dist,
        }
        values.update(overrides)
        return ConsoleSettings(**values)

    return _factory


@pytest.fixture()
def console_settings(settings_factory: Callable[..., ConsoleSettings]) -> ConsoleSettings:
    return settings_factory()
