from __future__ import annotations

import sys
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from canvas_cli.client import CanvasClient  # noqa: E402
from canvas_cli.models import Credential  # noqa: E402

BASE = "https://canvas.test"
Handler = Callable[[httpx.Request], httpx.Response]


class ScriptedSelector:
    """Selector returning predetermined answers and recording prompts."""

    def __init__(
        self,
        one: Sequence[int] = (),
        many: Sequence[set[int]] = (),
        confirm: bool = True,
    ) -> None:
        self._one = list(one)
        self._many = list(many)
        self._confirm = confirm
        self.prompts: list[tuple[str, list[str]]] = []

    def select_one(self, prompt: str, labels: Sequence[str]) -> int:
        self.prompts.append((prompt, list(labels)))
        return self._one.pop(0)

    def select_many(self, prompt: str, labels: Sequence[str]) -> set[int]:
        self.prompts.append((prompt, list(labels)))
        return self._many.pop(0)

    def confirm(self, prompt: str) -> bool:
        self.prompts.append((prompt, []))
        return self._confirm


class Recorder:
    """Wraps a handler and keeps every request it saw."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request {request.method} {request.url}")


@pytest.fixture
def credential() -> Credential:
    return Credential(BASE, "secret-token")


@pytest.fixture
def make_client(credential: Credential) -> Iterator[Callable[..., tuple[CanvasClient, Recorder]]]:
    clients: list[CanvasClient] = []

    def factory(handler: Handler, **kwargs: object) -> tuple[CanvasClient, Recorder]:
        recorder = Recorder(handler)
        kwargs.setdefault("sleep", lambda _delay: None)
        client = CanvasClient(
            credential, transport=httpx.MockTransport(recorder), **kwargs  # type: ignore[arg-type]
        )
        clients.append(client)
        return client, recorder

    yield factory
    for client in clients:
        client.close()
