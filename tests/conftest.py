"""Tests configurations and fixtures."""

from json import dumps
from typing import TYPE_CHECKING

import pytest

from pytest_ply.client import Exchange
from pytest_ply.core.loader import RequestLoader
from pytest_ply.options import Options

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

if TYPE_CHECKING:
    from pytest_ply.schema.requests import Request
    from pytest_ply.suite import Suite

pytest_plugins = ('pytester',)

BASE_URL = 'https://api.test'


class FakeClient:
    """In-memory HTTP client answering from registered routes.

    Unknown routes answer `404 Not Found`. Every exchange is kept in
    `sent` as `(method, url, headers, body)`, `closed` counts `close` calls.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Exchange] = {}
        self.sent: list[tuple[str, str, dict[str, str], str | None]] = []
        self.closed = 0

    def route(self, method: str, url: str, *,
              status: int = 200, message: str = 'OK',
              headers: dict[str, str] | None = None,
              body: object = None) -> None:
        if body is not None and not isinstance(body, str):
            body = dumps(body)

        self.routes[method, url] = Exchange(
            status=status,
            message=message,
            headers=headers or {},
            body=body or '',
        )

    def send(self, method: str, url: str, headers: 'Mapping[str, str]',
             body: str | None = None) -> Exchange:
        self.sent.append((method, url, dict(headers), body))
        return self.routes.get((method, url), Exchange(status=404, message='Not Found'))

    def close(self) -> None:
        self.closed += 1


class Listener:
    """Listener collecting notifications."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def start(self, path: str) -> None:
        self.events.append(('start', path))

    def outcome(self, path: str, outcome: object) -> None:
        self.events.append((f'{outcome.status}', path))  # type: ignore[attr-defined]


@pytest.fixture
def client() -> FakeClient:
    """Provide an in-memory HTTP client without routes."""
    return FakeClient()


@pytest.fixture
def listener() -> Listener:
    """Provide a listener collecting notifications."""
    return Listener()


@pytest.fixture
def make_options(tmp_path: 'Path') -> 'Callable[..., Options]':
    """Provide a factory of options rooted in a temporary directory."""
    def make(**kwargs: object) -> Options:
        return Options(tests_location=tmp_path, **kwargs)

    return make


@pytest.fixture
def make_suite(tmp_path: 'Path', client: FakeClient) -> 'Callable[..., Suite[Request]]':
    """Provide a factory of request suites served by the fake client.

    The request file is written as `api/<name>` below the temporary
    tests location; results go to `results/expected` and `results/actual`.
    """
    def make(text: str, name: str = 'movies.ply.yaml', *,
             values: dict | None = None, **options: object) -> 'Suite[Request]':
        path = tmp_path / 'api' / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding='utf-8')

        loader = RequestLoader(
            Options(tests_location=tmp_path, **options),
            values={'baseUrl': BASE_URL, **(values or {})},
            client_factory=lambda: client,
        )

        return loader.load_suite(path)

    return make
