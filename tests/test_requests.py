"""Tests for request definitions and submission."""

import logging
from typing import TYPE_CHECKING

import pytest

from pytest_ply.errors import InvalidRequest, ParseWarning
from pytest_ply.retrieval import Retrieval
from pytest_ply.runtime import ResultPaths, Runtime
from pytest_ply.schema import Request, Response, Status

if TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_ply.options import Options
    from tests.conftest import FakeClient

VALUES = {
    'baseUrl': 'https://api.test',
    'token': 'secret',
    'title': 'Casablanca',
}


def make_request(**kwargs: object) -> Request:
    """Build a request definition with defaults."""
    return Request.model_validate({
        'name': 'createMovie',
        'url': '${baseUrl}/movies',
        'method': 'post',
        **kwargs,
    })


def test_prepare_resolves_templates() -> None:
    """Resolve url, method, headers and body."""
    request = make_request(
        headers={
            'Content-Type': 'application/json',
            'X-Title': '${title}',
            'Authorization': 'Bearer ${token}',
        },
        body='{"title": "${title}"}',
    )

    recorded, body = request.prepare(VALUES)

    assert recorded.url == 'https://api.test/movies'
    assert recorded.method == 'POST'
    assert recorded.headers == {
        'Content-Type': 'application/json',
        'X-Title': 'Casablanca',
    }
    assert recorded.body == {'title': 'Casablanca'}
    assert body == '{"title": "Casablanca"}'


def test_prepare_keeps_text_body() -> None:
    """Bodies that are not JSON objects stay text."""
    recorded, body = make_request(body='title=${title}').prepare(VALUES)

    assert recorded.body == 'title=Casablanca'
    assert body == 'title=Casablanca'


def test_prepare_warns_on_broken_json() -> None:
    """A body that looks like JSON but does not parse stays text."""
    request = make_request(body='{"title": ${title}}')

    with pytest.warns(ParseWarning, match='createMovie'):
        recorded, _ = request.prepare(VALUES)

    assert recorded.body == '{"title": Casablanca}'


@pytest.mark.parametrize('url, method, message', (
    pytest.param('ftp://api.test', 'GET', r'^Invalid url: ftp://api.test$', id='scheme'),
    pytest.param('${missing}/movies', 'GET', r'^Invalid url: \$\{missing\}/movies$', id='unresolved'),
    pytest.param('https://api.test', 'FETCH', r'^Unsupported method: FETCH$', id='method'),
))
def test_prepare_invalid(url: str, method: str, message: str) -> None:
    """Reject bad URLs and methods before any network I/O."""
    request = make_request(url=url, method=method)

    with pytest.raises(InvalidRequest, match=message):
        request.prepare(VALUES)


def test_request_reads_scalar_headers() -> None:
    """Number and boolean header values become text."""
    request = make_request(headers={'X-Count': 5, 'X-Ratio': 1.5, 'X-Debug': True})

    recorded, _ = request.prepare(VALUES)

    assert recorded.headers == {'X-Count': '5', 'X-Ratio': '1.5', 'X-Debug': 'true'}


def test_request_rejects_unknown_fields() -> None:
    """Definitions can not carry unknown fields."""
    with pytest.raises(ValueError, match='colour'):
        make_request(colour='red')


def test_exchange_sends_authorization(client: 'FakeClient', caplog: pytest.LogCaptureFixture) -> None:
    """Authorization is sent verbatim and masked in logs."""
    client.route('POST', 'https://api.test/movies', status=201, message='Created', body={'id': 7})
    request = make_request(headers={'Authorization': 'Bearer ${token}'})

    with caplog.at_level(logging.DEBUG, logger='pytest_ply.schema.requests'):
        recorded, response = request.exchange(VALUES, client)

    assert client.sent == [
        ('POST', 'https://api.test/movies', {'Authorization': 'Bearer ${token}'}, None),
    ]
    assert 'Authorization' not in recorded.headers
    assert response.status == Status(code=201, message='Created')
    assert response.body == {'id': 7}
    assert 'Bearer' not in caplog.text
    assert '********' in caplog.text


def test_exchange_empty_body(client: 'FakeClient') -> None:
    """An empty response body is recorded as no body."""
    client.route('DELETE', 'https://api.test/movies', status=204, message='No Content')

    _, response = make_request(method='DELETE').exchange(VALUES, client)

    assert response.body is None


def test_submit_with_client(client: 'FakeClient') -> None:
    """Submit returns the unfiltered response."""
    client.route('POST', 'https://api.test/movies', headers={'X-Trace': '1'}, body='done')

    response = make_request().submit(VALUES, client)

    assert response.headers == {'X-Trace': '1'}
    assert response.body == 'done'


def test_run_records_result(client: 'FakeClient', make_options: 'Callable[..., Options]') -> None:
    """Run produces a pending result with a filtered response."""
    client.route(
        'POST',
        'https://api.test/movies',
        status=201,
        message='Created',
        headers={'Location': '/movies/7', 'X-Trace': 'abc'},
        body={'title': 'Casablanca', 'id': 7},
    )
    options = make_options(response_headers=['location'])
    runtime = Runtime(
        options,
        Retrieval('movies.ply.yaml'),
        ResultPaths.create(options, 'movies.ply.yaml'),
        values=VALUES,
        client=client,
    )
    request = make_request(headers={'Content-Type': 'application/json'})

    result = request.run(runtime)

    assert request.submitted is not None
    assert result.name == 'createMovie'
    assert result.request is not None
    assert result.request.headers == {'content-type': 'application/json'}
    assert result.response is not None
    assert result.response.headers == {'location': '/movies/7'}
    assert list(result.response.body) == ['id', 'title']
    assert result.status == 'Pending'


def test_response_filtered_all_headers(make_options: 'Callable[..., Options]') -> None:
    """Without an allow-list every header is kept, sorted by name."""
    response = Response(
        status=Status(code=200),
        headers={'X-B': '2', 'Content-Type': 'text/plain', 'x-a': '1'},
        body={'b': {'d': 1, 'c': 2}, 'a': 1},
    )

    filtered = response.filtered(make_options())

    assert list(filtered.headers) == ['content-type', 'x-a', 'x-b']
    assert list(filtered.body) == ['a', 'b']
    assert list(filtered.body['b']) == ['c', 'd']


def test_response_filtered_unsorted(make_options: 'Callable[..., Options]') -> None:
    """Body keys keep their order when sorting is disabled."""
    response = Response(
        status=Status(code=200),
        headers={'X-B': '2', 'X-A': '1'},
        body={'b': 1, 'a': 2},
    )

    filtered = response.filtered(make_options(
        response_headers=['X-B', 'X-Missing', 'X-A'],
        response_body_sorted_keys=False,
    ))

    assert list(filtered.headers) == ['x-b', 'x-a']
    assert list(filtered.body) == ['b', 'a']


def test_response_filtered_allow_list(make_options: 'Callable[..., Options]') -> None:
    """Only allow-listed headers are kept, matched without case."""
    response = Response(
        status=Status(code=200),
        headers={'Content-Type': 'application/json', 'X-Trace': 'abc'},
    )

    filtered = response.filtered(make_options(response_headers=['content-type']))

    assert filtered.headers == {'content-type': 'application/json'}


@pytest.mark.parametrize('method', (
    pytest.param(' get ', id='padded lower case'),
    pytest.param('GET', id='upper case'),
    pytest.param('${verb}', id='expression'),
))
def test_prepare_normalizes_method(method: str) -> None:
    """Methods are trimmed and upper-cased after resolution."""
    recorded, _ = make_request(method=method).prepare({**VALUES, 'verb': 'get'})

    assert recorded.method == 'GET'
