from __future__ import annotations

import pytest
import requests

from conftest import FakeResponse, FakeSession
from stormdash.client import QueryServiceClient
from stormdash.config import Settings
from stormdash.errors import QueryExecutionFailure

URL = "http://reports.test/query"


def _client(*responses):
    session = FakeSession(list(responses))
    return QueryServiceClient(URL, timeout_s=2.0, session=session), session


def test_execute_posts_query_verbatim():
    client, session = _client(FakeResponse(200, text='{"data": {}}'))
    assert client.execute("{ stormReports { totalCount } }") == '{"data": {}}'
    post = session.posts[0]
    assert post["url"] == URL
    assert post["json"] == {"query": "{ stormReports { totalCount } }"}
    assert post["timeout"] == 2.0


def test_execute_non_200_keeps_body():
    client, _ = _client(FakeResponse(400, text="bad query"))
    with pytest.raises(QueryExecutionFailure) as info:
        client.execute("{")
    assert info.value.status_code == 400
    assert info.value.body == "bad query"


def test_execute_transport_error():
    client, _ = _client(requests.exceptions.ConnectionError("refused"))
    with pytest.raises(QueryExecutionFailure, match="unreachable"):
        client.execute("{}")


def test_graphql_returns_data():
    client, _ = _client(FakeResponse(payload={"data": {"stormReports": {"totalCount": 3}}}))
    assert client.graphql("{}") == {"stormReports": {"totalCount": 3}}


def test_graphql_errors_raise():
    client, _ = _client(FakeResponse(payload={"errors": [{"message": "unknown field"}]}))
    with pytest.raises(QueryExecutionFailure, match="unknown field"):
        client.graphql("{}")


@pytest.mark.parametrize("text", ["not json", "[]", '{"data": null}'])
def test_graphql_malformed(text):
    client, _ = _client(FakeResponse(text=text))
    with pytest.raises(QueryExecutionFailure):
        client.graphql("{}")


def test_health():
    client, session = _client(FakeResponse(200), requests.exceptions.Timeout("slow"))
    assert client.health()
    assert session.gets == ["http://reports.test/healthz"]
    assert not client.health()


def test_from_settings_builds_query_url():
    client = QueryServiceClient.from_settings(Settings(api_url="http://host:9000/", query_path="query"), session=FakeSession())
    assert client.url == "http://host:9000/query"
