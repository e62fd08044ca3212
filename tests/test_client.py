import pytest

from lgrep_core.client import DEFAULT_ENDPOINT, ClientConfig, LGrep
from lgrep_core.errors import (
    ConfigurationError,
    EmptySearchError,
    InvalidLuceneSyntaxError,
    QueryError,
)
from lgrep_core.options import SearchOptions, default_search_options


@pytest.fixture
def client(transport):
    return LGrep(ClientConfig(endpoint="http://es:9200/"), transport=transport)


class TestConfig:
    def test_endpoint_from_env(self, monkeypatch):
        monkeypatch.setenv("LGREP_ENDPOINT", "http://search.internal:9200/")
        assert ClientConfig().endpoint == "http://search.internal:9200/"

    def test_default_endpoint(self, monkeypatch):
        monkeypatch.delenv("LGREP_ENDPOINT", raising=False)
        assert ClientConfig().endpoint == DEFAULT_ENDPOINT

    def test_empty_endpoint(self, transport):
        with pytest.raises(ConfigurationError):
            LGrep(ClientConfig(endpoint="  "), transport=transport)

    def test_builds_transport(self):
        client = LGrep(ClientConfig(endpoint="http://es:9200/", timeout=5))
        assert client.transport.endpoint == "http://es:9200"
        assert client.transport.timeout == 5
        client.close()


class TestSearchLucene:
    def test_empty_query(self, client, transport):
        with pytest.raises(EmptySearchError):
            client.search_lucene("   ")
        assert transport.calls == 0

    def test_validates_then_searches(self, client, transport):
        results = client.search_lucene("message:hello", SearchOptions(size=3)).all()

        assert len(results) == 3
        method, path, _, body = transport.requests[0]
        assert path == "/_validate/query"
        assert body["query"]["query_string"]["query"] == "message:hello"
        assert len(transport.search_requests) == 1

    def test_skip_validation(self, client, transport):
        client.search_lucene("*", SearchOptions(size=3, skip_validation=True)).all()
        assert transport.requests == []
        assert len(transport.search_requests) == 1

    def test_invalid_query_never_searches(self, client, transport):
        transport.validation_response = {
            "valid": False,
            "explanations": [{"index": "logs", "valid": False, "error": "Cannot parse 'a AND'"}],
        }
        with pytest.raises(InvalidLuceneSyntaxError):
            client.search_lucene("a AND")
        assert transport.search_requests == []

    def test_size_zero(self, client, transport):
        assert client.search_lucene("*", SearchOptions(size=0)).all() == []
        assert transport.calls == 0

    def test_large_request_without_index(self, client, transport):
        with pytest.raises(ConfigurationError):
            client.search_lucene("*", SearchOptions(size=20000))
        assert transport.calls == 0

    def test_query_debug_dumps_body(self, client, capsys):
        client.search_lucene("*", SearchOptions(size=1, query_debug=True, skip_validation=True)).all()
        err = capsys.readouterr().err
        assert '> {' in err
        assert '"analyze_wildcard": true' in err


class TestSearchJson:
    @pytest.mark.parametrize(
        "query",
        [
            b'{"query": {"match_all": {}}}',
            '{"query": {"match_all": {}}}',
            {"query": {"match_all": {}}},
        ],
    )
    def test_accepted_inputs(self, client, transport, query):
        results = client.search_json(query, SearchOptions(size=2)).all()
        assert len(results) == 2
        assert transport.search_requests[0].body == {"query": {"match_all": {}}}

    def test_mapping_is_not_modified(self, client):
        query = {"query": {"match_all": {}}}
        client.search_json(query, SearchOptions(size=2, fields=["message"])).all()
        assert query == {"query": {"match_all": {}}}

    def test_bad_json(self, client, transport):
        with pytest.raises(QueryError):
            client.search_json(b'{"query": ')
        assert transport.calls == 0

    def test_not_an_object(self, client):
        with pytest.raises(QueryError):
            client.search_json("[1, 2]")

    def test_empty(self, client):
        with pytest.raises(EmptySearchError):
            client.search_json(b"")


def test_simple_search(client):
    results = client.simple_search("*", default_search_options(size=4))
    assert [r.to_mapping()["n"] for r in results] == [0, 1, 2, 3]


def test_new_search_body(client, transport):
    body = client.new_search_body("host:web1", default_search_options(size=7, fields=["host"]))

    assert body["query"]["query_string"]["query"] == "host:web1"
    assert body["size"] == 7
    assert body["_source"] == ["host"]
    assert body["sort"][0]["@timestamp"]["order"] == "desc"
    assert transport.calls == 0


def test_close(client, transport):
    client.close()
    assert transport.closed


def test_json_body_without_query_validates_match_all(client, transport):
    results = client.search_json(b'{"sort": [{"n": "asc"}]}', SearchOptions(size=5)).all()

    assert len(results) == 5
    method, path, params, body = transport.requests[0]
    assert path == "/_validate/query"
    assert params == {"explain": "true"}
    assert body is None
    assert transport.search_requests[0].to_body()["sort"] == [{"n": "asc"}]
