import pytest

from lgrep_core.errors import (
    InvalidIndexError,
    InvalidLuceneSyntaxError,
    InvalidQueryError,
    QueryError,
    TransportError,
    ValidationError,
)
from lgrep_core.options import SearchOptions
from lgrep_core.validate import ValidationResponse, parse_validation_error, validate

QUERY = {"query": {"query_string": {"query": "host:web1"}}, "size": 10, "sort": []}


def invalid(*explanations):
    return {
        "valid": False,
        "_shards": {"total": 1, "successful": 1, "failed": 0},
        "explanations": list(explanations),
    }


def test_valid_query(transport):
    result = validate(transport, QUERY, SearchOptions(index="logs-*", doc_type="journald"))

    assert isinstance(result, ValidationResponse)
    assert result.valid
    assert result.shards.total == 1

    method, path, params, body = transport.requests[0]
    assert method == "GET"
    assert path == "/logs-*/journald/_validate/query"
    assert params == {"explain": "true"}
    # Only the query is sent, never size or sort
    assert body == {"query": QUERY["query"]}


def test_lucene_syntax_error(transport):
    transport.validation_response = invalid(
        {"index": "logs-1", "valid": False, "error": "[logs-1] org.apache...ParseException: Cannot parse 'a AND'"},
        {"index": "logs-2", "valid": False, "error": "[logs-2] org.apache...ParseException: Cannot parse 'a AND'"},
    )
    with pytest.raises(InvalidLuceneSyntaxError):
        validate(transport, QUERY, SearchOptions())


def test_single_distinct_message(transport):
    transport.validation_response = invalid(
        {"index": "logs-1", "valid": False, "error": "[logs-1] No mapping found for [ts]"},
    )
    with pytest.raises(ValidationError, match="No mapping found") as info:
        validate(transport, QUERY, SearchOptions())
    assert "[logs-1]" not in str(info.value)


def test_many_distinct_messages(transport):
    transport.validation_response = invalid(
        {"index": "a", "valid": False, "error": "first problem"},
        {"index": "b", "valid": False, "error": "second problem"},
    )
    with pytest.raises(InvalidQueryError):
        validate(transport, QUERY, SearchOptions())


def test_invalid_without_explanations(transport):
    transport.validation_response = invalid()
    with pytest.raises(InvalidQueryError):
        validate(transport, QUERY, SearchOptions())


def test_missing_index(transport):
    transport.validation_error = TransportError(
        "HTTP 404 [index_not_found_exception]: no such index",
        status=404,
        error_type="index_not_found_exception",
    )
    with pytest.raises(InvalidIndexError):
        validate(transport, QUERY, SearchOptions(index="nope-*"))


def test_other_transport_errors_pass_through(transport):
    transport.validation_error = TransportError("HTTP 500: boom", status=500)
    with pytest.raises(TransportError, match="boom"):
        validate(transport, QUERY, SearchOptions())


def test_rejects_non_object_body(transport):
    with pytest.raises(QueryError):
        validate(transport, "host:web1", SearchOptions())
    assert transport.requests == []


@pytest.mark.parametrize(
    "message, index, expected",
    [
        ("", "", None),
        ("Failed to parse: Cannot parse 'x:'", "", InvalidLuceneSyntaxError),
        ("[logs] something odd", "logs", ValidationError),
    ],
)
def test_parse_validation_error(message, index, expected):
    err = parse_validation_error(message, index)
    if expected is None:
        assert err is None
    else:
        assert type(err) is expected
