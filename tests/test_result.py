import json

import pytest

from lgrep_core.errors import ResultDecodeError
from lgrep_core.options import SearchOptions
from lgrep_core.result import FieldResult, HitResult, SourceResult, extract_result


class TestSourceResult:
    def test_round_trip(self):
        raw = b'{"a":1}'
        result = SourceResult(raw)

        mapping = result.to_mapping()
        assert mapping == {"a": 1}
        assert json.loads(json.dumps(mapping)) == json.loads(raw)
        assert result.to_json() == raw

    def test_to_mapping_malformed(self):
        with pytest.raises(ResultDecodeError):
            SourceResult(b'{"a":').to_mapping()

    def test_to_mapping_not_an_object(self):
        with pytest.raises(ResultDecodeError):
            SourceResult(b"[1, 2]").to_mapping()

    def test_str_never_raises(self):
        # Not valid UTF-8, so even the passthrough can't be displayed
        text = str(SourceResult(b"\xff\xfe"))
        assert isinstance(text, str)
        assert text

    def test_str_is_json(self):
        assert str(SourceResult(b'{"a": 1}')) == '{"a": 1}'


class TestFieldResult:
    def test_mapping_and_json(self):
        result = FieldResult({"host": "web1", "n": 3})
        assert result.to_mapping() == {"host": "web1", "n": 3}
        assert json.loads(result.to_json()) == {"host": "web1", "n": 3}

    def test_str_falls_back_to_error_text(self):
        result = FieldResult({"bad": object()})
        text = str(result)
        assert "not JSON serializable" in text


class TestHitResult:
    def test_keeps_metadata(self):
        hit = {"_id": "1", "_score": 2.5, "_source": {"a": 1}}
        result = HitResult(hit)
        assert result.to_mapping()["_id"] == "1"
        assert json.loads(str(result))["_source"] == {"a": 1}


class TestExtractResult:
    def test_raw_result(self):
        hit = {"_id": "1", "_source": {"a": 1}}
        result = extract_result(hit, SearchOptions(raw_result=True))
        assert isinstance(result, HitResult)

    def test_fields_are_unwrapped(self):
        hit = {"_id": "1", "fields": {"host": ["web1"], "tags": ["a", "b"]}}
        result = extract_result(hit, SearchOptions(fields=["host", "tags"]))
        assert isinstance(result, FieldResult)
        assert result.to_mapping() == {"host": "web1", "tags": ["a", "b"]}

    def test_fields_ignored_when_not_requested(self):
        hit = {"_id": "1", "fields": {"host": ["web1"]}, "_source": {"host": "web1"}}
        result = extract_result(hit, SearchOptions())
        assert isinstance(result, SourceResult)

    def test_dict_source(self):
        result = extract_result({"_id": "1", "_source": {"a": 1}}, SearchOptions())
        assert isinstance(result, SourceResult)
        assert result.to_mapping() == {"a": 1}

    def test_raw_source_bytes(self):
        result = extract_result({"_id": "1", "_source": b'{"a": 1}'}, SearchOptions())
        assert result.to_json() == b'{"a": 1}'

    def test_malformed_source(self):
        with pytest.raises(ResultDecodeError):
            extract_result({"_id": "2", "_source": b'{"a": '}, SearchOptions())

    def test_missing_source(self):
        with pytest.raises(ResultDecodeError, match="no document source"):
            extract_result({"_id": "3"}, SearchOptions())

    @pytest.mark.parametrize("hit", [None, "text", ["a"]])
    def test_hit_not_an_object(self, hit):
        with pytest.raises(ResultDecodeError, match="not an object"):
            extract_result(hit, SearchOptions())
        with pytest.raises(ResultDecodeError):
            extract_result(hit, SearchOptions(raw_result=True))
