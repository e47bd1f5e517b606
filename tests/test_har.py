"""
Tests for the HAR reader.
"""

import base64
import json

import pytest

from searchtrace.har import HarLoadError, exchange_from_entry, iso8601_to_ms, load_har, ms_to_iso8601

from conftest import MULTI_URL


class TestTimestamps:

    def test_utc_suffix(self):
        assert iso8601_to_ms("1970-01-01T00:00:01.500Z") == 1500

    def test_offset(self):
        assert iso8601_to_ms("1970-01-01T01:00:00+01:00") == 0

    def test_naive_is_utc(self):
        assert iso8601_to_ms("1970-01-01T00:00:02") == 2000

    @pytest.mark.parametrize("value", ["", "yesterday"])
    def test_unparsable(self, value):
        assert iso8601_to_ms(value) == 0

    def test_back_and_forth(self):
        assert iso8601_to_ms(ms_to_iso8601(1704103200000)) == 1704103200000


class TestEntries:

    def test_full_entry(self, har_document):
        exchange = exchange_from_entry(har_document["log"]["entries"][0])

        assert exchange.url == MULTI_URL
        assert exchange.method == "POST"
        assert exchange.get_header("x-algolia-usertoken") == "user-1"
        assert json.loads(exchange.request_body)["requests"][0]["indexName"] == "products"
        assert json.loads(exchange.response_body)["results"][1]["queryID"] == "q2"
        assert exchange.status == 200
        assert exchange.observed_at_ms == iso8601_to_ms("2024-01-01T10:00:00.000Z")

    def test_entry_without_post_data(self, har_document):
        exchange = exchange_from_entry(har_document["log"]["entries"][2])
        assert exchange.method == "GET"
        assert exchange.request_body == ""

    def test_base64_response(self):
        entry = {
            "request": {"url": MULTI_URL},
            "response": {"status": "200", "content": {
                "encoding": "base64",
                "text": base64.b64encode(b'{"results": []}').decode("ascii"),
            }},
        }
        exchange = exchange_from_entry(entry)
        assert exchange.response_body == '{"results": []}'
        assert exchange.status == 200

    @pytest.mark.parametrize("entry", [{}, {"request": {}}, {"request": "x"}, None])
    def test_entries_without_url(self, entry):
        assert exchange_from_entry(entry) is None


class TestLoad:

    def test_load(self, har_file):
        exchanges = load_har(har_file)
        assert len(exchanges) == 3
        assert [e.method for e in exchanges] == ["POST", "POST", "GET"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(HarLoadError):
            load_har(str(tmp_path / "missing.har"))

    def test_not_json(self, tmp_path):
        path = tmp_path / "broken.har"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(HarLoadError):
            load_har(str(path))

    def test_not_a_har_log(self, tmp_path):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"entries": []}), encoding="utf-8")
        with pytest.raises(HarLoadError, match="log.entries"):
            load_har(str(path))

    def test_skips_unusable_entries(self, tmp_path):
        path = tmp_path / "partial.har"
        path.write_text(json.dumps({"log": {"entries": [None, {"request": {"url": MULTI_URL}}]}}),
                        encoding="utf-8")
        assert [e.url for e in load_har(str(path))] == [MULTI_URL]
