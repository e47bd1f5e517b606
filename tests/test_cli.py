"""
Tests for the searchtrace command line.
"""

import json

import pytest

from search_parser.models import QueryRecord
from searchtrace.cli import format_item, main
from searchtrace.grouping import KIND_QUERY, GroupedItem

from conftest import make_query_request


class TestMain:

    def test_text_output(self, har_file, capsys):
        assert main([har_file]) == 0
        out = capsys.readouterr().out
        lines = out.strip().splitlines()

        assert lines[0].startswith("[batch batch_")
        assert "2 queries" in lines[0]
        assert "search products \"shoes\" @ " in lines[1]
        assert "[q1] [user-1]" in lines[1]
        assert "search shoes" in lines[2]
        assert "click 'Product Clicked'" in lines[3]
        assert lines[3].startswith("        └─ ")

    def test_json_output(self, har_file, capsys):
        assert main([har_file, "--json"]) == 0
        items = json.loads(capsys.readouterr().out)

        assert [item["kind"] for item in items] == ["batch-header", "query", "query", "event"]
        assert [item["level"] for item in items] == [0, 1, 1, 2]
        assert items[3]["payload"]["correlationId"] == "q2"

    def test_output_file(self, har_file, tmp_path, capsys):
        output = tmp_path / "grouped.json"
        assert main([har_file, "--json", "--indent", "0", "-o", str(output)]) == 0
        assert capsys.readouterr().out == ""
        assert len(json.loads(output.read_text(encoding="utf-8"))) == 4

    def test_app_id_override(self, har_file, capsys):
        assert main([har_file, "--json", "--app-id", "override"]) == 0
        items = json.loads(capsys.readouterr().out)
        assert items[1]["payload"]["appId"] == "override"

    def test_verbose_reports_counts(self, har_file, capsys):
        assert main([har_file, "-v"]) == 0
        err = capsys.readouterr().err
        assert "In scope: 2" in err
        assert "click: 1" in err

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.har")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_bad_config(self, har_file, tmp_path, capsys):
        config = tmp_path / "bad.yaml"
        config.write_text("host_patterns: [unclosed\n", encoding="utf-8")
        assert main([har_file, "-c", str(config)]) == 2
        assert capsys.readouterr().err.startswith("Error:")

    def test_not_a_har(self, tmp_path):
        path = tmp_path / "plain.json"
        path.write_text("[]", encoding="utf-8")
        assert main([str(path)]) == 2

    def test_failures_warned_unless_quiet(self, tmp_path, capsys):
        path = tmp_path / "failing.har"
        path.write_text(json.dumps({"log": {"entries": [{
            "startedDateTime": "2024-01-01T10:00:00.000Z",
            "request": {"method": "POST", "url": "https://insights.algolia.io/1/events",
                        "postData": {"text": "garbage"}},
            "response": {"status": 200, "content": {"text": ""}},
        }]}}), encoding="utf-8")

        assert main([str(path)]) == 0
        assert "1 exchanges could not be parsed" in capsys.readouterr().err

        assert main([str(path), "-q"]) == 0
        assert capsys.readouterr().err == ""

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "0.1.0" in capsys.readouterr().out


class TestFormatItem:

    def test_query_text_and_key_params(self):
        request = make_query_request("r0", 0, [("r0:0", "q1")])
        request.queries[0].params_parsed = {"query": "blue jeans", "hitsPerPage": 20,
                                            "filters": "brand:nike", "page": 1}
        line = format_item(GroupedItem(payload=request, kind=KIND_QUERY, level=0))
        assert line == 'search products "blue jeans" hitsPerPage=20 filters=brand:nike @ - [q1] [no userToken]'

    def test_searches_on_one_index_are_distinguishable(self):
        lines = []
        for text in ("shoes", "boots"):
            request = make_query_request("r", 0, [("r:0", None)])
            request.queries[0] = QueryRecord(id="r:0", collection_name="products", raw_params="",
                                             params_parsed={"query": text})
            lines.append(format_item(GroupedItem(payload=request, kind=KIND_QUERY, level=0)))
        assert lines[0] != lines[1]
        assert '"boots"' in lines[1]
