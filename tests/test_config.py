"""
Tests for configuration loading.
"""

import pytest

from searchtrace.config import DEFAULT_HOST_PATTERNS, ConfigError, TraceConfig, load_config


def _write(tmp_path, text):
    path = tmp_path / "searchtrace.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestDefaults:

    def test_no_path(self):
        config = load_config()
        assert config.host_patterns == DEFAULT_HOST_PATTERNS
        assert config.flag_missing_token is True

    @pytest.mark.parametrize("url,expected", [
        ("https://testapp-dsn.algolia.net/1/indexes/*/queries", True),
        ("https://testapp-1.algolianet.com/1/indexes/products/query", True),
        ("https://insights.algolia.io/1/events", True),
        ("https://insights.de.algolia.io/1/events", True),
        ("https://cdn.example.com/app.js", False),
        ("", False),
    ])
    def test_default_scope(self, url, expected):
        assert TraceConfig().in_scope(url) is expected


class TestLoad:

    def test_full_file(self, tmp_path):
        path = _write(tmp_path, "host_patterns:\n  - 'search\\.example\\.com'\nflag_missing_token: false\n")
        config = load_config(path)
        assert config.host_patterns == ["search\\.example\\.com"]
        assert config.flag_missing_token is False
        assert config.in_scope("https://search.example.com/1/indexes/a/query")
        assert not config.in_scope("https://insights.algolia.io/1/events")

    def test_partial_file_keeps_defaults(self, tmp_path):
        config = load_config(_write(tmp_path, "flag_missing_token: false\n"))
        assert config.host_patterns == DEFAULT_HOST_PATTERNS

    def test_empty_file(self, tmp_path):
        assert load_config(_write(tmp_path, "")).flag_missing_token is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "nope.yaml"))

    @pytest.mark.parametrize("text", [
        "host_patterns: [unclosed\n",
        "- just\n- a list\n",
        "host_patterns: 'not-a-list'\n",
        "flag_missing_token: maybe\n",
        "host_patterns:\n  - '('\n",
    ])
    def test_invalid_files(self, tmp_path, text):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, text))
