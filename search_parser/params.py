# Copyright 2025 Jesse Bate (https://github.com/jbatesy)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Decoder for URL-encoded search parameter strings.

Search clients send their parameters as ``key=value&key=value`` strings,
either in the URL or nested inside a JSON body under ``params``. Values are
coerced by key name: booleans, integers and comma-separated lists.
"""

import re
from typing import Any, Dict, List, NamedTuple, Optional
from urllib.parse import quote, unquote_plus, urlsplit, urlunsplit


BOOLEAN_KEYS = frozenset([
    'clickAnalytics',
    'analytics',
    'getRankingInfo',
    'enablePersonalization',
])

NUMERIC_KEYS = frozenset([
    'hitsPerPage',
    'page',
    'maxValuesPerFacet',
    'minWordSizefor1Typo',
    'minWordSizefor2Typos',
    'offset',
    'length',
])

LIST_KEYS = frozenset([
    'facets',
    'attributesToRetrieve',
    'attributesToHighlight',
    'attributesToSnippet',
])

_INTEGER = re.compile(r'[+-]?\d+')


class SplitUrl(NamedTuple):
    """A URL split into its base and its raw query string."""
    base: str
    param_string: str


def _pairs(param_string: Optional[str]):
    """Yield (decoded key, raw value) pairs in order of appearance."""
    if not param_string or not isinstance(param_string, str):
        return
    for segment in param_string.split('&'):
        if not segment:
            continue
        if '=' in segment:
            key, value = segment.split('=', 1)
        else:
            key, value = segment, ''
        yield unquote_plus(key), value


def _coerce_raw(key: str, raw: str) -> Any:
    if key in LIST_KEYS:
        # Split before unescaping so that an escaped comma stays inside its element
        items = (unquote_plus(item).strip() for item in raw.split(','))
        return [item for item in items if item]
    return _coerce_scalar(key, unquote_plus(raw))


def _coerce_scalar(key: str, value: str) -> Any:
    """Convert a decoded boolean or numeric value according to its key."""
    if key in BOOLEAN_KEYS:
        if value == 'true':
            return True
        if value == 'false':
            return False
        return value

    if key in NUMERIC_KEYS:
        if _INTEGER.fullmatch(value):
            return int(value, 10)
        return value

    return value


def decode(param_string: Optional[str], coerce: bool = True) -> Dict[str, Any]:
    """
    Decode a URL-encoded parameter string.

    Args:
        param_string: String such as ``query=shoes&hitsPerPage=20``
        coerce: Convert values by key name (booleans, integers, lists)

    Returns:
        Mapping of parameter names to values. Absent keys are absent, an
        empty value decodes to an empty string. Never raises.
    """
    result: Dict[str, Any] = {}
    for key, raw in _pairs(param_string):
        result[key] = _coerce_raw(key, raw) if coerce else unquote_plus(raw)
    return result


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, tuple)):
        # Separator stays literal, commas inside elements are escaped
        return ','.join(_encode_value(item) for item in value)
    return quote(str(value), safe='')


def encode(params: Dict[str, Any]) -> str:
    """
    Encode a mapping back into a parameter string.

    ``None`` values are skipped. ``decode(encode(m))`` recovers ``m`` only
    for values whose type matches their key: booleans under BOOLEAN_KEYS,
    integers under NUMERIC_KEYS, lists of strings under LIST_KEYS and
    strings everywhere else. Any other key comes back as a string, so
    ``{'distinct': 1}`` decodes to ``{'distinct': '1'}``.
    """
    parts = []
    for key, value in params.items():
        if value is None:
            continue
        parts.append(f"{quote(str(key), safe='')}={_encode_value(value)}")
    return '&'.join(parts)


def get_key(param_string: Optional[str], key: str) -> Optional[str]:
    """Get the decoded string value of a single parameter."""
    return decode(param_string, coerce=False).get(key)


def has_key(param_string: Optional[str], key: str) -> bool:
    """Check if the parameter string contains a key (even with an empty value)."""
    return key in decode(param_string, coerce=False)


def list_keys(param_string: Optional[str]) -> List[str]:
    """Get all parameter names in order of first appearance."""
    return list(decode(param_string, coerce=False).keys())


def split_url(url: str) -> SplitUrl:
    """
    Split a URL into its base (scheme, host and path) and its query string.

    Values that are not absolute URLs come back unchanged with an empty
    query string.
    """
    if not url or not isinstance(url, str):
        return SplitUrl(url, '')
    try:
        parts = urlsplit(url)
    except ValueError:
        return SplitUrl(url, '')
    if not parts.scheme or not parts.netloc:
        return SplitUrl(url, '')
    base = urlunsplit((parts.scheme, parts.netloc, parts.path, '', ''))
    return SplitUrl(base, parts.query)


def join_url(base: str, params: Dict[str, Any]) -> str:
    """
    Build a URL from a base and a parameter mapping.

    Parameters already present in the base's query string are kept; keys in
    ``params`` override them.
    """
    split = split_url(base)
    if split.base == base and '?' in base and split.param_string == '':
        # Unparsable base that still carries a query string
        paramstring = encode(params)
        return f"{base}&{paramstring}" if paramstring else base

    merged: Dict[str, Any] = decode(split.param_string)
    merged.update({k: v for k, v in params.items() if v is not None})
    paramstring = encode(merged)
    return f"{split.base}?{paramstring}" if paramstring else split.base
