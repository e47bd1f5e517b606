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
Parser turning captured exchanges into search and insights requests.
"""

import json
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlsplit

from . import params as params_codec
from .models import (
    CapturedExchange,
    Diagnostic,
    EventRecord,
    EventRequest,
    ParseFailure,
    ParseResult,
    QueryRecord,
    QueryRequest,
)
from .tokens import TokenResolver, header_token, params_string_of


# /1/indexes/{indexName}/query, /1/indexes/{indexName}/queries, /1/indexes/{indexName}
INDEX_ROUTE = re.compile(r'/1/indexes/([^/?#]+)')

QUERY_FIELDS = ('query', 'params', 'filters', 'facets', 'hitsPerPage', 'page', 'indexName')
EVENT_FIELDS = ('eventType', 'eventName')

# Checked in order, first match wins
CATEGORY_KEYWORDS = (
    ('click', 'click'),
    ('conversion', 'conversion'),
    ('purchase', 'conversion'),
    ('cart', 'conversion'),
    ('view', 'view'),
)
DEFAULT_CATEGORY = 'view'

APP_ID_HEADER = 'x-algolia-application-id'

_UNDECODABLE = object()


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _load_json(text: str) -> Any:
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        return _UNDECODABLE


def _correlation_from(result: Any) -> Optional[str]:
    """Get the queryID assigned by the server to a result object."""
    if not isinstance(result, dict):
        return None
    value = result.get('queryID') or result.get('queryId')
    return str(value) if value else None


def is_index_route(url: str) -> bool:
    """Check if a URL targets the search index API."""
    return INDEX_ROUTE.search(url or '') is not None


def collection_from_url(url: str) -> Optional[str]:
    """Extract the index name from a search URL path (None for the ``*`` route)."""
    match = INDEX_ROUTE.search(url or '')
    if match and match.group(1) != '*':
        return unquote(match.group(1))
    return None


def derive_app_id(exchange: CapturedExchange) -> str:
    """
    Work out the application id of an exchange.

    Checks the application id header, then the query string parameter of
    the same name, then the first label of the host name.
    """
    header = exchange.get_header(APP_ID_HEADER)
    if header:
        return header

    split = params_codec.split_url(exchange.url)
    for key, value in params_codec.decode(split.param_string, coerce=False).items():
        if key.lower() == APP_ID_HEADER and value:
            return value

    try:
        host = urlsplit(exchange.url).hostname or ''
    except ValueError:
        host = ''
    return host.split('.')[0] if host else 'unknown'


class RequestParser:
    """Parses captured exchanges into QueryRequest / EventRequest records."""

    def __init__(self, token_resolver: Optional[TokenResolver] = None):
        self.token_resolver = token_resolver or TokenResolver()

    def parse(self, exchange: CapturedExchange, app_id: Optional[str] = None) -> ParseResult:
        """
        Classify and parse a captured exchange.

        Args:
            exchange: The captured request/response pair
            app_id: Application id; derived from the exchange when omitted

        Returns:
            QueryRequest, EventRequest, or ParseFailure. Never raises.
        """
        try:
            return self._parse(exchange, app_id)
        except Exception as e:
            return ParseFailure(
                reason='internal',
                url=getattr(exchange, 'url', ''),
                diagnostics=[Diagnostic('parse.error', {'error': repr(e)})],
            )

    def _parse(self, exchange: CapturedExchange, app_id: Optional[str]) -> ParseResult:
        diagnostics: List[Diagnostic] = []
        body = exchange.request_body or ''
        decoded = self.decode_body(body, diagnostics)

        if app_id is None:
            app_id = derive_app_id(exchange)

        if isinstance(decoded, dict):
            requests = decoded.get('requests')
            if isinstance(requests, list) and len(requests) >= 1:
                return self._parse_batch(exchange, decoded, requests, app_id, diagnostics)
            if any(name in decoded for name in QUERY_FIELDS):
                return self._parse_single(exchange, decoded, app_id, diagnostics)
            if isinstance(decoded.get('events'), list):
                return self._parse_events(exchange, decoded['events'], diagnostics)
            if any(name in decoded for name in EVENT_FIELDS):
                return self._parse_events(exchange, [decoded], diagnostics)
        elif isinstance(decoded, list):
            return self._parse_events(exchange, decoded, diagnostics)

        if (not decoded or decoded is _UNDECODABLE) and is_index_route(exchange.url):
            return self._parse_single(exchange, None, app_id, diagnostics)

        return ParseFailure(reason='unclassified', url=exchange.url, diagnostics=diagnostics)

    def decode_body(self, body: str, diagnostics: List[Diagnostic]) -> Any:
        """
        Decode a request body.

        Tries JSON first, then a URL-encoded body (whose ``requests`` value
        may itself be JSON). Returns None for an empty body and an internal
        sentinel when nothing could be decoded.
        """
        decoded = _load_json(body)
        if decoded is not _UNDECODABLE:
            return decoded

        diagnostics.append(Diagnostic('body.not_json', {'length': len(body)}))
        if '=' not in body or body.lstrip().startswith(('{', '[')):
            return _UNDECODABLE

        pairs = params_codec.decode(body, coerce=False)
        if 'requests' in pairs:
            nested = _load_json(pairs['requests'])
            if nested is not None and nested is not _UNDECODABLE:
                return nested
        return pairs

    def _parse_single(
        self,
        exchange: CapturedExchange,
        decoded: Optional[Dict[str, Any]],
        app_id: str,
        diagnostics: List[Diagnostic],
    ) -> QueryRequest:
        """Parse a single search (the index name lives in the URL)."""
        request_id = _new_id()
        headers = exchange.headers or {}
        url_params = params_codec.split_url(exchange.url).param_string

        if decoded is not None:
            params_string = params_string_of(decoded)
            resolution = self.token_resolver.resolve(decoded, params_string, header_token(headers))
            analytics = self._analytics_flag(decoded, params_string)
            parsed = self._parsed_params(decoded, params_string)
        else:
            # Malformed or empty body: fall back to the URL's query string
            resolution = self.token_resolver.resolve(None, url_params, header_token(headers))
            analytics = self._analytics_flag(None, url_params)
            parsed = self._parsed_params(None, url_params)

        collection = collection_from_url(exchange.url)
        if collection is None and decoded is not None and decoded.get('indexName'):
            collection = str(decoded['indexName'])

        response = _load_json(exchange.response_body or '')
        if response is _UNDECODABLE:
            diagnostics.append(Diagnostic('response.not_json', {'url': exchange.url}))

        query = QueryRecord(
            id=f"{request_id}:0",
            collection_name=collection or 'unknown',
            raw_params=exchange.request_body if exchange.request_body else url_params,
            correlation_id=_correlation_from(response),
            token=resolution.value,
            analytics_enabled=analytics,
            params_parsed=parsed,
        )

        return QueryRequest(
            id=request_id,
            observed_at=exchange.observed_at_ms,
            url=exchange.url,
            method=exchange.method,
            app_id=app_id,
            request_headers=dict(headers),
            request_body=exchange.request_body or '',
            response_status=exchange.status,
            response_body=exchange.response_body or '',
            queries=[query],
            diagnostics=diagnostics,
        )

    def _parse_batch(
        self,
        exchange: CapturedExchange,
        decoded: Dict[str, Any],
        requests: List[Any],
        app_id: str,
        diagnostics: List[Diagnostic],
    ) -> QueryRequest:
        """Parse a multi-query request; results pair with requests by position."""
        request_id = _new_id()
        headers = exchange.headers or {}

        results: List[Any] = []
        response = _load_json(exchange.response_body or '')
        if isinstance(response, dict) and isinstance(response.get('results'), list):
            results = response['results']
        else:
            diagnostics.append(Diagnostic('response.no_results', {'url': exchange.url}))

        resolutions = self.token_resolver.resolve_for_batch(header_token(headers), requests)
        diagnostics.extend(self.token_resolver.check_consistency(resolutions))

        queries: List[QueryRecord] = []
        for position, sub_query in enumerate(requests):
            if position >= len(results):
                diagnostics.append(Diagnostic(
                    'batch.missing_result',
                    {'omitted': len(requests) - position, 'requests': len(requests)},
                ))
                break

            descriptor = sub_query if isinstance(sub_query, dict) else {}
            raw_params, params_string = self._sub_query_params(descriptor)
            collection = descriptor.get('indexName') or params_codec.get_key(params_string, 'indexName')

            queries.append(QueryRecord(
                id=f"{request_id}:{position}",
                collection_name=str(collection) if collection else 'unknown',
                raw_params=raw_params,
                batch_position=position,
                correlation_id=_correlation_from(results[position]),
                token=resolutions[position].value,
                analytics_enabled=self._analytics_flag(descriptor, params_string),
                params_parsed=self._parsed_params(descriptor, params_string),
            ))

        return QueryRequest(
            id=request_id,
            observed_at=exchange.observed_at_ms,
            url=exchange.url,
            method=exchange.method,
            app_id=app_id,
            request_headers=dict(headers),
            request_body=exchange.request_body or '',
            response_status=exchange.status,
            response_body=exchange.response_body or '',
            queries=queries,
            diagnostics=diagnostics,
        )

    def _sub_query_params(self, descriptor: Dict[str, Any]) -> Tuple[str, Optional[str]]:
        """Get the verbatim params string of a sub-query and its decodable form."""
        params_string = params_string_of(descriptor)
        return params_string or '', params_string

    def _parsed_params(self, descriptor: Optional[Dict[str, Any]], params_string: Optional[str]) -> Dict[str, Any]:
        """Merge the nested params with the query object's own fields (which win)."""
        parsed = params_codec.decode(params_string)
        if isinstance(descriptor, dict):
            for key, value in descriptor.items():
                if key not in ('params', 'requests'):
                    parsed[key] = value
        return parsed

    def _analytics_flag(self, descriptor: Optional[Dict[str, Any]], params_string: Optional[str]) -> bool:
        value = descriptor.get('clickAnalytics') if isinstance(descriptor, dict) else None
        if isinstance(value, bool):
            return value
        if value == 'true':
            # URL-encoded bodies carry the flag as a string
            return True
        return params_codec.decode(params_string).get('clickAnalytics') is True

    def _parse_events(
        self,
        exchange: CapturedExchange,
        raw_events: List[Any],
        diagnostics: List[Diagnostic],
    ) -> ParseResult:
        """Parse an insights request ({"events": [...]}, a list, or one event)."""
        if not raw_events:
            return ParseFailure(reason='event.empty', url=exchange.url, diagnostics=diagnostics)

        request_id = _new_id()
        headers = exchange.headers or {}
        fallback_token = header_token(headers)

        events: List[EventRecord] = []
        for position, raw in enumerate(raw_events):
            if not isinstance(raw, dict):
                diagnostics.append(Diagnostic('event.not_object', {'position': position}))
                continue
            label = raw.get('eventName')
            events.append(EventRecord(
                id=f"evt_{request_id}:{position}",
                event_category=self.event_category(raw.get('eventType'), label),
                event_label=str(label) if label else 'unknown',
                collection_name=str(raw.get('index') or 'unknown'),
                object_ids=self._object_ids(raw),
                correlation_id=str(raw['queryID']) if raw.get('queryID') else None,
                token=self.token_resolver.resolve(raw, None, fallback_token).value,
                event_time=self._event_time(raw.get('timestamp')),
                positions=self._positions(raw.get('positions')),
            ))

        if not events:
            return ParseFailure(reason='event.empty', url=exchange.url, diagnostics=diagnostics)

        return EventRequest(
            id=request_id,
            observed_at=exchange.observed_at_ms,
            url=exchange.url,
            method=exchange.method,
            request_headers=dict(headers),
            request_body=exchange.request_body or '',
            response_status=exchange.status,
            response_body=exchange.response_body or '',
            events=events,
            diagnostics=diagnostics,
        )

    @staticmethod
    def event_category(explicit: Any, label: Any) -> str:
        """Get the event category from eventType, or infer it from the label."""
        if isinstance(explicit, str) and explicit.lower() in ('click', 'conversion', 'view'):
            return explicit.lower()
        if isinstance(label, str):
            lowered = label.lower()
            for keyword, category in CATEGORY_KEYWORDS:
                if keyword in lowered:
                    return category
        return DEFAULT_CATEGORY

    @staticmethod
    def _object_ids(raw: Dict[str, Any]) -> List[str]:
        object_ids = raw.get('objectIDs')
        result = [str(o) for o in object_ids] if isinstance(object_ids, list) else []
        if raw.get('objectID') is not None:
            result.append(str(raw['objectID']))
        return result

    @staticmethod
    def _positions(value: Any) -> List[int]:
        """Get the 1-based hit positions of a click; non-integer entries are dropped."""
        if not isinstance(value, list):
            return []
        return [int(p) for p in value
                if not isinstance(p, bool) and (isinstance(p, int) or (isinstance(p, float) and p.is_integer()))]

    @staticmethod
    def _event_time(value: Any) -> Optional[float]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)


_default_parser = RequestParser()


def parse_exchange(exchange: CapturedExchange, app_id: Optional[str] = None) -> ParseResult:
    """Parse an exchange with a shared default parser."""
    return _default_parser.parse(exchange, app_id)
