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
Data models for captured exchanges, search queries and insights events.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


EVENT_CATEGORIES = ("click", "conversion", "view")

KEY_PARAMS = ("hitsPerPage", "filters")


@dataclass
class CapturedExchange:
    """A single request/response pair handed over by the capture layer."""

    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    request_body: str = ""
    response_body: str = ""
    observed_at_ms: float = 0.0
    status: int = 200

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header by name (case-insensitive)."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    @property
    def content_type(self) -> str:
        """Get the Content-Type header."""
        return self.get_header('content-type', '') or ''

    def __repr__(self) -> str:
        return f"CapturedExchange({self.method} {self.url})"


@dataclass
class Diagnostic:
    """Structured diagnostic emitted while parsing or grouping."""
    code: str
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "context": dict(self.context)}


@dataclass
class QueryRecord:
    """One logical query carried inside a search request."""

    id: str
    collection_name: str
    raw_params: str
    batch_position: Optional[int] = None
    correlation_id: Optional[str] = None
    token: Optional[str] = None
    analytics_enabled: bool = False
    params_parsed: Dict[str, Any] = field(default_factory=dict)

    @property
    def query_text(self) -> Optional[str]:
        """Get the search text, or None if the query carries no ``query`` parameter."""
        value = self.params_parsed.get("query")
        return None if value is None else str(value)

    @property
    def key_params(self) -> Dict[str, Any]:
        """Get the parameters worth showing next to the search text."""
        return {k: self.params_parsed[k] for k in KEY_PARAMS if self.params_parsed.get(k) not in (None, "")}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "collectionName": self.collection_name,
            "rawParams": self.raw_params,
            "paramsParsed": dict(self.params_parsed),
            "analyticsEnabled": self.analytics_enabled,
        }
        if self.batch_position is not None:
            result["batchPosition"] = self.batch_position
        if self.correlation_id is not None:
            result["correlationId"] = self.correlation_id
        if self.token is not None:
            result["token"] = self.token
        return result


@dataclass
class QueryRequest:
    """A search request carrying one or more queries."""

    id: str
    observed_at: float
    url: str
    method: str
    app_id: str
    request_headers: Dict[str, str] = field(default_factory=dict)
    request_body: str = ""
    response_status: int = 200
    response_body: str = ""
    queries: List[QueryRecord] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    kind: str = field(default="query", init=False)

    @property
    def is_batch(self) -> bool:
        """Check if the request bundles several queries."""
        return len(self.queries) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "observedAt": self.observed_at,
            "url": self.url,
            "method": self.method,
            "appId": self.app_id,
            "requestHeaders": dict(self.request_headers),
            "requestBody": self.request_body,
            "responseStatus": self.response_status,
            "responseBody": self.response_body,
            "queries": [q.to_dict() for q in self.queries],
        }

    def __repr__(self) -> str:
        return f"QueryRequest({self.method} {self.url}, queries={len(self.queries)})"


@dataclass
class EventRecord:
    """One insights event."""

    id: str
    event_category: str
    event_label: str
    collection_name: str
    object_ids: List[str] = field(default_factory=list)
    correlation_id: Optional[str] = None
    token: Optional[str] = None
    event_time: Optional[float] = None
    positions: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "eventCategory": self.event_category,
            "eventLabel": self.event_label,
            "collectionName": self.collection_name,
            "objectIds": list(self.object_ids),
            "positions": list(self.positions),
        }
        if self.correlation_id is not None:
            result["correlationId"] = self.correlation_id
        if self.token is not None:
            result["token"] = self.token
        if self.event_time is not None:
            result["eventTime"] = self.event_time
        return result


@dataclass
class EventRequest:
    """An insights request carrying one or more events."""

    id: str
    observed_at: float
    url: str
    method: str
    request_headers: Dict[str, str] = field(default_factory=dict)
    request_body: str = ""
    response_status: int = 200
    response_body: str = ""
    events: List[EventRecord] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    kind: str = field(default="event", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "observedAt": self.observed_at,
            "url": self.url,
            "method": self.method,
            "requestHeaders": dict(self.request_headers),
            "requestBody": self.request_body,
            "responseStatus": self.response_status,
            "responseBody": self.response_body,
            "events": [e.to_dict() for e in self.events],
        }

    def __repr__(self) -> str:
        return f"EventRequest({self.method} {self.url}, events={len(self.events)})"


@dataclass
class ParseFailure:
    """An exchange that could not be turned into a query or event request."""

    reason: str
    url: str = ""
    diagnostics: List[Diagnostic] = field(default_factory=list)
    kind: str = field(default="failure", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "reason": self.reason,
            "url": self.url,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    def __bool__(self) -> bool:
        return False


ParseResult = Union[QueryRequest, EventRequest, ParseFailure]
