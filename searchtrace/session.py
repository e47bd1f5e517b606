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
Session store for parsed search traffic.

Accumulates parsed requests in arrival order and hands out consistent
snapshots for grouping.
"""

import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from search_parser.models import (
    CapturedExchange,
    Diagnostic,
    EventRequest,
    ParseFailure,
    ParseResult,
    QueryRequest,
)
from search_parser.parser import RequestParser

from .config import TraceConfig
from .grouping import EventIndex, GroupedItem, group


@dataclass(frozen=True)
class SessionSnapshot:
    """Point-in-time view of a session."""
    query_requests: Tuple[QueryRequest, ...] = ()
    event_requests: Tuple[EventRequest, ...] = ()
    failures: Tuple[ParseFailure, ...] = ()


class Session:
    """
    Append-only collection of the requests captured for one page or tab.
    """

    def __init__(self, config: Optional[TraceConfig] = None, parser: Optional[RequestParser] = None):
        self.config = config or TraceConfig()
        self.parser = parser or RequestParser()
        self._lock = threading.Lock()
        self._queries: List[QueryRequest] = []
        self._events: List[EventRequest] = []
        self._failures: List[ParseFailure] = []

    def ingest(self, exchange: CapturedExchange, app_id: Optional[str] = None) -> Optional[ParseResult]:
        """
        Parse an exchange and add the result to the session.

        Returns:
            The parse result, or None if the exchange is out of scope
        """
        if not self.config.in_scope(exchange.url):
            return None

        result = self.parser.parse(exchange, app_id)
        with self._lock:
            if result.kind == "query":
                self._queries.append(result)
            elif result.kind == "event":
                self._events.append(result)
            else:
                self._failures.append(result)
        return result

    def ingest_all(self, exchanges: Iterable[CapturedExchange], app_id: Optional[str] = None) -> int:
        """Ingest several exchanges; returns how many were in scope."""
        count = 0
        for exchange in exchanges:
            if self.ingest(exchange, app_id) is not None:
                count += 1
        return count

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                query_requests=tuple(self._queries),
                event_requests=tuple(self._events),
                failures=tuple(self._failures),
            )

    def grouped(self) -> List[GroupedItem]:
        """Group the current snapshot for display."""
        snapshot = self.snapshot()
        index = EventIndex.build(snapshot.event_requests)
        return group(snapshot.query_requests, snapshot.event_requests, index=index)

    def findings(self) -> List[Diagnostic]:
        """
        List queries and events that lack a token or a correlation id.

        Queries are only expected to carry a correlation id when they enable
        click analytics.

        Token findings are only reported when ``flag_missing_token`` is set.
        """
        snapshot = self.snapshot()
        findings: List[Diagnostic] = []

        for request in snapshot.query_requests:
            for query in request.queries:
                if self.config.flag_missing_token and query.token is None:
                    findings.append(Diagnostic('finding.missing_token', {
                        'query_id': query.id,
                        'collection': query.collection_name,
                    }))
                if query.analytics_enabled and query.correlation_id is None:
                    # clickAnalytics was requested but no queryID came back
                    findings.append(Diagnostic('finding.missing_correlation', {
                        'query_id': query.id,
                        'collection': query.collection_name,
                    }))

        for request in snapshot.event_requests:
            for event in request.events:
                if self.config.flag_missing_token and event.token is None:
                    findings.append(Diagnostic('finding.missing_token', {
                        'event_id': event.id,
                        'label': event.event_label,
                    }))
                if event.correlation_id is None:
                    findings.append(Diagnostic('finding.missing_correlation', {
                        'event_id': event.id,
                        'label': event.event_label,
                    }))

        return findings
