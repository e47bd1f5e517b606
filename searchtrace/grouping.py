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
Correlation of search queries and insights events into a display hierarchy.

Queries are listed newest first. Events that carry a query's correlation id
are nested beneath it, newest first. Multi-query requests get a batch header
with their own sub-queries beneath it, and events that match no query are
listed last at the top level.
"""

import dataclasses
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from search_parser.models import EventRecord, EventRequest, QueryRecord, QueryRequest


KIND_QUERY = "query"
KIND_EVENT = "event"
KIND_BATCH_HEADER = "batch-header"


@dataclass
class BatchHeader:
    """Synthetic header placed above the sub-queries of one batch."""
    batch_id: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"batchId": self.batch_id, "count": self.count}


@dataclass
class GroupedItem:
    """One row of the grouped display sequence."""
    payload: Union[QueryRequest, EventRecord, BatchHeader]
    kind: str
    level: int
    parent_correlation_id: Optional[str] = None
    batch_id: Optional[str] = None
    is_last_in_group: bool = False
    has_children: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "level": self.level,
            "parentCorrelationId": self.parent_correlation_id,
            "batchId": self.batch_id,
            "isLastInGroup": self.is_last_in_group,
            "hasChildren": self.has_children,
            "payload": self.payload.to_dict(),
        }


@dataclass
class IndexedEvent:
    """An event together with the time used to order it."""
    event: EventRecord
    time: float


@dataclass
class EventIndex:
    """
    Lookup of events by correlation id.

    Owned by the caller and passed into ``group`` so that sessions never
    share an index.
    """
    events: List[IndexedEvent] = field(default_factory=list)
    by_correlation: Dict[str, List[IndexedEvent]] = field(default_factory=dict)

    @classmethod
    def build(cls, event_requests: Iterable[EventRequest]) -> "EventIndex":
        index = cls()
        for request in event_requests:
            for event in request.events:
                index.add(event, request.observed_at)
        return index

    def add(self, event: EventRecord, fallback_time: float = 0.0) -> None:
        """Add an event; its own time wins over the enclosing request's."""
        time = event.event_time if event.event_time is not None else fallback_time
        entry = IndexedEvent(event=event, time=time)
        self.events.append(entry)
        if event.correlation_id:
            self.by_correlation.setdefault(event.correlation_id, []).append(entry)

    def linked(self, correlation_id: Optional[str]) -> List[EventRecord]:
        """Get the events linked to a correlation id, newest first."""
        if not correlation_id:
            return []
        return _newest_first(self.by_correlation.get(correlation_id, []))


def _newest_first(entries: Sequence[IndexedEvent]) -> List[EventRecord]:
    # sorted() is stable with reverse=True, equal times keep input order
    return [e.event for e in sorted(entries, key=lambda e: e.time, reverse=True)]


class _BatchIds:
    """Hands out batch ids that are unique within one grouping pass."""

    def __init__(self):
        self.used = set()

    def next(self, request: QueryRequest) -> str:
        batch_id = f"batch_{request.id}"
        suffix = 1
        while batch_id in self.used:
            suffix += 1
            batch_id = f"batch_{request.id}#{suffix}"
        self.used.add(batch_id)
        return batch_id


def _emit_query(
    result: List[GroupedItem],
    payload: QueryRequest,
    query: Optional[QueryRecord],
    level: int,
    batch_id: Optional[str],
    index: EventIndex,
    linked_ids: set,
) -> None:
    correlation_id = query.correlation_id if query else None
    events = index.linked(correlation_id)

    result.append(GroupedItem(
        payload=payload,
        kind=KIND_QUERY,
        level=level,
        batch_id=batch_id,
        is_last_in_group=not events,
        has_children=bool(events),
    ))

    for position, event in enumerate(events):
        linked_ids.add(event.id)
        result.append(GroupedItem(
            payload=event,
            kind=KIND_EVENT,
            level=level + 1,
            parent_correlation_id=correlation_id,
            batch_id=batch_id,
            is_last_in_group=position == len(events) - 1,
            has_children=False,
        ))


def group(
    query_requests: Sequence[QueryRequest],
    event_requests: Sequence[EventRequest],
    index: Optional[EventIndex] = None,
) -> List[GroupedItem]:
    """
    Group queries and events into an ordered, leveled display sequence.

    Args:
        query_requests: Search requests of a session
        event_requests: Insights requests of the same session
        index: Prebuilt event index for ``event_requests`` (built if omitted)

    Returns:
        List of GroupedItem in display order. Inputs are not modified.
    """
    if index is None:
        index = EventIndex.build(event_requests)

    result: List[GroupedItem] = []
    linked_ids: set = set()
    batch_ids = _BatchIds()

    # Newest first; equal timestamps keep input order
    ordered = sorted(query_requests, key=lambda r: r.observed_at, reverse=True)

    for request in ordered:
        if request.is_batch:
            batch_id = batch_ids.next(request)
            result.append(GroupedItem(
                payload=BatchHeader(batch_id=batch_id, count=len(request.queries)),
                kind=KIND_BATCH_HEADER,
                level=0,
                batch_id=batch_id,
                is_last_in_group=False,
                has_children=True,
            ))
            # Only this request's own sub-queries, in their original order
            for query in request.queries:
                payload = dataclasses.replace(request, queries=[query])
                _emit_query(result, payload, query, 1, batch_id, index, linked_ids)
        else:
            query = request.queries[0] if request.queries else None
            _emit_query(result, request, query, 0, None, index, linked_ids)

    unlinked = [e for e in index.events if e.event.id not in linked_ids]
    for event in _newest_first(unlinked):
        result.append(GroupedItem(
            payload=event,
            kind=KIND_EVENT,
            level=0,
            parent_correlation_id=None,
            batch_id=None,
            is_last_in_group=True,
            has_children=False,
        ))

    return result


def batch_query_ids(items: Iterable[GroupedItem], batch_id: str) -> List[str]:
    """Get the ids of the queries grouped under a batch, in display order."""
    ids = []
    for item in items:
        if item.kind == KIND_QUERY and item.batch_id == batch_id:
            ids.extend(q.id for q in item.payload.queries)
    return ids


def flatten_events(event_requests: Iterable[EventRequest]) -> List[Tuple[EventRecord, EventRequest]]:
    """Get every event with its enclosing request, newest request first."""
    pairs = [(event, request) for request in event_requests for event in request.events]
    return sorted(pairs, key=lambda pair: pair[1].observed_at, reverse=True)


def count_events_by_category(event_requests: Iterable[EventRequest]) -> Dict[str, int]:
    """Count events per category."""
    counts: Counter = Counter()
    for request in event_requests:
        for event in request.events:
            counts[event.event_category or "unknown"] += 1
    return dict(counts)
