"""
Shared fixtures for searchtrace tests.
"""

import json

import pytest

from search_parser.models import CapturedExchange, EventRecord, EventRequest, QueryRecord, QueryRequest


SEARCH_URL = "https://testapp-dsn.algolia.net/1/indexes/products/query"
MULTI_URL = "https://testapp-dsn.algolia.net/1/indexes/*/queries"
INSIGHTS_URL = "https://insights.algolia.io/1/events"


def make_exchange(url=SEARCH_URL, body="", response="", headers=None, method="POST", observed_at=1000.0):
    """Build a CapturedExchange; dict/list bodies are JSON-encoded."""
    if not isinstance(body, str):
        body = json.dumps(body)
    if not isinstance(response, str):
        response = json.dumps(response)
    return CapturedExchange(
        url=url,
        method=method,
        headers=headers or {},
        request_body=body,
        response_body=response,
        observed_at_ms=observed_at,
    )


def make_query_request(request_id, observed_at, queries):
    """Build a QueryRequest from (query_id, correlation_id) pairs."""
    batch = len(queries) > 1
    records = [
        QueryRecord(
            id=query_id,
            collection_name="products",
            raw_params="query=shoes",
            batch_position=position if batch else None,
            correlation_id=correlation_id,
        )
        for position, (query_id, correlation_id) in enumerate(queries)
    ]
    return QueryRequest(
        id=request_id,
        observed_at=observed_at,
        url=MULTI_URL if batch else SEARCH_URL,
        method="POST",
        app_id="testapp",
        queries=records,
    )


def make_event_request(request_id, observed_at, events):
    """Build an EventRequest from (event_id, correlation_id) pairs."""
    records = [
        EventRecord(
            id=event_id,
            event_category="click",
            event_label="Product Clicked",
            collection_name="products",
            object_ids=["1"],
            correlation_id=correlation_id,
        )
        for event_id, correlation_id in events
    ]
    return EventRequest(
        id=request_id,
        observed_at=observed_at,
        url=INSIGHTS_URL,
        method="POST",
        events=records,
    )


@pytest.fixture
def exchange_factory():
    return make_exchange


@pytest.fixture
def har_document():
    """A HAR log with one batch search, one insights call and one unrelated entry."""
    return {
        "log": {
            "version": "1.2",
            "creator": {"name": "test", "version": "1"},
            "entries": [
                {
                    "startedDateTime": "2024-01-01T10:00:00.000Z",
                    "request": {
                        "method": "POST",
                        "url": MULTI_URL,
                        "headers": [{"name": "X-Algolia-UserToken", "value": "user-1"}],
                        "postData": {
                            "mimeType": "application/json",
                            "text": json.dumps({"requests": [
                                {"indexName": "products", "params": "query=shoes&clickAnalytics=true"},
                                {"indexName": "shoes", "params": "query=shoes&clickAnalytics=true"},
                            ]}),
                        },
                    },
                    "response": {
                        "status": 200,
                        "content": {
                            "mimeType": "application/json",
                            "text": json.dumps({"results": [{"queryID": "q1"}, {"queryID": "q2"}]}),
                        },
                    },
                },
                {
                    "startedDateTime": "2024-01-01T10:00:05.000Z",
                    "request": {
                        "method": "POST",
                        "url": INSIGHTS_URL,
                        "headers": [],
                        "postData": {
                            "mimeType": "application/json",
                            "text": json.dumps({"events": [{
                                "eventType": "click",
                                "eventName": "Product Clicked",
                                "index": "shoes",
                                "objectIDs": ["42"],
                                "queryID": "q2",
                                "userToken": "user-1",
                            }]}),
                        },
                    },
                    "response": {"status": 200, "content": {"mimeType": "application/json", "text": "{}"}},
                },
                {
                    "startedDateTime": "2024-01-01T10:00:06.000Z",
                    "request": {"method": "GET", "url": "https://cdn.example.com/app.js", "headers": []},
                    "response": {"status": 200, "content": {"mimeType": "text/javascript", "text": ""}},
                },
            ],
        }
    }


@pytest.fixture
def har_file(tmp_path, har_document):
    path = tmp_path / "session.har"
    path.write_text(json.dumps(har_document), encoding="utf-8")
    return str(path)
