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
Search traffic parser module

Parse captured search API exchanges into query and event records.

Example usage:
    from search_parser import CapturedExchange, RequestParser

    parser = RequestParser()
    result = parser.parse(CapturedExchange(url=url, method="POST", request_body=body))

    if result.kind == "query":
        for query in result.queries:
            print(f"{query.collection_name}: {query.correlation_id}")
    elif result.kind == "event":
        print(f"{len(result.events)} events")
"""

from .models import (
    CapturedExchange,
    Diagnostic,
    EventRecord,
    EventRequest,
    ParseFailure,
    QueryRecord,
    QueryRequest,
)
from .parser import RequestParser, derive_app_id, parse_exchange
from .tokens import TokenResolution, TokenResolver
from . import params

__all__ = [
    'CapturedExchange',
    'Diagnostic',
    'EventRecord',
    'EventRequest',
    'ParseFailure',
    'QueryRecord',
    'QueryRequest',
    'RequestParser',
    'TokenResolution',
    'TokenResolver',
    'derive_app_id',
    'params',
    'parse_exchange',
]

__version__ = '0.1.0'
