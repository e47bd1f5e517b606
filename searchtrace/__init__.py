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
searchtrace - Inspect search and insights traffic captured in HAR files.

Parses search API requests and insights events, links every event to the
query that produced it, and lays the result out as a display tree.

Usage:
    # As a CLI tool
    searchtrace session.har

    # As a library
    from searchtrace import Session, load_har

    session = Session()
    session.ingest_all(load_har("session.har"))
    for item in session.grouped():
        print(item.level, item.kind)
"""

from .config import ConfigError, TraceConfig, load_config
from .grouping import (
    BatchHeader,
    EventIndex,
    GroupedItem,
    batch_query_ids,
    count_events_by_category,
    flatten_events,
    group,
)
from .har import HarLoadError, exchange_from_entry, load_har
from .session import Session, SessionSnapshot
from .cli import main

__version__ = "0.1.0"
__all__ = [
    # Grouping
    "BatchHeader",
    "EventIndex",
    "GroupedItem",
    "batch_query_ids",
    "count_events_by_category",
    "flatten_events",
    "group",
    # Session and configuration
    "ConfigError",
    "Session",
    "SessionSnapshot",
    "TraceConfig",
    "load_config",
    # HAR input
    "HarLoadError",
    "exchange_from_entry",
    "load_har",
    # CLI
    "main",
]
