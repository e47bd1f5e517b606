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
HAR (HTTP Archive) reader.

Turns the entries of a HAR 1.2 log into CapturedExchange records.
"""

import base64
import binascii
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from search_parser.models import CapturedExchange


class HarLoadError(Exception):
    """Raised when a file is not a readable HAR log."""
    pass


def iso8601_to_ms(value: str) -> float:
    """Convert an ISO 8601 timestamp to epoch milliseconds (0 when unparsable)."""
    if not value:
        return 0.0
    try:
        # fromisoformat() only accepts a trailing 'Z' from Python 3.11 on
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000


def ms_to_iso8601(timestamp_ms: float) -> str:
    """Convert epoch milliseconds to ISO 8601 format."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, timezone.utc)
    return dt.isoformat()


def _headers_from_har(headers: Any) -> Dict[str, str]:
    result: Dict[str, str] = {}
    if not isinstance(headers, list):
        return result
    for header in headers:
        if isinstance(header, dict) and 'name' in header:
            result[str(header['name'])] = str(header.get('value', ''))
    return result


def _content_text(content: Any) -> str:
    """Get a response body, decoding base64 content."""
    if not isinstance(content, dict):
        return ""
    text = content.get('text') or ""
    if content.get('encoding') == 'base64' and text:
        try:
            return base64.b64decode(text).decode('utf-8', errors='replace')
        except (binascii.Error, ValueError):
            return text
    return text


def exchange_from_entry(entry: Dict[str, Any]) -> Optional[CapturedExchange]:
    """
    Convert one HAR entry into a CapturedExchange.

    Returns:
        CapturedExchange, or None if the entry has no request URL
    """
    request = entry.get('request') if isinstance(entry, dict) else None
    if not isinstance(request, dict) or not request.get('url'):
        return None

    response = entry.get('response') or {}
    post_data = request.get('postData') or {}

    status = response.get('status', 0) if isinstance(response, dict) else 0
    try:
        status = int(status)
    except (TypeError, ValueError):
        status = 0

    return CapturedExchange(
        url=str(request['url']),
        method=str(request.get('method') or 'GET'),
        headers=_headers_from_har(request.get('headers')),
        request_body=(post_data.get('text') or "") if isinstance(post_data, dict) else "",
        response_body=_content_text(response.get('content')) if isinstance(response, dict) else "",
        observed_at_ms=iso8601_to_ms(str(entry.get('startedDateTime') or "")),
        status=status,
    )


def load_har(filepath: str) -> List[CapturedExchange]:
    """
    Load all exchanges of a HAR file, in file order.

    Entries without a request URL are skipped.
    """
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise HarLoadError(f"Cannot read HAR file '{filepath}': {e}")

    log = data.get('log') if isinstance(data, dict) else None
    if not isinstance(log, dict) or not isinstance(log.get('entries'), list):
        raise HarLoadError(f"'{filepath}' is not a HAR log (missing log.entries)")

    exchanges = []
    for entry in log['entries']:
        exchange = exchange_from_entry(entry)
        if exchange is not None:
            exchanges.append(exchange)
    return exchanges
