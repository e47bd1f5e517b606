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
User token resolution for search queries and insights events.

A token can live in three places. In priority order:

1. a ``userToken`` field on the query (or event) object itself
2. a ``userToken`` entry inside the query's nested ``params`` string
3. the ``X-Algolia-UserToken`` request header

An empty string found at 1 or 2 is kept as-is; only a missing key falls
through to the next source.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from . import params as params_codec
from .models import Diagnostic


TOKEN_FIELD = 'userToken'
TOKEN_HEADER = 'x-algolia-usertoken'

SOURCE_EXPLICIT = 'explicit'
SOURCE_PARAMS = 'params'
SOURCE_HEADER = 'header'


@dataclass(frozen=True)
class TokenResolution:
    """Resolved token for one query, with the source it came from."""
    value: Optional[str] = None
    source: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.source is not None


def header_token(headers: Optional[Dict[str, str]]) -> Optional[str]:
    """Get the user token header (case-insensitive)."""
    if not headers:
        return None
    for name, value in headers.items():
        if name.lower() == TOKEN_HEADER:
            return value
    return None


def params_string_of(descriptor: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Get the nested ``params`` of a query object as a parameter string.

    Newer clients send ``params`` as an object; it is encoded so that both
    forms are read the same way.
    """
    nested = descriptor.get('params') if isinstance(descriptor, dict) else None
    if isinstance(nested, str):
        return nested
    if isinstance(nested, dict):
        return params_codec.encode(nested)
    return None


def _as_token(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


class TokenResolver:
    """Resolves user tokens for single queries and for batches."""

    def resolve(
        self,
        descriptor: Optional[Dict[str, Any]],
        params_string: Optional[str],
        header_value: Optional[str] = None,
    ) -> TokenResolution:
        """
        Resolve the token for one query.

        Args:
            descriptor: The query's own JSON object (or None)
            params_string: The query's URL-encoded parameter string
            header_value: Token carried in the request headers

        Returns:
            TokenResolution; ``source`` is None when no token was found
        """
        if isinstance(descriptor, dict) and descriptor.get(TOKEN_FIELD) is not None:
            return TokenResolution(_as_token(descriptor[TOKEN_FIELD]), SOURCE_EXPLICIT)

        decoded = params_codec.decode(params_string, coerce=False)
        if TOKEN_FIELD in decoded:
            return TokenResolution(decoded[TOKEN_FIELD], SOURCE_PARAMS)

        if header_value is not None:
            return TokenResolution(header_value, SOURCE_HEADER)

        return TokenResolution()

    def resolve_for_batch(
        self,
        header_value: Optional[str],
        sub_queries: Sequence[Any],
    ) -> List[TokenResolution]:
        """Resolve the token of every sub-query, each on its own."""
        resolutions = []
        for sub_query in sub_queries:
            descriptor = sub_query if isinstance(sub_query, dict) else None
            resolutions.append(self.resolve(descriptor, params_string_of(descriptor), header_value))
        return resolutions

    def check_consistency(self, resolutions: Iterable[TokenResolution]) -> List[Diagnostic]:
        """
        Report batches that mix token values or token sources.

        Advisory only: the resolutions themselves are left untouched.
        """
        resolutions = list(resolutions)
        warnings: List[Diagnostic] = []

        values = []
        for resolution in resolutions:
            if resolution.value and resolution.value not in values:
                values.append(resolution.value)
        if len(values) > 1:
            warnings.append(Diagnostic('token.multiple_values', {'tokens': values}))

        sources = {r.source for r in resolutions if r.present}
        if SOURCE_HEADER in sources and sources & {SOURCE_EXPLICIT, SOURCE_PARAMS}:
            positions = [i for i, r in enumerate(resolutions) if r.source == SOURCE_HEADER]
            warnings.append(Diagnostic('token.mixed_sources', {'header_fallback': positions}))

        return warnings
