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
Configuration for searchtrace.

Settings are read from a YAML file:

    host_patterns:
      - '^https://.*\\.algolia\\.net/'
      - '^https://insights\\.algolia\\.io/'
    flag_missing_token: true

Every key is optional; missing keys keep their defaults.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern

import yaml


DEFAULT_HOST_PATTERNS = [
    r'^https://.*\.algolia\.net/',
    r'^https://.*\.algolianet\.com/',
    r'^https://insights\.algolia\.io/',
    r'^https://insights\..*\.algolia\.io/',
]


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""
    pass


@dataclass
class TraceConfig:
    """Which exchanges are in scope, and which findings to report."""
    host_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_HOST_PATTERNS))
    flag_missing_token: bool = True
    _compiled: List[Pattern] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        try:
            self._compiled = [re.compile(p) for p in self.host_patterns]
        except re.error as e:
            raise ConfigError(f"Invalid host pattern: {e}")

    def in_scope(self, url: str) -> bool:
        """Check if a URL matches one of the host patterns."""
        return any(p.search(url or '') for p in self._compiled)


def _from_dict(data: Dict[str, Any], source: str) -> TraceConfig:
    patterns = data.get('host_patterns', DEFAULT_HOST_PATTERNS)
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise ConfigError(f"'host_patterns' in '{source}' must be a list of strings")

    flag = data.get('flag_missing_token', True)
    if not isinstance(flag, bool):
        raise ConfigError(f"'flag_missing_token' in '{source}' must be true or false")

    return TraceConfig(host_patterns=list(patterns), flag_missing_token=flag)


def load_config(path: Optional[str] = None) -> TraceConfig:
    """
    Load the configuration.

    Args:
        path: YAML file to read; defaults are returned when omitted

    Returns:
        TraceConfig
    """
    if path is None:
        return TraceConfig()

    if not os.path.exists(path):
        raise ConfigError(f"Configuration file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing '{path}': {e}")

    if data is None:
        return TraceConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"'{path}' must contain a mapping")

    return _from_dict(data, path)
