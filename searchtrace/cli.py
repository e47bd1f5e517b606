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
Command-line interface for searchtrace.
"""

import argparse
import json
import os
import sys
from typing import List, Optional

from .config import ConfigError, load_config
from .grouping import KIND_BATCH_HEADER, KIND_QUERY, GroupedItem, count_events_by_category
from .har import HarLoadError, load_har, ms_to_iso8601
from .session import Session


def format_item(item: GroupedItem) -> str:
    """Render one grouped item as a single indented line."""
    indent = "    " * item.level
    branch = "└─ " if item.is_last_in_group else "├─ "
    if item.level == 0:
        branch = ""

    payload = item.payload
    if item.kind == KIND_BATCH_HEADER:
        return f"{indent}[batch {payload.batch_id}] {payload.count} queries"

    if item.kind == KIND_QUERY:
        query = payload.queries[0] if payload.queries else None
        when = ms_to_iso8601(payload.observed_at) if payload.observed_at else "-"
        if query is None:
            return f"{indent}{branch}search {payload.url} @ {when} (no queries)"
        correlation = query.correlation_id or "no queryID"
        token = query.token if query.token is not None else "no userToken"
        details = "".join(f" {key}={value}" for key, value in query.key_params.items())
        if query.query_text is not None:
            details = f' "{query.query_text}"' + details
        return (f"{indent}{branch}search {query.collection_name}{details} @ {when} "
                f"[{correlation}] [{token}]")

    objects = ",".join(payload.object_ids) or "-"
    correlation = payload.correlation_id or "unlinked"
    return (f"{indent}{branch}{payload.event_category} '{payload.event_label}' "
            f"{payload.collection_name} objects={objects} [{correlation}]")


def render_text(items: List[GroupedItem]) -> str:
    return "\n".join(format_item(item) for item in items)


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the searchtrace CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        prog="searchtrace",
        description="Group search queries and insights events captured in a HAR file.",
        epilog="Examples:\n"
               "  searchtrace session.har\n"
               "  searchtrace session.har --json -o grouped.json\n"
               "  searchtrace session.har -c searchtrace.yaml -v",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "har_file",
        metavar="HAR_FILE",
        help="Path to the input HAR file",
    )

    parser.add_argument(
        "-o", "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        help="YAML configuration file (host patterns, findings)",
    )

    parser.add_argument(
        "--app-id",
        metavar="ID",
        help="Application id to record on search requests (default: derived per request)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Write the grouped items as JSON instead of a text tree",
    )

    parser.add_argument(
        "--indent",
        metavar="N",
        type=int,
        default=2,
        help="JSON indentation level (default: 2, use 0 for compact output)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print parse failures, diagnostics and findings to stderr",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress warnings and non-essential output",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    parsed_args = parser.parse_args(args)

    # Validate input file
    if not os.path.exists(parsed_args.har_file):
        print(f"Error: HAR file not found: {parsed_args.har_file}", file=sys.stderr)
        return 1

    try:
        config = load_config(parsed_args.config)
        exchanges = load_har(parsed_args.har_file)

        if parsed_args.verbose:
            print(f"Processing: {parsed_args.har_file} ({len(exchanges)} entries)", file=sys.stderr)

        session = Session(config=config)
        in_scope = session.ingest_all(exchanges, app_id=parsed_args.app_id)
        snapshot = session.snapshot()
        items = session.grouped()

        if parsed_args.verbose:
            print(f"In scope: {in_scope}, searches: {len(snapshot.query_requests)}, "
                  f"insights: {len(snapshot.event_requests)}", file=sys.stderr)
            for category, count in sorted(count_events_by_category(snapshot.event_requests).items()):
                print(f"  {category}: {count}", file=sys.stderr)
            for request in snapshot.query_requests + snapshot.event_requests:
                for diagnostic in request.diagnostics:
                    print(f"Diagnostic: {diagnostic.code} {request.url} {diagnostic.context}",
                          file=sys.stderr)
            for finding in session.findings():
                print(f"Finding: {finding.code} {finding.context}", file=sys.stderr)

        if snapshot.failures and not parsed_args.quiet:
            print(f"Warning: {len(snapshot.failures)} exchanges could not be parsed", file=sys.stderr)
            if parsed_args.verbose:
                for failure in snapshot.failures:
                    print(f"  {failure.reason}: {failure.url}", file=sys.stderr)

        if parsed_args.json:
            indent = parsed_args.indent if parsed_args.indent > 0 else None
            output = json.dumps([item.to_dict() for item in items], indent=indent, ensure_ascii=False)
        else:
            output = render_text(items)

        if parsed_args.output:
            with open(parsed_args.output, 'w', encoding='utf-8') as f:
                f.write(output)
                f.write("\n")
            if parsed_args.verbose:
                print(f"Output written to: {parsed_args.output}", file=sys.stderr)
        else:
            print(output)

        return 0

    except (ConfigError, HarLoadError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    except Exception as e:
        if parsed_args.verbose:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
