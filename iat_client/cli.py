"""
Command line interface for the IAT result submission client.

Usage:
    # Check API, storage and statistics endpoints
    iat-client diagnose

    # Show total and today's result counts
    iat-client stats

    # Submit a result file without the pre-flight probes
    iat-client submit result.json --skip-preflight

    # Print this installation's user id
    iat-client user-id

The submit file holds ``testResults``, ``analysis`` and optionally
``surveyResponses`` using the API's camelCase field names.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from iat_client.client import (
    AnalysisInput,
    ResultSubmissionClient,
    SubmissionError,
    TestResults,
)
from iat_client.config import ClientSettings
from iat_client.identity import UserIdStore

logger = logging.getLogger(__name__)


def _build_client(
    settings: ClientSettings, skip_preflight: bool = False
) -> ResultSubmissionClient:
    return ResultSubmissionClient(
        settings.IAT_API_BASE_URL,
        preflight=not (skip_preflight or settings.IAT_CLIENT_SKIP_PREFLIGHT),
        timeout=settings.IAT_CLIENT_TIMEOUT,
        user_id_store=UserIdStore(settings.IAT_CLIENT_STATE_PATH),
    )


def _cmd_diagnose(args: argparse.Namespace, settings: ClientSettings) -> int:
    with _build_client(settings) as client:
        return 0 if client.diagnose() else 1


def _cmd_stats(args: argparse.Namespace, settings: ClientSettings) -> int:
    with _build_client(settings) as client:
        stats = client.get_stats()
    if stats is None:
        print("Could not fetch statistics.", file=sys.stderr)
        return 1
    data = stats.get("data") or {}
    print(f"Total results: {data.get('total', 0)}")
    print(f"Submitted today: {data.get('today', 0)}")
    return 0


def _cmd_submit(args: argparse.Namespace, settings: ClientSettings) -> int:
    try:
        document = json.loads(Path(args.file).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        return 2
    if not isinstance(document, dict):
        print(f"{args.file} must contain a JSON object", file=sys.stderr)
        return 2

    test_results = TestResults.from_dict(document.get("testResults") or {})
    analysis = AnalysisInput.from_dict(document.get("analysis") or {})

    with _build_client(settings, skip_preflight=args.skip_preflight) as client:
        try:
            result = client.submit(
                test_results, analysis, document.get("surveyResponses")
            )
        except SubmissionError as e:
            print(f"Submission failed: {e.message}", file=sys.stderr)
            return 1

    data = result.get("data") or {}
    print(f"Saved test result {data.get('id')} for {data.get('userId')}")
    return 0


def _cmd_user_id(args: argparse.Namespace, settings: ClientSettings) -> int:
    print(UserIdStore(settings.IAT_CLIENT_STATE_PATH).get_or_create_user_id())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iat-client",
        description="Submit and inspect IAT test results",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log each request step",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    diagnose = subparsers.add_parser(
        "diagnose", help="Check the API banner, health, storage and statistics"
    )
    diagnose.set_defaults(handler=_cmd_diagnose)

    stats = subparsers.add_parser("stats", help="Show result counts")
    stats.set_defaults(handler=_cmd_stats)

    submit = subparsers.add_parser("submit", help="Submit a result file")
    submit.add_argument("file", help="JSON file with testResults and analysis")
    submit.add_argument(
        "--skip-preflight",
        action="store_true",
        help="Do not run the health and storage probes before submitting",
    )
    submit.set_defaults(handler=_cmd_submit)

    user_id = subparsers.add_parser("user-id", help="Print this installation's user id")
    user_id.set_defaults(handler=_cmd_user_id)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    return args.handler(args, ClientSettings())


if __name__ == "__main__":
    sys.exit(main())
