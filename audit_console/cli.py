"""Review audit reports from the command line.

Examples:
    audit-console reports
    audit-console issues 3f2a...
    audit-console compare 3f2a... 9bc1...
    audit-console download 3f2a... --output reports/latest.json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv

from .clients.gateway import Gateway
from .config.config_loader import load_console_settings
from .services.console_session import ConsoleSession
from .writers.report_writer import ReportWriter


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _fail(session: ConsoleSession) -> int:
    print(session.state.message, file=sys.stderr)
    return 1


def cmd_reports(session: ConsoleSession, args: argparse.Namespace) -> int:
    if not session.refresh_reports():
        return _fail(session)
    reports = session.state.reports
    if args.json:
        _print_json([item.model_dump(mode="json") for item in reports])
        return 0
    for item in reports:
        print(f"- {item.id}  {item.dataset_name}  {item.created_at or 'n/a'}  {item.issues_found} issues")
    print(f"\nTotal: {len(reports)} reports")
    return 0


def cmd_issues(session: ConsoleSession, args: argparse.Namespace) -> int:
    if session.load_report(args.report_id) is None:
        return _fail(session)
    issues = session.issue_log()
    if args.json:
        _print_json([issue.to_dict() for issue in issues])
        return 0
    for issue in issues:
        print(f"[{issue.severity.upper()}] row {issue.row_id}  {issue.error_type}  {issue.rule_or_column}  {issue.value}")
    print(f"\n{len(issues)} issues")
    return 0


def cmd_indicators(session: ConsoleSession, args: argparse.Namespace) -> int:
    if session.load_report(args.report_id) is None:
        return _fail(session)
    indicators = session.indicators()
    if args.json:
        _print_json([indicator.to_dict() for indicator in indicators])
        return 0
    for indicator in indicators:
        print(f"[{indicator.severity.upper()}] {indicator.label}: {indicator.detail}")
    print(f"\n{len(indicators)} alerts")
    return 0


def cmd_compare(session: ConsoleSession, args: argparse.Namespace) -> int:
    session.select_for_comparison(args.report_a, args.report_b)
    result = session.compare_selected()
    if result is None:
        return _fail(session)
    if args.json:
        _print_json({**result.to_dict(), "breakdown": session.state.breakdown})
        return 0
    print(f"Report A: {result.issues_a} issues")
    print(f"Report B: {result.issues_b} issues")
    print(f"Delta:    {result.delta:+d}")
    return 0


def cmd_download(session: ConsoleSession, args: argparse.Namespace) -> int:
    payload = session.download_report(args.report_id)
    if payload is None:
        return _fail(session)
    path = ReportWriter().write(args.report_id, payload, args.output)
    print(f"Wrote report to {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audit-console",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional settings YAML (default: the packaged console.yaml).",
    )
    parser.add_argument("--base-url", default=None, help="Override the audit engine base URL.")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("reports", help="List stored reports.").set_defaults(handler=cmd_reports)

    issues = subparsers.add_parser("issues", help="Show the issue log of a report.")
    issues.add_argument("report_id")
    issues.set_defaults(handler=cmd_issues)

    indicators = subparsers.add_parser("indicators", help="Show the issue indicators of a report.")
    indicators.add_argument("report_id")
    indicators.set_defaults(handler=cmd_indicators)

    compare = subparsers.add_parser("compare", help="Compare issue totals of two reports.")
    compare.add_argument("report_a")
    compare.add_argument("report_b")
    compare.set_defaults(handler=cmd_compare)

    download = subparsers.add_parser("download", help="Download a stored report as JSON.")
    download.add_argument("report_id")
    download.add_argument("--output", type=Path, default=None, help="Destination file.")
    download.set_defaults(handler=cmd_download)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    overrides = {"gateway": {"base_url": args.base_url}} if args.base_url else None
    settings = load_console_settings(args.config, overrides)
    session = ConsoleSession(Gateway(settings.gateway), settings.session)
    return args.handler(session, args)


if __name__ == "__main__":
    sys.exit(main())
