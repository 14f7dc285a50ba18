"""Command line entry point.

Usage:
    # Register submissions of an event
    copycheck register --event hack-2024 --submission s1 --repo https://github.com/org/a

    # Run a plagiarism check, prints the report ID
    copycheck run --event hack-2024 --submission s1

    # Inspect reports
    copycheck show <report_id>
    copycheck list --event hack-2024 --status COMPLETED
"""

import argparse
import asyncio
import json
import logging
import sys

from .anti_copying.detector import run_plagiarism_check
from .config import get_config
from .core.exceptions import CheckFailedError, SubmissionNotFoundError
from .core.protocols import ReportStatus
from .storage.database import get_database

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copycheck",
        description="Repository similarity reports for competition submissions",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    register = commands.add_parser("register", help="Register a submission")
    register.add_argument("--event", required=True, help="Event ID")
    register.add_argument("--repo", required=True, help="Repository URL")
    register.add_argument("--submission", help="Submission ID (generated if omitted)")

    run = commands.add_parser("run", help="Run a plagiarism check for a submission")
    run.add_argument("--event", required=True, help="Event ID")
    run.add_argument("--submission", required=True, help="Submission ID")

    show = commands.add_parser("show", help="Print a report as JSON")
    show.add_argument("report_id", help="Report ID")

    list_cmd = commands.add_parser("list", help="List reports")
    list_cmd.add_argument("--event", help="Filter by event ID")
    list_cmd.add_argument("--submission", help="Filter by submission ID")
    list_cmd.add_argument(
        "--status",
        choices=[status.value for status in ReportStatus],
        help="Filter by status",
    )

    return parser


async def _register(args: argparse.Namespace) -> int:
    db = await get_database()
    submission = await db.save_submission(args.event, args.repo, submission_id=args.submission)
    print(submission.submission_id)
    return 0


async def _run(args: argparse.Namespace) -> int:
    try:
        report_id = await run_plagiarism_check(args.event, args.submission)
    except SubmissionNotFoundError as e:
        logger.error(str(e))
        return 1
    except CheckFailedError as e:
        logger.error(str(e))
        print(e.report_id)
        return 1
    print(report_id)
    return 0


async def _show(args: argparse.Namespace) -> int:
    db = await get_database()
    report = await db.get_report(args.report_id)
    if report is None:
        logger.error(f"Report not found: {args.report_id}")
        return 1
    print(json.dumps(report.to_dict(), indent=2))
    return 0


async def _list(args: argparse.Namespace) -> int:
    db = await get_database()
    reports = await db.list_reports(
        event_id=args.event,
        submission_id=args.submission,
        status=ReportStatus(args.status) if args.status else None,
    )
    for report in reports:
        top = report.get_similarities()[:1]
        top_text = f"{top[0].similarity:.3f} ({top[0].other_submission_id})" if top else "-"
        print(
            f"{report.report_id}  {report.status.value:<9}  {report.event_id}  "
            f"{report.submission_id}  top={top_text}"
        )
    return 0


COMMANDS = {
    "register": _register,
    "run": _run,
    "show": _show,
    "list": _list,
}


async def _main(args: argparse.Namespace) -> int:
    db = await get_database()
    try:
        return await COMMANDS[args.command](args)
    finally:
        await db.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose or get_config().debug else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
