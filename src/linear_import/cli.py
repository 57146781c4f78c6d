"""
Command-line interface for the Linear import tool.
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import load_config
from .exceptions import ConfigurationError
from .importers import IMPORTERS, select_importer
from .label_translator import LabelTranslator
from .linear_target import LinearTarget
from .linear_utils import LinearClient
from .orchestrator import ImportReport, IssueStatus, Orchestrator, UserPolicy
from .utils import setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Import open issues, labels and comments into Linear")

    # Positional arguments
    _ = parser.add_argument("service", choices=sorted(IMPORTERS), help="Source to import from")
    _ = parser.add_argument("source", help='Source to import, e.g. a GitHub repository ("facebook/react")')

    # Optional arguments
    _ = parser.add_argument("--team", "-t", help="Linear team to import into (default: suggested by the importer)")

    _ = parser.add_argument(
        "--user-policy",
        choices=[policy.value for policy in UserPolicy],
        default=UserPolicy.ATTRIBUTE_TO_IMPORTER.value,
        help=(
            "How to handle comment authors without a Linear account: 'importer' posts their comments "
            "as you with an author header, 'placeholder' creates placeholder identities (default: importer)"
        ),
    )

    _ = parser.add_argument(
        "--relabel",
        "-l",
        action="append",
        help='Label translation pattern (format: "source_pattern:target_pattern"). Can be specified multiple times.',
    )

    _ = parser.add_argument(
        "--act-as-app",
        action="store_true",
        help="Post comments under their original author's name (requires an OAuth app token in actor=app mode)",
    )

    _ = parser.add_argument(
        "--max-page-errors",
        type=int,
        default=3,
        help="Consecutive failed page requests before giving up (default: 3)",
    )

    _ = parser.add_argument(
        "--linear-pass-token", help="Path for the Linear API key in pass utility (default: linear/api_key)"
    )

    _ = parser.add_argument(
        "--github-pass-token", help="Path for GitHub token in pass utility (default: github/cli/token)"
    )

    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase console verbosity (-v: info, -vv: debug)"
    )

    return parser.parse_args(argv)


def _print_import_report(report: ImportReport) -> None:
    """Print a summary of the import."""
    summary = report.as_dict()
    print(f"\nImport into team {summary['team']}: {'PASSED' if summary['success'] else 'FAILED'}")

    for key, value in summary["statistics"].items():
        print(f"  {key.replace('_', ' ')}: {value}")

    failed = [outcome for outcome in report.issues if outcome.status is IssueStatus.FAILED]
    if failed:
        print("\nFailed issues:")
        for outcome in failed:
            print(f"  - {outcome.title} ({outcome.source_id}): {outcome.error}")

    failed_errors = {outcome.error for outcome in failed}
    other_errors = [error for error in summary["errors"] if error not in failed_errors]
    if other_errors:
        print("\nErrors:")
        for error in other_errors:
            print(f"  - {error}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(verbosity=args.verbose)

    try:
        # The Linear key is checked before any importer is selected
        config = load_config(
            linear_pass_path=args.linear_pass_token,
            github_pass_path=args.github_pass_token,
            user_policy=UserPolicy(args.user_policy),
            max_page_errors=args.max_page_errors,
        )
        importer = select_importer(args.service, config, args.source)

        result = importer.import_issues()
        print(
            f"Fetched {len(result.issues)} issues, {len(result.labels)} labels "
            f"and {len(result.users)} users from {importer.name}"
        )

        client = LinearClient(config.linear_api_key, max_attempts=config.max_attempts, base_delay=config.base_delay)
        orchestrator = Orchestrator(
            LinearTarget(client, act_as_app=args.act_as_app),
            user_policy=config.user_policy,
            label_translator=LabelTranslator(args.relabel),
        )
        report = orchestrator.run(result, args.team or importer.default_team_name)

    except ConfigurationError as e:
        logger.error(str(e))  # noqa: TRY400
        sys.exit(1)
    except Exception:
        logger.exception("Import failed")
        sys.exit(1)

    _print_import_report(report)
    sys.exit(0 if report.success else 1)
