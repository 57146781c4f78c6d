"""Import orchestrator that materializes an ImportResult in the destination.

The Orchestrator drives a TargetSystem from a normalized ImportResult. It
owns the creation order and the mapping from source keys to destination ids.

Import Flow
-----------
Phase 1: Preparation
    - Validate the ImportResult references (nothing is written if invalid)
    - Resolve or create the destination team
    - Collect the source ids of issues imported by earlier runs, read from
      their provenance marker comments

Phase 2: Labels and users
    - Labels and users referenced only by issues skipped in Phase 1 are left
      alone, so a complete re-run writes nothing
    - Create every other label, building label_map (source key -> destination id)
    - Resolve every other user by email, building user_map. Users without a
      destination account follow the UserPolicy chosen by the caller:
      ATTRIBUTE_TO_IMPORTER maps them to None (their comments are posted by
      the importer with an author header), PLACEHOLDER creates a placeholder
      identity for them
    - Labels and users have no ordering constraints among themselves, but all
      of them complete before the first issue is created

Phase 3: Issues and comments
    For each issue, in source order:
        a. Skip it if its source id was found in Phase 1
        b. Translate label keys and comment authors; any key missing from
           label_map/user_map fails this issue before anything is written
        c. Create the issue
        d. Create its comments in order, provenance marker last; delete the
           issue if one of them fails

Error Handling
--------------
- Team resolution and duplicate detection failures abort the run
- A failed label or user is recorded and left out of the mappings; issues
  depending on it fail individually with UnresolvedReferenceError
- A failed comment stops the remaining comments of its issue and the issue
  is deleted again, so the next run imports it from scratch. The marker is
  only written for fully imported issues
- Rejected credentials (ConfigurationError) abort the run
- Rate limits are retried by the client before they surface here
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import requests

from .exceptions import ConfigurationError, MigrationError, UnresolvedReferenceError
from .issue_builder import build_attributed_comment

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .label_translator import LabelTranslator
    from .models import Comment, ImportResult, Issue, Label, User
    from .protocols import TargetSystem

logger: logging.Logger = logging.getLogger(__name__)

# Errors that fail a single label, user, issue or comment
_ENTITY_ERRORS = (MigrationError, requests.RequestException)


class UserPolicy(StrEnum):
    """What to do with users that have no account in the destination."""

    ATTRIBUTE_TO_IMPORTER = "importer"
    PLACEHOLDER = "placeholder"


class IssueStatus(StrEnum):
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class IssueOutcome:
    """What happened to one source issue."""

    source_id: str
    title: str
    status: IssueStatus
    target_id: str | None = None
    comments_created: int = 0
    error: str | None = None


@dataclass
class MigrationStats:
    """Statistics collected during an import."""

    labels_created: int = 0
    labels_failed: int = 0
    labels_skipped: int = 0
    users_matched: int = 0
    users_placeholder: int = 0
    users_attributed: int = 0
    users_failed: int = 0
    users_skipped: int = 0
    issues_created: int = 0
    issues_skipped: int = 0
    issues_failed: int = 0
    comments_created: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class ImportReport:
    """Result of an import run."""

    team_name: str
    team_id: str
    stats: MigrationStats
    issues: list[IssueOutcome]
    label_map: dict[str, str]  # source label key -> destination label id
    user_map: dict[str, str | None]  # source user key -> destination user id (None: importer)

    @property
    def success(self) -> bool:
        return not self.stats.errors

    def as_dict(self) -> dict[str, Any]:
        stats = {key: value for key, value in vars(self.stats).items() if key != "errors"}
        return {
            "team": self.team_name,
            "success": self.success,
            "errors": list(self.stats.errors),
            "statistics": stats,
        }


def _keys_only_used_by(result: ImportResult, imported: set[str]) -> tuple[set[str], set[str]]:
    """Return the label and user keys referenced only by already imported issues."""
    imported_labels: set[str] = set()
    imported_users: set[str] = set()
    pending_labels: set[str] = set()
    pending_users: set[str] = set()
    for issue in result.issues:
        if issue.source_id in imported:
            labels, users = imported_labels, imported_users
        else:
            labels, users = pending_labels, pending_users
        labels.update(issue.labels)
        users.update(comment.user_id for comment in issue.comments if comment.user_id is not None)
    return imported_labels - pending_labels, imported_users - pending_users


class Orchestrator:
    """Imports an ImportResult into a target system.

    Usage:
        importer = GithubImporter(token, "facebook", "react")
        target = LinearTarget(LinearClient(api_key))
        report = Orchestrator(target).run(importer.import_issues(), importer.default_team_name)
    """

    _target: TargetSystem
    _user_policy: UserPolicy
    _label_translator: LabelTranslator | None

    def __init__(
        self,
        target: TargetSystem,
        *,
        user_policy: UserPolicy = UserPolicy.ATTRIBUTE_TO_IMPORTER,
        label_translator: LabelTranslator | None = None,
    ) -> None:
        self._target = target
        self._user_policy = user_policy
        self._label_translator = label_translator

    def run(self, result: ImportResult, team_name: str) -> ImportReport:
        """Create all labels, users, issues and comments of the result.

        Raises:
            InvalidImportResultError: If the result has dangling references
            MigrationError: If the team or earlier imports cannot be resolved
        """
        result.validate()
        stats = MigrationStats()

        team_id = self._resolve_team(team_name)
        try:
            already_imported = self._target.find_imported_source_ids(team_id)
        except _ENTITY_ERRORS as e:
            msg = f"Failed to look up previously imported issues in team {team_name}: {e}"
            raise MigrationError(msg) from e
        if already_imported:
            logger.info(f"Found {len(already_imported)} previously imported issues in team {team_name}")

        skipped_labels, skipped_users = _keys_only_used_by(result, already_imported)
        labels = {key: label for key, label in result.labels.items() if key not in skipped_labels}
        users = {key: user for key, user in result.users.items() if key not in skipped_users}
        stats.labels_skipped = len(skipped_labels)
        stats.users_skipped = len(skipped_users)
        if skipped_labels or skipped_users:
            logger.info(
                f"Leaving {len(skipped_labels)} labels and {len(skipped_users)} users of already imported issues alone"
            )

        label_map = self._create_labels(team_id, labels, stats)
        user_map = self._resolve_users(users, stats)

        outcomes: list[IssueOutcome] = []
        for position, issue in enumerate(result.issues, start=1):
            logger.info(f"Importing issue {position}/{len(result.issues)}: {issue.title}")
            outcome = self._import_issue(team_id, issue, result.users, label_map, user_map, already_imported, stats)
            outcomes.append(outcome)

        logger.info(
            f"Imported {stats.issues_created} issues ({stats.issues_skipped} skipped, "
            f"{stats.issues_failed} failed) into team {team_name}"
        )
        return ImportReport(
            team_name=team_name,
            team_id=team_id,
            stats=stats,
            issues=outcomes,
            label_map=label_map,
            user_map=user_map,
        )

    def _resolve_team(self, team_name: str) -> str:
        try:
            team_id = self._target.find_team(team_name)
            if team_id is not None:
                logger.info(f"Using existing team {team_name}")
                return team_id
            return self._target.create_team(team_name)
        except _ENTITY_ERRORS as e:
            msg = f"Failed to resolve team {team_name}: {e}"
            raise MigrationError(msg) from e

    def _create_labels(self, team_id: str, labels: Mapping[str, Label], stats: MigrationStats) -> dict[str, str]:
        label_map: dict[str, str] = {}
        for key, label in labels.items():
            if self._label_translator:
                label = replace(label, name=self._label_translator.translate(label.name))  # noqa: PLW2901
            try:
                label_map[key] = self._target.create_label(team_id, label)
            except ConfigurationError:
                raise
            except _ENTITY_ERRORS as e:
                stats.labels_failed += 1
                stats.errors.append(f"Failed to create label {label.name}: {e}")
                logger.warning(f"Failed to create label {label.name}: {e}")
                continue
            stats.labels_created += 1

        logger.info(f"Created {stats.labels_created} labels")
        return label_map

    def _resolve_user(self, user: User, stats: MigrationStats) -> str | None:
        target_id = self._target.find_user_by_email(user.email) if user.email else None
        if target_id is not None:
            stats.users_matched += 1
            return target_id
        if self._user_policy is UserPolicy.PLACEHOLDER:
            stats.users_placeholder += 1
            return self._target.create_placeholder_user(user)
        stats.users_attributed += 1
        return None

    def _resolve_users(self, users: Mapping[str, User], stats: MigrationStats) -> dict[str, str | None]:
        user_map: dict[str, str | None] = {}
        for key, user in users.items():
            try:
                user_map[key] = self._resolve_user(user, stats)
            except ConfigurationError:
                raise
            except _ENTITY_ERRORS as e:
                stats.users_failed += 1
                stats.errors.append(f"Failed to resolve user {user.name}: {e}")
                logger.warning(f"Failed to resolve user {user.name}: {e}")

        logger.info(
            f"Resolved {len(user_map)} users ({stats.users_matched} matched, "
            f"{stats.users_placeholder} placeholders, {stats.users_attributed} attributed to importer)"
        )
        return user_map

    @staticmethod
    def _translate_labels(issue: Issue, label_map: Mapping[str, str]) -> list[str]:
        missing = [key for key in issue.labels if key not in label_map]
        if missing:
            msg = f"Labels {', '.join(missing)} of issue {issue.source_id} were not created"
            raise UnresolvedReferenceError(msg)
        return [label_map[key] for key in issue.labels]

    @staticmethod
    def _translate_comments(
        issue: Issue,
        users: Mapping[str, User],
        user_map: Mapping[str, str | None],
    ) -> list[tuple[Comment, str | None]]:
        translated: list[tuple[Comment, str | None]] = []
        for comment in issue.comments:
            if comment.user_id is None:
                translated.append((comment, None))
                continue
            if comment.user_id not in user_map:
                msg = f"Author {comment.user_id} of a comment on issue {issue.source_id} was not resolved"
                raise UnresolvedReferenceError(msg)
            target_user_id = user_map[comment.user_id]
            if target_user_id is None:
                # Posted by the importer, so name the original author in the body
                author = users[comment.user_id].name
                comment = replace(comment, body=build_attributed_comment(comment.body, author, comment.created_at))  # noqa: PLW2901
            translated.append((comment, target_user_id))
        return translated

    def _import_issue(  # noqa: PLR0913
        self,
        team_id: str,
        issue: Issue,
        users: Mapping[str, User],
        label_map: Mapping[str, str],
        user_map: Mapping[str, str | None],
        already_imported: set[str],
        stats: MigrationStats,
    ) -> IssueOutcome:
        outcome = IssueOutcome(source_id=issue.source_id, title=issue.title, status=IssueStatus.SKIPPED)
        if issue.source_id in already_imported:
            stats.issues_skipped += 1
            logger.info(f"Skipping already imported issue {issue.source_id}: {issue.title}")
            return outcome

        try:
            label_ids = self._translate_labels(issue, label_map)
            comments = self._translate_comments(issue, users, user_map)
            outcome.target_id = self._target.create_issue(team_id, issue, label_ids)
        except ConfigurationError:
            raise
        except _ENTITY_ERRORS as e:
            return self._fail(outcome, stats, f"Failed to import issue {issue.source_id} ({issue.title}): {e}")

        for position, (comment, user_id) in enumerate(comments, start=1):
            try:
                self._target.create_comment(outcome.target_id, comment, user_id)
            except ConfigurationError:
                raise
            except _ENTITY_ERRORS as e:
                message = f"Failed to create comment {position}/{len(comments)} on issue {issue.source_id}: {e}"
                return self._fail(outcome, stats, self._remove_partial_issue(outcome, stats, message))
            outcome.comments_created += 1
            stats.comments_created += 1

        outcome.status = IssueStatus.CREATED
        stats.issues_created += 1
        return outcome

    def _remove_partial_issue(self, outcome: IssueOutcome, stats: MigrationStats, message: str) -> str:
        # A created issue either ends with its marker or is removed
        issue_id = outcome.target_id
        if issue_id is None:
            return message
        try:
            self._target.delete_issue(issue_id)
        except ConfigurationError:
            raise
        except _ENTITY_ERRORS as e:
            return f"{message}; deleting the partially imported issue {issue_id} also failed: {e}"
        stats.comments_created -= outcome.comments_created
        outcome.target_id = None
        outcome.comments_created = 0
        return f"{message}; the partially imported issue was deleted"

    @staticmethod
    def _fail(outcome: IssueOutcome, stats: MigrationStats, message: str) -> IssueOutcome:
        outcome.status = IssueStatus.FAILED
        outcome.error = message
        stats.issues_failed += 1
        stats.errors.append(message)
        logger.error(message)
        return outcome
