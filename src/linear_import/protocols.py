"""Protocols defining the contracts for importers and the destination system.

The import architecture separates concerns into three components:

1. Importer: Extracts data from a source (GitHub, Jira export, ...) and
   normalizes it into an ImportResult
2. TargetSystem: Creates entities in the destination tracker (Linear)
3. Orchestrator: Drives the TargetSystem in dependency order from an ImportResult

Importers share no behaviour, only this contract, so they implement the
Protocol structurally rather than inheriting from a base class.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import Comment, ImportResult, Issue, Label, User


class Importer(Protocol):
    """Protocol for extracting data from one source system.

    Implementations own all source-specific authentication, request
    construction and pagination. Callers never see source-specific shapes,
    only the normalized ImportResult. Importers perform I/O against their
    source only and never touch the destination.

    Example implementations:
        - GithubImporter: Pages through open issues with the GitHub GraphQL API
    """

    @property
    def name(self) -> str:
        """Display label of the source system."""
        ...

    @property
    def default_team_name(self) -> str:
        """Suggested name of the destination team."""
        ...

    def import_issues(self) -> ImportResult:
        """Extract and normalize all importable data.

        Raises:
            MigrationError: If the source cannot be read
        """
        ...


class TargetSystem(Protocol):
    """Protocol for creating entities in the destination tracker.

    Every create method returns the id assigned by the destination. The
    Orchestrator calls methods in this order:
    1. find_team() / create_team() - Resolve the container for all issues
    2. find_imported_source_ids() - Detect issues imported by an earlier run
    3. create_label() - Create all labels
    4. find_user_by_email() / create_placeholder_user() - Resolve comment authors
    5. create_issue() - Create issues in source order
    6. create_comment() - Add comments, provenance marker last
    7. delete_issue() - Only for an issue whose comments failed partway

    Example implementations:
        - LinearTarget: Uses the Linear GraphQL API over requests
    """

    def find_team(self, name: str) -> str | None:
        """Return the id of the team with this name, or None."""
        ...

    def create_team(self, name: str) -> str:
        """Create a team and return its id."""
        ...

    def find_imported_source_ids(self, team_id: str) -> set[str]:
        """Return source ids of issues already imported into the team."""
        ...

    def create_label(self, team_id: str, label: Label) -> str:
        """Create a label and return its id.

        Should reuse an existing label with the same name.
        """
        ...

    def find_user_by_email(self, email: str) -> str | None:
        """Return the id of the destination user with this email, or None."""
        ...

    def create_placeholder_user(self, user: User) -> str:
        """Create a placeholder identity for a user with no destination account."""
        ...

    def create_issue(self, team_id: str, issue: Issue, label_ids: list[str]) -> str:
        """Create an issue and return its id.

        Args:
            team_id: Destination team
            issue: Issue data from the source
            label_ids: Destination label ids, already translated from issue.labels
        """
        ...

    def create_comment(self, issue_id: str, comment: Comment, user_id: str | None) -> str:
        """Add a comment to an issue and return its id.

        Args:
            issue_id: Destination issue
            comment: Comment data from the source
            user_id: Destination author id, or None to post as the importing identity
        """
        ...

    def delete_issue(self, issue_id: str) -> None:
        """Remove an issue whose comments could not all be created."""
        ...
