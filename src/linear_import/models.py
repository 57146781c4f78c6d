"""Data models exchanged between importers and the orchestrator.

An importer extracts records from its source system and normalizes them into
an ImportResult. The orchestrator consumes that result and creates the
corresponding entities in Linear. The models are intentionally simple and
source-agnostic: everything source-specific is resolved by the importer.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .exceptions import InvalidImportResultError

# Body prefix of the comment that records the source id of an imported issue
IMPORTED_ID_PREFIX = "Imported from source id:"


@dataclass(frozen=True)
class Label:
    """A label that can be applied to issues."""

    name: str
    color: str  # Hex color with '#' prefix (e.g., "#d73a4a")
    description: str = ""


@dataclass(frozen=True)
class User:
    """A comment author with a stable identity in the source system."""

    name: str
    avatar_url: str = ""
    email: str | None = None


@dataclass(frozen=True)
class Comment:
    """A comment on an issue.

    Comments from authors without a stable identity carry no user_id and are
    attributed to the importing identity.
    """

    body: str
    created_at: dt.datetime
    user_id: str | None = None


@dataclass(frozen=True)
class Issue:
    """An issue from the source system.

    labels holds keys of ImportResult.labels without duplicates. The last
    entry of comments is always the provenance marker.
    """

    source_id: str
    title: str
    description: str
    url: str
    created_at: dt.datetime
    labels: tuple[str, ...] = ()
    comments: tuple[Comment, ...] = ()


@dataclass(frozen=True)
class ImportResult:
    """Normalized bundle produced by one importer run."""

    issues: tuple[Issue, ...] = ()
    labels: Mapping[str, Label] = field(default_factory=dict)
    users: Mapping[str, User] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the containers so the result cannot change after hand-off
        object.__setattr__(self, "issues", tuple(self.issues))
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))
        object.__setattr__(self, "users", MappingProxyType(dict(self.users)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImportResult):
            return NotImplemented
        return (
            self.issues == other.issues
            and dict(self.labels) == dict(other.labels)
            and dict(self.users) == dict(other.users)
        )

    def __hash__(self) -> int:
        return hash(self.issues)

    def dangling_references(self) -> list[str]:
        """Return a description of every label or user key that does not resolve."""
        problems: list[str] = []
        for issue in self.issues:
            problems.extend(
                f"Issue {issue.source_id} references unknown label {key}"
                for key in issue.labels
                if key not in self.labels
            )
            problems.extend(
                f"Comment on issue {issue.source_id} references unknown user {comment.user_id}"
                for comment in issue.comments
                if comment.user_id is not None and comment.user_id not in self.users
            )
        return problems

    def validate(self) -> None:
        """Raise InvalidImportResultError if any reference does not resolve."""
        problems = self.dangling_references()
        if problems:
            msg = "Import result has dangling references:\n" + "\n".join(f"  - {p}" for p in problems)
            raise InvalidImportResultError(msg)


def provenance_comment(source_id: str, created_at: dt.datetime) -> Comment:
    """Build the marker comment that identifies an imported issue on later runs."""
    return Comment(body=f"{IMPORTED_ID_PREFIX} {source_id}", created_at=created_at)


def parse_provenance_marker(body: str) -> str | None:
    """Return the source id recorded in a marker comment body, or None."""
    if not body.startswith(IMPORTED_ID_PREFIX):
        return None
    source_id = body[len(IMPORTED_ID_PREFIX) :].strip()
    return source_id or None
