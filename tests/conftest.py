"""
Pytest configuration and fixtures.

Provides canned GitHub GraphQL pages for driving the importer without a
network, and an in-memory TargetSystem that records every call the
orchestrator makes.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

import pytest

from linear_import.exceptions import LinearApiError
from linear_import.models import parse_provenance_marker

if TYPE_CHECKING:
    from collections.abc import Callable

    from linear_import.models import Comment, Issue, Label, User


class FakeTarget:
    """In-memory TargetSystem recording calls in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.teams: dict[str, str] = {}
        self.imported_source_ids: set[str] = set()
        self.users_by_email: dict[str, str] = {}
        self.failing_labels: set[str] = set()
        self.failing_emails: set[str] = set()
        self.failing_comment_text: str | None = None
        self.failing_deletes: bool = False
        self.issues: dict[str, Issue] = {}
        self.comments: dict[str, list[tuple[str, str | None]]] = {}
        self._ids = itertools.count(1)

    def _new_id(self, kind: str) -> str:
        return f"{kind}-{next(self._ids)}"

    def find_team(self, name: str) -> str | None:
        self.calls.append(("find_team", name))
        return self.teams.get(name)

    def create_team(self, name: str) -> str:
        team_id = self._new_id("team")
        self.teams[name] = team_id
        self.calls.append(("create_team", name))
        return team_id

    def find_imported_source_ids(self, team_id: str) -> set[str]:
        self.calls.append(("find_imported_source_ids", team_id))
        written = {parse_provenance_marker(body) for comments in self.comments.values() for body, _ in comments}
        return set(self.imported_source_ids) | (written - {None})

    def create_label(self, team_id: str, label: Label) -> str:
        if label.name in self.failing_labels:
            msg = f"label {label.name} rejected"
            raise LinearApiError(msg)
        label_id = self._new_id("label")
        self.calls.append(("create_label", label.name, label_id))
        return label_id

    def find_user_by_email(self, email: str) -> str | None:
        if email in self.failing_emails:
            msg = f"user lookup for {email} failed"
            raise LinearApiError(msg)
        self.calls.append(("find_user_by_email", email))
        return self.users_by_email.get(email)

    def create_placeholder_user(self, user: User) -> str:
        user_id = self._new_id("placeholder")
        self.calls.append(("create_placeholder_user", user.name, user_id))
        return user_id

    def create_issue(self, team_id: str, issue: Issue, label_ids: list[str]) -> str:
        issue_id = self._new_id("issue")
        self.issues[issue_id] = issue
        self.comments[issue_id] = []
        self.calls.append(("create_issue", issue.source_id, tuple(label_ids)))
        return issue_id

    def create_comment(self, issue_id: str, comment: Comment, user_id: str | None) -> str:
        if self.failing_comment_text and self.failing_comment_text in comment.body:
            msg = "comment rejected"
            raise LinearApiError(msg)
        self.comments[issue_id].append((comment.body, user_id))
        self.calls.append(("create_comment", issue_id, user_id))
        return self._new_id("comment")

    def delete_issue(self, issue_id: str) -> None:
        if self.failing_deletes:
            msg = "issue deletion rejected"
            raise LinearApiError(msg)
        del self.issues[issue_id]
        del self.comments[issue_id]
        self.calls.append(("delete_issue", issue_id))

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_target() -> FakeTarget:
    return FakeTarget()


def _author(login: str, user_id: str | None = None, email: str = "") -> dict[str, Any]:
    author: dict[str, Any] = {"login": login, "avatarUrl": f"https://avatars.example/{login}"}
    if user_id is not None:
        author |= {"id": user_id, "name": login.title(), "email": email}
    return author


@pytest.fixture
def make_author() -> Callable[..., dict[str, Any]]:
    """Build a GraphQL comment author; without user_id it is a bot or ghost."""
    return _author


def _issue_node(
    issue_id: str,
    *,
    title: str | None = None,
    body: str = "Issue body",
    created_at: str = "2024-01-15T10:30:45Z",
    labels: list[dict[str, Any]] | None = None,
    comments: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    return {
        "id": issue_id,
        "title": title or f"Issue {issue_id}",
        "body": body,
        "url": f"https://github.com/acme/widgets/issues/{issue_id}",
        "createdAt": created_at,
        "labels": {"nodes": labels or []},
        "comments": {"nodes": comments or []},
    }


@pytest.fixture
def make_issue_node() -> Callable[..., dict[str, Any]]:
    """Build a raw GraphQL issue node."""
    return _issue_node


def _page(nodes: list[dict[str, Any]], *, has_next_page: bool, end_cursor: str | None) -> dict[str, Any]:
    return {
        "issues": {
            "edges": [{"node": node} for node in nodes],
            "pageInfo": {"hasNextPage": has_next_page, "endCursor": end_cursor},
        }
    }


@pytest.fixture
def make_page() -> Callable[..., dict[str, Any]]:
    """Build the `repository` object of one GraphQL response page."""
    return _page


class CannedFetcher:
    """Page fetcher serving canned pages (or raising canned errors) in order."""

    def __init__(self, responses: list[dict[str, Any] | BaseException | None]) -> None:
        self._responses = list(responses)
        self.cursors: list[str | None] = []

    def __call__(self, cursor: str | None) -> dict[str, Any] | None:
        self.cursors.append(cursor)
        if not self._responses:
            msg = "No more canned pages"
            raise AssertionError(msg)
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def canned_fetcher() -> Callable[[list[Any]], CannedFetcher]:
    return CannedFetcher
