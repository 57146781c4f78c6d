"""
GitHub importer: pages through open issues and normalizes them.

Extraction and normalization are separate steps. IssuePager is a plain state
machine (cursor, accumulated issues, has-next flag) fed one response page at a
time, so it can be driven by canned pages in tests as well as by the GraphQL
fetcher. normalize_issues() turns the collected raw issues into an
ImportResult in a single pure pass.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import requests
from github import GithubException, RateLimitExceededException

from . import github_utils as ghu
from .exceptions import ExtractionError, RepositoryAccessError
from .issue_builder import build_description, parse_timestamp
from .models import Comment, ImportResult, Issue, Label, User, provenance_comment
from .utils import call_with_backoff

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .github_utils import PageFetcher

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

SOURCE_NAME = "GitHub"

# Errors after which the same page is requested again
_PAGE_ERRORS = (GithubException, requests.RequestException, KeyError, TypeError)


@dataclass
class IssuePager:
    """Pagination state for the GitHub issues query."""

    owner: str
    repo: str
    max_page_errors: int = 3
    cursor: str | None = None
    has_next_page: bool = True
    pages_fetched: int = 0
    consecutive_errors: int = 0
    issues: list[dict[str, Any]] = field(default_factory=list)
    _seen_ids: set[str] = field(default_factory=set, repr=False)

    @property
    def done(self) -> bool:
        return not self.has_next_page

    def accept_page(self, repository: dict[str, Any] | None) -> None:
        """Consume the `repository` object of one response page.

        Raises:
            RepositoryAccessError: If the response has no repository, which
                usually means the token lacks the `repo` scope
            KeyError: If the page is missing pagination data
        """
        if not repository or not repository.get("issues"):
            msg = (
                f"Unable to find repo {self.owner}/{self.repo}. "
                "Did you select `repo` scope for your GitHub token?"
            )
            raise RepositoryAccessError(msg)

        issues = repository["issues"]
        page_info = issues["pageInfo"]
        has_next_page = bool(page_info["hasNextPage"])
        end_cursor: str | None = page_info.get("endCursor")
        if has_next_page and not end_cursor:
            msg = f"GitHub reported more issues for {self.owner}/{self.repo} but returned no cursor"
            raise ExtractionError(msg)

        nodes = [edge["node"] for edge in issues.get("edges") or []]
        for node in nodes:
            if node["id"] in self._seen_ids:
                logger.debug(f"Skipping issue {node['id']} seen on an earlier page")
                continue
            self._seen_ids.add(node["id"])
            self.issues.append(node)

        self.pages_fetched += 1
        self.consecutive_errors = 0
        self.has_next_page = has_next_page
        if end_cursor:
            self.cursor = end_cursor
        logger.debug(f"Fetched page {self.pages_fetched} with {len(nodes)} issues, more pages: {has_next_page}")

    def record_failure(self, error: BaseException) -> None:
        """Record a failed page fetch; the next fetch reuses the last good cursor.

        Raises:
            ExtractionError: Once max_page_errors fetches have failed in a row
        """
        self.consecutive_errors += 1
        logger.error(
            f"Failed to fetch issues of {self.owner}/{self.repo} after cursor {self.cursor!r} "
            f"({self.consecutive_errors}/{self.max_page_errors}): {error}"
        )
        if self.consecutive_errors >= self.max_page_errors:
            msg = (
                f"Giving up on {self.owner}/{self.repo} after {self.consecutive_errors} "
                f"consecutive failed page requests: {error}"
            )
            raise ExtractionError(msg) from error


def collect_issues(
    pager: IssuePager,
    fetch: PageFetcher,
    *,
    max_attempts: int = 5,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> list[dict[str, Any]]:
    """Drive the pager with the fetcher until the last page has been accepted."""
    while not pager.done:
        cursor = pager.cursor
        try:
            repository = call_with_backoff(
                lambda: fetch(cursor),
                retry_on=(RateLimitExceededException,),
                max_attempts=max_attempts,
                base_delay=base_delay,
                sleep=sleep,
                context=f"GitHub issues page after {cursor!r}",
            )
            pager.accept_page(repository)
        except _PAGE_ERRORS as e:
            pager.record_failure(e)

    return pager.issues


def _normalize_color(color: str) -> str:
    return f"#{color.lstrip('#').lower()}"


def _nodes(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not connection:
        return []
    return connection.get("nodes") or []


def normalize_issues(raw_issues: Iterable[dict[str, Any]], *, source_name: str = SOURCE_NAME) -> ImportResult:
    """Normalize raw GraphQL issue nodes into an ImportResult.

    Only comments whose author has a stable id are kept; each becomes a user
    entry (the last occurrence of an id wins). Every issue ends with the
    provenance marker comment.
    """
    issues: list[Issue] = []
    labels: dict[str, Label] = {}
    users: dict[str, User] = {}

    for raw in raw_issues:
        created_at = parse_timestamp(raw["createdAt"])

        comments: list[Comment] = []
        for node in _nodes(raw.get("comments")):
            author: dict[str, Any] = node.get("author") or {}
            if not author.get("id"):
                continue
            comments.append(
                Comment(body=node["body"], created_at=parse_timestamp(node["createdAt"]), user_id=author["id"])
            )
            users[author["id"]] = User(
                name=author["login"],
                avatar_url=author.get("avatarUrl") or "",
                email=author.get("email") or None,
            )

        # Marker is dated with the latest timestamp of the issue and its comments
        marker_time = max([created_at, *(comment.created_at for comment in comments)])
        comments.append(provenance_comment(raw["id"], marker_time))

        label_ids: list[str] = []
        for node in _nodes(raw.get("labels")):
            labels[node["id"]] = Label(
                name=node["name"],
                color=_normalize_color(node["color"]),
                description=node.get("description") or "",
            )
            if node["id"] not in label_ids:
                label_ids.append(node["id"])

        issues.append(
            Issue(
                source_id=raw["id"],
                title=raw["title"],
                description=build_description(raw.get("body"), raw["url"], source_name),
                url=raw["url"],
                created_at=created_at,
                labels=tuple(label_ids),
                comments=tuple(comments),
            )
        )

    return ImportResult(issues=tuple(issues), labels=labels, users=users)


class GithubImporter:
    """Imports the open issues of one GitHub repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        fetcher: PageFetcher | None = None,
        max_page_errors: int = 3,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._token: str = token
        self.owner: str = owner
        self.repo: str = repo
        self._fetcher: PageFetcher | None = fetcher
        self._max_page_errors: int = max_page_errors
        self._max_attempts: int = max_attempts
        self._base_delay: float = base_delay
        self._sleep: Callable[[float], None] = sleep

    @property
    def name(self) -> str:
        return SOURCE_NAME

    @property
    def default_team_name(self) -> str:
        return self.repo

    def import_issues(self) -> ImportResult:
        """Fetch all open issues of the repository and normalize them.

        Raises:
            RepositoryAccessError: If the repository is not visible to the token
            ExtractionError: If page requests keep failing
        """
        fetch = self._fetcher or ghu.make_page_fetcher(ghu.get_client(self._token), self.owner, self.repo)
        pager = IssuePager(self.owner, self.repo, max_page_errors=self._max_page_errors)

        logger.info(f"Fetching open issues of {self.owner}/{self.repo}")
        raw_issues = collect_issues(
            pager,
            fetch,
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            sleep=self._sleep,
        )

        result = normalize_issues(raw_issues)
        logger.info(
            f"Fetched {len(result.issues)} issues, {len(result.labels)} labels and {len(result.users)} users "
            f"in {pager.pages_fetched} pages"
        )
        return result
