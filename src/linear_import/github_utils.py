from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Final

from github import (
    Auth,
    BadCredentialsException,
    Github,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)

from .exceptions import ConfigurationError

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

PAGE_SIZE: Final[int] = 25

# Open issues with their labels and comments, one page at a time
ISSUES_QUERY: Final[str] = """
query lastIssues($owner: String!, $repo: String!, $num: Int, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    issues(first: $num, after: $cursor, states: OPEN) {
      edges {
        node {
          id
          title
          body
          url
          createdAt
          labels(first: 100) {
            nodes {
              id
              color
              name
              description
            }
          }
          comments(first: 100) {
            nodes {
              id
              body
              createdAt
              url
              author {
                login
                avatarUrl(size: 255)
                ... on User {
                  id
                  name
                  email
                }
              }
            }
          }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""

# Fetches the repository payload of one page, given the cursor of the previous page
PageFetcher = Callable[[str | None], dict[str, Any] | None]


def _is_graphql_rate_limit(error: GithubException) -> bool:
    # GraphQL rate limits come back as HTTP 200 with a RATE_LIMITED error entry
    data = error.data if isinstance(error.data, dict) else {}
    return any(
        isinstance(entry, dict) and entry.get("type") == "RATE_LIMITED" for entry in data.get("errors") or []
    )


def get_client(token: str) -> Github:
    """Get a GitHub client using the token."""
    return Github(auth=Auth.Token(token))


def parse_repo_slug(repo_path: str) -> tuple[str, str]:
    """Split an "owner/repo" path into its parts.

    Raises:
        ConfigurationError: If the path is not of the form owner/repo
    """
    repo_path = repo_path.strip()
    parts = repo_path.split("/")
    if len(parts) != 2:  # noqa: PLR2004
        msg = f"Invalid GitHub repository path '{repo_path}'. Expected format: 'owner/repository'"
        raise ConfigurationError(msg)
    owner, repo = parts
    if not owner or not repo:
        msg = f"Invalid GitHub repository path '{repo_path}'. Both owner and repository name must be non-empty"
        raise ConfigurationError(msg)
    return owner, repo


def make_page_fetcher(
    client: Github, owner: str, repo: str, *, page_size: int = PAGE_SIZE
) -> PageFetcher:
    """Build a fetcher running the issues query through PyGithub's requester.

    The fetcher returns the `repository` object of the response, or None when
    GitHub reports the repository as missing. GitHub answers "not found" for
    private repositories the token cannot see, so None usually means a
    missing scope rather than a typo. GraphQL rate-limit errors are raised as
    RateLimitExceededException so callers can back off.
    """

    def fetch(cursor: str | None) -> dict[str, Any] | None:
        variables = {"owner": owner, "repo": repo, "num": page_size, "cursor": cursor}
        try:
            _, response = client.requester.graphql_query(ISSUES_QUERY, variables)
        except UnknownObjectException:
            logger.debug(f"GitHub reported {owner}/{repo} as not found")
            return None
        except BadCredentialsException as e:
            msg = f"GitHub rejected the API token: {e.status}"
            raise ConfigurationError(msg) from e
        except GithubException as e:
            if _is_graphql_rate_limit(e):
                raise RateLimitExceededException(e.status, e.data, e.headers) from e
            raise

        data: dict[str, Any] = response.get("data") or {}
        return data.get("repository")

    return fetch
