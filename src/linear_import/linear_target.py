"""
Linear implementation of the TargetSystem protocol.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

from .exceptions import LinearApiError
from .issue_builder import build_attributed_comment, to_api_timestamp
from .models import IMPORTED_ID_PREFIX, parse_provenance_marker

if TYPE_CHECKING:
    from .linear_utils import LinearClient
    from .models import Comment, Issue, Label, User

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX: Final[str] = "placeholder:"

_TEAMS_QUERY = """
query Teams($after: String) {
  teams(first: 100, after: $after) {
    nodes { id name }
    pageInfo { hasNextPage endCursor }
  }
}
"""

_TEAM_CREATE_MUTATION = """
mutation TeamCreate($input: TeamCreateInput!) {
  teamCreate(input: $input) {
    success
    team { id name }
  }
}
"""

_TEAM_LABELS_QUERY = """
query TeamLabels($teamId: String!, $after: String) {
  team(id: $teamId) {
    labels(first: 250, after: $after) {
      nodes { id name }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""

_LABEL_CREATE_MUTATION = """
mutation IssueLabelCreate($input: IssueLabelCreateInput!) {
  issueLabelCreate(input: $input) {
    success
    issueLabel { id name }
  }
}
"""

_USER_BY_EMAIL_QUERY = """
query UserByEmail($email: String!) {
  users(filter: { email: { eq: $email } }) {
    nodes { id name displayName avatarUrl }
  }
}
"""

_ISSUE_CREATE_MUTATION = """
mutation IssueCreate($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    success
    issue { id identifier }
  }
}
"""

_COMMENT_CREATE_MUTATION = """
mutation CommentCreate($input: CommentCreateInput!) {
  commentCreate(input: $input) {
    success
    comment { id }
  }
}
"""

_ISSUE_DELETE_MUTATION = """
mutation IssueDelete($id: String!) {
  issueDelete(id: $id) {
    success
  }
}
"""

_MARKER_COMMENTS_QUERY = """
query ImportedMarkers($teamId: ID!, $prefix: String!, $after: String) {
  comments(
    first: 100
    after: $after
    filter: { body: { startsWith: $prefix }, issue: { team: { id: { eq: $teamId } } } }
  ) {
    nodes { body }
    pageInfo { hasNextPage endCursor }
  }
}
"""


def _created(payload: dict[str, Any], mutation: str, entity: str) -> dict[str, Any]:
    result: dict[str, Any] = payload.get(mutation) or {}
    created: dict[str, Any] | None = result.get(entity)
    if not result.get("success") or not created:
        msg = f"Linear {mutation} did not succeed"
        raise LinearApiError(msg)
    return created


class LinearTarget:
    """Creates teams, labels, issues and comments through the Linear API.

    Linear has no API for creating users. Placeholder users are local
    identities whose name and avatar are attached to their comments.

    Comments by users other than the importer are posted with
    `createAsUser`/`displayIconUrl` when act_as_app is set, which Linear only
    accepts from OAuth applications in actor=app mode. Otherwise the original
    author is named in a header of the comment body.
    """

    def __init__(self, client: LinearClient, *, act_as_app: bool = False) -> None:
        self._client: LinearClient = client
        self._act_as_app: bool = act_as_app
        self._team_labels: dict[str, dict[str, str]] = {}
        # Destination user id -> (display name, avatar URL)
        self._authors: dict[str, tuple[str, str]] = {}

    def find_team(self, name: str) -> str | None:
        for team in self._client.paginate(_TEAMS_QUERY, {}, "teams"):
            if team["name"].casefold() == name.casefold():
                return team["id"]
        return None

    def create_team(self, name: str) -> str:
        data = self._client.execute(_TEAM_CREATE_MUTATION, {"input": {"name": name}})
        team = _created(data, "teamCreate", "team")
        logger.info(f"Created team {name}")
        return team["id"]

    def find_imported_source_ids(self, team_id: str) -> set[str]:
        source_ids: set[str] = set()
        variables = {"teamId": team_id, "prefix": IMPORTED_ID_PREFIX}
        for comment in self._client.paginate(_MARKER_COMMENTS_QUERY, variables, "comments"):
            source_id = parse_provenance_marker(comment.get("body") or "")
            if source_id:
                source_ids.add(source_id)
        return source_ids

    def _existing_labels(self, team_id: str) -> dict[str, str]:
        if team_id not in self._team_labels:
            labels = self._client.paginate(_TEAM_LABELS_QUERY, {"teamId": team_id}, "team", "labels")
            self._team_labels[team_id] = {label["name"].casefold(): label["id"] for label in labels}
        return self._team_labels[team_id]

    def create_label(self, team_id: str, label: Label) -> str:
        existing = self._existing_labels(team_id)
        label_id = existing.get(label.name.casefold())
        if label_id is not None:
            logger.debug(f"Using existing label {label.name}")
            return label_id

        label_input = {"teamId": team_id, "name": label.name, "color": label.color}
        if label.description:
            label_input["description"] = label.description
        data = self._client.execute(_LABEL_CREATE_MUTATION, {"input": label_input})
        created = _created(data, "issueLabelCreate", "issueLabel")
        existing[label.name.casefold()] = created["id"]
        logger.debug(f"Created label {label.name}")
        return created["id"]

    def find_user_by_email(self, email: str) -> str | None:
        data = self._client.execute(_USER_BY_EMAIL_QUERY, {"email": email})
        nodes: list[dict[str, Any]] = (data.get("users") or {}).get("nodes") or []
        if not nodes:
            return None
        user = nodes[0]
        self._authors[user["id"]] = (user.get("displayName") or user["name"], user.get("avatarUrl") or "")
        return user["id"]

    def create_placeholder_user(self, user: User) -> str:
        placeholder_id = f"{PLACEHOLDER_PREFIX}{len(self._authors) + 1}"
        self._authors[placeholder_id] = (user.name, user.avatar_url)
        logger.debug(f"Created placeholder user {placeholder_id} for {user.name}")
        return placeholder_id

    def create_issue(self, team_id: str, issue: Issue, label_ids: list[str]) -> str:
        issue_input = {
            "teamId": team_id,
            "title": issue.title,
            "description": issue.description,
            "labelIds": label_ids,
            "createdAt": to_api_timestamp(issue.created_at),
        }
        data = self._client.execute(_ISSUE_CREATE_MUTATION, {"input": issue_input})
        created = _created(data, "issueCreate", "issue")
        logger.debug(f"Created issue {created.get('identifier', created['id'])}: {issue.title}")
        return created["id"]

    def create_comment(self, issue_id: str, comment: Comment, user_id: str | None) -> str:
        comment_input: dict[str, Any] = {
            "issueId": issue_id,
            "body": comment.body,
            "createdAt": to_api_timestamp(comment.created_at),
        }
        if user_id is not None:
            name, avatar_url = self._authors.get(user_id, (user_id, ""))
            if self._act_as_app:
                comment_input["createAsUser"] = name
                if avatar_url:
                    comment_input["displayIconUrl"] = avatar_url
            else:
                comment_input["body"] = build_attributed_comment(comment.body, name, comment.created_at)

        data = self._client.execute(_COMMENT_CREATE_MUTATION, {"input": comment_input})
        return _created(data, "commentCreate", "comment")["id"]

    def delete_issue(self, issue_id: str) -> None:
        data = self._client.execute(_ISSUE_DELETE_MUTATION, {"id": issue_id})
        if not (data.get("issueDelete") or {}).get("success"):
            msg = f"Linear issueDelete did not succeed for issue {issue_id}"
            raise LinearApiError(msg)
        logger.debug(f"Deleted partially imported issue {issue_id}")
