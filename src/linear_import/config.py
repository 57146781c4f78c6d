"""
Configuration and credential resolution for the Linear import tool.

Credentials are resolved once, up front, into an ImportConfig that is passed
explicitly to importers and the orchestrator. Nothing below the CLI reads the
process environment.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from . import utils
from .exceptions import ConfigurationError
from .orchestrator import UserPolicy

logger: logging.Logger = logging.getLogger(__name__)

LINEAR_KEY_ENV_VAR: Final[str] = "LINEAR_API_KEY"
GITHUB_TOKEN_ENV_VAR: Final[str] = "GITHUB_API_KEY"  # noqa: S105
_DEFAULT_LINEAR_PASS_PATH: Final[str] = "linear/api_key"
_DEFAULT_GITHUB_PASS_PATH: Final[str] = "github/cli/token"  # noqa: S105


@dataclass(frozen=True)
class ImportConfig:
    """Settings shared by importers and the orchestrator."""

    linear_api_key: str
    github_token: str | None = None
    user_policy: UserPolicy = UserPolicy.ATTRIBUTE_TO_IMPORTER
    max_page_errors: int = 3  # consecutive failed page fetches before giving up
    max_attempts: int = 5  # attempts per request when rate limited
    base_delay: float = 1.0  # seconds, doubled on every rate-limited attempt

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks
        return (
            f"ImportConfig(linear_api_key='***', github_token={'***' if self.github_token else None!r}, "
            f"user_policy={self.user_policy}, max_page_errors={self.max_page_errors}, "
            f"max_attempts={self.max_attempts}, base_delay={self.base_delay})"
        )


def get_secret(
    *,
    env_var: str,
    default_pass_path: str,
    pass_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Get a secret from an explicit pass path, the environment, or the default pass path."""
    if pass_path:
        try:
            return utils.get_pass_value(pass_path)
        except utils.PassError as e:
            msg = f"Could not read {env_var} from pass at '{pass_path}': {e}"
            raise ConfigurationError(msg) from e

    env = os.environ if environ is None else environ
    value = env.get(env_var)
    if value:
        return value

    try:
        return utils.get_pass_value(default_pass_path)
    except utils.PassError as e:
        logger.debug(f"No {env_var} in environment nor at pass path '{default_pass_path}': {e}")
        return None


def load_config(
    *,
    linear_pass_path: str | None = None,
    github_pass_path: str | None = None,
    environ: Mapping[str, str] | None = None,
    user_policy: UserPolicy = UserPolicy.ATTRIBUTE_TO_IMPORTER,
    max_page_errors: int = 3,
    max_attempts: int = 5,
    base_delay: float = 1.0,
) -> ImportConfig:
    """Resolve credentials and build the configuration.

    The Linear API key is mandatory. The GitHub token is optional here and
    checked by require_github_token() when the GitHub importer is selected.

    Raises:
        ConfigurationError: If no Linear API key can be found
    """
    linear_api_key = get_secret(
        env_var=LINEAR_KEY_ENV_VAR,
        default_pass_path=_DEFAULT_LINEAR_PASS_PATH,
        pass_path=linear_pass_path,
        environ=environ,
    )
    if not linear_api_key:
        msg = (
            f"{LINEAR_KEY_ENV_VAR} not found. Set {LINEAR_KEY_ENV_VAR}=<your-api-key> "
            f"or store the key in pass at '{_DEFAULT_LINEAR_PASS_PATH}'."
        )
        raise ConfigurationError(msg)

    github_token = get_secret(
        env_var=GITHUB_TOKEN_ENV_VAR,
        default_pass_path=_DEFAULT_GITHUB_PASS_PATH,
        pass_path=github_pass_path,
        environ=environ,
    )

    if max_page_errors < 1 or max_attempts < 1:
        msg = "max_page_errors and max_attempts must be at least 1"
        raise ConfigurationError(msg)

    return ImportConfig(
        linear_api_key=linear_api_key,
        github_token=github_token,
        user_policy=user_policy,
        max_page_errors=max_page_errors,
        max_attempts=max_attempts,
        base_delay=base_delay,
    )


def require_github_token(config: ImportConfig) -> str:
    """Return the GitHub token or fail before any GitHub request is made."""
    if not config.github_token:
        msg = (
            f"{GITHUB_TOKEN_ENV_VAR} not found. Set {GITHUB_TOKEN_ENV_VAR}=<your-token> "
            f"or store the token in pass at '{_DEFAULT_GITHUB_PASS_PATH}'. "
            "Create one at https://github.com/settings/tokens and select the `repo` scope."
        )
        raise ConfigurationError(msg)
    return config.github_token
