"""
Registry of the source importers available from the command line.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from . import github_utils as ghu
from .config import require_github_token
from .exceptions import ConfigurationError
from .github_importer import GithubImporter

if TYPE_CHECKING:
    from .config import ImportConfig
    from .protocols import Importer


class ImporterFactory(Protocol):
    def __call__(self, config: ImportConfig, source: str) -> Importer: ...


def build_github_importer(config: ImportConfig, source: str) -> GithubImporter:
    """Build the GitHub importer for an "owner/repo" source."""
    token = require_github_token(config)
    owner, repo = ghu.parse_repo_slug(source)
    return GithubImporter(
        token,
        owner,
        repo,
        max_page_errors=config.max_page_errors,
        max_attempts=config.max_attempts,
        base_delay=config.base_delay,
    )


IMPORTERS: dict[str, ImporterFactory] = {
    "github": build_github_importer,
}


def select_importer(name: str, config: ImportConfig, source: str) -> Importer:
    """Build the importer registered under name.

    Args:
        name: Registered importer name (e.g., "github")
        config: Import configuration with the source credentials
        source: Importer-specific source, e.g. "owner/repo" for GitHub

    Raises:
        ConfigurationError: If the name is unknown or the importer lacks credentials
    """
    factory = IMPORTERS.get(name)
    if factory is None:
        msg = f"Unknown importer '{name}'. Available importers: {', '.join(sorted(IMPORTERS))}"
        raise ConfigurationError(msg)
    return factory(config, source)
