"""
Tests for importer selection.
"""

import pytest

from linear_import.config import ImportConfig
from linear_import.exceptions import ConfigurationError
from linear_import.github_importer import GithubImporter
from linear_import.importers import IMPORTERS, select_importer


@pytest.mark.unit
class TestSelectImporter:
    def test_github_importer(self) -> None:
        config = ImportConfig(linear_api_key="lin-key", github_token="gh-token", max_page_errors=7)

        importer = select_importer("github", config, "acme/widgets")

        assert isinstance(importer, GithubImporter)
        assert (importer.owner, importer.repo) == ("acme", "widgets")
        assert importer.default_team_name == "widgets"

    def test_unknown_importer_lists_available(self) -> None:
        with pytest.raises(ConfigurationError, match="Available importers: github"):
            select_importer("jira", ImportConfig(linear_api_key="lin-key"), "PROJ")

    def test_github_requires_token(self) -> None:
        with pytest.raises(ConfigurationError, match="GITHUB_API_KEY"):
            select_importer("github", ImportConfig(linear_api_key="lin-key"), "acme/widgets")

    def test_invalid_slug(self) -> None:
        config = ImportConfig(linear_api_key="lin-key", github_token="gh-token")

        with pytest.raises(ConfigurationError, match="owner/repository"):
            select_importer("github", config, "widgets")

    def test_registry(self) -> None:
        assert sorted(IMPORTERS) == ["github"]
