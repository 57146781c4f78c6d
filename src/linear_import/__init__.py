"""
Linear Import Tool

Imports open issues, labels and comments from other issue trackers into
Linear, preserving creation dates and skipping issues imported on earlier runs.
"""

from __future__ import annotations

from .cli import main
from .config import ImportConfig, load_config
from .exceptions import (
    ConfigurationError,
    ExtractionError,
    MigrationError,
    RepositoryAccessError,
    UnresolvedReferenceError,
)
from .github_importer import GithubImporter
from .models import ImportResult
from .orchestrator import ImportReport, Orchestrator, UserPolicy
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ExtractionError",
    "GithubImporter",
    "ImportConfig",
    "ImportReport",
    "ImportResult",
    "MigrationError",
    "Orchestrator",
    "RepositoryAccessError",
    "UnresolvedReferenceError",
    "UserPolicy",
    "load_config",
    "main",
    "setup_logging",
]
