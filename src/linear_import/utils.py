"""
Utility functions for the Linear import tool.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import time
from subprocess import CompletedProcess
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONSOLE_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


class PassError(Exception):
    """Base class for pass-related errors."""


class InvalidPassPathError(PassError):
    """Raised when the pass path format is invalid or not in the store."""


class PassphraseRequiredError(PassError):
    """Raised when a GPG passphrase is required for the pass utility."""


def setup_logging(*, verbosity: int = 0) -> None:
    """Configure logging for the import process.

    The console shows warnings by default, info with verbosity 1 and debug
    with verbosity 2 or more. The log file always receives debug output.
    """
    console = logging.StreamHandler()
    console.setLevel(_CONSOLE_LEVELS[min(max(verbosity, 0), len(_CONSOLE_LEVELS) - 1)])

    log_file = logging.FileHandler("linear-import.log", mode="a")
    log_file.setLevel(logging.DEBUG)

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[console, log_file],
    )


def _validate_pass_path(pass_path: str) -> None:
    if not re.fullmatch(r"(?:[A-Za-z0-9_-]+)(?:/[A-Za-z0-9_-]+)*", pass_path):
        msg = f"Invalid pass path: {pass_path}"
        raise InvalidPassPathError(msg)


def get_pass_value(pass_path: str) -> str:
    """Get a secret from the pass password store."""
    _validate_pass_path(pass_path)

    try:
        result: CompletedProcess[str] = subprocess.run(  # noqa: S603
            ["pass", pass_path], capture_output=True, text=True, check=True
        )
    except FileNotFoundError as e:
        msg = "The pass utility is not installed"
        raise PassError(msg) from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.lower()
        if e.returncode == 1 and "not in the password store" in stderr:
            msg = f"Pass path '{pass_path}' not found."
            raise InvalidPassPathError(msg) from e
        if e.returncode == 2 and "gpg" in stderr and "public key decryption failed" in stderr:
            return _get_pass_value_with_passphrase(pass_path)
        msg = (
            f"Failed to get value from pass at '{pass_path}'.\n"
            f"Error: {e.stderr.strip()}\n"
            f"Return code: {e.returncode}"
        )
        raise PassError(msg) from e

    return result.stdout.strip()


def _get_pass_value_with_passphrase(pass_path: str) -> str:
    # Fails in non-interactive sessions, where no passphrase can be read
    try:
        passphrase = input("Enter passphrase for GPG key used by pass: ")
    except EOFError as e:
        msg = "Passphrase input was interrupted. Please run the command in an interactive session."
        raise PassphraseRequiredError(msg) from e

    env = os.environ.copy() | {"PASSWORD_STORE_GPG_OPTS": "--pinentry-mode=loopback --passphrase-fd 0"}
    try:
        result = subprocess.run(  # noqa: S603
            ["pass", pass_path], input=passphrase, capture_output=True, text=True, check=True, env=env
        )
    except subprocess.CalledProcessError as e:
        msg = f"Failed to get value from pass at '{pass_path}' with passphrase.\nError: {e.stderr.strip()}"
        raise PassphraseRequiredError(msg) from e
    return result.stdout.strip()


def call_with_backoff(
    func: Callable[[], T],
    *,
    retry_on: tuple[type[BaseException], ...],
    max_attempts: int = 5,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    sleep: Callable[[float], None] = time.sleep,
    context: str = "request",
) -> T:
    """Call func, retrying with exponential backoff on the given exceptions.

    A retry_after attribute on the raised exception (seconds) takes precedence
    over the computed delay. The last exception propagates once max_attempts
    calls have failed.
    """
    attempt = 1
    while True:
        try:
            return func()
        except retry_on as e:
            if attempt >= max_attempts:
                logger.warning(f"Giving up on {context} after {attempt} rate-limited attempts")
                raise
            retry_after: float | None = getattr(e, "retry_after", None)
            delay = retry_after if retry_after is not None else min(base_delay * 2 ** (attempt - 1), max_delay)
            logger.info(f"Rate limited on {context}, retrying in {delay:.1f}s (attempt {attempt}/{max_attempts})")
            sleep(delay)
            attempt += 1
