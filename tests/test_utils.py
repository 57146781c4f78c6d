"""
Tests for retry and pass helpers.
"""

import subprocess
from unittest.mock import Mock, patch

import pytest

from linear_import.exceptions import RateLimitedError
from linear_import.utils import InvalidPassPathError, PassError, call_with_backoff, get_pass_value


@pytest.mark.unit
class TestCallWithBackoff:
    def test_success_needs_no_sleep(self) -> None:
        sleep = Mock()

        assert call_with_backoff(lambda: 42, retry_on=(RateLimitedError,), sleep=sleep) == 42
        sleep.assert_not_called()

    def test_delays_double_until_success(self) -> None:
        func = Mock(side_effect=[RateLimitedError("slow"), RateLimitedError("slow"), "ok"])
        sleeps: list[float] = []

        result = call_with_backoff(func, retry_on=(RateLimitedError,), base_delay=0.5, sleep=sleeps.append)

        assert result == "ok"
        assert sleeps == [0.5, 1.0]

    def test_retry_after_takes_precedence(self) -> None:
        func = Mock(side_effect=[RateLimitedError("slow", retry_after=12.0), "ok"])
        sleeps: list[float] = []

        call_with_backoff(func, retry_on=(RateLimitedError,), sleep=sleeps.append)

        assert sleeps == [12.0]

    def test_delay_is_capped(self) -> None:
        func = Mock(side_effect=[RateLimitedError("slow")] * 3 + ["ok"])
        sleeps: list[float] = []

        call_with_backoff(func, retry_on=(RateLimitedError,), base_delay=10.0, max_delay=15.0, sleep=sleeps.append)

        assert sleeps == [10.0, 15.0, 15.0]

    def test_gives_up_after_max_attempts(self) -> None:
        func = Mock(side_effect=RateLimitedError("slow"))
        sleep = Mock()

        with pytest.raises(RateLimitedError):
            call_with_backoff(func, retry_on=(RateLimitedError,), max_attempts=3, sleep=sleep)

        assert func.call_count == 3
        assert sleep.call_count == 2

    def test_other_errors_propagate_immediately(self) -> None:
        func = Mock(side_effect=ValueError("bad"))

        with pytest.raises(ValueError, match="bad"):
            call_with_backoff(func, retry_on=(RateLimitedError,), sleep=Mock())

        assert func.call_count == 1


@pytest.mark.unit
class TestGetPassValue:
    def test_returns_stripped_value(self) -> None:
        completed = subprocess.CompletedProcess(["pass", "linear/api_key"], 0, stdout="lin_api_123\n", stderr="")
        with patch("linear_import.utils.subprocess.run", return_value=completed) as mock_run:
            assert get_pass_value("linear/api_key") == "lin_api_123"
        assert mock_run.call_args.args[0] == ["pass", "linear/api_key"]

    def test_invalid_path_is_rejected_without_running_pass(self) -> None:
        with patch("linear_import.utils.subprocess.run") as mock_run:
            with pytest.raises(InvalidPassPathError):
                get_pass_value("../etc/passwd")
        mock_run.assert_not_called()

    def test_missing_entry(self) -> None:
        error = subprocess.CalledProcessError(1, ["pass"], stderr="Error: linear/api_key is not in the password store.")
        with patch("linear_import.utils.subprocess.run", side_effect=error):
            with pytest.raises(InvalidPassPathError, match="not found"):
                get_pass_value("linear/api_key")

    def test_pass_not_installed(self) -> None:
        with patch("linear_import.utils.subprocess.run", side_effect=FileNotFoundError("pass")):
            with pytest.raises(PassError, match="not installed"):
                get_pass_value("linear/api_key")
