"""Tests for the main entry point."""

from unittest.mock import patch

import pytest

from aws_toolkit.__main__ import main
from aws_toolkit.config import ConfigurationError, Settings


def test_main_prints_version_and_settings(
    settings: Settings, capsys: pytest.CaptureFixture[str]
) -> None:
    """Test that main prints the version and the configuration summary."""
    with patch("aws_toolkit.__main__.get_settings", return_value=settings):
        result = main()

    output = capsys.readouterr().out
    assert result == 0
    assert "Version:" in output
    assert "Region: us-east-1" in output
    assert "DCV Port: 8443" in output


def test_main_reports_configuration_error(capsys: pytest.CaptureFixture[str]) -> None:
    """Test that an unreadable properties file gives a non-zero exit code."""
    with patch(
        "aws_toolkit.__main__.get_settings", side_effect=ConfigurationError("unreadable")
    ):
        result = main()

    assert result == 1
    assert "unreadable" in capsys.readouterr().err
