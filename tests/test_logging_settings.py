"""Tests for logging settings parsing."""

import logging
from pathlib import Path

from aura.logging_settings import parse_logging_settings


def test_parse_logging_settings_with_retention(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        """
# Terminal output
terminal = warning
app = debug
retention_hours = 72
"""
    )

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level == logging.WARNING
    assert settings.app_level == logging.DEBUG
    assert settings.retention_hours == 72
    assert settings.root_level == logging.DEBUG


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    settings = parse_logging_settings(tmp_path / "absent.conf")

    assert settings.terminal_level == logging.INFO
    assert settings.app_level == logging.INFO
    assert settings.retention_hours == 48


def test_off_disables_handler_and_invalid_values_fall_back(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("terminal = off\napp = loud\nretention_hours = soon\nnot a setting\n")

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level is None
    assert settings.app_level == logging.INFO
    assert settings.retention_hours == 48
    assert settings.root_level == logging.INFO


def test_everything_off_falls_back_to_warning_root(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("terminal = off\napp = off\nretention_hours = -5\n")

    settings = parse_logging_settings(config_file)

    assert settings.root_level == logging.WARNING
    assert settings.retention_hours == 0
