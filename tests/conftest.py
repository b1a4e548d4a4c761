"""Shared fixtures: isolated settings directory and an offscreen QApplication."""
from __future__ import annotations

import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import settings  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the settings manager at a throwaway config dir for every test."""
    config_root = tmp_path / "config"
    monkeypatch.setattr(
        settings.platformdirs,
        "user_config_dir",
        lambda app_name: str(config_root / app_name),
    )
    settings.reset_settings()
    yield config_root
    settings.reset_settings()


@pytest.fixture(scope="session")
def qapp():
    """Provide a single QApplication for the entire test session."""
    from PyQt6.QtWidgets import QApplication
    app = QApplication.instance() or QApplication(sys.argv)
    yield app
