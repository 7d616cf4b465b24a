from __future__ import annotations

import pytest

from smart_qr_tool.config import AppConfig, HistorySettings
from smart_qr_tool.history import HistoryStore


@pytest.fixture()
def config(tmp_path) -> AppConfig:
    return AppConfig(history_path=tmp_path / "history.json")


@pytest.fixture()
def store(config: AppConfig) -> HistoryStore:
    return HistoryStore(config.history_path, HistorySettings(max_history_items=5))
