import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch, tmp_path):
    """Fresh settings, stores and gateway client per test; task file and uploads under tmp_path."""
    from src.room_of_requirements import config
    from src.room_of_requirements.infrastructure import compost_store, conversation_store, realtime, task_store
    from src.room_of_requirements.services import composting_service, openrouter, task_service

    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
    monkeypatch.setenv("ROR_TASKS_FILE", str(tmp_path / "taskmaster.json"))
    monkeypatch.setenv("ROR_UPLOAD_DIR", str(tmp_path / "uploads"))
    config.get_settings.cache_clear()

    monkeypatch.setattr(conversation_store, "_store", None)
    monkeypatch.setattr(realtime, "_manager", None)
    monkeypatch.setattr(compost_store, "_store", None)
    monkeypatch.setattr(task_store, "_store", None)
    monkeypatch.setattr(openrouter, "_client", None)
    monkeypatch.setattr(composting_service, "_service", None)
    monkeypatch.setattr(task_service, "_service", None)
    yield
    config.get_settings.cache_clear()
