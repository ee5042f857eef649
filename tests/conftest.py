from __future__ import annotations

import os
from pathlib import Path

import pytest

# Required by chatledger.config at import time
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("TIMEZONE", "America/Sao_Paulo")

from tests.test_utils import LedgerSeed, RecordingAdapter, make_ledger  # noqa: E402


def _top_level_tests_group(path: Path) -> str | None:
    parts = path.parts
    try:
        tests_index = parts.index("tests")
    except ValueError:
        return None
    if tests_index + 1 >= len(parts):
        return None
    return parts[tests_index + 1]


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    for item in items:
        group = _top_level_tests_group(Path(str(item.fspath)))
        if group == "unit":
            item.add_marker(pytest.mark.unit)
        elif group == "integration":
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def ledger() -> LedgerSeed:
    return make_ledger()


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter()
