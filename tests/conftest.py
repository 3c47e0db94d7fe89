"""Pytest configuration for test isolation.

Settings are read from ``SITE_LEDGER_*`` environment variables, and the CLI
loads a ``.env`` from the working directory. To keep tests hermetic every test
starts with those variables cleared and runs inside its own temporary
directory.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
for _p in (_ROOT / "packages", _ROOT):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("SITE_LEDGER_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
