from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

import pytest  # noqa: E402

from trackheat import palettes  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_user_palettes(monkeypatch, tmp_path) -> None:
    """Prevent local palette files from bleeding into tests."""
    monkeypatch.setenv(palettes.ENV_PALETTES_PATH, str(tmp_path / "missing_palettes.json"))
    monkeypatch.delenv("TRACKHEAT_PROFILE_DIR", raising=False)
