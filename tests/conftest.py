from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "ledgermsg" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)


@pytest.fixture(autouse=True)
def _clean_ledgermsg_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Tests must not pick up an operator's config from the environment.
    for name in (
        "LEDGERMSG_CONFIG_PATH",
        "LEDGERMSG_SCHEMA_PATH",
        "LEDGERMSG_MAX_DEPTH",
        "LEDGERMSG_MAX_ELEMENT_BYTES",
        "LEDGERMSG_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
