"""Root test configuration: document-writing fixture and isolation from local config"""

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch, tmp_path):
    """Run every test from an empty directory without LEGALMD_* variables."""
    for name in list(os.environ):
        if name.startswith("LEGALMD_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(name="write_doc")
def write_doc_fixture(tmp_path):
    """Write a document under tmp_path and return its path."""
    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
    return _write
