import os

import pytest


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep DDC_* variables and stray .env files out of the tests"""
    for name in list(os.environ):
        if name.upper().startswith("DDC_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
