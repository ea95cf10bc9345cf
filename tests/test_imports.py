"""Each package must import on its own, whatever is loaded first."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent


@pytest.mark.parametrize("module", [
    "kbsync.services.upload_pipeline",
    "kbsync.services",
    "kbsync.core.exceptions",
    "kbsync.core",
    "kbsync.main",
])
def test_module_imports_in_fresh_interpreter(module):
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=ROOT,
        capture_output=True,
        text=True
    )
    assert result.returncode == 0, result.stderr
