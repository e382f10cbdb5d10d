import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _clean_settings_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("TIMEDSEND_") or name == "ANONYMIZE_LOGS":
            monkeypatch.delenv(name, raising=False)
    yield
