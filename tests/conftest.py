from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Must be set before importing modules that read settings or create the SQLAlchemy engine.
_RUNTIME_DIR = Path(tempfile.mkdtemp(prefix="relay-tests-"))
os.environ["DATA_DIR"] = str(_RUNTIME_DIR)
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{(_RUNTIME_DIR / 'relay_test.db').as_posix()}"
os.environ["STORE_BACKEND"] = "memory"
os.environ["PUBLIC_BASE_URL"] = "https://relay.example.com"
os.environ["TWILIO_SAY_VOICE"] = "Polly.Joanna"


@pytest.fixture(scope="session")
def app():
    import importlib

    # Ensure clean import with the test settings.
    for module_name in [
        "config.settings",
        "api.dependencies",
        "api.twilio_routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def runtime_dir() -> Path:
    return _RUNTIME_DIR
