"""Test configuration and fixtures."""

from __future__ import annotations

import importlib.util
import itertools
from collections.abc import Callable
from pathlib import Path
from types import ModuleType

import pytest

from cloud_triggers.server.config import RuntimeSettings

FIXTURES = Path(__file__).parent / "fixtures"

_RUNTIME_ENV = (
    "FUNCTION_TARGET",
    "FUNCTION_SIGNATURE_TYPE",
    "FUNCTIONS_CONTROL_API",
    "FIREBASE_DEBUG_FEATURES",
    "LOG_LEVEL",
    "CLOUD_TRIGGERS_OUTPUT",
    "CLOUD_TRIGGERS_FORMAT",
)

_module_ids = itertools.count()


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate every test from the developer's environment and `.env` file."""
    for name in _RUNTIME_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def sample_path() -> Path:
    """Path of the declarations module shared by scan and runtime tests."""
    return FIXTURES / "sample_functions.py"


@pytest.fixture
def load_module() -> Callable[[Path], ModuleType]:
    """Import a module from a file path under a fresh name (fresh registry each time)."""

    def load(path: Path) -> ModuleType:
        name = f"_cloud_triggers_fixture_{next(_module_ids)}"
        spec = importlib.util.spec_from_file_location(name, path)
        assert spec is not None and spec.loader is not None
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    return load


@pytest.fixture
def sample_module(sample_path: Path, load_module: Callable[[Path], ModuleType]) -> ModuleType:
    return load_module(sample_path)


@pytest.fixture
def runtime_settings(monkeypatch: pytest.MonkeyPatch) -> Callable[..., RuntimeSettings]:
    """Build RuntimeSettings from environment variables, e.g. ``FUNCTION_TARGET="hello"``."""

    def build(**env: str) -> RuntimeSettings:
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return RuntimeSettings(_env_file=None)

    return build
