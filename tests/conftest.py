import asyncio
import inspect
import textwrap
from pathlib import Path

import pytest


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Run async test functions without requiring external plugins."""
    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            sig = inspect.signature(test_function)
            filtered_args = {k: v for k, v in pyfuncitem.funcargs.items() if k in sig.parameters}
            loop.run_until_complete(test_function(**filtered_args))
        finally:
            loop.close()
            asyncio.set_event_loop(None)
        return True
    return None


def pytest_configure(config):
    """Register markers for pytest."""
    config.addinivalue_line("markers", "asyncio: mark async tests")
    config.addinivalue_line("markers", "integration: mark test as integration test")


@pytest.fixture(autouse=True)
def development_env(monkeypatch):
    """Naming warnings only run outside production; pin the environment."""
    monkeypatch.delenv("PYTHON_ENV", raising=False)
    monkeypatch.setenv("PROCROUTE_ENV", "development")


@pytest.fixture
def write_module(tmp_path: Path):
    """Write a dedented procedure module below ``tmp_path`` and return its path."""

    def _write(relative: str, source: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        return path

    return _write


USERS_MODULE = """
    from procroute import define_procedures, procedure

    users = define_procedures("users", {
        "getUser": procedure().query(lambda input, ctx: {"id": input["id"]}),
        "listUsers": procedure().query(lambda input, ctx: []),
    })
"""

HEALTH_MODULE = """
    from procroute import define_procedures, procedure

    health = define_procedures("health", {
        "getHealth": procedure().rest(method="GET", path="/health").query(lambda input, ctx: {"ok": True}),
    })
"""


@pytest.fixture
def users_source() -> str:
    return USERS_MODULE


@pytest.fixture
def health_source() -> str:
    return HEALTH_MODULE
