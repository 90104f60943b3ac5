"""Root conftest: resets all global state after every test."""

import pytest

from ccfg.core.utils.lazy import Lazy


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Reset all Lazy singletons (the built-in registry) after each test."""
    yield
    Lazy.reset_all()
