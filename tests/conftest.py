"""
Shared fixtures: a JobStore on a throwaway SQLite file and the
lifecycle/router built on top of it.
"""

import pytest

from commands import CommandRouter
from job_store import JobStore
from lifecycle import JobLifecycle


@pytest.fixture
def store(tmp_path):
    s = JobStore(f"sqlite:///{tmp_path / 'renders.sqlite'}")
    s.create_table()
    yield s
    s.engine.dispose()


@pytest.fixture
def lifecycle(store):
    return JobLifecycle(store)


@pytest.fixture
def lenient_lifecycle(store):
    return JobLifecycle(store, strict=False)


@pytest.fixture
def router(lifecycle):
    return CommandRouter(lifecycle, timeout=5.0)
