# tests/conftest.py
import asyncio
import sys

import pytest

from track4health.models.user_models import User

# Selector loop on Windows, otherwise pytest-asyncio and httpx do not get along.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture
def developer_user() -> User:
    return User(id="1", username="dev", name="Dev User", role="developer")


@pytest.fixture
def master_user() -> User:
    return User(id="2", username="master", name="Master User", role="master")


@pytest.fixture
def fmt_user() -> User:
    return User(id="3", username="fmt", name="Fmt User", role="fmt", designation="Field Monitor")
