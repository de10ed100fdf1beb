"""Shared pytest fixtures for the lineage test suite.

Provides:
- anyio_backend: pins async tests to asyncio
"""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
