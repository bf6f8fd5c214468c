"""
conftest.py - Shared pytest fixtures for tally tests

Provides common fixtures used across unit and conformance tests:
- Catalogs (two-item test catalog, the default stall menu)
- Ledgers (empty, with an in-memory store, with a file store)
- Clocks
"""

import pytest

from tally import SalesLedger, Catalog, TallyStore

from tests.fake_store import FakeClock, FakeStore


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def catalog():
    """Two-item catalog {A, B}."""
    return Catalog(("A", "B"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(catalog, clock):
    """Empty in-memory ledger over {A, B}."""
    return SalesLedger(catalog, clock=clock)


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def stored_ledger(catalog, clock, fake_store):
    """Ledger flushing to an in-memory store."""
    return SalesLedger(catalog, store=fake_store, clock=clock)


@pytest.fixture
def file_store(tmp_path):
    """TallyStore in a temporary directory."""
    return TallyStore(tmp_path / "data")
