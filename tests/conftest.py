"""
Pytest configuration and shared fixtures for all enumnest tests.

Building the LALR tables is the expensive part of setting up a session, so
one parser is shared by the whole run; sessions (and their registries) are
fresh per test.
"""

import sys
import pytest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from enumnest.compiler.driver import ExpansionDriver
from enumnest.compiler.session import Session
from enumnest.frontend.parser import Parser


# =============================================================================
# Session-scoped fixtures (shared across all tests)
# =============================================================================

@pytest.fixture(scope="session")
def session_parser():
    """
    Session-scoped parser shared across ALL tests.

    The parser keeps no state between parses, so sharing it is safe.
    """
    return Parser()


# =============================================================================
# Function-scoped fixtures (default - one per test)
# =============================================================================

@pytest.fixture
def parser(session_parser):
    return session_parser


@pytest.fixture
def session(session_parser):
    """Fresh session; its root is discovered from the first file expanded."""
    return Session(parser=session_parser)


@pytest.fixture
def driver(session):
    return ExpansionDriver(session)


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers for test organization."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
