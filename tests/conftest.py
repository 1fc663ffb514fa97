"""Shared pytest fixtures for nations-graph tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"
MEDIAWIKI_DIR = FIXTURES_DIR / "mediawiki"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def mediawiki_dir() -> Path:
    """Return path to MediaWiki fixtures."""
    return MEDIAWIKI_DIR


@pytest.fixture
def load_fixture() -> Callable[[str, str], str]:
    """Factory fixture to load MediaWiki fixture files.

    Usage:
        def test_something(load_fixture):
            content = load_fixture("infoboxes", "former_country.txt")
    """

    def _load(category: str, name: str) -> str:
        path = MEDIAWIKI_DIR / category / name
        return path.read_text(encoding="utf-8")

    return _load


@pytest.fixture
def former_country_page(load_fixture: Callable[[str, str], str]) -> str:
    """Former country article (Kingdom of Prussia)."""
    return load_fixture("infoboxes", "former_country.txt")


@pytest.fixture
def former_subdivision_page(load_fixture: Callable[[str, str], str]) -> str:
    """Former subdivision article (Province of Pomerania)."""
    return load_fixture("infoboxes", "former_subdivision.txt")


@pytest.fixture
def ancient_country_page(load_fixture: Callable[[str, str], str]) -> str:
    """Former country with BC years (Roman Republic)."""
    return load_fixture("infoboxes", "ancient_country.txt")


@pytest.fixture
def redirect_page(load_fixture: Callable[[str, str], str]) -> str:
    """Redirect page with a redirect category shell."""
    return load_fixture("redirects", "redirect.txt")
