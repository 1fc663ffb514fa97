"""Crawler settings, read from the [tool.nations-graph] table of pyproject.toml."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

# Each nesting level costs a few interpreter frames; stay well under the
# default recursion limit of 1000.
MAX_NESTING_DEPTH_LIMIT = 250


class NationsGraphConfig(BaseModel):
    """Settings for fetching pages and building the succession graph."""

    # MediaWiki API access
    api_url: str = "https://en.wikipedia.org/w/api.php"
    user_agent: str = "nations-graph/0.1 (historical succession graph builder)"
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    resolve_redirects: bool = True

    # Traversal
    max_concurrent: int = Field(default=8, gt=0)

    # Markup parsing
    max_nesting_depth: int = Field(default=50, gt=0, le=MAX_NESTING_DEPTH_LIMIT)


@lru_cache(maxsize=1)
def load_config() -> NationsGraphConfig:
    """Return the crawler settings, read once per process.

    Keys of [tool.nations-graph] override the model defaults. Without a
    pyproject.toml (an installed wheel, say) the defaults are used as-is.
    """
    pyproject_path = _find_pyproject()
    if pyproject_path is None:
        return NationsGraphConfig()

    with pyproject_path.open("rb") as f:
        data = tomllib.load(f)

    overrides: dict[str, Any] = data.get("tool", {}).get("nations-graph", {})
    return NationsGraphConfig(**overrides)


def _find_pyproject() -> Path | None:
    """Locate the project's pyproject.toml above the package directory."""
    directory = Path(__file__).resolve().parent
    for _ in range(10):  # src/nations_graph sits two levels below the root
        candidate = directory / "pyproject.toml"
        if candidate.exists():
            return candidate
        if directory.parent == directory:
            break
        directory = directory.parent
    return None
