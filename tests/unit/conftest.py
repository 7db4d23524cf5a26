"""Conftest for unit tests of the pure core components.

Unit tests in this sub-package touch no database, HTTP or file-system
infrastructure beyond pytest's tmp_path.
"""

import pytest

from readiness_engine.core.scoring import ScoringEngine


@pytest.fixture()
def engine() -> ScoringEngine:
    """Provide a fresh ScoringEngine instance."""
    return ScoringEngine()
