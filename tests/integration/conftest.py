"""
Integration test fixtures.

Integration tests:
- Test component boundaries
- Use real I/O but to temp locations
- Should be deterministic
"""

import pytest
import tempfile
import shutil
from pathlib import Path

from vetverify.config import Settings


@pytest.fixture
def temp_dir():
    """Temporary directory for test data."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def data_dir(temp_dir):
    """Temporary data directory for the json backend."""
    p = temp_dir / "data"
    p.mkdir()
    return p


@pytest.fixture
def settings(data_dir):
    return Settings(backend="json", data_dir=data_dir, batch_workers=4)
