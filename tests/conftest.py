"""Shared fixtures."""

import pytest
import tempfile
from datetime import datetime
from pathlib import Path

from lead_assignment_engine.storage.database import AssignmentDatabase

# A Wednesday, inside business hours
FIXED_NOW = datetime(2026, 3, 4, 10, 30)


@pytest.fixture
def temp_data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db(temp_data_dir):
    """Assignment database with one branch."""
    database = AssignmentDatabase(temp_data_dir / "assignments.db")
    database.add_branch("mum", "Mumbai")
    return database


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
