"""
Pytest configuration for backend tests.

Shared fixtures: temporary databases, document factories and fake oracles.
No test touches the network.
"""
import sys
from pathlib import Path

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from agimonitor.db import init_db
from agimonitor.settings import Settings


# --- Database Fixtures ---
@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for isolated testing."""
    return tmp_path / "index" / "test_agimonitor.sqlite3"


@pytest.fixture
def db_path(temp_db_path: Path) -> Path:
    """Initialized temporary database."""
    init_db(temp_db_path)
    return temp_db_path


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings isolated to tmp_path with fast worker timings."""
    return Settings(
        data_dir=tmp_path,
        config_dir=tmp_path / "config",
        inter_batch_delay_s=0.0,
        oracle_timeout_s=2.0,
        db_op_timeout_s=2.0,
        batch_timeout_s=5.0,
        translation_enabled=False,
    )
