"""Pytest configuration and shared fixtures."""

import pytest
import sys
from pathlib import Path

# Add the source directory to the Python path
src_dir = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_dir))


@pytest.fixture(autouse=True)
def seeded_rng():
    """Seed the random number generators before each test."""
    from lcsnet.utils import rand_init
    rand_init(42)
    yield


@pytest.fixture
def config():
    """Default configuration (not exploring)."""
    from lcsnet.run.config import Config
    return Config()


@pytest.fixture
def explore_config():
    """Default configuration in exploration mode."""
    from lcsnet.run.config import Config
    config = Config()
    config.explore = True
    return config
