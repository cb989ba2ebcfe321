"""Shared pytest fixtures for core tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def movement_records():
    from tests.sample_data import make_movement_records

    return make_movement_records()


@pytest.fixture
def movement_rows():
    from tests.sample_data import make_movement_rows

    return make_movement_rows()
