"""Pytest configuration and fixtures."""
from __future__ import annotations

import os
import random
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Set test environment
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from core.db import Base
import core.models  # noqa: F401,E402  (registers tables)

# 2024-01-01T00:00:00Z, a Monday
START_MS = 1_704_067_200_000.0


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float = START_MS) -> None:
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms

    def advance_hours(self, hours: float) -> None:
        self.advance(hours * 3_600_000)

    def advance_days(self, days: float) -> None:
        self.advance(days * 86_400_000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    """Seeded randomness so jittered delays are reproducible."""
    return random.Random(1234)


@pytest.fixture
def engine():
    """Create a fresh in-memory database engine with all tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
