from __future__ import annotations

"""Re-export fakes and factory functions for tests."""

# flake8: noqa: F401 – re-export

from .fakes import (
    START_MS,
    FakeSubjectRepository,
    FixedRandomSource,
    InterleavingSharedStore,
    ManualClock,
)
from .subject import create_fake_subject

__all__ = [
    "START_MS",
    "FakeSubjectRepository",
    "FixedRandomSource",
    "InterleavingSharedStore",
    "ManualClock",
    "create_fake_subject",
]
