"""Storage layer.

Protocols for the externally owned Profile Store and Data Store, plus
in-memory implementations for tests and offline use.
"""

from household_checkup.infrastructure.storage.memory import (
    InMemoryDataStore,
    InMemoryProfileStore,
)
from household_checkup.infrastructure.storage.protocols import DataStore, ProfileStore

__all__ = [
    "DataStore",
    "InMemoryDataStore",
    "InMemoryProfileStore",
    "ProfileStore",
]
