"""Versioned configuration store backed by a relational table.

The store keeps every published configuration version in memory, polls the
table for newer versions and wakes watchers when something new arrives.
"""

from configpersist.store.persister import PersisterState, SqlPersister

__all__ = ["PersisterState", "SqlPersister"]
