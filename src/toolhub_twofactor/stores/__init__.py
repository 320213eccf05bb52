"""Record repositories and ephemeral code stores.

The SQLAlchemy repository lives in :mod:`toolhub_twofactor.stores.sqlalchemy`
and is imported explicitly by applications that use it.
"""

from __future__ import annotations

from .memory import InMemoryEphemeralCodeStore, InMemorySecurityRecordRepository
from .redis import RedisEphemeralCodeStore

__all__: list[str] = [
    "InMemoryEphemeralCodeStore",
    "InMemorySecurityRecordRepository",
    "RedisEphemeralCodeStore",
]
