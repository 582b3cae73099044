from .memory_store import MemoryEmployeeStore
from .postgres_store import PostgresEmployeeStore, connect
from .store import IDENTITY_FIELDS, DuplicateEmailError, EmployeeStore, StoreError

__all__ = [
    "IDENTITY_FIELDS",
    "DuplicateEmailError",
    "EmployeeStore",
    "MemoryEmployeeStore",
    "PostgresEmployeeStore",
    "StoreError",
    "connect",
]
