"""
Kernel: The machinery of the contract engine.

This module contains the execution infrastructure:
- errors: Typed failures
- schema: State, message and result shapes
- store: Byte stores and the typed slot accessors over them
- version: The (name, version) ledger
- registry: Upgrade handler registry
- migrate: Migration dispatcher
- engine: Host-facing entry points

The kernel is distinct from lib/ (the contract's own handlers).
Kernel = machinery. Lib = behavior.
"""
from .errors import (
    ContractError,
    Corrupt,
    IdentityMismatch,
    InvalidConfig,
    InvalidDestination,
    InvalidMessage,
    NotFound,
    Overflow,
    RegistryError,
    StorageFault,
    Unauthorized,
    UnsupportedVersion,
)
from .schema import (
    Addr,
    Coin,
    ContractFailure,
    ContractVersion,
    Deps,
    Env,
    MessageInfo,
    ParentDonation,
    Response,
    State,
    coin,
    coins,
)
from .store import (
    Item,
    Map,
    MemoryStorage,
    PrefixedStorage,
    SqliteStorage,
    StorageTransaction,
    open_storage,
)
from .registry import UpgradeRegistry
from .migrate import MigrationDispatcher, MigrationStatus
from .engine import ContractEngine, DispatchResult

__all__ = [
    # Errors
    "ContractError",
    "Corrupt",
    "IdentityMismatch",
    "InvalidConfig",
    "InvalidDestination",
    "InvalidMessage",
    "NotFound",
    "Overflow",
    "RegistryError",
    "StorageFault",
    "Unauthorized",
    "UnsupportedVersion",
    # Schema
    "Addr",
    "Coin",
    "ContractFailure",
    "ContractVersion",
    "Deps",
    "Env",
    "MessageInfo",
    "ParentDonation",
    "Response",
    "State",
    "coin",
    "coins",
    # Store
    "Item",
    "Map",
    "MemoryStorage",
    "PrefixedStorage",
    "SqliteStorage",
    "StorageTransaction",
    "open_storage",
    # Migration
    "UpgradeRegistry",
    "MigrationDispatcher",
    "MigrationStatus",
    # Engine
    "ContractEngine",
    "DispatchResult",
]
