"""
counting-contract: a deterministic donation counter with versioned migrations.

Public API re-exports from kernel/ (machinery) and the simulated host.
"""
from .config import CONTRACT_NAME, CONTRACT_VERSION, EngineSettings
from .kernel.engine import ContractEngine, DispatchResult
from .kernel.errors import ContractError
from .kernel.schema import Addr, Coin, Deps, Env, MessageInfo, Response, coin, coins
from .kernel.store import MemoryStorage, SqliteStorage, open_storage
from .multitest import App, HostError

__version__ = CONTRACT_VERSION

__all__ = [
    # Build
    "CONTRACT_NAME",
    "CONTRACT_VERSION",
    "EngineSettings",
    # Engine
    "ContractEngine",
    "DispatchResult",
    "ContractError",
    # Schema
    "Addr",
    "Coin",
    "Deps",
    "Env",
    "MessageInfo",
    "Response",
    "coin",
    "coins",
    # Store
    "MemoryStorage",
    "SqliteStorage",
    "open_storage",
    # Host
    "App",
    "HostError",
]
