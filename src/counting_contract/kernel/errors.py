"""
Typed failures raised inside the engine.

Handlers raise these; the engine boundary converts them into a
ContractFailure on the DispatchResult so the host receives the kind and
its diagnostic payload verbatim.
"""

from __future__ import annotations

from typing import Any, Dict


class ContractError(Exception):
    """Base class for every engine failure."""

    kind = "contract_error"

    def details(self) -> Dict[str, Any]:
        return {}


class StorageFault(ContractError):
    """A storage read/write failed or bytes did not match the declared shape."""

    kind = "storage_fault"

    def __init__(self, key: str, message: str) -> None:
        super().__init__(message)
        self.key = key

    def details(self) -> Dict[str, Any]:
        return {"key": self.key}


class NotFound(StorageFault):
    """The slot has never been written."""

    kind = "not_found"

    def __init__(self, key: str) -> None:
        super().__init__(key, f"No value stored under {key!r}")


class Corrupt(StorageFault):
    """The stored bytes failed to deserialize."""

    kind = "corrupt"

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(key, f"Value under {key!r} failed to deserialize: {reason}")
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        return {"key": self.key, "reason": self.reason}


class Unauthorized(ContractError):
    """Caller is not the privileged identity."""

    kind = "unauthorized"

    def __init__(self, owner: str) -> None:
        super().__init__(f"Unauthorized - only {owner} can call it")
        self.owner = owner

    def details(self) -> Dict[str, Any]:
        return {"owner": self.owner}


class InvalidDestination(ContractError):
    """A supplied address string failed identity validation."""

    kind = "invalid_destination"

    def __init__(self, address: str, reason: str) -> None:
        super().__init__(f"Invalid address {address!r}: {reason}")
        self.address = address
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        return {"address": self.address, "reason": self.reason}


class IdentityMismatch(ContractError):
    """Stored contract name differs from this build's name."""

    kind = "identity_mismatch"

    def __init__(self, contract: str, expected: str) -> None:
        super().__init__(
            f"Invalid contract to migrate from: {contract} (expected {expected})"
        )
        self.contract = contract
        self.expected = expected

    def details(self) -> Dict[str, Any]:
        return {"contract": self.contract, "expected": self.expected}


class UnsupportedVersion(ContractError):
    """No upgrade path is known from the stored version."""

    kind = "unsupported_version"

    def __init__(self, version: str) -> None:
        super().__init__(f"Unsupported contract version for migration: {version}")
        self.version = version

    def details(self) -> Dict[str, Any]:
        return {"version": self.version}


class InvalidMessage(ContractError):
    """Payload does not match any declared message variant."""

    kind = "invalid_message"

    def __init__(self, family: str, reason: str) -> None:
        super().__init__(f"Invalid {family} message: {reason}")
        self.family = family
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        return {"family": self.family, "reason": self.reason}


class InvalidConfig(ContractError):
    """Parent donation settings are out of range."""

    kind = "invalid_config"

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Invalid parent config field {field}: {reason}")
        self.field = field
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        return {"field": self.field, "reason": self.reason}


class Overflow(ContractError):
    """A checked counter would leave its declared range."""

    kind = "overflow"

    def __init__(self, field: str, value: int, limit: int) -> None:
        super().__init__(f"Cannot increment {field} past {limit} (currently {value})")
        self.field = field
        self.value = value
        self.limit = limit

    def details(self) -> Dict[str, Any]:
        return {"field": self.field, "value": self.value, "limit": self.limit}


class RegistryError(Exception):
    """The upgrade registry does not form a chain to the current version."""
