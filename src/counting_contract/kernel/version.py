"""
Version ledger: the stored (contract name, version) tag.

Written at instantiation and rewritten only by the migration dispatcher.
"""

from __future__ import annotations

from typing import Any, Tuple

from .schema import ContractVersion
from .store import Item

CONTRACT_INFO: Item[ContractVersion] = Item("contract_info", ContractVersion)


def get_contract_version(storage: Any) -> ContractVersion:
    return CONTRACT_INFO.load(storage)


def set_contract_version(storage: Any, name: str, version: str) -> None:
    CONTRACT_INFO.save(storage, ContractVersion(contract=name, version=version))


def parse_version(label: str) -> Tuple[int, ...]:
    """Order key for a major.minor.patch label; non-numeric parts sort as 0."""
    parts = []
    for piece in label.split("-", 1)[0].split("."):
        parts.append(int(piece) if piece.isdigit() else 0)
    return tuple(parts)
