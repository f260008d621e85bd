"""
Migration Dispatcher: moves stored state onto this build's schema.

    PENDING ──name mismatch──────────────> REJECTED (IdentityMismatch)
       │
       ├──version == current─────────────> COMPLETE (no-op)
       │
       ├──no handler for version─────────> REJECTED (UnsupportedVersion)
       │
       └──> IN_PROGRESS ──apply chain──> COMPLETE (ledger rewritten)

Handlers are looked up by the exact stored version label and composed in
version order. A stored version newer than the build has no handler and is
rejected; downgrades are never attempted.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from .errors import ContractError, IdentityMismatch
from .registry import UpgradeRegistry, UpgradeStep
from .schema import Deps, MigrateMsg, Response
from .version import get_contract_version, set_contract_version


class MigrationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    REJECTED = "rejected"


class MigrationDispatcher:
    def __init__(self, registry: UpgradeRegistry, name: str, version: str) -> None:
        self._registry = registry
        self._name = name
        self._version = version
        self.status = MigrationStatus.PENDING
        self.applied: List[UpgradeStep] = []
        self.error: Optional[ContractError] = None

    def plan(self, deps: Deps) -> List[UpgradeStep]:
        """Steps that migrate() would apply, without writing anything."""
        stored = get_contract_version(deps.storage)
        if stored.contract != self._name:
            raise IdentityMismatch(stored.contract, self._name)
        if stored.version == self._version:
            return []
        return self._registry.chain_from(stored.version, self._version)

    def migrate(self, deps: Deps, msg: MigrateMsg) -> Response:
        try:
            steps = self.plan(deps)
        except ContractError as exc:
            self.status = MigrationStatus.REJECTED
            self.error = exc
            raise

        if not steps:
            self.status = MigrationStatus.COMPLETE
            return Response()

        self.status = MigrationStatus.IN_PROGRESS
        resp = Response()
        for step in steps:
            deps.emit(f"[migrate] {step.from_version} -> {step.to_version}")
            try:
                step_resp = step.handler(deps, msg)
            except ContractError as exc:
                self.status = MigrationStatus.REJECTED
                self.error = exc
                raise
            resp.messages.extend(step_resp.messages)
            resp.attributes.extend(step_resp.attributes)
            self.applied.append(step)

        set_contract_version(deps.storage, self._name, self._version)
        self.status = MigrationStatus.COMPLETE
        return resp.add_attribute("action", "migrate").add_attribute("version", self._version)
