"""
ContractEngine: the four entry points the host may call.

    host ──> instantiate(deps, env, info, payload) ─┐
    host ──> execute(deps, env, info, payload) ─────┼──> handlers ──> DispatchResult
    host ──> migrate(deps, env, payload) ───────────┤
    host ──> query(deps, env, payload) ─────────────┘

Every state-changing entry point runs against a StorageTransaction over
deps.storage: the overlay is committed only when the handler returns, so a
failed call leaves the store exactly as it found it. Failures never escape
as exceptions; they come back as DispatchResult(ok=False, error=...).

Effects in a successful Response are requests only. The host executes them
in order and owns rollback of the whole causal chain if any of them fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, get_args

from ..config import CONTRACT_NAME, CONTRACT_VERSION
from ..lib import exec as exec_handlers
from ..lib import query as query_handlers
from ..lib.instantiate import instantiate as instantiate_handler
from ..lib.upgrades import UPGRADES
from .errors import ContractError, RegistryError
from .migrate import MigrationDispatcher
from .registry import UpgradeRegistry
from .schema import (
    ContractFailure,
    Deps,
    DonateMsg,
    Env,
    ExecMsg,
    MessageInfo,
    ResetMsg,
    Response,
    ValueQuery,
    WithdrawMsg,
    WithdrawToMsg,
    parse_exec_msg,
    parse_instantiate_msg,
    parse_migrate_msg,
    parse_query_msg,
)
from .store import StorageTransaction

# Every execute variant must have a branch in ContractEngine._execute.
_HANDLED_EXEC = (DonateMsg, ResetMsg, WithdrawMsg, WithdrawToMsg)
if set(get_args(ExecMsg)) != set(_HANDLED_EXEC):
    raise RegistryError("ExecMsg variants and execute handlers are out of sync")


@dataclass
class DispatchResult:
    """Result of one entry point call."""

    ok: bool
    response: Optional[Response] = None
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ContractFailure] = None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: Dict[str, Any] = {"ok": self.ok, "data": self.data}
        if self.response is not None:
            result["response"] = self.response.model_dump(mode="json")
        if not self.ok and self.error is not None:
            result["error"] = self.error.model_dump(mode="json")
        return result


def _failure(exc: Exception) -> ContractFailure:
    if isinstance(exc, ContractError):
        return ContractFailure(kind=exc.kind, message=str(exc), details=exc.details())
    return ContractFailure(kind="execution_error", message=str(exc))


class ContractEngine:
    """
    Deterministic entry points for one contract build.

    Example:
        engine = ContractEngine()
        result = engine.execute(deps, env, info, {"donate": {}})
        if result.ok:
            host.run(result.response.messages)
    """

    def __init__(
        self,
        name: str = CONTRACT_NAME,
        version: str = CONTRACT_VERSION,
        upgrades: UpgradeRegistry = UPGRADES,
    ) -> None:
        self.name = name
        self.version = version
        self._upgrades = upgrades

    # ==================== Entry points ====================

    def instantiate(
        self, deps: Deps, env: Env, info: MessageInfo, payload: Any
    ) -> DispatchResult:
        def run(scoped: Deps) -> DispatchResult:
            msg = parse_instantiate_msg(payload)
            return DispatchResult(ok=True, response=instantiate_handler(scoped, env, info, msg))

        return self._transact(deps, "instantiate", run)

    def execute(
        self, deps: Deps, env: Env, info: MessageInfo, payload: Any
    ) -> DispatchResult:
        def run(scoped: Deps) -> DispatchResult:
            msg = parse_exec_msg(payload)
            return DispatchResult(ok=True, response=self._execute(scoped, env, info, msg))

        return self._transact(deps, "execute", run)

    def migrate(self, deps: Deps, env: Env, payload: Any = None) -> DispatchResult:
        dispatcher = MigrationDispatcher(self._upgrades, self.name, self.version)

        def run(scoped: Deps) -> DispatchResult:
            msg = parse_migrate_msg(payload)
            resp = dispatcher.migrate(scoped, msg)
            return DispatchResult(
                ok=True,
                response=resp,
                data={
                    "status": dispatcher.status.value,
                    "applied": [s.from_version for s in dispatcher.applied],
                },
            )

        result = self._transact(deps, "migrate", run)
        if not result.ok:
            result.data = {"status": dispatcher.status.value, "applied": []}
        return result

    def query(self, deps: Deps, env: Env, payload: Any) -> DispatchResult:
        try:
            msg = parse_query_msg(payload)
            data = self._query(deps, env, msg)
        except Exception as exc:
            failure = _failure(exc)
            deps.emit(f"[{self.name}] query failed: {failure.kind}")
            return DispatchResult(ok=False, error=failure)
        return DispatchResult(ok=True, data=data)

    # ==================== Dispatch ====================

    def _execute(self, deps: Deps, env: Env, info: MessageInfo, msg: ExecMsg) -> Response:
        if isinstance(msg, DonateMsg):
            return exec_handlers.donate(deps, env, info)
        if isinstance(msg, ResetMsg):
            return exec_handlers.reset(deps, info, msg.reset.counter)
        if isinstance(msg, WithdrawMsg):
            return exec_handlers.withdraw(deps, env, info)
        if isinstance(msg, WithdrawToMsg):
            args = msg.withdraw_to
            return exec_handlers.withdraw_to(deps, env, info, args.receiver, args.funds)
        raise TypeError(f"Unhandled execute variant: {type(msg).__name__}")

    def _query(self, deps: Deps, env: Env, msg: ValueQuery) -> Dict[str, Any]:
        if isinstance(msg, ValueQuery):
            return query_handlers.value(deps.storage).model_dump()
        raise TypeError(f"Unhandled query variant: {type(msg).__name__}")

    def _transact(
        self,
        deps: Deps,
        entry: str,
        run: Callable[[Deps], DispatchResult],
    ) -> DispatchResult:
        txn = StorageTransaction(deps.storage)
        try:
            result = run(deps.with_storage(txn))
        except Exception as exc:
            txn.discard()
            failure = _failure(exc)
            deps.emit(f"[{self.name}] {entry} failed: {failure.kind}: {failure.message}")
            return DispatchResult(ok=False, error=failure)

        txn.commit()
        deps.emit(f"[{self.name}] {entry} ok")
        return result
