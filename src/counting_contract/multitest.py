"""
Simulated host ledger for exercising contracts end to end.

The App plays the part of the external runtime: it holds bank balances,
gives every contract its own keyspace, moves attached funds, runs the
effects a contract requests (in emission order, recursively for
cross-contract calls) and treats one top-level call plus everything it
triggers as a single atomic unit.

    app = App()
    app.init_balance("sender", coins(10, "atom"))
    code_id = app.store_code(ContractEngine())
    addr = app.instantiate(code_id, "owner", {"minimal_donation": {...}})
    app.execute("sender", addr, {"donate": {}}, coins(10, "atom"))
    app.query(addr, {"value": {}})

Any failure anywhere in the chain raises a HostError and discards every
write of that top-level call, bank movements included.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel

from .kernel.schema import (
    Addr,
    Attribute,
    BankSend,
    Coin,
    ContractFailure,
    Deps,
    Env,
    MessageInfo,
    WasmExecute,
)
from .kernel.store import Item, Map, MemoryStorage, PrefixedStorage, StorageTransaction
from .lib.funds import merge_coins

_ADDR_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
MAX_ADDR_LEN = 64


# =============================================================================
# Host errors
# =============================================================================


class HostError(Exception):
    """A top-level call was rejected and rolled back."""

    kind = "host_error"


class UnknownCode(HostError):
    kind = "unknown_code"


class UnknownContract(HostError):
    kind = "unknown_contract"


class InsufficientFunds(HostError):
    kind = "insufficient_funds"


class AdminRequired(HostError):
    kind = "admin_required"


class ExecutionFailed(HostError):
    """A contract in the chain returned a failure; carried verbatim."""

    kind = "execution_failed"

    def __init__(self, contract: str, entry: str, failure: ContractFailure) -> None:
        super().__init__(f"{entry} on {contract} failed: {failure.kind}: {failure.message}")
        self.contract = contract
        self.entry = entry
        self.failure = failure


# =============================================================================
# Host collaborators
# =============================================================================


class MockApi:
    """Identity validator: lowercase alphanumerics plus . _ -, at most 64 chars."""

    def addr_validate(self, address: str) -> Addr:
        if not address:
            raise ValueError("address is empty")
        if len(address) > MAX_ADDR_LEN:
            raise ValueError(f"address longer than {MAX_ADDR_LEN} characters")
        if not _ADDR_RE.match(address):
            raise ValueError("address must be lowercase alphanumeric")
        return Addr(address)


class ContractRecord(BaseModel):
    code_id: int
    label: str = ""
    admin: Optional[Addr] = None


_BALANCES: Map[List[Coin]] = Map("bank", List[Coin])
_CONTRACTS: Map[ContractRecord] = Map("contracts", ContractRecord)
_SEQUENCE: Item[int] = Item("contract_seq", int)


class Bank:
    """Native-token balances kept in the host's storage."""

    def __init__(self, storage: Any) -> None:
        self._storage = storage

    def query_all_balances(self, address: str) -> List[Coin]:
        return list(_BALANCES.may_load(self._storage, address) or [])

    def set_balance(self, address: str, amount: Iterable[Coin]) -> None:
        _BALANCES.save(self._storage, address, merge_coins(amount))

    def send(self, sender: str, recipient: str, amount: Iterable[Coin]) -> None:
        amount = merge_coins(amount)
        if not amount:
            return

        held = {c.denom: c.amount for c in self.query_all_balances(sender)}
        for c in amount:
            if held.get(c.denom, 0) < c.amount:
                raise InsufficientFunds(
                    f"{sender} holds {held.get(c.denom, 0)}{c.denom}, needs {c.amount}{c.denom}"
                )
            held[c.denom] -= c.amount
        self.set_balance(sender, [Coin(denom=d, amount=a) for d, a in held.items()])
        self.set_balance(recipient, self.query_all_balances(recipient) + amount)


# =============================================================================
# App
# =============================================================================


@dataclass
class AppEvent:
    contract_address: str
    entry: str
    attributes: List[Attribute] = field(default_factory=list)

    def attribute(self, key: str) -> Optional[str]:
        for attr in self.attributes:
            if attr.key == key:
                return attr.value
        return None


@dataclass
class AppResponse:
    events: List[AppEvent] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    def events_for(self, contract_address: str) -> List[AppEvent]:
        return [e for e in self.events if e.contract_address == contract_address]


class App:
    """In-process stand-in for the ledger runtime."""

    def __init__(
        self,
        storage: Any = None,
        output_sink: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._root = storage if storage is not None else MemoryStorage()
        self._codes: Dict[int, Any] = {}
        self.api = MockApi()
        self.output_sink = output_sink

    # ==================== Setup ====================

    def store_code(self, engine: Any) -> int:
        code_id = len(self._codes) + 1
        self._codes[code_id] = engine
        return code_id

    def init_balance(self, address: str, amount: Iterable[Coin]) -> None:
        Bank(self._root).set_balance(address, amount)

    # ==================== Reads ====================

    def query_all_balances(self, address: str) -> List[Coin]:
        return Bank(self._root).query_all_balances(address)

    def contract_storage(self, contract: str) -> PrefixedStorage:
        """Raw keyspace of one contract, for inspection."""
        return PrefixedStorage(self._root, f"contract/{contract}")

    def contract_info(self, contract: str) -> ContractRecord:
        record = _CONTRACTS.may_load(self._root, contract)
        if record is None:
            raise UnknownContract(f"No contract at {contract}")
        return record

    def query(self, contract: str, msg: Any) -> Dict[str, Any]:
        record = self.contract_info(contract)
        engine = self._engine(record.code_id)
        result = engine.query(
            self._deps(self._root, contract),
            self._env(contract),
            msg,
        )
        if not result.ok:
            raise ExecutionFailed(contract, "query", result.error)
        return result.data

    # ==================== Top-level calls ====================

    def instantiate(
        self,
        code_id: int,
        sender: str,
        msg: Any,
        funds: Optional[List[Coin]] = None,
        label: str = "",
        admin: Optional[str] = None,
    ) -> Addr:
        def run(txn: StorageTransaction, resp: AppResponse) -> Addr:
            engine = self._engine(code_id)
            seq = (_SEQUENCE.may_load(txn) or 0) + 1
            _SEQUENCE.save(txn, seq)
            contract = Addr(f"contract{seq}")
            _CONTRACTS.save(
                txn,
                contract,
                ContractRecord(
                    code_id=code_id,
                    label=label,
                    admin=self.api.addr_validate(admin) if admin else None,
                ),
            )

            info = self._info(txn, sender, contract, funds)
            result = engine.instantiate(self._deps(txn, contract), self._env(contract), info, msg)
            self._absorb(txn, contract, "instantiate", result, resp)
            return contract

        return self._atomic(run)

    def execute(
        self,
        sender: str,
        contract: str,
        msg: Any,
        funds: Optional[List[Coin]] = None,
    ) -> AppResponse:
        def run(txn: StorageTransaction, resp: AppResponse) -> AppResponse:
            self._execute(txn, resp, sender, contract, msg, funds)
            return resp

        return self._atomic(run)

    def migrate(
        self,
        sender: str,
        contract: str,
        new_code_id: int,
        msg: Any = None,
    ) -> AppResponse:
        def run(txn: StorageTransaction, resp: AppResponse) -> AppResponse:
            record = _CONTRACTS.may_load(txn, contract)
            if record is None:
                raise UnknownContract(f"No contract at {contract}")
            if record.admin is None or record.admin != sender:
                raise AdminRequired(f"{sender} is not the admin of {contract}")

            engine = self._engine(new_code_id)
            result = engine.migrate(self._deps(txn, contract), self._env(contract), msg or {})
            self._absorb(txn, contract, "migrate", result, resp)
            resp.data = dict(result.data)

            record.code_id = new_code_id
            _CONTRACTS.save(txn, contract, record)
            return resp

        return self._atomic(run)

    # ==================== Internals ====================

    def _atomic(self, run: Callable[[StorageTransaction, AppResponse], Any]) -> Any:
        txn = StorageTransaction(self._root)
        try:
            value = run(txn, AppResponse())
        except Exception:
            txn.discard()
            raise
        txn.commit()
        return value

    def _execute(
        self,
        txn: StorageTransaction,
        resp: AppResponse,
        sender: str,
        contract: str,
        msg: Any,
        funds: Optional[List[Coin]],
    ) -> None:
        record = _CONTRACTS.may_load(txn, contract)
        if record is None:
            raise UnknownContract(f"No contract at {contract}")
        engine = self._engine(record.code_id)

        info = self._info(txn, sender, contract, funds)
        result = engine.execute(self._deps(txn, contract), self._env(contract), info, msg)
        self._absorb(txn, contract, "execute", result, resp)

    def _absorb(
        self,
        txn: StorageTransaction,
        contract: str,
        entry: str,
        result: Any,
        resp: AppResponse,
    ) -> None:
        """Record a contract's result, then run its effects in order."""
        if not result.ok:
            raise ExecutionFailed(contract, entry, result.error)

        response = result.response
        resp.events.append(AppEvent(contract, entry, list(response.attributes)))

        bank = Bank(txn)
        for message in response.messages:
            if isinstance(message, BankSend):
                bank.send(contract, message.to_address, message.amount)
            elif isinstance(message, WasmExecute):
                self._execute(
                    txn, resp, contract, message.contract_addr, message.msg, message.funds
                )
            else:
                raise HostError(f"Unsupported effect: {type(message).__name__}")

    def _info(
        self,
        txn: StorageTransaction,
        sender: str,
        contract: str,
        funds: Optional[List[Coin]],
    ) -> MessageInfo:
        funds = list(funds or [])
        Bank(txn).send(sender, contract, funds)
        return MessageInfo(sender=self.api.addr_validate(sender), funds=funds)

    def _deps(self, storage: Any, contract: str) -> Deps:
        return Deps(
            storage=PrefixedStorage(storage, f"contract/{contract}"),
            api=self.api,
            querier=Bank(storage),
            output_sink=self.output_sink,
        )

    def _env(self, contract: str) -> Env:
        return Env(contract_address=Addr(contract))

    def _engine(self, code_id: int) -> Any:
        engine = self._codes.get(code_id)
        if engine is None:
            raise UnknownCode(f"No code stored under id {code_id}")
        return engine
