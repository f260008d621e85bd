from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, List, Literal, NewType, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import InvalidMessage

UINT64_MAX = 2**64 - 1
UINT128_MAX = 2**128 - 1

# A participant address that has passed the host's identity validator.
Addr = NewType("Addr", str)


class Coin(BaseModel):
    denom: str
    amount: int = Field(ge=0, le=UINT128_MAX)


def coin(amount: int, denom: str) -> Coin:
    return Coin(denom=denom, amount=amount)


def coins(amount: int, denom: str) -> List[Coin]:
    return [coin(amount, denom)]


# =============================================================================
# Persisted state
# =============================================================================


class State(BaseModel):
    counter: int = Field(ge=0, le=UINT64_MAX)
    minimal_donation: Coin
    owner: Addr
    # Countdown to the next parent donation; only present with a parent.
    donating_parent: Optional[int] = Field(default=None, ge=0, le=UINT64_MAX)


class ParentDonation(BaseModel):
    address: Addr
    donating_parent_period: int = Field(ge=1, le=UINT64_MAX)
    part: Decimal = Field(ge=0, le=1)


class ContractVersion(BaseModel):
    """The version ledger entry: which contract, at which version."""

    contract: str
    version: str


# =============================================================================
# Messages
# =============================================================================


class _Closed(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Empty(_Closed):
    pass


class Parent(_Closed):
    addr: str
    donating_period: int = Field(ge=0, le=UINT64_MAX)
    part: Decimal


class InstantiateMsg(_Closed):
    counter: int = Field(default=0, ge=0, le=UINT64_MAX)
    minimal_donation: Coin
    parent: Optional[Parent] = None


class ResetArgs(_Closed):
    counter: int = Field(default=0, ge=0, le=UINT64_MAX)


class WithdrawToArgs(_Closed):
    receiver: str
    # None means "everything the contract holds".
    funds: Optional[List[Coin]] = None


class DonateMsg(_Closed):
    donate: Empty


class ResetMsg(_Closed):
    reset: ResetArgs


class WithdrawMsg(_Closed):
    withdraw: Empty


class WithdrawToMsg(_Closed):
    withdraw_to: WithdrawToArgs


ExecMsg = Union[DonateMsg, ResetMsg, WithdrawMsg, WithdrawToMsg]


class ValueQuery(_Closed):
    value: Empty


QueryMsg = ValueQuery


class MigrateMsg(_Closed):
    parent: Optional[Parent] = None


class ValueResp(BaseModel):
    value: int


_INSTANTIATE_ADAPTER: TypeAdapter[InstantiateMsg] = TypeAdapter(InstantiateMsg)
_EXEC_ADAPTER: TypeAdapter[ExecMsg] = TypeAdapter(ExecMsg)
_QUERY_ADAPTER: TypeAdapter[QueryMsg] = TypeAdapter(QueryMsg)
_MIGRATE_ADAPTER: TypeAdapter[MigrateMsg] = TypeAdapter(MigrateMsg)


def _parse(adapter: TypeAdapter, family: str, payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    try:
        return adapter.validate_python(payload)
    except ValidationError as exc:
        raise InvalidMessage(family, str(exc)) from exc


def parse_instantiate_msg(payload: Any) -> InstantiateMsg:
    return _parse(_INSTANTIATE_ADAPTER, "instantiate", payload)


def parse_exec_msg(payload: Any) -> ExecMsg:
    return _parse(_EXEC_ADAPTER, "execute", payload)


def parse_query_msg(payload: Any) -> QueryMsg:
    return _parse(_QUERY_ADAPTER, "query", payload)


def parse_migrate_msg(payload: Any) -> MigrateMsg:
    return _parse(_MIGRATE_ADAPTER, "migrate", payload or {})


# =============================================================================
# Result bundle
# =============================================================================


class BankSend(BaseModel):
    kind: Literal["bank_send"] = "bank_send"
    to_address: Addr
    amount: List[Coin]


class WasmExecute(BaseModel):
    kind: Literal["wasm_execute"] = "wasm_execute"
    contract_addr: Addr
    msg: Dict[str, Any]
    funds: List[Coin] = Field(default_factory=list)


CosmosMsg = Union[BankSend, WasmExecute]


class Attribute(BaseModel):
    key: str
    value: str


class Response(BaseModel):
    """Effects and audit attributes produced by one successful call."""

    messages: List[CosmosMsg] = Field(default_factory=list)
    attributes: List[Attribute] = Field(default_factory=list)

    def add_message(self, msg: CosmosMsg) -> "Response":
        self.messages.append(msg)
        return self

    def add_attribute(self, key: str, value: Any) -> "Response":
        self.attributes.append(Attribute(key=key, value=str(value)))
        return self


class ContractFailure(BaseModel):
    kind: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Call context
# =============================================================================


class Env(BaseModel):
    contract_address: Addr


class MessageInfo(BaseModel):
    sender: Addr
    funds: List[Coin] = Field(default_factory=list)


class Deps(BaseModel):
    """Host collaborators handed to every entry point.

    storage: byte store with get/set/remove (see kernel.store).
    api: identity validator exposing addr_validate(str) -> Addr, raising
        ValueError for a malformed address.
    querier: balance oracle exposing query_all_balances(Addr) -> List[Coin].
    output_sink: trace line receiver; nothing is written when unset.
    """

    storage: Any
    api: Any
    querier: Any
    output_sink: Optional[Callable[[str], None]] = Field(default=None, exclude=True)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def emit(self, content: str) -> None:
        if self.output_sink:
            self.output_sink(content)

    def with_storage(self, storage: Any) -> "Deps":
        return Deps(
            storage=storage,
            api=self.api,
            querier=self.querier,
            output_sink=self.output_sink,
        )
