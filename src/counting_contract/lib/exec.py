"""
Domain: Commands
ID Prefix: execute.*

Handlers for the execute message family:
  - donate: count a donation, forward a share to the parent every period
  - reset: owner sets the counter
  - withdraw: owner takes the full balance
  - withdraw_to: owner sends funds (or the full balance) to a receiver

Handlers never execute effects; they append them to the Response and the
host runs them after the call returns.
"""
from __future__ import annotations

from typing import List, Optional

from ..kernel.errors import Overflow
from ..kernel.schema import (
    UINT64_MAX,
    BankSend,
    Coin,
    Deps,
    DonateMsg,
    Empty,
    Env,
    MessageInfo,
    Response,
    State,
    WasmExecute,
)
from .auth import require_owner
from .funds import meets_threshold, split
from .instantiate import validate_address
from .state import PARENT_DONATION, STATE


def donate(deps: Deps, env: Env, info: MessageInfo) -> Response:
    state = STATE.load(deps.storage)
    resp = Response()

    if meets_threshold(info.funds, state.minimal_donation):
        if state.counter >= UINT64_MAX:
            raise Overflow("counter", state.counter, UINT64_MAX)
        state.counter += 1

        if state.donating_parent is not None:
            state.donating_parent -= 1

            if state.donating_parent == 0:
                parent_donation = PARENT_DONATION.load(deps.storage)
                state.donating_parent = parent_donation.donating_parent_period

                balance = deps.querier.query_all_balances(env.contract_address)
                resp.add_message(
                    WasmExecute(
                        contract_addr=parent_donation.address,
                        msg=DonateMsg(donate=Empty()).model_dump(mode="json"),
                        funds=split(balance, parent_donation.part),
                    )
                )
                resp.add_attribute("donated_to_parent", parent_donation.address)

        STATE.save(deps.storage, state)

    return (
        resp.add_attribute("action", "donate")
        .add_attribute("sender", info.sender)
        .add_attribute("counter", state.counter)
    )


def reset(deps: Deps, info: MessageInfo, counter: int) -> Response:
    def apply(state: State) -> State:
        require_owner(info.sender, state.owner)
        state.counter = counter
        return state

    STATE.update(deps.storage, apply)

    return (
        Response()
        .add_attribute("action", "reset")
        .add_attribute("sender", info.sender)
        .add_attribute("counter", counter)
    )


def withdraw(deps: Deps, env: Env, info: MessageInfo) -> Response:
    owner = STATE.load(deps.storage).owner
    require_owner(info.sender, owner)

    balance = deps.querier.query_all_balances(env.contract_address)

    return (
        Response()
        .add_message(BankSend(to_address=owner, amount=balance))
        .add_attribute("action", "withdraw")
        .add_attribute("sender", info.sender)
    )


def withdraw_to(
    deps: Deps,
    env: Env,
    info: MessageInfo,
    receiver: str,
    funds: Optional[List[Coin]],
) -> Response:
    owner = STATE.load(deps.storage).owner
    require_owner(info.sender, owner)

    destination = validate_address(deps, receiver)

    # Omitted (or empty) funds mean the full balance.
    if not funds:
        funds = deps.querier.query_all_balances(env.contract_address)

    return (
        Response()
        .add_message(BankSend(to_address=destination, amount=list(funds)))
        .add_attribute("action", "withdraw_to")
        .add_attribute("sender", info.sender)
        .add_attribute("receiver", destination)
    )
