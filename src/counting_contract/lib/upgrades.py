"""
Domain: Upgrades

One handler per released version, each upgrading exactly one step forward:

    0.1.0 --(fold slots)--> 0.2.0 --(add countdown)--> 0.3.0

Each handler declares the legacy shapes it reads inside its own body so
that no two versions of a slot ever coexist in the live schema (lib/state.py).
Importing this module fails if the chain does not end at CONTRACT_VERSION.
"""
from __future__ import annotations

from pydantic import BaseModel, Field

from ..config import CONTRACT_VERSION
from ..kernel.registry import UpgradeRegistry
from ..kernel.schema import UINT64_MAX, Addr, Coin, Deps, MigrateMsg, Response, State
from ..kernel.store import Item
from .instantiate import configure_parent
from .state import STATE

UPGRADES = UpgradeRegistry()


@UPGRADES.step("0.1.0", "0.2.0")
def upgrade_0_1_0(deps: Deps, msg: MigrateMsg) -> Response:
    """Fold the three 0.1.0 slots into the single 0.2.0 `state` slot."""

    class StateV2(BaseModel):
        counter: int = Field(ge=0, le=UINT64_MAX)
        minimal_donation: Coin
        owner: Addr

    counter_item: Item[int] = Item("counter", int)
    minimal_donation_item: Item[Coin] = Item("minimal_donation", Coin)
    owner_item: Item[Addr] = Item("owner", Addr)
    state_item: Item[StateV2] = Item("state", StateV2)

    counter = counter_item.load(deps.storage)
    minimal_donation = minimal_donation_item.load(deps.storage)
    owner = owner_item.load(deps.storage)

    state_item.save(
        deps.storage,
        StateV2(counter=counter, minimal_donation=minimal_donation, owner=owner),
    )
    counter_item.remove(deps.storage)
    minimal_donation_item.remove(deps.storage)
    owner_item.remove(deps.storage)

    return Response().add_attribute("upgraded", "0.1.0->0.2.0")


@UPGRADES.step("0.2.0", "0.3.0")
def upgrade_0_2_0(deps: Deps, msg: MigrateMsg) -> Response:
    """Rewrite the 0.2.0 `state` with a countdown; optionally configure a parent."""

    class StateV2(BaseModel):
        counter: int = Field(ge=0, le=UINT64_MAX)
        minimal_donation: Coin
        owner: Addr

    old = Item("state", StateV2).load(deps.storage)
    countdown = configure_parent(deps, msg.parent)

    STATE.save(
        deps.storage,
        State(
            counter=old.counter,
            minimal_donation=old.minimal_donation,
            owner=old.owner,
            donating_parent=countdown,
        ),
    )

    resp = Response().add_attribute("upgraded", "0.2.0->0.3.0")
    if msg.parent is not None:
        resp.add_attribute("parent", msg.parent.addr)
    return resp


UPGRADES.validate(CONTRACT_VERSION)
