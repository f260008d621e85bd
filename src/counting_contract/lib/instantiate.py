from __future__ import annotations

from typing import Optional

from ..config import CONTRACT_NAME, CONTRACT_VERSION
from ..kernel.errors import InvalidConfig, InvalidDestination
from ..kernel.schema import (
    Addr,
    Deps,
    Env,
    InstantiateMsg,
    MessageInfo,
    Parent,
    ParentDonation,
    Response,
    State,
)
from ..kernel.version import set_contract_version
from .state import PARENT_DONATION, STATE


def validate_address(deps: Deps, address: str) -> Addr:
    """Run a free-form string through the host identity validator."""
    try:
        return deps.api.addr_validate(address)
    except ValueError as exc:
        raise InvalidDestination(address, str(exc)) from exc


def build_parent_donation(deps: Deps, parent: Parent) -> ParentDonation:
    """Validate a parent config; a zero period or a part outside [0, 1] is rejected."""
    if parent.donating_period < 1:
        raise InvalidConfig("donating_period", "must be at least 1")
    if not parent.part.is_finite() or parent.part < 0 or parent.part > 1:
        raise InvalidConfig("part", f"{parent.part} is outside [0, 1]")

    return ParentDonation(
        address=validate_address(deps, parent.addr),
        donating_parent_period=parent.donating_period,
        part=parent.part,
    )


def configure_parent(deps: Deps, parent: Optional[Parent]) -> Optional[int]:
    """Persist the parent config if given; returns the initial countdown."""
    if parent is None:
        return None
    donation = build_parent_donation(deps, parent)
    PARENT_DONATION.save(deps.storage, donation)
    return donation.donating_parent_period


def instantiate(deps: Deps, env: Env, info: MessageInfo, msg: InstantiateMsg) -> Response:
    countdown = configure_parent(deps, msg.parent)

    set_contract_version(deps.storage, CONTRACT_NAME, CONTRACT_VERSION)
    STATE.save(
        deps.storage,
        State(
            counter=msg.counter,
            minimal_donation=msg.minimal_donation,
            owner=info.sender,
            donating_parent=countdown,
        ),
    )

    return (
        Response()
        .add_attribute("action", "instantiate")
        .add_attribute("sender", info.sender)
        .add_attribute("counter", msg.counter)
    )
