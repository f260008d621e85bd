"""
Pytest configuration, shared fixtures and shared steps for contract tests.

Steps used by more than one feature live here; feature-specific steps live
in tests/step_defs/test_<feature>.py next to their scenarios() call.
"""
import json
import os
import tempfile
from typing import Any, Dict, List

import pytest
from pytest_bdd import given, parsers, then, when

from counting_contract.config import CONTRACT_NAME
from counting_contract.kernel.engine import ContractEngine, DispatchResult
from counting_contract.kernel.schema import Addr, Coin, Response, State, coins
from counting_contract.kernel.store import Item
from counting_contract.kernel.version import set_contract_version
from counting_contract.lib.funds import meets_threshold
from counting_contract.lib.state import STATE
from counting_contract.multitest import App, HostError

ADMIN = "admin"


# =============================================================================
# Stand-in contract builds
# =============================================================================


class LegacyEngine:
    """
    A released build that predates the current schema.

    0.1.0 keeps counter, minimal_donation and owner in three slots;
    0.2.0 keeps them together under `state` without a countdown.
    """

    def __init__(self, version: str) -> None:
        assert version in ("0.1.0", "0.2.0")
        self.version = version
        self._counter: Item[int] = Item("counter", int)
        self._minimal_donation: Item[Coin] = Item("minimal_donation", Coin)
        self._owner: Item[Addr] = Item("owner", Addr)
        self._state: Item[Dict[str, Any]] = Item("state", Dict[str, Any])

    def _load(self, storage) -> Dict[str, Any]:
        if self.version == "0.1.0":
            return {
                "counter": self._counter.load(storage),
                "minimal_donation": self._minimal_donation.load(storage),
                "owner": self._owner.load(storage),
            }
        raw = self._state.load(storage)
        return {
            "counter": raw["counter"],
            "minimal_donation": Coin.model_validate(raw["minimal_donation"]),
            "owner": raw["owner"],
        }

    def _save(self, storage, counter: int, minimal_donation: Coin, owner: str) -> None:
        if self.version == "0.1.0":
            self._counter.save(storage, counter)
            self._minimal_donation.save(storage, minimal_donation)
            self._owner.save(storage, Addr(owner))
        else:
            self._state.save(
                storage,
                {
                    "counter": counter,
                    "minimal_donation": minimal_donation.model_dump(),
                    "owner": owner,
                },
            )

    def instantiate(self, deps, env, info, payload) -> DispatchResult:
        set_contract_version(deps.storage, CONTRACT_NAME, self.version)
        self._save(
            deps.storage,
            payload.get("counter", 0),
            Coin.model_validate(payload["minimal_donation"]),
            info.sender,
        )
        return DispatchResult(ok=True, response=Response())

    def execute(self, deps, env, info, payload) -> DispatchResult:
        assert "donate" in payload
        state = self._load(deps.storage)
        if meets_threshold(info.funds, state["minimal_donation"]):
            state["counter"] += 1
            self._save(deps.storage, **state)
        return DispatchResult(ok=True, response=Response())

    def query(self, deps, env, payload) -> DispatchResult:
        return DispatchResult(ok=True, data={"value": self._load(deps.storage)["counter"]})


class TaggedEngine:
    """A build that writes current-shape state under an arbitrary (name, version) tag."""

    def __init__(self, name: str, version: str) -> None:
        self.name = name
        self.version = version

    def instantiate(self, deps, env, info, payload) -> DispatchResult:
        set_contract_version(deps.storage, self.name, self.version)
        STATE.save(
            deps.storage,
            State(
                counter=0,
                minimal_donation=Coin(denom="atom", amount=10),
                owner=info.sender,
            ),
        )
        return DispatchResult(ok=True, response=Response())


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_db():
    """Create a temporary database file for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def test_context():
    """Shared context for passing data between steps."""
    return {
        "app": None,
        "code_id": None,
        "contract": None,
        "parent": None,
        "response": None,
        "error": None,
        "trace": [],
        "storage_before": None,
        "balances_before": {},
    }


def _run_call(test_context: Dict[str, Any], call) -> None:
    """Run a top-level host call, remembering the result or the HostError."""
    app: App = test_context["app"]
    contract = test_context["contract"]
    if contract is not None:
        test_context["storage_before"] = dict(app.contract_storage(contract).items())

    watched = [a for a in (test_context["contract"], test_context["parent"]) if a]
    test_context["balances_before"] = {a: app.query_all_balances(a) for a in watched}

    test_context["response"] = None
    test_context["error"] = None
    try:
        test_context["response"] = call()
    except HostError as exc:
        test_context["error"] = exc


@pytest.fixture
def run_call():
    """Runner for top-level host calls, shared with the step modules."""
    return _run_call


@pytest.fixture
def admin():
    """Address recorded as admin of every contract the steps instantiate."""
    return ADMIN


def amount_of(balance: List[Coin], denom: str) -> int:
    return sum(c.amount for c in balance if c.denom == denom)


# =============================================================================
# Shared Given steps
# =============================================================================


@given("a fresh ledger")
def fresh_ledger(test_context):
    app = App(output_sink=test_context["trace"].append)
    test_context["app"] = app
    test_context["code_id"] = app.store_code(ContractEngine())


@given(parsers.parse('"{address}" holds {amount:d} "{denom}"'))
def address_holds(test_context, address: str, amount: int, denom: str):
    app: App = test_context["app"]
    app.init_balance(address, app.query_all_balances(address) + coins(amount, denom))


@given(
    parsers.parse(
        'a counting contract instantiated by "{owner}" with counter {counter:d} '
        'and minimal donation {amount:d} "{denom}"'
    )
)
def contract_with_counter(test_context, owner: str, counter: int, amount: int, denom: str):
    app: App = test_context["app"]
    test_context["contract"] = app.instantiate(
        test_context["code_id"],
        owner,
        {"counter": counter, "minimal_donation": {"denom": denom, "amount": amount}},
        label="Counting contract",
        admin=ADMIN,
    )


@given(parsers.parse('a counting contract instantiated by "{owner}" with minimal donation {amount:d} "{denom}"'))
def contract_default_counter(test_context, owner: str, amount: int, denom: str):
    contract_with_counter(test_context, owner, 0, amount, denom)


@given(parsers.parse('a parent counting contract instantiated by "{owner}" with minimal donation {amount:d} "{denom}"'))
def parent_contract(test_context, owner: str, amount: int, denom: str):
    app: App = test_context["app"]
    test_context["parent"] = app.instantiate(
        test_context["code_id"],
        owner,
        {"minimal_donation": {"denom": denom, "amount": amount}},
        label="Parent contract",
        admin=ADMIN,
    )


@given(parsers.parse('a version "{version}" counting contract instantiated by "{owner}" with minimal donation {amount:d} "{denom}"'))
def legacy_contract(test_context, version: str, owner: str, amount: int, denom: str):
    app: App = test_context["app"]
    code_id = app.store_code(LegacyEngine(version))
    test_context["contract"] = app.instantiate(
        code_id,
        owner,
        {"minimal_donation": {"denom": denom, "amount": amount}},
        label=f"Counting contract {version}",
        admin=ADMIN,
    )


@given(parsers.parse('a contract named "{name}" at version "{version}" instantiated by "{owner}"'))
def tagged_contract(test_context, name: str, version: str, owner: str):
    app: App = test_context["app"]
    code_id = app.store_code(TaggedEngine(name, version))
    test_context["contract"] = app.instantiate(code_id, owner, {}, admin=ADMIN)


# =============================================================================
# Shared When steps
# =============================================================================


@given(parsers.parse('"{sender}" donates {amount:d} "{denom}"'))
@when(parsers.parse('"{sender}" donates {amount:d} "{denom}"'))
def donate_with_funds(test_context, sender: str, amount: int, denom: str):
    app: App = test_context["app"]
    contract = test_context["contract"]
    _run_call(
        test_context,
        lambda: app.execute(sender, contract, {"donate": {}}, coins(amount, denom)),
    )


@when(parsers.parse('"{sender}" donates without funds'))
def donate_without_funds(test_context, sender: str):
    app: App = test_context["app"]
    contract = test_context["contract"]
    _run_call(test_context, lambda: app.execute(sender, contract, {"donate": {}}))


@when(parsers.parse("\"{sender}\" sends the raw command '{payload}'"))
def send_raw_command(test_context, sender: str, payload: str):
    """Execute an arbitrary JSON payload against the contract."""
    app: App = test_context["app"]
    contract = test_context["contract"]
    msg = json.loads(payload)
    _run_call(test_context, lambda: app.execute(sender, contract, msg))


@when(parsers.parse('"{sender}" resets the counter to {value:d}'))
def reset_counter(test_context, sender: str, value: int):
    app: App = test_context["app"]
    contract = test_context["contract"]
    _run_call(
        test_context,
        lambda: app.execute(sender, contract, {"reset": {"counter": value}}),
    )


@when("the admin migrates the contract to the current code")
def admin_migrates(test_context):
    app: App = test_context["app"]
    contract = test_context["contract"]
    _run_call(test_context, lambda: app.migrate(ADMIN, contract, test_context["code_id"], {}))


# =============================================================================
# Shared Then steps
# =============================================================================


@then("the call succeeds")
def call_succeeds(test_context):
    assert test_context["error"] is None, test_context["error"]


@then(parsers.parse('the call fails with "{kind}"'))
def call_fails_with(test_context, kind: str):
    error = test_context["error"]
    assert error is not None, "expected the call to fail"
    actual = error.failure.kind if hasattr(error, "failure") else error.kind
    assert actual == kind, f"{actual} != {kind}: {error}"


@then(parsers.parse("the counter value is {value:d}"))
def counter_value_is(test_context, value: int):
    app: App = test_context["app"]
    assert app.query(test_context["contract"], {"value": {}}) == {"value": value}


@then(parsers.parse("the countdown is {value:d}"))
def countdown_is(test_context, value: int):
    app: App = test_context["app"]
    state = STATE.load(app.contract_storage(test_context["contract"]))
    assert state.donating_parent == value


@then("the contract storage is unchanged")
def contract_storage_unchanged(test_context):
    app: App = test_context["app"]
    after = dict(app.contract_storage(test_context["contract"]).items())
    assert after == test_context["storage_before"]


@then(parsers.parse('the contract holds {amount:d} "{denom}" in the bank'))
def contract_holds(test_context, amount: int, denom: str):
    app: App = test_context["app"]
    assert amount_of(app.query_all_balances(test_context["contract"]), denom) == amount


@then("the contract holds nothing")
def contract_holds_nothing(test_context):
    app: App = test_context["app"]
    assert app.query_all_balances(test_context["contract"]) == []


@then(parsers.parse('"{address}" holds {amount:d} "{denom}" in the bank'))
def address_holds_in_bank(test_context, address: str, amount: int, denom: str):
    app: App = test_context["app"]
    assert amount_of(app.query_all_balances(address), denom) == amount


@then(parsers.parse('"{address}" holds nothing'))
def address_holds_nothing(test_context, address: str):
    app: App = test_context["app"]
    assert app.query_all_balances(address) == []


@then(parsers.parse('the contract reported attribute "{key}" as "{value}"'))
def contract_reported_attribute(test_context, key: str, value: str):
    resp = test_context["response"]
    assert resp is not None, test_context["error"]
    event = resp.events_for(test_context["contract"])[0]
    assert event.attribute(key) == value


@then(parsers.parse('a donation of {amount:d} "{denom}" was forwarded to the parent'))
def donation_forwarded(test_context, amount: int, denom: str):
    app: App = test_context["app"]
    parent = test_context["parent"]
    resp = test_context["response"]
    assert resp is not None, test_context["error"]

    donor_event = resp.events_for(test_context["contract"])[0]
    assert donor_event.attribute("donated_to_parent") == parent
    assert [e.entry for e in resp.events_for(parent)] == ["execute"]

    before = amount_of(test_context["balances_before"].get(parent, []), denom)
    after = amount_of(app.query_all_balances(parent), denom)
    assert after - before == amount
