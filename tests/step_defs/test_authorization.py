"""
Step definitions for the Owner-only commands feature.

Only the creator may reset or move funds out; a rejected call must leave
storage and balances exactly as they were.
"""
from pytest_bdd import parsers, scenarios, then, when

from counting_contract.kernel.schema import coins

scenarios("../features/authorization.feature")


# =============================================================================
# When Steps
# =============================================================================


@when(parsers.parse('"{sender}" withdraws'))
def withdraw(test_context, run_call, sender: str):
    app = test_context["app"]
    contract = test_context["contract"]
    run_call(test_context, lambda: app.execute(sender, contract, {"withdraw": {}}))


@when(parsers.parse('"{sender}" withdraws everything to "{receiver}"'))
def withdraw_everything_to(test_context, run_call, sender: str, receiver: str):
    app = test_context["app"]
    contract = test_context["contract"]
    msg = {"withdraw_to": {"receiver": receiver}}
    run_call(test_context, lambda: app.execute(sender, contract, msg))


@when(parsers.parse('"{sender}" withdraws {amount:d} "{denom}" to "{receiver}"'))
def withdraw_some_to(test_context, run_call, sender: str, amount: int, denom: str, receiver: str):
    app = test_context["app"]
    contract = test_context["contract"]
    msg = {
        "withdraw_to": {
            "receiver": receiver,
            "funds": [c.model_dump() for c in coins(amount, denom)],
        }
    }
    run_call(test_context, lambda: app.execute(sender, contract, msg))


# =============================================================================
# Then Steps
# =============================================================================


@then(parsers.parse('the failure message is "{message}"'))
def failure_message_is(test_context, message: str):
    error = test_context["error"]
    assert error is not None
    assert error.failure.message == message

