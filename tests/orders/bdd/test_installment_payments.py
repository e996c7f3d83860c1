"""BDD tests for installment sale confirmation and proof validation."""

from pytest_bdd import parsers, scenarios, then, when

scenarios("features/installment_payments.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the seller confirms the sale")
def _(order, clock, attempt, actors):
    attempt(lambda: order.confirm_sale(actors["seller"], approve=True, now=clock["now"]))


@when("the seller rejects the sale")
def _(order, clock, attempt, actors):
    attempt(lambda: order.confirm_sale(actors["seller"], approve=False, now=clock["now"]))


@when(parsers.cfparse('the buyer submits {amount:f} for tranche {index:d} with code "{code}"'))
def _(order, clock, attempt, actors, amount, index, code):
    attempt(
        lambda: order.submit_proof(
            actors["buyer"],
            index,
            payer_name="Ada Obi",
            transaction_code=code,
            amount=amount,
            now=clock["now"],
        )
    )


@when(parsers.cfparse("the seller validates tranche {index:d}"))
def _(order, clock, attempt, actors, index):
    attempt(lambda: order.validate_proof(actors["seller"], index, approve=True, now=clock["now"]))


@when(parsers.cfparse("the seller rejects tranche {index:d}"))
def _(order, clock, attempt, actors, index):
    attempt(lambda: order.validate_proof(actors["seller"], index, approve=False, now=clock["now"]))


@when(parsers.cfparse("the seller waives tranche {index:d}"))
def _(order, clock, attempt, actors, index):
    attempt(lambda: order.waive_installment(actors["seller"], index, now=clock["now"]))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the plan shows {paid:f} paid and {remaining:f} remaining"))
def _(order, paid, remaining):
    assert order.installment_plan.amount_paid == paid
    assert order.installment_plan.remaining_amount == remaining
