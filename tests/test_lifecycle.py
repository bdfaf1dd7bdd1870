# tests/test_lifecycle.py
from datetime import date

import pytest

from rental_app.core.errors import InvalidTransition, NotFound, ValidationFailed
from rental_app.core.lifecycle import (
    ALLOWED_TRANSITIONS,
    QuoteLine,
    RentalLine,
    compute_total,
    is_overdue,
    plan_transition,
    price_lines,
)
from rental_app.models.enum import ItemStatus, ReturnCondition, TransactionStatus as S
from rental_app.models.transaction import Transaction


def test_new_transaction_quote():
    quote = price_lines(
        date(2024, 12, 10), date(2024, 12, 13),
        [QuoteLine(item_id="item-x", item_name="Kamera Mirrorless", qty=1, price_per_day=100_000)],
    )
    assert quote.total_days == 3
    assert quote.subtotal == 300_000
    assert quote.discount == 0
    assert quote.total == 300_000
    assert Transaction.model_fields["status"].default == S.AWAITING_PAYMENT


def test_quote_same_day_counts_one_day():
    quote = price_lines(date(2024, 12, 10), date(2024, 12, 10), [QuoteLine(item_id="a", qty=2, price_per_day=40_000)])
    assert quote.total_days == 1
    assert quote.subtotal == 80_000


def test_quote_with_discount():
    quote = price_lines(
        date(2024, 12, 1), date(2024, 12, 3),
        [QuoteLine(item_id="a", qty=1, price_per_day=100_000), QuoteLine(item_id="b", qty=2, price_per_day=25_000)],
        discount=50_000,
    )
    assert quote.subtotal == 300_000
    assert quote.total == 250_000


@pytest.mark.parametrize("price", [None, 0])
def test_quote_rejects_missing_price(price):
    with pytest.raises(ValidationFailed):
        price_lines(date(2024, 12, 1), date(2024, 12, 2), [QuoteLine(item_id="a", qty=1, price_per_day=price)])


def test_quote_rejects_reversed_dates():
    with pytest.raises(ValidationFailed):
        price_lines(date(2024, 12, 5), date(2024, 12, 1), [QuoteLine(item_id="a", qty=1, price_per_day=1)])


def test_total_may_go_negative_with_large_fixed_discount():
    assert compute_total(300_000, 500_000) == -200_000


def test_confirm_payment_has_no_side_effects(make_rental):
    plan = plan_transition(make_rental(status=S.AWAITING_PAYMENT), S.AWAITING_CONFIRMATION, today=date(2024, 12, 1))
    assert plan.status == S.AWAITING_CONFIRMATION
    assert plan.items == {}
    assert plan.total == 300_000


def test_handover_decreases_stock(make_rental, make_item):
    rental = make_rental(lines=[RentalLine(item_id="item-x", qty=2, price_per_day=100_000)])
    plan = plan_transition(rental, S.BEING_RENTED, {"item-x": make_item(stock=5)}, date(2024, 12, 7))
    assert plan.items["item-x"].stock == 3
    assert plan.items["item-x"].status == ItemStatus.AVAILABLE
    assert len(plan.stock_changes) == 1


def test_handover_of_last_units_marks_item_rented(make_rental, make_item):
    rental = make_rental(lines=[RentalLine(item_id="item-x", qty=2, price_per_day=100_000)])
    plan = plan_transition(rental, S.BEING_RENTED, {"item-x": make_item(stock=2)}, date(2024, 12, 7))
    assert plan.items["item-x"].stock == 0
    assert plan.items["item-x"].status == ItemStatus.RENTED


def test_handover_applies_repeated_item_lines_in_sequence(make_rental, make_item):
    rental = make_rental(lines=[
        RentalLine(item_id="item-x", qty=2, price_per_day=100_000),
        RentalLine(item_id="item-x", qty=3, price_per_day=100_000),
    ])
    plan = plan_transition(rental, S.BEING_RENTED, {"item-x": make_item(stock=5)}, date(2024, 12, 7))
    assert plan.items["item-x"].stock == 0
    assert [c.new_stock for c in plan.stock_changes] == [3, 0]


def test_handover_shortfall_is_reported(make_rental, make_item):
    rental = make_rental(lines=[RentalLine(item_id="item-x", qty=4, price_per_day=100_000)])
    plan = plan_transition(rental, S.BEING_RENTED, {"item-x": make_item(stock=1)}, date(2024, 12, 7))
    assert plan.items["item-x"].stock == 0
    assert plan.shortfalls[0].shortfall == 3


def test_handover_missing_item(make_rental):
    with pytest.raises(NotFound):
        plan_transition(make_rental(), S.BEING_RENTED, {}, date(2024, 12, 7))


def test_inspection_three_days_late(make_rental, make_item):
    rental = make_rental(status=S.AWAITING_RETURN, end_date=date(2024, 12, 10))
    plan = plan_transition(rental, S.COMPLETED, {"item-x": make_item(stock=4)}, date(2024, 12, 13))
    assert plan.overdue_days == 3
    assert plan.late_fee == 150_000
    assert plan.total == 300_000 + 150_000
    assert plan.items["item-x"].stock == 5
    assert plan.conditions == {"item-x": ReturnCondition.GOOD}


def test_inspection_on_time_has_no_late_fee(make_rental, make_item):
    rental = make_rental(status=S.AWAITING_RETURN, end_date=date(2024, 12, 10))
    plan = plan_transition(rental, S.COMPLETED, {"item-x": make_item(stock=0, status=ItemStatus.RENTED)}, date(2024, 12, 10))
    assert plan.late_fee == 0
    assert plan.items["item-x"].stock == 1
    assert plan.items["item-x"].status == ItemStatus.AVAILABLE


def test_damaged_unit_still_counted_back_into_stock(make_rental, make_item):
    rental = make_rental(status=S.AWAITING_RETURN, end_date=date(2024, 12, 10))
    plan = plan_transition(
        rental, S.COMPLETED, {"item-x": make_item(stock=2)}, date(2024, 12, 10),
        conditions={"item-x": ReturnCondition.HEAVY_DAMAGE},
    )
    assert plan.items["item-x"].stock == 3
    assert plan.items["item-x"].status == ItemStatus.DAMAGED


def test_light_damage_sends_item_to_maintenance(make_rental, make_item):
    rental = make_rental(status=S.AWAITING_RETURN)
    plan = plan_transition(
        rental, S.COMPLETED, {"item-x": make_item(stock=2)}, date(2024, 12, 10),
        conditions={"item-x": ReturnCondition.LIGHT_DAMAGE},
    )
    assert plan.items["item-x"].status == ItemStatus.MAINTENANCE


def test_inspection_rejects_items_outside_transaction(make_rental, make_item):
    with pytest.raises(ValidationFailed):
        plan_transition(
            make_rental(status=S.AWAITING_RETURN), S.COMPLETED, {"item-x": make_item()}, date(2024, 12, 10),
            conditions={"other-item": ReturnCondition.GOOD},
        )


def test_inspection_late_fee_override(make_rental, make_item):
    rental = make_rental(status=S.AWAITING_RETURN, end_date=date(2024, 12, 10))
    plan = plan_transition(
        rental, S.COMPLETED, {"item-x": make_item()}, date(2024, 12, 13), late_fee_override=20_000
    )
    assert plan.late_fee == 20_000
    assert plan.total == 320_000


def test_inspection_directly_from_being_rented_on_due_date(make_rental, make_item):
    rental = make_rental(status=S.BEING_RENTED, end_date=date(2024, 12, 10))
    plan = plan_transition(rental, S.COMPLETED, {"item-x": make_item()}, date(2024, 12, 10))
    assert plan.status == S.COMPLETED


def test_inspection_from_being_rented_before_due_date_rejected(make_rental, make_item):
    rental = make_rental(status=S.BEING_RENTED, end_date=date(2024, 12, 10))
    with pytest.raises(InvalidTransition):
        plan_transition(rental, S.COMPLETED, {"item-x": make_item()}, date(2024, 12, 9))


def test_cancel_after_handover_does_not_restore_stock(make_rental, make_item):
    rental = make_rental(status=S.BEING_RENTED)
    plan = plan_transition(rental, S.CANCELLED, {"item-x": make_item(stock=3)}, date(2024, 12, 8))
    assert plan.status == S.CANCELLED
    assert plan.items == {}
    assert plan.stock_changes == []


def test_cancel_restores_stock_when_enabled(make_rental, make_item):
    rental = make_rental(status=S.BEING_RENTED)
    plan = plan_transition(
        rental, S.CANCELLED, {"item-x": make_item(stock=3)}, date(2024, 12, 8), restore_stock_on_cancel=True
    )
    assert plan.items["item-x"].stock == 4


def test_cancel_before_handover_never_touches_stock(make_rental, make_item):
    rental = make_rental(status=S.AWAITING_PAYMENT)
    plan = plan_transition(
        rental, S.CANCELLED, {"item-x": make_item(stock=3)}, date(2024, 12, 8), restore_stock_on_cancel=True
    )
    assert plan.items == {}


@pytest.mark.parametrize("current,target", [
    (S.AWAITING_PAYMENT, S.BEING_RENTED),
    (S.AWAITING_PAYMENT, S.COMPLETED),
    (S.AWAITING_CONFIRMATION, S.AWAITING_RETURN),
    (S.AWAITING_RETURN, S.BEING_RENTED),
    (S.COMPLETED, S.CANCELLED),
    (S.CANCELLED, S.AWAITING_PAYMENT),
    (S.BEING_RENTED, S.BEING_RENTED),
])
def test_invalid_transitions_rejected(make_rental, make_item, current, target):
    with pytest.raises(InvalidTransition):
        plan_transition(make_rental(status=current), target, {"item-x": make_item()}, date(2024, 12, 20))


def test_every_non_terminal_state_can_cancel():
    for current, targets in ALLOWED_TRANSITIONS.items():
        if targets:
            assert S.CANCELLED in targets


def test_is_overdue():
    assert is_overdue(S.BEING_RENTED, date(2024, 12, 10), date(2024, 12, 11))
    assert not is_overdue(S.BEING_RENTED, date(2024, 12, 10), date(2024, 12, 10))
    assert not is_overdue(S.AWAITING_RETURN, date(2024, 12, 10), date(2024, 12, 20))


def test_overdue_return_has_no_side_effects(make_rental):
    plan = plan_transition(make_rental(status=S.BEING_RENTED), S.AWAITING_RETURN, today=date(2024, 12, 11))
    assert plan.status == S.AWAITING_RETURN
    assert plan.items == {}
