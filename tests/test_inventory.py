# tests/test_inventory.py
import pytest

from rental_app.core.errors import ValidationFailed
from rental_app.core.inventory import (
    adjust_stock,
    apply_condition,
    decrease_stock,
    increase_stock,
    reconcile_status,
    set_manual_status,
)
from rental_app.models.enum import ItemStatus, ReturnCondition, StockAction


@pytest.mark.parametrize("stock,qty", [(5, 2), (1, 1), (0, 3), (10, 10)])
def test_increase_then_decrease_restores_stock(make_item, stock, qty):
    item = make_item(stock=stock)
    raised, _ = increase_stock(item, qty)
    lowered, change = decrease_stock(raised, qty)
    assert lowered.stock == stock
    assert change.shortfall == 0


def test_decrease_then_increase_restores_stock_without_clamp(make_item):
    item = make_item(stock=5)
    lowered, _ = decrease_stock(item, 3)
    restored, _ = increase_stock(lowered, 3)
    assert restored.stock == 5
    assert restored.status == ItemStatus.AVAILABLE


def test_decrease_clamps_to_zero_and_reports_shortfall(make_item):
    item = make_item(stock=2)
    lowered, change = decrease_stock(item, 5)
    assert lowered.stock == 0
    assert change.shortfall == 3
    assert change.previous_stock == 2
    assert change.new_stock == 0


def test_decrease_does_not_mutate_snapshot(make_item):
    item = make_item(stock=4)
    decrease_stock(item, 1)
    assert item.stock == 4


def test_status_follows_stock(make_item):
    lowered, _ = decrease_stock(make_item(stock=2), 2)
    assert lowered.status == ItemStatus.RENTED
    raised, _ = increase_stock(lowered, 1)
    assert raised.status == ItemStatus.AVAILABLE


def test_partial_decrease_keeps_status(make_item):
    lowered, _ = decrease_stock(make_item(stock=5), 2)
    assert lowered.stock == 3
    assert lowered.status == ItemStatus.AVAILABLE


@pytest.mark.parametrize("held", [ItemStatus.MAINTENANCE, ItemStatus.DAMAGED])
def test_stock_change_never_overwrites_held_status(make_item, held):
    lowered, _ = decrease_stock(make_item(stock=1, status=held), 1)
    assert lowered.status == held
    raised, _ = increase_stock(lowered, 4)
    assert raised.status == held


def test_reconcile_status():
    assert reconcile_status(0, ItemStatus.AVAILABLE) == ItemStatus.RENTED
    assert reconcile_status(3, ItemStatus.RENTED) == ItemStatus.AVAILABLE
    assert reconcile_status(3, ItemStatus.AVAILABLE) == ItemStatus.AVAILABLE
    assert reconcile_status(0, ItemStatus.MAINTENANCE) == ItemStatus.MAINTENANCE


@pytest.mark.parametrize("qty", [0, -1])
def test_non_positive_qty_rejected(make_item, qty):
    with pytest.raises(ValidationFailed):
        decrease_stock(make_item(), qty)
    with pytest.raises(ValidationFailed):
        increase_stock(make_item(), qty)


def test_adjust_stock_dispatches_on_action(make_item):
    item = make_item(stock=5)
    assert adjust_stock(item, StockAction.INCREASE, 2)[0].stock == 7
    assert adjust_stock(item, StockAction.DECREASE, 2)[0].stock == 3


def test_apply_condition(make_item):
    item = make_item(stock=3)
    assert apply_condition(item, ReturnCondition.GOOD).status == ItemStatus.AVAILABLE
    assert apply_condition(item, None).status == ItemStatus.AVAILABLE
    assert apply_condition(item, ReturnCondition.LIGHT_DAMAGE).status == ItemStatus.MAINTENANCE
    damaged = apply_condition(item, ReturnCondition.HEAVY_DAMAGE)
    assert damaged.status == ItemStatus.DAMAGED
    assert damaged.stock == 3


def test_manual_status_release_follows_stock(make_item):
    in_repair = make_item(stock=0, status=ItemStatus.MAINTENANCE)
    assert set_manual_status(in_repair, ItemStatus.AVAILABLE).status == ItemStatus.RENTED
    in_repair = make_item(stock=2, status=ItemStatus.MAINTENANCE)
    assert set_manual_status(in_repair, ItemStatus.AVAILABLE).status == ItemStatus.AVAILABLE
    assert set_manual_status(make_item(stock=2), ItemStatus.DAMAGED).status == ItemStatus.DAMAGED
