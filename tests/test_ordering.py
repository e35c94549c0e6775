"""Tests for sibling ordering."""

from datetime import timedelta
from uuid import uuid4

from smartfi.engine.ordering import (
    MoveDirection,
    apply_orders,
    move_account,
    move_group,
    next_sort_order,
    swap_with_neighbour,
)
from smartfi.models.ledger import Group
from tests.factories import PROJECT_START, make_account


def display_order(accounts):
    return [a.name for a in sorted(accounts, key=lambda a: (a.sort_order, a.created_at))]


class TestMoveAccount:

    def test_move_up_swaps_with_neighbour(self):
        a = make_account("A", sort_order=0)
        b = make_account("B", sort_order=1)
        c = make_account("C", sort_order=2)

        orders = move_account([a, b, c], c.id, MoveDirection.UP)

        assert orders == {c.id: 1, b.id: 2}
        assert display_order(apply_orders([a, b, c], orders)) == ["A", "C", "B"]

    def test_move_down(self):
        a = make_account("A", sort_order=0)
        b = make_account("B", sort_order=5)

        orders = move_account([a, b], a.id, MoveDirection.DOWN)

        assert orders == {a.id: 5, b.id: 0}

    def test_first_item_cannot_move_up(self):
        a = make_account("A", sort_order=0)
        b = make_account("B", sort_order=1)
        assert move_account([a, b], a.id, MoveDirection.UP) == {}

    def test_last_item_cannot_move_down(self):
        a = make_account("A", sort_order=0)
        b = make_account("B", sort_order=1)
        assert move_account([a, b], b.id, MoveDirection.DOWN) == {}

    def test_unknown_item_is_ignored(self):
        assert move_account([make_account()], uuid4(), MoveDirection.UP) == {}

    def test_equal_keys_are_separated(self):
        a = make_account("A", sort_order=0, created_at=PROJECT_START)
        b = make_account("B", sort_order=0, created_at=PROJECT_START + timedelta(hours=1))

        orders = move_account([a, b], b.id, MoveDirection.UP)

        assert display_order(apply_orders([a, b], orders)) == ["B", "A"]

    def test_duplicate_keys_are_renumbered_uniquely(self):
        a = make_account("A", sort_order=4)
        b = make_account("B", sort_order=5, created_at=PROJECT_START)
        c = make_account("C", sort_order=5, created_at=PROJECT_START + timedelta(hours=1))

        orders = move_account([a, b, c], c.id, MoveDirection.UP)
        moved = apply_orders([a, b, c], orders)

        assert display_order(moved) == ["A", "C", "B"]
        keys = [account.sort_order for account in moved]
        assert len(set(keys)) == len(keys)

    def test_scope_is_the_group(self):
        group_id = uuid4()
        loose = make_account("Loose", sort_order=0)
        first = make_account("First", sort_order=0, group_id=group_id)
        second = make_account("Second", sort_order=1, group_id=group_id)

        orders = move_account([loose, first, second], first.id, MoveDirection.UP)

        assert orders == {}
        orders = move_account([loose, first, second], second.id, MoveDirection.UP)
        assert set(orders) == {first.id, second.id}

    def test_only_two_items_change(self):
        accounts = [make_account(str(i), sort_order=i) for i in range(5)]
        orders = move_account(accounts, accounts[2].id, MoveDirection.DOWN)
        assert set(orders) == {accounts[2].id, accounts[3].id}


class TestMoveGroup:

    def test_swap_groups(self):
        first = Group(name="First", sort_order=0)
        second = Group(name="Second", sort_order=1)

        orders = move_group([first, second], second.id, MoveDirection.UP)

        assert orders == {second.id: 0, first.id: 1}

    def test_swap_with_neighbour_on_empty_sequence(self):
        assert swap_with_neighbour([], uuid4(), MoveDirection.DOWN) == {}


class TestNextSortOrder:

    def test_empty_scope_starts_at_zero(self):
        assert next_sort_order([]) == 0

    def test_after_highest_key(self):
        accounts = [make_account(sort_order=3), make_account(sort_order=7)]
        assert next_sort_order(accounts) == 8


def test_apply_orders_returns_copies():
    a = make_account("A", sort_order=0)
    updated = apply_orders([a], {a.id: 4})
    assert updated[0].sort_order == 4
    assert a.sort_order == 0
