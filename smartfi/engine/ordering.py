"""
Sibling Ordering

Accounts and groups are displayed by an explicit integer sort key.
Moving an item up or down swaps its key with its neighbour's, so
exactly two items change and everyone else keeps their position.
A scope holding duplicate keys is renumbered instead, keeping every
existing key where it can and bumping only the items that collide.

Sibling scopes:
- Accounts: all accounts sharing the same group_id (None is its own scope)
- Groups: all groups
"""

from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, TypeVar
from uuid import UUID

from smartfi.models.ledger import Account, Group

T = TypeVar("T", Account, Group)


class MoveDirection(str, Enum):
    UP = "up"
    DOWN = "down"


def account_sort_key(account: Account):
    return (account.sort_order, account.created_at)


def group_sort_key(group: Group):
    return (group.sort_order, str(group.id))


def next_sort_order(siblings: Iterable[T]) -> int:
    """A key greater than every existing sibling key."""
    orders = [item.sort_order for item in siblings]
    return max(orders) + 1 if orders else 0


def swap_with_neighbour(
    ordered: Sequence[T],
    item_id: UUID,
    direction: MoveDirection,
) -> dict[UUID, int]:
    """
    New sort keys for the moved item and its neighbour.

    `ordered` must already be in display order. Returns an empty dict when
    the item is missing or already at the edge. Only changed keys are
    returned; with unique keys that is exactly the swapped pair.
    """
    index = next((i for i, item in enumerate(ordered) if item.id == item_id), None)
    if index is None:
        return {}

    target = index - 1 if direction == MoveDirection.UP else index + 1
    if target < 0 or target >= len(ordered):
        return {}

    item = ordered[index]
    other = ordered[target]

    keys = [sibling.sort_order for sibling in ordered]
    if len(set(keys)) == len(keys):
        return {item.id: other.sort_order, other.id: item.sort_order}

    reordered = list(ordered)
    reordered[index], reordered[target] = other, item
    return _renumber(reordered)


def _renumber(ordered: Sequence[T]) -> dict[UUID, int]:
    """Strictly increasing keys for `ordered`, reusing existing keys where possible."""
    changes = {}
    previous: Optional[int] = None
    for key, sibling in zip(sorted(s.sort_order for s in ordered), ordered):
        if previous is not None and key <= previous:
            key = previous + 1
        if key != sibling.sort_order:
            changes[sibling.id] = key
        previous = key
    return changes


def _move(
    items: Iterable[T],
    item_id: UUID,
    direction: MoveDirection,
    same_scope: Callable[[T, T], bool],
    key: Callable[[T], tuple],
) -> dict[UUID, int]:
    items = list(items)
    moving: Optional[T] = next((i for i in items if i.id == item_id), None)
    if moving is None:
        return {}
    siblings = sorted((i for i in items if same_scope(i, moving)), key=key)
    return swap_with_neighbour(siblings, item_id, direction)


def move_account(
    accounts: Iterable[Account],
    account_id: UUID,
    direction: MoveDirection,
) -> dict[UUID, int]:
    """Pairwise key updates for moving an account within its group."""
    return _move(
        accounts,
        account_id,
        direction,
        same_scope=lambda a, b: a.group_id == b.group_id,
        key=account_sort_key,
    )


def move_group(
    groups: Iterable[Group],
    group_id: UUID,
    direction: MoveDirection,
) -> dict[UUID, int]:
    """Pairwise key updates for moving a group among all groups."""
    return _move(
        groups,
        group_id,
        direction,
        same_scope=lambda a, b: True,
        key=group_sort_key,
    )


def apply_orders(items: Iterable[T], orders: dict[UUID, int]) -> list[T]:
    """Copies of `items` with the given sort keys applied."""
    return [
        item.model_copy(update={"sort_order": orders[item.id]}) if item.id in orders else item
        for item in items
    ]
