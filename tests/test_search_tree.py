import random
from typing import Any

import pytest

from scoresynth.errors import (
    ElementNotFoundError,
    EmptyTreeError,
    InvalidArgumentError,
)
from scoresynth.search_tree import BalancedSearchTree, TreeNode

VALUES = [10, 12, 13, 15, 25, 37, 40, 50, 70, 75, 80, 85]


def _check_node(node: TreeNode[Any] | None) -> int:
    """Return the node height, asserting AVL balance and cached fields on the way."""
    if node is None:
        return -1
    left = _check_node(node.left)
    right = _check_node(node.right)
    assert abs(left - right) <= 1
    assert node.height == 1 + max(left, right)
    assert node.balance == left - right
    return node.height


def test_k_smallest() -> None:
    tree = BalancedSearchTree(VALUES)
    assert tree.k_smallest(3) == [10, 12, 13]
    assert tree.k_smallest(0) == []
    assert tree.k_smallest(len(VALUES)) == VALUES


def test_k_smallest_out_of_range() -> None:
    tree = BalancedSearchTree(VALUES)
    with pytest.raises(InvalidArgumentError):
        tree.k_smallest(-1)
    with pytest.raises(InvalidArgumentError):
        tree.k_smallest(len(VALUES) + 1)


def test_random_inserts_and_deletes_stay_balanced() -> None:
    rng = random.Random(7)
    tree: BalancedSearchTree[int] = BalancedSearchTree()
    present: set[int] = set()
    for _ in range(600):
        value = rng.randrange(200)
        if value in present and rng.random() < 0.5:
            assert tree.delete(value) == value
            present.remove(value)
        else:
            tree.insert(value)
            present.add(value)
        _check_node(tree.root)
        assert len(tree) == len(present)
    assert list(tree) == sorted(present)


def test_duplicate_insert_is_ignored() -> None:
    tree = BalancedSearchTree([3, 1, 2])
    tree.insert(2)
    assert len(tree) == 3
    assert list(tree) == [1, 2, 3]


def test_two_child_delete_uses_successor() -> None:
    tree = BalancedSearchTree([2, 1, 3])
    assert tree.root is not None and tree.root.value == 2
    tree.delete(2)
    assert tree.root is not None and tree.root.value == 3
    assert list(tree) == [1, 3]


def test_predecessor() -> None:
    tree = BalancedSearchTree(VALUES)
    assert tree.predecessor(10) is None
    assert tree.predecessor(37) == 25
    assert tree.predecessor(50) == 40
    assert tree.predecessor(85) == 80
    for smaller, larger in zip(VALUES, VALUES[1:]):
        assert tree.predecessor(larger) == smaller
    with pytest.raises(ElementNotFoundError):
        tree.predecessor(99)


def test_floor() -> None:
    tree = BalancedSearchTree(VALUES)
    assert tree.floor(9) is None
    assert tree.floor(10) == 10
    assert tree.floor(14) == 13
    assert tree.floor(1000) == 85


def test_find_and_contains() -> None:
    tree = BalancedSearchTree(VALUES)
    assert tree.find(40) == 40
    assert 40 in tree
    assert 41 not in tree
    with pytest.raises(ElementNotFoundError) as info:
        tree.find(41)
    assert not isinstance(info.value, EmptyTreeError)


def test_not_found_differs_from_empty() -> None:
    tree: BalancedSearchTree[int] = BalancedSearchTree()
    with pytest.raises(EmptyTreeError):
        tree.delete(1)
    with pytest.raises(EmptyTreeError):
        tree.find(1)

    tree.insert(1)
    with pytest.raises(ElementNotFoundError) as info:
        tree.delete(2)
    assert not isinstance(info.value, EmptyTreeError)
    assert len(tree) == 1


def test_none_is_an_invalid_argument() -> None:
    tree = BalancedSearchTree(VALUES)
    for operation in (tree.insert, tree.delete, tree.find, tree.contains, tree.predecessor):
        with pytest.raises(InvalidArgumentError):
            operation(None)  # type: ignore[arg-type]


def test_key_function_orders_records() -> None:
    records = [("b", 2.0), ("a", 1.0), ("c", 0.5)]
    tree = BalancedSearchTree(records, key=lambda record: record[1])
    assert [name for name, _ in tree] == ["c", "a", "b"]
    assert tree.lookup(1.0) == ("a", 1.0)
    assert tree.get(3.0) is None


def test_height() -> None:
    tree: BalancedSearchTree[int] = BalancedSearchTree()
    assert tree.height() == -1
    tree.insert(1)
    assert tree.height() == 0
    for value in range(2, 16):
        tree.insert(value)
    # 15 sequential inserts fold into a perfect tree
    assert tree.height() == 3
