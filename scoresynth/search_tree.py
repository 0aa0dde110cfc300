"""
AVL tree used as an ordered index.

Values are ordered by `key(value)` (identity by default). Every insertion and
deletion rebalances bottom-up on the way out of the recursion, so for every
node the heights of its two subtrees differ by at most one.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any, Callable, Generic, TypeVar

from .errors import ElementNotFoundError, EmptyTreeError, InvalidArgumentError

T = TypeVar("T")
KeyFn = Callable[[Any], Any]


def _identity(value: Any) -> Any:
    return value


class TreeNode(Generic[T]):
    __slots__ = ("value", "key", "left", "right", "height", "balance")

    def __init__(self, value: T, key: Any) -> None:
        self.value = value
        self.key = key
        self.left: TreeNode[T] | None = None
        self.right: TreeNode[T] | None = None
        self.height = 0
        self.balance = 0

    def __repr__(self) -> str:
        return f"TreeNode({self.value!r}, height={self.height}, balance={self.balance})"


def _height(node: TreeNode[Any] | None) -> int:
    return -1 if node is None else node.height


class BalancedSearchTree(Generic[T]):
    """Self-balancing binary search tree with unique keys."""

    def __init__(self, values: Iterable[T] | None = None, *, key: KeyFn | None = None) -> None:
        self._key: KeyFn = key or _identity
        self._root: TreeNode[T] | None = None
        self._size = 0
        if values is not None:
            for value in values:
                self.insert(value)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def root(self) -> TreeNode[T] | None:
        return self._root

    def __len__(self) -> int:
        return self._size

    def __bool__(self) -> bool:
        return self._size > 0

    def __iter__(self) -> Iterator[T]:
        stack: list[TreeNode[T]] = []
        node = self._root
        while stack or node is not None:
            while node is not None:
                stack.append(node)
                node = node.left
            node = stack.pop()
            yield node.value
            node = node.right

    def __contains__(self, value: object) -> bool:
        return self.contains(value)  # type: ignore[arg-type]

    def height(self) -> int:
        """Height of the root; -1 for an empty tree."""
        return _height(self._root)

    def clear(self) -> None:
        self._root = None
        self._size = 0

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert(self, value: T) -> None:
        """Add `value`; a value whose key is already present is ignored."""
        if value is None:
            raise InvalidArgumentError("Cannot insert None into the tree.")
        self._root = self._insert(self._root, value, self._key(value))

    def delete(self, value: T) -> T:
        """Remove and return the stored value whose key matches `value`."""
        if value is None:
            raise InvalidArgumentError("Cannot delete None from the tree.")
        if self._root is None:
            raise EmptyTreeError("Cannot delete from an empty tree.")
        self._root, removed = self._delete(self._root, self._key(value))
        self._size -= 1
        return removed

    def _insert(self, node: TreeNode[T] | None, value: T, key: Any) -> TreeNode[T]:
        if node is None:
            self._size += 1
            return TreeNode(value, key)
        if key < node.key:
            node.left = self._insert(node.left, value, key)
        elif key > node.key:
            node.right = self._insert(node.right, value, key)
        else:
            return node
        return self._rebalance(node)

    def _delete(self, node: TreeNode[T] | None, key: Any) -> tuple[TreeNode[T] | None, T]:
        if node is None:
            raise ElementNotFoundError(f"{key!r} is not in the tree.")
        if key < node.key:
            node.left, removed = self._delete(node.left, key)
        elif key > node.key:
            node.right, removed = self._delete(node.right, key)
        else:
            removed = node.value
            if node.left is None:
                return node.right, removed
            if node.right is None:
                return node.left, removed
            node.right, successor = self._pop_min(node.right)
            node.value = successor.value
            node.key = successor.key
        return self._rebalance(node), removed

    def _pop_min(self, node: TreeNode[T]) -> tuple[TreeNode[T] | None, TreeNode[T]]:
        if node.left is None:
            return node.right, node
        node.left, smallest = self._pop_min(node.left)
        return self._rebalance(node), smallest

    # ------------------------------------------------------------------
    # Balancing
    # ------------------------------------------------------------------

    @staticmethod
    def _update(node: TreeNode[T]) -> None:
        left_height = _height(node.left)
        right_height = _height(node.right)
        node.height = 1 + max(left_height, right_height)
        node.balance = left_height - right_height

    def _rotate_left(self, node: TreeNode[T]) -> TreeNode[T]:
        pivot = node.right
        assert pivot is not None
        node.right = pivot.left
        pivot.left = node
        self._update(node)
        self._update(pivot)
        return pivot

    def _rotate_right(self, node: TreeNode[T]) -> TreeNode[T]:
        pivot = node.left
        assert pivot is not None
        node.left = pivot.right
        pivot.right = node
        self._update(node)
        self._update(pivot)
        return pivot

    def _rebalance(self, node: TreeNode[T]) -> TreeNode[T]:
        self._update(node)
        if node.balance > 1:
            assert node.left is not None
            if node.left.balance < 0:
                node.left = self._rotate_left(node.left)
            return self._rotate_right(node)
        if node.balance < -1:
            assert node.right is not None
            if node.right.balance > 0:
                node.right = self._rotate_right(node.right)
            return self._rotate_left(node)
        return node

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find(self, value: T) -> T:
        """Return the stored value whose key matches `value`."""
        if value is None:
            raise InvalidArgumentError("Cannot search the tree for None.")
        return self.lookup(self._key(value))

    def lookup(self, key: Any) -> T:
        """Return the stored value with exactly `key`."""
        if key is None:
            raise InvalidArgumentError("Cannot search the tree for None.")
        if self._root is None:
            raise EmptyTreeError("Cannot search an empty tree.")
        node = self._find_node(key)
        if node is None:
            raise ElementNotFoundError(f"{key!r} is not in the tree.")
        return node.value

    def get(self, key: Any, default: T | None = None) -> T | None:
        if key is None:
            raise InvalidArgumentError("Cannot search the tree for None.")
        node = self._find_node(key)
        return default if node is None else node.value

    def contains(self, value: T) -> bool:
        if value is None:
            raise InvalidArgumentError("Cannot search the tree for None.")
        return self._find_node(self._key(value)) is not None

    def _find_node(self, key: Any) -> TreeNode[T] | None:
        node = self._root
        while node is not None:
            if key < node.key:
                node = node.left
            elif key > node.key:
                node = node.right
            else:
                return node
        return None

    def predecessor(self, value: T) -> T | None:
        """Largest stored value ordered strictly before `value`.

        `value` must be in the tree. Returns None when it is the smallest.
        """
        if value is None:
            raise InvalidArgumentError("Cannot take the predecessor of None.")
        if self._root is None:
            raise EmptyTreeError("Cannot take a predecessor in an empty tree.")
        key = self._key(value)
        ancestor: TreeNode[T] | None = None
        node = self._root
        while node is not None:
            if key < node.key:
                node = node.left
            elif key > node.key:
                # turned right: this node precedes everything below
                ancestor = node
                node = node.right
            else:
                if node.left is not None:
                    rightmost = node.left
                    while rightmost.right is not None:
                        rightmost = rightmost.right
                    return rightmost.value
                return None if ancestor is None else ancestor.value
        raise ElementNotFoundError(f"{key!r} is not in the tree.")

    def floor(self, key: Any) -> T | None:
        """Stored value with the largest key <= `key`, or None."""
        if key is None:
            raise InvalidArgumentError("Cannot search the tree for None.")
        closest: TreeNode[T] | None = None
        node = self._root
        while node is not None:
            if key < node.key:
                node = node.left
            elif key > node.key:
                closest = node
                node = node.right
            else:
                return node.value
        return None if closest is None else closest.value

    def k_smallest(self, k: int) -> list[T]:
        """The first `k` values of an in-order walk."""
        if k < 0 or k > self._size:
            raise InvalidArgumentError(f"k must be within [0, {self._size}], got {k}.")
        result: list[T] = []
        self._collect_smallest(self._root, k, result)
        return result

    def _collect_smallest(self, node: TreeNode[T] | None, k: int, out: list[T]) -> None:
        if node is None or len(out) >= k:
            return
        self._collect_smallest(node.left, k, out)
        if len(out) < k:
            out.append(node.value)
            self._collect_smallest(node.right, k, out)
