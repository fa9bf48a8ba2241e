"""Recency log for cached row positions.

A doubly linked list plus a key -> node map gives O(1) touch, requeue and
eviction of the least recently used key.
"""

from __future__ import annotations

from typing import Dict, Hashable, Iterator, Optional


class _Node:
    __slots__ = ("key", "prev", "next")

    def __init__(self, key: Hashable) -> None:
        self.key = key
        self.prev: Optional[_Node] = None
        self.next: Optional[_Node] = None


class AccessLog:
    """Ordered keys, least recently used first."""

    def __init__(self) -> None:
        self._nodes: Dict[Hashable, _Node] = {}
        self._head: Optional[_Node] = None
        self._tail: Optional[_Node] = None

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __iter__(self) -> Iterator[Hashable]:
        node = self._head
        while node is not None:
            yield node.key
            node = node.next

    def touch(self, key: Hashable) -> None:
        """Mark *key* as most recently used, inserting it if absent."""
        node = self._nodes.get(key)
        if node is None:
            node = _Node(key)
            self._nodes[key] = node
        elif node is self._tail:
            return
        else:
            self._unlink(node)
        self._append(node)

    def oldest(self) -> Optional[Hashable]:
        return None if self._head is None else self._head.key

    def newest(self) -> Optional[Hashable]:
        return None if self._tail is None else self._tail.key

    def pop_oldest(self) -> Hashable:
        if self._head is None:
            raise KeyError("pop from an empty access log")
        node = self._head
        self._unlink(node)
        del self._nodes[node.key]
        return node.key

    def discard(self, key: Hashable) -> None:
        node = self._nodes.pop(key, None)
        if node is not None:
            self._unlink(node)

    def clear(self) -> None:
        self._nodes.clear()
        self._head = self._tail = None

    def _append(self, node: _Node) -> None:
        node.prev = self._tail
        node.next = None
        if self._tail is None:
            self._head = node
        else:
            self._tail.next = node
        self._tail = node

    def _unlink(self, node: _Node) -> None:
        if node.prev is None:
            self._head = node.next
        else:
            node.prev.next = node.next
        if node.next is None:
            self._tail = node.prev
        else:
            node.next.prev = node.prev
        node.prev = node.next = None
