"""
Greedy packing of items into groups of bounded total size.

Items are taken strictly in input order and appended to the current group
until the next one would overflow it. An item that is larger than the
limit on its own is emitted as a group of one. Groups never reorder,
split or drop items, so flattening the output gives back the input.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, TypeVar


T = TypeVar("T")


def group_by_size(
    items: Iterable[T],
    max_size: int,
    size_of: Callable[[T], int] = len,  # type: ignore[assignment]
) -> Iterator[List[T]]:
    """Yield consecutive groups of ``items`` whose sizes sum to at most ``max_size``.

    Parameters
    ----------
    items : Iterable[T]
        Items to group, consumed lazily.
    max_size : int
        Upper bound for the combined size of a group with more than one item.
    size_of : Callable[[T], int], optional
        Size of a single item. Defaults to ``len``.

    Yields
    ------
    List[T]
        Non-empty groups in input order.
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")

    current: List[T] = []
    current_size = 0
    for item in items:
        size = size_of(item)

        if size > max_size:
            if current:
                yield current
                current, current_size = [], 0
            yield [item]
            continue

        if current_size + size > max_size:
            yield current
            current, current_size = [item], size
        else:
            current.append(item)
            current_size += size

    if current:
        yield current
